# Copyright 2010-present MongoDB, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Test suite for gridbox."""
from __future__ import annotations

import os
import threading
import unittest
import warnings
from functools import wraps
from typing import Optional
from unittest import SkipTest

import pymongo
import pymongo.errors
from pymongo.database import Database
from pymongo.mongo_client import MongoClient

# The host and port of a single mongod or mongos.
host = os.environ.get("DB_IP", "localhost")
port = int(os.environ.get("DB_PORT", 27017))

DB_NAME = "gridbox_test"


class ClientContext:
    client: Optional[MongoClient]

    def __init__(self):
        self.connection_attempts: list[str] = []
        self.connected = False
        self.client = None
        self.conn_lock = threading.Lock()

    @property
    def pair(self):
        return "%s:%d" % (host, port)

    def _connect(self, host, port, **kwargs):
        client = pymongo.MongoClient(host, port, serverSelectionTimeoutMS=1000, **kwargs)
        try:
            client.admin.command("ping")  # Can we connect?
            self.connection_attempts.append("successfully connected client %r" % (client,))
            # If connected, then return client with default timeout
            return pymongo.MongoClient(host, port, **kwargs)
        except pymongo.errors.ConnectionFailure as exc:
            self.connection_attempts.append("failed to connect client %r: %s" % (client, exc))
            return None
        finally:
            client.close()

    def init(self):
        with self.conn_lock:
            if not self.client and not self.connection_attempts:
                self.client = self._connect(host, port)
                self.connected = self.client is not None

    def connection_attempt_info(self):
        return "\n".join(self.connection_attempts)

    def _require(self, condition, msg, func=None):
        def make_wrapper(f):
            @wraps(f)
            def wrap(*args, **kwargs):
                self.init()
                # Always raise SkipTest if we can't connect to MongoDB
                if not self.connected:
                    raise SkipTest("Cannot connect to MongoDB on %s" % (self.pair,))
                if condition():
                    return f(*args, **kwargs)
                raise SkipTest(msg)

            return wrap

        if func is None:

            def decorate(f):
                return make_wrapper(f)

            return decorate
        return make_wrapper(func)

    def require_connection(self, func):
        """Run a test only if we can connect to MongoDB."""
        return self._require(
            lambda: True,  # _require checks if we're connected
            "Cannot connect to MongoDB on %s" % (self.pair,),
            func=func,
        )


# Reusable client context
client_context = ClientContext()


class GridboxTestCase(unittest.TestCase):
    """Base class for TestCases that never talk to a server."""

    db: Database

    def setUp(self):
        super().setUp()
        self.client = MongoClient(connect=False)
        self.addCleanup(self.client.close)
        self.db = self.client[DB_NAME]


class IntegrationTest(unittest.TestCase):
    """Base class for TestCases that need a connection to MongoDB to pass."""

    client: MongoClient
    db: Database

    @classmethod
    @client_context.require_connection
    def setUpClass(cls):
        cls.client = client_context.client
        cls.db = cls.client[DB_NAME]

    def cleanup_colls(self, *collections):
        """Cleanup collections faster than drop_collection."""
        for c in collections:
            c = self.client[c.database.name][c.name]
            c.delete_many({})
            c.drop_indexes()


def setup():
    client_context.init()
    warnings.resetwarnings()
    warnings.simplefilter("always")


def teardown():
    c = client_context.client
    if c:
        c.drop_database(DB_NAME)
        c.close()
