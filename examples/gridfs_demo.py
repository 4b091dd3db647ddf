# Copyright 2009 10gen, Inc.
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

"""A simple demo of gridbox

To run this, make sure that you are running an instance of Mongo on
localhost:27017 and that you have gridbox installed:

$ python -m pip install gridbox

Then do:

$ python gridfs_demo.py
"""
from __future__ import annotations

import sys

from gridbox import GridFS
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure

# Make a connection to Mongo.
client: MongoClient = MongoClient("localhost", 27017, serverSelectionTimeoutMS=2000)
try:
    client.admin.command("ping")
except ConnectionFailure:
    print("couldn't connect: be sure that Mongo is running on localhost:27017")
    sys.exit(1)

# We need a database for GridFS to use, but first make sure it's clean.
client.drop_database("gridbox_examples")
db = client["gridbox_examples"]

# Create our GridFS instance
fs = GridFS(db)


def describe(grid_file):
    grid_file.filename = "hello.txt"
    grid_file.content_type = "text/plain"


# Write a file; it is saved and validated when describe() returns
file_id = fs.with_new_file(b"hello world", describe)

# Now print the contents of the file
found = fs.find_one(file_id)
if found is not None:
    print(found.read())

# Lookups that match nothing give None rather than an error
print(fs.find_one("missing.txt"))

fs.remove(file_id)
