# Copyright 2023-present MongoDB, Inc.
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
from __future__ import annotations

import enum
import logging
import os
from typing import Any

from bson import UuidRepresentation, json_util
from bson.json_util import JSONOptions, _truncate_documents


class _GridFSMessage(str, enum.Enum):
    CREATED = "GridFS instance created"
    FIND = "GridFS find"
    FIND_ONE = "GridFS find one"
    REMOVE = "GridFS remove"
    SAVED = "GridFS file saved"
    VALIDATED = "GridFS file validated"
    DISCARDED = "GridFS file discarded"


_DEFAULT_DOCUMENT_LENGTH = 1000
_DOCUMENT_NAMES = ["filter"]
_JSON_OPTIONS = JSONOptions(uuid_representation=UuidRepresentation.STANDARD)
_GRIDFS_LOGGER = logging.getLogger("gridbox.gridfs")


def _debug_log(logger: logging.Logger, **fields: Any) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(LogMessage(**fields))


def _dumps(value: Any) -> str:
    return json_util.dumps(value, json_options=_JSON_OPTIONS, default=lambda o: o.__repr__())


class LogMessage:
    __slots__ = ["_kwargs"]

    def __init__(self, **kwargs: Any):
        self._kwargs = kwargs
        message = self._kwargs.get("message")
        if isinstance(message, enum.Enum):
            self._kwargs["message"] = message.value

    def __str__(self) -> str:
        return _dumps(self._truncated())

    def _truncated(self) -> dict[str, Any]:
        document_length = int(
            os.getenv("GRIDBOX_LOG_MAX_DOCUMENT_LENGTH", _DEFAULT_DOCUMENT_LENGTH)
        )
        if document_length < 0:
            document_length = _DEFAULT_DOCUMENT_LENGTH
        fields = dict(self._kwargs)
        for doc_name in _DOCUMENT_NAMES:
            doc = fields.get(doc_name)
            if doc is None:
                continue
            doc = _dumps(_truncate_documents(doc, document_length)[0])
            if len(doc) > document_length:
                doc = (
                    doc.encode()[:document_length].decode("unicode-escape", "ignore")
                ) + "..."
            fields[doc_name] = doc
        return fields
