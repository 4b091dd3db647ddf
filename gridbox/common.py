# Copyright 2011-present MongoDB, Inc.
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

"""Functions and classes common to multiple gridbox modules."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from bson.objectid import ObjectId
from gridfs import DEFAULT_CHUNK_SIZE
from pymongo.errors import ConfigurationError

__all__ = [
    "DEFAULT_BUCKET",
    "DEFAULT_CHUNK_SIZE",
    "as_filter",
    "validate_is_mapping",
    "validate_positive_integer",
    "validate_string",
]

# Name of the root collection used when no bucket is given.
DEFAULT_BUCKET = "fs"


def validate_string(option: str, value: Any) -> str:
    """Validates that 'value' is a non-empty string."""
    if not isinstance(value, str):
        raise TypeError(f"Wrong type for {option}, value must be an instance of str, not {type(value)}")
    if not value:
        raise ConfigurationError(f"The value of {option} must be a non-empty string")
    return value


def validate_positive_integer(option: str, value: Any) -> int:
    """Validate that 'value' is a positive integer, which does not include 0."""
    # bool is a subclass of int.
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Wrong type for {option}, value must be an integer, not {type(value)}")
    if value <= 0:
        raise ConfigurationError(f"The value of {option} must be a positive integer")
    return value


def validate_is_mapping(option: str, value: Any) -> Mapping[str, Any]:
    """Validate the type of method arguments that expect a document."""
    if not isinstance(value, Mapping):
        raise TypeError(
            f"{option} must be an instance of dict, bson.son.SON, or "
            f"any other type that inherits from collections.abc.Mapping, not {type(value)}"
        )
    return value


def as_filter(query: Optional[Any]) -> Mapping[str, Any]:
    """Convert a GridFS query into a filter for the files collection.

    ``None`` matches every file, a mapping is used as is, a :class:`str` is
    a filename and an :class:`~bson.objectid.ObjectId` is a file ``_id``.
    Files with an ``_id`` of another type can be matched with
    ``{"_id": value}``.
    """
    if query is None:
        return {}
    if isinstance(query, Mapping):
        return query
    if isinstance(query, str):
        return {"filename": query}
    if isinstance(query, ObjectId):
        return {"_id": query}
    raise TypeError(f"query must be a mapping, a filename, or an ObjectId, not {type(query)}")
