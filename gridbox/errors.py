# Copyright 2009-present MongoDB, Inc.
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

"""Exceptions raised by the :mod:`gridbox` package.

Network, authentication and server errors are raised by PyMongo itself and
are never wrapped.
"""
from __future__ import annotations

from gridfs.errors import GridFSError as _DriverGridFSError
from gridfs.errors import NoFile

__all__ = ["GridFSError", "ValidationError", "UnsupportedSource", "NoFile"]


class GridFSError(_DriverGridFSError):
    """Base class for all gridbox exceptions."""


class ValidationError(GridFSError):
    """Raised when a stored file fails its structural checks.

    The chunks of the file are missing, out of order, of the wrong size, or
    their content does not match the recorded checksum.
    """


class UnsupportedSource(GridFSError):
    """Raised when a file is created from an input type that is not supported."""
