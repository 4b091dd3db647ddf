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

"""A convenience layer over GridFS for storing large objects in Mongo.

The :mod:`gridbox` package wraps the :mod:`gridfs` package of PyMongo:
single lookups return ``None`` instead of raising, new files can be written
inside a scope that saves and validates them on success, and every read
takes its decoding options as an argument.

.. seealso:: The MongoDB documentation on `gridfs <https://dochub.mongodb.org/core/gridfs>`_.
"""
from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Optional

from bson.codec_options import CodecOptions
from gridbox._version import __version__, get_version_string, version, version_tuple
from gridbox.common import (
    DEFAULT_BUCKET,
    DEFAULT_CHUNK_SIZE,
    as_filter,
    validate_positive_integer,
    validate_string,
)
from gridbox.errors import GridFSError, NoFile, UnsupportedSource, ValidationError
from gridbox.grid_file import GridFSCursor, GridFSDBFile, GridFSFile, GridFSInputFile
from gridbox.logger import _GRIDFS_LOGGER, _debug_log, _GridFSMessage
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConfigurationError

__all__ = [
    "GridFS",
    "GridFSCursor",
    "GridFSDBFile",
    "GridFSFile",
    "GridFSInputFile",
    "GridFSError",
    "NoFile",
    "UnsupportedSource",
    "ValidationError",
    "DEFAULT_BUCKET",
    "DEFAULT_CHUNK_SIZE",
    "__version__",
    "get_version_string",
    "version",
    "version_tuple",
]


class GridFS:
    """An instance of GridFS on top of a single Database."""

    def __init__(
        self,
        database: Database,
        bucket: str = DEFAULT_BUCKET,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        codec_options: Optional[CodecOptions] = None,
    ) -> None:
        """Create a new instance of :class:`GridFS`.

        Raises :class:`TypeError` if `database` is not an instance of
        :class:`~pymongo.database.Database`.

        :param database: database to use
        :param bucket: name of the root collection to use (default: ``"fs"``)
        :param chunk_size: size of the chunks of new files, in bytes
            (default: 255 kb)
        :param codec_options: default decoding options for file documents.
            Defaults to the options of `database` without its custom type
            registry, so application decoders never see file documents.
        """
        if not isinstance(database, Database):
            raise TypeError(f"database must be an instance of Database, not {type(database)}")
        validate_string("bucket", bucket)
        validate_positive_integer("chunk_size", chunk_size)
        if codec_options is None:
            codec_options = database.codec_options.with_options(type_registry=None)
        elif not isinstance(codec_options, CodecOptions):
            raise TypeError(
                f"codec_options must be an instance of CodecOptions, not {type(codec_options)}"
            )

        if not database.write_concern.acknowledged:
            raise ConfigurationError("database must use acknowledged write_concern")

        self._database = database
        self._chunk_size = chunk_size
        self._codec_options = codec_options
        self._collection = database.get_collection(bucket, codec_options=codec_options)
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.CREATED,
            database=database.name,
            bucket=bucket,
        )

    @property
    def database(self) -> Database:
        """The database this instance stores its files in."""
        return self._database

    @property
    def bucket_name(self) -> str:
        """Name of the root collection of this instance."""
        return self._collection.name

    @property
    def chunk_size(self) -> int:
        """Chunk size used for new files."""
        return self._chunk_size

    @property
    def codec_options(self) -> CodecOptions:
        """Default decoding options for file documents."""
        return self._codec_options

    def _root_collection(self, codec_options: Optional[CodecOptions] = None) -> Collection:
        if codec_options is None:
            return self._collection
        return self._collection.with_options(codec_options=codec_options)

    def _db_file(self, collection: Collection) -> Callable[[Mapping[str, Any]], GridFSDBFile]:
        return lambda document: GridFSDBFile(collection, document)

    def create_file(
        self, data: Any, filename: Optional[str] = None, **kwargs: Any
    ) -> GridFSInputFile:
        """Create a new file in GridFS.

        Returns a :class:`~gridbox.grid_file.GridFSInputFile`. Nothing is
        written until it is saved, either explicitly with
        :meth:`~gridbox.grid_file.GridFSInputFile.save` or by using it as a
        context manager.

        Raises :class:`~gridbox.errors.UnsupportedSource` if `data` is
        neither bytes, an :class:`os.PathLike` path, nor a readable binary
        file-like object.

        :param data: content of the new file
        :param filename: name of the new file
        :param kwargs: additional fields for the file document, for example
            ``content_type``, ``aliases``, ``metadata`` or ``_id``
        """
        kwargs.setdefault("chunk_size", self._chunk_size)
        return GridFSInputFile(self._collection, data, filename, **kwargs)

    def with_new_file(
        self,
        data: Any,
        op: Callable[[GridFSInputFile], Any],
        filename: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Create a new file, hand it to `op`, then save and validate it.

        `op` can set the filename, content type, aliases or metadata of the
        file before it is written. If `op` raises, nothing is saved and the
        exception propagates. If the saved file fails validation it is
        removed again and :class:`~gridbox.errors.ValidationError` is raised.

        Returns the ``"_id"`` of the new file.

        :param data: content of the new file
        :param op: callable taking the new
            :class:`~gridbox.grid_file.GridFSInputFile`
        :param filename: name of the new file
        :param kwargs: additional fields for the file document
        """
        with self.create_file(data, filename, **kwargs) as grid_file:
            op(grid_file)
        return grid_file.id

    def put(self, data: Any, filename: Optional[str] = None, **kwargs: Any) -> Any:
        """Put data in GridFS as a new file.

        Equivalent to :meth:`with_new_file` with no caller logic. Returns
        the ``"_id"`` of the new file.
        """
        with self.create_file(data, filename, **kwargs) as grid_file:
            pass
        return grid_file.id

    def find(
        self,
        query: Optional[Any] = None,
        codec_options: Optional[CodecOptions] = None,
        **kwargs: Any,
    ) -> GridFSCursor[GridFSDBFile]:
        """Query GridFS for files.

        Returns a cursor that iterates across files matching `query`, which
        is a filter document, a filename, an
        :class:`~bson.objectid.ObjectId` or ``None`` for every file::

          for grid_file in fs.find("lisa.txt"):
              data = grid_file.read()

        :param query: the files to match
        :param codec_options: decoding options for this call only
        :param kwargs: any additional options for
            :meth:`~pymongo.collection.Collection.find`, such as ``sort``,
            ``skip`` or ``limit``
        """
        filter = as_filter(query)
        collection = self._root_collection(codec_options)
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.FIND,
            bucket=self.bucket_name,
            filter=filter,
        )
        return GridFSCursor(collection.files.find(filter, **kwargs), self._db_file(collection))

    def find_one(
        self, query: Optional[Any] = None, codec_options: Optional[CodecOptions] = None
    ) -> Optional[GridFSDBFile]:
        """Get a single file from GridFS.

        Returns a :class:`~gridbox.grid_file.GridFSDBFile`, or ``None`` if
        no file matches `query`.

        :param query: the file to match, see :meth:`find`
        :param codec_options: decoding options for this call only
        """
        filter = as_filter(query)
        collection = self._root_collection(codec_options)
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.FIND_ONE,
            bucket=self.bucket_name,
            filter=filter,
        )
        document = collection.files.find_one(filter)
        if document is None:
            return None
        return GridFSDBFile(collection, document)

    def files(
        self, query: Optional[Any] = None, codec_options: Optional[CodecOptions] = None
    ) -> GridFSCursor[GridFSDBFile]:
        """List the files matching `query`, ordered by filename."""
        return self.find(query, codec_options, sort=[("filename", ASCENDING)])

    def __iter__(self) -> Iterator[GridFSDBFile]:
        return self.files()

    def count(self, query: Optional[Any] = None) -> int:
        """Count the files matching `query`."""
        return self._collection.files.count_documents(as_filter(query))

    def remove(self, query: Any) -> None:
        """Delete the files matching `query` and all of their chunks.

        `query` is a filter document, a filename or an
        :class:`~bson.objectid.ObjectId`. Deleting files that do not exist
        is not an error.

        .. warning:: Any processes/threads reading from a file while
           this method is executing will likely see an invalid/corrupt
           file.
        """
        if query is None:
            raise TypeError("query must not be None, pass {} to remove every file")
        filter = as_filter(query)
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.REMOVE,
            bucket=self.bucket_name,
            filter=filter,
        )
        files = self._collection.files
        file_ids = [doc["_id"] for doc in files.find(filter, projection={"_id": True})]
        if not file_ids:
            return
        files.delete_many({"_id": {"$in": file_ids}})
        self._collection.chunks.delete_many({"files_id": {"$in": file_ids}})

    def __repr__(self) -> str:
        return f"GridFS({self._database!r}, {self.bucket_name!r})"
