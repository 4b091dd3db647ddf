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

"""Tools for representing files stored in GridFS."""
from __future__ import annotations

import contextlib
import datetime
import hashlib
import io
import math
import os
from collections.abc import Mapping
from typing import (
    Any,
    BinaryIO,
    Callable,
    ContextManager,
    Generic,
    Iterator,
    Optional,
    TypeVar,
    Union,
)

from bson.objectid import ObjectId
from gridbox.common import validate_is_mapping, validate_positive_integer
from gridbox.errors import UnsupportedSource, ValidationError
from gridbox.logger import _GRIDFS_LOGGER, _debug_log, _GridFSMessage
from gridfs import DEFAULT_CHUNK_SIZE, GridIn, GridOut
from gridfs.errors import FileExists
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.cursor import Cursor
from pymongo.errors import InvalidOperation

_FileType = TypeVar("_FileType", bound="GridFSFile")

# Opens the content of a file that has not been saved yet.
_SourceOpener = Callable[[], ContextManager[BinaryIO]]


def _file_property(field_name: str, docstring: str, default: Any = None) -> Any:
    """Create a read-only property backed by the file document."""

    def getter(self: Any) -> Any:
        return self._file.get(field_name, default)

    docstring += "\n\nThis attribute is read-only."
    return property(getter, doc=docstring)


def _source_opener(data: Any) -> _SourceOpener:
    """Return a callable opening `data` as a binary stream."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        payload = bytes(data)
        return lambda: io.BytesIO(payload)
    if isinstance(data, os.PathLike):
        path = os.fspath(data)
        return lambda: open(path, "rb")  # noqa: SIM115
    if isinstance(data, str):
        raise UnsupportedSource(
            "text is not supported, encode it to bytes or wrap a path in os.PathLike"
        )
    if isinstance(data, io.TextIOBase):
        raise UnsupportedSource("text streams are not supported, open the file in binary mode")
    if callable(getattr(data, "read", None)):
        # The caller owns the stream and is responsible for closing it.
        return lambda: contextlib.nullcontext(data)
    raise UnsupportedSource(f"cannot create a GridFS file from {type(data)}")


def _default_filename(data: Any) -> Optional[str]:
    if isinstance(data, os.PathLike):
        return os.path.basename(os.fspath(data))
    return None


class GridFSFile(Mapping[str, Any]):
    """A file stored (or about to be stored) in GridFS.

    Instances are read-only mappings over the file document in the
    ``<bucket>.files`` collection. Application developers should not need to
    instantiate this class directly; see :class:`~gridbox.GridFS`.
    """

    def __init__(self, root_collection: Collection, file_document: Mapping[str, Any]) -> None:
        if not isinstance(root_collection, Collection):
            raise TypeError(
                f"root_collection must be an instance of Collection, not {type(root_collection)}"
            )
        self._coll = root_collection
        self._file = dict(file_document)

    id: Any = _file_property("_id", "The ``'_id'`` value for this file.")
    filename: Optional[str] = _file_property("filename", "Name of this file.")
    content_type: Optional[str] = _file_property("contentType", "Mime-type for this file.")
    length: int = _file_property("length", "Length (in bytes) of this file.", default=0)
    chunk_size: int = _file_property("chunkSize", "Chunk size for this file.")
    upload_date: Optional[datetime.datetime] = _file_property(
        "uploadDate", "Date that this file was uploaded."
    )
    md5: Optional[str] = _file_property("md5", "MD5 of the contents of this file.")

    @property
    def aliases(self) -> list[str]:
        """List of aliases for this file."""
        return list(self._file.get("aliases") or [])

    @property
    def metadata(self) -> Optional[Mapping[str, Any]]:
        """Free-form metadata document attached to this file."""
        return self._file.get("metadata")

    @metadata.setter
    def metadata(self, value: Mapping[str, Any]) -> None:
        self._file["metadata"] = validate_is_mapping("metadata", value)

    @property
    def num_chunks(self) -> int:
        """Number of chunks the content of this file is split into."""
        if not self.chunk_size:
            return 0
        return math.ceil(int(self.length) / int(self.chunk_size))

    def __getitem__(self, key: str) -> Any:
        return self._file[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._file)

    def __len__(self) -> int:
        return len(self._file)

    def save(self) -> None:
        """Write this file document to the files collection."""
        self._coll.files.replace_one({"_id": self.id}, self._file, upsert=True)
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.SAVED,
            bucket=self._coll.name,
            fileId=self.id,
        )

    def validate(self) -> None:
        """Check the chunks of this file against its file document.

        Raises :class:`~gridbox.errors.ValidationError` if the chunk numbers
        are not contiguous from zero, a chunk has the wrong size, the total
        size disagrees with :attr:`length`, or the content does not match
        :attr:`md5`.
        """
        chunk_size = self.chunk_size
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValidationError(f"file {self.id!r} has an invalid chunkSize {chunk_size!r}")
        length = int(self.length)
        expected_chunks = self.num_chunks
        checksum = hashlib.md5(usedforsecurity=False) if self.md5 else None

        n = 0
        for chunk in self._coll.chunks.find({"files_id": self.id}, sort=[("n", ASCENDING)]):
            if "n" not in chunk or "data" not in chunk:
                raise ValidationError(f"file {self.id!r} has a malformed chunk at number {n}")
            if chunk["n"] != n:
                raise ValidationError(f"file {self.id!r} is missing chunk number {n}")
            if n >= expected_chunks:
                raise ValidationError(
                    f"file {self.id!r} has extra chunk number {n}, expected {expected_chunks}"
                )
            if n == expected_chunks - 1:
                expected_length = length - chunk_size * n
            else:
                expected_length = chunk_size
            data = chunk["data"]
            if len(data) != expected_length:
                raise ValidationError(
                    f"chunk {n} of file {self.id!r} is {len(data)} bytes, expected {expected_length}"
                )
            if checksum is not None:
                checksum.update(data)
            n += 1

        if n != expected_chunks:
            raise ValidationError(f"file {self.id!r} has {n} chunks, expected {expected_chunks}")
        if checksum is not None and checksum.hexdigest() != self.md5:
            raise ValidationError(f"md5 of file {self.id!r} does not match its content")
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.VALIDATED,
            bucket=self._coll.name,
            fileId=self.id,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(id={self.id!r}, filename={self.filename!r}, "
            f"content_type={self.content_type!r})"
        )


class GridFSDBFile(GridFSFile):
    """A file read back from GridFS."""

    def open(self) -> GridOut:
        """Return a :class:`~gridfs.GridOut` streaming the content of this file."""
        return GridOut(self._coll, file_document=self._file)

    def read(self) -> bytes:
        """Read the whole content of this file."""
        with self.open() as grid_out:
            return grid_out.read()

    def write_to(self, destination: Union[str, os.PathLike, BinaryIO]) -> int:
        """Copy the content of this file to `destination`.

        `destination` is either a path, which is created or truncated, or a
        writable binary file-like object, which is left open.

        Returns the number of bytes written.
        """
        if isinstance(destination, (str, os.PathLike)):
            with open(destination, "wb") as out:
                return self._copy_to(out)
        if callable(getattr(destination, "write", None)):
            return self._copy_to(destination)
        raise TypeError(
            f"destination must be a path or a writable file-like object, not {type(destination)}"
        )

    def _copy_to(self, out: BinaryIO) -> int:
        written = 0
        with self.open() as grid_out:
            while True:
                chunk = grid_out.readchunk()
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        return written


class GridFSInputFile(GridFSFile):
    """A new file to be written to GridFS.

    Nothing is sent to the server until :meth:`save` is called. Used as a
    context manager, the file is saved and validated when the block exits
    normally and discarded when it raises.
    """

    def __init__(
        self,
        root_collection: Collection,
        data: Any,
        filename: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        **kwargs: Any,
    ) -> None:
        """Create a new file from `data`.

        :param root_collection: root collection to write to
        :param data: bytes, an :class:`os.PathLike` path or a readable
            binary file-like object
        :param filename: human name for the file, defaults to the base name
            of `data` when it is a path
        :param chunk_size: size of each of the chunks, in bytes
        :param kwargs: additional fields of the file document
        """
        if "content_type" in kwargs:
            kwargs["contentType"] = kwargs.pop("content_type")
        if "chunkSize" in kwargs:
            chunk_size = kwargs.pop("chunkSize")
        document = {
            "_id": kwargs.pop("_id") if "_id" in kwargs else ObjectId(),
            "chunkSize": validate_positive_integer("chunk_size", chunk_size),
            "filename": filename if filename is not None else _default_filename(data),
        }
        document.update(kwargs)
        super().__init__(root_collection, document)
        self._open_source = _source_opener(data)
        self._saved = False
        self._discarded = False

    def _set(self, field_name: str, value: Any) -> None:
        if self._discarded:
            raise InvalidOperation("cannot modify a discarded file")
        self._file[field_name] = value

    @property
    def filename(self) -> Optional[str]:
        """Name of this file."""
        return self._file.get("filename")

    @filename.setter
    def filename(self, value: Optional[str]) -> None:
        self._set("filename", value)

    @property
    def content_type(self) -> Optional[str]:
        """Mime-type for this file."""
        return self._file.get("contentType")

    @content_type.setter
    def content_type(self, value: Optional[str]) -> None:
        self._set("contentType", value)

    @property
    def aliases(self) -> list[str]:
        """List of aliases for this file."""
        return list(self._file.get("aliases") or [])

    @aliases.setter
    def aliases(self, value: list[str]) -> None:
        self._set("aliases", list(value))

    @property
    def metadata(self) -> Optional[Mapping[str, Any]]:
        """Free-form metadata document attached to this file."""
        return self._file.get("metadata")

    @metadata.setter
    def metadata(self, value: Mapping[str, Any]) -> None:
        self._set("metadata", validate_is_mapping("metadata", value))

    @property
    def saved(self) -> bool:
        """Has the content of this file been written to GridFS?"""
        return self._saved

    def save(self) -> None:
        """Write this file to GridFS.

        The first call uploads the content; an error during the upload
        removes whatever was written and propagates. When the ``_id`` is
        already taken, :class:`~gridfs.errors.FileExists` propagates and the
        existing file is left untouched. Later calls write the
        file document only, persisting any metadata changed since.
        """
        if self._discarded:
            raise InvalidOperation("cannot save a discarded file")
        if self._saved:
            super().save()
            return

        fields = {k: v for k, v in self._file.items() if v is not None}
        grid_in = GridIn(self._coll, **fields)
        checksum = hashlib.md5(usedforsecurity=False)
        try:
            with self._open_source() as source:
                while True:
                    data = source.read(self.chunk_size)
                    if not data:
                        break
                    if not isinstance(data, (bytes, bytearray, memoryview)):
                        raise UnsupportedSource(
                            f"source must produce bytes, not {type(data)}"
                        )
                    data = bytes(data)
                    checksum.update(data)
                    grid_in.write(data)
            grid_in.set("md5", checksum.hexdigest())
            grid_in.close()
        except FileExists:
            # The _id belongs to a file stored earlier, leave its chunks alone.
            raise
        except BaseException:
            grid_in.abort()
            raise

        self._file["length"] = grid_in.length
        self._file["uploadDate"] = grid_in.upload_date
        self._file["md5"] = checksum.hexdigest()
        self._saved = True
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.SAVED,
            bucket=self._coll.name,
            fileId=self.id,
            length=self.length,
        )

    def validate(self) -> None:
        if not self._saved:
            raise InvalidOperation("cannot validate a file that has not been saved")
        super().validate()

    def discard(self) -> None:
        """Give up on this file, removing anything already written."""
        if self._saved:
            self._coll.files.delete_one({"_id": self.id})
            self._coll.chunks.delete_many({"files_id": self.id})
        self._saved = False
        self._discarded = True
        _debug_log(
            _GRIDFS_LOGGER,
            message=_GridFSMessage.DISCARDED,
            bucket=self._coll.name,
            fileId=self.id,
        )

    def __enter__(self) -> GridFSInputFile:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Any:
        """Save and validate the file if no exceptions occur, otherwise
        discard it. A file that was saved but could not be validated, for
        any reason, is discarded too. Exceptions always propagate.
        """
        if exc_type is not None:
            self.discard()
            return False
        self.save()
        try:
            self.validate()
        except BaseException:
            self.discard()
            raise
        return False


class GridFSCursor(Generic[_FileType]):
    """A forward-only cursor over files matching a GridFS query.

    Should not be created directly by application developers - see
    :meth:`~gridbox.GridFS.find` instead.
    """

    def __init__(
        self,
        cursor: Cursor,
        document_class: Callable[[Mapping[str, Any]], _FileType],
    ) -> None:
        self._cursor = cursor
        self._document_class = document_class
        self._iterator: Optional[Iterator[Mapping[str, Any]]] = None

    def _documents(self) -> Iterator[Mapping[str, Any]]:
        if self._iterator is None:
            self._iterator = iter(self._cursor)
        return self._iterator

    def _check_not_started(self) -> None:
        if self._iterator is not None:
            raise InvalidOperation("cannot set options after executing query")

    def sort(self, key_or_list: Any, direction: Optional[int] = None) -> GridFSCursor[_FileType]:
        self._check_not_started()
        self._cursor = self._cursor.sort(key_or_list, direction)
        return self

    def skip(self, skip: int) -> GridFSCursor[_FileType]:
        self._check_not_started()
        self._cursor = self._cursor.skip(skip)
        return self

    def limit(self, limit: int) -> GridFSCursor[_FileType]:
        self._check_not_started()
        self._cursor = self._cursor.limit(limit)
        return self

    @property
    def alive(self) -> bool:
        """Does this cursor have the potential to return more data?"""
        return self._cursor.alive

    def next(self) -> _FileType:
        """Advance the cursor."""
        return self._document_class(next(self._documents()))

    __next__ = next

    def __iter__(self) -> GridFSCursor[_FileType]:
        return self

    def to_list(self, length: Optional[int] = None) -> list[_FileType]:
        """Convert the cursor to a list."""
        if length is None:
            return [x for x in self]  # noqa: C416,RUF100
        if length < 1:
            raise ValueError("to_list() length must be greater than 0")
        ret = []
        for _ in range(length):
            try:
                ret.append(self.next())
            except StopIteration:
                break
        return ret

    def close(self) -> None:
        """Explicitly close / kill this cursor."""
        self._cursor.close()

    def __enter__(self) -> GridFSCursor[_FileType]:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
