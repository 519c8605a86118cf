"""Value types shared by all file store backends."""

from __future__ import annotations

import io
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from filestore.storage.exceptions import InvalidInputError, InvalidRangeError

_RANGE_PATTERN = re.compile(r"^([a-zA-Z]+)=(\d+)-(\d+)$")


class ErrorPolicy(str, Enum):
    """What a walk does when the visitor raises."""

    CONTINUE = "continue"
    ABORT = "abort"


@dataclass(frozen=True)
class Location:
    """A single path or a multi-path resource such as a shapefile set."""

    path: str = ""
    paths: List[str] = field(default_factory=list)

    def is_nil(self) -> bool:
        return not self.paths and self.path == ""

    def all_paths(self) -> List[str]:
        """Return the paths array, or the single path when no array is set."""
        if self.paths:
            return list(self.paths)
        return [self.path] if self.path else []


@dataclass(frozen=True)
class ByteRange:
    """A parsed ``unit=start-end`` range; ``end`` is inclusive."""

    unit: str
    start: int
    end: int

    @classmethod
    def parse(cls, expression: str) -> "ByteRange":
        """
        Parse a range expression such as ``bytes=0-20``.

        Raises:
            InvalidRangeError: If the expression is malformed or start > end
        """
        match = _RANGE_PATTERN.match(expression or "")
        if not match:
            raise InvalidRangeError(expression)
        start, end = int(match.group(2)), int(match.group(3))
        if start > end:
            raise InvalidRangeError(expression)
        return cls(unit=match.group(1), start=start, end=end)

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class ObjectSource:
    """The origin of bytes for a write.

    Exactly one of ``data``, ``reader`` or ``filepath`` must be supplied.
    ``content_length`` is derived for in-memory data and must be given
    explicitly for streams when the backend needs it.
    """

    data: Optional[bytes] = None
    reader: Optional[BinaryIO] = None
    filepath: Optional[Location] = None
    content_length: Optional[int] = None

    def _kinds(self) -> List[str]:
        kinds = []
        if self.data is not None:
            kinds.append("data")
        if self.reader is not None:
            kinds.append("reader")
        if self.filepath is not None and not self.filepath.is_nil():
            kinds.append("filepath")
        return kinds

    def validate(self) -> str:
        """Return the source kind, raising if zero or several are set."""
        kinds = self._kinds()
        if len(kinds) != 1:
            raise InvalidInputError(
                "Invalid object source: exactly one of data, reader or filepath is required",
                details={"sources": kinds},
            )
        return kinds[0]

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        """Yield a readable stream over the source.

        File sources are closed on exit; caller supplied readers are not.
        """
        kind = self.validate()
        if kind == "data":
            self.content_length = len(self.data)
            yield io.BytesIO(self.data)
        elif kind == "filepath":
            with open(self.filepath.path, "rb") as f:
                yield f
        else:
            if isinstance(self.reader, io.BytesIO) and self.content_length is None:
                self.content_length = len(self.reader.getbuffer()) - self.reader.tell()
            yield self.reader


class ListingResult(BaseModel):
    """One entry returned from a directory or prefix listing."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., description="Ordinal within this listing call")
    name: str = Field(..., alias="fileName", description="Entry name")
    size: str = Field(default="", description="Size in bytes, string encoded")
    path: str = Field(..., alias="filePath", description="Containing path")
    type: str = Field(default="", description="File extension")
    is_dir: bool = Field(default=False, alias="isdir", description="Directory flag")
    modified: Optional[datetime] = Field(default=None, description="Last modified time")
    modified_by: str = Field(default="", alias="modifiedBy", description="Reserved")

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the wire field names."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata for a single file, object or traversable prefix."""

    name: str
    size: int = 0
    modified: Optional[datetime] = None
    is_dir: bool = False
    etag: Optional[str] = None


@dataclass(frozen=True)
class ProgressData:
    """A progress notification; ``max`` is -1 when the bound is unknown."""

    index: int
    max: int = -1
    value: Any = None


ProgressFunction = Callable[[ProgressData], None]
VisitFunction = Callable[[str, ObjectInfo], None]


@dataclass
class FileOperationOutput:
    """Result of a write: content MD5 locally, backend ETag remotely."""

    etag: str = ""


@dataclass
class UploadConfig:
    """One step of a multipart upload session."""

    object_path: str
    chunk_id: int = 0
    upload_id: str = ""
    data: bytes = b""


@dataclass
class UploadResult:
    id: str = ""
    write_size: int = 0
    is_complete: bool = False


@dataclass
class CompletedObjectUploadConfig:
    """Completion request; ``chunk_upload_ids`` must be in chunk order."""

    upload_id: str
    object_path: str
    chunk_upload_ids: List[str] = field(default_factory=list)
    expected_md5: Optional[str] = None


@dataclass
class GetObjectInput:
    path: Location
    # rfc9110 syntax, single range only
    range: str = ""


@dataclass
class PutObjectInput:
    source: ObjectSource
    dest: Location
    multipart: bool = False
    part_size: int = 0


@dataclass
class ListDirInput:
    path: Location
    page: int = 0
    size: int = 0
    filter: str = ""
    cancel_event: Optional[threading.Event] = None


@dataclass
class CopyObjectInput:
    src: Location
    dest: Location
    progress: Optional[ProgressFunction] = None
    cancel_event: Optional[threading.Event] = None


@dataclass
class DeleteObjectInput:
    paths: Location
    progress: Optional[ProgressFunction] = None
    cancel_event: Optional[threading.Event] = None


@dataclass
class WalkInput:
    path: Location
    progress: Optional[ProgressFunction] = None
    error_policy: ErrorPolicy = ErrorPolicy.CONTINUE
    cancel_event: Optional[threading.Event] = None


__all__ = [
    "ErrorPolicy",
    "Location",
    "ByteRange",
    "ObjectSource",
    "ListingResult",
    "ObjectInfo",
    "ProgressData",
    "ProgressFunction",
    "VisitFunction",
    "FileOperationOutput",
    "UploadConfig",
    "UploadResult",
    "CompletedObjectUploadConfig",
    "GetObjectInput",
    "PutObjectInput",
    "ListDirInput",
    "CopyObjectInput",
    "DeleteObjectInput",
    "WalkInput",
]
