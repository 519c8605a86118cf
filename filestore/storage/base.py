"""Base file store interface."""

import threading
from abc import ABC, abstractmethod
from typing import BinaryIO, List, Optional

from filestore.storage.exceptions import OperationCancelledError
from filestore.storage.models import (
    CompletedObjectUploadConfig,
    CopyObjectInput,
    DeleteObjectInput,
    FileOperationOutput,
    GetObjectInput,
    ListDirInput,
    ListingResult,
    Location,
    ObjectInfo,
    PutObjectInput,
    UploadConfig,
    UploadResult,
    VisitFunction,
    WalkInput,
)


def check_cancelled(cancel_event: Optional[threading.Event], operation: str) -> None:
    """Raise OperationCancelledError if the caller has set the cancel event."""
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation)


class FileStore(ABC):
    """Abstract base class for file store backends."""

    @abstractmethod
    def list_dir(self, input: ListDirInput) -> List[ListingResult]:
        """
        List the entries of a directory or prefix.

        Args:
            input: Path plus optional page index, page size and substring filter

        Returns:
            Listing entries, directories first, with per-call ordinals
        """
        pass

    @abstractmethod
    def get_object_info(self, path: Location) -> ObjectInfo:
        """
        Get metadata for a path.

        Raises:
            ObjectNotFoundError: If nothing exists at the path
        """
        pass

    @abstractmethod
    def get_object(self, input: GetObjectInput) -> BinaryIO:
        """
        Open a path for reading, optionally restricted to a byte range.

        The caller is responsible for closing the returned stream.
        """
        pass

    @abstractmethod
    def resource_name(self) -> str:
        """Return a label for the store: empty locally, the bucket remotely."""
        pass

    @abstractmethod
    def put_object(self, input: PutObjectInput) -> FileOperationOutput:
        """Write an object from any ObjectSource."""
        pass

    @abstractmethod
    def copy_object(self, input: CopyObjectInput) -> None:
        """Copy an object within the store."""
        pass

    @abstractmethod
    def initialize_object_upload(self, config: UploadConfig) -> UploadResult:
        """Start a multipart upload session and return its id."""
        pass

    @abstractmethod
    def write_chunk(self, config: UploadConfig) -> UploadResult:
        """Write one chunk of a multipart upload session."""
        pass

    @abstractmethod
    def complete_object_upload(
        self, config: CompletedObjectUploadConfig
    ) -> FileOperationOutput:
        """Finish a multipart upload session."""
        pass

    @abstractmethod
    def delete_objects(self, input: DeleteObjectInput) -> List[Exception]:
        """
        Recursively delete every path in the input.

        Returns:
            Per-item errors; an empty list means every delete succeeded
        """
        pass

    @abstractmethod
    def walk(self, input: WalkInput, visitor: VisitFunction) -> List[Exception]:
        """
        Walk the store starting at a path, calling visitor for each entry.

        Returns:
            Visitor errors collected under ErrorPolicy.CONTINUE
        """
        pass
