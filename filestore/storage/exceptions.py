"""Exception types raised by file store backends."""

from typing import Any, Dict, Optional


class FileStoreError(Exception):
    """Base class for all file store errors.

    Attributes:
        message: Human readable error message
        code: Short machine readable error code
        details: Extra context about the failure
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ObjectNotFoundError(FileStoreError):
    """Raised when a path does not exist in the store."""

    def __init__(self, path: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"File Not Found: {path}", code="NOT_FOUND", details=details)
        self.path = path


class InvalidInputError(FileStoreError):
    """Raised for malformed or incomplete operation input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="INVALID_INPUT", details=details)


class InvalidRangeError(InvalidInputError):
    """Raised when a range expression cannot be parsed."""

    def __init__(self, expression: str) -> None:
        super().__init__(
            f"Invalid range expression: {expression!r}",
            details={"range": expression},
        )
        self.expression = expression


class ConfigurationError(FileStoreError):
    """Raised when a store cannot be built from its configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details=details)


class TransientStorageError(FileStoreError):
    """Raised for throttling and network failures worth retrying."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="TRANSIENT", details=details)


class BatchDeleteError(FileStoreError):
    """A single key that failed inside a bulk delete."""

    def __init__(self, key: str, error_code: str, error_message: str) -> None:
        super().__init__(
            f"{key}: {error_code}: {error_message}",
            code="DELETE_ERROR",
            details={"key": key, "error_code": error_code},
        )
        self.key = key


class MultipartCopyError(FileStoreError):
    """Raised when a chunked server side copy fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="COPY_ERROR", details=details)


class UploadSessionError(FileStoreError):
    """Raised when a multipart upload session id is unknown or expired."""

    def __init__(self, upload_id: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Unknown upload session: {upload_id}",
            code="SESSION_ERROR",
            details={"upload_id": upload_id},
        )
        self.upload_id = upload_id


class IntegrityError(FileStoreError):
    """Raised when a completed upload does not match its expected hash."""

    def __init__(self, path: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {path}: expected {expected}, got {actual}",
            code="INTEGRITY_ERROR",
            details={"path": path, "expected": expected, "actual": actual},
        )


class OperationCancelledError(FileStoreError):
    """Raised when a long running operation is cancelled by the caller."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} cancelled", code="CANCELLED")
        self.operation = operation


__all__ = [
    "FileStoreError",
    "ObjectNotFoundError",
    "InvalidInputError",
    "InvalidRangeError",
    "ConfigurationError",
    "TransientStorageError",
    "BatchDeleteError",
    "MultipartCopyError",
    "UploadSessionError",
    "IntegrityError",
    "OperationCancelledError",
]
