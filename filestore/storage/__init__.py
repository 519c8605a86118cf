"""Storage abstraction layer for local and object storage."""

from filestore.storage.base import FileStore
from filestore.storage.factory import create_file_store
from filestore.storage.local.filesystem import LocalFileStore
from filestore.storage.s3_store import S3FileStore

__all__ = ["FileStore", "LocalFileStore", "S3FileStore", "create_file_store"]
