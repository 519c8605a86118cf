"""Local filesystem store."""

from filestore.storage.local.filesystem import LocalFileStore

__all__ = ["LocalFileStore"]
