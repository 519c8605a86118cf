"""Core configuration."""

from filestore.core.config import FileStoreConfig, StoreConfig, load_config

__all__ = ["FileStoreConfig", "StoreConfig", "load_config"]
