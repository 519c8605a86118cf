"""Configuration models and loaders."""

from filestore.core.config.models import (
    FileStoreConfig,
    LocalStoreConfig,
    S3StoreConfig,
    MinioStoreConfig,
    StoreConfig,
    StoreType,
    StaticCredentials,
    AttachedCredentials,
    RoleCredentials,
    RetryConfig,
)
from filestore.core.config.loader import load_config

__all__ = [
    "FileStoreConfig",
    "LocalStoreConfig",
    "S3StoreConfig",
    "MinioStoreConfig",
    "StoreConfig",
    "StoreType",
    "StaticCredentials",
    "AttachedCredentials",
    "RoleCredentials",
    "RetryConfig",
    "load_config",
]
