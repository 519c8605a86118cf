"""Factory for creating file stores from configuration."""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

from filestore.core.config.models import (
    AttachedCredentials,
    LocalStoreConfig,
    MinioStoreConfig,
    RoleCredentials,
    S3StoreConfig,
    StaticCredentials,
    StoreConfig,
)
from filestore.storage.base import FileStore
from filestore.storage.exceptions import ConfigurationError
from filestore.storage.local.filesystem import LocalFileStore
from filestore.storage.s3_store import S3FileStore

logger = logging.getLogger(__name__)


def _create_session(config: S3StoreConfig) -> boto3.session.Session:
    creds = config.credentials
    if isinstance(creds, StaticCredentials):
        return boto3.session.Session(
            aws_access_key_id=creds.access_key_id,
            aws_secret_access_key=creds.secret_access_key,
            region_name=config.region,
        )
    if isinstance(creds, AttachedCredentials):
        return boto3.session.Session(profile_name=creds.profile, region_name=config.region)
    if isinstance(creds, RoleCredentials):
        raise ConfigurationError(
            "Assumed roles are not supported", details={"arn": creds.arn}
        )
    raise ConfigurationError(f"Unsupported credential type: {type(creds).__name__}")


def create_s3_client(config: S3StoreConfig) -> Any:
    """
    Build a boto3 S3 client for an S3 or MinIO configuration.

    Alternate endpoints and MinIO hosts are addressed path style.

    Raises:
        ConfigurationError: If the credentials cannot be used
    """
    session = _create_session(config)
    endpoint = None
    if isinstance(config, MinioStoreConfig):
        endpoint = config.host_address
    elif config.alt_endpoint:
        endpoint = config.alt_endpoint

    if endpoint is None:
        return session.client("s3")
    logger.info(f"Using S3 endpoint {endpoint} with path style addressing")
    return session.client(
        "s3",
        endpoint_url=endpoint,
        config=BotoConfig(s3={"addressing_style": "path"}),
    )


def create_file_store(config: StoreConfig, client: Optional[Any] = None) -> FileStore:
    """
    Create a file store for the given backend configuration.

    Args:
        config: Local, S3 or MinIO store configuration
        client: Pre-built S3 client, used instead of building one from config

    Returns:
        Configured FileStore instance

    Raises:
        ConfigurationError: If the configuration is not supported
    """
    if isinstance(config, LocalStoreConfig):
        return LocalFileStore(config)
    elif isinstance(config, S3StoreConfig):
        return S3FileStore(config, client if client is not None else create_s3_client(config))
    else:
        raise ConfigurationError(f"Unsupported store type: {getattr(config, 'type', config)}")
