"""Configuration data models using Pydantic."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

DEFAULT_MAX_KEYS = 1000
DEFAULT_DELIMITER = "/"
DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
MAX_COPY_CHUNK_SIZE = 5 * 1024 * 1024
MAX_PUT_OBJECT_COPY_SIZE = 5000 * 1024 * 1024


class StoreType(str, Enum):
    """Storage backend types."""

    LOCAL = "local"
    S3 = "s3"
    MINIO = "minio"


class StaticCredentials(BaseModel):
    """Explicit access key credentials."""

    kind: Literal["static"] = "static"
    access_key_id: str = Field(..., description="Access key id")
    secret_access_key: str = Field(..., description="Secret access key")


class AttachedCredentials(BaseModel):
    """Credentials from the environment, optionally from a named profile."""

    kind: Literal["attached"] = "attached"
    profile: Optional[str] = Field(
        None, description="Shared config profile; default credential chain when unset"
    )


class RoleCredentials(BaseModel):
    """Assumed role credentials (not supported by the factory)."""

    kind: Literal["role"] = "role"
    arn: str = Field(..., description="Role ARN")


Credentials = Annotated[
    Union[StaticCredentials, AttachedCredentials, RoleCredentials],
    Field(discriminator="kind"),
]


class LocalStoreConfig(BaseModel):
    """Configuration for the local filesystem store."""

    type: Literal["local"] = StoreType.LOCAL.value
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE, gt=0, description="Multipart chunk size in bytes"
    )
    max_range_read_size: Optional[int] = Field(
        default=None, gt=0, description="Largest range read buffered in memory; unbounded when unset"
    )


class S3StoreConfig(BaseModel):
    """Configuration for an S3 compatible object store."""

    type: Literal["s3"] = StoreType.S3.value
    region: str = Field(..., description="Bucket region")
    bucket: str = Field(..., description="Bucket name")
    credentials: Credentials = Field(..., description="Credential source")
    delimiter: str = Field(default=DEFAULT_DELIMITER, description="Listing delimiter")
    max_keys: int = Field(default=DEFAULT_MAX_KEYS, gt=0, description="Listing page size")
    alt_endpoint: Optional[str] = Field(
        None, description="Static endpoint, addressed path style"
    )
    copy_chunk_size: int = Field(
        default=MAX_COPY_CHUNK_SIZE, gt=0, description="Part size for multipart copies"
    )
    copy_threshold: int = Field(
        default=MAX_PUT_OBJECT_COPY_SIZE,
        gt=0,
        description="Objects at or above this size are copied in parts",
    )


class MinioStoreConfig(S3StoreConfig):
    """Configuration for a MinIO server reached at a fixed host address."""

    type: Literal["minio"] = StoreType.MINIO.value
    host_address: str = Field(..., description="MinIO endpoint URL")

    @model_validator(mode="after")
    def check_static_credentials(self):
        if not isinstance(self.credentials, StaticCredentials):
            raise ValueError("Minio configuration requires static credentials")
        return self


StoreConfig = Annotated[
    Union[LocalStoreConfig, S3StoreConfig, MinioStoreConfig],
    Field(discriminator="type"),
]


class RetryConfig(BaseModel):
    """Settings for retrying transient failures."""

    max_attempts: int = Field(default=3, ge=0, description="Retries after the first call")
    max_backoff: float = Field(default=20.0, ge=0, description="Longest sleep in seconds")
    base: float = Field(default=2.0, gt=0, description="Exponential backoff base")


class FileStoreConfig(BaseModel):
    """Root configuration file."""

    store: StoreConfig = Field(..., description="Backend configuration")
    retry: RetryConfig = Field(default_factory=RetryConfig, description="Retry settings")
    signing_key: Optional[str] = Field(None, description="HMAC key for signed URLs")
