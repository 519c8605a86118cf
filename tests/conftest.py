"""Shared fixtures."""

import tempfile
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from filestore.core.config.models import AttachedCredentials, S3StoreConfig
from filestore.storage.local.filesystem import LocalFileStore
from filestore.storage.s3_store import S3FileStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_store():
    return LocalFileStore()


@pytest.fixture
def s3_mock():
    """Create mock S3 environment."""
    with mock_aws():
        s3_client = boto3.client('s3', region_name='us-east-1')
        s3_client.create_bucket(Bucket='test-bucket')
        yield s3_client


@pytest.fixture
def s3_config():
    return S3StoreConfig(
        region='us-east-1',
        bucket='test-bucket',
        credentials=AttachedCredentials(),
    )


@pytest.fixture
def s3_store(s3_mock, s3_config):
    return S3FileStore(s3_config, s3_mock)
