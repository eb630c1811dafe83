"""Fixtures for drive tests backed by a mocked S3 bucket."""

import boto3
import pytest
from django.conf import settings
from django.core.files.base import ContentFile
from moto import mock_aws


@pytest.fixture
def bucket_name():
    """Name of the bucket configured for the default storage.

    Returns:
        Bucket name from settings.
    """
    return settings.STORAGES['default']['OPTIONS']['bucket_name']


@pytest.fixture
def mock_s3(bucket_name):
    """Mock S3 service with the drive bucket.

    Yields:
        boto3 S3 resource with the drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=bucket_name)
        yield conn


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')
