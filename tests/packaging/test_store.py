"""Tests for the boto3-backed object store.

The boto3 client is a MagicMock; no requests leave the process.
"""

import base64
import hashlib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from devpack.core.errors import StoreError
from devpack.packaging.store import S3ObjectStore


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def object_store(s3) -> S3ObjectStore:
    return S3ObjectStore(s3, "artifacts")


class TestFromCredentials:
    def test_adds_https_scheme(self):
        with patch("devpack.packaging.store.boto3.client") as mock_client:
            store = S3ObjectStore.from_credentials("s3.example.com", "artifacts", "AKIA", "secret")
        kwargs = mock_client.call_args.kwargs
        assert kwargs["endpoint_url"] == "https://s3.example.com"
        assert kwargs["aws_access_key_id"] == "AKIA"
        assert kwargs["region_name"] == "us-east-1"
        assert store.bucket == "artifacts"

    def test_keeps_explicit_scheme(self):
        with patch("devpack.packaging.store.boto3.client") as mock_client:
            S3ObjectStore.from_credentials("http://localhost:9000", "b", "a", "s", region="eu-west-1")
        assert mock_client.call_args.kwargs["endpoint_url"] == "http://localhost:9000"


class TestBucketExists:
    @pytest.mark.asyncio
    async def test_exists(self, object_store, s3):
        assert await object_store.bucket_exists() is True
        s3.head_bucket.assert_called_once_with(Bucket="artifacts")

    @pytest.mark.asyncio
    async def test_missing(self, object_store, s3):
        s3.head_bucket.side_effect = _client_error("404", "HeadBucket")
        assert await object_store.bucket_exists() is False

    @pytest.mark.asyncio
    async def test_access_denied_raises(self, object_store, s3):
        s3.head_bucket.side_effect = _client_error("403", "HeadBucket")
        with pytest.raises(StoreError):
            await object_store.bucket_exists()

    @pytest.mark.asyncio
    async def test_unreachable_raises(self, object_store, s3):
        s3.head_bucket.side_effect = EndpointConnectionError(endpoint_url="https://s3.example.com")
        with pytest.raises(StoreError, match="reach"):
            await object_store.bucket_exists()


class TestStatObject:
    @pytest.mark.asyncio
    async def test_strips_etag_quotes(self, object_store, s3):
        s3.head_object.return_value = {"ETag": '"abc123"', "ContentLength": 7}
        stat = await object_store.stat_object("pkg-1.0.0.tgz")
        assert stat.digest == "abc123"
        assert stat.size == 7
        s3.head_object.assert_called_once_with(Bucket="artifacts", Key="pkg-1.0.0.tgz")

    @pytest.mark.asyncio
    async def test_absent_object(self, object_store, s3):
        s3.head_object.side_effect = _client_error("404")
        assert await object_store.stat_object("pkg-1.0.0.tgz") is None

    @pytest.mark.asyncio
    async def test_other_errors_are_treated_as_absent(self, object_store, s3):
        s3.head_object.side_effect = _client_error("500")
        assert await object_store.stat_object("pkg-1.0.0.tgz") is None


class TestPutObject:
    @pytest.mark.asyncio
    async def test_uploads_with_content_md5(self, object_store, s3, tmp_path):
        path = tmp_path / "pkg-1.0.0.tgz"
        path.write_bytes(b"tarball")
        digest = hashlib.md5(b"tarball").hexdigest()

        await object_store.put_object("pkg-1.0.0.tgz", path, digest)

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "artifacts"
        assert kwargs["Key"] == "pkg-1.0.0.tgz"
        assert kwargs["ContentMD5"] == base64.b64encode(hashlib.md5(b"tarball").digest()).decode()

    @pytest.mark.asyncio
    async def test_failure_raises_store_error(self, object_store, s3, tmp_path):
        path = tmp_path / "pkg-1.0.0.tgz"
        path.write_bytes(b"tarball")
        s3.put_object.side_effect = _client_error("SlowDown", "PutObject")
        with pytest.raises(StoreError, match="Failed to upload"):
            await object_store.put_object("pkg-1.0.0.tgz", path, hashlib.md5(b"tarball").hexdigest())


class TestPresignedUrl:
    @pytest.mark.asyncio
    async def test_signs_get_object(self, object_store, s3):
        s3.generate_presigned_url.return_value = "https://signed"
        assert await object_store.presigned_url("pkg-1.0.0.tgz", 86400) == "https://signed"
        s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "artifacts", "Key": "pkg-1.0.0.tgz"},
            ExpiresIn=86400,
        )


class TestListAndDelete:
    @pytest.mark.asyncio
    async def test_lists_all_pages(self, object_store, s3):
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "a.tgz", "ETag": '"1"', "Size": 1, "LastModified": modified}]},
            {"Contents": [{"Key": "b.tgz", "ETag": '"2"', "Size": 2, "LastModified": modified}]},
            {},
        ]
        s3.get_paginator.return_value = paginator

        stats = await object_store.list_objects()

        assert [s.key for s in stats] == ["a.tgz", "b.tgz"]
        assert stats[1].digest == "2"
        assert stats[0].last_modified == modified
        s3.get_paginator.assert_called_once_with("list_objects_v2")

    @pytest.mark.asyncio
    async def test_delete(self, object_store, s3):
        await object_store.delete_object("a.tgz")
        s3.delete_object.assert_called_once_with(Bucket="artifacts", Key="a.tgz")

    @pytest.mark.asyncio
    async def test_delete_failure(self, object_store, s3):
        s3.delete_object.side_effect = _client_error("AccessDenied", "DeleteObject")
        with pytest.raises(StoreError):
            await object_store.delete_object("a.tgz")
