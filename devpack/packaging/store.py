"""Object store for uploaded artifacts.

`ObjectStore` is the interface the pipeline and the cleanup command
depend on. `S3ObjectStore` implements it for any S3-compatible endpoint
(AWS, R2, MinIO) with boto3; the blocking client calls run in worker
threads via `asyncio.to_thread`.

Objects are keyed by archive filename. The stored digest is the object's
ETag with its surrounding quotes stripped, which for a single-part upload
is the hex MD5 of the body.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from devpack.core.errors import StoreError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})


@dataclass(frozen=True)
class ObjectStat:
    key: str
    digest: str
    size: int = 0
    last_modified: Optional[datetime] = None


class ObjectStore(Protocol):
    bucket: str

    async def bucket_exists(self) -> bool:
        ...

    async def stat_object(self, key: str) -> Optional[ObjectStat]:
        ...

    async def put_object(self, key: str, path: Path, digest: str) -> None:
        ...

    async def presigned_url(self, key: str, ttl_seconds: int) -> str:
        ...

    async def list_objects(self, prefix: str = "") -> list[ObjectStat]:
        ...

    async def delete_object(self, key: str) -> None:
        ...


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _strip_etag(etag: str) -> str:
    return etag.strip('"')


class S3ObjectStore:
    """ObjectStore backed by a boto3 S3 client bound to one bucket."""

    def __init__(self, client: Any, bucket: str):
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_credentials(
        cls,
        endpoint: str,
        bucket: str,
        access_key: str,
        secret_key: str,
        region: str = "us-east-1",
    ) -> "S3ObjectStore":
        if not endpoint.startswith(("http://", "https://")):
            endpoint = f"https://{endpoint}"
        client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        return cls(client, bucket)

    async def bucket_exists(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise StoreError(f"Could not check bucket {self.bucket}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"Could not reach object store: {exc}") from exc
        return True

    async def stat_object(self, key: str) -> Optional[ObjectStat]:
        """Return the stored object's stat, or None when it is absent.

        Any other lookup error is logged and also treated as absent, so the
        caller falls through to an upload.
        """
        try:
            response = await asyncio.to_thread(
                self._client.head_object, Bucket=self.bucket, Key=key
            )
        except ClientError as exc:
            if _error_code(exc) not in _NOT_FOUND_CODES:
                logger.warning("Could not stat %s/%s: %s", self.bucket, key, exc)
            return None
        except BotoCoreError as exc:
            logger.warning("Could not stat %s/%s: %s", self.bucket, key, exc)
            return None

        return ObjectStat(
            key=key,
            digest=_strip_etag(response.get("ETag", "")),
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
        )

    async def put_object(self, key: str, path: Path, digest: str) -> None:
        content_md5 = base64.b64encode(bytes.fromhex(digest)).decode("ascii")

        def _put() -> None:
            with open(path, "rb") as body:
                self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType="application/gzip",
                    ContentMD5=content_md5,
                )

        try:
            await asyncio.to_thread(_put)
        except (ClientError, BotoCoreError, OSError) as exc:
            raise StoreError(f"Failed to upload {key} to {self.bucket}: {exc}") from exc
        logger.debug("Uploaded %s to %s", key, self.bucket)

    async def presigned_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"Failed to sign URL for {key}: {exc}") from exc

    async def list_objects(self, prefix: str = "") -> list[ObjectStat]:
        def _list() -> list[ObjectStat]:
            paginator = self._client.get_paginator("list_objects_v2")
            stats = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    stats.append(
                        ObjectStat(
                            key=obj["Key"],
                            digest=_strip_etag(obj.get("ETag", "")),
                            size=obj.get("Size", 0),
                            last_modified=obj.get("LastModified"),
                        )
                    )
            return stats

        try:
            return await asyncio.to_thread(_list)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"Failed to list {self.bucket}: {exc}") from exc

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"Failed to delete {key} from {self.bucket}: {exc}") from exc
