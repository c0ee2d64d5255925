"""Blob storage for uploaded engagement documents.

S3BlobStorage wraps blocking boto3 calls in asyncio.to_thread() so the event
loop never blocks on network I/O. InMemoryBlobStorage backs local development
(no bucket configured) and tests.
"""

import asyncio
import re
import uuid
from typing import Protocol, runtime_checkable

import boto3
import structlog

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def document_key(engagement_id: str, filename: str) -> str:
    """Build the object key for an uploaded document."""
    safe_name = _UNSAFE_CHARS.sub("_", filename).strip("._") or "document"
    return f"engagements/{engagement_id}/{uuid.uuid4()}-{safe_name}"


@runtime_checkable
class BlobStorage(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    async def get(self, key: str) -> bytes: ...

    async def delete_many(self, keys: list[str]) -> None: ...


class S3BlobStorage:
    """S3-backed document storage."""

    def __init__(self, bucket: str, region: str = "us-east-1"):
        self._bucket = bucket
        self._region = region

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(self._put_s3, key, data, content_type)
        logger.info("blob_stored", key=key, size_bytes=len(data))

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._get_s3, key)

    async def delete_many(self, keys: list[str]) -> None:
        if keys:
            await asyncio.to_thread(self._delete_s3, keys)

    # ------------------------------------------------------------------
    # Private helpers (run inside asyncio.to_thread)
    # ------------------------------------------------------------------

    def _put_s3(self, key: str, body: bytes, content_type: str) -> None:
        s3 = boto3.client("s3", region_name=self._region)
        s3.put_object(Bucket=self._bucket, Key=key, Body=body, ContentType=content_type)

    def _get_s3(self, key: str) -> bytes:
        s3 = boto3.client("s3", region_name=self._region)
        response = s3.get_object(Bucket=self._bucket, Key=key)
        return response["Body"].read()

    def _delete_s3(self, keys: list[str]) -> None:
        s3 = boto3.client("s3", region_name=self._region)
        # delete_objects accepts at most 1000 keys per call
        for start in range(0, len(keys), 1000):
            chunk = keys[start : start + 1000]
            s3.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": key} for key in chunk]},
            )


class InMemoryBlobStorage:
    """Process-local blob store. Contents vanish on restart."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self.objects[key] = (data, content_type)

    async def get(self, key: str) -> bytes:
        try:
            return self.objects[key][0]
        except KeyError:
            raise FileNotFoundError(key) from None

    async def delete_many(self, keys: list[str]) -> None:
        for key in keys:
            self.objects.pop(key, None)
