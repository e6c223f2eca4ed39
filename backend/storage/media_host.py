# storage/media_host.py
# ============================================================================
# ASTA EDUCATION BACKEND - MEDIA HOST
# ============================================================================
# Learning-content bytes live on an external S3-compatible host; the record
# store only keeps the URL and storage key. boto3 calls are blocking and run
# in a worker thread.
# ============================================================================

import asyncio
import re
import time
import urllib.parse
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import boto3
import structlog
from botocore.config import Config

from config import settings
from pipeline.errors import MediaHostError

logger = structlog.get_logger().bind(component="media_host")


@dataclass
class StoredAsset:
    storage_key: str
    url: str
    size: int


def _safe_name(filename: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", filename or "upload").strip("._")
    return name or "upload"


class IMediaHost(ABC):

    @abstractmethod
    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredAsset:
        pass

    @abstractmethod
    async def delete(self, storage_key: str) -> None:
        pass


class S3MediaHost(IMediaHost):
    """S3-compatible media host (AWS, Wasabi, R2, MinIO)."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or settings.MEDIA_BUCKET
        self.endpoint_url = endpoint_url or settings.MEDIA_ENDPOINT_URL
        self.region = region or settings.MEDIA_REGION
        self.access_key = access_key or settings.MEDIA_ACCESS_KEY_ID
        self.secret_key = secret_key or settings.MEDIA_SECRET_ACCESS_KEY
        self.public_base_url = public_base_url or settings.MEDIA_PUBLIC_BASE_URL
        self.key_prefix = key_prefix if key_prefix is not None else settings.MEDIA_KEY_PREFIX
        self._client = client

    def get_s3_client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                region_name=self.region,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                config=Config(s3={"addressing_style": "virtual"}),
            )
        return self._client

    def build_key(self, filename: str) -> str:
        stamp = int(time.time() * 1000)
        name = f"{stamp}_{_safe_name(filename)}"
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def public_url(self, key: str) -> str:
        quoted = urllib.parse.quote(key)
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quoted}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredAsset:
        key = self.build_key(filename)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.get_s3_client().put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type or "application/octet-stream",
                ),
            )
        except Exception as e:
            logger.error("media_upload_failed", key=key, error=str(e))
            raise MediaHostError(f"upload failed: {e}", cause=e) from e

        logger.info("media_uploaded", key=key, size=len(data))
        return StoredAsset(storage_key=key, url=self.public_url(key), size=len(data))

    async def delete(self, storage_key: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.get_s3_client().delete_object(Bucket=self.bucket, Key=storage_key),
            )
        except Exception as e:
            raise MediaHostError(f"delete failed: {e}", cause=e) from e
        logger.info("media_deleted", key=storage_key)


class InMemoryMediaHost(IMediaHost):
    """Keeps uploaded bytes in a dict. fail_uploads/fail_deletes force errors."""

    def __init__(self, base_url: str = "https://media.test", fail_uploads: bool = False, fail_deletes: bool = False):
        self.base_url = base_url
        self.fail_uploads = fail_uploads
        self.fail_deletes = fail_deletes
        self.objects: Dict[str, bytes] = {}
        self._counter = 0

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredAsset:
        if self.fail_uploads:
            raise MediaHostError("upload failed")
        self._counter += 1
        key = f"lms/{self._counter}_{_safe_name(filename)}"
        self.objects[key] = data
        return StoredAsset(storage_key=key, url=f"{self.base_url}/{key}", size=len(data))

    async def delete(self, storage_key: str) -> None:
        if self.fail_deletes:
            raise MediaHostError("delete failed")
        self.objects.pop(storage_key, None)
