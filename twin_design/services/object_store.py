"""Object storage access for design jobs (Cloudflare R2 or any S3-compatible store).

Keys are laid out as ``<container>/<directory>/<filename>`` where the
container is the lower-cased twin id.
"""
from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from typing import Optional, Protocol, runtime_checkable

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from twin_design.config import StorageConfig, get_settings
from twin_design.errors import AssetNotFound
from twin_design.models import SourceAsset

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NotFound", "404"}
_MIME_BY_EXT = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
}


def join_storage_path(*parts: str | None) -> str:
    """Join key segments with single slashes, ignoring empty segments."""

    cleaned = [p.strip().strip("/") for p in parts if p and p.strip().strip("/")]
    return re.sub(r"/{2,}", "/", "/".join(cleaned))


def container_name(twin_id: str) -> str:
    return (twin_id or "").strip().lower()


def content_type_for(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return _MIME_BY_EXT.get(ext.lower(), "image/png")


@runtime_checkable
class ObjectStore(Protocol):
    def download(self, path: str) -> Optional[bytes]: ...

    def upload(
        self,
        filesystem: str,
        directory: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> bool: ...

    def generate_time_limited_url(self, path: str, duration: int) -> str: ...


class R2ObjectStore:
    """boto3-backed store; one instance is safe to share between jobs."""

    def __init__(self, client: BaseClient, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, config: StorageConfig) -> "R2ObjectStore":
        if not config.is_configured:
            raise RuntimeError("R2 storage is not configured")
        client = _session().client(
            "s3",
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
        )
        return cls(client, config.bucket or "")

    def download(self, path: str) -> Optional[bytes]:
        key = join_storage_path(path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return None
            raise RuntimeError(f"Failed to fetch object {key}") from exc
        except BotoCoreError as exc:
            raise RuntimeError(f"Failed to fetch object {key}") from exc

        body = response.get("Body")
        if body is None:
            return None
        return body.read()

    def upload(
        self,
        filesystem: str,
        directory: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> bool:
        key = join_storage_path(filesystem, directory, filename)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.warning("R2 put failed: bucket=%s key=%s err=%s", self.bucket, key, exc)
            return False
        return True

    def generate_time_limited_url(self, path: str, duration: int) -> str:
        key = join_storage_path(path)
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=max(int(duration), 60),
                HttpMethod="GET",
            )
        except (ClientError, BotoCoreError) as exc:
            raise RuntimeError(f"Failed to generate download URL for {key}") from exc


@lru_cache(maxsize=1)
def _session() -> boto3.session.Session:
    return boto3.session.Session()


@lru_cache(maxsize=1)
def get_object_store() -> R2ObjectStore:
    """Return the process-wide store built from environment settings."""

    return R2ObjectStore.from_config(get_settings().storage)


def fetch_source_asset(
    store: ObjectStore, container: str, directory: str | None, filename: str
) -> SourceAsset:
    """Load the source image, failing with :class:`AssetNotFound` when absent or empty."""

    path = join_storage_path(container_name(container), directory, filename)
    logger.info("Downloading source image", extra={"path": path})
    data = store.download(path)
    if not data:
        logger.error("File not found or empty in storage: %s", path)
        raise AssetNotFound(path)

    logger.info("Source image downloaded", extra={"path": path, "bytes": len(data)})
    return SourceAsset(
        path=path,
        filename=filename,
        data=bytes(data),
        content_type=content_type_for(filename),
    )
