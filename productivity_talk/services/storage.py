"""Object storage backends for uploaded media."""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO, Callable, Protocol

from minio import Minio
from minio.error import S3Error

from productivity_talk.core.config import settings
from productivity_talk.core.errors import NotFoundError, ServiceError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

PUBLIC_PREFIXES = ("videos/", "thumbnails/")
_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


class ObjectStorage(Protocol):
    """Minimal blob store used by the upload pipeline and enrichment."""

    def upload(
        self,
        key: str,
        path: str | os.PathLike[str],
        *,
        content_type: str,
        metadata: dict[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str: ...

    def download(self, key: str, destination: str | os.PathLike[str]) -> None: ...

    def exists(self, key: str) -> bool: ...


def video_key(video_id: str) -> str:
    """Storage key for a video's media file."""

    return f"videos/{video_id}.mp4"


def thumbnail_key(video_id: str) -> str:
    return f"thumbnails/{video_id}.jpg"


class ProgressReader:
    """File wrapper that reports bytes handed to the uploader."""

    def __init__(self, stream: BinaryIO, total: int, on_progress: ProgressCallback | None) -> None:
        self._stream = stream
        self._total = total
        self._on_progress = on_progress
        self.sent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self.sent += len(chunk)
        if self._on_progress is not None and chunk:
            self._on_progress(self.sent, self._total)
        return chunk


def _public_read_policy(bucket: str) -> str:
    statement = {
        "Effect": "Allow",
        "Principal": {"AWS": ["*"]},
        "Action": ["s3:GetObject"],
        "Resource": [f"arn:aws:s3:::{bucket}/{prefix}*" for prefix in PUBLIC_PREFIXES],
    }
    return json.dumps({"Version": "2012-10-17", "Statement": [statement]})


class MinioObjectStorage:
    """MinIO/S3 bucket holding video files and thumbnails.

    Objects under ``videos/`` and ``thumbnails/`` are readable anonymously so
    the URLs returned by :meth:`upload` can be stored on the video record.
    Owner metadata travels as ``x-amz-meta-*`` headers and is never exposed
    through those URLs.
    """

    def __init__(self, client: Minio, bucket: str, public_base_url: str) -> None:
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def ensure_bucket(self) -> None:
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info("Created storage bucket", extra={"bucket": self.bucket})
            self.client.set_bucket_policy(self.bucket, _public_read_policy(self.bucket))
        except S3Error as exc:
            logger.error("Failed to prepare bucket", extra={"bucket": self.bucket, "error": str(exc)})

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{key}"

    def upload(
        self,
        key: str,
        path: str | os.PathLike[str],
        *,
        content_type: str,
        metadata: dict[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        source = Path(path)
        total = source.stat().st_size
        with source.open("rb") as stream:
            reader = ProgressReader(stream, total, on_progress)
            try:
                self.client.put_object(
                    self.bucket,
                    key,
                    reader,
                    length=total,
                    content_type=content_type,
                    metadata=dict(metadata or {}),
                )
            except S3Error as exc:
                logger.error("Failed to upload object", extra={"key": key, "error": str(exc)})
                raise ServiceError(f"Storage upload failed: {exc.code}") from exc
        if on_progress is not None and total == 0:
            on_progress(0, 0)

        logger.info("Stored object", extra={"key": key, "size": total})
        return self.url_for(key)

    def download(self, key: str, destination: str | os.PathLike[str]) -> None:
        try:
            self.client.fget_object(self.bucket, key, str(destination))
        except S3Error as exc:
            if exc.code in _MISSING_CODES:
                raise NotFoundError(f"Object not found: {key}") from exc
            logger.error("Failed to download object", extra={"key": key, "error": str(exc)})
            raise ServiceError(f"Storage download failed: {exc.code}") from exc

    def exists(self, key: str) -> bool:
        try:
            self.client.stat_object(self.bucket, key)
        except S3Error as exc:
            if exc.code in _MISSING_CODES:
                return False
            raise ServiceError(f"Storage lookup failed: {exc.code}") from exc
        return True


def create_minio_client() -> Minio:
    endpoint = settings.minio_endpoint.replace("http://", "").replace("https://", "")
    return Minio(
        endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
    )


@lru_cache
def get_storage() -> MinioObjectStorage:
    """Return the configured storage backend, creating its bucket on first use."""

    storage = MinioObjectStorage(create_minio_client(), settings.minio_bucket, settings.minio_public_url)
    storage.ensure_bucket()
    logger.info(
        "MinIO storage initialized",
        extra={"endpoint": settings.minio_endpoint, "bucket": settings.minio_bucket},
    )
    return storage


__all__ = [
    "MinioObjectStorage",
    "ObjectStorage",
    "ProgressCallback",
    "ProgressReader",
    "create_minio_client",
    "get_storage",
    "thumbnail_key",
    "video_key",
]
