"""Upload intake: placeholder record first, then the media transfer."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import secrets
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from productivity_talk.core.config import settings
from productivity_talk.core.errors import NotFoundError, ServiceError, UploadError, UploadTooLargeError
from productivity_talk.db.models import AppUser, ProcessingStatus, Video
from productivity_talk.db.session import SessionLocal
from productivity_talk.services.lifecycle import advance_status
from productivity_talk.services.media import MediaTools, get_media_tools
from productivity_talk.services.storage import ObjectStorage, get_storage, thumbnail_key, video_key

logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9-]+")
_MAX_STEM_LENGTH = 48

ProgressHandler = Callable[[float], None]


@dataclass(slots=True)
class UploadTicket:
    """An accepted upload whose placeholder record is already committed."""

    video_id: str
    owner_id: str
    file_path: str
    size_bytes: int


@dataclass(slots=True)
class UploadResult:
    video_id: str
    video_url: str


class UploadProgressRegistry:
    """Last reported upload fraction per video id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._progress: dict[str, float] = {}

    def update(self, video_id: str, fraction: float) -> None:
        with self._lock:
            self._progress[video_id] = fraction

    def get(self, video_id: str) -> float | None:
        with self._lock:
            return self._progress.get(video_id)

    def discard(self, video_id: str) -> None:
        with self._lock:
            self._progress.pop(video_id, None)


upload_progress = UploadProgressRegistry()


def sanitize_filename(filename: str) -> str:
    """Reduce a filename to a storage-safe stem."""

    stem = Path(filename).stem
    cleaned = _UNSAFE_RE.sub("_", stem).strip("_")[:_MAX_STEM_LENGTH].strip("_")
    return cleaned or "video"


def generate_video_id(filename: str, *, now: float | None = None) -> str:
    """Return ``{sanitizedFilename}_{unixTimestamp}_{8-hex}``."""

    timestamp = int(now if now is not None else time.time())
    return f"{sanitize_filename(filename)}_{timestamp}_{secrets.token_hex(4)}"


def _check_source(file_path: str) -> int:
    path = Path(file_path)
    if not path.is_file():
        raise UploadError(f"File not found: {file_path}")
    if not os.access(path, os.R_OK):
        raise UploadError(f"File is not readable: {file_path}")

    size = path.stat().st_size
    if size > settings.upload_max_bytes:
        raise UploadTooLargeError(
            f"File is {size} bytes; uploads are limited to {settings.upload_max_bytes} bytes"
        )
    return size


class UploadPipeline:
    """Coordinates the metadata store and object storage for one upload."""

    def __init__(
        self,
        *,
        storage: ObjectStorage | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        progress: UploadProgressRegistry | None = None,
        media: MediaTools | None = None,
    ) -> None:
        self._storage = storage or get_storage()
        self._session_factory = session_factory or SessionLocal
        self._progress = progress or upload_progress
        self._media = media or get_media_tools()

    async def begin(
        self,
        session: AsyncSession,
        *,
        owner: AppUser,
        file_path: str,
        filename: str | None = None,
    ) -> UploadTicket:
        """Validate the source and commit an ``uploading`` placeholder record."""

        size = _check_source(file_path)
        video_id = generate_video_id(filename or os.path.basename(file_path))

        video = Video(
            id=video_id,
            owner_id=owner.id,
            owner_username=owner.username,
            title="Processing...",
            description="Processing...",
            tags=[],
            processing_status=ProcessingStatus.UPLOADING.value,
        )
        session.add(video)
        await session.commit()

        self._progress.update(video_id, 0.0)
        logger.info(
            "Created placeholder video record",
            extra={"video_id": video_id, "user_id": owner.id, "size_bytes": size},
        )
        return UploadTicket(video_id=video_id, owner_id=owner.id, file_path=file_path, size_bytes=size)

    async def transfer(self, ticket: UploadTicket, on_progress: ProgressHandler | None = None) -> str:
        """Stream the file to storage and record the resulting URL.

        Storage reports progress from a worker thread. The registry is updated
        there under its lock, and ``on_progress`` is scheduled on the event
        loop with ``call_soon_threadsafe``.
        A thumbnail is extracted from the local file and uploaded next to the
        video; failing to produce one leaves ``thumbnail_url`` empty.
        """

        loop = asyncio.get_running_loop()
        last_percent = -1

        def _relay(written: int, total: int) -> None:
            nonlocal last_percent
            percent = 100 if total <= 0 else int(100 * written / total)
            if percent == last_percent:
                return
            last_percent = percent
            fraction = percent / 100
            self._progress.update(ticket.video_id, fraction)
            if on_progress is not None:
                loop.call_soon_threadsafe(on_progress, fraction)

        try:
            url = await asyncio.to_thread(
                self._storage.upload,
                video_key(ticket.video_id),
                ticket.file_path,
                content_type="video/mp4",
                metadata={"ownerId": ticket.owner_id},
                on_progress=_relay,
            )
            thumbnail_url = await self._store_thumbnail(ticket)

            async with self._session_factory() as session:
                video = await session.get(Video, ticket.video_id)
                if video is None:
                    raise NotFoundError(f"Video {ticket.video_id} disappeared during upload")
                video.video_url = url
                if thumbnail_url:
                    video.thumbnail_url = thumbnail_url
                advance_status(video, ProcessingStatus.TRANSCRIBING)
                video.retry_count = 0
                video.next_retry_at = datetime.now(timezone.utc)
                await session.commit()
        except Exception as exc:
            logger.exception("Upload failed", extra={"video_id": ticket.video_id})
            await self._mark_failed(ticket.video_id, exc)
            raise

        self._progress.discard(ticket.video_id)
        logger.info("Upload completed", extra={"video_id": ticket.video_id, "url": url})
        return url

    async def _store_thumbnail(self, ticket: UploadTicket) -> str | None:
        with tempfile.TemporaryDirectory(prefix="thumb-") as workdir:
            image_path = Path(workdir) / f"{ticket.video_id}.jpg"
            try:
                await self._media.extract_thumbnail(Path(ticket.file_path), image_path)
                return await asyncio.to_thread(
                    self._storage.upload,
                    thumbnail_key(ticket.video_id),
                    image_path,
                    content_type="image/jpeg",
                    metadata={"ownerId": ticket.owner_id},
                )
            except (ServiceError, OSError) as exc:
                logger.warning(
                    "Thumbnail generation failed", extra={"video_id": ticket.video_id, "error": str(exc)}
                )
                return None

    async def upload(
        self,
        session: AsyncSession,
        *,
        owner: AppUser,
        file_path: str,
        filename: str | None = None,
        on_progress: ProgressHandler | None = None,
    ) -> UploadResult:
        ticket = await self.begin(session, owner=owner, file_path=file_path, filename=filename)
        url = await self.transfer(ticket, on_progress=on_progress)
        return UploadResult(video_id=ticket.video_id, video_url=url)

    async def _mark_failed(self, video_id: str, error: Exception) -> None:
        """Best-effort error status write; never raises."""

        self._progress.discard(video_id)
        try:
            async with self._session_factory() as session:
                video = await session.get(Video, video_id)
                if video is None:
                    return
                advance_status(video, ProcessingStatus.ERROR, error=str(error) or type(error).__name__)
                await session.commit()
        except Exception:
            logger.exception("Failed to record upload error status", extra={"video_id": video_id})


__all__ = [
    "UploadPipeline",
    "UploadProgressRegistry",
    "UploadResult",
    "UploadTicket",
    "generate_video_id",
    "sanitize_filename",
    "upload_progress",
]
