"""Background worker that transcribes uploaded videos and generates their metadata."""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.config import settings
from productivity_talk.core.errors import NotFoundError, ServiceError, UploadError, UploadTooLargeError
from productivity_talk.db.models import ProcessingStatus, SecondBrainEntry, Video
from productivity_talk.db.session import SessionLocal
from productivity_talk.services.lifecycle import advance_status
from productivity_talk.services.media import MediaTools, get_media_tools
from productivity_talk.services.openai_client import LanguageModel, get_openai_client
from productivity_talk.services.storage import ObjectStorage, get_storage, video_key

logger = logging.getLogger(__name__)

MAX_TAGS = 20

QUOTES_PROMPT = (
    "Extract 2-3 insightful quotes from the following video transcript for a second brain. "
    "Format each quote on a new line starting with a dash (-). Keep them brief and meaningful.\n"
    'Transcript:\n"{transcript}"'
)
TITLE_PROMPT = (
    "Based on the following transcript, generate an engaging and catchy title "
    "(max 60 characters):\n\n{transcript}"
)
DESCRIPTION_PROMPT = (
    "Based on the following transcript, generate a concise and engaging video description "
    "(max 200 characters):\n\n{transcript}"
)
TAGS_PROMPT = (
    "Read this transcript and produce 20 relevant category tags (comma-separated) "
    "that best capture the main topics or themes:\n\n{transcript}"
)

_TAG_SPLIT_RE = re.compile(r"[,\n]")
_QUOTE_CHARS = "\"'“”‘’"


class QuoteGenerationError(ServiceError):
    """Raised when the quote extraction step fails."""


@dataclass(slots=True)
class GeneratedMetadata:
    title: str
    description: str
    tags: list[str]


def clean_generated_line(text: str) -> str:
    return text.strip().strip(_QUOTE_CHARS).strip()


def parse_quotes(text: str) -> list[str]:
    """Keep dash-prefixed lines from a model reply, without the dash."""

    quotes: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("-"):
            continue
        quote = clean_generated_line(stripped[1:])
        if quote:
            quotes.append(quote)
    return quotes


def parse_tags(text: str, *, limit: int = MAX_TAGS) -> list[str]:
    """Split a comma-separated tag reply, dropping blanks and case-insensitive repeats."""

    tags: list[str] = []
    seen: set[str] = set()
    for raw in _TAG_SPLIT_RE.split(text):
        tag = clean_generated_line(raw.strip().lstrip("-#").strip())
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


def compute_backoff(base_minutes: int, retry_count: int) -> timedelta:
    """Return exponential backoff delay for the given retry count."""

    base_minutes = max(base_minutes, 1)
    exponent = max(retry_count - 1, 0)
    return timedelta(minutes=base_minutes * (2**exponent))


async def transcribe_video(
    video: Video,
    *,
    client: LanguageModel,
    storage: ObjectStorage,
    media: MediaTools | None = None,
) -> str:
    """Fetch the stored video, extract its mp3 audio track and run that through speech-to-text.

    The transcription size ceiling applies to the extracted audio, not the video.
    """

    media = media or get_media_tools()
    with tempfile.TemporaryDirectory(prefix="enrich-") as workdir:
        video_path = Path(workdir) / f"{video.id}.mp4"
        audio_path = Path(workdir) / f"{video.id}.mp3"
        await asyncio.to_thread(storage.download, video_key(video.id), video_path)
        await media.extract_audio(video_path, audio_path)

        size = audio_path.stat().st_size
        if size > settings.transcription_max_bytes:
            limit_mb = settings.transcription_max_bytes // (1024 * 1024)
            raise UploadTooLargeError(f"Audio file too large (max {limit_mb}MB)")

        transcript = await client.transcribe(audio_path)

    if not transcript:
        raise ServiceError("Transcription returned no text")
    return transcript


async def generate_quotes(transcript: str, *, client: LanguageModel) -> list[str]:
    try:
        reply = await client.complete(QUOTES_PROMPT.format(transcript=transcript), temperature=0.5, max_tokens=150)
    except ServiceError as exc:
        raise QuoteGenerationError(f"Failed to generate quotes: {exc}") from exc
    return parse_quotes(reply)


async def generate_metadata(transcript: str, *, client: LanguageModel) -> GeneratedMetadata:
    title, description, tags = await asyncio.gather(
        client.complete(TITLE_PROMPT.format(transcript=transcript), temperature=0.7, max_tokens=60),
        client.complete(DESCRIPTION_PROMPT.format(transcript=transcript), temperature=0.7, max_tokens=200),
        client.complete(TAGS_PROMPT.format(transcript=transcript), temperature=0.7, max_tokens=200),
    )
    return GeneratedMetadata(
        title=clean_generated_line(title),
        description=clean_generated_line(description),
        tags=parse_tags(tags),
    )


def _apply_metadata(video: Video, metadata: GeneratedMetadata) -> None:
    if metadata.title:
        video.auto_title = metadata.title
        video.title = metadata.title
    if metadata.description:
        video.auto_description = metadata.description
        video.description = metadata.description
    video.auto_tags = metadata.tags
    video.tags = metadata.tags


def _apply_ready(video: Video) -> None:
    advance_status(video, ProcessingStatus.READY)
    video.processing_error = None
    video.retry_count = 0
    video.next_retry_at = None


def _apply_retry(video: Video, error: Exception, *, now: datetime, base_minutes: int, max_retry: int) -> None:
    video.retry_count = (video.retry_count or 0) + 1
    video.processing_error = str(error)

    if video.retry_count >= max_retry:
        advance_status(video, ProcessingStatus.ERROR, error=str(error))
        return

    video.next_retry_at = now + compute_backoff(base_minutes, video.retry_count)


def _apply_permanent_failure(video: Video, error: Exception) -> None:
    video.retry_count = (video.retry_count or 0) + 1
    advance_status(video, ProcessingStatus.ERROR, error=str(error))


async def propagate_to_second_brain(session: AsyncSession, video: Video) -> None:
    """Refresh denormalised copies held in users' second brains."""

    result = await session.execute(
        update(SecondBrainEntry)
        .where(SecondBrainEntry.video_id == video.id)
        .values(
            quotes=list(video.quotes or []),
            transcript=video.transcript or "",
            video_title=video.title,
            updated_at=datetime.now(timezone.utc),
        )
    )
    if result.rowcount:
        logger.info("Updated second brain entries", extra={"video_id": video.id, "count": result.rowcount})


async def enrich_video(
    session: AsyncSession,
    video: Video,
    *,
    client: LanguageModel,
    storage: ObjectStorage,
    media: MediaTools | None = None,
) -> None:
    """Run transcription and analysis for a single uploaded video."""

    if not video.transcript:
        advance_status(video, ProcessingStatus.TRANSCRIBING)
        video.transcript = await transcribe_video(video, client=client, storage=storage, media=media)
        await session.flush()
        logger.info("Transcription completed", extra={"video_id": video.id, "length": len(video.transcript)})

    advance_status(video, ProcessingStatus.ANALYZING)
    video.quotes = await generate_quotes(video.transcript, client=client)

    try:
        metadata = await generate_metadata(video.transcript, client=client)
        _apply_metadata(video, metadata)
    except ServiceError:
        logger.exception("Metadata generation failed; continuing with ready status", extra={"video_id": video.id})

    _apply_ready(video)
    await propagate_to_second_brain(session, video)


async def process_pending_enrichments(
    session: AsyncSession,
    *,
    client: LanguageModel,
    storage: ObjectStorage,
    media: MediaTools | None = None,
    batch_size: int = 5,
) -> list[Video]:
    """Enrich uploaded videos that are due and return the rows touched."""

    now = datetime.now(timezone.utc)
    stmt = (
        select(Video)
        .where(
            Video.processing_status.in_(
                [ProcessingStatus.TRANSCRIBING.value, ProcessingStatus.ANALYZING.value]
            ),
            or_(Video.next_retry_at.is_(None), Video.next_retry_at <= now),
        )
        .order_by(Video.next_retry_at, Video.created_at)
        .limit(batch_size)
    )
    videos = list((await session.execute(stmt)).scalars())
    if not videos:
        return []

    for video in videos:
        try:
            await enrich_video(session, video, client=client, storage=storage, media=media)
        except (UploadError, NotFoundError) as exc:
            logger.warning("Video cannot be enriched", extra={"video_id": video.id, "error": str(exc)})
            _apply_permanent_failure(video, exc)
        except Exception as exc:
            logger.exception(
                "Enrichment failed; scheduling retry",
                extra={"video_id": video.id, "retry_count": (video.retry_count or 0) + 1},
            )
            _apply_retry(
                video,
                exc,
                now=now,
                base_minutes=settings.enrichment_backoff_minutes,
                max_retry=settings.enrichment_max_retry,
            )

    await session.flush()
    return videos


class EnrichmentWorker:
    """Background loop that continuously enriches uploaded videos."""

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def _run(self) -> None:
        idle_sleep = 30
        active_sleep = 3

        if not settings.openai_api_key:
            logger.warning("No OpenAI API key configured; enrichment worker is idle")
            return

        client = get_openai_client()
        storage = get_storage()
        media = get_media_tools()

        while not self._stop_event.is_set():
            try:
                async with SessionLocal() as session:
                    videos = await process_pending_enrichments(
                        session, client=client, storage=storage, media=media
                    )
                    if videos:
                        await session.commit()
                    else:
                        await session.rollback()
            except Exception:  # pragma: no cover
                logger.exception("Enrichment worker iteration failed")
                await asyncio.sleep(idle_sleep)
                continue

            await asyncio.sleep(active_sleep if videos else idle_sleep)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:  # pragma: no cover - event loop behaviour
            pass
        finally:
            self._task = None


enrichment_worker = EnrichmentWorker()


def start_enrichment_worker() -> None:
    """Public entry for FastAPI startup."""

    enrichment_worker.start()


async def stop_enrichment_worker() -> None:
    """Public entry for FastAPI shutdown."""

    await enrichment_worker.stop()


__all__ = [
    "GeneratedMetadata",
    "QuoteGenerationError",
    "compute_backoff",
    "enrich_video",
    "generate_metadata",
    "generate_quotes",
    "parse_quotes",
    "parse_tags",
    "process_pending_enrichments",
    "start_enrichment_worker",
    "stop_enrichment_worker",
]
