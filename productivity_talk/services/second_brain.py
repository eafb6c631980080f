"""A user's saved collection of video transcripts and quotes."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import SecondBrainEntry, Video

logger = logging.getLogger(__name__)


async def get_entry(session: AsyncSession, user_id: str, video_id: str) -> SecondBrainEntry | None:
    return await session.scalar(
        select(SecondBrainEntry).where(SecondBrainEntry.user_id == user_id, SecondBrainEntry.video_id == video_id)
    )


async def list_entries(session: AsyncSession, user_id: str) -> Sequence[SecondBrainEntry]:
    """Return a user's saved entries, newest first."""

    result = await session.scalars(
        select(SecondBrainEntry)
        .where(SecondBrainEntry.user_id == user_id)
        .order_by(SecondBrainEntry.saved_at.desc(), SecondBrainEntry.id.desc())
    )
    return list(result)


async def add_to_second_brain(
    session: AsyncSession, user_id: str, video_id: str
) -> tuple[SecondBrainEntry, bool]:
    """Save a video for a user; saving the same video again is a no-op.

    Returns the entry and whether it was newly created. The video's
    ``brain_count`` only moves when an entry is created.
    """

    video = await session.get(Video, video_id)
    if video is None:
        raise NotFoundError(f"Video {video_id} not found")

    existing = await get_entry(session, user_id, video_id)
    if existing is not None:
        logger.debug("Video already in second brain", extra={"user_id": user_id, "video_id": video_id})
        return existing, False

    entry = SecondBrainEntry(
        user_id=user_id,
        video_id=video_id,
        transcript=video.transcript or "",
        quotes=list(video.quotes or []),
        video_title=video.title,
        video_thumbnail_url=video.thumbnail_url,
    )
    try:
        async with session.begin_nested():
            session.add(entry)
    except IntegrityError:
        # a concurrent save won the unique (user, video) constraint
        existing = await get_entry(session, user_id, video_id)
        if existing is None:
            raise
        logger.debug("Video saved concurrently", extra={"user_id": user_id, "video_id": video_id})
        return existing, False

    await session.execute(
        update(Video).where(Video.id == video_id).values(brain_count=Video.brain_count + 1)
    )
    await session.refresh(video, attribute_names=["brain_count"])

    logger.info("Saved video to second brain", extra={"user_id": user_id, "video_id": video_id})
    return entry, True


async def remove_from_second_brain(session: AsyncSession, user_id: str, video_id: str) -> bool:
    entry = await get_entry(session, user_id, video_id)
    if entry is None:
        return False

    await session.delete(entry)
    await session.execute(
        update(Video)
        .where(Video.id == video_id, Video.brain_count > 0)
        .values(brain_count=Video.brain_count - 1)
    )
    await session.flush()
    logger.info("Removed video from second brain", extra={"user_id": user_id, "video_id": video_id})
    return True


async def add_quote(session: AsyncSession, user_id: str, video_id: str, quote: str) -> SecondBrainEntry:
    entry = await get_entry(session, user_id, video_id)
    if entry is None:
        raise NotFoundError(f"Video {video_id} is not in the second brain")
    quote = quote.strip()
    if quote and quote not in entry.quotes:
        entry.quotes = [*entry.quotes, quote]
        await session.flush()
    return entry


async def remove_quote(session: AsyncSession, user_id: str, video_id: str, quote: str) -> SecondBrainEntry:
    entry = await get_entry(session, user_id, video_id)
    if entry is None:
        raise NotFoundError(f"Video {video_id} is not in the second brain")
    entry.quotes = [existing for existing in entry.quotes if existing != quote]
    await session.flush()
    return entry
