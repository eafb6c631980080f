"""Video lookups and engagement counters."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import Video

_COUNTERS = {
    "views": Video.view_count,
    "likes": Video.like_count,
    "saves": Video.save_count,
}


async def get_video(session: AsyncSession, video_id: str) -> Video:
    video = await session.get(Video, video_id)
    if video is None:
        raise NotFoundError(f"Video {video_id} not found")
    return video


async def list_videos(
    session: AsyncSession,
    *,
    owner_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
) -> Sequence[Video]:
    stmt = select(Video).order_by(Video.created_at.desc()).limit(limit)
    if owner_id is not None:
        stmt = stmt.where(Video.owner_id == owner_id)
    if status is not None:
        stmt = stmt.where(Video.processing_status == status)
    return list((await session.execute(stmt)).scalars())


async def increment_counter(session: AsyncSession, video_id: str, counter: str) -> int:
    """Bump a counter in SQL and return the new value."""

    column = _COUNTERS[counter]
    result = await session.execute(
        update(Video)
        .where(Video.id == video_id)
        .values({column: column + 1})
        .returning(column)
    )
    value = result.scalar_one_or_none()
    if value is None:
        raise NotFoundError(f"Video {video_id} not found")
    return int(value)


async def record_view(session: AsyncSession, video_id: str) -> int:
    return await increment_counter(session, video_id, "views")


async def record_like(session: AsyncSession, video_id: str) -> int:
    return await increment_counter(session, video_id, "likes")
