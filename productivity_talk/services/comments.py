"""Flat per-video comments."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import AppUser, Comment, Video

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000


async def list_comments(session: AsyncSession, video_id: str, *, limit: int = 100) -> Sequence[Comment]:
    result = await session.scalars(
        select(Comment)
        .where(Comment.video_id == video_id)
        .order_by(Comment.timestamp.desc(), Comment.id.desc())
        .limit(limit)
    )
    return list(result)


async def add_comment(session: AsyncSession, *, video_id: str, author: AppUser, text: str) -> Comment:
    text = text.strip()
    if not text:
        raise ValueError("Comment text must not be empty")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValueError(f"Comments are limited to {MAX_COMMENT_LENGTH} characters")

    if await session.get(Video, video_id) is None:
        raise NotFoundError(f"Video {video_id} not found")

    comment = Comment(video_id=video_id, user_id=author.id, user_name=author.username, text=text)
    session.add(comment)
    await session.execute(
        update(Video).where(Video.id == video_id).values(comment_count=Video.comment_count + 1)
    )
    await session.flush()
    logger.info("Added comment", extra={"video_id": video_id, "user_id": author.id, "comment_id": comment.id})
    return comment


async def save_comment_to_second_brain(session: AsyncSession, comment_id: int) -> Comment:
    """Flag a comment as saved; the save counter moves only on the first save."""

    comment = await session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found")

    if not comment.is_in_second_brain:
        comment.is_in_second_brain = True
        comment.save_count = (comment.save_count or 0) + 1
        await session.flush()
    return comment
