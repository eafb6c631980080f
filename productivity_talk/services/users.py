"""User profiles and their aggregate statistics."""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.errors import AuthError, AuthErrorCode, NotFoundError
from productivity_talk.db.models import AppUser, Comment, SecondBrainEntry, Video

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


async def get_user(session: AsyncSession, user_id: str) -> AppUser | None:
    return await session.get(AppUser, user_id)


async def register_user(
    session: AsyncSession,
    *,
    user_id: str,
    username: str,
    email: str,
    bio: str | None = None,
) -> AppUser:
    """Create a profile for an identity-provider user id."""

    email = email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "Please enter a valid email address.")
    username = username.strip()
    if not username:
        raise ValueError("Username must not be empty")

    if await session.get(AppUser, user_id) is not None:
        raise AuthError(AuthErrorCode.EMAIL_IN_USE, "This account is already registered.")
    if await session.scalar(select(AppUser.id).where(AppUser.email == email)) is not None:
        raise AuthError(AuthErrorCode.EMAIL_IN_USE)

    user = AppUser(id=user_id, username=username, email=email, bio=bio, topic_distribution={})
    session.add(user)
    await session.flush()
    logger.info("Registered user", extra={"user_id": user_id})
    return user


async def recompute_user_statistics(session: AsyncSession, user_id: str) -> AppUser:
    """Recount every aggregate for a user from scratch."""

    user = await session.get(AppUser, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    totals = (
        await session.execute(
            select(
                func.count(Video.id),
                func.coalesce(func.sum(Video.like_count), 0),
                func.coalesce(func.sum(Video.save_count), 0),
                func.coalesce(func.sum(Video.view_count), 0),
                func.coalesce(func.sum(Video.brain_count), 0),
            ).where(Video.owner_id == user_id)
        )
    ).one()
    total_videos, total_likes, total_saves, total_views, total_brain_saves = (int(value) for value in totals)

    comments_posted = int(
        await session.scalar(select(func.count()).select_from(Comment).where(Comment.user_id == user_id)) or 0
    )

    saved_video_ids = list(
        await session.scalars(select(SecondBrainEntry.video_id).where(SecondBrainEntry.user_id == user_id))
    )
    topics: Counter[str] = Counter()
    if saved_video_ids:
        for tags in await session.scalars(select(Video.tags).where(Video.id.in_(saved_video_ids))):
            topics.update(tag for tag in (tags or []) if tag)

    user.total_videos_uploaded = total_videos
    user.total_video_likes = total_likes
    user.total_video_saves = total_saves
    user.total_video_views = total_views
    user.total_comments_posted = comments_posted
    user.total_second_brain_saves = total_brain_saves
    user.video_engagement_rate = (total_likes + total_saves) / total_videos if total_videos else 0.0
    user.comment_engagement_rate = total_brain_saves / comments_posted if comments_posted else 0.0
    user.topic_distribution = dict(topics)
    user.stats_updated_at = datetime.now(timezone.utc)
    await session.flush()

    logger.info(
        "Recomputed user statistics",
        extra={"user_id": user_id, "videos": total_videos, "entries": len(saved_video_ids)},
    )
    return user
