"""Recompute aggregate statistics for one user or for everyone."""

from __future__ import annotations

import asyncio

from sqlalchemy import select

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import SessionLocal
from productivity_talk.services.users import recompute_user_statistics


async def recompute_statistics(user_id: str | None = None) -> int:
    async with SessionLocal() as session:
        if user_id is not None:
            user_ids = [user_id]
        else:
            user_ids = list(await session.scalars(select(AppUser.id).order_by(AppUser.id)))

        updated = 0
        for current in user_ids:
            try:
                user = await recompute_user_statistics(session, current)
            except NotFoundError:
                print(f"User {current} not found.")
                continue
            updated += 1
            print(
                f"{current}: {user.total_videos_uploaded} videos, "
                f"{user.total_video_views} views, {user.total_comments_posted} comments"
            )
        await session.commit()
        return updated


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 2:
        print("Usage: python -m productivity_talk.jobs.recompute_statistics [USER_ID]")
        sys.exit(1)

    count = asyncio.run(recompute_statistics(sys.argv[1] if len(sys.argv) == 2 else None))
    print(f"Updated statistics for {count} user(s).")
