"""Comment actions that are not scoped under a video."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.deps import require_user
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.schema.video import CommentOut
from productivity_talk.services.comments import save_comment_to_second_brain

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/{comment_id}/save", response_model=CommentOut)
async def save_comment(
    comment_id: int,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> CommentOut:
    comment = await save_comment_to_second_brain(session, comment_id)
    await session.commit()
    return CommentOut.model_validate(comment)
