"""Second brain collection endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.deps import require_user
from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.schema.second_brain import QuoteEdit, SecondBrainEntryOut
from productivity_talk.services import second_brain as brain

router = APIRouter(prefix="/second-brain", tags=["second-brain"])


@router.get("", response_model=list[SecondBrainEntryOut])
async def list_entries(
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[SecondBrainEntryOut]:
    entries = await brain.list_entries(session, user.id)
    return [SecondBrainEntryOut.model_validate(entry) for entry in entries]


@router.get("/{video_id}", response_model=SecondBrainEntryOut)
async def get_entry(
    video_id: str,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SecondBrainEntryOut:
    entry = await brain.get_entry(session, user.id, video_id)
    if entry is None:
        raise NotFoundError(f"Video {video_id} is not in the second brain")
    return SecondBrainEntryOut.model_validate(entry)


@router.put("/{video_id}", response_model=SecondBrainEntryOut)
async def save_video(
    video_id: str,
    response: Response,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SecondBrainEntryOut:
    """Save a video; repeating the call leaves the existing entry untouched."""

    entry, created = await brain.add_to_second_brain(session, user.id, video_id)
    await session.commit()
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return SecondBrainEntryOut.model_validate(entry)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_video(
    video_id: str,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    removed = await brain.remove_from_second_brain(session, user.id, video_id)
    if not removed:
        raise NotFoundError(f"Video {video_id} is not in the second brain")
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{video_id}/quotes", response_model=SecondBrainEntryOut)
async def add_quote(
    video_id: str,
    payload: QuoteEdit,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SecondBrainEntryOut:
    entry = await brain.add_quote(session, user.id, video_id, payload.quote)
    await session.commit()
    return SecondBrainEntryOut.model_validate(entry)


@router.delete("/{video_id}/quotes", response_model=SecondBrainEntryOut)
async def remove_quote(
    video_id: str,
    payload: QuoteEdit,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SecondBrainEntryOut:
    entry = await brain.remove_quote(session, user.id, video_id, payload.quote)
    await session.commit()
    return SecondBrainEntryOut.model_validate(entry)
