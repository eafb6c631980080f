"""Reminder scheduling endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.deps import get_language_model, require_user
from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.schema.reminder import (
    CancelledCount,
    ReminderCreate,
    ReminderOut,
    ReminderProposalOut,
    ReminderProposalRequest,
)
from productivity_talk.services import reminders as reminder_service
from productivity_talk.services.openai_client import LanguageModel
from productivity_talk.services.second_brain import get_entry
from productivity_talk.services.videos import get_video

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    payload: ReminderCreate,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> ReminderOut:
    reminder = await reminder_service.schedule_reminder(
        session, user.id, payload.message, payload.time, video_id=payload.video_id
    )
    await session.commit()
    return ReminderOut.model_validate(reminder)


@router.post("/proposal", response_model=ReminderProposalOut)
async def propose_reminder(
    payload: ReminderProposalRequest,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    client: LanguageModel | None = Depends(get_language_model),
) -> ReminderProposalOut:
    """Suggest a reminder message and time from a saved video's transcript."""

    entry = await get_entry(session, user.id, payload.video_id)
    transcript = entry.transcript if entry is not None else (await get_video(session, payload.video_id)).transcript
    if not transcript:
        raise NotFoundError(f"No transcript available for video {payload.video_id}")
    if client is None:
        raise ValueError("OpenAI API key is not configured")

    proposal = await reminder_service.generate_notification_proposal(transcript, client=client)
    hour, minute = proposal.time_of_day
    return ReminderProposalOut(message=proposal.message, time=proposal.time_text, hour=hour, minute=minute)


@router.get("", response_model=list[ReminderOut])
async def list_reminders(
    include_done: bool = Query(False, alias="includeDone"),
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[ReminderOut]:
    reminders = await reminder_service.list_reminders(session, user.id, include_done=include_done)
    return [ReminderOut.model_validate(reminder) for reminder in reminders]


@router.delete("", response_model=CancelledCount)
async def cancel_reminders(
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> CancelledCount:
    cancelled = await reminder_service.cancel_all_reminders(session, user.id)
    await session.commit()
    return CancelledCount(cancelled=cancelled)
