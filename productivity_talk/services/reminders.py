"""Reminder proposals and one-shot reminder scheduling."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.config import settings
from productivity_talk.db.models import Reminder
from productivity_talk.services.openai_client import LanguageModel

logger = logging.getLogger(__name__)

DEFAULT_TIME = (8, 0)
DEFAULT_MESSAGE = "Reminder from your video!"

STATUS_PENDING = "pending"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

PROPOSAL_PROMPT = """You are an AI that helps create concise notifications based on a video transcript.
The user wants a reminder about a key idea from the transcript. Return two lines:

1) NotificationMessage: <one-liner reminder>
2) ProposedTime: <HH:mm 24-hour format for suggested reminder time>

Transcript:
"{transcript}"
"""

_NUMBERING_RE = re.compile(r"^\d+\)\s*")
_MESSAGE_PREFIX = "notificationmessage:"
_TIME_PREFIX = "proposedtime:"


@dataclass(slots=True)
class NotificationProposal:
    message: str
    time_text: str

    @property
    def time_of_day(self) -> tuple[int, int]:
        return parse_time_of_day(self.time_text)


def parse_time_of_day(value: str | None) -> tuple[int, int]:
    """Parse ``HH:mm``; anything else yields the 08:00 default."""

    if not value:
        return DEFAULT_TIME
    parts = value.strip().split(":")
    if len(parts) != 2:
        return DEFAULT_TIME
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return DEFAULT_TIME
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return DEFAULT_TIME
    return hour, minute


def parse_notification_proposal(text: str) -> NotificationProposal:
    message = DEFAULT_MESSAGE
    time_text = "{:02d}:{:02d}".format(*DEFAULT_TIME)

    for raw_line in text.splitlines():
        line = _NUMBERING_RE.sub("", raw_line.strip())
        lowered = line.lower()
        if lowered.startswith(_MESSAGE_PREFIX):
            candidate = line[len(_MESSAGE_PREFIX):].strip()
            if candidate:
                message = candidate
        elif lowered.startswith(_TIME_PREFIX):
            candidate = line[len(_TIME_PREFIX):].strip()
            if candidate:
                time_text = candidate
    return NotificationProposal(message=message, time_text=time_text)


async def generate_notification_proposal(transcript: str, *, client: LanguageModel) -> NotificationProposal:
    """Ask the model for a reminder message and a time of day."""

    reply = await client.complete(PROPOSAL_PROMPT.format(transcript=transcript), temperature=0.5, max_tokens=200)
    proposal = parse_notification_proposal(reply)
    logger.debug("Parsed notification proposal", extra={"proposed_time": proposal.time_text})
    return proposal


def next_fire_time(hour: int, minute: int, *, now: datetime, tz: ZoneInfo) -> datetime:
    """Next occurrence of HH:mm in ``tz`` at or after ``now``, as UTC."""

    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), time(hour, minute), tzinfo=tz)
    if candidate < local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), time(hour, minute), tzinfo=tz)
    return candidate.astimezone(timezone.utc)


def _reminder_zone() -> ZoneInfo:
    return ZoneInfo(settings.reminder_timezone)


async def schedule_reminder(
    session: AsyncSession,
    user_id: str,
    message: str,
    time_text: str | None,
    *,
    video_id: str | None = None,
    now: datetime | None = None,
) -> Reminder:
    """Persist a one-shot reminder for the next occurrence of ``time_text``."""

    hour, minute = parse_time_of_day(time_text or settings.reminder_default_time)
    fire_at = next_fire_time(hour, minute, now=now or datetime.now(timezone.utc), tz=_reminder_zone())

    reminder = Reminder(
        user_id=user_id,
        video_id=video_id,
        message=message.strip() or DEFAULT_MESSAGE,
        fire_at=fire_at,
        status=STATUS_PENDING,
        retry_count=0,
        next_retry_at=fire_at,
    )
    session.add(reminder)
    await session.flush()
    logger.info(
        "Scheduled reminder",
        extra={"reminder_id": reminder.id, "user_id": user_id, "fire_at": fire_at.isoformat()},
    )
    return reminder


async def list_reminders(session: AsyncSession, user_id: str, *, include_done: bool = False) -> list[Reminder]:
    stmt = select(Reminder).where(Reminder.user_id == user_id).order_by(Reminder.fire_at, Reminder.id)
    if not include_done:
        stmt = stmt.where(Reminder.status == STATUS_PENDING)
    return list((await session.execute(stmt)).scalars())


async def cancel_all_reminders(session: AsyncSession, user_id: str) -> int:
    """Cancel every pending reminder for a user and return how many were cancelled."""

    result = await session.execute(
        update(Reminder)
        .where(Reminder.user_id == user_id, Reminder.status == STATUS_PENDING)
        .values(status=STATUS_CANCELLED, next_retry_at=None)
    )
    logger.info("Cancelled reminders", extra={"user_id": user_id, "count": result.rowcount})
    return result.rowcount or 0
