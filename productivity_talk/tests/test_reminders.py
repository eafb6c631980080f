"""Tests for reminder proposals and scheduling."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from productivity_talk.db.models import Reminder
from productivity_talk.services.reminders import (
    DEFAULT_MESSAGE,
    cancel_all_reminders,
    generate_notification_proposal,
    list_reminders,
    next_fire_time,
    parse_notification_proposal,
    parse_time_of_day,
    schedule_reminder,
)

UTC = ZoneInfo("UTC")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("07:30", (7, 30)),
        ("23:59", (23, 59)),
        (" 0:05 ", (0, 5)),
        ("25:99", (8, 0)),
        ("", (8, 0)),
        (None, (8, 0)),
        ("noon", (8, 0)),
        ("12:30:00", (8, 0)),
    ],
)
def test_parse_time_of_day(value, expected):
    assert parse_time_of_day(value) == expected


def test_parse_notification_proposal_reads_both_lines():
    proposal = parse_notification_proposal(
        "1) NotificationMessage: Take a walk after lunch\n2) ProposedTime: 13:15"
    )
    assert proposal.message == "Take a walk after lunch"
    assert proposal.time_text == "13:15"
    assert proposal.time_of_day == (13, 15)


def test_parse_notification_proposal_is_case_insensitive():
    proposal = parse_notification_proposal("notificationmessage: Breathe\nPROPOSEDTIME: 21:00")
    assert proposal.message == "Breathe"
    assert proposal.time_of_day == (21, 0)


def test_parse_notification_proposal_falls_back_to_defaults():
    proposal = parse_notification_proposal("I could not think of anything.")
    assert proposal.message == DEFAULT_MESSAGE
    assert proposal.time_text == "08:00"


def test_next_fire_time_later_today():
    now = datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)
    assert next_fire_time(8, 0, now=now, tz=UTC) == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def test_next_fire_time_rolls_to_tomorrow():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    assert next_fire_time(8, 0, now=now, tz=UTC) == datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc)


def test_next_fire_time_respects_timezone():
    new_york = ZoneInfo("America/New_York")
    morning = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    afternoon = datetime(2024, 1, 15, 14, 0, tzinfo=timezone.utc)

    assert next_fire_time(8, 0, now=morning, tz=new_york) == datetime(2024, 1, 15, 13, 0, tzinfo=timezone.utc)
    assert next_fire_time(8, 0, now=afternoon, tz=new_york) == datetime(2024, 1, 16, 13, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_generate_notification_proposal_uses_transcript(fake_llm):
    fake_llm.replies = {"NotificationMessage": "NotificationMessage: Drink water\nProposedTime: 10:00"}

    proposal = await generate_notification_proposal("Hydration matters.", client=fake_llm)

    assert proposal.message == "Drink water"
    assert proposal.time_of_day == (10, 0)
    assert "Hydration matters." in fake_llm.prompts[0]


@pytest.mark.asyncio
async def test_schedule_reminder_uses_default_time_for_bad_input(session, user):
    now = datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

    reminder = await schedule_reminder(session, user.id, "  ", "soon", video_id="v1", now=now)

    assert reminder.message == DEFAULT_MESSAGE
    assert reminder.fire_at == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    assert reminder.status == "pending"
    assert reminder.video_id == "v1"


@pytest.mark.asyncio
async def test_cancel_all_reminders_only_touches_pending(session, user):
    await schedule_reminder(session, user.id, "one", "07:00")
    await schedule_reminder(session, user.id, "two", "09:00")
    delivered = await schedule_reminder(session, user.id, "done", "10:00")
    delivered.status = "delivered"
    await session.commit()

    assert await cancel_all_reminders(session, user.id) == 2
    await session.commit()

    assert await list_reminders(session, user.id) == []
    statuses = sorted(reminder.status for reminder in await list_reminders(session, user.id, include_done=True))
    assert statuses == ["cancelled", "cancelled", "delivered"]
    assert all(isinstance(reminder, Reminder) for reminder in await list_reminders(session, user.id, include_done=True))
