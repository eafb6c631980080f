"""Tests for chat over saved transcripts."""

from __future__ import annotations

import pytest

from productivity_talk.db.models import SecondBrainEntry
from productivity_talk.services.chat import (
    NO_CONTENT_REPLY,
    TranscriptSource,
    answer_question,
    build_context,
    list_messages,
)


def _entry(video_id: str, transcript: str, title: str | None = None) -> SecondBrainEntry:
    return SecondBrainEntry(
        user_id="user-1",
        video_id=video_id,
        transcript=transcript,
        quotes=[],
        video_title=title,
        video_thumbnail_url=f"http://media.test/{video_id}.jpg",
    )


def test_build_context_labels_and_clips_transcripts():
    sources = [
        TranscriptSource(video_id="a", title="Morning", thumbnail_url=None, transcript="x" * 10),
        TranscriptSource(video_id="b", title=None, thumbnail_url=None, transcript="short"),
    ]

    context = build_context(sources, char_budget=4)

    assert context == "TRANSCRIPT 1 (Morning):\nxxxx…\n\n---\n\nTRANSCRIPT 2:\nshort"


@pytest.mark.asyncio
async def test_no_transcripts_returns_canned_reply_without_model(session):
    reply = await answer_question(session, "user-1", "What did I save?", client=None)
    await session.commit()

    assert reply.role == "assistant"
    assert reply.content == NO_CONTENT_REPLY
    assert reply.associated_videos == []

    history = await list_messages(session, "user-1")
    assert [message.role for message in history] == ["user", "assistant"]
    assert history[0].content == "What did I save?"


@pytest.mark.asyncio
async def test_answer_uses_saved_transcripts(session, fake_llm):
    session.add(_entry("v1", "Sleep eight hours.", title="Sleep"))
    session.add(_entry("v2", "", title="Untranscribed"))
    await session.commit()
    fake_llm.replies = {"USER QUESTION": "Sleep more."}

    reply = await answer_question(session, "user-1", "How do I rest?", client=fake_llm)

    assert reply.content == "Sleep more."
    assert reply.associated_videos == [
        {"id": "v1", "title": "Sleep", "thumbnailURL": "http://media.test/v1.jpg"}
    ]
    prompt = fake_llm.prompts[0]
    assert "The user has 2 saved lesson transcripts" in prompt
    assert "TRANSCRIPT 1 (Sleep):\nSleep eight hours." in prompt
    assert "How do I rest?" in prompt
    assert "Untranscribed" not in prompt


@pytest.mark.asyncio
async def test_answer_can_be_scoped_to_videos(session, fake_llm):
    session.add(_entry("v1", "About sleep.", title="Sleep"))
    session.add(_entry("v2", "About food.", title="Food"))
    await session.commit()
    fake_llm.replies = {"USER QUESTION": "Eat well."}

    reply = await answer_question(session, "user-1", "Diet?", client=fake_llm, video_ids=["v2"])

    assert [video["id"] for video in reply.associated_videos] == ["v2"]
    assert "About sleep." not in fake_llm.prompts[0]


@pytest.mark.asyncio
async def test_blank_question_is_rejected(session):
    with pytest.raises(ValueError):
        await answer_question(session, "user-1", "   ", client=None)


@pytest.mark.asyncio
async def test_transcripts_without_model_raise(session):
    session.add(_entry("v1", "About sleep."))
    await session.commit()

    with pytest.raises(ValueError, match="OpenAI API key"):
        await answer_question(session, "user-1", "Anything?", client=None)
