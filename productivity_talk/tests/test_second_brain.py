"""Tests for the second brain collection."""

from __future__ import annotations

import pytest

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.models import SecondBrainEntry, Video
from productivity_talk.services import second_brain
from productivity_talk.services.second_brain import (
    add_quote,
    add_to_second_brain,
    list_entries,
    remove_from_second_brain,
    remove_quote,
)


@pytest.fixture
def ready_video(video_factory):
    return video_factory(
        processing_status="ready",
        title="Deep Work",
        transcript="Focus is a muscle.",
        quotes=["Focus is a muscle."],
        thumbnail_url="http://media.test/thumb.jpg",
    )


@pytest.mark.asyncio
async def test_saving_twice_keeps_single_entry(session, ready_video):
    session.add(ready_video)
    await session.commit()

    first, created = await add_to_second_brain(session, "user-1", ready_video.id)
    second, created_again = await add_to_second_brain(session, "user-1", ready_video.id)
    await session.commit()

    assert created is True
    assert created_again is False
    assert first.id == second.id
    assert len(await list_entries(session, "user-1")) == 1
    assert (await session.get(Video, ready_video.id)).brain_count == 1


@pytest.mark.asyncio
async def test_entry_copies_video_content(session, ready_video):
    session.add(ready_video)
    await session.commit()

    entry, _ = await add_to_second_brain(session, "user-1", ready_video.id)

    assert entry.transcript == "Focus is a muscle."
    assert entry.quotes == ["Focus is a muscle."]
    assert entry.video_title == "Deep Work"
    assert entry.video_thumbnail_url == "http://media.test/thumb.jpg"


@pytest.mark.asyncio
async def test_missing_video_raises(session):
    with pytest.raises(NotFoundError):
        await add_to_second_brain(session, "user-1", "nope")


@pytest.mark.asyncio
async def test_remove_decrements_counter(session, ready_video):
    session.add(ready_video)
    await session.commit()
    await add_to_second_brain(session, "user-1", ready_video.id)
    await session.commit()

    assert await remove_from_second_brain(session, "user-1", ready_video.id) is True
    assert await remove_from_second_brain(session, "user-1", ready_video.id) is False
    await session.commit()

    video = await session.get(Video, ready_video.id)
    await session.refresh(video)
    assert video.brain_count == 0
    assert await list_entries(session, "user-1") == []


@pytest.mark.asyncio
async def test_quotes_can_be_added_and_removed(session, ready_video):
    session.add(ready_video)
    await session.commit()
    await add_to_second_brain(session, "user-1", ready_video.id)

    entry = await add_quote(session, "user-1", ready_video.id, "  Rest is work.  ")
    entry = await add_quote(session, "user-1", ready_video.id, "Rest is work.")
    assert entry.quotes == ["Focus is a muscle.", "Rest is work."]

    entry = await remove_quote(session, "user-1", ready_video.id, "Focus is a muscle.")
    assert entry.quotes == ["Rest is work."]


@pytest.mark.asyncio
async def test_concurrent_save_returns_existing_entry(session, ready_video, monkeypatch):
    session.add(ready_video)
    await session.commit()

    real_get_entry = second_brain.get_entry
    lookups = 0

    async def _lookup_loses_race(db_session, user_id, video_id):
        nonlocal lookups
        lookups += 1
        if lookups == 1:
            # another request saves the same video between lookup and insert
            db_session.add(SecondBrainEntry(user_id=user_id, video_id=video_id, transcript="", quotes=[]))
            await db_session.flush()
            return None
        return await real_get_entry(db_session, user_id, video_id)

    monkeypatch.setattr(second_brain, "get_entry", _lookup_loses_race)

    entry, created = await add_to_second_brain(session, "user-1", ready_video.id)
    await session.commit()

    assert created is False
    assert entry.user_id == "user-1"
    assert lookups == 2
    assert len(await list_entries(session, "user-1")) == 1
    assert (await session.get(Video, ready_video.id)).brain_count == 0
