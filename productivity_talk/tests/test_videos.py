"""Tests for video lookups and engagement counters."""

from __future__ import annotations

import pytest

from productivity_talk.core.errors import NotFoundError
from productivity_talk.services.videos import get_video, list_videos, record_like, record_view


@pytest.mark.asyncio
async def test_counters_increment_in_sql(session, video_factory):
    session.add(video_factory(processing_status="ready"))
    await session.commit()

    assert await record_view(session, "talk_1700000000_deadbeef") == 1
    assert await record_view(session, "talk_1700000000_deadbeef") == 2
    assert await record_like(session, "talk_1700000000_deadbeef") == 1


@pytest.mark.asyncio
async def test_counter_on_missing_video(session):
    with pytest.raises(NotFoundError):
        await record_view(session, "missing")


@pytest.mark.asyncio
async def test_list_videos_filters(session, video_factory):
    session.add_all(
        [
            video_factory("a_1_00000001", processing_status="ready"),
            video_factory("b_1_00000002", processing_status="error", owner_id="user-2"),
        ]
    )
    await session.commit()

    assert [video.id for video in await list_videos(session, status="ready")] == ["a_1_00000001"]
    assert [video.id for video in await list_videos(session, owner_id="user-2")] == ["b_1_00000002"]
    assert (await get_video(session, "a_1_00000001")).processing_status == "ready"
    with pytest.raises(NotFoundError):
        await get_video(session, "missing")
