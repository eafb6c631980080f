"""End-to-end API tests against the ASGI app."""

from __future__ import annotations

import re

import httpx
import pytest
import pytest_asyncio

from productivity_talk.core.deps import get_upload_pipeline
from productivity_talk.db.session import get_session
from productivity_talk.main import create_app
from productivity_talk.services.upload_pipeline import UploadPipeline, UploadProgressRegistry

HEADERS = {"X-User-Id": "user-1"}


@pytest_asyncio.fixture
async def client(session_factory, storage, fake_media):
    app = create_app(start_workers=False)

    async def _session_override():
        async with session_factory() as db_session:
            yield db_session

    pipeline = UploadPipeline(
        storage=storage, session_factory=session_factory, progress=UploadProgressRegistry(), media=fake_media
    )
    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_upload_pipeline] = lambda: pipeline

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


@pytest.mark.asyncio
async def test_healthcheck(client):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_missing_identity_is_rejected(client):
    response = await client.get("/users/me")
    assert response.status_code == 401
    assert response.json()["code"] == "not_authenticated"


@pytest.mark.asyncio
async def test_register_and_fetch_profile(client):
    created = await client.post("/users", json={"username": "carol", "email": "carol@example.com"}, headers=HEADERS)
    assert created.status_code == 201
    assert created.json()["email"] == "carol@example.com"

    me = await client.get("/users/me", headers=HEADERS)
    assert me.status_code == 200
    assert me.json()["username"] == "carol"

    duplicate = await client.post(
        "/users", json={"username": "carol", "email": "carol@example.com"}, headers=HEADERS
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "email_in_use"


@pytest.mark.asyncio
async def test_unregistered_user_is_not_found(client):
    response = await client.get("/users/me", headers={"X-User-Id": "nobody"})
    assert response.status_code == 404
    assert response.json()["code"] == "user_not_found"


@pytest.mark.asyncio
async def test_upload_flow(client, user, storage):
    response = await client.post(
        "/videos",
        files={"file": ("Morning Talk.mp4", b"\x00" * 2048, "video/mp4")},
        headers=HEADERS,
    )

    assert response.status_code == 202
    body = response.json()
    assert body["processingStatus"] == "uploading"
    assert body["sizeBytes"] == 2048
    assert re.match(r"^Morning_Talk_\d+_[0-9a-f]{8}$", body["id"])

    video = (await client.get(f"/videos/{body['id']}")).json()
    assert video["processingStatus"] == "transcribing"
    assert video["videoURL"] == f"http://media.test/videos/{body['id']}.mp4"
    assert video["ownerId"] == "user-1"
    assert video["title"] == "Processing..."

    progress = (await client.get(f"/videos/{body['id']}/progress")).json()
    assert progress["progress"] == 1.0


@pytest.mark.asyncio
async def test_empty_upload_is_rejected(client, user):
    response = await client.post("/videos", files={"file": ("empty.mp4", b"", "video/mp4")}, headers=HEADERS)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_missing_video_returns_404(client):
    response = await client.get("/videos/missing")
    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


@pytest.mark.asyncio
async def test_engagement_and_second_brain(client, session, user, video_factory):
    session.add(video_factory(processing_status="ready", title="Deep Work", transcript="Focus.", quotes=["Focus."]))
    await session.commit()
    video_id = "talk_1700000000_deadbeef"

    views = await client.post(f"/videos/{video_id}/views")
    assert views.json() == {"id": video_id, "value": 1}

    first = await client.put(f"/second-brain/{video_id}", headers=HEADERS)
    second = await client.put(f"/second-brain/{video_id}", headers=HEADERS)
    assert first.status_code == 201
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["quotes"] == ["Focus."]

    detail = (await client.get(f"/videos/{video_id}")).json()
    assert detail["brainCount"] == 1
    assert detail["viewCount"] == 1

    comment = await client.post(f"/videos/{video_id}/comments", json={"text": "Loved it"}, headers=HEADERS)
    assert comment.status_code == 201
    saved = await client.post(f"/comments/{comment.json()['id']}/save", headers=HEADERS)
    assert saved.json()["isInSecondBrain"] is True
    assert saved.json()["saveCount"] == 1

    removed = await client.delete(f"/second-brain/{video_id}", headers=HEADERS)
    assert removed.status_code == 204
    assert (await client.get("/second-brain", headers=HEADERS)).json() == []


@pytest.mark.asyncio
async def test_chat_without_transcripts(client, user):
    response = await client.post("/chat/messages", json={"question": "What have I saved?"}, headers=HEADERS)

    assert response.status_code == 201
    assert response.json()["role"] == "assistant"
    assert response.json()["associatedVideos"] == []

    history = (await client.get("/chat/messages", headers=HEADERS)).json()
    assert [message["role"] for message in history] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_reminder_schedule_and_cancel(client, user):
    created = await client.post("/reminders", json={"message": "Stretch", "time": "25:99"}, headers=HEADERS)
    assert created.status_code == 201
    assert "T08:00:00" in created.json()["fireAt"]
    assert created.json()["status"] == "pending"

    listed = (await client.get("/reminders", headers=HEADERS)).json()
    assert [reminder["message"] for reminder in listed] == ["Stretch"]

    cancelled = await client.delete("/reminders", headers=HEADERS)
    assert cancelled.json() == {"cancelled": 1}
    assert (await client.get("/reminders", headers=HEADERS)).json() == []


@pytest.mark.asyncio
async def test_reminder_proposal_requires_model(client, session, user, video_factory):
    session.add(video_factory(processing_status="ready", transcript="Drink water."))
    await session.commit()

    response = await client.post(
        "/reminders/proposal", json={"videoId": "talk_1700000000_deadbeef"}, headers=HEADERS
    )

    assert response.status_code == 400
    assert "OpenAI API key" in response.json()["detail"]


@pytest.mark.asyncio
async def test_app_does_not_serve_stored_objects(client):
    response = await client.get("/media/videos/talk_1700000000_deadbeef.mp4")
    assert response.status_code == 404
