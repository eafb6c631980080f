"""Shared fixtures: an in-memory SQLite database and fake collaborators."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.pop("APP_OPENAI_API_KEY", None)

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from productivity_talk.core.errors import NotFoundError
from productivity_talk.db.init_db import init_models
from productivity_talk.db.models import AppUser, ProcessingStatus, Video


class DiskObjectStorage:
    """Bucket stand-in that keeps objects and their metadata under a directory."""

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")
        self.metadata: dict[str, dict] = {}

    def upload(self, key, path, *, content_type, metadata=None, on_progress=None) -> str:
        source = Path(path)
        total = source.stat().st_size
        target = self.root / key
        target.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with source.open("rb") as reader, target.open("wb") as writer:
            while chunk := reader.read(1024 * 1024):
                writer.write(chunk)
                written += len(chunk)
                if on_progress is not None:
                    on_progress(written, total)
        if on_progress is not None and total == 0:
            on_progress(0, 0)
        self.metadata[key] = {"contentType": content_type, "size": total, "customMetadata": metadata or {}}
        return f"{self.public_base_url}/{key}"

    def download(self, key, destination) -> None:
        source = self.root / key
        if not source.is_file():
            raise NotFoundError(f"Object not found: {key}")
        shutil.copyfile(source, destination)

    def exists(self, key) -> bool:
        return (self.root / key).is_file()


class FakeMediaTools:
    """Writes canned audio and thumbnail bytes instead of running ffmpeg."""

    def __init__(self, audio: bytes = b"ID3 audio", thumbnail: bytes = b"\xff\xd8 jpeg") -> None:
        self.audio = audio
        self.thumbnail = thumbnail
        self.audio_error: Exception | None = None
        self.thumbnail_error: Exception | None = None
        self.calls: list[tuple[str, str, str]] = []

    async def extract_audio(self, video_path, audio_path) -> None:
        self.calls.append(("audio", str(video_path), str(audio_path)))
        if self.audio_error is not None:
            raise self.audio_error
        Path(audio_path).write_bytes(self.audio)

    async def extract_thumbnail(self, video_path, image_path) -> None:
        self.calls.append(("thumbnail", str(video_path), str(image_path)))
        if self.thumbnail_error is not None:
            raise self.thumbnail_error
        Path(image_path).write_bytes(self.thumbnail)


class FakeLanguageModel:
    """Scripted replies keyed by a substring of the prompt."""

    def __init__(self, replies: dict[str, str | Exception] | None = None, transcript: str = "hello world") -> None:
        self.replies = replies or {}
        self.transcript = transcript
        self.prompts: list[str] = []
        self.transcribed: list[str] = []

    async def transcribe(self, path) -> str:
        self.transcribed.append(str(path))
        return self.transcript

    async def complete(self, prompt, *, temperature, max_tokens=None, system=None) -> str:
        self.prompts.append(prompt)
        for marker, reply in self.replies.items():
            if marker in prompt:
                if isinstance(reply, Exception):
                    raise reply
                return reply
        return ""


@pytest_asyncio.fixture
async def engine():
    db_engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_models(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def storage(tmp_path) -> DiskObjectStorage:
    return DiskObjectStorage(tmp_path / "bucket", "http://media.test")


@pytest.fixture
def fake_media() -> FakeMediaTools:
    return FakeMediaTools()


@pytest.fixture
def fake_llm() -> FakeLanguageModel:
    return FakeLanguageModel()


@pytest_asyncio.fixture
async def user(session) -> AppUser:
    account = AppUser(id="user-1", username="alice", email="alice@example.com", topic_distribution={})
    session.add(account)
    await session.commit()
    return account


def make_video(video_id: str = "talk_1700000000_deadbeef", **overrides) -> Video:
    values = dict(
        id=video_id,
        owner_id="user-1",
        owner_username="alice",
        title="Processing...",
        description="Processing...",
        tags=[],
        processing_status=ProcessingStatus.UPLOADING.value,
        like_count=0,
        save_count=0,
        comment_count=0,
        brain_count=0,
        view_count=0,
        retry_count=0,
    )
    values.update(overrides)
    return Video(**values)


@pytest.fixture
def video_factory():
    return make_video
