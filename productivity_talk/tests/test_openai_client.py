"""Tests for the OpenAI wrapper using a stubbed SDK client."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from productivity_talk.core.errors import ServiceError
from productivity_talk.services.openai_client import OpenAIClient


def _status_error(status_code: int, body: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")
    response = httpx.Response(status_code, text=body, request=request)
    return openai.APIStatusError("error", response=response, body=None)


class StubCompletions:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def _client(completions=None, transcriptions=None) -> OpenAIClient:
    sdk = SimpleNamespace(
        chat=SimpleNamespace(completions=completions or StubCompletions()),
        audio=SimpleNamespace(transcriptions=transcriptions or StubCompletions()),
    )
    return OpenAIClient(sdk, chat_model="gpt-4", transcription_model="whisper-1")


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.asyncio
async def test_complete_returns_stripped_content():
    completions = StubCompletions(result=_completion("  Hello there \n"))

    reply = await _client(completions).complete("Hi", temperature=0.5, max_tokens=150, system="Be brief")

    assert reply == "Hello there"
    call = completions.calls[0]
    assert call["model"] == "gpt-4"
    assert call["max_tokens"] == 150
    assert call["messages"] == [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "Hi"},
    ]


@pytest.mark.asyncio
async def test_complete_wraps_status_errors_with_body():
    completions = StubCompletions(error=_status_error(429, '{"error": "rate limited"}'))

    with pytest.raises(ServiceError, match="GPT call failed: .*rate limited"):
        await _client(completions).complete("Hi", temperature=0.7)


@pytest.mark.asyncio
async def test_complete_rejects_empty_content():
    with pytest.raises(ServiceError, match="Failed to parse GPT response"):
        await _client(StubCompletions(result=_completion(None))).complete("Hi", temperature=0.7)


@pytest.mark.asyncio
async def test_transcribe_returns_text(tmp_path):
    audio = tmp_path / "clip.mp4"
    audio.write_bytes(b"\x00" * 16)
    transcriptions = StubCompletions(result="  spoken words \n")

    text = await _client(transcriptions=transcriptions).transcribe(audio)

    assert text == "spoken words"
    assert transcriptions.calls[0]["model"] == "whisper-1"
    assert transcriptions.calls[0]["response_format"] == "text"


@pytest.mark.asyncio
async def test_transcribe_wraps_errors(tmp_path):
    audio = tmp_path / "clip.mp4"
    audio.write_bytes(b"\x00" * 16)
    transcriptions = StubCompletions(error=_status_error(400, "bad audio"))

    with pytest.raises(ServiceError, match="Transcription error: bad audio"):
        await _client(transcriptions=transcriptions).transcribe(audio)
