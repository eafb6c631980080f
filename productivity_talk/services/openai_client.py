"""Thin async wrapper around the OpenAI transcription and chat endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import openai
from openai import AsyncOpenAI

from productivity_talk.core.config import settings
from productivity_talk.core.errors import ServiceError

logger = logging.getLogger(__name__)


class LanguageModel(Protocol):
    """What the enrichment, chat and reminder services need from a model provider."""

    async def transcribe(self, path: str | Path) -> str: ...

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str: ...


def _describe_status_error(exc: openai.APIStatusError) -> str:
    try:
        return exc.response.text
    except Exception:  # pragma: no cover - response body already consumed
        return str(exc)


class OpenAIClient:
    """Calls Whisper and chat completions, wrapping every failure in :class:`ServiceError`."""

    def __init__(self, client: AsyncOpenAI, *, chat_model: str, transcription_model: str) -> None:
        self._client = client
        self.chat_model = chat_model
        self.transcription_model = transcription_model

    async def transcribe(self, path: str | Path) -> str:
        path = Path(path)
        logger.debug("Requesting transcription", extra={"file": path.name, "size": path.stat().st_size})

        try:
            with path.open("rb") as audio:
                result = await self._client.audio.transcriptions.create(
                    model=self.transcription_model,
                    file=audio,
                    response_format="text",
                )
        except openai.APIStatusError as exc:
            body = _describe_status_error(exc)
            logger.error("Transcription failed", extra={"status": exc.status_code, "body": body[:500]})
            raise ServiceError(f"Transcription error: {body}") from exc
        except openai.APIError as exc:
            logger.error("Transcription request failed", extra={"error": str(exc)})
            raise ServiceError(f"Transcription error: {exc}") from exc

        text = result if isinstance(result, str) else getattr(result, "text", "")
        return (text or "").strip()

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict = {"model": self.chat_model, "messages": messages, "temperature": temperature}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.debug(
            "Requesting chat completion",
            extra={"prompt_length": len(prompt), "temperature": temperature, "max_tokens": max_tokens},
        )
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            body = _describe_status_error(exc)
            logger.error("GPT call failed", extra={"status": exc.status_code, "body": body[:500]})
            raise ServiceError(f"GPT call failed: {body}") from exc
        except openai.APIError as exc:
            logger.error("GPT request failed", extra={"error": str(exc)})
            raise ServiceError(f"GPT call failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ServiceError("Failed to parse GPT response")
        return content.strip()


@lru_cache
def get_openai_client() -> OpenAIClient:
    if not settings.openai_api_key:
        raise ValueError("OpenAI API key is not configured")
    kwargs: dict = {
        "api_key": settings.openai_api_key,
        "timeout": settings.openai_timeout_seconds,
        "max_retries": 0,
    }
    if settings.openai_base_url:
        kwargs["base_url"] = settings.openai_base_url
    return OpenAIClient(
        AsyncOpenAI(**kwargs),
        chat_model=settings.openai_chat_model,
        transcription_model=settings.openai_transcription_model,
    )


__all__ = ["LanguageModel", "OpenAIClient", "get_openai_client"]
