"""Question answering over a user's saved transcripts."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.config import settings
from productivity_talk.db.models import ChatMessage, SecondBrainEntry
from productivity_talk.services.openai_client import LanguageModel

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

NO_CONTENT_REPLY = (
    "I couldn't find any saved transcripts matching your question. "
    "Save a few videos to your Second Brain, or try rephrasing and asking about a different topic."
)

CHAT_PROMPT = """You are an AI assistant helping with a Second Brain app that saves video transcripts. The user has {total} saved lesson transcripts.

If the user asks what content they have:
1. Tell them how many transcripts they have
2. List the titles of their saved videos
3. For each video, provide a 1-line summary of its main topic/lesson
4. If no transcripts are provided, explain that while they have {total} saved transcripts, none match their current query

For other questions:
1. Answer based on the relevant transcripts provided below
2. Reference specific videos by title when answering
3. If no relevant transcripts are found, let them know you can't find content matching their question
4. Suggest they try rephrasing or ask about different topics

RELEVANT TRANSCRIPTS:
{context}

USER QUESTION:
{question}

RETURN a helpful, specific answer focusing on the actual content of their saved lessons:"""


@dataclass(slots=True)
class TranscriptSource:
    video_id: str
    title: str | None
    thumbnail_url: str | None
    transcript: str


def build_context(sources: Sequence[TranscriptSource], *, char_budget: int) -> str:
    """Concatenate transcripts, each clipped to ``char_budget`` characters."""

    blocks: list[str] = []
    for index, source in enumerate(sources, start=1):
        label = f"TRANSCRIPT {index}"
        if source.title:
            label += f" ({source.title})"
        text = source.transcript
        if len(text) > char_budget:
            text = text[:char_budget] + "…"
        blocks.append(f"{label}:\n{text}")
    return "\n\n---\n\n".join(blocks)


def build_chat_prompt(question: str, context: str, *, total: int) -> str:
    return CHAT_PROMPT.format(total=total, context=context, question=question)


async def load_transcript_sources(
    session: AsyncSession,
    user_id: str,
    *,
    video_ids: Sequence[str] | None = None,
    limit: int | None = None,
) -> tuple[list[TranscriptSource], int]:
    """Return the caller's usable transcripts plus their total saved count."""

    total = await session.scalar(
        select(func.count()).select_from(SecondBrainEntry).where(SecondBrainEntry.user_id == user_id)
    )

    stmt = (
        select(SecondBrainEntry)
        .where(SecondBrainEntry.user_id == user_id, SecondBrainEntry.transcript != "")
        .order_by(SecondBrainEntry.saved_at.desc(), SecondBrainEntry.id.desc())
    )
    if video_ids is not None:
        stmt = stmt.where(SecondBrainEntry.video_id.in_(list(video_ids)))
    stmt = stmt.limit(limit or settings.chat_max_transcripts)

    entries = (await session.execute(stmt)).scalars().all()
    sources = [
        TranscriptSource(
            video_id=entry.video_id,
            title=entry.video_title,
            thumbnail_url=entry.video_thumbnail_url,
            transcript=entry.transcript,
        )
        for entry in entries
    ]
    return sources, int(total or 0)


async def answer_question(
    session: AsyncSession,
    user_id: str,
    question: str,
    *,
    client: LanguageModel | None,
    video_ids: Sequence[str] | None = None,
) -> ChatMessage:
    """Store the question, produce a grounded reply and store that too."""

    question = question.strip()
    if not question:
        raise ValueError("Question must not be empty")

    session.add(ChatMessage(user_id=user_id, role=ROLE_USER, content=question, associated_videos=[]))

    sources, total = await load_transcript_sources(session, user_id, video_ids=video_ids)
    if not sources:
        logger.info("No transcripts available for chat", extra={"user_id": user_id, "total": total})
        reply = NO_CONTENT_REPLY
    else:
        if client is None:
            raise ValueError("OpenAI API key is not configured")
        context = build_context(sources, char_budget=settings.chat_transcript_char_budget)
        prompt = build_chat_prompt(question, context, total=total)
        reply = await client.complete(prompt, temperature=0.7, max_tokens=500)

    message = ChatMessage(
        user_id=user_id,
        role=ROLE_ASSISTANT,
        content=reply,
        associated_videos=[
            {"id": source.video_id, "title": source.title or "", "thumbnailURL": source.thumbnail_url or ""}
            for source in sources
        ],
    )
    session.add(message)
    await session.flush()
    logger.info(
        "Answered chat question",
        extra={"user_id": user_id, "transcripts": len(sources), "reply_length": len(reply)},
    )
    return message


async def list_messages(session: AsyncSession, user_id: str, *, limit: int = 100) -> list[ChatMessage]:
    """Return the most recent messages in chronological order."""

    stmt = (
        select(ChatMessage)
        .where(ChatMessage.user_id == user_id)
        .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
        .limit(limit)
    )
    messages = list((await session.execute(stmt)).scalars())
    messages.reverse()
    return messages
