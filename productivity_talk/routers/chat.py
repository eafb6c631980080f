"""Chat over the user's saved transcripts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.deps import get_language_model, require_user
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.schema.chat import ChatMessageOut, ChatQuestion
from productivity_talk.services.chat import answer_question, list_messages
from productivity_talk.services.openai_client import LanguageModel

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/messages", response_model=list[ChatMessageOut])
async def get_messages(
    limit: int = Query(100, ge=1, le=500),
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[ChatMessageOut]:
    messages = await list_messages(session, user.id, limit=limit)
    return [ChatMessageOut.model_validate(message) for message in messages]


@router.post("/messages", response_model=ChatMessageOut, status_code=status.HTTP_201_CREATED)
async def ask(
    payload: ChatQuestion,
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    client: LanguageModel | None = Depends(get_language_model),
) -> ChatMessageOut:
    """Answer a question and return the assistant's reply."""

    reply = await answer_question(session, user.id, payload.question, client=client, video_ids=payload.video_ids)
    await session.commit()
    return ChatMessageOut.model_validate(reply)
