"""Request dependencies shared by routers."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.config import settings
from productivity_talk.core.errors import AuthError, AuthErrorCode
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.services.openai_client import LanguageModel, get_openai_client
from productivity_talk.services.upload_pipeline import UploadPipeline


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity comes from the upstream identity provider via ``X-User-Id``."""

    if not x_user_id or not x_user_id.strip():
        raise AuthError(AuthErrorCode.NOT_AUTHENTICATED)
    return x_user_id.strip()


async def require_user(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> AppUser:
    user = await session.get(AppUser, user_id)
    if user is None:
        raise AuthError(AuthErrorCode.USER_NOT_FOUND)
    return user


def get_language_model() -> LanguageModel | None:
    if not settings.openai_api_key:
        return None
    return get_openai_client()


def get_upload_pipeline() -> UploadPipeline:
    return UploadPipeline()
