"""User profile and statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from productivity_talk.core.deps import get_current_user_id, require_user
from productivity_talk.db.models import AppUser
from productivity_talk.db.session import get_session
from productivity_talk.schema.user import UserCreate, UserOut, UserStatistics
from productivity_talk.services.users import recompute_user_statistics, register_user

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> UserOut:
    """Create the profile for the signed-in identity."""

    user = await register_user(
        session,
        user_id=user_id,
        username=payload.username,
        email=payload.email,
        bio=payload.bio,
    )
    await session.commit()
    return UserOut.model_validate(user)


@router.get("/me", response_model=UserOut)
async def get_me(user: AppUser = Depends(require_user)) -> UserOut:
    return UserOut.model_validate(user)


@router.get("/me/statistics", response_model=UserStatistics)
async def get_statistics(user: AppUser = Depends(require_user)) -> UserStatistics:
    return UserStatistics.model_validate(user)


@router.post("/me/statistics", response_model=UserStatistics)
async def refresh_statistics(
    user: AppUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> UserStatistics:
    updated = await recompute_user_statistics(session, user.id)
    await session.commit()
    return UserStatistics.model_validate(updated)
