"""Pydantic models for second brain endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SecondBrainEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    user_id: str = Field(alias="userId")
    video_id: str = Field(alias="videoId")
    transcript: str
    quotes: list[str]
    video_title: str | None = Field(default=None, alias="videoTitle")
    video_thumbnail_url: str | None = Field(default=None, alias="videoThumbnailURL")
    saved_at: datetime = Field(alias="savedAt")


class QuoteEdit(BaseModel):
    quote: str = Field(min_length=1)
