"""Pydantic models for chat endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(min_length=1, max_length=4000)
    video_ids: list[str] | None = Field(default=None, alias="videoIds")


class VideoReference(BaseModel):
    id: str
    title: str
    thumbnailURL: str


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    associated_videos: list[VideoReference] = Field(default_factory=list, alias="associatedVideos")
