"""Pydantic models for video endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VideoSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    owner_id: str = Field(alias="ownerId")
    owner_username: str = Field(alias="ownerUsername")
    video_url: str | None = Field(default=None, alias="videoURL")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailURL")
    title: str
    description: str
    tags: list[str]
    processing_status: str = Field(alias="processingStatus")
    processing_error: str | None = Field(default=None, alias="processingError")
    like_count: int = Field(alias="likeCount")
    save_count: int = Field(alias="saveCount")
    comment_count: int = Field(alias="commentCount")
    brain_count: int = Field(alias="brainCount")
    view_count: int = Field(alias="viewCount")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class VideoDetail(VideoSummary):
    transcript: str | None = None
    quotes: list[str] | None = None
    auto_title: str | None = Field(default=None, alias="autoTitle")
    auto_description: str | None = Field(default=None, alias="autoDescription")
    auto_tags: list[str] | None = Field(default=None, alias="autoTags")


class UploadAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    processing_status: str = Field(alias="processingStatus")
    size_bytes: int = Field(alias="sizeBytes")


class UploadProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    processing_status: str = Field(alias="processingStatus")
    progress: float | None


class CounterValue(BaseModel):
    id: str
    value: int


class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    video_id: str = Field(alias="videoId")
    user_id: str = Field(alias="userId")
    user_name: str | None = Field(default=None, alias="userName")
    text: str
    timestamp: datetime
    save_count: int = Field(alias="saveCount")
    is_in_second_brain: bool = Field(alias="isInSecondBrain")
