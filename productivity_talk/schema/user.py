"""Pydantic models for user profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=320)
    bio: str | None = None


class UserStatistics(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    total_videos_uploaded: int = Field(alias="totalVideosUploaded")
    total_video_likes: int = Field(alias="totalVideoLikes")
    total_video_saves: int = Field(alias="totalVideoSaves")
    total_video_views: int = Field(alias="totalVideoViews")
    total_comments_posted: int = Field(alias="totalCommentsPosted")
    total_second_brain_saves: int = Field(alias="totalSecondBrainSaves")
    video_engagement_rate: float = Field(alias="videoEngagementRate")
    comment_engagement_rate: float = Field(alias="commentEngagementRate")
    topic_distribution: dict[str, int] = Field(alias="topicDistribution")
    stats_updated_at: datetime | None = Field(default=None, alias="updatedAt")


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    username: str
    email: str
    bio: str | None = None
    profile_pic_url: str | None = Field(default=None, alias="profilePicURL")
    created_at: datetime = Field(alias="createdAt")
