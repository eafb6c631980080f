from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER primary keys
_BigId = BigInteger().with_variant(Integer, "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


class ProcessingStatus(str, Enum):
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    READY = "ready"
    ERROR = "error"


class AppUser(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_pic_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    total_videos_uploaded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_video_likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_video_saves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_video_views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_comments_posted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_second_brain_saves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    video_engagement_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    comment_engagement_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    topic_distribution: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    stats_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Video(Base):
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner_id: Mapped[str] = mapped_column("ownerId", String(128), index=True, nullable=False)
    owner_username: Mapped[str] = mapped_column("ownerUsername", String(64), nullable=False)
    video_url: Mapped[str | None] = mapped_column("videoURL", String(2048), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column("thumbnailURL", String(2048), nullable=True)
    title: Mapped[str] = mapped_column(String(512), default="Processing...", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="Processing...", nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    processing_status: Mapped[str] = mapped_column(
        "processingStatus", String(16), default=ProcessingStatus.UPLOADING.value, index=True, nullable=False
    )
    processing_error: Mapped[str | None] = mapped_column("processingError", Text, nullable=True)

    like_count: Mapped[int] = mapped_column("likeCount", Integer, default=0, nullable=False)
    save_count: Mapped[int] = mapped_column("saveCount", Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column("commentCount", Integer, default=0, nullable=False)
    brain_count: Mapped[int] = mapped_column("brainCount", Integer, default=0, nullable=False)
    view_count: Mapped[int] = mapped_column("viewCount", Integer, default=0, nullable=False)

    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    quotes: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    auto_title: Mapped[str | None] = mapped_column("autoTitle", String(512), nullable=True)
    auto_description: Mapped[str | None] = mapped_column("autoDescription", Text, nullable=True)
    auto_tags: Mapped[list[str] | None] = mapped_column("autoTags", JSON, nullable=True)

    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    comments: Mapped[list["Comment"]] = relationship(back_populates="video")


class SecondBrainEntry(Base):
    __tablename__ = "second_brain_entries"
    __table_args__ = (UniqueConstraint("userId", "videoId", name="uq_second_brain_user_video"),)

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column("userId", String(128), index=True, nullable=False)
    video_id: Mapped[str] = mapped_column("videoId", String(128), index=True, nullable=False)
    transcript: Mapped[str] = mapped_column(Text, default="", nullable=False)
    quotes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    video_title: Mapped[str | None] = mapped_column("videoTitle", String(512), nullable=True)
    video_thumbnail_url: Mapped[str | None] = mapped_column("videoThumbnailURL", String(2048), nullable=True)
    saved_at: Mapped[datetime] = mapped_column("savedAt", DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column("videoId", ForeignKey("videos.id"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column("userId", String(128), index=True, nullable=False)
    user_name: Mapped[str | None] = mapped_column("userName", String(64), nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    save_count: Mapped[int] = mapped_column("saveCount", Integer, default=0, nullable=False)
    is_in_second_brain: Mapped[bool] = mapped_column("isInSecondBrain", Boolean, default=False, nullable=False)

    video: Mapped[Video] = relationship(back_populates="comments")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column("userId", String(128), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    associated_videos: Mapped[list[dict[str, Any]]] = mapped_column(
        "associatedVideos", JSON, default=list, nullable=False
    )


class Reminder(Base):
    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column("userId", ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    video_id: Mapped[str | None] = mapped_column("videoId", String(128), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    fire_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user: Mapped[AppUser] = relationship()
