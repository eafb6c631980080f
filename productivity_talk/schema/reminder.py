"""Pydantic models for reminder endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReminderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, max_length=500)
    time: str | None = Field(default=None, description="Time of day as HH:mm (24-hour)")
    video_id: str | None = Field(default=None, alias="videoId")


class ReminderProposalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(alias="videoId")


class ReminderProposalOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    time: str
    hour: int
    minute: int


class ReminderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    video_id: str | None = Field(default=None, alias="videoId")
    message: str
    fire_at: datetime = Field(alias="fireAt")
    status: str
    delivered_at: datetime | None = Field(default=None, alias="deliveredAt")


class CancelledCount(BaseModel):
    cancelled: int
