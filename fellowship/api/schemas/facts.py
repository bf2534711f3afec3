from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fellowship.domain.enums import ReactionType


class CommentCreate(BaseModel):
    post_id: str
    user_id: str
    content: str = Field(min_length=1)
    deleted_at: datetime | None = None


class ReactionCreate(BaseModel):
    post_id: str
    user_id: str
    type: ReactionType


class PrayerCommitCreate(BaseModel):
    prayer_id: str
    user_id: str
    message: str | None = None


class FactResponse(BaseModel):
    """Any fact row; fields a kind lacks are left null."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    post_id: str | None = None
    prayer_id: str | None = None
    content: str | None = None
    type: ReactionType | None = None
    message: str | None = None
    created_at: datetime
    deleted_at: datetime | None = None


class SoftDeleteResponse(BaseModel):
    kind: str
    id: str
    deleted_at: datetime | None = None
