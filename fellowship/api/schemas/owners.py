from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from fellowship.domain.enums import OwnerKind, PrayerStatus


class PrayerStatusUpdate(BaseModel):
    status: PrayerStatus


class PrayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    group_id: str | None = None
    linked_post_id: str | None = None
    title: str
    status: PrayerStatus
    commit_count: int
    deleted_at: datetime | None = None


class DeleteReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: OwnerKind
    owner_id: str
    cascaded: dict[str, int]
    nullified: dict[str, int]
    counters_adjusted: int
