from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fellowship.domain.enums import Fruit


class XpEventCreate(BaseModel):
    user_id: str
    fruit: Fruit
    # Not bounded here: a negative amount must surface as CheckConstraintViolation
    amount: int
    reason: str = Field(min_length=1)
    metadata: dict[str, Any] | None = None


class XpEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    fruit: Fruit
    amount: int
    reason: str
    created_at: datetime


class XpTotalsResponse(BaseModel):
    user_id: str
    totals: dict[str, int]
