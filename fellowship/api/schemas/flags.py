from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class FeatureFlagUpdate(BaseModel):
    enabled: bool
    payload: dict[str, Any] | None = None


class FeatureFlagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    enabled: bool
    payload: dict[str, Any] | None = None
    updated_at: datetime
