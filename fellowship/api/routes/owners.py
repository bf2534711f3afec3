from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from fellowship.api.schemas.owners import (
    DeleteReportResponse,
    PrayerResponse,
    PrayerStatusUpdate,
)
from fellowship.core.dependencies import AsyncDbSession
from fellowship.repos.owner_repo import delete_owner, update_prayer_status

router = APIRouter(tags=["owners"])


@router.delete("/owners/{kind}/{owner_id}", response_model=DeleteReportResponse)
async def remove_owner(
    kind: str,
    owner_id: str,
    db: AsyncDbSession,
    performed_by: Annotated[
        str | None, Query(description="Acting user id recorded in the audit log")
    ] = None,
):
    """
    Delete an owner and apply its referential policies.

    Returns 409 when a RESTRICT relation (e.g. a user's posts) blocks it;
    nothing is changed in that case.
    """
    report = await delete_owner(db, kind.upper(), owner_id, performed_by=performed_by)
    await db.commit()
    return report


@router.patch("/prayers/{prayer_id}/status", response_model=PrayerResponse)
async def patch_prayer_status(prayer_id: str, payload: PrayerStatusUpdate, db: AsyncDbSession):
    prayer = await update_prayer_status(db, prayer_id, payload.status)
    await db.commit()
    return prayer
