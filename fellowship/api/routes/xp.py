from __future__ import annotations

from fastapi import APIRouter, status

from fellowship.api.schemas.xp import XpEventCreate, XpEventResponse, XpTotalsResponse
from fellowship.core.dependencies import AsyncDbSession
from fellowship.repos.xp_repo import get_xp_totals, record_xp_event, recompute_xp_totals

router = APIRouter(tags=["xp"])


@router.post("/xp-events", response_model=XpEventResponse, status_code=status.HTTP_201_CREATED)
async def post_xp_event(payload: XpEventCreate, db: AsyncDbSession):
    """
    Record an XP event and add it to the user's totals.

    Negative amounts are rejected with 422.
    """
    event = await record_xp_event(
        db,
        user_id=payload.user_id,
        fruit=payload.fruit,
        amount=payload.amount,
        reason=payload.reason,
        metadata=payload.metadata,
    )
    await db.commit()
    return event


@router.get("/users/{user_id}/xp-totals", response_model=XpTotalsResponse)
async def get_totals(user_id: str, db: AsyncDbSession):
    return XpTotalsResponse(user_id=user_id, totals=await get_xp_totals(db, user_id))


@router.post("/users/{user_id}/xp-totals/recompute", response_model=XpTotalsResponse)
async def post_recompute(user_id: str, db: AsyncDbSession):
    """Rebuild the user's totals from the event log. Safe to repeat."""
    totals = await recompute_xp_totals(db, user_id)
    await db.commit()
    return XpTotalsResponse(user_id=user_id, totals=totals.as_dict())
