from __future__ import annotations

from fastapi import APIRouter, Response, status

from fellowship.api.schemas.flags import FeatureFlagResponse, FeatureFlagUpdate
from fellowship.core.dependencies import AsyncDbSession
from fellowship.repos.feature_flag_repo import delete_flag, get_flag, list_flags, set_flag

router = APIRouter(tags=["feature-flags"])


@router.get("/feature-flags", response_model=list[FeatureFlagResponse])
async def get_flags(db: AsyncDbSession):
    return await list_flags(db)


@router.get("/feature-flags/{key}", response_model=FeatureFlagResponse)
async def get_feature_flag(key: str, db: AsyncDbSession):
    return await get_flag(db, key)


@router.put("/feature-flags/{key}", response_model=FeatureFlagResponse)
async def put_feature_flag(key: str, payload: FeatureFlagUpdate, db: AsyncDbSession):
    flag = await set_flag(db, key, enabled=payload.enabled, payload=payload.payload)
    await db.commit()
    return flag


@router.delete("/feature-flags/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feature_flag(key: str, db: AsyncDbSession) -> Response:
    await delete_flag(db, key)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
