from __future__ import annotations

from fastapi import APIRouter, Response, status

from fellowship.api.schemas.facts import (
    CommentCreate,
    FactResponse,
    PrayerCommitCreate,
    ReactionCreate,
    SoftDeleteResponse,
)
from fellowship.core.dependencies import AsyncDbSession
from fellowship.domain.enums import FactKind
from fellowship.repos.fact_repo import delete_fact, insert_fact, restore_fact, soft_delete_fact

router = APIRouter(tags=["facts"])


@router.post("/comments", response_model=FactResponse, status_code=status.HTTP_201_CREATED)
async def post_comment(payload: CommentCreate, db: AsyncDbSession):
    """Add a comment to a post; the post's comment_count follows."""
    comment = await insert_fact(
        db,
        FactKind.COMMENT,
        parent_id=payload.post_id,
        user_id=payload.user_id,
        content=payload.content,
        deleted_at=payload.deleted_at,
    )
    await db.commit()
    return comment


@router.post("/reactions", response_model=FactResponse, status_code=status.HTTP_201_CREATED)
async def post_reaction(payload: ReactionCreate, db: AsyncDbSession):
    """
    React to a post.

    A second reaction of the same type by the same user returns 409.
    """
    reaction = await insert_fact(
        db,
        FactKind.REACTION,
        parent_id=payload.post_id,
        user_id=payload.user_id,
        type=payload.type,
    )
    await db.commit()
    return reaction


@router.post(
    "/prayer-commits", response_model=FactResponse, status_code=status.HTTP_201_CREATED
)
async def post_prayer_commit(payload: PrayerCommitCreate, db: AsyncDbSession):
    commit = await insert_fact(
        db,
        FactKind.PRAYER_COMMIT,
        parent_id=payload.prayer_id,
        user_id=payload.user_id,
        message=payload.message,
    )
    await db.commit()
    return commit


@router.delete("/facts/{kind}/{fact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_fact(kind: str, fact_id: str, db: AsyncDbSession) -> Response:
    """Hard-delete a comment, reaction or prayer commit."""
    await delete_fact(db, kind.upper(), fact_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/facts/{kind}/{fact_id}/soft-delete", response_model=SoftDeleteResponse)
async def soft_delete(kind: str, fact_id: str, db: AsyncDbSession):
    """
    Soft-delete a row. Repeating the call is a no-op.

    Hard-delete-only kinds (reactions, prayer commits, ...) return 400.
    """
    entity = await soft_delete_fact(db, kind.upper(), fact_id)
    await db.commit()
    return SoftDeleteResponse(kind=kind.upper(), id=entity.id, deleted_at=entity.deleted_at)


@router.post("/facts/{kind}/{fact_id}/restore", response_model=SoftDeleteResponse)
async def restore(kind: str, fact_id: str, db: AsyncDbSession):
    entity = await restore_fact(db, kind.upper(), fact_id)
    await db.commit()
    return SoftDeleteResponse(kind=kind.upper(), id=entity.id, deleted_at=entity.deleted_at)
