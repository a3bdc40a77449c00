import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_GIFTS
from allowance_tracker.auth import authorize_child_access, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    GiftApprove,
    GiftPortalData,
    GiftRead,
    GiftReject,
    GiftSubmissionResult,
    GiftSubmit,
)
from allowance_tracker.services import gifts

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/gifts", tags=["gifts"])


# public portal endpoints, no authentication


@router.get("/portal/{token}", response_model=GiftPortalData)
async def portal(token: str, db: AsyncSession = Depends(get_session)):
    try:
        return await gifts.get_portal_data(db, token)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/portal/{token}/submit", response_model=GiftSubmissionResult, status_code=201)
async def submit_gift(token: str, data: GiftSubmit, db: AsyncSession = Depends(get_session)):
    try:
        return await gifts.submit_gift(db, token, **data.model_dump())
    except ValueError as exc:
        raise to_http(exc)


@router.get("/pending", response_model=List[GiftRead])
async def pending_gifts(
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        return []
    return await gifts.get_pending_gifts(db, current_user.family_id)


@router.get("/children/{child_id}", response_model=List[GiftRead])
async def child_gifts(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await gifts.get_child_gifts(db, child_id)


@router.get("/{gift_id}", response_model=GiftRead)
async def get_gift(
    gift_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    gift = await gifts.get_gift(db, gift_id)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")
    await authorize_child_access(db, current_user, gift.child_id)
    return gift


@router.post("/{gift_id}/approve", response_model=GiftRead)
async def approve_gift(
    gift_id: int,
    data: GiftApprove,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await gifts.approve_gift(
            db, gift_id, current_user, data.allocate_to_goal_id, data.savings_percentage
        )
    except ValueError as exc:
        raise to_http(exc)


@router.post("/{gift_id}/reject", response_model=GiftRead)
async def reject_gift(
    gift_id: int,
    data: GiftReject,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await gifts.reject_gift(db, gift_id, current_user, data.reason)
    except ValueError as exc:
        raise to_http(exc)
