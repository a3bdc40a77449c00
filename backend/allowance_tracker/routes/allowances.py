import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_ALLOWANCE
from allowance_tracker.auth import authorize_child_access, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    AllowanceAdjustmentRead,
    AllowanceAmountUpdate,
    AllowancePause,
    AllowanceRunResult,
    ChildRead,
    TransactionRead,
)
from allowance_tracker.services import allowances

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/allowances", tags=["allowances"])


@router.post("/children/{child_id}/pay", response_model=TransactionRead)
async def pay_allowance(
    child_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_ALLOWANCE)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    try:
        tx = await allowances.pay_weekly_allowance(db, child_id)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Allowance paid to child %s by user %s", child_id, current_user.id)
    return tx


@router.post("/process", response_model=AllowanceRunResult)
async def process_pending(
    current_user: User = Depends(require_permissions(PERM_MANAGE_ALLOWANCE)),
    db: AsyncSession = Depends(get_session),
):
    """Run the allowance sweep now instead of waiting for the daily job."""
    return await allowances.process_all_pending_allowances(db)


@router.post("/children/{child_id}/pause", response_model=ChildRead)
async def pause_allowance(
    child_id: int,
    data: AllowancePause,
    current_user: User = Depends(require_permissions(PERM_MANAGE_ALLOWANCE)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    return await allowances.pause_allowance(db, child_id, data.reason, current_user.id)


@router.post("/children/{child_id}/resume", response_model=ChildRead)
async def resume_allowance(
    child_id: int,
    data: AllowancePause,
    current_user: User = Depends(require_permissions(PERM_MANAGE_ALLOWANCE)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    return await allowances.resume_allowance(db, child_id, data.reason, current_user.id)


@router.put("/children/{child_id}/amount", response_model=ChildRead)
async def adjust_amount(
    child_id: int,
    data: AllowanceAmountUpdate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_ALLOWANCE)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    try:
        child = await allowances.adjust_allowance_amount(
            db, child_id, data.weekly_allowance, data.reason, current_user.id
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Allowance for child %s set to %s by user %s", child_id, child.weekly_allowance, current_user.id)
    return child


@router.get("/children/{child_id}/history", response_model=List[AllowanceAdjustmentRead])
async def adjustment_history(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await allowances.get_adjustment_history(db, child_id)
