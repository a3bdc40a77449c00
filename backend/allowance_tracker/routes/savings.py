import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_SAVINGS, ROLE_PARENT
from allowance_tracker.auth import authorize_child_access, require_permissions, require_role
from allowance_tracker.database import get_session
from allowance_tracker.models import Child, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    ChildRead,
    SavingsAmount,
    SavingsConfig,
    SavingsSummary,
    SavingsTransactionRead,
)
from allowance_tracker.services import savings_account

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/savings", tags=["savings"])


def _check_visible(child: Child, user: User) -> None:
    if user.id == child.user_id and not child.savings_balance_visible_to_child:
        raise HTTPException(status_code=403, detail="Savings balance is hidden")


@router.put("/children/{child_id}/config", response_model=ChildRead)
async def configure_savings(
    child_id: int,
    data: SavingsConfig,
    current_user: User = Depends(require_role(ROLE_PARENT)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    try:
        return await savings_account.enable_savings_account(
            db, child_id, data.transfer_type, data.transfer_amount, data.transfer_percentage
        )
    except ValueError as exc:
        raise to_http(exc)


@router.delete("/children/{child_id}/config", response_model=ChildRead)
async def disable_savings(
    child_id: int,
    current_user: User = Depends(require_role(ROLE_PARENT)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    return await savings_account.disable_savings_account(db, child_id)


@router.post("/children/{child_id}/deposit", response_model=SavingsTransactionRead)
async def deposit(
    child_id: int,
    data: SavingsAmount,
    current_user: User = Depends(require_permissions(PERM_MANAGE_SAVINGS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    try:
        row = await savings_account.deposit(
            db, child_id, data.amount,
            data.description or "Deposit to savings", current_user.id,
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Savings deposit %s for child %s by user %s", row.amount, child_id, current_user.id)
    return row


@router.post("/children/{child_id}/withdraw", response_model=SavingsTransactionRead)
async def withdraw(
    child_id: int,
    data: SavingsAmount,
    current_user: User = Depends(require_role(ROLE_PARENT)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id, parent_only=True)
    try:
        row = await savings_account.withdraw(
            db, child_id, data.amount,
            data.description or "Withdrawal from savings", current_user.id,
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Savings withdrawal %s for child %s by user %s", row.amount, child_id, current_user.id)
    return row


@router.get("/children/{child_id}/history", response_model=List[SavingsTransactionRead])
async def history(
    child_id: int,
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(require_permissions(PERM_MANAGE_SAVINGS)),
    db: AsyncSession = Depends(get_session),
):
    child = await authorize_child_access(db, current_user, child_id)
    _check_visible(child, current_user)
    return await savings_account.get_history(db, child_id, limit)


@router.get("/children/{child_id}/summary", response_model=SavingsSummary)
async def summary(
    child_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_SAVINGS)),
    db: AsyncSession = Depends(get_session),
):
    child = await authorize_child_access(db, current_user, child_id)
    _check_visible(child, current_user)
    return await savings_account.get_summary(db, child_id)
