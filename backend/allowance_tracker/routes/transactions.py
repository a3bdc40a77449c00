import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_ADD_TRANSACTION, PERM_VIEW_TRANSACTIONS
from allowance_tracker.auth import authorize_child_access, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    BalanceRead,
    CategorySpending,
    TransactionCreate,
    TransactionRead,
)
from allowance_tracker.services import transactions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=TransactionRead, status_code=201)
async def create_transaction(
    data: TransactionCreate,
    current_user: User = Depends(require_permissions(PERM_ADD_TRANSACTION)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id, parent_only=True)
    try:
        tx = await transactions.create_transaction(
            db,
            data.child_id,
            data.amount,
            data.type,
            data.category,
            data.description,
            created_by_id=current_user.id,
            notes=data.notes,
            draw_from_savings=data.draw_from_savings,
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Transaction %s created by user %s", tx.id, current_user.id)
    return tx


@router.get("/children/{child_id}", response_model=List[TransactionRead])
async def list_transactions(
    child_id: int,
    limit: int = Query(20, ge=1, le=500),
    current_user: User = Depends(require_permissions(PERM_VIEW_TRANSACTIONS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await transactions.get_child_transactions(db, child_id, limit)


@router.get("/children/{child_id}/balance", response_model=BalanceRead)
async def get_balance(
    child_id: int,
    current_user: User = Depends(require_permissions(PERM_VIEW_TRANSACTIONS)),
    db: AsyncSession = Depends(get_session),
):
    child = await authorize_child_access(db, current_user, child_id)
    balance = await transactions.get_balance(db, child_id)
    if current_user.id == child.user_id and not child.savings_balance_visible_to_child:
        balance["savings_balance"] = 0
        balance["total"] = balance["current_balance"]
    return balance


@router.get("/children/{child_id}/categories", response_model=List[CategorySpending])
async def category_spending(
    child_id: int,
    current_user: User = Depends(require_permissions(PERM_VIEW_TRANSACTIONS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await transactions.get_category_spending(db, child_id)
