import logging
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_BUDGETS
from allowance_tracker.auth import authorize_child_access, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import TransactionCategory, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    BudgetCheckRead,
    BudgetRead,
    BudgetSet,
    BudgetStatusRead,
)
from allowance_tracker.services import budgets

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.put("", response_model=BudgetRead)
async def set_budget(
    data: BudgetSet,
    current_user: User = Depends(require_permissions(PERM_MANAGE_BUDGETS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id, parent_only=True)
    try:
        budget = await budgets.set_budget(
            db,
            data.child_id,
            data.category,
            data.limit_amount,
            data.period,
            data.alert_threshold_percent,
            data.enforce_limit,
            created_by_id=current_user.id,
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Budget %s saved by user %s", budget.id, current_user.id)
    return budget


@router.get("/children/{child_id}", response_model=List[BudgetRead])
async def list_budgets(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await budgets.list_budgets(db, child_id)


@router.get("/children/{child_id}/status", response_model=List[BudgetStatusRead])
async def budget_statuses(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await budgets.get_all_budget_statuses(db, child_id)


@router.get("/children/{child_id}/check", response_model=BudgetCheckRead)
async def check_budget(
    child_id: int,
    category: TransactionCategory,
    amount: Decimal = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await budgets.check_budget(db, child_id, category, amount)


@router.get("/children/{child_id}/{category}", response_model=BudgetRead)
async def get_budget(
    child_id: int,
    category: TransactionCategory,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    budget = await budgets.get_budget(db, child_id, category)
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


@router.delete("/{budget_id}", status_code=204)
async def delete_budget(
    budget_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_BUDGETS)),
    db: AsyncSession = Depends(get_session),
):
    budget = await budgets.get_budget_by_id(db, budget_id)
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    await authorize_child_access(db, current_user, budget.child_id, parent_only=True)
    await budgets.delete_budget(db, budget)
    logger.info("Budget %s deleted by user %s", budget_id, current_user.id)
