"""A child's savings account, kept apart from spending money and goals."""

import logging
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    BadgeTrigger,
    Child,
    SavingsTransaction,
    SavingsTransactionType,
    TransferType,
    money,
)
from allowance_tracker.services import achievements

logger = logging.getLogger(__name__)


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


def _validate_config(transfer_type: TransferType, amount: Decimal, percentage: int) -> None:
    if transfer_type == TransferType.PERCENTAGE and not 0 <= percentage <= 100:
        raise ValueError(
            "Invalid savings configuration. Percentage must be between 0 and 100."
        )
    if transfer_type == TransferType.FIXED_AMOUNT and amount < 0:
        raise ValueError("Invalid savings configuration. Amount cannot be negative.")


async def enable_savings_account(
    db: AsyncSession,
    child_id: int,
    transfer_type: TransferType,
    transfer_amount: Decimal = Decimal("0"),
    transfer_percentage: int = 0,
) -> Child:
    _validate_config(transfer_type, transfer_amount, transfer_percentage)
    child = await _get_child(db, child_id)
    child.savings_account_enabled = True
    child.savings_transfer_type = transfer_type
    child.savings_transfer_amount = money(transfer_amount)
    child.savings_transfer_percentage = transfer_percentage
    await db.commit()
    await db.refresh(child)
    logger.info("Savings account enabled for child %s", child_id)
    return child


update_savings_config = enable_savings_account


async def disable_savings_account(db: AsyncSession, child_id: int) -> Child:
    """Stop automatic transfers; the balance stays where it is."""
    child = await _get_child(db, child_id)
    child.savings_account_enabled = False
    child.savings_transfer_type = TransferType.NONE
    await db.commit()
    await db.refresh(child)
    return child


def record_movement(
    db: AsyncSession,
    child: Child,
    amount: Decimal,
    stype: SavingsTransactionType,
    description: str,
    created_by_id: int | None = None,
    is_automatic: bool = False,
    source_id: int | None = None,
) -> SavingsTransaction:
    if stype == SavingsTransactionType.WITHDRAWAL:
        child.savings_balance = money(child.savings_balance - amount)
        child.current_balance = money(child.current_balance + amount)
    else:
        child.savings_balance = money(child.savings_balance + amount)
        child.current_balance = money(child.current_balance - amount)
    row = SavingsTransaction(
        child_id=child.id,
        amount=amount,
        type=stype,
        description=description,
        balance_after=child.savings_balance,
        is_automatic=is_automatic,
        source_allowance_transaction_id=source_id,
        created_by_id=created_by_id,
    )
    db.add(row)
    return row


async def deposit(
    db: AsyncSession,
    child_id: int,
    amount: Decimal,
    description: str = "Deposit to savings",
    created_by_id: int | None = None,
) -> SavingsTransaction:
    amount = money(amount)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    child = await _get_child(db, child_id)
    if child.current_balance < amount:
        raise ValueError("Insufficient balance")
    row = record_movement(
        db, child, amount, SavingsTransactionType.DEPOSIT, description, created_by_id
    )
    streak_changed = achievements.record_saving_activity(child)
    await db.commit()
    await db.refresh(row)
    try:
        await achievements.check_and_unlock_badges(
            db, child_id, BadgeTrigger.SAVINGS_DEPOSIT, {"amount": str(amount)}
        )
        if streak_changed:
            await achievements.check_and_unlock_badges(
                db, child_id, BadgeTrigger.STREAK_UPDATED
            )
    except Exception:
        logger.exception("Badge check failed after savings deposit for child %s", child_id)
    return row


async def withdraw(
    db: AsyncSession,
    child_id: int,
    amount: Decimal,
    description: str = "Withdrawal from savings",
    created_by_id: int | None = None,
) -> SavingsTransaction:
    amount = money(amount)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    child = await _get_child(db, child_id)
    if child.savings_balance < amount:
        raise ValueError("Insufficient savings balance")
    row = record_movement(
        db, child, amount, SavingsTransactionType.WITHDRAWAL, description, created_by_id
    )
    await db.commit()
    await db.refresh(row)
    return row


def calculate_transfer_amount(child: Child, allowance_amount: Decimal) -> Decimal:
    if child.savings_transfer_type == TransferType.FIXED_AMOUNT:
        return money(child.savings_transfer_amount)
    if child.savings_transfer_type == TransferType.PERCENTAGE:
        return money(Decimal(allowance_amount) * child.savings_transfer_percentage / 100)
    return Decimal("0.00")


async def process_allowance_transfer(
    db: AsyncSession,
    child: Child,
    allowance_amount: Decimal,
    allowance_transaction_id: int | None = None,
) -> SavingsTransaction | None:
    """Move the configured share of an allowance into savings.

    Stages the change without committing; the allowance payment commits.
    """
    if not child.savings_account_enabled:
        return None
    amount = calculate_transfer_amount(child, allowance_amount)
    if amount <= 0 or child.current_balance < amount:
        return None
    row = record_movement(
        db,
        child,
        amount,
        SavingsTransactionType.AUTO_TRANSFER,
        "Automatic transfer from allowance",
        is_automatic=True,
        source_id=allowance_transaction_id,
    )
    achievements.record_saving_activity(child)
    return row


async def get_balance(db: AsyncSession, child_id: int) -> Decimal:
    child = await _get_child(db, child_id)
    return child.savings_balance


async def get_history(
    db: AsyncSession, child_id: int, limit: int = 50
) -> list[SavingsTransaction]:
    result = await db.execute(
        select(SavingsTransaction)
        .where(SavingsTransaction.child_id == child_id)
        .order_by(SavingsTransaction.created_at.desc(), SavingsTransaction.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


def describe_config(child: Child) -> str:
    if not child.savings_account_enabled:
        return "Savings account disabled"
    if child.savings_transfer_type == TransferType.FIXED_AMOUNT:
        return f"Save ${money(child.savings_transfer_amount)} from each allowance"
    if child.savings_transfer_type == TransferType.PERCENTAGE:
        return f"Save {child.savings_transfer_percentage}% of each allowance"
    return "Manual deposits only"


async def get_summary(db: AsyncSession, child_id: int) -> dict:
    child = await _get_child(db, child_id)
    totals = await db.execute(
        select(
            SavingsTransaction.type,
            func.coalesce(func.sum(SavingsTransaction.amount), 0),
            func.count(SavingsTransaction.id),
            func.max(SavingsTransaction.created_at),
        )
        .where(SavingsTransaction.child_id == child_id)
        .group_by(SavingsTransaction.type)
    )
    deposited = Decimal("0")
    withdrawn = Decimal("0")
    count = 0
    last = None
    for stype, total, n, latest in totals.all():
        count += n
        if latest is not None and (last is None or latest > last):
            last = latest
        if stype == SavingsTransactionType.WITHDRAWAL:
            withdrawn += Decimal(str(total))
        else:
            deposited += Decimal(str(total))
    return {
        "child_id": child.id,
        "is_enabled": child.savings_account_enabled,
        "current_balance": child.savings_balance,
        "transfer_type": child.savings_transfer_type,
        "transfer_amount": child.savings_transfer_amount,
        "transfer_percentage": child.savings_transfer_percentage,
        "total_deposited": money(deposited),
        "total_withdrawn": money(withdrawn),
        "transaction_count": count,
        "last_transaction_date": last,
        "config_description": describe_config(child),
    }
