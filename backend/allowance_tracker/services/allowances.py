"""Weekly allowance payments and adjustments."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    AllowanceAdjustment,
    AllowanceAdjustmentType,
    Child,
    DayOfWeek,
    NotificationType,
    Transaction,
    TransactionCategory,
    TransactionType,
    money,
)
from allowance_tracker.services import notifications, savings_account, savings_goals
from allowance_tracker.services.transactions import add_ledger_entry

logger = logging.getLogger(__name__)

PAYMENT_INTERVAL = timedelta(days=7)


def check_eligibility(child: Child, now: datetime | None = None) -> str | None:
    """Return why ``child`` cannot be paid now, or ``None`` when they can."""
    now = now or datetime.utcnow()
    if child.weekly_allowance is None or child.weekly_allowance <= 0:
        return "Child has no weekly allowance configured"
    if child.allowance_paused:
        return "Allowance is currently paused"
    if child.allowance_day is not None and DayOfWeek.from_date(now.date()) != child.allowance_day:
        return "Today is not the scheduled allowance day"
    if child.last_allowance_date is not None:
        if child.allowance_day is not None:
            # same weekday last week counts as a full week
            due = child.last_allowance_date.date() + PAYMENT_INTERVAL
            if now.date() < due:
                return "Allowance already paid this week"
        elif now - child.last_allowance_date < PAYMENT_INTERVAL:
            return "Allowance already paid this week"
    return None


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


async def pay_weekly_allowance(
    db: AsyncSession, child_id: int, now: datetime | None = None
) -> Transaction:
    now = now or datetime.utcnow()
    child = await _get_child(db, child_id)
    reason = check_eligibility(child, now)
    if reason:
        raise ValueError(reason)

    amount = money(child.weekly_allowance)
    tx = add_ledger_entry(
        db,
        child,
        amount,
        TransactionType.CREDIT,
        TransactionCategory.ALLOWANCE,
        f"Weekly Allowance - {now.date().isoformat()}",
    )
    child.last_allowance_date = now
    await db.flush()
    await savings_account.process_allowance_transfer(db, child, amount, tx.id)
    await db.commit()
    await db.refresh(tx)
    logger.info("Paid allowance of %s to child %s", amount, child_id)

    await savings_goals.process_auto_transfers(db, child_id, amount)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.ALLOWANCE_DEPOSIT,
            "Allowance Received",
            f"Your weekly allowance of ${amount} has arrived!",
            data={"transaction_id": tx.id},
            related_entity_id=tx.id,
            related_entity_type="Transaction",
        )
    except Exception:
        logger.exception("Failed to notify child %s about allowance", child_id)
    return tx


async def process_all_pending_allowances(db: AsyncSession) -> dict:
    """Pay every eligible child; one failure does not stop the run."""
    now = datetime.utcnow()
    result = await db.execute(
        select(Child).where(
            Child.weekly_allowance > 0,
            Child.allowance_paused == False,  # noqa: E712
        )
    )
    child_ids = [c.id for c in result.scalars().all() if check_eligibility(c, now) is None]
    processed = 0
    failed = 0
    for child_id in child_ids:
        try:
            await pay_weekly_allowance(db, child_id, now)
            processed += 1
        except Exception:
            failed += 1
            logger.exception("Failed to pay allowance for child %s", child_id)
            await db.rollback()
    logger.info("Allowance run finished: %d processed, %d failed", processed, failed)
    return {"processed": processed, "failed": failed}


async def pause_allowance(
    db: AsyncSession, child_id: int, reason: str | None, adjusted_by_id: int | None = None
) -> Child:
    child = await _get_child(db, child_id)
    child.allowance_paused = True
    child.allowance_paused_reason = reason
    db.add(
        AllowanceAdjustment(
            child_id=child.id,
            adjustment_type=AllowanceAdjustmentType.PAUSED,
            reason=reason,
            adjusted_by_id=adjusted_by_id,
        )
    )
    await db.commit()
    await db.refresh(child)
    logger.info("Allowance paused for child %s", child_id)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.ALLOWANCE_PAUSED,
            "Allowance Paused",
            f"Your allowance has been paused{': ' + reason if reason else ''}",
        )
    except Exception:
        logger.exception("Failed to notify child %s about paused allowance", child_id)
    return child


async def resume_allowance(
    db: AsyncSession, child_id: int, reason: str | None = None, adjusted_by_id: int | None = None
) -> Child:
    child = await _get_child(db, child_id)
    if not child.allowance_paused:
        return child
    child.allowance_paused = False
    child.allowance_paused_reason = None
    db.add(
        AllowanceAdjustment(
            child_id=child.id,
            adjustment_type=AllowanceAdjustmentType.RESUMED,
            reason=reason,
            adjusted_by_id=adjusted_by_id,
        )
    )
    await db.commit()
    await db.refresh(child)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.ALLOWANCE_RESUMED,
            "Allowance Resumed",
            "Your weekly allowance is back on.",
        )
    except Exception:
        logger.exception("Failed to notify child %s about resumed allowance", child_id)
    return child


async def adjust_allowance_amount(
    db: AsyncSession,
    child_id: int,
    new_amount: Decimal,
    reason: str | None = None,
    adjusted_by_id: int | None = None,
) -> Child:
    if new_amount < 0:
        raise ValueError("Weekly allowance cannot be negative")
    child = await _get_child(db, child_id)
    db.add(
        AllowanceAdjustment(
            child_id=child.id,
            adjustment_type=AllowanceAdjustmentType.AMOUNT_CHANGED,
            old_amount=child.weekly_allowance,
            new_amount=money(new_amount),
            reason=reason,
            adjusted_by_id=adjusted_by_id,
        )
    )
    child.weekly_allowance = money(new_amount)
    await db.commit()
    await db.refresh(child)
    return child


async def get_adjustment_history(db: AsyncSession, child_id: int) -> list[AllowanceAdjustment]:
    result = await db.execute(
        select(AllowanceAdjustment)
        .where(AllowanceAdjustment.child_id == child_id)
        .order_by(AllowanceAdjustment.created_at, AllowanceAdjustment.id)
    )
    return result.scalars().all()
