"""The child ledger.

Every balance change goes through ``create_transaction`` which appends an
immutable row holding the balance after the change.
"""

import logging
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    BadgeTrigger,
    Child,
    NotificationType,
    SavingsTransaction,
    SavingsTransactionType,
    Transaction,
    TransactionCategory,
    TransactionType,
    money,
)
from allowance_tracker.services import achievements, budgets, notifications

logger = logging.getLogger(__name__)


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


def add_ledger_entry(
    db: AsyncSession,
    child: Child,
    amount: Decimal,
    ttype: TransactionType,
    category: TransactionCategory,
    description: str,
    created_by_id: int | None = None,
    notes: str | None = None,
) -> Transaction:
    """Apply ``amount`` to the child's balance and stage the ledger row.

    No validation and no commit; callers own both.
    """
    amount = money(amount)
    if ttype == TransactionType.CREDIT:
        child.current_balance = money(child.current_balance + amount)
    else:
        child.current_balance = money(child.current_balance - amount)
    tx = Transaction(
        child_id=child.id,
        amount=amount,
        type=ttype,
        category=category,
        description=description,
        notes=notes,
        balance_after=child.current_balance,
        created_by_id=created_by_id,
    )
    db.add(tx)
    return tx


async def create_transaction(
    db: AsyncSession,
    child_id: int,
    amount: Decimal,
    ttype: TransactionType,
    category: TransactionCategory,
    description: str,
    created_by_id: int | None = None,
    notes: str | None = None,
    draw_from_savings: bool = False,
) -> Transaction:
    amount = money(amount)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    child = await _get_child(db, child_id)

    if ttype == TransactionType.DEBIT:
        check = await budgets.check_budget(db, child_id, category, amount)
        if not check["allowed"]:
            raise ValueError(check["message"])

        shortfall = amount - child.current_balance
        if shortfall > 0:
            if draw_from_savings:
                savings = Decimal(child.savings_balance)
                if savings < shortfall and not child.allow_debt:
                    available = money(max(child.current_balance, 0) + savings)
                    raise ValueError(
                        "Insufficient funds. Total available (spending + savings): "
                        f"${available}"
                    )
                moved = money(min(savings, shortfall))
                if moved > 0:
                    child.savings_balance = money(savings - moved)
                    child.current_balance = money(child.current_balance + moved)
                    db.add(
                        SavingsTransaction(
                            child_id=child.id,
                            amount=moved,
                            type=SavingsTransactionType.WITHDRAWAL,
                            description=f"Covered purchase: {description}",
                            balance_after=child.savings_balance,
                            created_by_id=created_by_id,
                        )
                    )
            elif not child.allow_debt:
                raise ValueError("Insufficient funds")

    tx = add_ledger_entry(
        db, child, amount, ttype, category, description, created_by_id, notes
    )
    await db.commit()
    await db.refresh(tx)
    logger.info(
        "Transaction %s (%s %s) recorded for child %s", tx.id, ttype.value, amount, child_id
    )
    await _after_transaction(db, child, tx)
    return tx


async def _after_transaction(db: AsyncSession, child: Child, tx: Transaction) -> None:
    try:
        if tx.type == TransactionType.CREDIT:
            title = "Money Added"
            body = f"${tx.amount} was added: {tx.description}"
        else:
            title = "Purchase Recorded"
            body = f"${tx.amount} spent: {tx.description}"
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.TRANSACTION_CREATED,
            title,
            body,
            data={"transaction_id": tx.id, "balance": str(tx.balance_after)},
            related_entity_id=tx.id,
            related_entity_type="Transaction",
        )
        if tx.type == TransactionType.DEBIT:
            await _budget_alert(db, child, tx)
        await achievements.check_and_unlock_badges(
            db, child.id, BadgeTrigger.TRANSACTION_CREATED, {"amount": str(tx.amount)}
        )
        await achievements.check_and_unlock_badges(
            db, child.id, BadgeTrigger.BALANCE_CHANGED
        )
    except Exception:
        logger.exception("Post-transaction processing failed for transaction %s", tx.id)


async def _budget_alert(db: AsyncSession, child: Child, tx: Transaction) -> None:
    budget = await budgets.get_budget(db, child.id, tx.category)
    if budget is None:
        return
    status = await budgets.get_budget_status(db, budget)
    pct = status["percent_used"]
    before = (
        (status["current_spending"] - tx.amount) / Decimal(budget.limit_amount) * 100
    )
    if pct > 100 and before <= 100:
        ntype, title = NotificationType.BUDGET_EXCEEDED, "Budget Exceeded"
    elif pct >= budget.alert_threshold_percent and before < budget.alert_threshold_percent:
        ntype, title = NotificationType.BUDGET_WARNING, "Budget Warning"
    else:
        return
    await notifications.send_notification(
        db,
        child.user_id,
        ntype,
        title,
        f"You've used {pct}% of your {tx.category.value} budget",
        data={"category": tx.category.value, "percent_used": str(pct)},
        related_entity_id=budget.id,
        related_entity_type="CategoryBudget",
    )


async def get_transaction(db: AsyncSession, transaction_id: int) -> Transaction | None:
    result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
    return result.scalar_one_or_none()


async def get_child_transactions(
    db: AsyncSession, child_id: int, limit: int = 20
) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.child_id == child_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_balance(db: AsyncSession, child_id: int) -> dict:
    child = await _get_child(db, child_id)
    return {
        "child_id": child.id,
        "current_balance": child.current_balance,
        "savings_balance": child.savings_balance,
        "total": money(child.current_balance + child.savings_balance),
    }


async def get_category_spending(db: AsyncSession, child_id: int) -> list[dict]:
    """Debit totals per category with their share of all spending."""
    result = await db.execute(
        select(
            Transaction.category,
            func.sum(Transaction.amount),
            func.count(Transaction.id),
        )
        .where(
            Transaction.child_id == child_id,
            Transaction.type == TransactionType.DEBIT,
        )
        .group_by(Transaction.category)
    )
    rows = [(cat, money(total), count) for cat, total, count in result.all()]
    grand_total = sum((total for _, total, _ in rows), Decimal("0"))
    breakdown = [
        {
            "category": cat,
            "amount": total,
            "transaction_count": count,
            "percentage": money(total / grand_total * 100) if grand_total else Decimal("0"),
        }
        for cat, total, count in rows
    ]
    breakdown.sort(key=lambda row: row["amount"], reverse=True)
    return breakdown
