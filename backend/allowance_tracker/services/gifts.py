"""Gift links and the gifts relatives send through them.

A gift link is a public URL with a random token.  Anyone holding it can
see a small portal page for the child and submit a gift, which waits for
a parent to approve or reject it.
"""

import logging
import os
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.acl import ROLE_PARENT
from allowance_tracker.models import (
    Child,
    ContributionType,
    Gift,
    GiftLink,
    GiftLinkVisibility,
    GiftOccasion,
    GiftStatus,
    GoalStatus,
    NotificationType,
    SavingsGoal,
    SavingsTransactionType,
    TransactionCategory,
    TransactionType,
    User,
    WishListItem,
    money,
    naive_utc,
)
from allowance_tracker.services import notifications, savings_account, savings_goals
from allowance_tracker.services.transactions import add_ledger_entry

logger = logging.getLogger(__name__)

GIFT_PORTAL_BASE_URL = os.getenv("GIFT_PORTAL_BASE_URL", "http://localhost:5173")
PENDING_GIFT_EXPIRY = timedelta(days=30)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def portal_url(link: GiftLink) -> str:
    return f"{GIFT_PORTAL_BASE_URL.rstrip('/')}/gift/{link.token}"


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


# --- links ------------------------------------------------------------------


async def create_link(
    db: AsyncSession,
    user: User,
    child_id: int,
    name: str,
    description: str | None = None,
    visibility: GiftLinkVisibility = GiftLinkVisibility.MINIMAL,
    expires_at: datetime | None = None,
    max_uses: int | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    default_occasion: GiftOccasion | None = None,
) -> GiftLink:
    child = await _get_child(db, child_id)
    if user.role != ROLE_PARENT or user.family_id != child.family_id:
        raise PermissionError("You are not authorized to create a gift link for this child.")
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValueError("Minimum amount cannot exceed maximum amount")
    link = GiftLink(
        child_id=child.id,
        family_id=child.family_id,
        created_by_id=user.id,
        token=generate_token(),
        name=name,
        description=description,
        visibility=visibility,
        expires_at=naive_utc(expires_at),
        max_uses=max_uses,
        min_amount=min_amount,
        max_amount=max_amount,
        default_occasion=default_occasion,
    )
    db.add(link)
    await db.commit()
    await db.refresh(link)
    logger.info("Gift link %s created by user %s", link.id, user.id)
    return link


async def get_link(db: AsyncSession, link_id: int) -> GiftLink | None:
    result = await db.execute(select(GiftLink).where(GiftLink.id == link_id))
    return result.scalar_one_or_none()


async def list_family_links(db: AsyncSession, family_id: int) -> list[GiftLink]:
    result = await db.execute(
        select(GiftLink)
        .where(GiftLink.family_id == family_id)
        .order_by(GiftLink.created_at.desc())
    )
    return result.scalars().all()


async def update_link(db: AsyncSession, link: GiftLink, changes: dict) -> GiftLink:
    for key, value in changes.items():
        if value is not None:
            setattr(link, key, naive_utc(value) if key == "expires_at" else value)
    link.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(link)
    return link


async def deactivate_link(db: AsyncSession, link: GiftLink) -> GiftLink:
    link.is_active = False
    link.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(link)
    return link


async def regenerate_token(db: AsyncSession, link: GiftLink) -> GiftLink:
    link.token = generate_token()
    link.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(link)
    return link


async def validate_token(db: AsyncSession, token: str) -> GiftLink | None:
    """Return the usable link for ``token`` or ``None``."""
    result = await db.execute(select(GiftLink).where(GiftLink.token == token))
    link = result.scalar_one_or_none()
    if link is None or not link.is_active:
        return None
    if link.expires_at is not None and link.expires_at <= datetime.utcnow():
        return None
    if link.max_uses is not None and link.use_count >= link.max_uses:
        return None
    return link


async def get_link_stats(db: AsyncSession, link: GiftLink) -> dict:
    result = await db.execute(
        select(Gift.status, func.count(), func.coalesce(func.sum(Gift.amount), 0))
        .where(Gift.gift_link_id == link.id)
        .group_by(Gift.status)
    )
    counts = {}
    approved_total = Decimal("0")
    for status, count, total in result.all():
        counts[status] = count
        if status == GiftStatus.APPROVED:
            approved_total = Decimal(str(total))
    last = await db.execute(
        select(func.max(Gift.created_at)).where(Gift.gift_link_id == link.id)
    )
    return {
        "gift_link_id": link.id,
        "total_gifts": sum(counts.values()),
        "pending_gifts": counts.get(GiftStatus.PENDING, 0),
        "approved_gifts": counts.get(GiftStatus.APPROVED, 0),
        "rejected_gifts": counts.get(GiftStatus.REJECTED, 0),
        "total_amount_received": money(approved_total),
        "last_gift_at": last.scalar(),
    }


# --- portal -----------------------------------------------------------------


async def get_portal_data(db: AsyncSession, token: str) -> dict:
    link = await validate_token(db, token)
    if link is None:
        raise ValueError("Invalid or expired gift link.")
    child = await _get_child(db, link.child_id)
    goals = None
    wish_list = None
    if link.visibility in (GiftLinkVisibility.WITH_GOALS, GiftLinkVisibility.FULL):
        result = await db.execute(
            select(SavingsGoal)
            .where(SavingsGoal.child_id == child.id, SavingsGoal.status == GoalStatus.ACTIVE)
            .order_by(SavingsGoal.priority, SavingsGoal.created_at)
        )
        goals = result.scalars().all()
    if link.visibility == GiftLinkVisibility.FULL:
        result = await db.execute(
            select(WishListItem).where(
                WishListItem.child_id == child.id,
                WishListItem.is_purchased == False,  # noqa: E712
            )
        )
        wish_list = result.scalars().all()
    return {
        "child_first_name": child.first_name,
        "child_avatar_url": child.equipped_avatar_url,
        "min_amount": link.min_amount,
        "max_amount": link.max_amount,
        "default_occasion": link.default_occasion,
        "visibility": link.visibility,
        "savings_goals": goals,
        "wish_list": wish_list,
    }


async def submit_gift(
    db: AsyncSession,
    token: str,
    giver_name: str,
    amount: Decimal,
    giver_email: str | None = None,
    giver_relationship: str | None = None,
    occasion: GiftOccasion = GiftOccasion.JUST_BECAUSE,
    custom_occasion: str | None = None,
    message: str | None = None,
) -> dict:
    link = await validate_token(db, token)
    if link is None:
        raise ValueError("Invalid or expired gift link.")
    amount = money(amount)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    if link.min_amount is not None and amount < link.min_amount:
        raise ValueError(f"Gift amount must be at least ${money(link.min_amount)}.")
    if link.max_amount is not None and amount > link.max_amount:
        raise ValueError(f"Gift amount cannot exceed ${money(link.max_amount)}.")
    child = await _get_child(db, link.child_id)
    gift = Gift(
        gift_link_id=link.id,
        child_id=child.id,
        giver_name=giver_name,
        giver_email=giver_email,
        giver_relationship=giver_relationship,
        amount=amount,
        occasion=occasion,
        custom_occasion=custom_occasion,
        message=message,
    )
    db.add(gift)
    link.use_count += 1
    await db.commit()
    await db.refresh(gift)
    logger.info("Gift %s submitted through link %s", gift.id, link.id)
    try:
        await notifications.send_family_notification(
            db,
            link.family_id,
            NotificationType.GIFT_RECEIVED,
            "New Gift Received!",
            f"{giver_name} sent a gift of ${amount} to {child.first_name}. "
            "Awaiting your approval.",
            exclude_user_id=child.user_id,
        )
    except Exception:
        logger.exception("Failed to notify family about gift %s", gift.id)
    return {
        "gift_id": gift.id,
        "child_first_name": child.first_name,
        "amount": amount,
        "message": (
            f"Thank you for your gift to {child.first_name}! The parents will be "
            "notified and the gift will be added once approved."
        ),
    }


# --- gifts ------------------------------------------------------------------


async def get_gift(db: AsyncSession, gift_id: int) -> Gift | None:
    result = await db.execute(select(Gift).where(Gift.id == gift_id))
    return result.scalar_one_or_none()


async def get_pending_gifts(db: AsyncSession, family_id: int) -> list[Gift]:
    result = await db.execute(
        select(Gift)
        .join(GiftLink, GiftLink.id == Gift.gift_link_id)
        .where(GiftLink.family_id == family_id, Gift.status == GiftStatus.PENDING)
        .order_by(Gift.created_at.desc())
    )
    return result.scalars().all()


async def get_child_gifts(db: AsyncSession, child_id: int) -> list[Gift]:
    result = await db.execute(
        select(Gift).where(Gift.child_id == child_id).order_by(Gift.created_at.desc())
    )
    return result.scalars().all()


async def _require_pending(db: AsyncSession, gift_id: int) -> Gift:
    gift = await get_gift(db, gift_id)
    if gift is None:
        raise ValueError("Gift not found.")
    if gift.status != GiftStatus.PENDING:
        raise ValueError("Gift has already been processed.")
    return gift


def gift_description(gift: Gift) -> str:
    description = f"Gift from {gift.giver_name}"
    if gift.occasion != GiftOccasion.JUST_BECAUSE:
        description += f" ({gift.custom_occasion or gift.occasion.value})"
    return description


async def approve_gift(
    db: AsyncSession,
    gift_id: int,
    approver: User,
    allocate_to_goal_id: int | None = None,
    savings_percentage: int | None = None,
) -> Gift:
    """Credit the gift, then route it to a goal or split it into savings.

    The full amount is credited to spending first so the ledger shows the
    gift; any goal or savings share moves out of spending right after.
    """
    gift = await _require_pending(db, gift_id)
    child = await _get_child(db, gift.child_id)
    if approver.family_id != child.family_id:
        raise ValueError("Gift not found.")
    if savings_percentage is not None and not 0 <= savings_percentage <= 100:
        raise ValueError("Savings percentage must be between 0 and 100")

    goal = None
    if allocate_to_goal_id is not None:
        goal = await savings_goals.get_goal(db, allocate_to_goal_id)
        if goal is None or goal.child_id != child.id:
            raise ValueError("Goal not found")

    tx = add_ledger_entry(
        db,
        child,
        gift.amount,
        TransactionType.CREDIT,
        TransactionCategory.GIFT,
        gift_description(gift),
        created_by_id=approver.id,
    )
    await db.flush()
    if goal is not None:
        child.current_balance = money(child.current_balance - gift.amount)
        savings_goals.add_external_contribution(
            db, goal, gift.amount, ContributionType.EXTERNAL_GIFT,
            gift_description(gift), approver.id,
        )
        gift.allocate_to_goal_id = goal.id
    elif savings_percentage:
        share = money(Decimal(gift.amount) * savings_percentage / 100)
        if share > 0:
            savings_account.record_movement(
                db, child, share, SavingsTransactionType.DEPOSIT,
                gift_description(gift), approver.id,
            )
        gift.savings_percentage = savings_percentage

    gift.status = GiftStatus.APPROVED
    gift.processed_by_id = approver.id
    gift.processed_at = datetime.utcnow()
    gift.transaction_id = tx.id
    await db.commit()
    await db.refresh(gift)
    logger.info("Gift %s approved by user %s", gift.id, approver.id)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.GIFT_RECEIVED,
            "You received a gift!",
            f"{gift.giver_name} sent you ${gift.amount}!",
            data={"gift_id": gift.id, "amount": str(gift.amount)},
            related_entity_id=gift.id,
            related_entity_type="Gift",
        )
    except Exception:
        logger.exception("Failed to notify child %s about gift %s", child.id, gift.id)
    return gift


async def reject_gift(
    db: AsyncSession, gift_id: int, approver: User, reason: str | None = None
) -> Gift:
    gift = await _require_pending(db, gift_id)
    child = await _get_child(db, gift.child_id)
    if approver.family_id != child.family_id:
        raise ValueError("Gift not found.")
    gift.status = GiftStatus.REJECTED
    gift.rejection_reason = reason
    gift.processed_by_id = approver.id
    gift.processed_at = datetime.utcnow()
    await db.commit()
    await db.refresh(gift)
    logger.info("Gift %s rejected by user %s", gift.id, approver.id)
    return gift


async def expire_old_gifts(db: AsyncSession) -> int:
    cutoff = datetime.utcnow() - PENDING_GIFT_EXPIRY
    result = await db.execute(
        select(Gift).where(Gift.status == GiftStatus.PENDING, Gift.created_at < cutoff)
    )
    expired = result.scalars().all()
    for gift in expired:
        gift.status = GiftStatus.EXPIRED
    await db.commit()
    if expired:
        logger.info("Expired %d pending gift(s)", len(expired))
    return len(expired)
