"""Savings goals and the contribution engine.

A contribution moves money from the child's spending balance into a goal
and then applies everything the deposit can set off: a parent match,
milestone bonuses, challenge completion and goal completion.  All of it is
written in a single commit; notifications and badge checks run after the
commit and never undo it.
"""

import logging
from datetime import datetime
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    BadgeTrigger,
    ChallengeStatus,
    Child,
    ContributionType,
    GoalCategory,
    GoalChallenge,
    GoalMilestone,
    GoalStatus,
    MatchingType,
    NotificationType,
    ParentMatchingRule,
    SavingsContribution,
    SavingsGoal,
    TransferType,
    money,
    naive_utc,
)
from allowance_tracker.services import achievements, notifications

logger = logging.getLogger(__name__)

MILESTONE_PERCENTS = (25, 50, 75, 100)


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


async def get_goal(db: AsyncSession, goal_id: int) -> SavingsGoal | None:
    result = await db.execute(select(SavingsGoal).where(SavingsGoal.id == goal_id))
    return result.scalar_one_or_none()


async def _require_goal(db: AsyncSession, goal_id: int) -> SavingsGoal:
    goal = await get_goal(db, goal_id)
    if goal is None:
        raise ValueError("Goal not found")
    return goal


# --- goal CRUD --------------------------------------------------------------


async def create_goal(
    db: AsyncSession,
    child_id: int,
    name: str,
    target_amount: Decimal,
    description: str | None = None,
    category: GoalCategory = GoalCategory.OTHER,
    priority: int = 1,
    image_url: str | None = None,
    product_url: str | None = None,
    target_date=None,
    auto_transfer_type: TransferType = TransferType.NONE,
    auto_transfer_amount: Decimal = Decimal("0"),
    auto_transfer_percentage: int = 0,
) -> SavingsGoal:
    target_amount = money(target_amount)
    if target_amount <= 0:
        raise ValueError("Target amount must be positive")
    child = await _get_child(db, child_id)
    goal = SavingsGoal(
        child_id=child.id,
        name=name,
        description=description,
        target_amount=target_amount,
        category=category,
        priority=priority,
        image_url=image_url,
        product_url=product_url,
        target_date=target_date,
        auto_transfer_type=auto_transfer_type,
        auto_transfer_amount=money(auto_transfer_amount),
        auto_transfer_percentage=auto_transfer_percentage,
    )
    db.add(goal)
    await db.flush()
    for pct in MILESTONE_PERCENTS:
        db.add(
            GoalMilestone(
                goal_id=goal.id,
                percent_complete=pct,
                target_amount=money(target_amount * pct / 100),
                celebration_message=f"You've reached {pct}% of your goal!",
            )
        )
    await db.commit()
    await db.refresh(goal)
    try:
        await achievements.check_and_unlock_badges(db, child.id, BadgeTrigger.GOAL_CREATED)
    except Exception:
        logger.exception("Badge check failed after creating goal %s", goal.id)
    return goal


async def list_goals(
    db: AsyncSession,
    child_id: int,
    status: GoalStatus | None = None,
    include_completed: bool = False,
) -> list[SavingsGoal]:
    query = select(SavingsGoal).where(SavingsGoal.child_id == child_id)
    if status is not None:
        query = query.where(SavingsGoal.status == status)
    elif not include_completed:
        query = query.where(SavingsGoal.status.in_([GoalStatus.ACTIVE, GoalStatus.PAUSED]))
    result = await db.execute(query.order_by(SavingsGoal.priority, SavingsGoal.created_at))
    return result.scalars().all()


async def get_milestones(db: AsyncSession, goal_id: int) -> list[GoalMilestone]:
    result = await db.execute(
        select(GoalMilestone)
        .where(GoalMilestone.goal_id == goal_id)
        .order_by(GoalMilestone.percent_complete)
    )
    return result.scalars().all()


async def update_goal(db: AsyncSession, goal_id: int, changes: dict) -> SavingsGoal:
    goal = await _require_goal(db, goal_id)
    if goal.status in (GoalStatus.CANCELLED, GoalStatus.PURCHASED):
        raise ValueError("Cannot update a cancelled or purchased goal")
    new_target = changes.get("target_amount")
    if new_target is not None:
        new_target = money(new_target)
        if new_target <= 0:
            raise ValueError("Target amount must be positive")
        changes["target_amount"] = new_target
    for key, value in changes.items():
        if value is not None:
            setattr(goal, key, value)
    now = datetime.utcnow()
    if new_target is not None:
        for milestone in await get_milestones(db, goal.id):
            milestone.target_amount = money(new_target * milestone.percent_complete / 100)
            if not milestone.is_achieved and goal.current_amount >= milestone.target_amount:
                milestone.is_achieved = True
                milestone.achieved_at = now
        _complete_if_reached(goal, now)
    goal.updated_at = now
    await db.commit()
    await db.refresh(goal)
    return goal


async def cancel_goal(db: AsyncSession, goal_id: int) -> SavingsGoal:
    """Cancel a goal and return its saved money to the child."""
    goal = await _require_goal(db, goal_id)
    if goal.status in (GoalStatus.CANCELLED, GoalStatus.PURCHASED):
        raise ValueError("Goal is already closed")
    child = await _get_child(db, goal.child_id)
    refund = money(goal.current_amount)
    if refund > 0:
        child.current_balance = money(child.current_balance + refund)
        goal.current_amount = Decimal("0.00")
        db.add(
            SavingsContribution(
                goal_id=goal.id,
                child_id=child.id,
                amount=-refund,
                type=ContributionType.WITHDRAWAL,
                goal_balance_after=goal.current_amount,
                description="Refund for cancelled goal",
            )
        )
    goal.status = GoalStatus.CANCELLED
    goal.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(goal)
    logger.info("Goal %s cancelled, refunded %s", goal.id, refund)
    return goal


async def pause_goal(db: AsyncSession, goal_id: int) -> SavingsGoal:
    goal = await _require_goal(db, goal_id)
    if goal.status != GoalStatus.ACTIVE:
        raise ValueError("Only active goals can be paused")
    goal.status = GoalStatus.PAUSED
    goal.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(goal)
    return goal


async def resume_goal(db: AsyncSession, goal_id: int) -> SavingsGoal:
    goal = await _require_goal(db, goal_id)
    if goal.status != GoalStatus.PAUSED:
        raise ValueError("Only paused goals can be resumed")
    goal.status = GoalStatus.ACTIVE
    goal.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(goal)
    return goal


async def mark_purchased(db: AsyncSession, goal_id: int) -> SavingsGoal:
    goal = await _require_goal(db, goal_id)
    if goal.status != GoalStatus.COMPLETED:
        raise ValueError("Goal must be completed before marking as purchased")
    goal.status = GoalStatus.PURCHASED
    goal.purchased_at = datetime.utcnow()
    goal.updated_at = goal.purchased_at
    await db.commit()
    await db.refresh(goal)
    return goal


async def get_contributions(
    db: AsyncSession,
    goal_id: int,
    ctype: ContributionType | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SavingsContribution]:
    query = select(SavingsContribution).where(SavingsContribution.goal_id == goal_id)
    if ctype is not None:
        query = query.where(SavingsContribution.type == ctype)
    if start is not None:
        query = query.where(SavingsContribution.created_at >= start)
    if end is not None:
        query = query.where(SavingsContribution.created_at <= end)
    result = await db.execute(
        query.order_by(SavingsContribution.created_at.desc(), SavingsContribution.id.desc())
    )
    return result.scalars().all()


# --- contributions ----------------------------------------------------------


async def get_matching_rule(db: AsyncSession, goal_id: int) -> ParentMatchingRule | None:
    result = await db.execute(
        select(ParentMatchingRule).where(ParentMatchingRule.goal_id == goal_id)
    )
    return result.scalar_one_or_none()


async def get_active_challenge(db: AsyncSession, goal_id: int) -> GoalChallenge | None:
    result = await db.execute(
        select(GoalChallenge).where(
            GoalChallenge.goal_id == goal_id,
            GoalChallenge.status == ChallengeStatus.ACTIVE,
        )
    )
    return result.scalars().first()


def calculate_match(rule: ParentMatchingRule | None, amount: Decimal, now: datetime) -> Decimal:
    """Parent top-up for a deposit of ``amount`` under ``rule``."""
    if rule is None or not rule.is_active:
        return Decimal("0.00")
    if rule.expires_at is not None and rule.expires_at <= now:
        return Decimal("0.00")
    if rule.matching_type == MatchingType.RATIO_MATCH:
        match = amount * Decimal(rule.match_ratio)
    elif rule.matching_type == MatchingType.PERCENTAGE_MATCH:
        match = amount * Decimal(rule.match_ratio) / 100
    else:
        return Decimal("0.00")
    if rule.max_match_amount is not None:
        remaining = Decimal(rule.max_match_amount) - Decimal(rule.total_matched_amount)
        match = min(match, max(remaining, Decimal("0")))
    return money(match)


def _add_contribution(
    db: AsyncSession,
    goal: SavingsGoal,
    amount: Decimal,
    ctype: ContributionType,
    description: str | None,
    created_by_id: int | None = None,
    parent_match_id: int | None = None,
) -> SavingsContribution:
    goal.current_amount = money(goal.current_amount + amount)
    row = SavingsContribution(
        goal_id=goal.id,
        child_id=goal.child_id,
        amount=money(amount),
        type=ctype,
        goal_balance_after=goal.current_amount,
        description=description,
        created_by_id=created_by_id,
        parent_match_id=parent_match_id,
    )
    db.add(row)
    return row


def _complete_if_reached(goal: SavingsGoal, now: datetime) -> bool:
    if goal.status == GoalStatus.ACTIVE and goal.current_amount >= goal.target_amount:
        goal.status = GoalStatus.COMPLETED
        goal.completed_at = now
        return True
    return False


async def contribute(
    db: AsyncSession,
    goal_id: int,
    amount: Decimal,
    description: str | None = None,
    created_by_id: int | None = None,
) -> dict:
    amount = money(amount)
    goal = await _require_goal(db, goal_id)
    if goal.status != GoalStatus.ACTIVE:
        raise ValueError("Goal is not active")
    if amount <= 0:
        raise ValueError("Amount must be positive")
    child = await _get_child(db, goal.child_id)
    if child.current_balance < amount:
        raise ValueError("Insufficient balance")

    now = datetime.utcnow()
    child.current_balance = money(child.current_balance - amount)
    deposit = _add_contribution(
        db, goal, amount, ContributionType.CHILD_DEPOSIT,
        description or "Deposit to goal", created_by_id,
    )
    await db.flush()

    rule = await get_matching_rule(db, goal.id)
    match = calculate_match(rule, amount, now)
    if match > 0:
        rule.total_matched_amount = money(rule.total_matched_amount + match)
        _add_contribution(
            db, goal, match, ContributionType.PARENT_MATCH,
            f"Parent match for ${amount} deposit",
            rule.created_by_id, parent_match_id=deposit.id,
        )

    bonus_total = Decimal("0.00")
    reached = []
    for milestone in await get_milestones(db, goal.id):
        if milestone.is_achieved or goal.current_amount < milestone.target_amount:
            continue
        milestone.is_achieved = True
        milestone.achieved_at = now
        reached.append(milestone)
        if milestone.bonus_amount > 0:
            bonus_total += milestone.bonus_amount
            _add_contribution(
                db, goal, milestone.bonus_amount, ContributionType.CHALLENGE_BONUS,
                f"Milestone bonus for reaching {milestone.percent_complete}%",
            )

    challenge_completed = False
    challenge = await get_active_challenge(db, goal.id)
    if (
        challenge is not None
        and challenge.end_date >= now
        and goal.current_amount >= challenge.target_amount
    ):
        challenge.status = ChallengeStatus.COMPLETED
        challenge.completed_at = now
        challenge_completed = True
        if challenge.bonus_amount > 0:
            bonus_total += challenge.bonus_amount
            _add_contribution(
                db, goal, challenge.bonus_amount, ContributionType.CHALLENGE_BONUS,
                "Challenge completion bonus!", challenge.created_by_id,
            )

    is_completed = _complete_if_reached(goal, now)
    goal.updated_at = now
    streak_changed = achievements.record_saving_activity(child)
    await db.commit()
    await db.refresh(goal)
    logger.info("Contribution of %s to goal %s (match %s)", amount, goal.id, match)

    event = {
        "goal_id": goal.id,
        "goal_name": goal.name,
        "new_amount": goal.current_amount,
        "target_amount": goal.target_amount,
        "progress_percentage": goal.progress_percentage,
        "milestone_reached": reached[0].percent_complete if reached else None,
        "milestones_reached": [m.percent_complete for m in reached],
        "is_completed": is_completed,
        "match_amount": match,
        "challenge_completed": challenge_completed,
        "bonus_amount": money(bonus_total),
    }
    await _after_contribution(db, child, goal, event, streak_changed)
    return event


async def _after_contribution(
    db: AsyncSession, child: Child, goal: SavingsGoal, event: dict, streak_changed: bool
) -> None:
    try:
        if event["is_completed"]:
            await notifications.send_notification(
                db, child.user_id, NotificationType.GOAL_COMPLETED,
                "Goal Reached!", f"You saved enough for {goal.name}!",
                data={"goal_id": goal.id},
                related_entity_id=goal.id, related_entity_type="SavingsGoal",
            )
        elif event["milestone_reached"] is not None:
            await notifications.send_notification(
                db, child.user_id, NotificationType.GOAL_MILESTONE,
                "Milestone Reached!",
                f"You've reached {event['milestone_reached']}% of {goal.name}!",
                data={"goal_id": goal.id, "milestones": event["milestones_reached"]},
                related_entity_id=goal.id, related_entity_type="SavingsGoal",
            )
        else:
            await notifications.send_notification(
                db, child.user_id, NotificationType.GOAL_PROGRESS,
                "Goal Progress",
                f"{goal.name} is now {event['progress_percentage']}% funded",
                data={"goal_id": goal.id},
                related_entity_id=goal.id, related_entity_type="SavingsGoal",
            )
        if event["match_amount"] > 0:
            await notifications.send_notification(
                db, child.user_id, NotificationType.PARENT_MATCH_ADDED,
                "Parent Match!",
                f"Your parent added ${event['match_amount']} to {goal.name}",
                data={"goal_id": goal.id},
                related_entity_id=goal.id, related_entity_type="SavingsGoal",
            )
        await achievements.check_and_unlock_badges(
            db, child.id, BadgeTrigger.SAVINGS_DEPOSIT, {"goal_id": goal.id}
        )
        if event["is_completed"]:
            await achievements.check_and_unlock_badges(
                db, child.id, BadgeTrigger.GOAL_COMPLETED, {"goal_id": goal.id}
            )
        if streak_changed:
            await achievements.check_and_unlock_badges(
                db, child.id, BadgeTrigger.STREAK_UPDATED
            )
    except Exception:
        logger.exception("Post-contribution processing failed for goal %s", goal.id)


def add_external_contribution(
    db: AsyncSession,
    goal: SavingsGoal,
    amount: Decimal,
    ctype: ContributionType,
    description: str,
    created_by_id: int | None = None,
) -> SavingsContribution:
    """Stage money arriving from outside the child's balance, e.g. a gift.

    Does not commit.
    """
    row = _add_contribution(db, goal, money(amount), ctype, description, created_by_id)
    _complete_if_reached(goal, datetime.utcnow())
    return row


async def withdraw(
    db: AsyncSession,
    goal_id: int,
    amount: Decimal,
    reason: str | None = None,
    created_by_id: int | None = None,
) -> SavingsContribution:
    amount = money(amount)
    goal = await _require_goal(db, goal_id)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    if amount > goal.current_amount:
        raise ValueError("Insufficient goal balance")
    child = await _get_child(db, goal.child_id)
    child.current_balance = money(child.current_balance + amount)
    row = _add_contribution(
        db, goal, -amount, ContributionType.WITHDRAWAL,
        reason or "Withdrawal from goal", created_by_id,
    )
    goal.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(row)
    return row


async def process_auto_transfers(
    db: AsyncSession, child_id: int, allowance_amount: Decimal
) -> list[SavingsContribution]:
    """Sweep part of an allowance into active goals, highest priority first."""
    child = await _get_child(db, child_id)
    result = await db.execute(
        select(SavingsGoal)
        .where(
            SavingsGoal.child_id == child_id,
            SavingsGoal.status == GoalStatus.ACTIVE,
            SavingsGoal.auto_transfer_type != TransferType.NONE,
        )
        .order_by(SavingsGoal.priority, SavingsGoal.created_at, SavingsGoal.id)
    )
    now = datetime.utcnow()
    rows = []
    completed = []
    for goal in result.scalars().all():
        if child.current_balance <= 0:
            break
        if goal.auto_transfer_type == TransferType.FIXED_AMOUNT:
            amount = Decimal(goal.auto_transfer_amount)
        else:
            amount = Decimal(allowance_amount) * goal.auto_transfer_percentage / 100
        remaining = Decimal(goal.target_amount) - Decimal(goal.current_amount)
        amount = money(min(amount, child.current_balance, remaining))
        if amount <= 0:
            continue
        child.current_balance = money(child.current_balance - amount)
        rows.append(
            _add_contribution(
                db, goal, amount, ContributionType.AUTO_TRANSFER,
                "Automatic transfer from allowance",
            )
        )
        if _complete_if_reached(goal, now):
            completed.append(goal)
    if rows:
        achievements.record_saving_activity(child)
    await db.commit()
    if rows:
        logger.info("Auto-transferred to %d goal(s) for child %s", len(rows), child_id)
    try:
        for goal in completed:
            await notifications.send_notification(
                db, child.user_id, NotificationType.GOAL_COMPLETED,
                "Goal Reached!", f"You saved enough for {goal.name}!",
                data={"goal_id": goal.id},
                related_entity_id=goal.id, related_entity_type="SavingsGoal",
            )
        if completed:
            await achievements.check_and_unlock_badges(
                db, child_id, BadgeTrigger.GOAL_COMPLETED
            )
    except Exception:
        logger.exception("Post-transfer processing failed for child %s", child_id)
    return rows


# --- matching rules ---------------------------------------------------------


async def create_matching_rule(
    db: AsyncSession,
    goal_id: int,
    matching_type: MatchingType,
    match_ratio: Decimal,
    max_match_amount: Decimal | None = None,
    expires_at: datetime | None = None,
    created_by_id: int | None = None,
) -> ParentMatchingRule:
    await _require_goal(db, goal_id)
    if await get_matching_rule(db, goal_id) is not None:
        raise ValueError("Goal already has a matching rule")
    if match_ratio <= 0:
        raise ValueError("Match ratio must be positive")
    rule = ParentMatchingRule(
        goal_id=goal_id,
        matching_type=matching_type,
        match_ratio=match_ratio,
        max_match_amount=money(max_match_amount) if max_match_amount is not None else None,
        expires_at=naive_utc(expires_at),
        created_by_id=created_by_id,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def update_matching_rule(db: AsyncSession, goal_id: int, changes: dict) -> ParentMatchingRule:
    rule = await get_matching_rule(db, goal_id)
    if rule is None:
        raise ValueError("Matching rule not found")
    for key, value in changes.items():
        if value is not None:
            setattr(rule, key, naive_utc(value) if key == "expires_at" else value)
    await db.commit()
    await db.refresh(rule)
    return rule


async def remove_matching_rule(db: AsyncSession, goal_id: int) -> None:
    rule = await get_matching_rule(db, goal_id)
    if rule is None:
        raise ValueError("Matching rule not found")
    await db.delete(rule)
    await db.commit()


# --- challenges -------------------------------------------------------------


async def create_challenge(
    db: AsyncSession,
    goal_id: int,
    target_amount: Decimal,
    end_date: datetime,
    bonus_amount: Decimal,
    created_by_id: int | None = None,
) -> GoalChallenge:
    end_date = naive_utc(end_date)
    await _require_goal(db, goal_id)
    if await get_active_challenge(db, goal_id) is not None:
        raise ValueError("Goal already has an active challenge")
    if end_date <= datetime.utcnow():
        raise ValueError("Challenge end date must be in the future")
    challenge = GoalChallenge(
        goal_id=goal_id,
        target_amount=money(target_amount),
        end_date=end_date,
        bonus_amount=money(bonus_amount),
        created_by_id=created_by_id,
    )
    db.add(challenge)
    await db.commit()
    await db.refresh(challenge)
    return challenge


async def cancel_challenge(db: AsyncSession, goal_id: int) -> GoalChallenge:
    challenge = await get_active_challenge(db, goal_id)
    if challenge is None:
        raise ValueError("No active challenge found")
    challenge.status = ChallengeStatus.CANCELLED
    await db.commit()
    await db.refresh(challenge)
    return challenge


async def get_child_challenges(db: AsyncSession, child_id: int) -> list[GoalChallenge]:
    result = await db.execute(
        select(GoalChallenge)
        .join(SavingsGoal, SavingsGoal.id == GoalChallenge.goal_id)
        .where(SavingsGoal.child_id == child_id)
        .order_by(GoalChallenge.created_at.desc())
    )
    return result.scalars().all()


async def check_expired_challenges(db: AsyncSession) -> int:
    result = await db.execute(
        select(GoalChallenge).where(
            GoalChallenge.status == ChallengeStatus.ACTIVE,
            GoalChallenge.end_date < datetime.utcnow(),
        )
    )
    expired = result.scalars().all()
    for challenge in expired:
        challenge.status = ChallengeStatus.FAILED
    await db.commit()
    if expired:
        logger.info("Marked %d challenge(s) as failed", len(expired))
    return len(expired)
