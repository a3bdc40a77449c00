"""Badges, badge progress, points and the reward shop.

Badges unlock once per child.  ``check_and_unlock_badges`` is called by the
other services after a state change with a ``BadgeTrigger``; only badges
listening for that trigger are evaluated.  Unlocking awards the badge's
points to both the lifetime and spendable totals.
"""

import calendar
import json
import logging
from datetime import datetime, date, timedelta
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    Badge,
    BadgeCategory,
    BadgeProgress,
    BadgeTrigger,
    Child,
    ChildBadge,
    ChildReward,
    CompletionStatus,
    ContributionType,
    CriteriaType,
    GoalStatus,
    NotificationType,
    Reward,
    RewardType,
    SavingsContribution,
    SavingsGoal,
    SavingsTransaction,
    SavingsTransactionType,
    TaskCompletion,
    Transaction,
    TransactionType,
)
from allowance_tracker.services import notifications

logger = logging.getLogger(__name__)

EQUIP_FIELDS = {
    RewardType.AVATAR: "equipped_avatar_url",
    RewardType.THEME: "equipped_theme",
    RewardType.TITLE: "equipped_title",
}


async def ensure_badge_catalog(db: AsyncSession) -> None:
    """Seed the database with the built-in badges and rewards."""

    from allowance_tracker.badge_catalog import BADGES, REWARDS

    for order, data in enumerate(BADGES):
        result = await db.execute(select(Badge).where(Badge.code == data["code"]))
        if result.scalar_one_or_none() is None:
            db.add(
                Badge(
                    code=data["code"],
                    name=data["name"],
                    description=data["description"],
                    icon_url=f"/badges/{data['code'].lower()}.png",
                    category=data["category"],
                    rarity=data["rarity"],
                    points_value=data["points"],
                    criteria_type=data["criteria_type"],
                    criteria_config=data["config"],
                    is_secret=data.get("secret", False),
                    sort_order=order,
                )
            )
    for order, data in enumerate(REWARDS):
        result = await db.execute(select(Reward).where(Reward.name == data["name"]))
        if result.scalar_one_or_none() is None:
            db.add(
                Reward(
                    name=data["name"],
                    description=data["description"],
                    type=data["type"],
                    value=data["value"],
                    preview_url=data["preview_url"],
                    points_cost=data["cost"],
                    sort_order=order,
                )
            )
    await db.commit()


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


async def get_badge_by_code(db: AsyncSession, code: str) -> Badge | None:
    result = await db.execute(select(Badge).where(Badge.code == code))
    return result.scalar_one_or_none()


async def _earned_badge_ids(db: AsyncSession, child_id: int) -> set[int]:
    result = await db.execute(
        select(ChildBadge.badge_id).where(ChildBadge.child_id == child_id)
    )
    return set(result.scalars().all())


# --- queries ----------------------------------------------------------------


async def get_all_badges(
    db: AsyncSession,
    category: BadgeCategory | None = None,
    include_secret: bool = False,
    child_id: int | None = None,
) -> list[dict]:
    query = select(Badge).where(Badge.is_active == True)  # noqa: E712
    if category is not None:
        query = query.where(Badge.category == category)
    result = await db.execute(query.order_by(Badge.sort_order, Badge.name))
    earned = await _earned_badge_ids(db, child_id) if child_id else set()
    badges = []
    for badge in result.scalars().all():
        # secret badges stay hidden until earned
        if badge.is_secret and not include_secret and badge.id not in earned:
            continue
        badges.append({"badge": badge, "is_earned": badge.id in earned})
    return badges


async def get_child_badges(
    db: AsyncSession,
    child_id: int,
    category: BadgeCategory | None = None,
    new_only: bool = False,
) -> list[tuple[ChildBadge, Badge]]:
    query = (
        select(ChildBadge, Badge)
        .join(Badge, Badge.id == ChildBadge.badge_id)
        .where(ChildBadge.child_id == child_id)
    )
    if category is not None:
        query = query.where(Badge.category == category)
    if new_only:
        query = query.where(ChildBadge.is_new == True)  # noqa: E712
    result = await db.execute(query.order_by(ChildBadge.earned_at.desc()))
    return result.all()


async def get_badge_progress(
    db: AsyncSession, child_id: int
) -> list[tuple[BadgeProgress, Badge]]:
    """Progress rows for badges not yet earned, closest to done first."""
    result = await db.execute(
        select(BadgeProgress, Badge)
        .join(Badge, Badge.id == BadgeProgress.badge_id)
        .where(
            BadgeProgress.child_id == child_id,
            BadgeProgress.current_progress < BadgeProgress.target_progress,
        )
    )
    rows = result.all()
    return sorted(
        rows,
        key=lambda row: row[0].current_progress / max(row[0].target_progress, 1),
        reverse=True,
    )


async def get_achievement_summary(db: AsyncSession, child_id: int) -> dict:
    child = await _get_child(db, child_id)
    total = (
        await db.execute(
            select(func.count()).select_from(Badge).where(Badge.is_active == True)  # noqa: E712
        )
    ).scalar()
    earned_rows = await get_child_badges(db, child_id)
    by_category: dict[str, int] = {}
    for _, badge in earned_rows:
        key = badge.category.value
        by_category[key] = by_category.get(key, 0) + 1
    return {
        "total_badges": total,
        "earned_badges": len(earned_rows),
        "total_points": child.total_points,
        "available_points": child.available_points,
        "recent_badges": earned_rows[:5],
        "badges_by_category": by_category,
    }


async def toggle_badge_display(
    db: AsyncSession, child_id: int, badge_id: int, is_displayed: bool
) -> ChildBadge:
    result = await db.execute(
        select(ChildBadge).where(
            ChildBadge.child_id == child_id, ChildBadge.badge_id == badge_id
        )
    )
    child_badge = result.scalar_one_or_none()
    if child_badge is None:
        raise ValueError("Badge not earned")
    child_badge.is_displayed = is_displayed
    await db.commit()
    await db.refresh(child_badge)
    return child_badge


async def mark_badges_seen(db: AsyncSession, child_id: int, badge_ids: list[int]) -> int:
    result = await db.execute(
        select(ChildBadge).where(
            ChildBadge.child_id == child_id, ChildBadge.badge_id.in_(badge_ids)
        )
    )
    rows = result.scalars().all()
    for row in rows:
        row.is_new = False
    await db.commit()
    return len(rows)


# --- unlocking --------------------------------------------------------------


async def try_unlock_badge(
    db: AsyncSession, child_id: int, code: str, context: dict | None = None
) -> ChildBadge | None:
    """Award ``code`` to the child unless already earned.

    Returns the new ``ChildBadge`` or ``None`` for unknown, inactive or
    already earned badges.
    """
    badge = await get_badge_by_code(db, code)
    if badge is None or not badge.is_active:
        return None
    result = await db.execute(
        select(ChildBadge).where(
            ChildBadge.child_id == child_id, ChildBadge.badge_id == badge.id
        )
    )
    if result.scalar_one_or_none() is not None:
        return None
    child = await _get_child(db, child_id)
    child_badge = ChildBadge(
        child_id=child_id,
        badge_id=badge.id,
        earned_context=json.dumps(context, default=str) if context else None,
    )
    db.add(child_badge)
    child.total_points += badge.points_value
    child.available_points += badge.points_value
    await db.commit()
    await db.refresh(child_badge)
    logger.info("Badge %s unlocked for child %s", code, child_id)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.ACHIEVEMENT_UNLOCKED,
            "Achievement Unlocked!",
            f"You earned the {badge.name} badge (+{badge.points_value} points)",
            data={"badge_code": badge.code},
            related_entity_id=badge.id,
            related_entity_type="Badge",
        )
    except Exception:
        logger.exception("Failed to notify child %s about badge %s", child_id, code)
    return child_badge


async def _total_saved(db: AsyncSession, child_id: int) -> Decimal:
    savings = (
        await db.execute(
            select(func.coalesce(func.sum(SavingsTransaction.amount), 0)).where(
                SavingsTransaction.child_id == child_id,
                SavingsTransaction.type.in_(
                    [SavingsTransactionType.DEPOSIT, SavingsTransactionType.AUTO_TRANSFER]
                ),
            )
        )
    ).scalar()
    goals = (
        await db.execute(
            select(func.coalesce(func.sum(SavingsContribution.amount), 0)).where(
                SavingsContribution.child_id == child_id,
                SavingsContribution.type.in_(
                    [ContributionType.CHILD_DEPOSIT, ContributionType.AUTO_TRANSFER]
                ),
            )
        )
    ).scalar()
    return Decimal(str(savings)) + Decimal(str(goals))


async def _count_measure(db: AsyncSession, child_id: int, field: str | None) -> int:
    if field == "task_count":
        query = select(func.count()).select_from(TaskCompletion).where(
            TaskCompletion.child_id == child_id,
            TaskCompletion.status == CompletionStatus.APPROVED,
        )
    else:
        query = select(func.count()).select_from(Transaction).where(
            Transaction.child_id == child_id
        )
    return (await db.execute(query)).scalar()


async def _amount_measure(db: AsyncSession, child: Child, field: str | None) -> Decimal:
    if field == "savings_balance":
        return Decimal(child.savings_balance)
    if field == "total_saved":
        return await _total_saved(db, child.id)
    return Decimal(child.current_balance)


async def _streak_measure(
    db: AsyncSession, child: Child, field: str | None, data: dict
) -> int:
    if field == "approved_task_streak":
        result = await db.execute(
            select(TaskCompletion.status)
            .where(
                TaskCompletion.child_id == child.id,
                TaskCompletion.status != CompletionStatus.PENDING_APPROVAL,
            )
            .order_by(TaskCompletion.approved_at.desc(), TaskCompletion.id.desc())
        )
        streak = 0
        for status in result.scalars().all():
            if status != CompletionStatus.APPROVED:
                break
            streak += 1
        return streak
    if field == "budget_streak":
        return int(data.get("budget_streak", 0))
    return child.saving_streak


async def _percentage_measure(db: AsyncSession, child: Child, data: dict) -> Decimal:
    if "amount" in data and child.weekly_allowance and child.weekly_allowance > 0:
        return Decimal(str(data["amount"])) / Decimal(child.weekly_allowance) * 100
    earned = (
        await db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.child_id == child.id,
                Transaction.type == TransactionType.CREDIT,
            )
        )
    ).scalar()
    earned = Decimal(str(earned))
    if earned <= 0:
        return Decimal(0)
    return await _total_saved(db, child.id) / earned * 100


def _time_condition(condition: str | None, child: Child, now: datetime) -> bool:
    if condition == "weekend":
        return now.weekday() >= 5
    if condition == "early_bird":
        return now.hour < 9
    if condition == "night_owl":
        return now.hour >= 21
    if condition == "start_of_month":
        return now.day <= 3
    if condition == "end_of_month":
        return now.day >= calendar.monthrange(now.year, now.month)[1] - 2
    if condition == "same_day_as_allowance":
        return (
            child.last_allowance_date is not None
            and child.last_allowance_date.date() == now.date()
        )
    if condition == "consistent":
        return True
    return False


def _criteria_type_for(config: dict) -> CriteriaType:
    if config.get("sub_criteria"):
        return CriteriaType.COMPOUND
    if config.get("time_condition"):
        return CriteriaType.TIME_BASED_ACTION
    if config.get("goal_target") is not None:
        return CriteriaType.GOAL_COMPLETION
    if config.get("percentage_target") is not None:
        return CriteriaType.PERCENTAGE_TARGET
    if config.get("streak_target") is not None:
        return CriteriaType.STREAK_COUNT
    if config.get("amount_target") is not None:
        return CriteriaType.AMOUNT_THRESHOLD
    if config.get("count_target") is not None:
        return CriteriaType.COUNT_THRESHOLD
    return CriteriaType.SINGLE_ACTION


async def evaluate_criteria(
    db: AsyncSession,
    child: Child,
    criteria_type: CriteriaType,
    config: dict,
    data: dict,
    now: datetime | None = None,
) -> bool:
    now = now or datetime.utcnow()
    field = config.get("measure_field")
    if criteria_type == CriteriaType.SINGLE_ACTION:
        # being asked at all means the triggering action happened
        return True
    if criteria_type == CriteriaType.COUNT_THRESHOLD:
        target = config.get("count_target")
        return target is not None and await _count_measure(db, child.id, field) >= target
    if criteria_type == CriteriaType.AMOUNT_THRESHOLD:
        target = config.get("amount_target")
        if target is None:
            return False
        return await _amount_measure(db, child, field) >= Decimal(str(target))
    if criteria_type == CriteriaType.STREAK_COUNT:
        target = config.get("streak_target")
        return target is not None and await _streak_measure(db, child, field, data) >= target
    if criteria_type == CriteriaType.PERCENTAGE_TARGET:
        target = config.get("percentage_target")
        if target is None:
            return False
        return await _percentage_measure(db, child, data) >= Decimal(str(target))
    if criteria_type == CriteriaType.GOAL_COMPLETION:
        target = config.get("goal_target")
        if target is None:
            return False
        completed = (
            await db.execute(
                select(func.count())
                .select_from(SavingsGoal)
                .where(
                    SavingsGoal.child_id == child.id,
                    SavingsGoal.status.in_([GoalStatus.COMPLETED, GoalStatus.PURCHASED]),
                )
            )
        ).scalar()
        return completed >= target
    if criteria_type == CriteriaType.TIME_BASED_ACTION:
        return _time_condition(config.get("time_condition"), child, now)
    if criteria_type == CriteriaType.COMPOUND:
        for sub in config.get("sub_criteria") or []:
            if not await evaluate_criteria(
                db, child, _criteria_type_for(sub), sub, data, now
            ):
                return False
        return True
    return False


async def check_and_unlock_badges(
    db: AsyncSession,
    child_id: int,
    trigger: BadgeTrigger,
    data: dict | None = None,
) -> list[ChildBadge]:
    child = await _get_child(db, child_id)
    data = data or {}
    earned = await _earned_badge_ids(db, child_id)
    result = await db.execute(
        select(Badge).where(Badge.is_active == True).order_by(Badge.sort_order)  # noqa: E712
    )
    unlocked = []
    for badge in result.scalars().all():
        if badge.id in earned:
            continue
        config = badge.criteria_config or {}
        triggers = config.get("triggers")
        if triggers and trigger.value not in triggers:
            continue
        if await evaluate_criteria(db, child, badge.criteria_type, config, data):
            child_badge = await try_unlock_badge(
                db, child_id, badge.code, context={"trigger": trigger.value, **data}
            )
            if child_badge is not None:
                unlocked.append(child_badge)
    return unlocked


def record_saving_activity(
    child: Child, on: date | None = None
) -> bool:
    """Update the weekly saving streak; return ``True`` when it changed.

    Saving in consecutive calendar weeks grows the streak, a gap resets it
    to one, and more saving in the same week leaves it alone.
    """
    today = on or date.today()
    last = child.last_saving_date
    week_start = today - timedelta(days=today.weekday())
    if last is not None and last >= week_start:
        child.last_saving_date = today
        return False
    if last is not None and last >= week_start - timedelta(days=7):
        child.saving_streak += 1
    else:
        child.saving_streak = 1
    child.last_saving_date = today
    return True


# --- progress ---------------------------------------------------------------


def _progress_target(config: dict) -> int:
    for key in ("count_target", "goal_target", "streak_target", "amount_target"):
        if config.get(key):
            return int(config[key])
    return 10


async def _get_or_create_progress(
    db: AsyncSession, child_id: int, badge: Badge
) -> BadgeProgress:
    result = await db.execute(
        select(BadgeProgress).where(
            BadgeProgress.child_id == child_id, BadgeProgress.badge_id == badge.id
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = BadgeProgress(
            child_id=child_id,
            badge_id=badge.id,
            target_progress=_progress_target(badge.criteria_config or {}),
        )
        db.add(progress)
    return progress


async def update_progress(
    db: AsyncSession, child_id: int, code: str, increment: int = 1
) -> BadgeProgress | None:
    badge = await get_badge_by_code(db, code)
    if badge is None:
        return None
    progress = await _get_or_create_progress(db, child_id, badge)
    progress.current_progress = min(
        progress.current_progress + increment, progress.target_progress
    )
    progress.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(progress)
    if progress.current_progress >= progress.target_progress:
        await try_unlock_badge(db, child_id, code)
    return progress


async def set_progress(
    db: AsyncSession, child_id: int, code: str, value: int
) -> BadgeProgress | None:
    badge = await get_badge_by_code(db, code)
    if badge is None:
        return None
    progress = await _get_or_create_progress(db, child_id, badge)
    progress.current_progress = max(0, min(value, progress.target_progress))
    progress.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(progress)
    if progress.current_progress >= progress.target_progress:
        await try_unlock_badge(db, child_id, code)
    return progress


# --- points and rewards -----------------------------------------------------


async def get_child_points(db: AsyncSession, child_id: int) -> dict:
    child = await _get_child(db, child_id)
    badges = (
        await db.execute(
            select(func.count()).select_from(ChildBadge).where(ChildBadge.child_id == child_id)
        )
    ).scalar()
    rewards = (
        await db.execute(
            select(func.count()).select_from(ChildReward).where(ChildReward.child_id == child_id)
        )
    ).scalar()
    return {
        "total_points": child.total_points,
        "available_points": child.available_points,
        "spent_points": child.total_points - child.available_points,
        "badges_earned": badges,
        "rewards_unlocked": rewards,
    }


async def get_available_rewards(
    db: AsyncSession, reward_type: RewardType | None = None, child_id: int | None = None
) -> list[dict]:
    query = select(Reward).where(Reward.is_active == True)  # noqa: E712
    if reward_type is not None:
        query = query.where(Reward.type == reward_type)
    result = await db.execute(query.order_by(Reward.sort_order, Reward.points_cost))
    owned: dict[int, ChildReward] = {}
    points = 0
    if child_id is not None:
        child = await _get_child(db, child_id)
        points = child.available_points
        owned_rows = await db.execute(
            select(ChildReward).where(ChildReward.child_id == child_id)
        )
        owned = {cr.reward_id: cr for cr in owned_rows.scalars().all()}
    return [
        {
            "reward": reward,
            "is_unlocked": reward.id in owned,
            "is_equipped": reward.id in owned and owned[reward.id].is_equipped,
            "can_afford": points >= reward.points_cost,
        }
        for reward in result.scalars().all()
    ]


async def get_child_rewards(
    db: AsyncSession, child_id: int
) -> list[tuple[ChildReward, Reward]]:
    result = await db.execute(
        select(ChildReward, Reward)
        .join(Reward, Reward.id == ChildReward.reward_id)
        .where(ChildReward.child_id == child_id)
        .order_by(ChildReward.unlocked_at.desc())
    )
    return result.all()


async def _get_reward(db: AsyncSession, reward_id: int) -> Reward:
    result = await db.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    if reward is None:
        raise ValueError("Reward not found")
    return reward


async def _get_child_reward(
    db: AsyncSession, child_id: int, reward_id: int
) -> ChildReward | None:
    result = await db.execute(
        select(ChildReward).where(
            ChildReward.child_id == child_id, ChildReward.reward_id == reward_id
        )
    )
    return result.scalar_one_or_none()


async def unlock_reward(db: AsyncSession, child_id: int, reward_id: int) -> ChildReward:
    reward = await _get_reward(db, reward_id)
    child = await _get_child(db, child_id)
    if await _get_child_reward(db, child_id, reward_id) is not None:
        raise ValueError("Reward already unlocked")
    if child.available_points < reward.points_cost:
        raise ValueError("Child has insufficient points")
    child.available_points -= reward.points_cost
    child_reward = ChildReward(child_id=child_id, reward_id=reward_id)
    db.add(child_reward)
    await db.commit()
    await db.refresh(child_reward)
    logger.info("Reward %s unlocked by child %s", reward_id, child_id)
    return child_reward


async def equip_reward(db: AsyncSession, child_id: int, reward_id: int) -> ChildReward:
    reward = await _get_reward(db, reward_id)
    child = await _get_child(db, child_id)
    child_reward = await _get_child_reward(db, child_id, reward_id)
    if child_reward is None:
        raise ValueError("Reward not unlocked")
    # only one reward of each type can be equipped
    result = await db.execute(
        select(ChildReward)
        .join(Reward, Reward.id == ChildReward.reward_id)
        .where(
            ChildReward.child_id == child_id,
            ChildReward.is_equipped == True,  # noqa: E712
            Reward.type == reward.type,
        )
    )
    for other in result.scalars().all():
        other.is_equipped = False
    child_reward.is_equipped = True
    setattr(child, EQUIP_FIELDS[reward.type], reward.value)
    await db.commit()
    await db.refresh(child_reward)
    return child_reward


async def unequip_reward(db: AsyncSession, child_id: int, reward_id: int) -> ChildReward:
    reward = await _get_reward(db, reward_id)
    child = await _get_child(db, child_id)
    child_reward = await _get_child_reward(db, child_id, reward_id)
    if child_reward is None:
        raise ValueError("Reward not unlocked")
    if child_reward.is_equipped:
        child_reward.is_equipped = False
        setattr(child, EQUIP_FIELDS[reward.type], None)
    await db.commit()
    await db.refresh(child_reward)
    return child_reward
