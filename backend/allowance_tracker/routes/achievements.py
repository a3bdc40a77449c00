import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_SPEND_POINTS
from allowance_tracker.auth import authorize_child_access, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import BadgeCategory, RewardType, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    AchievementSummary,
    BadgeDisplayUpdate,
    BadgeProgressRead,
    BadgeRead,
    BadgesSeen,
    ChildBadgeRead,
    ChildRewardRead,
    PointsRead,
    RewardRead,
)
from allowance_tracker.services import achievements

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/achievements", tags=["achievements"])


def _child_badge(child_badge, badge) -> ChildBadgeRead:
    return ChildBadgeRead(
        id=child_badge.id,
        badge=BadgeRead.model_validate(badge).model_copy(update={"is_earned": True}),
        earned_at=child_badge.earned_at,
        is_displayed=child_badge.is_displayed,
        is_new=child_badge.is_new,
    )


def _reward(row: dict) -> RewardRead:
    return RewardRead.model_validate(row["reward"]).model_copy(
        update={
            "is_unlocked": row["is_unlocked"],
            "is_equipped": row["is_equipped"],
            "can_afford": row["can_afford"],
        }
    )


@router.get("/badges", response_model=List[BadgeRead])
async def all_badges(
    category: Optional[BadgeCategory] = None,
    child_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if child_id is not None:
        await authorize_child_access(db, current_user, child_id)
    rows = await achievements.get_all_badges(db, category, child_id=child_id)
    return [
        BadgeRead.model_validate(r["badge"]).model_copy(update={"is_earned": r["is_earned"]})
        for r in rows
    ]


@router.get("/children/{child_id}/badges", response_model=List[ChildBadgeRead])
async def child_badges(
    child_id: int,
    category: Optional[BadgeCategory] = None,
    new_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    rows = await achievements.get_child_badges(db, child_id, category, new_only)
    return [_child_badge(cb, badge) for cb, badge in rows]


@router.get("/children/{child_id}/progress", response_model=List[BadgeProgressRead])
async def badge_progress(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    rows = await achievements.get_badge_progress(db, child_id)
    return [
        BadgeProgressRead(
            badge=BadgeRead.model_validate(badge),
            current_progress=progress.current_progress,
            target_progress=progress.target_progress,
            progress_percentage=round(
                progress.current_progress / max(progress.target_progress, 1) * 100, 2
            ),
        )
        for progress, badge in rows
    ]


@router.get("/children/{child_id}/summary", response_model=AchievementSummary)
async def summary(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    data = await achievements.get_achievement_summary(db, child_id)
    data["recent_badges"] = [_child_badge(cb, b) for cb, b in data["recent_badges"]]
    return data


@router.patch("/children/{child_id}/badges/{badge_id}/display", response_model=ChildBadgeRead)
async def toggle_display(
    child_id: int,
    badge_id: int,
    data: BadgeDisplayUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    try:
        await achievements.toggle_badge_display(db, child_id, badge_id, data.is_displayed)
    except ValueError as exc:
        raise to_http(exc)
    rows = await achievements.get_child_badges(db, child_id)
    return next(_child_badge(cb, b) for cb, b in rows if b.id == badge_id)


@router.post("/children/{child_id}/badges/seen")
async def mark_seen(
    child_id: int,
    data: BadgesSeen,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    updated = await achievements.mark_badges_seen(db, child_id, data.badge_ids)
    return {"updated": updated}


@router.get("/children/{child_id}/points", response_model=PointsRead)
async def points(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await achievements.get_child_points(db, child_id)


@router.get("/rewards", response_model=List[RewardRead])
async def available_rewards(
    type: Optional[RewardType] = None,
    child_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if child_id is not None:
        await authorize_child_access(db, current_user, child_id)
    rows = await achievements.get_available_rewards(db, type, child_id)
    return [_reward(r) for r in rows]


@router.get("/children/{child_id}/rewards", response_model=List[ChildRewardRead])
async def child_rewards(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    rows = await achievements.get_child_rewards(db, child_id)
    return [
        ChildRewardRead(
            id=cr.id,
            reward=RewardRead.model_validate(reward).model_copy(
                update={"is_unlocked": True, "is_equipped": cr.is_equipped}
            ),
            unlocked_at=cr.unlocked_at,
            is_equipped=cr.is_equipped,
        )
        for cr, reward in rows
    ]


@router.post("/children/{child_id}/rewards/{reward_id}/unlock")
async def unlock_reward(
    child_id: int,
    reward_id: int,
    current_user: User = Depends(require_permissions(PERM_SPEND_POINTS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    try:
        child_reward = await achievements.unlock_reward(db, child_id, reward_id)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Child %s unlocked reward %s", child_id, reward_id)
    return {"id": child_reward.id, "reward_id": reward_id, "is_equipped": False}


@router.post("/children/{child_id}/rewards/{reward_id}/equip")
async def equip_reward(
    child_id: int,
    reward_id: int,
    current_user: User = Depends(require_permissions(PERM_SPEND_POINTS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    try:
        child_reward = await achievements.equip_reward(db, child_id, reward_id)
    except ValueError as exc:
        raise to_http(exc)
    return {"id": child_reward.id, "reward_id": reward_id, "is_equipped": True}


@router.post("/children/{child_id}/rewards/{reward_id}/unequip")
async def unequip_reward(
    child_id: int,
    reward_id: int,
    current_user: User = Depends(require_permissions(PERM_SPEND_POINTS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    try:
        child_reward = await achievements.unequip_reward(db, child_id, reward_id)
    except ValueError as exc:
        raise to_http(exc)
    return {"id": child_reward.id, "reward_id": reward_id, "is_equipped": False}
