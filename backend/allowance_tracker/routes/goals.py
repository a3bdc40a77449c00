import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_CONTRIBUTE_GOALS, PERM_MANAGE_GOALS
from allowance_tracker.auth import authorize_child_access, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import ContributionType, GoalStatus, SavingsGoal, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    ChallengeCreate,
    ChallengeRead,
    ContributionCreate,
    ContributionRead,
    GoalCreate,
    GoalDetail,
    GoalProgressEvent,
    GoalRead,
    GoalUpdate,
    MatchingRuleCreate,
    MatchingRuleRead,
    MatchingRuleUpdate,
    WithdrawCreate,
)
from allowance_tracker.services import savings_goals

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/goals", tags=["goals"])


async def _goal_for_user(
    db: AsyncSession, goal_id: int, user: User, parent_only: bool = False
) -> SavingsGoal:
    goal = await savings_goals.get_goal(db, goal_id)
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    await authorize_child_access(db, user, goal.child_id, parent_only=parent_only)
    return goal


@router.post("", response_model=GoalRead, status_code=201)
async def create_goal(
    data: GoalCreate,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id)
    try:
        goal = await savings_goals.create_goal(db, **data.model_dump())
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Goal %s created by user %s", goal.id, current_user.id)
    return goal


@router.get("/children/{child_id}", response_model=List[GoalRead])
async def list_goals(
    child_id: int,
    status: Optional[GoalStatus] = None,
    include_completed: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await savings_goals.list_goals(db, child_id, status, include_completed)


@router.get("/children/{child_id}/challenges", response_model=List[ChallengeRead])
async def child_challenges(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await savings_goals.get_child_challenges(db, child_id)


@router.get("/{goal_id}", response_model=GoalDetail)
async def get_goal(
    goal_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    goal = await _goal_for_user(db, goal_id, current_user)
    milestones = await savings_goals.get_milestones(db, goal.id)
    return GoalDetail(
        **GoalRead.model_validate(goal).model_dump(),
        milestones=milestones,
    )


@router.put("/{goal_id}", response_model=GoalRead)
async def update_goal(
    goal_id: int,
    data: GoalUpdate,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        return await savings_goals.update_goal(db, goal_id, data.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise to_http(exc)


@router.delete("/{goal_id}", response_model=GoalRead)
async def cancel_goal(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        goal = await savings_goals.cancel_goal(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Goal %s cancelled by user %s", goal_id, current_user.id)
    return goal


@router.post("/{goal_id}/pause", response_model=GoalRead)
async def pause_goal(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        return await savings_goals.pause_goal(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)


@router.post("/{goal_id}/resume", response_model=GoalRead)
async def resume_goal(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        return await savings_goals.resume_goal(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)


@router.post("/{goal_id}/purchase", response_model=GoalRead)
async def mark_purchased(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        return await savings_goals.mark_purchased(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)


@router.post("/{goal_id}/contribute", response_model=GoalProgressEvent)
async def contribute(
    goal_id: int,
    data: ContributionCreate,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        event = await savings_goals.contribute(
            db, goal_id, data.amount, data.description, current_user.id
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("User %s contributed %s to goal %s", current_user.id, data.amount, goal_id)
    return event


@router.post("/{goal_id}/withdraw", response_model=ContributionRead)
async def withdraw(
    goal_id: int,
    data: WithdrawCreate,
    current_user: User = Depends(require_permissions(PERM_CONTRIBUTE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    try:
        row = await savings_goals.withdraw(
            db, goal_id, data.amount, data.reason, current_user.id
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("User %s withdrew %s from goal %s", current_user.id, data.amount, goal_id)
    return row


@router.get("/{goal_id}/contributions", response_model=List[ContributionRead])
async def contributions(
    goal_id: int,
    type: Optional[ContributionType] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    return await savings_goals.get_contributions(db, goal_id, type, start, end)


# --- matching rules ---------------------------------------------------------


@router.post("/{goal_id}/match", response_model=MatchingRuleRead, status_code=201)
async def create_matching_rule(
    goal_id: int,
    data: MatchingRuleCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user, parent_only=True)
    try:
        rule = await savings_goals.create_matching_rule(
            db, goal_id, data.matching_type, data.match_ratio,
            data.max_match_amount, data.expires_at, current_user.id,
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Matching rule %s created by user %s", rule.id, current_user.id)
    return rule


@router.get("/{goal_id}/match", response_model=MatchingRuleRead)
async def get_matching_rule(
    goal_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    rule = await savings_goals.get_matching_rule(db, goal_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Matching rule not found")
    return rule


@router.put("/{goal_id}/match", response_model=MatchingRuleRead)
async def update_matching_rule(
    goal_id: int,
    data: MatchingRuleUpdate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user, parent_only=True)
    try:
        return await savings_goals.update_matching_rule(
            db, goal_id, data.model_dump(exclude_unset=True)
        )
    except ValueError as exc:
        raise to_http(exc)


@router.delete("/{goal_id}/match", status_code=204)
async def remove_matching_rule(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user, parent_only=True)
    try:
        await savings_goals.remove_matching_rule(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)


# --- challenges -------------------------------------------------------------


@router.post("/{goal_id}/challenge", response_model=ChallengeRead, status_code=201)
async def create_challenge(
    goal_id: int,
    data: ChallengeCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user, parent_only=True)
    try:
        challenge = await savings_goals.create_challenge(
            db, goal_id, data.target_amount, data.end_date, data.bonus_amount, current_user.id
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Challenge %s created by user %s", challenge.id, current_user.id)
    return challenge


@router.get("/{goal_id}/challenge", response_model=ChallengeRead)
async def get_challenge(
    goal_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user)
    challenge = await savings_goals.get_active_challenge(db, goal_id)
    if challenge is None:
        raise HTTPException(status_code=404, detail="No active challenge found")
    return challenge


@router.delete("/{goal_id}/challenge", response_model=ChallengeRead)
async def cancel_challenge(
    goal_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GOALS)),
    db: AsyncSession = Depends(get_session),
):
    await _goal_for_user(db, goal_id, current_user, parent_only=True)
    try:
        return await savings_goals.cancel_challenge(db, goal_id)
    except ValueError as exc:
        raise to_http(exc)
