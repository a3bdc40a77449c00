from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from allowance_tracker.models import BadgeCategory, BadgeRarity, RewardType


class BadgeRead(BaseModel):
    id: int
    code: str
    name: str
    description: str
    icon_url: str
    category: BadgeCategory
    rarity: BadgeRarity
    points_value: int
    is_secret: bool
    is_earned: bool = False

    class Config:
        from_attributes = True


class ChildBadgeRead(BaseModel):
    id: int
    badge: BadgeRead
    earned_at: datetime
    is_displayed: bool
    is_new: bool


class BadgeProgressRead(BaseModel):
    badge: BadgeRead
    current_progress: int
    target_progress: int
    progress_percentage: float


class AchievementSummary(BaseModel):
    total_badges: int
    earned_badges: int
    total_points: int
    available_points: int
    recent_badges: list[ChildBadgeRead]
    badges_by_category: dict[str, int]


class BadgeDisplayUpdate(BaseModel):
    is_displayed: bool


class BadgesSeen(BaseModel):
    badge_ids: list[int]


class PointsRead(BaseModel):
    total_points: int
    available_points: int
    spent_points: int
    badges_earned: int
    rewards_unlocked: int


class RewardRead(BaseModel):
    id: int
    name: str
    description: str
    type: RewardType
    value: str
    preview_url: Optional[str]
    points_cost: int
    is_unlocked: bool = False
    is_equipped: bool = False
    can_afford: bool = False

    class Config:
        from_attributes = True


class ChildRewardRead(BaseModel):
    id: int
    reward: RewardRead
    unlocked_at: datetime
    is_equipped: bool
