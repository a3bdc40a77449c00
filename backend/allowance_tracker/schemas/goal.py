from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from allowance_tracker.models import (
    ChallengeStatus,
    ContributionType,
    GoalCategory,
    GoalStatus,
    MatchingType,
    TransferType,
)


class GoalCreate(BaseModel):
    child_id: int
    name: str = Field(min_length=1, max_length=100)
    target_amount: Decimal = Field(gt=0)
    description: Optional[str] = None
    category: GoalCategory = GoalCategory.OTHER
    priority: int = 1
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    target_date: Optional[date] = None
    auto_transfer_type: TransferType = TransferType.NONE
    auto_transfer_amount: Decimal = Decimal("0")
    auto_transfer_percentage: int = Field(default=0, ge=0, le=100)


class GoalUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    target_amount: Optional[Decimal] = None
    category: Optional[GoalCategory] = None
    priority: Optional[int] = None
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    target_date: Optional[date] = None
    auto_transfer_type: Optional[TransferType] = None
    auto_transfer_amount: Optional[Decimal] = None
    auto_transfer_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class MilestoneRead(BaseModel):
    id: int
    percent_complete: int
    target_amount: float
    is_achieved: bool
    achieved_at: Optional[datetime]
    celebration_message: Optional[str]
    bonus_amount: float

    class Config:
        from_attributes = True


class GoalRead(BaseModel):
    id: int
    child_id: int
    name: str
    description: Optional[str]
    target_amount: float
    current_amount: float
    progress_percentage: float
    image_url: Optional[str]
    product_url: Optional[str]
    category: GoalCategory
    status: GoalStatus
    priority: int
    auto_transfer_type: TransferType
    auto_transfer_amount: float
    auto_transfer_percentage: int
    target_date: Optional[date]
    completed_at: Optional[datetime]
    purchased_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class GoalDetail(GoalRead):
    milestones: list[MilestoneRead] = []


class ContributionCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None


class WithdrawCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    reason: Optional[str] = None


class ContributionRead(BaseModel):
    id: int
    goal_id: int
    child_id: int
    amount: float
    type: ContributionType
    goal_balance_after: float
    description: Optional[str]
    parent_match_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class GoalProgressEvent(BaseModel):
    goal_id: int
    goal_name: str
    new_amount: float
    target_amount: float
    progress_percentage: float
    milestone_reached: Optional[int]
    milestones_reached: list[int]
    is_completed: bool
    match_amount: float
    challenge_completed: bool
    bonus_amount: float


class MatchingRuleCreate(BaseModel):
    matching_type: MatchingType
    match_ratio: Decimal = Field(gt=0)
    max_match_amount: Optional[Decimal] = None
    expires_at: Optional[datetime] = None


class MatchingRuleUpdate(BaseModel):
    match_ratio: Optional[Decimal] = None
    max_match_amount: Optional[Decimal] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class MatchingRuleRead(BaseModel):
    id: int
    goal_id: int
    matching_type: MatchingType
    match_ratio: float
    max_match_amount: Optional[float]
    total_matched_amount: float
    is_active: bool
    expires_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class ChallengeCreate(BaseModel):
    target_amount: Decimal = Field(gt=0)
    end_date: datetime
    bonus_amount: Decimal = Field(ge=0)


class ChallengeRead(BaseModel):
    id: int
    goal_id: int
    target_amount: float
    start_date: datetime
    end_date: datetime
    bonus_amount: float
    status: ChallengeStatus
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True
