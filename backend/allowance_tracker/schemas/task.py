from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from allowance_tracker.models import CompletionStatus, DayOfWeek, RecurrenceType, TaskStatus


class TaskCreate(BaseModel):
    child_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    reward_amount: Decimal = Field(ge=0)
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_day: Optional[DayOfWeek] = None
    recurrence_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    reward_amount: Optional[Decimal] = Field(default=None, ge=0)
    is_recurring: Optional[bool] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_day: Optional[DayOfWeek] = None
    recurrence_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)


class TaskRead(BaseModel):
    id: int
    child_id: int
    family_id: int
    title: str
    description: Optional[str]
    reward_amount: float
    status: TaskStatus
    is_recurring: bool
    recurrence_type: Optional[RecurrenceType]
    recurrence_day: Optional[DayOfWeek]
    recurrence_day_of_month: Optional[int]
    created_by_id: int
    created_at: datetime
    updated_at: datetime
    archived_at: Optional[datetime]

    class Config:
        from_attributes = True


class TaskComplete(BaseModel):
    notes: Optional[str] = None
    photo_url: Optional[str] = None


class CompletionReview(BaseModel):
    approve: bool
    rejection_reason: Optional[str] = None


class CompletionRead(BaseModel):
    id: int
    task_id: int
    child_id: int
    completed_at: datetime
    notes: Optional[str]
    photo_url: Optional[str]
    status: CompletionStatus
    approved_by_id: Optional[int]
    approved_at: Optional[datetime]
    rejection_reason: Optional[str]
    transaction_id: Optional[int]

    class Config:
        from_attributes = True


class TaskStatistics(BaseModel):
    total_tasks: int
    active_tasks: int
    archived_tasks: int
    total_completions: int
    pending_approvals: int
    approved_count: int
    rejected_count: int
    total_earned: float
    pending_earnings: float
    completion_rate: float
