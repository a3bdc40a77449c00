from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from allowance_tracker.models import GiftLinkVisibility, GiftOccasion, GiftStatus


class GiftLinkCreate(BaseModel):
    child_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    visibility: GiftLinkVisibility = GiftLinkVisibility.MINIMAL
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    min_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_amount: Optional[Decimal] = Field(default=None, gt=0)
    default_occasion: Optional[GiftOccasion] = None


class GiftLinkUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[GiftLinkVisibility] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    min_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_amount: Optional[Decimal] = Field(default=None, gt=0)
    default_occasion: Optional[GiftOccasion] = None


class GiftLinkRead(BaseModel):
    id: int
    child_id: int
    family_id: int
    token: str
    name: str
    description: Optional[str]
    visibility: GiftLinkVisibility
    is_active: bool
    expires_at: Optional[datetime]
    max_uses: Optional[int]
    use_count: int
    min_amount: Optional[float]
    max_amount: Optional[float]
    default_occasion: Optional[GiftOccasion]
    created_at: datetime
    portal_url: str = ""

    class Config:
        from_attributes = True


class GiftLinkStats(BaseModel):
    gift_link_id: int
    total_gifts: int
    pending_gifts: int
    approved_gifts: int
    rejected_gifts: int
    total_amount_received: float
    last_gift_at: Optional[datetime]


class PortalGoal(BaseModel):
    id: int
    name: str
    target_amount: float
    current_amount: float
    progress_percentage: float
    image_url: Optional[str]

    class Config:
        from_attributes = True


class PortalWishListItem(BaseModel):
    id: int
    name: str
    price: float
    url: Optional[str]

    class Config:
        from_attributes = True


class GiftPortalData(BaseModel):
    child_first_name: str
    child_avatar_url: Optional[str]
    min_amount: Optional[float]
    max_amount: Optional[float]
    default_occasion: Optional[GiftOccasion]
    visibility: GiftLinkVisibility
    savings_goals: Optional[list[PortalGoal]]
    wish_list: Optional[list[PortalWishListItem]]


class GiftSubmit(BaseModel):
    giver_name: str = Field(min_length=1, max_length=100)
    giver_email: Optional[EmailStr] = None
    giver_relationship: Optional[str] = None
    amount: Decimal = Field(gt=0)
    occasion: GiftOccasion = GiftOccasion.JUST_BECAUSE
    custom_occasion: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=500)


class GiftSubmissionResult(BaseModel):
    gift_id: int
    child_first_name: str
    amount: float
    message: str


class GiftApprove(BaseModel):
    allocate_to_goal_id: Optional[int] = None
    savings_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class GiftReject(BaseModel):
    reason: Optional[str] = None


class GiftRead(BaseModel):
    id: int
    gift_link_id: int
    child_id: int
    giver_name: str
    giver_email: Optional[str]
    giver_relationship: Optional[str]
    amount: float
    occasion: GiftOccasion
    custom_occasion: Optional[str]
    message: Optional[str]
    status: GiftStatus
    rejection_reason: Optional[str]
    processed_at: Optional[datetime]
    allocate_to_goal_id: Optional[int]
    savings_percentage: Optional[int]
    transaction_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class ThankYouNoteCreate(BaseModel):
    message: str = Field(min_length=1, max_length=1000)
    image_url: Optional[str] = None


class ThankYouNoteUpdate(BaseModel):
    message: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    image_url: Optional[str] = None


class ThankYouNoteRead(BaseModel):
    id: int
    gift_id: int
    child_id: int
    message: str
    image_url: Optional[str]
    is_sent: bool
    sent_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PendingThankYou(BaseModel):
    gift_id: int
    giver_name: str
    giver_relationship: Optional[str]
    amount: float
    occasion: GiftOccasion
    custom_occasion: Optional[str]
    received_at: datetime
    days_since_received: int
    has_note: bool
