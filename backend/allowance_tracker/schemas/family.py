from datetime import datetime
from pydantic import BaseModel, EmailStr

from allowance_tracker.models import InviteStatus


class FamilyRead(BaseModel):
    id: int
    name: str
    owner_id: int | None
    created_at: datetime
    parent_count: int
    child_count: int


class FamilyMember(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    is_owner: bool = False


class OwnershipTransfer(BaseModel):
    new_owner_id: int


class InviteCreate(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str = ""


class InviteRead(BaseModel):
    id: int
    invited_email: str
    first_name: str
    last_name: str
    family_id: int
    is_existing_user: bool
    status: InviteStatus
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class InviteAcceptNew(BaseModel):
    token: str
    password: str


class InviteAcceptExisting(BaseModel):
    token: str
