import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker import crud
from allowance_tracker.acl import PERM_MANAGE_FAMILY
from allowance_tracker.auth import create_access_token, get_current_user, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    InviteAcceptExisting,
    InviteAcceptNew,
    InviteCreate,
    InviteRead,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/invites", tags=["invites"])


@router.post("", response_model=InviteRead, status_code=201)
async def send_invite(
    data: InviteCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_FAMILY)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        raise to_http(ValueError("Family not found"))
    try:
        return await crud.create_invite(
            db, current_user, data.email, data.first_name, data.last_name
        )
    except ValueError as exc:
        raise to_http(exc)


@router.get("", response_model=List[InviteRead])
async def pending_invites(
    current_user: User = Depends(require_permissions(PERM_MANAGE_FAMILY)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        return []
    return await crud.list_pending_invites(db, current_user.family_id)


@router.get("/validate/{token}", response_model=InviteRead)
async def validate_invite(token: str, db: AsyncSession = Depends(get_session)):
    try:
        return await crud.validate_invite(db, token)
    except ValueError as exc:
        raise to_http(exc)


@router.post("/accept", response_model=TokenResponse, status_code=201)
async def accept_new(data: InviteAcceptNew, db: AsyncSession = Depends(get_session)):
    """Create the invited parent's account and join the family."""

    try:
        user = await crud.accept_invite_new_user(db, data.token, data.password)
    except ValueError as exc:
        raise to_http(exc)
    return {
        "access_token": create_access_token(data={"sub": user.email}),
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


@router.post("/accept-existing", response_model=UserResponse)
async def accept_existing(
    data: InviteAcceptExisting,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await crud.accept_invite_existing_user(db, data.token, current_user)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.delete("/{invite_id}", response_model=InviteRead)
async def cancel_invite(
    invite_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_FAMILY)),
    db: AsyncSession = Depends(get_session),
):
    try:
        invite = await crud.cancel_invite(db, invite_id, current_user)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Invite %s cancelled by user %s", invite_id, current_user.id)
    return invite
