import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_FAMILY, ROLE_PARENT
from allowance_tracker.auth import get_current_user, require_permissions, require_role
from allowance_tracker import crud
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    ChildRead,
    FamilyMember,
    FamilyRead,
    OwnershipTransfer,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/families", tags=["families"])


@router.get("/current", response_model=FamilyRead)
async def current_family(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await crud.get_family_info(db, current_user.family_id or 0)
    except ValueError as exc:
        raise to_http(exc)


@router.get("/current/members", response_model=List[FamilyMember])
async def family_members(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    family = await crud.get_family(db, current_user.family_id or 0)
    if family is None:
        return []
    members = await crud.get_family_members(db, family.id)
    return [
        FamilyMember(
            id=m.id,
            email=m.email,
            first_name=m.first_name,
            last_name=m.last_name,
            role=m.role,
            is_owner=m.id == family.owner_id,
        )
        for m in members
    ]


@router.get("/current/children", response_model=List[ChildRead])
async def family_children(
    current_user: User = Depends(require_role(ROLE_PARENT)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        return []
    return await crud.get_family_children(db, current_user.family_id)


@router.delete("/current/parents/{parent_id}", status_code=204)
async def remove_parent(
    parent_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_FAMILY)),
    db: AsyncSession = Depends(get_session),
):
    try:
        await crud.remove_parent(db, current_user, parent_id)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.post("/current/transfer-ownership", response_model=FamilyRead)
async def transfer_ownership(
    data: OwnershipTransfer,
    current_user: User = Depends(require_permissions(PERM_MANAGE_FAMILY)),
    db: AsyncSession = Depends(get_session),
):
    try:
        family = await crud.transfer_ownership(db, current_user, data.new_owner_id)
        return await crud.get_family_info(db, family.id)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.post("/current/leave", status_code=204)
async def leave_family(
    current_user: User = Depends(require_role(ROLE_PARENT)),
    db: AsyncSession = Depends(get_session),
):
    try:
        await crud.leave_family(db, current_user)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("User %s left their family", current_user.id)
