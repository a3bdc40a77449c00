import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_CHILDREN
from allowance_tracker.auth import (
    authorize_child_access,
    get_current_user,
    require_permissions,
)
from allowance_tracker import crud
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import ChildCreate, ChildRead, ChildSettingsUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/children", tags=["children"])


@router.post("", response_model=ChildRead, status_code=201)
async def add_child(
    data: ChildCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_CHILDREN)),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await crud.create_child(
            db,
            current_user,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            weekly_allowance=data.weekly_allowance,
            allowance_day=data.allowance_day,
            initial_balance=data.initial_balance,
        )
    except ValueError as exc:
        raise to_http(exc)


@router.get("/{child_id}", response_model=ChildRead)
async def get_child(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await authorize_child_access(db, current_user, child_id)


@router.put("/{child_id}/settings", response_model=ChildRead)
async def update_child_settings(
    child_id: int,
    data: ChildSettingsUpdate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_CHILDREN)),
    db: AsyncSession = Depends(get_session),
):
    child = await authorize_child_access(db, current_user, child_id, parent_only=True)
    try:
        updated = await crud.update_child_settings(
            db, child, data.model_dump(exclude_unset=True)
        )
    except ValueError as exc:
        raise to_http(exc)
    logger.info("Child %s settings updated by user %s", child_id, current_user.id)
    return updated
