import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_MANAGE_GIFTS
from allowance_tracker.auth import authorize_child_access, require_permissions
from allowance_tracker.database import get_session
from allowance_tracker.models import GiftLink, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import GiftLinkCreate, GiftLinkRead, GiftLinkStats, GiftLinkUpdate
from allowance_tracker.services import gifts

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/gift-links", tags=["gift-links"])


def _read(link: GiftLink) -> GiftLinkRead:
    return GiftLinkRead.model_validate(link).model_copy(
        update={"portal_url": gifts.portal_url(link)}
    )


async def _link_for_user(db: AsyncSession, link_id: int, user: User) -> GiftLink:
    link = await gifts.get_link(db, link_id)
    if link is None or link.family_id != user.family_id:
        raise HTTPException(status_code=404, detail="Gift link not found")
    return link


@router.post("", response_model=GiftLinkRead, status_code=201)
async def create_link(
    data: GiftLinkCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id, parent_only=True)
    try:
        link = await gifts.create_link(db, current_user, **data.model_dump())
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)
    return _read(link)


@router.get("", response_model=List[GiftLinkRead])
async def list_links(
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        return []
    return [_read(link) for link in await gifts.list_family_links(db, current_user.family_id)]


@router.get("/{link_id}", response_model=GiftLinkRead)
async def get_link(
    link_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    return _read(await _link_for_user(db, link_id, current_user))


@router.put("/{link_id}", response_model=GiftLinkRead)
async def update_link(
    link_id: int,
    data: GiftLinkUpdate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    link = await _link_for_user(db, link_id, current_user)
    changes = data.model_dump(exclude_unset=True)
    low = changes.get("min_amount", link.min_amount)
    high = changes.get("max_amount", link.max_amount)
    if low is not None and high is not None and low > high:
        raise HTTPException(status_code=400, detail="Minimum amount cannot exceed maximum amount")
    return _read(await gifts.update_link(db, link, changes))


@router.delete("/{link_id}", response_model=GiftLinkRead)
async def deactivate_link(
    link_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    link = await _link_for_user(db, link_id, current_user)
    logger.info("Gift link %s deactivated by user %s", link_id, current_user.id)
    return _read(await gifts.deactivate_link(db, link))


@router.post("/{link_id}/regenerate", response_model=GiftLinkRead)
async def regenerate_token(
    link_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    link = await _link_for_user(db, link_id, current_user)
    logger.info("Gift link %s token regenerated by user %s", link_id, current_user.id)
    return _read(await gifts.regenerate_token(db, link))


@router.get("/{link_id}/stats", response_model=GiftLinkStats)
async def link_stats(
    link_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_GIFTS)),
    db: AsyncSession = Depends(get_session),
):
    link = await _link_for_user(db, link_id, current_user)
    return await gifts.get_link_stats(db, link)
