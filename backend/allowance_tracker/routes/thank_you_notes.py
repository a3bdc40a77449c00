import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_WRITE_THANK_YOU, get_default_permissions_for_role
from allowance_tracker.auth import authorize_child_access, get_current_child, get_current_user
from allowance_tracker.database import get_session
from allowance_tracker.models import Child, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    PendingThankYou,
    ThankYouNoteCreate,
    ThankYouNoteRead,
    ThankYouNoteUpdate,
)
from allowance_tracker.services import gifts, thank_you_notes

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/thank-you-notes", tags=["thank-you-notes"])


def _require_write(user: User) -> None:
    if PERM_WRITE_THANK_YOU not in get_default_permissions_for_role(user.role):
        raise HTTPException(status_code=403, detail="Insufficient permissions")


@router.get("/pending", response_model=List[PendingThankYou])
async def pending(
    child: Child = Depends(get_current_child),
    db: AsyncSession = Depends(get_session),
):
    return await thank_you_notes.get_pending(db, child.id)


@router.get("/children/{child_id}", response_model=List[ThankYouNoteRead])
async def list_for_child(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await thank_you_notes.list_for_child(db, child_id)


@router.get("/gifts/{gift_id}", response_model=ThankYouNoteRead)
async def get_note(
    gift_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    gift = await gifts.get_gift(db, gift_id)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")
    await authorize_child_access(db, current_user, gift.child_id)
    note = await thank_you_notes.get_note_for_gift(db, gift_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Thank you note not found")
    return note


@router.post("/gifts/{gift_id}", response_model=ThankYouNoteRead, status_code=201)
async def create_note(
    gift_id: int,
    data: ThankYouNoteCreate,
    child: Child = Depends(get_current_child),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    _require_write(current_user)
    try:
        return await thank_you_notes.create_note(db, child, gift_id, data.message, data.image_url)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.put("/gifts/{gift_id}", response_model=ThankYouNoteRead)
async def update_note(
    gift_id: int,
    data: ThankYouNoteUpdate,
    child: Child = Depends(get_current_child),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    _require_write(current_user)
    try:
        return await thank_you_notes.update_note(db, child, gift_id, data.message, data.image_url)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.post("/gifts/{gift_id}/send", response_model=ThankYouNoteRead)
async def send_note(
    gift_id: int,
    child: Child = Depends(get_current_child),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    _require_write(current_user)
    try:
        note = await thank_you_notes.send_note(db, child, gift_id)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)
    logger.info("Thank you note for gift %s sent by child %s", gift_id, child.id)
    return note
