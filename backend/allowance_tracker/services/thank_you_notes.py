"""Thank-you notes children write for approved gifts."""

import logging
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import Child, Gift, GiftStatus, ThankYouNote

logger = logging.getLogger(__name__)


async def get_pending(db: AsyncSession, child_id: int) -> list[dict]:
    """Approved gifts still waiting for a sent note, oldest first."""
    result = await db.execute(
        select(Gift, ThankYouNote)
        .outerjoin(ThankYouNote, ThankYouNote.gift_id == Gift.id)
        .where(Gift.child_id == child_id, Gift.status == GiftStatus.APPROVED)
        .order_by(Gift.created_at)
    )
    now = datetime.utcnow()
    pending = []
    for gift, note in result.all():
        if note is not None and note.is_sent:
            continue
        received = gift.processed_at or gift.created_at
        pending.append(
            {
                "gift_id": gift.id,
                "giver_name": gift.giver_name,
                "giver_relationship": gift.giver_relationship,
                "amount": gift.amount,
                "occasion": gift.occasion,
                "custom_occasion": gift.custom_occasion,
                "received_at": received,
                "days_since_received": (now - received).days,
                "has_note": note is not None,
            }
        )
    return pending


async def get_note_for_gift(db: AsyncSession, gift_id: int) -> ThankYouNote | None:
    result = await db.execute(select(ThankYouNote).where(ThankYouNote.gift_id == gift_id))
    return result.scalar_one_or_none()


async def _gift_for_child(db: AsyncSession, gift_id: int, child: Child) -> Gift:
    result = await db.execute(select(Gift).where(Gift.id == gift_id))
    gift = result.scalar_one_or_none()
    if gift is None:
        raise ValueError("Gift not found.")
    if gift.child_id != child.id:
        raise PermissionError("You can only write thank you notes for your own gifts.")
    if gift.status != GiftStatus.APPROVED:
        raise ValueError("Thank you notes can only be written for approved gifts.")
    return gift


async def create_note(
    db: AsyncSession,
    child: Child,
    gift_id: int,
    message: str,
    image_url: str | None = None,
) -> ThankYouNote:
    gift = await _gift_for_child(db, gift_id, child)
    if await get_note_for_gift(db, gift.id) is not None:
        raise ValueError("A thank you note already exists for this gift.")
    note = ThankYouNote(
        gift_id=gift.id, child_id=child.id, message=message, image_url=image_url
    )
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


async def update_note(
    db: AsyncSession,
    child: Child,
    gift_id: int,
    message: str | None = None,
    image_url: str | None = None,
) -> ThankYouNote:
    await _gift_for_child(db, gift_id, child)
    note = await get_note_for_gift(db, gift_id)
    if note is None:
        raise ValueError("Thank you note not found.")
    if note.is_sent:
        raise ValueError("Cannot edit a thank you note that has already been sent.")
    if message is not None:
        note.message = message
    if image_url is not None:
        note.image_url = image_url
    note.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(note)
    return note


async def send_note(db: AsyncSession, child: Child, gift_id: int) -> ThankYouNote:
    gift = await _gift_for_child(db, gift_id, child)
    note = await get_note_for_gift(db, gift_id)
    if note is None:
        raise ValueError("Thank you note not found.")
    if note.is_sent:
        raise ValueError("Thank you note has already been sent.")
    if not gift.giver_email:
        raise ValueError("Cannot send thank you note: the giver has no email address.")
    # delivery is handed to the mail relay out of band
    logger.info("Thank you note %s queued for %s", note.id, gift.giver_email)
    note.is_sent = True
    note.sent_at = datetime.utcnow()
    note.updated_at = note.sent_at
    await db.commit()
    await db.refresh(note)
    return note


async def list_for_child(db: AsyncSession, child_id: int) -> list[ThankYouNote]:
    result = await db.execute(
        select(ThankYouNote)
        .where(ThankYouNote.child_id == child_id)
        .order_by(ThankYouNote.created_at.desc())
    )
    return result.scalars().all()
