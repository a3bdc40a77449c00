"""Asynchronous helpers for accounts, families, children and invites.

Route handlers stay thin by delegating the database work here.  Money
movement lives in the ``services`` package instead.
"""

import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.acl import ROLE_CHILD, ROLE_PARENT
from allowance_tracker.auth import get_password_hash, verify_password
from allowance_tracker.models import (
    Child,
    DayOfWeek,
    Family,
    InviteStatus,
    NotificationType,
    ParentInvite,
    User,
    money,
)
from allowance_tracker.services import achievements, notifications

logger = logging.getLogger(__name__)

INVITE_EXPIRY = timedelta(days=7)


# --- users ------------------------------------------------------------------


async def create_user(db: AsyncSession, user: User) -> User:
    """Create a new user, hashing the password and normalizing the email."""

    user.email = user.email.lower()
    if not user.password_hash.startswith("$2b$"):
        user.password_hash = get_password_hash(user.password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def register_parent(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    family_name: str | None = None,
) -> User:
    if await get_user_by_email(db, email):
        raise ValueError("Email already registered")
    user = await create_user(
        db,
        User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password,
            role=ROLE_PARENT,
        ),
    )
    family = Family(name=family_name or f"{last_name} Family", owner_id=user.id)
    db.add(family)
    await db.flush()
    user.family_id = family.id
    await db.commit()
    await db.refresh(user)
    logger.info("Parent %s registered with family %s", user.id, family.id)
    return user


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValueError("Current password is incorrect")
    user.password_hash = get_password_hash(new_password)
    await db.commit()


# --- families ---------------------------------------------------------------


async def get_family(db: AsyncSession, family_id: int) -> Family | None:
    result = await db.execute(select(Family).where(Family.id == family_id))
    return result.scalar_one_or_none()


async def get_family_members(db: AsyncSession, family_id: int) -> list[User]:
    result = await db.execute(
        select(User).where(User.family_id == family_id).order_by(User.role.desc(), User.id)
    )
    return result.scalars().all()


async def get_family_children(db: AsyncSession, family_id: int) -> list[Child]:
    result = await db.execute(
        select(Child).where(Child.family_id == family_id).order_by(Child.first_name)
    )
    return result.scalars().all()


async def get_family_info(db: AsyncSession, family_id: int) -> dict:
    family = await get_family(db, family_id)
    if family is None:
        raise ValueError("Family not found")
    members = await get_family_members(db, family_id)
    return {
        "id": family.id,
        "name": family.name,
        "owner_id": family.owner_id,
        "created_at": family.created_at,
        "parent_count": sum(1 for m in members if m.role == ROLE_PARENT),
        "child_count": sum(1 for m in members if m.role == ROLE_CHILD),
    }


async def _require_owner(db: AsyncSession, user: User) -> Family:
    family = await get_family(db, user.family_id) if user.family_id else None
    if family is None:
        raise ValueError("Family not found")
    if family.owner_id != user.id:
        raise PermissionError("Only the family owner can do this")
    return family


async def remove_parent(db: AsyncSession, owner: User, parent_id: int) -> None:
    family = await _require_owner(db, owner)
    if parent_id == owner.id:
        raise ValueError("You cannot remove yourself from the family")
    parent = await get_user(db, parent_id)
    if parent is None or parent.family_id != family.id or parent.role != ROLE_PARENT:
        raise ValueError("Parent not found")
    parent.family_id = None
    await db.commit()
    logger.info("Parent %s removed from family %s by user %s", parent_id, family.id, owner.id)


async def transfer_ownership(db: AsyncSession, owner: User, new_owner_id: int) -> Family:
    family = await _require_owner(db, owner)
    new_owner = await get_user(db, new_owner_id)
    if new_owner is None or new_owner.family_id != family.id or new_owner.role != ROLE_PARENT:
        raise ValueError("New owner must be a parent in this family")
    family.owner_id = new_owner.id
    await db.commit()
    await db.refresh(family)
    logger.info("Family %s ownership transferred to user %s", family.id, new_owner.id)
    return family


async def leave_family(db: AsyncSession, user: User) -> None:
    family = await get_family(db, user.family_id) if user.family_id else None
    if family is None:
        raise ValueError("Family not found")
    if family.owner_id == user.id:
        raise ValueError("The family owner must transfer ownership before leaving")
    user.family_id = None
    await db.commit()


# --- children ---------------------------------------------------------------


async def create_child(
    db: AsyncSession,
    parent: User,
    email: str,
    password: str,
    first_name: str,
    last_name: str = "",
    weekly_allowance: Decimal = Decimal("0"),
    allowance_day: DayOfWeek | None = None,
    initial_balance: Decimal = Decimal("0"),
) -> Child:
    if parent.family_id is None:
        raise ValueError("Family not found")
    if await get_user_by_email(db, email):
        raise ValueError("Email already registered")
    if weekly_allowance < 0:
        raise ValueError("Weekly allowance cannot be negative")
    user = await create_user(
        db,
        User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password,
            role=ROLE_CHILD,
            family_id=parent.family_id,
        ),
    )
    child = Child(
        user_id=user.id,
        family_id=parent.family_id,
        first_name=first_name,
        weekly_allowance=money(weekly_allowance),
        allowance_day=allowance_day,
        current_balance=money(initial_balance),
    )
    db.add(child)
    await db.commit()
    await db.refresh(child)
    logger.info("Child %s created by user %s", child.id, parent.id)
    try:
        await notifications.send_family_notification(
            db,
            parent.family_id,
            NotificationType.CHILD_ADDED,
            "New Family Member",
            f"{first_name} has joined the family!",
            exclude_user_id=user.id,
        )
        await achievements.try_unlock_badge(db, child.id, "WELCOME")
    except Exception:
        logger.exception("Post-create processing failed for child %s", child.id)
    return child


async def update_child_settings(db: AsyncSession, child: Child, changes: dict) -> Child:
    allowance = changes.get("weekly_allowance")
    if allowance is not None:
        if allowance < 0:
            raise ValueError("Weekly allowance cannot be negative")
        changes["weekly_allowance"] = money(allowance)
    for key, value in changes.items():
        if key == "allowance_day" or value is not None:
            setattr(child, key, value)
    await db.commit()
    await db.refresh(child)
    return child


# --- parent invites ---------------------------------------------------------


async def get_invite_by_token(db: AsyncSession, token: str) -> ParentInvite | None:
    result = await db.execute(select(ParentInvite).where(ParentInvite.token == token))
    return result.scalar_one_or_none()


async def create_invite(
    db: AsyncSession,
    inviter: User,
    email: str,
    first_name: str,
    last_name: str = "",
) -> ParentInvite:
    email = email.lower()
    existing_user = await get_user_by_email(db, email)
    if existing_user is not None and existing_user.family_id == inviter.family_id:
        raise ValueError("This email is already associated with a member of your family.")
    result = await db.execute(
        select(ParentInvite).where(
            ParentInvite.invited_email == email,
            ParentInvite.family_id == inviter.family_id,
            ParentInvite.status == InviteStatus.PENDING,
            ParentInvite.expires_at > datetime.utcnow(),
        )
    )
    if result.scalars().first() is not None:
        raise ValueError("An active invite already exists for this email.")
    invite = ParentInvite(
        invited_email=email,
        first_name=first_name,
        last_name=last_name,
        family_id=inviter.family_id,
        invited_by_id=inviter.id,
        token=secrets.token_urlsafe(32),
        is_existing_user=existing_user is not None,
        expires_at=datetime.utcnow() + INVITE_EXPIRY,
    )
    db.add(invite)
    await db.commit()
    await db.refresh(invite)
    logger.info("Invite %s sent by user %s", invite.id, inviter.id)
    if existing_user is not None:
        try:
            await notifications.send_notification(
                db,
                existing_user.id,
                NotificationType.FAMILY_INVITE,
                "Family Invitation",
                f"{inviter.full_name} invited you to join their family",
                data={"token": invite.token},
            )
        except Exception:
            logger.exception("Failed to notify user %s about invite", existing_user.id)
    return invite


async def validate_invite(db: AsyncSession, token: str) -> ParentInvite:
    invite = await get_invite_by_token(db, token)
    if invite is None:
        raise ValueError("Invite not found")
    if invite.status != InviteStatus.PENDING:
        raise ValueError("This invite is no longer valid")
    if invite.expires_at <= datetime.utcnow():
        raise ValueError("This invite has expired")
    return invite


async def accept_invite_new_user(db: AsyncSession, token: str, password: str) -> User:
    invite = await validate_invite(db, token)
    if invite.is_existing_user or await get_user_by_email(db, invite.invited_email):
        raise ValueError("This invite is for an existing account; log in to accept it")
    user = User(
        email=invite.invited_email,
        first_name=invite.first_name,
        last_name=invite.last_name,
        password_hash=get_password_hash(password),
        role=ROLE_PARENT,
        family_id=invite.family_id,
    )
    db.add(user)
    invite.status = InviteStatus.ACCEPTED
    invite.accepted_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)
    logger.info("Invite %s accepted by new user %s", invite.id, user.id)
    return user


async def accept_invite_existing_user(db: AsyncSession, token: str, user: User) -> User:
    invite = await validate_invite(db, token)
    if user.email != invite.invited_email:
        raise PermissionError("This invite was sent to a different email address")
    if user.role != ROLE_PARENT:
        raise PermissionError("Only parent accounts can join a family")
    if user.family_id is not None:
        family = await get_family(db, user.family_id)
        if family is not None and family.owner_id == user.id:
            raise ValueError("The family owner must transfer ownership before leaving")
    user.family_id = invite.family_id
    invite.status = InviteStatus.ACCEPTED
    invite.accepted_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)
    logger.info("Invite %s accepted by user %s", invite.id, user.id)
    return user


async def cancel_invite(db: AsyncSession, invite_id: int, user: User) -> ParentInvite:
    result = await db.execute(select(ParentInvite).where(ParentInvite.id == invite_id))
    invite = result.scalar_one_or_none()
    if invite is None or invite.family_id != user.family_id:
        raise ValueError("Invite not found")
    if invite.status != InviteStatus.PENDING:
        raise ValueError("Only pending invites can be cancelled")
    invite.status = InviteStatus.CANCELLED
    await db.commit()
    await db.refresh(invite)
    return invite


async def list_pending_invites(db: AsyncSession, family_id: int) -> list[ParentInvite]:
    result = await db.execute(
        select(ParentInvite)
        .where(
            ParentInvite.family_id == family_id,
            ParentInvite.status == InviteStatus.PENDING,
        )
        .order_by(ParentInvite.created_at.desc())
    )
    return result.scalars().all()


async def expire_old_invites(db: AsyncSession) -> int:
    result = await db.execute(
        select(ParentInvite).where(
            ParentInvite.status == InviteStatus.PENDING,
            ParentInvite.expires_at <= datetime.utcnow(),
        )
    )
    expired = result.scalars().all()
    for invite in expired:
        invite.status = InviteStatus.EXPIRED
    await db.commit()
    if expired:
        logger.info("Expired %d parent invite(s)", len(expired))
    return len(expired)
