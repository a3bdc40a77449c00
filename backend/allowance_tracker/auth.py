# allowance_tracker/auth.py
from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import User, Child
from allowance_tracker.database import get_session
from allowance_tracker.acl import (
    ROLE_PARENT,
    ROLE_CHILD,
    get_default_permissions_for_role,
)

import os

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


async def authenticate_user(db: AsyncSession, email: str, password: str):
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_session),
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    return user


def require_role(*roles: str):
    """Dependency factory to require a user role."""

    async def role_dependency(current_user: User = Depends(get_current_user)):
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return role_dependency


def require_permissions(*perms: str):
    """Dependency factory to require one or more role permissions."""

    async def perm_dependency(current_user: User = Depends(get_current_user)):
        user_perms = set(get_default_permissions_for_role(current_user.role))
        for perm in perms:
            if perm not in user_perms:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Insufficient permissions",
                )
        return current_user

    return perm_dependency


async def get_child_by_id(db: AsyncSession, child_id: int):
    result = await db.execute(select(Child).where(Child.id == child_id))
    return result.scalars().first()


async def get_child_by_user_id(db: AsyncSession, user_id: int):
    result = await db.execute(select(Child).where(Child.user_id == user_id))
    return result.scalars().first()


async def get_current_child(
    current_user: User = Depends(require_role(ROLE_CHILD)),
    db: AsyncSession = Depends(get_session),
):
    child = await get_child_by_user_id(db, current_user.id)
    if child is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return child


async def authorize_child_access(
    db: AsyncSession,
    user: User,
    child_id: int,
    parent_only: bool = False,
) -> Child:
    """Return the child if ``user`` may act on it.

    Parents may act on any child in their family; a child only on their
    own profile.  Children of other families look like missing rows.
    """
    child = await get_child_by_id(db, child_id)
    if child is None:
        raise HTTPException(status_code=404, detail="Child not found")
    if user.role == ROLE_PARENT:
        if user.family_id is None or user.family_id != child.family_id:
            raise HTTPException(status_code=404, detail="Child not found")
        return child
    if parent_only:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    if child.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized")
    return child
