# allowance_tracker/routes/auth.py
"""Authentication endpoints: registration, login and the current user."""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.auth import (
    authenticate_user,
    create_access_token,
    get_child_by_user_id,
    get_current_user,
)
from allowance_tracker.acl import get_default_permissions_for_role
from allowance_tracker.crud import change_password, register_parent
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    ParentRegister,
    PasswordChange,
    TokenResponse,
    UserLogin,
    UserMeResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = {
    "code": "auth_invalid_credentials",
    "message": "Invalid email or password",
}


def _token_response(user: User) -> dict:
    return {
        "access_token": create_access_token(data={"sub": user.email}),
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: ParentRegister, db: AsyncSession = Depends(get_session)):
    """Create a parent account together with a new family."""

    try:
        user = await register_parent(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            family_name=data.family_name,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_email_registered",
                "message": "Email is already registered.",
            },
        )
    return _token_response(user)


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    """OAuth2 password flow used by interactive docs and external clients."""

    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        logger.warning("Failed OAuth login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in via OAuth form", user.email)
    return {
        "access_token": create_access_token(data={"sub": user.email}),
        "token_type": "bearer",
    }


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_session)):
    """JSON-based login used by the frontend."""

    user = await authenticate_user(db, data.email, data.password)
    if not user:
        logger.warning("Failed login for %s", data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in", user.email)
    return _token_response(user)


@router.get("/me", response_model=UserMeResponse)
async def me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    child = await get_child_by_user_id(db, current_user.id)
    return UserMeResponse(
        **UserResponse.model_validate(current_user).model_dump(),
        permissions=get_default_permissions_for_role(current_user.role),
        child_id=child.id if child else None,
    )


@router.post("/change-password", status_code=204)
async def update_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        await change_password(db, current_user, data.current_password, data.new_password)
    except ValueError as exc:
        raise to_http(exc)
    logger.info("User %s changed their password", current_user.id)
