import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.auth import get_current_user
from allowance_tracker.database import get_session
from allowance_tracker.models import User
from allowance_tracker.schemas import DeviceRead, DeviceRegister
from allowance_tracker.services import device_tokens

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("", response_model=DeviceRead, status_code=201)
async def register_device(
    data: DeviceRegister,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    device = await device_tokens.register_device(
        db, current_user.id, data.token, data.platform, data.device_name, data.app_version
    )
    logger.info("Device %s registered for user %s", device.id, current_user.id)
    return device


@router.get("", response_model=List[DeviceRead])
async def list_devices(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if active_only:
        return await device_tokens.get_active_devices(db, current_user.id)
    return await device_tokens.get_user_devices(db, current_user.id)


@router.delete("/token/{token}", status_code=204)
async def deactivate_by_token(
    token: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await device_tokens.deactivate_by_token(db, token, current_user.id):
        raise HTTPException(status_code=404, detail="Device not found")


@router.delete("/{device_id}", status_code=204)
async def deactivate_device(
    device_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await device_tokens.deactivate_device(db, device_id, current_user.id):
        raise HTTPException(status_code=404, detail="Device not found")
