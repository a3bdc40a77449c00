import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from allowance_tracker.acl import PERM_COMPLETE_TASKS, PERM_MANAGE_TASKS, ROLE_CHILD
from allowance_tracker.auth import (
    authorize_child_access,
    get_child_by_user_id,
    get_current_child,
    get_current_user,
    require_permissions,
)
from allowance_tracker.database import get_session
from allowance_tracker.models import Child, ChoreTask, CompletionStatus, TaskStatus, User
from allowance_tracker.routes.errors import to_http
from allowance_tracker.schemas import (
    CompletionRead,
    CompletionReview,
    TaskComplete,
    TaskCreate,
    TaskRead,
    TaskStatistics,
    TaskUpdate,
)
from allowance_tracker.services import tasks

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tasks", tags=["tasks"])


async def _task_for_user(
    db: AsyncSession, task_id: int, user: User, parent_only: bool = False
) -> ChoreTask:
    task = await tasks.get_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    await authorize_child_access(db, user, task.child_id, parent_only=parent_only)
    return task


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    data: TaskCreate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, data.child_id, parent_only=True)
    try:
        task = await tasks.create_task(db, current_user, **data.model_dump())
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)
    logger.info("Task %s created by user %s", task.id, current_user.id)
    return task


@router.get("", response_model=List[TaskRead])
async def list_tasks(
    child_id: Optional[int] = None,
    status: Optional[TaskStatus] = None,
    is_recurring: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if current_user.role == ROLE_CHILD:
        # children only ever see their own chores
        child = await get_child_by_user_id(db, current_user.id)
        if child is None:
            raise HTTPException(status_code=404, detail="Child not found")
        child_id = child.id
    elif child_id is not None:
        await authorize_child_access(db, current_user, child_id)
    if current_user.family_id is None:
        return []
    return await tasks.list_tasks(db, current_user.family_id, child_id, status, is_recurring)


@router.get("/pending-approvals", response_model=List[CompletionRead])
async def pending_approvals(
    current_user: User = Depends(require_permissions(PERM_MANAGE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    if current_user.family_id is None:
        return []
    return await tasks.pending_approvals(db, current_user.family_id)


@router.get("/children/{child_id}/statistics", response_model=TaskStatistics)
async def statistics(
    child_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await authorize_child_access(db, current_user, child_id)
    return await tasks.get_statistics(db, child_id)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await _task_for_user(db, task_id, current_user)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    current_user: User = Depends(require_permissions(PERM_MANAGE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    await _task_for_user(db, task_id, current_user, parent_only=True)
    try:
        return await tasks.update_task(db, task_id, data.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise to_http(exc)


@router.delete("/{task_id}", response_model=TaskRead)
async def archive_task(
    task_id: int,
    current_user: User = Depends(require_permissions(PERM_MANAGE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    await _task_for_user(db, task_id, current_user, parent_only=True)
    task = await tasks.archive_task(db, task_id)
    logger.info("Task %s archived by user %s", task_id, current_user.id)
    return task


@router.post("/{task_id}/complete", response_model=CompletionRead, status_code=201)
async def complete_task(
    task_id: int,
    data: TaskComplete,
    child: Child = Depends(get_current_child),
    current_user: User = Depends(require_permissions(PERM_COMPLETE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await tasks.complete_task(db, task_id, child, data.notes, data.photo_url)
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)


@router.get("/{task_id}/completions", response_model=List[CompletionRead])
async def task_completions(
    task_id: int,
    status: Optional[CompletionStatus] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await _task_for_user(db, task_id, current_user)
    return await tasks.list_completions(db, task_id=task_id, status=status)


@router.post("/completions/{completion_id}/review", response_model=CompletionRead)
async def review_completion(
    completion_id: int,
    data: CompletionReview,
    current_user: User = Depends(require_permissions(PERM_MANAGE_TASKS)),
    db: AsyncSession = Depends(get_session),
):
    if not data.approve and not data.rejection_reason:
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    try:
        return await tasks.review_completion(
            db, completion_id, current_user, data.approve, data.rejection_reason
        )
    except (ValueError, PermissionError) as exc:
        raise to_http(exc)
