"""Chores: assignment, completion by the child and parent review."""

import logging
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from allowance_tracker.models import (
    BadgeTrigger,
    Child,
    ChoreTask,
    CompletionStatus,
    DayOfWeek,
    NotificationType,
    RecurrenceType,
    TaskCompletion,
    TaskStatus,
    TransactionCategory,
    TransactionType,
    User,
    money,
)
from allowance_tracker.services import achievements, notifications
from allowance_tracker.services.transactions import add_ledger_entry

logger = logging.getLogger(__name__)


async def _get_child(db: AsyncSession, child_id: int) -> Child:
    result = await db.execute(select(Child).where(Child.id == child_id))
    child = result.scalar_one_or_none()
    if child is None:
        raise ValueError("Child not found")
    return child


async def get_task(db: AsyncSession, task_id: int) -> ChoreTask | None:
    result = await db.execute(select(ChoreTask).where(ChoreTask.id == task_id))
    return result.scalar_one_or_none()


async def _require_task(db: AsyncSession, task_id: int) -> ChoreTask:
    task = await get_task(db, task_id)
    if task is None:
        raise ValueError("Task not found")
    return task


async def create_task(
    db: AsyncSession,
    parent: User,
    child_id: int,
    title: str,
    reward_amount: Decimal,
    description: str | None = None,
    is_recurring: bool = False,
    recurrence_type: RecurrenceType | None = None,
    recurrence_day: DayOfWeek | None = None,
    recurrence_day_of_month: int | None = None,
) -> ChoreTask:
    child = await _get_child(db, child_id)
    if parent.family_id != child.family_id:
        raise PermissionError("Cannot create task for child in different family")
    if reward_amount < 0:
        raise ValueError("Reward amount cannot be negative")
    task = ChoreTask(
        child_id=child.id,
        family_id=child.family_id,
        title=title,
        description=description,
        reward_amount=money(reward_amount),
        is_recurring=is_recurring,
        recurrence_type=recurrence_type if is_recurring else None,
        recurrence_day=recurrence_day if is_recurring else None,
        recurrence_day_of_month=recurrence_day_of_month if is_recurring else None,
        created_by_id=parent.id,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("Task %s created by user %s", task.id, parent.id)
    try:
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.TASK_ASSIGNED,
            "New Task",
            f"{title} (${task.reward_amount})",
            related_entity_id=task.id,
            related_entity_type="ChoreTask",
        )
    except Exception:
        logger.exception("Failed to notify child %s about task %s", child.id, task.id)
    return task


async def _pending_count(db: AsyncSession, task_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(TaskCompletion).where(
            TaskCompletion.task_id == task_id,
            TaskCompletion.status == CompletionStatus.PENDING_APPROVAL,
        )
    )
    return result.scalar()


async def update_task(db: AsyncSession, task_id: int, changes: dict) -> ChoreTask:
    task = await _require_task(db, task_id)
    if await _pending_count(db, task_id):
        raise ValueError("Cannot update task with pending approvals")
    for key, value in changes.items():
        if value is not None:
            setattr(task, key, money(value) if key == "reward_amount" else value)
    task.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(task)
    return task


async def list_tasks(
    db: AsyncSession,
    family_id: int,
    child_id: int | None = None,
    status: TaskStatus | None = None,
    is_recurring: bool | None = None,
) -> list[ChoreTask]:
    query = select(ChoreTask).where(ChoreTask.family_id == family_id)
    if child_id is not None:
        query = query.where(ChoreTask.child_id == child_id)
    if status is not None:
        query = query.where(ChoreTask.status == status)
    if is_recurring is not None:
        query = query.where(ChoreTask.is_recurring == is_recurring)
    result = await db.execute(query.order_by(ChoreTask.created_at.desc()))
    return result.scalars().all()


async def archive_task(db: AsyncSession, task_id: int) -> ChoreTask:
    task = await _require_task(db, task_id)
    task.status = TaskStatus.ARCHIVED
    task.archived_at = datetime.utcnow()
    task.updated_at = task.archived_at
    await db.commit()
    await db.refresh(task)
    return task


async def complete_task(
    db: AsyncSession,
    task_id: int,
    child: Child,
    notes: str | None = None,
    photo_url: str | None = None,
) -> TaskCompletion:
    task = await _require_task(db, task_id)
    if task.child_id != child.id:
        raise PermissionError("Can only complete tasks assigned to you")
    if task.status == TaskStatus.ARCHIVED:
        raise ValueError("Cannot complete archived task")
    completion = TaskCompletion(
        task_id=task.id, child_id=child.id, notes=notes, photo_url=photo_url
    )
    db.add(completion)
    await db.commit()
    await db.refresh(completion)
    logger.info("Task %s completed by child %s", task.id, child.id)
    try:
        await notifications.send_family_notification(
            db,
            task.family_id,
            NotificationType.TASK_COMPLETION_PENDING_APPROVAL,
            "Task Needs Approval",
            f"{child.first_name} completed: {task.title}",
            exclude_user_id=child.user_id,
        )
        await achievements.check_and_unlock_badges(
            db, child.id, BadgeTrigger.TASK_COMPLETED, {"task_id": task.id}
        )
    except Exception:
        logger.exception("Post-completion processing failed for task %s", task.id)
    return completion


async def get_completion(db: AsyncSession, completion_id: int) -> TaskCompletion | None:
    result = await db.execute(
        select(TaskCompletion).where(TaskCompletion.id == completion_id)
    )
    return result.scalar_one_or_none()


async def list_completions(
    db: AsyncSession,
    task_id: int | None = None,
    child_id: int | None = None,
    status: CompletionStatus | None = None,
) -> list[TaskCompletion]:
    query = select(TaskCompletion)
    if task_id is not None:
        query = query.where(TaskCompletion.task_id == task_id)
    if child_id is not None:
        query = query.where(TaskCompletion.child_id == child_id)
    if status is not None:
        query = query.where(TaskCompletion.status == status)
    result = await db.execute(
        query.order_by(TaskCompletion.completed_at.desc(), TaskCompletion.id.desc())
    )
    return result.scalars().all()


async def pending_approvals(db: AsyncSession, family_id: int) -> list[TaskCompletion]:
    result = await db.execute(
        select(TaskCompletion)
        .join(ChoreTask, ChoreTask.id == TaskCompletion.task_id)
        .where(
            ChoreTask.family_id == family_id,
            TaskCompletion.status == CompletionStatus.PENDING_APPROVAL,
        )
        .order_by(TaskCompletion.completed_at, TaskCompletion.id)
    )
    return result.scalars().all()


async def review_completion(
    db: AsyncSession,
    completion_id: int,
    reviewer: User,
    approve: bool,
    rejection_reason: str | None = None,
) -> TaskCompletion:
    completion = await get_completion(db, completion_id)
    if completion is None:
        raise ValueError("Completion not found")
    if completion.status != CompletionStatus.PENDING_APPROVAL:
        raise ValueError("Completion already reviewed")
    task = await _require_task(db, completion.task_id)
    if reviewer.family_id != task.family_id:
        raise PermissionError("Cannot review tasks from another family")
    child = await _get_child(db, completion.child_id)

    completion.approved_by_id = reviewer.id
    completion.approved_at = datetime.utcnow()
    if approve:
        completion.status = CompletionStatus.APPROVED
        if task.reward_amount > 0:
            tx = add_ledger_entry(
                db,
                child,
                task.reward_amount,
                TransactionType.CREDIT,
                TransactionCategory.TASK,
                f"Task completed: {task.title}",
                created_by_id=reviewer.id,
            )
            await db.flush()
            completion.transaction_id = tx.id
    else:
        completion.status = CompletionStatus.REJECTED
        completion.rejection_reason = rejection_reason
    await db.commit()
    await db.refresh(completion)
    logger.info(
        "Completion %s %s by user %s",
        completion.id,
        "approved" if approve else "rejected",
        reviewer.id,
    )
    try:
        if approve:
            await notifications.send_notification(
                db,
                child.user_id,
                NotificationType.TASK_APPROVED,
                "Task Approved!",
                f"{task.title} was approved. You earned ${task.reward_amount}!",
                related_entity_id=task.id,
                related_entity_type="ChoreTask",
            )
            await achievements.check_and_unlock_badges(
                db, child.id, BadgeTrigger.TASK_APPROVED, {"task_id": task.id}
            )
        else:
            await notifications.send_notification(
                db,
                child.user_id,
                NotificationType.TASK_REJECTED,
                "Task Not Approved",
                f"{task.title}: {rejection_reason or 'please try again'}",
                related_entity_id=task.id,
                related_entity_type="ChoreTask",
            )
    except Exception:
        logger.exception("Post-review processing failed for completion %s", completion.id)
    return completion


async def get_statistics(db: AsyncSession, child_id: int) -> dict:
    tasks = await db.execute(
        select(ChoreTask.status, func.count())
        .where(ChoreTask.child_id == child_id)
        .group_by(ChoreTask.status)
    )
    task_counts = dict(tasks.all())
    result = await db.execute(
        select(TaskCompletion, ChoreTask.reward_amount)
        .join(ChoreTask, ChoreTask.id == TaskCompletion.task_id)
        .where(TaskCompletion.child_id == child_id)
    )
    pending = approved = rejected = 0
    earned = Decimal("0")
    pending_earnings = Decimal("0")
    for completion, reward in result.all():
        if completion.status == CompletionStatus.APPROVED:
            approved += 1
            earned += Decimal(reward)
        elif completion.status == CompletionStatus.REJECTED:
            rejected += 1
        else:
            pending += 1
            pending_earnings += Decimal(reward)
    total = pending + approved + rejected
    return {
        "total_tasks": sum(task_counts.values()),
        "active_tasks": task_counts.get(TaskStatus.ACTIVE, 0),
        "archived_tasks": task_counts.get(TaskStatus.ARCHIVED, 0),
        "total_completions": total,
        "pending_approvals": pending,
        "approved_count": approved,
        "rejected_count": rejected,
        "total_earned": money(earned),
        "pending_earnings": money(pending_earnings),
        "completion_rate": round(approved / total * 100, 2) if total else 0.0,
    }


def is_due(task: ChoreTask, today: date) -> bool:
    if task.recurrence_type == RecurrenceType.DAILY:
        return True
    if task.recurrence_type == RecurrenceType.WEEKLY:
        return task.recurrence_day == DayOfWeek.from_date(today)
    if task.recurrence_type == RecurrenceType.MONTHLY:
        return task.recurrence_day_of_month == today.day
    return False


async def generate_recurring_tasks(db: AsyncSession, today: date | None = None) -> int:
    """Remind children about recurring chores due today."""
    today = today or date.today()
    start = datetime.combine(today, datetime.min.time())
    result = await db.execute(
        select(ChoreTask).where(
            ChoreTask.is_recurring == True,  # noqa: E712
            ChoreTask.status == TaskStatus.ACTIVE,
        )
    )
    reminded = 0
    for task in result.scalars().all():
        if not is_due(task, today):
            continue
        done = await db.execute(
            select(func.count()).select_from(TaskCompletion).where(
                TaskCompletion.task_id == task.id,
                TaskCompletion.completed_at >= start,
            )
        )
        if done.scalar():
            continue
        child = await _get_child(db, task.child_id)
        await notifications.send_notification(
            db,
            child.user_id,
            NotificationType.TASK_REMINDER,
            "Task Reminder",
            f"Don't forget: {task.title}",
            related_entity_id=task.id,
            related_entity_type="ChoreTask",
        )
        reminded += 1
    logger.info("Sent %d recurring task reminder(s)", reminded)
    return reminded
