from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from taskmanagement.models.task import TaskItem
from taskmanagement.utils.timezone import to_utc_aware
from .config import EligibilityPolicy


@dataclass(frozen=True)
class OverdueTask:
    id: int
    title: str
    due_date: datetime
    owner_id: int
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class TaskState:
    id: int
    is_complete: bool
    updated_at: Optional[datetime]


def get_overdue_tasks(
    db: Session,
    now: datetime,
    policy: EligibilityPolicy = EligibilityPolicy.DUE_DATE,
    interval: Optional[timedelta] = None,
    limit: int = 500,
) -> List[OverdueTask]:
    """Incomplete tasks past their due date that have not been notified yet.

    ``policy`` decides what "not notified yet" means:
    - DUE_DATE: updated_at is null or earlier than the due date (once per episode)
    - INTERVAL: updated_at is null or older than ``now - interval`` (every cycle)
    """
    if policy == EligibilityPolicy.DUE_DATE:
        bound = TaskItem.updated_at < TaskItem.due_date
    else:
        if interval is None:
            raise ValueError("interval is required for the INTERVAL eligibility policy")
        bound = TaskItem.updated_at < (now - interval)

    stmt = (
        select(TaskItem.id, TaskItem.title, TaskItem.due_date, TaskItem.owner_id, TaskItem.updated_at)
        .where(TaskItem.is_complete.is_(False))
        .where(TaskItem.due_date <= now)
        .where(or_(TaskItem.updated_at.is_(None), bound))
        .order_by(TaskItem.due_date.asc(), TaskItem.id.asc())
        .limit(limit)
    )
    return [
        OverdueTask(
            id=row.id,
            title=row.title,
            due_date=to_utc_aware(row.due_date),
            owner_id=row.owner_id,
            updated_at=to_utc_aware(row.updated_at),
        )
        for row in db.execute(stmt)
    ]


def get_task_state(db: Session, task_id: int) -> Optional[TaskState]:
    row = db.execute(
        select(TaskItem.id, TaskItem.is_complete, TaskItem.updated_at).where(TaskItem.id == task_id)
    ).first()
    if row is None:
        return None
    return TaskState(id=row.id, is_complete=bool(row.is_complete), updated_at=to_utc_aware(row.updated_at))


def mark_task_notified(db: Session, task_id: int, notified_at: datetime) -> bool:
    """Advance the task's updated_at marker. No-op (returns False) if the task is gone."""
    result = db.execute(
        update(TaskItem)
        .where(TaskItem.id == task_id)
        .values(updated_at=notified_at)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0
