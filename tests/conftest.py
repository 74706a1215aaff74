# tests/conftest.py

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

# Settings are read at import time; keep tests off real brokers, files and metrics endpoints
_tmp_dir = tempfile.mkdtemp()
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", f"sqlite:///{os.path.join(_tmp_dir, 'app.db')}")
os.environ["LOG_FILE"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["REMINDER_METRICS_ENABLED"] = "false"
os.environ["REMINDER_RUN_SCANNER"] = "false"
os.environ["REMINDER_RUN_DISPATCHER"] = "false"

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from taskmanagement.db.base import Base  # noqa: E402
from taskmanagement.models import TaskItem, User  # noqa: E402
from taskmanagement.reminders.registry import ConnectionRegistry  # noqa: E402

from .fakes import FakeTransport  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory(tmp_path) -> Callable[[], Session]:
    """SQLite-backed task store, fresh per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'tasks.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def make_task(session_factory):
    """Insert a task (and its owner if needed); returns the task id."""

    def _make(
        owner_id: int = 1,
        title: str = "Pay rent",
        due_date: datetime = T0,
        is_complete: bool = False,
        updated_at: Optional[datetime] = None,
    ) -> int:
        with session_factory() as db:
            if db.get(User, owner_id) is None:
                db.add(User(id=owner_id, email=f"user{owner_id}@example.com"))
                db.flush()
            task = TaskItem(
                owner_id=owner_id,
                title=title,
                description="",
                due_date=due_date,
                is_complete=is_complete,
                updated_at=updated_at,
            )
            db.add(task)
            db.commit()
            return task.id

    return _make


@pytest.fixture()
def task_updated_at(session_factory):
    def _get(task_id: int) -> Optional[datetime]:
        with session_factory() as db:
            task = db.get(TaskItem, task_id)
            if task is None or task.updated_at is None:
                return None
            value = task.updated_at
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    return _get


@pytest.fixture()
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


class Clock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> Clock:
    return Clock()
