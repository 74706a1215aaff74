"""
Task items. The reminder pipeline only reads ``id``, ``owner_id``, ``title``,
``due_date``, ``is_complete`` and ``updated_at`` and only ever writes ``updated_at``.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from taskmanagement.db.base import Base
from taskmanagement.utils.timezone import utc_now


class TaskItem(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=False, default="")
    due_date = Column(DateTime(timezone=True), nullable=False)  # stored as UTC
    priority = Column(Integer, nullable=False, default=3)  # 1..5
    is_complete = Column(Boolean, nullable=False, default=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    # Last modified / last notified marker, advanced by the reminder dispatcher
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    owner = relationship("User", back_populates="tasks")

    __table_args__ = (
        Index("ix_tasks_overdue_scan", "is_complete", "due_date"),
    )
