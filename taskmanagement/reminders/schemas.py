"""
Wire schemas for the reminder pipeline.

``ReminderMessage`` is the queue payload published by the scanner and consumed by
the dispatcher. ``TaskNotification`` is what connected clients receive as the
``ReceiveTaskNotification`` event. Both use camelCase field names on the wire.
"""
from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskmanagement.utils.timezone import to_utc_aware


NOTIFICATION_EVENT = "ReceiveTaskNotification"


class InvalidReminderMessage(ValueError):
    """Raised for queue payloads that can never be processed (poison messages)."""


class ReminderMessage(BaseModel):
    """Schema for a queued task reminder"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    task_id: int = Field(alias="taskId")
    user_id: int = Field(alias="userId")
    task_title: str = Field(alias="taskTitle")
    due_date: datetime = Field(alias="dueDate")
    timestamp: datetime

    @field_validator("due_date", "timestamp")
    @classmethod
    def _normalize_utc(cls, v: datetime) -> datetime:
        return to_utc_aware(v)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReminderMessage):
            return NotImplemented
        return self.task_id == other.task_id

    def __hash__(self) -> int:
        return hash(self.task_id)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: Union[str, bytes, bytearray]) -> "ReminderMessage":
        try:
            return cls.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            raise InvalidReminderMessage(str(e)) from e


class TaskNotification(BaseModel):
    """Schema pushed to a user's live sessions"""
    model_config = ConfigDict(populate_by_name=True)

    task_id: int = Field(alias="taskId")
    task_title: str = Field(alias="taskTitle")
    due_date: datetime = Field(alias="dueDate")
    timestamp: datetime
    message: str

    @classmethod
    def from_reminder(cls, reminder: ReminderMessage) -> "TaskNotification":
        return cls(
            task_id=reminder.task_id,
            task_title=reminder.task_title,
            due_date=reminder.due_date,
            timestamp=reminder.timestamp,
            message=f"Task '{reminder.task_title}' is overdue!",
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
