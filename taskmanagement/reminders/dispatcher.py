"""
Notification dispatcher: the consumer side of the ``TaskReminders`` queue.

Per message:
  1. parse the payload; malformed payloads are acked and dropped (never requeued)
  2. skip reminders whose task is gone or complete; a broker redelivery is also
     skipped when the task was already marked after the reminder was enqueued
  3. push to the owner's live connections only; no live connection is still a
     terminal success
  4. mark the task notified in its own short DB session
  5. ack only after 4 succeeded; anything failing in 2-4 is nacked with requeue

With prefetch=1 one consumer handles exactly one message at a time. Running more
than one consumer process needs a conditional (version-checked) update on the
task to rule out duplicate pushes from racing redeliveries.
"""
import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from taskmanagement.core.database_utils import get_db_session
from taskmanagement.utils.timezone import utc_now
from .config import settings as reminder_settings
from .metrics import (
    reminders_delivered_total,
    reminders_no_session_total,
    reminders_poison_total,
    reminders_requeued_total,
    reminders_stale_total,
)
from .queue import QueueUnavailableError, QueuedMessage, ReminderQueue
from .registry import ConnectionRegistry
from .repository import TaskState, get_task_state, mark_task_notified
from .schemas import NOTIFICATION_EVENT, InvalidReminderMessage, ReminderMessage, TaskNotification

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    NO_SESSION = "no_session"
    STALE = "stale"
    POISON = "poison"
    REQUEUED = "requeued"


class NotificationDispatcher:
    def __init__(
        self,
        queue: ReminderQueue,
        registry: ConnectionRegistry,
        transport,
        session_factory: Optional[Callable[[], Session]] = None,
        poll_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        ``transport`` pushes events to connection ids; it must provide
        ``async send_to_connections(connection_ids, event, payload) -> int``.
        """
        self.queue = queue
        self.registry = registry
        self.transport = transport
        self.session_factory = session_factory
        self.poll_seconds = poll_seconds if poll_seconds is not None else reminder_settings.CONSUMER_POLL_SECONDS
        self.clock = clock

    # --- store access (worker threads) ---

    def _load_task_state(self, task_id: int) -> Optional[TaskState]:
        with get_db_session(self.session_factory) as db:
            return get_task_state(db, task_id)

    def _mark_notified(self, task_id: int) -> bool:
        with get_db_session(self.session_factory) as db:
            return mark_task_notified(db, task_id, self.clock())

    # --- per-message protocol ---

    def _is_stale(self, message: ReminderMessage, state: Optional[TaskState], redelivered: bool) -> bool:
        if state is None:
            logger.info(f"[Dispatcher] Task {message.task_id} no longer exists - dropping reminder")
            return True
        if state.is_complete:
            logger.info(f"[Dispatcher] Task {message.task_id} was completed - dropping reminder")
            return True
        # A first delivery is always pushed; user edits also advance updated_at
        if redelivered and state.updated_at is not None and state.updated_at >= message.timestamp:
            logger.info(
                f"[Dispatcher] Task {message.task_id} already handled at {state.updated_at.isoformat()} "
                f"(reminder enqueued {message.timestamp.isoformat()}) - dropping duplicate"
            )
            return True
        return False

    async def _deliver(self, message: ReminderMessage, redelivered: bool = False) -> DispatchOutcome:
        state = await asyncio.to_thread(self._load_task_state, message.task_id)
        if self._is_stale(message, state, redelivered):
            return DispatchOutcome.STALE

        connections = self.registry.lookup(message.user_id)
        if connections:
            notification = TaskNotification.from_reminder(message)
            sent = await self.transport.send_to_connections(
                connections, NOTIFICATION_EVENT, notification.to_payload()
            )
            logger.info(
                f"📨 [Dispatcher] Task {message.task_id} notification pushed to user {message.user_id} "
                f"({sent}/{len(connections)} connection(s))"
            )
            outcome = DispatchOutcome.DELIVERED
        else:
            logger.info(f"[Dispatcher] User {message.user_id} is not connected. Notification not delivered.")
            outcome = DispatchOutcome.NO_SESSION

        if await asyncio.to_thread(self._mark_notified, message.task_id):
            logger.info(f"[Dispatcher] Task {message.task_id} marked as notified")
        else:
            logger.info(f"[Dispatcher] Task {message.task_id} vanished before it could be marked")
        return outcome

    async def handle(self, delivery: QueuedMessage) -> DispatchOutcome:
        try:
            message = ReminderMessage.from_json(delivery.body)
        except InvalidReminderMessage as e:
            await delivery.ack()
            reminders_poison_total.inc()
            logger.warning(f"⚠️ [Dispatcher] Received invalid reminder message, removed from queue: {e}")
            return DispatchOutcome.POISON

        logger.info(
            f"📥 [Dispatcher] Reminder for task {message.task_id} '{message.task_title}' "
            f"(user {message.user_id}, due {message.due_date.isoformat()})"
        )
        try:
            outcome = await self._deliver(message, redelivered=delivery.redelivered)
        except Exception as e:
            logger.error(f"❌ [Dispatcher] Error processing reminder for task {message.task_id}: {e}", exc_info=True)
            await delivery.nack(requeue=True)
            reminders_requeued_total.inc()
            return DispatchOutcome.REQUEUED

        await delivery.ack()
        if outcome == DispatchOutcome.DELIVERED:
            reminders_delivered_total.inc()
        elif outcome == DispatchOutcome.NO_SESSION:
            reminders_no_session_total.inc()
        else:
            reminders_stale_total.inc()
        logger.info(f"✅ [Dispatcher] Message for task {message.task_id} removed from queue ({outcome.value})")
        return outcome

    # --- consumer loop ---

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume until ``stop_event`` is set; the message in hand is always finished first."""
        logger.info(f"🚀 [Dispatcher] Started on queue '{self.queue.queue_name}'")
        while not stop_event.is_set():
            if not self.queue.enabled:
                if not await self.queue.connect_with_backoff(stop_event):
                    break
            try:
                delivery = await self.queue.get(timeout=self.poll_seconds)
                if delivery is None:
                    continue
                await self.handle(delivery)
            except QueueUnavailableError as e:
                logger.warning(f"⚠️ [Dispatcher] Queue unavailable, reconnecting: {e}")
            except Exception as e:
                # ack/nack failed: the broker redelivers the unacked message after reconnect
                logger.error(f"❌ [Dispatcher] Error in consumer loop: {e}", exc_info=True)
                await self.queue.mark_unavailable(e)
        logger.info("🛑 [Dispatcher] Stopped")
