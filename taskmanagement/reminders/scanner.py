"""
Overdue scanner: periodically finds tasks that just became overdue and hands one
reminder per task to the publisher.

The scanner never writes to the task store. A task is marked notified by the
dispatcher only after its reminder has been handled, so a failed push can never
silently consume the task's one notification.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from taskmanagement.core.database_utils import get_db_session
from taskmanagement.utils.timezone import utc_now
from .config import EligibilityPolicy, settings as reminder_settings
from .metrics import scheduler_scan_failures_total, scheduler_scans_total
from .publisher import NotificationPublisher
from .queue import QueueUnavailableError
from .repository import OverdueTask, get_overdue_tasks
from .schemas import ReminderMessage

logger = logging.getLogger(__name__)


class OverdueScanner:
    def __init__(
        self,
        publisher: NotificationPublisher,
        session_factory: Optional[Callable[[], Session]] = None,
        interval_seconds: Optional[float] = None,
        policy: Optional[EligibilityPolicy] = None,
        batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.publisher = publisher
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds if interval_seconds is not None else reminder_settings.SCAN_INTERVAL_SECONDS
        self.policy = EligibilityPolicy(policy or reminder_settings.ELIGIBILITY_POLICY)
        self.batch_size = batch_size or reminder_settings.SCAN_BATCH_SIZE
        self.clock = clock

    def _fetch_overdue(self, now: datetime) -> List[OverdueTask]:
        with get_db_session(self.session_factory) as db:
            return get_overdue_tasks(
                db,
                now,
                policy=self.policy,
                interval=timedelta(seconds=self.interval_seconds),
                limit=self.batch_size,
            )

    async def scan_once(self) -> int:
        """Run one scan cycle. Returns the number of reminders published."""
        if not self.publisher.enabled:
            logger.warning("⚠️ [Scanner] Reminder queue unavailable - skipping scan cycle")
            return 0

        now = self.clock()
        scheduler_scans_total.inc()
        logger.info(f"🔍 [Scanner] Checking for overdue tasks at {now.isoformat()} (policy={self.policy.value})")
        try:
            overdue = await asyncio.to_thread(self._fetch_overdue, now)
        except Exception as e:
            scheduler_scan_failures_total.inc()
            logger.error(f"❌ [Scanner] Overdue task query failed, skipping cycle: {e}", exc_info=True)
            return 0

        logger.info(f"📊 [Scanner] Found {len(overdue)} overdue task(s) needing notification")
        published = 0
        for task in overdue:
            logger.debug(
                f"[Scanner]   - task {task.id} '{task.title}' due={task.due_date.isoformat()} "
                f"updated_at={task.updated_at.isoformat() if task.updated_at else 'null'}"
            )
            message = ReminderMessage(
                task_id=task.id,
                user_id=task.owner_id,
                task_title=task.title,
                due_date=task.due_date,
                timestamp=self.clock(),
            )
            try:
                if await self.publisher.publish(message):
                    published += 1
            except QueueUnavailableError as e:
                # The task is still eligible and is picked up again next cycle
                logger.error(f"❌ [Scanner] Publishing reminder for task {task.id} failed: {e}")
                break
        if published:
            logger.info(f"✅ [Scanner] Published {published} reminder(s)")
        return published

    async def run(self, stop_event: asyncio.Event) -> None:
        """Scan every ``interval_seconds`` until ``stop_event`` is set."""
        logger.info(f"🚀 [Scanner] Started (interval={self.interval_seconds}s)")
        while not stop_event.is_set():
            if not self.publisher.enabled:
                if not await self.publisher.queue.connect_with_backoff(stop_event):
                    break
            try:
                await self.scan_once()
            except Exception as e:
                logger.error(f"❌ [Scanner] Unexpected error in scan cycle: {e}", exc_info=True)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("🛑 [Scanner] Stopped")
