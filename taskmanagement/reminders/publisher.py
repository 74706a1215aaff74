import logging

from .metrics import reminders_publish_failed_total, reminders_published_total
from .queue import QueueUnavailableError, ReminderQueue
from .schemas import ReminderMessage

logger = logging.getLogger(__name__)


class NotificationPublisher:
    """Serializes reminder events and enqueues them on the reminder queue."""

    def __init__(self, queue: ReminderQueue):
        self.queue = queue

    @property
    def enabled(self) -> bool:
        return self.queue.enabled

    async def publish(self, message: ReminderMessage) -> bool:
        """Enqueue one reminder. Returns False if the queue is disabled.

        Raises QueueUnavailableError when the broker drops mid-publish.
        """
        try:
            published = await self.queue.publish(message.to_json())
        except QueueUnavailableError:
            reminders_publish_failed_total.inc()
            raise
        if not published:
            logger.warning(f"⚠️ [Publisher] Queue disabled - reminder for task {message.task_id} not published")
            reminders_publish_failed_total.inc()
            return False
        reminders_published_total.inc()
        logger.info(f"📤 [Publisher] Published reminder for task {message.task_id} (user {message.user_id})")
        return True
