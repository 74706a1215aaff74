import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from .config import ReminderSettings, settings as default_settings
from .dispatcher import NotificationDispatcher
from .publisher import NotificationPublisher
from .queue import ReminderQueue
from .registry import ConnectionRegistry
from .scanner import OverdueScanner

logger = logging.getLogger(__name__)


class ReminderPipeline:
    """Wires the scanner and dispatcher loops and runs them as two asyncio tasks.

    Publisher and consumer get separate broker connections. Either loop can be
    switched off so the scanner can live in its own worker process.
    """

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        transport=None,
        settings: Optional[ReminderSettings] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        run_scanner: Optional[bool] = None,
        run_dispatcher: Optional[bool] = None,
    ):
        self.settings = settings or default_settings
        self.run_scanner = self.settings.RUN_SCANNER if run_scanner is None else run_scanner
        self.run_dispatcher = self.settings.RUN_DISPATCHER if run_dispatcher is None else run_dispatcher
        if self.run_dispatcher and (registry is None or transport is None):
            raise ValueError("the dispatcher needs a connection registry and a push transport")

        self.stop_event = asyncio.Event()
        self._tasks: List[asyncio.Task] = []

        self.publisher_queue: Optional[ReminderQueue] = None
        self.consumer_queue: Optional[ReminderQueue] = None
        self.scanner: Optional[OverdueScanner] = None
        self.dispatcher: Optional[NotificationDispatcher] = None

        if self.run_scanner:
            self.publisher_queue = self._make_queue("publisher")
            self.scanner = OverdueScanner(
                NotificationPublisher(self.publisher_queue),
                session_factory=session_factory,
                interval_seconds=self.settings.SCAN_INTERVAL_SECONDS,
                policy=self.settings.ELIGIBILITY_POLICY,
                batch_size=self.settings.SCAN_BATCH_SIZE,
            )
        if self.run_dispatcher:
            self.consumer_queue = self._make_queue("consumer")
            self.dispatcher = NotificationDispatcher(
                self.consumer_queue,
                registry,
                transport,
                session_factory=session_factory,
                poll_seconds=self.settings.CONSUMER_POLL_SECONDS,
            )

    def _make_queue(self, name: str) -> ReminderQueue:
        return ReminderQueue(
            url=self.settings.RABBITMQ_URL,
            queue_name=self.settings.QUEUE_NAME,
            prefetch_count=self.settings.PREFETCH_COUNT,
            connect_timeout=self.settings.CONNECT_TIMEOUT_SECONDS,
            reconnect_initial_delay=self.settings.RECONNECT_INITIAL_DELAY_SECONDS,
            reconnect_max_delay=self.settings.RECONNECT_MAX_DELAY_SECONDS,
            name=name,
        )

    def status(self) -> dict:
        return {
            "scanner_running": self.scanner is not None and bool(self._tasks),
            "dispatcher_running": self.dispatcher is not None and bool(self._tasks),
            "publisher_connected": bool(self.publisher_queue and self.publisher_queue.enabled),
            "consumer_connected": bool(self.consumer_queue and self.consumer_queue.enabled),
            "queue_name": self.settings.QUEUE_NAME,
            "eligibility_policy": self.settings.ELIGIBILITY_POLICY.value,
        }

    async def start(self) -> None:
        self.stop_event.clear()
        if self.scanner is not None:
            self._tasks.append(asyncio.create_task(self.scanner.run(self.stop_event), name="overdue-scanner"))
        if self.dispatcher is not None:
            self._tasks.append(asyncio.create_task(self.dispatcher.run(self.stop_event), name="reminder-dispatcher"))
        logger.info(
            f"🎯 [Pipeline] Reminder pipeline started (scanner={self.scanner is not None}, "
            f"dispatcher={self.dispatcher is not None})"
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Signal both loops, let in-flight work finish, then close broker connections."""
        self.stop_event.set()
        if self._tasks:
            done, pending = await asyncio.wait(self._tasks, timeout=timeout)
            for task in pending:
                logger.warning(f"⚠️ [Pipeline] {task.get_name()} did not stop within {timeout}s - cancelling")
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(f"❌ [Pipeline] {task.get_name()} exited with error: {task.exception()!r}")
        self._tasks = []
        for queue in (self.publisher_queue, self.consumer_queue):
            if queue is not None:
                await queue.close()
        logger.info("✅ [Pipeline] Reminder pipeline stopped")
