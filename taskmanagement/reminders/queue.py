"""
RabbitMQ client for the durable ``TaskReminders`` queue, built on kombu.

kombu connections are blocking and not thread-safe, so every client owns one
single-thread executor and runs all of its kombu calls there. The event loop only
awaits those calls. When the broker cannot be reached the client stays disabled:
``publish`` returns False and ``get`` returns None instead of raising, and
``connect_with_backoff`` keeps retrying with exponential backoff.
"""
import asyncio
import logging
import socket
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Deque, Optional, TypeVar

from kombu import Connection, Consumer, Producer, Queue

from .config import settings as reminder_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PERSISTENT_DELIVERY_MODE = 2


class QueueUnavailableError(RuntimeError):
    """The broker connection failed while an operation was in progress."""


class QueuedMessage:
    """One delivery pulled from the queue, awaiting ack or nack."""

    def __init__(self, client: "ReminderQueue", message: Any):
        self._client = client
        self._message = message

    @property
    def body(self) -> bytes:
        body = self._message.body
        if isinstance(body, str):
            return body.encode("utf-8")
        return body

    @property
    def redelivered(self) -> bool:
        """True when the broker hands this message out again after a nack or a lost consumer."""
        return bool(self._message.delivery_info.get("redelivered", False))

    async def ack(self) -> None:
        """Permanently remove the message from the queue."""
        await self._client._run(self._message.ack)

    async def nack(self, requeue: bool = True) -> None:
        """Reject the message; with requeue the broker delivers it again later."""
        await self._client._run(lambda: self._message.reject(requeue=requeue))


class ReminderQueue:
    def __init__(
        self,
        url: Optional[str] = None,
        queue_name: Optional[str] = None,
        prefetch_count: Optional[int] = None,
        connect_timeout: Optional[float] = None,
        reconnect_initial_delay: Optional[float] = None,
        reconnect_max_delay: Optional[float] = None,
        name: str = "queue",
    ):
        self.url = url or reminder_settings.RABBITMQ_URL
        self.queue_name = queue_name or reminder_settings.QUEUE_NAME
        self.prefetch_count = prefetch_count or reminder_settings.PREFETCH_COUNT
        self.connect_timeout = connect_timeout if connect_timeout is not None else reminder_settings.CONNECT_TIMEOUT_SECONDS
        self.reconnect_initial_delay = (
            reconnect_initial_delay if reconnect_initial_delay is not None
            else reminder_settings.RECONNECT_INITIAL_DELAY_SECONDS
        )
        self.reconnect_max_delay = (
            reconnect_max_delay if reconnect_max_delay is not None
            else reminder_settings.RECONNECT_MAX_DELAY_SECONDS
        )
        self.name = name

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"kombu-{name}")
        self._queue = Queue(self.queue_name, routing_key=self.queue_name, durable=True, auto_delete=False)
        self._connection: Optional[Connection] = None
        self._producer: Optional[Producer] = None
        self._consumer: Optional[Consumer] = None
        self._buffer: Deque[Any] = deque()
        self._closed = False

    @property
    def enabled(self) -> bool:
        return self._connection is not None

    async def _run(self, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)

    # --- connection management (executor thread) ---

    def _open(self) -> None:
        connection = Connection(self.url, connect_timeout=self.connect_timeout)
        try:
            connection.connect()
            channel = connection.channel()
            self._queue(channel).declare()
            self._producer = Producer(channel)
            self._connection = connection
        except Exception:
            connection.release()
            raise

    def _teardown(self) -> None:
        connection, self._connection = self._connection, None
        self._producer = None
        self._consumer = None
        self._buffer.clear()
        if connection is not None:
            try:
                connection.release()
            except Exception as e:
                logger.debug(f"[Queue:{self.name}] Ignoring error while releasing connection: {e!r}")

    async def connect(self) -> bool:
        """Single connection attempt. Logs and stays disabled on failure."""
        if self.enabled:
            return True
        try:
            await self._run(self._open)
        except Exception as e:
            logger.warning(
                f"⚠️ [Queue:{self.name}] RabbitMQ unavailable at {self._safe_url()}: {e!r}. "
                "Reminders are paused until the broker is reachable."
            )
            return False
        logger.info(f"✅ [Queue:{self.name}] Connected to RabbitMQ, queue '{self.queue_name}' declared (durable)")
        return True

    async def connect_with_backoff(self, stop_event: asyncio.Event) -> bool:
        """Retry ``connect`` with exponential backoff until connected or stopped."""
        delay = self.reconnect_initial_delay
        while not stop_event.is_set():
            if await self.connect():
                return True
            logger.info(f"⏳ [Queue:{self.name}] Retrying RabbitMQ connection in {delay:.1f}s")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            delay = min(delay * 2, self.reconnect_max_delay)
        return False

    async def mark_unavailable(self, reason: Any) -> None:
        if not self.enabled:
            return
        logger.warning(f"⚠️ [Queue:{self.name}] Lost RabbitMQ connection: {reason!r}")
        await self._run(self._teardown)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._run(self._teardown)
        self._executor.shutdown(wait=False)
        logger.info(f"[Queue:{self.name}] Closed")

    def _safe_url(self) -> str:
        if self._connection is not None:
            return self._connection.as_uri()
        return Connection(self.url).as_uri()

    # --- publishing ---

    def _publish(self, body: str) -> None:
        self._producer.publish(
            body,
            exchange="",
            routing_key=self.queue_name,
            content_type="application/json",
            content_encoding="utf-8",
            delivery_mode=PERSISTENT_DELIVERY_MODE,
            declare=[self._queue],
            retry=False,
        )

    async def publish(self, body: str) -> bool:
        """Publish a persistent JSON message. Returns False when the client is disabled."""
        if not self.enabled:
            return False
        try:
            await self._run(lambda: self._publish(body))
        except Exception as e:
            await self.mark_unavailable(e)
            raise QueueUnavailableError(f"publish to '{self.queue_name}' failed: {e!r}") from e
        return True

    # --- consuming ---

    def _ensure_consumer(self) -> None:
        if self._consumer is not None:
            return
        consumer = Consumer(
            self._connection.default_channel,
            queues=[self._queue],
            on_message=self._buffer.append,
            no_ack=False,
        )
        consumer.qos(prefetch_count=self.prefetch_count)
        consumer.consume()
        self._consumer = consumer
        logger.info(
            f"📥 [Queue:{self.name}] Consuming '{self.queue_name}' (prefetch={self.prefetch_count})"
        )

    def _get(self, timeout: float) -> Optional[Any]:
        self._ensure_consumer()
        if not self._buffer:
            try:
                self._connection.drain_events(timeout=timeout)
            except socket.timeout:
                return None
        return self._buffer.popleft() if self._buffer else None

    async def get(self, timeout: float = 1.0) -> Optional[QueuedMessage]:
        """Wait up to ``timeout`` seconds for the next message; None if there is none."""
        if not self.enabled:
            return None
        try:
            message = await self._run(lambda: self._get(timeout))
        except Exception as e:
            await self.mark_unavailable(e)
            raise QueueUnavailableError(f"consume from '{self.queue_name}' failed: {e!r}") from e
        if message is None:
            return None
        return QueuedMessage(self, message)
