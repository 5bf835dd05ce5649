"""
In-process side-effect bus.

Work that follows a committed write (notification upserts, socket emits,
push delivery) is published as an event instead of being run inline by
the request handler. Each (event, handler) pair becomes an independent
job, retried with linear backoff and dead-lettered once its attempts are
exhausted. A failing handler never affects the publisher or other
handlers of the same event.
"""
import asyncio
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from trave_social.config import settings
from trave_social.utils.datetime_utils import utc_now, to_iso_utc
from trave_social.utils.helpers import generate_id

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


class EventType:
    """Event names published by the services."""
    MESSAGE_CREATED = "message.created"
    MESSAGE_UPDATED = "message.updated"
    MESSAGE_DELETED = "message.deleted"
    MESSAGE_REACTION = "message.reaction"
    CONVERSATION_READ = "conversation.read"
    NOTIFICATION_CREATED = "notification.created"


@dataclass
class Event:
    """A published event."""
    name: str
    payload: Dict[str, Any]
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=lambda: to_iso_utc(utc_now()))


@dataclass
class Job:
    """One handler invocation for one event."""
    event: Event
    handler: Handler
    attempts: int = 0

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))


class SideEffectBus:
    """
    Event queue with at-least-once handler delivery.

    When started, worker tasks consume jobs from an asyncio.Queue. When not
    started (maintenance scripts, unit tests) publish() runs the jobs inline
    with the same retry and isolation rules.

    Example:
        ```python
        bus = SideEffectBus()
        bus.subscribe("message.created", notify_recipient)
        await bus.start()
        await bus.publish("message.created", {"conversation_id": "u1_u2"})
        ```
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        queue_size: Optional[int] = None,
        dead_letter_size: int = 100,
    ):
        self.workers = workers if workers is not None else settings.side_effect_workers
        self.max_attempts = max_attempts if max_attempts is not None else settings.side_effect_max_attempts
        self.retry_delay = retry_delay if retry_delay is not None else settings.side_effect_retry_delay
        self.queue_size = queue_size if queue_size is not None else settings.side_effect_queue_size

        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self.dead_letters: Deque[Job] = deque(maxlen=dead_letter_size)

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        """Register a handler for an event name (idempotent)."""
        if handler not in self._handlers[event_name]:
            self._handlers[event_name].append(handler)

    def on(self, event_name: str) -> Callable[[Handler], Handler]:
        """Decorator form of subscribe()."""
        def decorator(handler: Handler) -> Handler:
            self.subscribe(event_name, handler)
            return handler
        return decorator

    def handlers_for(self, event_name: str) -> List[Handler]:
        return list(self._handlers.get(event_name, []))

    def clear(self) -> None:
        """Remove every registered handler."""
        self._handlers.clear()

    async def start(self) -> None:
        """Start the worker tasks."""
        if self.is_running:
            return

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"side-effect-worker-{index}")
            for index in range(max(1, self.workers))
        ]
        logger.info(f"Side-effect bus started with {len(self._tasks)} worker(s)")

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Drain pending jobs, then cancel the workers.

        Args:
            timeout: Seconds to wait for the queue to drain
        """
        if not self.is_running:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Side-effect bus stopped with {self._queue.qsize()} pending job(s)"
            )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        logger.info("Side-effect bus stopped")

    async def publish(self, event_name: str, payload: Dict[str, Any]) -> Event:
        """
        Publish an event to its handlers.

        Never raises: enqueue failures and handler failures are logged.

        Args:
            event_name: Event name (see EventType)
            payload: JSON-compatible event payload

        Returns:
            The published event
        """
        event = Event(name=event_name, payload=payload)
        handlers = self.handlers_for(event_name)

        if not handlers:
            logger.debug(f"No handlers for event {event_name}")
            return event

        for handler in handlers:
            job = Job(event=event, handler=handler)

            if not self.is_running:
                await self._run_job(job)
                continue

            try:
                self._queue.put_nowait(job)
            except asyncio.QueueFull:
                logger.error(
                    f"Side-effect queue full, dead-lettering {event_name} -> {job.handler_name}"
                )
                self.dead_letters.append(job)

        return event

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run_job(job)
            finally:
                self._queue.task_done()

    async def _run_job(self, job: Job) -> bool:
        """
        Run one job with retries.

        Returns:
            True if the handler eventually succeeded
        """
        while job.attempts < self.max_attempts:
            job.attempts += 1
            try:
                await job.handler(job.event.payload)
                return True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if job.attempts >= self.max_attempts:
                    logger.error(
                        f"Side effect {job.event.name} -> {job.handler_name} failed after "
                        f"{job.attempts} attempt(s), dead-lettering: {e}",
                        exc_info=True,
                    )
                    self.dead_letters.append(job)
                    return False

                logger.warning(
                    f"Side effect {job.event.name} -> {job.handler_name} failed "
                    f"(attempt {job.attempts}/{self.max_attempts}): {e}"
                )
                if self.retry_delay:
                    await asyncio.sleep(self.retry_delay * job.attempts)

        return False


# Global side-effect bus instance
side_effect_bus = SideEffectBus()
