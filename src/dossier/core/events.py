"""
Event Channel - publish/subscribe stream of log lines and status changes.

Subscribers are called synchronously, in subscription order, from the
engine's task. Marshalling onto a UI thread is the subscriber's job.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union
import structlog

from dossier.core.models import Record, RecordStatus

logger = structlog.get_logger()


@dataclass(frozen=True)
class LogLine:
    """Human-readable progress line."""
    timestamp: datetime
    message: str
    level: str = "info"

    def format(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}] {self.message}"


@dataclass(frozen=True)
class StatusChange:
    """A record moved to a new status."""
    timestamp: datetime
    identifier: str
    status: RecordStatus
    error: Optional[str] = None


Event = Union[LogLine, StatusChange]
Subscriber = Callable[[Event], None]


class EventChannel:
    """Append-only broadcast channel."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._subscribers: list[Subscriber] = []
        self._queues: list[asyncio.Queue] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def open_queue(self) -> asyncio.Queue:
        """Subscribe with an unbounded queue, for async consumers."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def log(self, message: str, level: str = "info") -> LogLine:
        """Publish a progress line and mirror it to the process log."""
        line = LogLine(timestamp=self._clock(), message=message, level=level)
        logger.log(_LEVELS.get(level, 20), "status_line", message=message)
        self._publish(line)
        return line

    def warning(self, message: str) -> LogLine:
        return self.log(message, level="warning")

    def status_changed(self, record: Record) -> StatusChange:
        """Publish the record's current status."""
        change = StatusChange(
            timestamp=self._clock(),
            identifier=record.identifier,
            status=record.status,
            error=record.error_message or None,
        )
        logger.info(
            "record_status_changed",
            identifier=record.identifier,
            status=record.status.value,
            error=change.error,
        )
        self._publish(change)
        return change

    def _publish(self, event: Event) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error("event_subscriber_failed", error=str(e))
        for queue in list(self._queues):
            queue.put_nowait(event)


_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}
