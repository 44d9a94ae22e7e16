"""
Progress events and their best-effort delivery to connected recipients.

A recipient is anything that registers an async sink with the
``SessionRegistry``, e.g. one MCP tool call forwarding events to its client.
Each registered recipient gets its own queue and delivery task, so a slow
or failing sink never blocks the code that pushes events.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .dashboard.models import PipelineListItem, PipelineSkeleton

logger = logging.getLogger(__name__)


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class StatusMessageEvent(_Event):
    event_type: Literal["status_message"] = "status_message"


class SkeletonEvent(_Event):
    event_type: Literal["skeleton"] = "skeleton"
    pipelines: list[PipelineSkeleton] = Field(default_factory=list)


class BatchEvent(_Event):
    """A slice of enriched pipelines plus how far the load has progressed."""

    event_type: Literal["batch"] = "batch"
    pipelines: list[PipelineListItem] = Field(default_factory=list)
    processed_count: int
    total_count: int


class CompleteEvent(_Event):
    event_type: Literal["complete"] = "complete"
    total_count: int


ProgressEvent = Annotated[
    Union[StatusMessageEvent, SkeletonEvent, BatchEvent, CompleteEvent],
    Field(discriminator="event_type"),
]

EventSink = Callable[[ProgressEvent], Awaitable[None]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RecipientInfo:
    """Read-only view of one registered recipient."""

    recipient_id: str
    connected_at: datetime
    last_activity_at: datetime | None
    message_count: int
    pending_count: int


class _Session:
    def __init__(self, recipient_id: str, sink: EventSink, max_queue_size: int):
        self.recipient_id = recipient_id
        self.sink = sink
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.connected_at = _now()
        self.last_activity_at: datetime | None = None
        self.message_count = 0
        self.task: asyncio.Task | None = None

    def info(self) -> RecipientInfo:
        return RecipientInfo(
            recipient_id=self.recipient_id,
            connected_at=self.connected_at,
            last_activity_at=self.last_activity_at,
            message_count=self.message_count,
            pending_count=self.queue.qsize(),
        )


class SessionRegistry:
    """
    Tracks connected recipients: register on connect, deregister on disconnect.

    All methods must be called from the event loop that owns the registry.
    """

    def __init__(self, max_queue_size: int = 1000):
        self._max_queue_size = max_queue_size
        self._sessions: dict[str, _Session] = {}

    def __contains__(self, recipient_id: str) -> bool:
        return recipient_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def register(self, recipient_id: str, sink: EventSink) -> RecipientInfo:
        """
        Start delivering events for ``recipient_id`` to ``sink``.

        Re-registering an existing id replaces its sink; events still queued
        for the old sink are delivered first.
        """
        if recipient_id in self._sessions:
            await self.deregister(recipient_id)

        session = _Session(recipient_id, sink, self._max_queue_size)
        session.task = asyncio.create_task(
            self._deliver(session), name=f"notifications:{recipient_id}"
        )
        self._sessions[recipient_id] = session
        logger.info(f"Recipient {recipient_id} registered ({len(self._sessions)} connected)")
        return session.info()

    async def deregister(self, recipient_id: str, drain: bool = True) -> None:
        """
        Stop delivering to ``recipient_id``; unknown ids are ignored.

        With ``drain`` the events already queued are delivered before returning,
        otherwise they are dropped.
        """
        session = self._sessions.pop(recipient_id, None)
        if session is None:
            return

        if drain:
            try:
                session.queue.put_nowait(None)
            except asyncio.QueueFull:
                session.task.cancel()
        else:
            session.task.cancel()

        try:
            await session.task
        except asyncio.CancelledError:
            pass

        logger.info(
            f"Recipient {recipient_id} deregistered after {session.message_count} messages"
        )

    def enqueue(self, recipient_id: str, event: ProgressEvent) -> bool:
        """Queue ``event`` without waiting; False if the recipient is gone or backed up."""
        session = self._sessions.get(recipient_id)
        if session is None:
            return False

        try:
            session.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Dropping {event.event_type} event for {recipient_id}: queue full")
            return False
        return True

    async def flush(self, recipient_id: str) -> None:
        """Wait until every event queued so far for ``recipient_id`` was handled."""
        session = self._sessions.get(recipient_id)
        if session is not None:
            await session.queue.join()

    def snapshot(self) -> tuple[RecipientInfo, ...]:
        """Point-in-time copy of all registered recipients."""
        return tuple(session.info() for session in list(self._sessions.values()))

    async def close(self) -> None:
        """Deregister every recipient, dropping undelivered events."""
        for recipient_id in list(self._sessions):
            await self.deregister(recipient_id, drain=False)

    async def _deliver(self, session: _Session) -> None:
        while True:
            event = await session.queue.get()
            try:
                if event is None:
                    return
                await session.sink(event)
                session.message_count += 1
                session.last_activity_at = _now()
            except Exception as e:
                logger.warning(
                    f"Delivering {event.event_type} event to {session.recipient_id} failed: {e}"
                )
            finally:
                session.queue.task_done()


class NotificationChannel(ABC):
    """Fire-and-forget push of progress events. Implementations never block or raise."""

    @abstractmethod
    def push_to_one(self, recipient_id: str, event: ProgressEvent) -> None:
        pass

    @abstractmethod
    def push_to_all(self, event: ProgressEvent) -> None:
        pass


class RegistryNotificationChannel(NotificationChannel):
    """Delivers through a SessionRegistry; pushes to unknown recipients are no-ops."""

    def __init__(self, registry: SessionRegistry):
        self._registry = registry

    def push_to_one(self, recipient_id: str, event: ProgressEvent) -> None:
        if not self._registry.enqueue(recipient_id, event):
            logger.debug(f"No delivery of {event.event_type} event to {recipient_id}")

    def push_to_all(self, event: ProgressEvent) -> None:
        for recipient in self._registry.snapshot():
            self._registry.enqueue(recipient.recipient_id, event)


class NullNotificationChannel(NotificationChannel):
    def push_to_one(self, recipient_id: str, event: ProgressEvent) -> None:
        pass

    def push_to_all(self, event: ProgressEvent) -> None:
        pass
