"""
Typed transfer events and the observer plumbing that delivers them.

Event names follow the UI contract: ``code-discovered``, ``progress``,
``status``, ``complete`` and the separate ``cancelled`` acknowledgment.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Literal, Optional, Set, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CodeEvent(BaseModel):
    type: Literal["code-discovered"] = "code-discovered"
    session_id: str
    code: str


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    session_id: str
    percent: int


class StatusEvent(BaseModel):
    """Informational status line; stderr origin does not imply an error."""
    type: Literal["status"] = "status"
    session_id: str
    severity: str = "info"
    message: str
    stream: Optional[str] = None


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    session_id: str
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None


class CancelledEvent(BaseModel):
    type: Literal["cancelled"] = "cancelled"
    session_id: str


TransferEvent = Union[CodeEvent, ProgressEvent, StatusEvent, CompleteEvent, CancelledEvent]

EventHandler = Callable[[TransferEvent], Awaitable[None]]


async def dispatch(
    handlers: Iterable[EventHandler],
    event: TransferEvent,
    still_live: Optional[Callable[[], bool]] = None,
) -> None:
    """Deliver an event to each handler in turn, logging handler failures.

    When ``still_live`` is given it is checked before every handler, so a
    session that settles while an earlier handler is awaiting delivers
    nothing further.
    """
    for handler in list(handlers):
        if still_live is not None and not still_live():
            return
        try:
            await handler(event)
        except Exception as exc:
            logger.warning(
                "Event handler for session %s raised an exception: %s",
                event.session_id,
                exc,
                exc_info=True,
            )


class EventBroadcaster:
    """Fan events out to any number of queue subscribers (e.g. websockets).

    Subscribers that fall behind by more than ``max_pending`` events lose the
    oldest ones rather than stalling the transfer that produced them.
    """

    def __init__(self, max_pending: int = 1000):
        self.max_pending = max_pending
        self._queues: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_pending)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def __call__(self, event: TransferEvent) -> None:
        for queue in list(self._queues):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

