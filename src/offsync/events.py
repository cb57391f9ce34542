"""Event definitions and bus for queue resolution notifications.

Callers that received an optimistic response for a queued mutation never
hear about its fate through that response.  This module gives them (or a
UI layer) another way: subscribe to an :class:`EventBus` and receive a
:class:`SyncEvent` whenever the coordinator replays, retries, drops or
fails a queued item.

* :class:`SyncEvent` -- an immutable record of what happened to which item.
* :class:`EventBus` -- calls subscribers in registration order.  A
  subscriber that raises is logged and skipped so that it cannot break a
  sync pass or starve the subscribers after it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """What happened to a queued item or to the sync pass itself."""

    SYNC_STARTED = "sync_started"
    SYNC_FINISHED = "sync_finished"
    REQUEST_REPLAYED = "request_replayed"
    REQUEST_RETRY = "request_retry"
    REQUEST_DROPPED = "request_dropped"
    ACTION_SYNCED = "action_synced"
    ACTION_RETRY = "action_retry"
    ACTION_FAILED = "action_failed"


@dataclass(frozen=True)
class SyncEvent:
    """Notification emitted by the sync coordinator.

    Attributes:
        kind: The event type.
        item_id: Id of the queued request or action, if the event is about one.
        retry_count: Retry counter after the event was applied.
        error: The replay failure, for retry / drop / failure events.
        detail: Extra context (e.g. the report dict on ``SYNC_FINISHED``).
    """

    kind: EventKind
    item_id: Optional[str] = None
    retry_count: int = 0
    error: Optional[Exception] = None
    detail: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[SyncEvent], None]


class EventBus:
    """Fans :class:`SyncEvent` objects out to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        """Register *callback*; registering the same callable twice is a no-op."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, event: SyncEvent) -> None:
        """Deliver *event* to every subscriber in registration order."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber %r failed on %s", callback, event.kind.value)
