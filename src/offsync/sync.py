"""Single-flight replay of the offline queues.

:class:`SyncCoordinator` drains the request queue and then the action
queue through the transport.  A pass runs when connectivity comes back
(the coordinator registers itself as a connectivity listener) or when
:meth:`SyncCoordinator.sync` is called directly.

At most one pass runs at a time.  The in-flight flag is tested and set
with no ``await`` in between, so a second trigger arriving while a pass
is active is dropped rather than queued.  Work enqueued during a pass
is not part of the pass's snapshot and waits for the next one.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from offsync.auth import AuthProvider
from offsync.connectivity import ConnectivityMonitor
from offsync.events import EventBus, EventKind, SyncEvent
from offsync.exceptions import InvalidUsageError, OffsyncError
from offsync.models import ActionKind, ActionStatus, OfflineAction, QueuedRequest
from offsync.offline import OfflineManager
from offsync.transport import HttpTransport

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"


@dataclass
class SyncReport:
    """Outcome counts of one replay pass."""

    requests_replayed: int = 0
    requests_retried: int = 0
    requests_dropped: int = 0
    actions_synced: int = 0
    actions_retried: int = 0
    actions_failed: int = 0

    @property
    def left_for_retry(self) -> int:
        return self.requests_retried + self.actions_retried


def action_endpoint(action: OfflineAction) -> tuple[str, str, Any]:
    """Map an action to ``(method, path, body)``.

    ``create`` posts to ``/{entity}``; ``update`` and ``delete`` address
    ``/{entity}/{id}`` using the payload's ``id``.  Deletes carry no body.

    Raises:
        InvalidUsageError: If an update or delete payload has no ``id``.
    """
    path = f"/{action.entity}"
    if action.kind is ActionKind.CREATE:
        return "POST", path, action.payload

    item_id = action.payload.get("id") if isinstance(action.payload, dict) else None
    if item_id is None or item_id == "":
        raise InvalidUsageError(
            f"{action.kind.value} action {action.id} on {action.entity} has no payload id"
        )
    path = f"{path}/{item_id}"
    if action.kind is ActionKind.UPDATE:
        return "PUT", path, action.payload
    return "DELETE", path, None


class SyncCoordinator:
    """Replays queued work when connectivity allows.

    Args:
        offline: Owner of both durable queues.
        transport: Open transport used for replay.
        connectivity: Monitor consulted before a pass and listened to for
            offline → online transitions.
        auth: Supplies headers for action replay, read at replay time.
        events: Bus notified as items resolve.
    """

    def __init__(
        self,
        offline: OfflineManager,
        transport: HttpTransport,
        connectivity: ConnectivityMonitor,
        auth: Optional[AuthProvider] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self._offline = offline
        self._transport = transport
        self._connectivity = connectivity
        self._auth = auth
        self._events = events or EventBus()
        self._in_flight = False
        connectivity.add_listener(self._on_connectivity)

    @property
    def state(self) -> SyncState:
        return SyncState.SYNCING if self._in_flight else SyncState.IDLE

    @property
    def is_syncing(self) -> bool:
        return self._in_flight

    @property
    def events(self) -> EventBus:
        return self._events

    async def _on_connectivity(self, online: bool) -> None:
        if online:
            await self.sync()

    async def sync(self) -> Optional[SyncReport]:
        """Run one replay pass.

        Returns:
            The pass report, or ``None`` if a pass was already running or
            the monitor reports offline.

        Raises:
            StorageError: If the durable store fails; the coordinator is
                idle again when it propagates.
        """
        if self._in_flight:
            logger.debug("Sync already in progress; trigger dropped")
            return None
        if not self._connectivity.is_online:
            logger.debug("Offline; sync skipped")
            return None
        self._in_flight = True

        try:
            report = SyncReport()
            self._events.emit(SyncEvent(EventKind.SYNC_STARTED))
            requests = await self._offline.queued_requests()
            actions = await self._offline.pending_actions()
            logger.info(
                "Sync started: %d queued requests, %d pending actions",
                len(requests), len(actions),
            )

            for request in requests:
                await self._replay_request(request, report)
            for action in actions:
                await self._replay_action(action, report)

            logger.info("Sync finished: %s", report)
            self._events.emit(SyncEvent(EventKind.SYNC_FINISHED, detail=asdict(report)))
            return report
        finally:
            self._in_flight = False

    # ------------------------------------------------------------------ #
    # Replay
    # ------------------------------------------------------------------ #

    async def _replay_request(self, request: QueuedRequest, report: SyncReport) -> None:
        try:
            await self._transport.request(
                request.method,
                request.url,
                headers=request.headers,
                body=request.body,
                max_retries=0,
            )
        except OffsyncError as exc:
            kept = await self._offline.record_request_failure(request, permanent=not exc.retryable)
            if kept:
                report.requests_retried += 1
                kind = EventKind.REQUEST_RETRY
            else:
                report.requests_dropped += 1
                kind = EventKind.REQUEST_DROPPED
            self._events.emit(
                SyncEvent(kind, item_id=request.id, retry_count=request.retry_count, error=exc)
            )
            return

        await self._offline.record_request_success(request)
        report.requests_replayed += 1
        self._events.emit(
            SyncEvent(EventKind.REQUEST_REPLAYED, item_id=request.id, retry_count=request.retry_count)
        )

    async def _replay_action(self, action: OfflineAction, report: SyncReport) -> None:
        try:
            method, path, body = action_endpoint(action)
            await self._transport.request(
                method,
                path,
                headers=self._action_headers(),
                body=body,
                max_retries=0,
            )
        except OffsyncError as exc:
            await self._offline.record_action_failure(action, permanent=not exc.retryable)
            if action.status is ActionStatus.FAILED:
                report.actions_failed += 1
                kind = EventKind.ACTION_FAILED
            else:
                report.actions_retried += 1
                kind = EventKind.ACTION_RETRY
            self._events.emit(
                SyncEvent(kind, item_id=action.id, retry_count=action.retry_count, error=exc)
            )
            return

        await self._offline.record_action_success(action)
        report.actions_synced += 1
        self._events.emit(
            SyncEvent(EventKind.ACTION_SYNCED, item_id=action.id, retry_count=action.retry_count)
        )

    def _action_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._auth is not None:
            headers.update(self._auth.headers())
        return headers
