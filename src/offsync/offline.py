"""Durable offline bookkeeping: action queue, request queue and data cache.

:class:`OfflineManager` owns three collections of the shared
:class:`~offsync.storage.Store`:

* ``offline_actions`` -- semantic mutations (:class:`~offsync.models.OfflineAction`)
  enqueued explicitly by domain code, indexed by ``status`` and ``entity``.
* ``offline_queue`` -- literal HTTP requests (:class:`~offsync.models.QueuedRequest`)
  captured by the request pipeline, indexed by ``timestamp``.
* ``cached_data`` -- a plain TTL cache of response bodies used to answer
  reads while disconnected, independent of the response cache tiers.

The manager also applies the retry policy shared by both queues.  A
retryable replay failure bumps ``retry_count``; reaching ``max_retries``
drops a request and marks an action ``failed``.  A permanent rejection
does the same immediately without consuming retries.  Failed actions are
kept for inspection; dropped requests are gone.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from offsync.exceptions import InvalidUsageError, StorageError
from offsync.models import (
    ActionKind,
    ActionStatus,
    CachedItem,
    OfflineAction,
    OfflineStats,
    QueuedRequest,
)
from offsync.storage import Record, Store

logger = logging.getLogger(__name__)

ACTIONS = "offline_actions"
REQUESTS = "offline_queue"
CACHED_DATA = "cached_data"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _new_id() -> str:
    return uuid.uuid4().hex


class OfflineManager:
    """Durable queues and offline data cache over a :class:`~offsync.storage.Store`.

    Args:
        store: Durable backend.
        max_retries: Failed replays after which an item is given up on.
        offline_ttl: Default lifetime (seconds) of :meth:`cache_data` entries.
        clock: Returns the current time in seconds.
        id_factory: Generates ids for new queue records.
    """

    def __init__(
        self,
        store: Store,
        max_retries: int = 3,
        offline_ttl: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self._max_retries = max_retries
        self._offline_ttl = offline_ttl
        self._clock = clock
        self._new_id = id_factory

    @property
    def max_retries(self) -> int:
        return self._max_retries

    # ------------------------------------------------------------------ #
    # Action queue
    # ------------------------------------------------------------------ #

    async def enqueue_action(
        self,
        kind: ActionKind | str,
        entity: str,
        payload: Any = None,
    ) -> str:
        """Append a pending :class:`~offsync.models.OfflineAction`.

        Args:
            kind: ``create``, ``update`` or ``delete``.
            entity: Entity collection name, e.g. ``"tasks"``; becomes the
                endpoint path on replay.
            payload: JSON body.  Updates and deletes need an ``id`` field.

        Returns:
            The new action id.

        Raises:
            InvalidUsageError: For an unknown kind or empty entity.
            StorageError: If the action cannot be persisted.
        """
        try:
            kind = ActionKind(kind)
        except ValueError:
            raise InvalidUsageError(f"Unknown action kind: {kind!r}") from None
        entity = entity.strip("/")
        if not entity:
            raise InvalidUsageError("Action entity must not be empty")

        action = OfflineAction(
            id=self._new_id(),
            kind=kind,
            entity=entity,
            payload=payload,
            queued_at=self._clock(),
        )
        await self._save_action(action)
        logger.debug("Queued %s action %s on %s", kind.value, action.id, entity)
        return action.id

    async def get_action(self, action_id: str) -> Optional[OfflineAction]:
        record = await self._store.get(ACTIONS, action_id)
        if record is None:
            return None
        return await self._validate(ACTIONS, action_id, record, OfflineAction)

    async def list_actions(self, status: Optional[ActionStatus | str] = None) -> list[OfflineAction]:
        """Return actions oldest-first, optionally filtered by status."""
        if status is None:
            pairs = await self._store.items(ACTIONS)
        else:
            pairs = await self._store.items_by_index(
                ACTIONS, "status", ActionStatus(status).value
            )
        actions = await self._validate_all(ACTIONS, pairs, OfflineAction)
        return sorted(actions, key=lambda a: a.queued_at)

    async def pending_actions(self) -> list[OfflineAction]:
        """Snapshot of actions still awaiting replay, oldest first."""
        return await self.list_actions(ActionStatus.PENDING)

    async def record_action_success(self, action: OfflineAction) -> OfflineAction:
        action.status = ActionStatus.SYNCED
        await self._save_action(action)
        return action

    async def record_action_failure(
        self,
        action: OfflineAction,
        permanent: bool = False,
    ) -> OfflineAction:
        """Apply the retry policy to a failed action replay.

        Terminal actions are left untouched.
        """
        if action.status is not ActionStatus.PENDING:
            return action
        if permanent:
            action.status = ActionStatus.FAILED
        else:
            action.retry_count += 1
            if action.retry_count >= self._max_retries:
                action.status = ActionStatus.FAILED
        if action.status is ActionStatus.FAILED:
            logger.warning(
                "Action %s (%s %s) failed after %d retries",
                action.id, action.kind.value, action.entity, action.retry_count,
            )
        await self._save_action(action)
        return action

    async def purge_resolved_actions(self, older_than: Optional[float] = None) -> int:
        """Delete synced and failed actions, optionally only those queued before *older_than*.

        Returns:
            Number of actions removed.
        """
        removed = 0
        for action in await self.list_actions():
            if action.status is ActionStatus.PENDING:
                continue
            if older_than is not None and action.queued_at >= older_than:
                continue
            await self._store.delete(ACTIONS, action.id)
            removed += 1
        return removed

    # ------------------------------------------------------------------ #
    # Request queue
    # ------------------------------------------------------------------ #

    async def enqueue_request(
        self,
        url: str,
        method: str,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> str:
        """Append a :class:`~offsync.models.QueuedRequest` for literal replay.

        *headers* should already contain the authorization header valid
        now; it is replayed verbatim.

        Returns:
            The new request id.

        Raises:
            StorageError: If the request cannot be persisted.
        """
        request = QueuedRequest(
            id=self._new_id(),
            url=url,
            method=method.upper(),
            body=body,
            headers=dict(headers or {}),
            queued_at=self._clock(),
        )
        await self._save_request(request)
        logger.debug("Queued %s %s as %s", request.method, url, request.id)
        return request.id

    async def queued_requests(self) -> list[QueuedRequest]:
        """Snapshot of queued requests, oldest first."""
        pairs = await self._store.items_by_index(REQUESTS, "timestamp")
        requests = await self._validate_all(REQUESTS, pairs, QueuedRequest)
        return sorted(requests, key=lambda r: r.queued_at)

    async def record_request_success(self, request: QueuedRequest) -> None:
        await self._store.delete(REQUESTS, request.id)

    async def record_request_failure(
        self,
        request: QueuedRequest,
        permanent: bool = False,
    ) -> bool:
        """Apply the retry policy to a failed request replay.

        Returns:
            ``True`` if the request stays queued, ``False`` if it was dropped.
        """
        if not permanent:
            request.retry_count += 1
        if permanent or request.retry_count >= self._max_retries:
            logger.warning(
                "Dropping queued %s %s after %d retries",
                request.method, request.url, request.retry_count,
            )
            await self._store.delete(REQUESTS, request.id)
            return False
        await self._save_request(request)
        return True

    # ------------------------------------------------------------------ #
    # Offline data cache
    # ------------------------------------------------------------------ #

    async def cache_data(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Remember *data* for disconnected reads.  Write failures are only logged."""
        now = self._clock()
        ttl = self._offline_ttl if ttl is None else ttl
        item = CachedItem(key=key, data=data, timestamp=now, expires=now + ttl)
        try:
            await self._store.put(CACHED_DATA, key, item.model_dump())
        except StorageError as exc:
            logger.warning("Offline cache write failed for %s: %s", key, exc)

    async def get_cached_data(self, key: str) -> Any:
        """Return unexpired offline data for *key*, or ``None``."""
        try:
            record = await self._store.get(CACHED_DATA, key)
        except StorageError as exc:
            logger.warning("Offline cache read failed for %s: %s", key, exc)
            return None
        if record is None:
            return None
        item = await self._validate(CACHED_DATA, key, record, CachedItem)
        if item is None:
            return None
        if self._clock() > item.expires:
            await self._store.delete(CACHED_DATA, key)
            return None
        return item.data

    async def cleanup_expired_data(self) -> int:
        """Delete expired offline cache items.

        Returns:
            Number of items removed.
        """
        now = self._clock()
        removed = 0
        for key, record in await self._store.items(CACHED_DATA):
            item = await self._validate(CACHED_DATA, key, record, CachedItem)
            if item is None:
                removed += 1
            elif now > item.expires:
                await self._store.delete(CACHED_DATA, key)
                removed += 1
        return removed

    # ------------------------------------------------------------------ #
    # Inspection and reset
    # ------------------------------------------------------------------ #

    async def get_stats(self) -> OfflineStats:
        return OfflineStats(
            pending_actions=await self._store.count_by_index(
                ACTIONS, "status", ActionStatus.PENDING.value
            ),
            queued_requests=await self._store.count(REQUESTS),
            cached_items=await self._store.count(CACHED_DATA),
            failed_actions=await self._store.count_by_index(
                ACTIONS, "status", ActionStatus.FAILED.value
            ),
        )

    async def clear_all(self) -> None:
        """Irreversibly wipe both queues and the offline data cache."""
        for collection in (ACTIONS, CACHED_DATA, REQUESTS):
            await self._store.clear(collection)
        logger.info("Cleared all offline data")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _save_action(self, action: OfflineAction) -> None:
        await self._store.put(ACTIONS, action.id, action.model_dump(mode="json", by_alias=True))

    async def _save_request(self, request: QueuedRequest) -> None:
        await self._store.put(REQUESTS, request.id, request.model_dump(mode="json", by_alias=True))

    async def _validate(
        self,
        collection: str,
        key: str,
        record: Record,
        model: type[ModelT],
    ) -> Optional[ModelT]:
        """Validate a stored record, deleting it if it does not fit *model*.

        A queue record whose ``id`` differs from its storage key counts as
        malformed: success and failure bookkeeping address records by id.
        """
        try:
            item = model.model_validate(record)
        except ValidationError:
            item = None
        if item is not None and getattr(item, "id", key) == key:
            return item
        logger.warning("Dropping malformed record %s/%s", collection, key)
        await self._store.delete(collection, key)
        return None

    async def _validate_all(
        self,
        collection: str,
        pairs: list[tuple[str, Record]],
        model: type[ModelT],
    ) -> list[ModelT]:
        """Validate scanned ``(key, record)`` pairs, deleting misfits by their storage key."""
        models: list[ModelT] = []
        for key, record in pairs:
            item = await self._validate(collection, key, record, model)
            if item is not None:
                models.append(item)
        return models
