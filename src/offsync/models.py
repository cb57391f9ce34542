"""Canonical Pydantic models shared across all offsync modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheNamespaceConfig`, :class:`CacheConfig`,
    :class:`SyncConfig`, :class:`OutputConfig`, and :class:`EngineConfig`.

**Record models** -- persisted in the durable store and returned to callers:
    :class:`CacheEntry`, :class:`OfflineAction`, :class:`QueuedRequest`,
    :class:`CachedItem`, :class:`OfflineStats`, and :class:`CacheStats`.

Record models use camelCase aliases for the fields whose durable names
differ from the Python attribute (``type``, ``data``, ``timestamp``,
``retryCount`` ...). Always dump them with ``by_alias=True`` before handing
them to a :class:`~offsync.storage.Store`; ``populate_by_name`` lets callers
construct them with the Python names.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Configuration ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every call the transport makes."""

    timeout: int = Field(default=10, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(
        default=2, description="Transport-level retry attempts for live calls"
    )


class CacheNamespaceConfig(BaseModel):
    """Settings for one independently clearable cache namespace."""

    prefix: str = Field(description="Key prefix applied to durable-tier keys")
    ttl_seconds: int = Field(default=300, gt=0, description="Default entry TTL in seconds")


class CacheConfig(BaseModel):
    """Two-tier response cache settings stored in :class:`EngineConfig`.

    The three namespaces mirror how often the underlying data changes:
    generic API responses expire quickly, reference data slowly, and
    user-identity data somewhere in between.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    memory_max_items: int = Field(
        default=100, gt=0, description="Volatile-tier entry cap per namespace"
    )
    api: CacheNamespaceConfig = Field(
        default_factory=lambda: CacheNamespaceConfig(prefix="offsync_api_", ttl_seconds=300)
    )
    static: CacheNamespaceConfig = Field(
        default_factory=lambda: CacheNamespaceConfig(prefix="offsync_static_", ttl_seconds=1800)
    )
    user: CacheNamespaceConfig = Field(
        default_factory=lambda: CacheNamespaceConfig(prefix="offsync_user_", ttl_seconds=600)
    )


class SyncConfig(BaseModel):
    """Replay and offline-storage settings."""

    max_retries: int = Field(default=3, gt=0, description="Failed replays before giving up")
    offline_ttl_seconds: int = Field(
        default=24 * 60 * 60, gt=0, description="TTL of the offline data cache"
    )
    probe_interval: int = Field(
        default=30, gt=0, description="Seconds between connectivity probes"
    )
    probe_path: str = Field(default="/", description="Path requested by connectivity probes")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`EngineConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class EngineConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/offsync/config.json``.

    Loaded and saved by :func:`~offsync.config.load_engine_config` and
    :func:`~offsync.config.save_engine_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~offsync.config.resolve_config`
    for the full precedence chain.
    """

    base_url: Optional[str] = Field(
        default=None, description="Backend base URL that queued paths are relative to"
    )
    data_dir: Optional[str] = Field(
        default=None, description="Durable store directory (defaults to the XDG data dir)"
    )
    token_source: Optional[str] = Field(
        default=None, description="Bearer token source: env:VAR or file:/path"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Records ---


class ActionKind(str, enum.Enum):
    """Semantic mutation recorded in the action queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ActionStatus(str, enum.Enum):
    """Lifecycle state of an :class:`OfflineAction`.

    ``SYNCED`` and ``FAILED`` are terminal and never retried.
    """

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class CacheEntry(BaseModel):
    """One cached response body with its expiry and validators."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    data: Any = None
    stored_at: float = Field(alias="storedAt")
    expires_at: float = Field(alias="expiresAt")
    etag: Optional[str] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")

    @model_validator(mode="after")
    def _check_expiry(self) -> CacheEntry:
        if self.expires_at <= self.stored_at:
            raise ValueError("expiresAt must be later than storedAt")
        return self

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class OfflineAction(BaseModel):
    """A semantic mutation (create/update/delete on an entity) awaiting replay."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: ActionKind = Field(alias="type")
    entity: str
    payload: Any = Field(default=None, alias="data")
    queued_at: float = Field(alias="timestamp")
    status: ActionStatus = ActionStatus.PENDING
    retry_count: int = Field(default=0, alias="retryCount")


class QueuedRequest(BaseModel):
    """A literal HTTP request that could not be issued and awaits replay.

    There is no status field: presence in the queue means pending.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    method: str
    body: Any = Field(default=None, alias="data")
    headers: dict[str, str] = Field(default_factory=dict)
    queued_at: float = Field(alias="timestamp")
    retry_count: int = Field(default=0, alias="retryCount")


class CachedItem(BaseModel):
    """An entry of the offline data cache used for disconnected reads."""

    key: str
    data: Any = None
    timestamp: float
    expires: float


class OfflineStats(BaseModel):
    """Counts derived from the durable queues, for user-facing visibility."""

    pending_actions: int = 0
    queued_requests: int = 0
    cached_items: int = 0
    failed_actions: int = 0


class CacheStats(BaseModel):
    """Occupancy of one cache namespace."""

    memory_items: int = 0
    persistent_items: int = 0
    total_size: int = Field(default=0, description="Approximate durable size in bytes")
