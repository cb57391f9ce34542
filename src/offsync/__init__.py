"""offsync -- Offline-first request pipeline, replay queues and two-tier cache.

This package lets an asyncio HTTP client keep working while its backend is
unreachable. Reads are served from a volatile + durable response cache,
mutations are queued durably and acknowledged optimistically, and a
single-flight coordinator replays the queues once connectivity returns.

Typical wiring::

    from offsync.config import resolve_config
    from offsync.engine import create_engine

    config = resolve_config()
    async with create_engine(config) as engine:
        resp = await engine.pipeline.get("/tasks", use_cache=True)
        await engine.pipeline.post("/tasks", body={"title": "x"})
        await engine.connectivity.set_online(True)   # triggers a sync pass

Modules:
    app: Typer CLI for inspecting queues and triggering sync passes.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration with precedence resolution.
    storage: Durable key-value store with secondary indexes.
    cache: Namespaced two-tier response cache.
    offline: Action queue, request queue and offline data cache.
    sync: Single-flight synchronization coordinator.
    pipeline: Per-call network / cache / enqueue decision layer.
    engine: Factory wiring every component into one Engine instance.
    connectivity: Online/offline state, listeners and reachability probes.
    transport: httpx-based async transport with retry and backoff.
    auth: Auth header providers (bearer token, none).
    events: Synchronous event bus for sync progress notifications.
    exceptions: Exception hierarchy with exit-code and retry classification.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
