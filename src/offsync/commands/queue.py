"""Queue commands -- inspect, replay and clear the offline queues.

These commands operate on the durable store of the configured engine
(``data_dir`` or the XDG data directory):

* ``offsync status`` -- queue counts and cache occupancy.
* ``offsync actions`` -- list queued semantic actions.
* ``offsync requests`` -- list queued raw requests.
* ``offsync sync`` -- run one replay pass against ``base_url``.
* ``offsync clear`` -- wipe both queues and the offline data cache.
* ``offsync cleanup`` -- drop expired offline data and resolved actions.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from offsync.engine import Engine
from offsync.exceptions import InvalidUsageError, OffsyncError
from offsync.models import ActionStatus
from offsync.output import (
    OutputFormat,
    error,
    get_output,
    info,
    print_document,
    print_mapping,
    print_table,
    success,
    suggest,
    warning,
)

T = TypeVar("T")


def run_with_engine(ctx: typer.Context, fn: Callable[[Engine], Awaitable[T]]) -> T:
    """Build the configured engine, run *fn* inside it and map errors to exit codes.

    Raises:
        typer.Exit: With the error's exit code on any :class:`OffsyncError`.
    """
    from offsync.config import resolve_config
    from offsync.engine import create_engine

    obj = ctx.obj or {}

    async def _run() -> T:
        config = resolve_config(
            cli_base_url=obj.get("base_url"),
            cli_data_dir=obj.get("data_dir"),
        )
        async with create_engine(config) as engine:
            return await fn(engine)

    try:
        return asyncio.run(_run())
    except OffsyncError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _when(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def status_command(ctx: typer.Context) -> None:
    """Show offline queue counts and cache occupancy.

    Example::

        offsync status
        offsync --json status
    """

    async def _collect(engine: Engine) -> dict[str, Any]:
        stats = await engine.offline.get_stats()
        caches = {
            name: (await cache.get_stats()).model_dump()
            for name, cache in engine.caches.items()
        }
        return {"offline": stats.model_dump(), "cache": caches}

    report = run_with_engine(ctx, _collect)

    if get_output().format == OutputFormat.JSON:
        print_document(report)
        return
    print_mapping(report["offline"], title="Offline queues")
    print_table(
        ["Namespace", "Memory", "Persistent", "Bytes"],
        [
            [name, str(s["memory_items"]), str(s["persistent_items"]), str(s["total_size"])]
            for name, s in report["cache"].items()
        ],
        title="Response cache",
    )


def actions_command(
    ctx: typer.Context,
    status: Optional[ActionStatus] = typer.Option(
        None, "--status", "-s", help="Only list actions in this state."
    ),
) -> None:
    """List queued actions, oldest first.

    Example::

        offsync actions --status failed
    """

    async def _list(engine: Engine) -> list[Any]:
        return await engine.offline.list_actions(status)

    actions = run_with_engine(ctx, _list)
    if not actions:
        info("No actions queued.")
        return
    print_table(
        ["ID", "Type", "Entity", "Status", "Retries", "Queued"],
        [
            [a.id, a.kind.value, a.entity, a.status.value, str(a.retry_count), _when(a.queued_at)]
            for a in actions
        ],
        title="Offline actions",
    )


def requests_command(ctx: typer.Context) -> None:
    """List queued requests, oldest first."""

    async def _list(engine: Engine) -> list[Any]:
        return await engine.offline.queued_requests()

    requests = run_with_engine(ctx, _list)
    if not requests:
        info("No requests queued.")
        return
    print_table(
        ["ID", "Method", "URL", "Retries", "Queued"],
        [
            [r.id, r.method, r.url, str(r.retry_count), _when(r.queued_at)]
            for r in requests
        ],
        title="Queued requests",
    )


def sync_command(
    ctx: typer.Context,
    probe: bool = typer.Option(
        False, "--probe", help="Check reachability first and skip the pass if offline."
    ),
) -> None:
    """Replay queued requests and actions against the configured base URL.

    Example::

        offsync --base-url https://api.example.com sync
    """

    async def _sync(engine: Engine) -> Any:
        if not engine.config.base_url:
            raise InvalidUsageError(
                "No base URL configured; pass --base-url or set OFFSYNC_BASE_URL"
            )
        if probe and not await engine.connectivity.probe(engine.transport):
            return None
        return await engine.coordinator.sync()

    report = run_with_engine(ctx, _sync)
    if report is None:
        warning("Backend unreachable; nothing replayed.")
        return
    print_mapping(
        {
            "requests_replayed": report.requests_replayed,
            "requests_retried": report.requests_retried,
            "requests_dropped": report.requests_dropped,
            "actions_synced": report.actions_synced,
            "actions_retried": report.actions_retried,
            "actions_failed": report.actions_failed,
        },
        title="Sync report",
    )
    if report.left_for_retry:
        suggest("Run 'offsync sync' again later to retry the remaining items.")


def clear_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Irreversibly delete all queued work and offline data."""
    if not force and not typer.confirm("Delete all queued actions, requests and offline data?"):
        info("Cancelled.")
        raise typer.Exit()

    async def _clear(engine: Engine) -> None:
        await engine.offline.clear_all()

    run_with_engine(ctx, _clear)
    success("Offline data cleared.")


def cleanup_command(
    ctx: typer.Context,
    keep_resolved: bool = typer.Option(
        False, "--keep-resolved", help="Keep synced and failed actions."
    ),
) -> None:
    """Delete expired offline data and resolved actions."""

    async def _cleanup(engine: Engine) -> tuple[int, int]:
        expired = await engine.offline.cleanup_expired_data()
        purged = 0 if keep_resolved else await engine.offline.purge_resolved_actions()
        return expired, purged

    expired, purged = run_with_engine(ctx, _cleanup)
    success(f"Removed {expired} expired item(s) and {purged} resolved action(s).")
