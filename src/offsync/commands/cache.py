"""Cache commands -- inspect and clear response cache namespaces."""

from __future__ import annotations

from enum import Enum

import typer

from offsync.commands.queue import run_with_engine
from offsync.engine import Engine
from offsync.output import print_table, success


cache_app = typer.Typer(no_args_is_help=True)


class Namespace(str, Enum):
    ALL = "all"
    API = "api"
    STATIC = "static"
    USER = "user"


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    namespace: Namespace = typer.Option(
        Namespace.ALL, "--namespace", "-n", help="Namespace to clear."
    ),
) -> None:
    """Clear both tiers of one or all cache namespaces.

    Example::

        offsync cache clear --namespace user
    """

    async def _clear(engine: Engine) -> list[str]:
        names = list(engine.caches) if namespace is Namespace.ALL else [namespace.value]
        for name in names:
            await engine.caches[name].clear()
        return names

    names = run_with_engine(ctx, _clear)
    success(f"Cleared cache: {', '.join(names)}")


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show entry counts and durable size per namespace."""

    async def _stats(engine: Engine) -> list[list[str]]:
        rows = []
        for name, cache in engine.caches.items():
            stats = await cache.get_stats()
            rows.append([
                name,
                cache.prefix,
                str(cache.default_ttl),
                str(stats.memory_items),
                str(stats.persistent_items),
                str(stats.total_size),
            ])
        return rows

    rows = run_with_engine(ctx, _stats)
    print_table(
        ["Namespace", "Prefix", "TTL", "Memory", "Persistent", "Bytes"],
        rows,
        title="Response cache",
    )
