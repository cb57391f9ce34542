"""Config commands -- view and modify the user configuration.

Provides the ``offsync config`` sub-command group for reading, updating
and resetting the user's :class:`~offsync.models.EngineConfig`, persisted
in the offsync config directory.  ``show`` prints the *effective*
configuration, i.e. after project file, environment and CLI overrides.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from offsync.exit_codes import EXIT_INVALID_USAGE
from offsync.output import error, info, print_document, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Example::

        offsync config show
        offsync --json config show
    """
    from offsync.config import get_config_dir, resolve_config

    obj = ctx.obj or {}
    config = resolve_config(
        cli_base_url=obj.get("base_url"),
        cli_data_dir=obj.get("data_dir"),
    )
    info(f"Config directory: {get_config_dir()}")
    print_document(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:
    """Convert *value* to the type of the field's current value."""
    if value.lower() in ("null", "none") and not isinstance(current, (bool, int)):
        return None
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'sync.max_retries')."
    ),
    value: str = typer.Argument(help="Value to set ('null' clears optional keys)."),
) -> None:
    """Set a value in the user configuration.

    The value is coerced to the existing field's type and the result is
    validated against :class:`~offsync.models.EngineConfig` before saving.

    Raises:
        typer.Exit: With code 2 for an unknown key or invalid value.

    Example::

        offsync config set base_url https://api.example.com
        offsync config set cache.api.ttl_seconds 120
        offsync config set token_source env:API_TOKEN
    """
    from offsync.config import load_engine_config, save_engine_config
    from offsync.models import EngineConfig

    data = load_engine_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = EngineConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_engine_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset the user configuration to defaults.

    Example::

        offsync config reset --force
    """
    from offsync.config import save_engine_config
    from offsync.models import EngineConfig

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_engine_config(EngineConfig())
    success("Configuration reset to defaults.")
