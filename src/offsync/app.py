"""Typer application and CLI entry point for offsync.

The CLI is an inspection and maintenance tool for the durable state an
embedding application leaves behind: queue counts, queued work, manual
replay passes, cache clearing and housekeeping.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs signal handlers and invokes the Typer
app.  :class:`~offsync.exceptions.OffsyncError` exits with the error's
exit code; anything else is written to a crash log under the data
directory.

See Also:
    :mod:`offsync.config`: Configuration resolution.
    :mod:`offsync.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from offsync import __version__
from offsync.commands.cache import cache_app
from offsync.commands.config import config_app
from offsync.commands.queue import (
    actions_command,
    cleanup_command,
    clear_command,
    requests_command,
    status_command,
    sync_command,
)
from offsync.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="offsync",
    help="Inspect and replay offline request queues.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("status")(status_command)
app.command("actions")(actions_command)
app.command("requests")(requests_command)
app.command("sync")(sync_command)
app.command("clear")(clear_command)
app.command("cleanup")(cleanup_command)
app.add_typer(cache_app, name="cache", help="Response cache management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"offsync {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Backend base URL (overrides config)."
    ),
    data_dir: Optional[str] = typer.Option(
        None, "--data-dir", help="Durable store directory (overrides config)."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~offsync.output.OutputManager`, sets the
    log level of the ``offsync`` logger and stores the overrides in
    ``ctx.obj`` for the sub-commands.
    """
    from offsync.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["data_dir"] = data_dir
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool) -> None:
    """Send library log records to stderr; debug records only with --verbose."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("offsync").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under ``<data_dir>/logs`` and return its path."""
    from offsync.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``offsync`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from offsync.exceptions import OffsyncError
        from offsync.output import error

        if isinstance(exc, OffsyncError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
