"""Terminal output for the offsync CLI.

Anything a script might parse (queue rows, stats, config documents) is
written to stdout; progress lines, warnings and transport retry notices
go to stderr. ``offsync queue list | cut -f1`` therefore sees only rows.

The active :class:`OutputManager` is installed once per invocation by
:func:`~offsync.app.main_callback`. Engine code reaches it through
:func:`get_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` picks ``RICH`` on a colour TTY."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders CLI data and diagnostics according to ``--format``,
    ``--no-color``, ``--quiet`` and ``--verbose``.

    Colour is also off when ``NO_COLOR`` is set or ``TERM=dumb``.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_document(self, data: Any) -> None:
        """Print stats, a config dump or a single record.

        JSON mode emits the document verbatim, plain mode one ``key<TAB>value``
        line per top-level entry, rich mode highlighted JSON.
        """
        if self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
            return
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.JSON:
            self.print_data(text)
        else:
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))

    def print_mapping(self, mapping: Mapping[str, Any], title: Optional[str] = None) -> None:
        """Print counters such as queue stats; a JSON object in JSON mode."""
        if self._format == OutputFormat.JSON:
            self.print_document(dict(mapping))
        else:
            rows = [[key, _cell(value)] for key, value in mapping.items()]
            self.print_table(["Field", "Value"], rows, title)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows such as queued requests.

        JSON mode turns each row into an object keyed by *headers*; plain
        mode writes a header line then tab-separated rows. *title* is only
        shown in rich mode.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return
        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, style="green")

    def warning(self, message: str) -> None:
        # --quiet never hides warnings or errors
        self._labelled("Warning", "yellow", message)

    def error(self, message: str) -> None:
        self._labelled("Error", "bold red", message)

    def suggest(self, message: str) -> None:
        """Hint at the command to run next, e.g. ``offsync sync``."""
        if not self._quiet:
            self._emit(f"→ {message}", style="dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit(f"[debug] {message}", style="dim")

    def _labelled(self, label: str, style: str, message: str) -> None:
        if self._no_color:
            print(f"{label}: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[{style}]{label}:[/{style}] {escape(message)}")

    def _emit(self, message: str, style: Optional[str] = None) -> None:
        if self._no_color:
            print(message, file=sys.stderr, flush=True)
        elif style:
            self._stderr.print(f"[{style}]{escape(message)}[/{style}]", highlight=False)
        else:
            self._stderr.print(message, markup=False, highlight=False)


def _plain_lines(data: Any) -> Iterator[str]:
    if isinstance(data, dict):
        for key, value in data.items():
            yield f"{key}\t{_cell(value)}"
    elif isinstance(data, list):
        for item in data:
            yield _cell(item)
    else:
        yield str(data)


def _cell(value: Any) -> str:
    """Render one table cell; ``None`` shows as ``-``."""
    if value is None:
        return "-"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    # NO_COLOR counts even when empty
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def print_document(data: Any) -> None:
    get_output().print_document(data)


def print_mapping(mapping: Mapping[str, Any], title: Optional[str] = None) -> None:
    get_output().print_mapping(mapping, title)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
