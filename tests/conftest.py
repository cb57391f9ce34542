"""Shared test fixtures for offsync.

Provides isolated config environments, global output reset, an in-memory
store, a controllable clock and a scripted HTTP backend built on
:class:`httpx.MockTransport`.  These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Union

import httpx
import pytest
import pytest_asyncio

from offsync.output import OutputFormat, OutputManager, reset_output, set_output
from offsync.storage import MemoryStore


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG dirs at tmp_path, clear OFFSYNC_* variables and chdir there.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["OFFSYNC_BASE_URL", "OFFSYNC_DATA_DIR", "OFFSYNC_TOKEN_SOURCE"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Engine building blocks
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Scripted HTTP backend for :class:`httpx.MockTransport`.

    Replies are queued per ``(METHOD, path)``; the last reply for a route
    repeats once the queue is down to one.  Unscripted routes answer
    ``200 {}``.  Every request is recorded in :attr:`calls`.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Reply]] = {}

    def on(self, method: str, path: str, *replies: Reply) -> FakeBackend:
        self._routes.setdefault((method.upper(), path), []).extend(replies)
        return self

    def calls_to(self, method: str, path: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.method == method.upper() and c.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        replies = self._routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(200, json={})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def transport(backend: FakeBackend):
    """An open HttpTransport talking to :class:`FakeBackend` with no live retries."""
    from offsync.models import RequestConfig
    from offsync.transport import HttpTransport

    http = HttpTransport(
        RequestConfig(max_retries=0),
        base_url="https://api.example.com",
        transport=backend.transport,
    )
    http.open()
    yield http
    await http.aclose()
