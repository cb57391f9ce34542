"""Tests for the auth providers."""

from __future__ import annotations

import pytest

from offsync.auth import BearerTokenAuth, NoAuth
from offsync.exceptions import ConfigError


class TestNoAuth:
    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        auth = NoAuth()
        assert auth.headers() == {}
        assert await auth.refresh() is False


class TestBearerTokenAuth:
    def test_headers(self) -> None:
        assert BearerTokenAuth("abc").headers() == {"Authorization": "Bearer abc"}

    def test_no_token_no_header(self) -> None:
        assert BearerTokenAuth().headers() == {}

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_TEST_TOKEN", "secret")
        auth = BearerTokenAuth.from_source("env:OFFSYNC_TEST_TOKEN")
        assert auth.token == "secret"

    def test_from_file(self, tmp_path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("filetoken\n")
        assert BearerTokenAuth.from_source(f"file:{token_file}").token == "filetoken"

    def test_from_missing_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OFFSYNC_MISSING", raising=False)
        with pytest.raises(ConfigError):
            BearerTokenAuth.from_source("env:OFFSYNC_MISSING")

    @pytest.mark.asyncio
    async def test_refresh_rereads_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_TEST_TOKEN", "old")
        auth = BearerTokenAuth.from_source("env:OFFSYNC_TEST_TOKEN")
        assert await auth.refresh() is False

        monkeypatch.setenv("OFFSYNC_TEST_TOKEN", "new")
        assert await auth.refresh() is True
        assert auth.headers() == {"Authorization": "Bearer new"}

    @pytest.mark.asyncio
    async def test_refresh_source_gone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_TEST_TOKEN", "old")
        auth = BearerTokenAuth.from_source("env:OFFSYNC_TEST_TOKEN")
        monkeypatch.delenv("OFFSYNC_TEST_TOKEN")
        assert await auth.refresh() is False
        assert auth.token == "old"

    @pytest.mark.asyncio
    async def test_refresher_preferred(self) -> None:
        async def refresher():
            return "fresh"

        auth = BearerTokenAuth("stale", source="env:UNUSED", refresher=refresher)
        assert await auth.refresh() is True
        assert auth.token == "fresh"

    @pytest.mark.asyncio
    async def test_refresher_failure(self) -> None:
        async def refresher():
            return None

        auth = BearerTokenAuth("stale", refresher=refresher)
        assert await auth.refresh() is False
        assert auth.token == "stale"
