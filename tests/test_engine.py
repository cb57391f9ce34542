"""Tests for offsync.engine.create_engine wiring."""

from __future__ import annotations

import httpx
import pytest

from offsync.auth import BearerTokenAuth, NoAuth
from offsync.engine import create_engine
from offsync.exceptions import ConfigError
from offsync.models import CacheConfig, EngineConfig, SyncConfig


BASE_URL = "https://api.example.com"


class TestCreateEngine:
    def test_no_token_source_uses_no_auth(self, store) -> None:
        engine = create_engine(EngineConfig(), store=store)
        assert isinstance(engine.auth, NoAuth)
        assert set(engine.caches) == {"api", "static", "user"}

    def test_token_source_builds_bearer(self, store, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_TEST_TOKEN", "abc")
        engine = create_engine(EngineConfig(token_source="env:OFFSYNC_TEST_TOKEN"), store=store)
        assert isinstance(engine.auth, BearerTokenAuth)
        assert engine.auth.headers() == {"Authorization": "Bearer abc"}

    def test_unresolvable_token_source(self, store, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OFFSYNC_MISSING_TOKEN", raising=False)
        with pytest.raises(ConfigError):
            create_engine(EngineConfig(token_source="env:OFFSYNC_MISSING_TOKEN"), store=store)

    def test_config_flows_into_components(self, store) -> None:
        config = EngineConfig(
            cache=CacheConfig(enabled=False),
            sync=SyncConfig(max_retries=7),
        )
        engine = create_engine(config, store=store, online=False)
        assert engine.offline.max_retries == 7
        assert engine.connectivity.is_online is False
        assert engine.static_cache.default_ttl == 1800

    @pytest.mark.asyncio
    async def test_context_manager_round_trip(self, store, backend, clock) -> None:
        backend.on("GET", "/tasks", httpx.Response(200, json=[{"id": 1}]))
        config = EngineConfig(base_url=BASE_URL)
        async with create_engine(config, store=store, transport=backend.transport, clock=clock) as engine:
            first = await engine.pipeline.get("/tasks", use_cache=True)
            second = await engine.pipeline.get("/tasks", use_cache=True)
        assert first.data == [{"id": 1}]
        assert second.from_cache is True
        assert len(backend.calls_to("GET", "/tasks")) == 1

    @pytest.mark.asyncio
    async def test_offline_post_is_queued(self, store, backend, clock) -> None:
        config = EngineConfig(base_url=BASE_URL)
        async with create_engine(
            config, store=store, transport=backend.transport, clock=clock, online=False
        ) as engine:
            response = await engine.pipeline.post("/tasks", body={"title": "x"})
            stats = await engine.offline.get_stats()
        assert response.status_code == 202
        assert response.queued is True
        assert stats.queued_requests == 1
        assert backend.calls == []
