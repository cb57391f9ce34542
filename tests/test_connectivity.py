"""Tests for the connectivity monitor."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from offsync.connectivity import ConnectivityMonitor


class TestTransitions:
    @pytest.mark.asyncio
    async def test_listeners_only_on_change(self) -> None:
        monitor = ConnectivityMonitor(online=True)
        seen: list[bool] = []

        async def listener(online: bool) -> None:
            seen.append(online)

        monitor.add_listener(listener)
        await monitor.set_online(True)
        await monitor.set_online(False)
        await monitor.set_online(False)
        await monitor.set_online(True)

        assert seen == [False, True]
        assert monitor.is_online

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self) -> None:
        monitor = ConnectivityMonitor(online=False)
        order: list[str] = []

        async def broken(online: bool) -> None:
            order.append("broken")
            raise RuntimeError("boom")

        async def healthy(online: bool) -> None:
            order.append("healthy")

        monitor.add_listener(broken)
        monitor.add_listener(healthy)
        await monitor.set_online(True)

        assert order == ["broken", "healthy"]

    @pytest.mark.asyncio
    async def test_remove_listener(self) -> None:
        monitor = ConnectivityMonitor()
        seen: list[bool] = []

        async def listener(online: bool) -> None:
            seen.append(online)

        monitor.add_listener(listener)
        monitor.add_listener(listener)
        monitor.remove_listener(listener)
        await monitor.set_online(False)
        assert seen == []


class TestProbe:
    @pytest.mark.asyncio
    async def test_unreachable_goes_offline(self, transport, backend) -> None:
        backend.on("HEAD", "/", httpx.ConnectError("down"))
        monitor = ConnectivityMonitor(online=True)
        assert await monitor.probe(transport) is False
        assert not monitor.is_online

    @pytest.mark.asyncio
    async def test_error_status_still_online(self, transport, backend) -> None:
        backend.on("HEAD", "/health", httpx.Response(503))
        monitor = ConnectivityMonitor(online=False, probe_path="/health")
        assert await monitor.probe(transport) is True
        assert monitor.is_online
        assert backend.calls[0].method == "HEAD"

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, transport, backend) -> None:
        monitor = ConnectivityMonitor()
        stop = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            if len(backend.calls) >= 2:
                stop.set()
            return httpx.Response(200)

        backend.on("HEAD", "/", handler)
        await asyncio.wait_for(monitor.run(transport, interval=0.01, stop=stop), timeout=5)
        assert len(backend.calls) >= 2
