"""Tests for the single-flight SyncCoordinator."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from offsync.auth import BearerTokenAuth
from offsync.connectivity import ConnectivityMonitor
from offsync.events import EventBus, EventKind
from offsync.exceptions import InvalidUsageError, StorageError
from offsync.models import ActionKind, ActionStatus, OfflineAction
from offsync.offline import OfflineManager
from offsync.sync import SyncCoordinator, SyncState, action_endpoint


@pytest.fixture()
def offline(store, clock) -> OfflineManager:
    return OfflineManager(store, max_retries=3, clock=clock)


@pytest.fixture()
def events() -> list:
    return []


@pytest.fixture()
def coordinator(offline, transport, events) -> SyncCoordinator:
    bus = EventBus()
    bus.subscribe(events.append)
    return SyncCoordinator(
        offline,
        transport,
        ConnectivityMonitor(online=True),
        auth=BearerTokenAuth("tok"),
        events=bus,
    )


def _action(kind: str, payload) -> OfflineAction:
    return OfflineAction(id="a1", kind=kind, entity="tasks", payload=payload, queued_at=0.0)


# ------------------------------------------------------------------ #
# Endpoint mapping
# ------------------------------------------------------------------ #


class TestActionEndpoint:
    def test_create(self) -> None:
        assert action_endpoint(_action("create", {"title": "x"})) == (
            "POST", "/tasks", {"title": "x"}
        )

    def test_update(self) -> None:
        assert action_endpoint(_action("update", {"id": 5, "done": True})) == (
            "PUT", "/tasks/5", {"id": 5, "done": True}
        )

    def test_delete_has_no_body(self) -> None:
        assert action_endpoint(_action("delete", {"id": "abc"})) == ("DELETE", "/tasks/abc", None)

    @pytest.mark.parametrize("kind", ["update", "delete"])
    def test_missing_id(self, kind) -> None:
        with pytest.raises(InvalidUsageError, match="no payload id"):
            action_endpoint(_action(kind, {"title": "x"}))


# ------------------------------------------------------------------ #
# Replay of both queues
# ------------------------------------------------------------------ #


class TestReplay:
    @pytest.mark.asyncio
    async def test_create_action_replayed(self, coordinator, offline, backend) -> None:
        action_id = await offline.enqueue_action("create", "tasks", {"title": "x"})

        report = await coordinator.sync()

        [call] = backend.calls_to("POST", "/tasks")
        assert json.loads(call.content) == {"title": "x"}
        assert call.headers["authorization"] == "Bearer tok"
        assert call.headers["content-type"] == "application/json"
        assert (await offline.get_action(action_id)).status is ActionStatus.SYNCED
        assert report.actions_synced == 1

    @pytest.mark.asyncio
    async def test_requests_replayed_literally(self, coordinator, offline, backend) -> None:
        await offline.enqueue_request(
            "/notes/3", "PATCH", body={"text": "hi"}, headers={"X-Trace": "t1"}
        )
        await offline.enqueue_request("/notes", "POST", body={"text": "new"})
        before = (await offline.get_stats()).queued_requests

        report = await coordinator.sync()

        [patch] = backend.calls_to("PATCH", "/notes/3")
        assert patch.headers["x-trace"] == "t1"
        assert json.loads(patch.content) == {"text": "hi"}
        assert report.requests_replayed == 2
        assert (await offline.get_stats()).queued_requests == before - 2

    @pytest.mark.asyncio
    async def test_requests_before_actions_oldest_first(
        self, coordinator, offline, backend, clock
    ) -> None:
        await offline.enqueue_action("create", "tasks", {"n": 1})
        clock.advance(1)
        await offline.enqueue_request("/first", "POST")
        clock.advance(1)
        await offline.enqueue_request("/second", "POST")
        clock.advance(1)
        await offline.enqueue_action("delete", "tasks", {"id": 9})

        await coordinator.sync()

        assert [(c.method, c.url.path) for c in backend.calls] == [
            ("POST", "/first"),
            ("POST", "/second"),
            ("POST", "/tasks"),
            ("DELETE", "/tasks/9"),
        ]

    @pytest.mark.asyncio
    async def test_single_replay_decrements_queue(self, coordinator, offline) -> None:
        await offline.enqueue_request("/a", "POST")
        assert (await offline.get_stats()).queued_requests == 1
        await coordinator.sync()
        assert (await offline.get_stats()).queued_requests == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_three_failures_then_failed(self, coordinator, offline, backend) -> None:
        backend.on("POST", "/tasks", httpx.Response(503))
        action_id = await offline.enqueue_action("create", "tasks", {"title": "x"})

        for _ in range(3):
            await coordinator.sync()
        action = await offline.get_action(action_id)
        assert action.status is ActionStatus.FAILED
        assert action.retry_count == 3

        await coordinator.sync()
        assert len(backend.calls_to("POST", "/tasks")) == 3

    @pytest.mark.asyncio
    async def test_permanent_rejection_fails_immediately(self, coordinator, offline, backend) -> None:
        backend.on("POST", "/tasks", httpx.Response(422, json={"error": "invalid"}))
        action_id = await offline.enqueue_action("create", "tasks", {})

        report = await coordinator.sync()

        action = await offline.get_action(action_id)
        assert action.status is ActionStatus.FAILED
        assert action.retry_count == 0
        assert report.actions_failed == 1

    @pytest.mark.asyncio
    async def test_missing_id_is_permanent(self, coordinator, offline, backend) -> None:
        action_id = await offline.enqueue_action(ActionKind.UPDATE, "tasks", {"title": "x"})
        await coordinator.sync()
        assert (await offline.get_action(action_id)).status is ActionStatus.FAILED
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_request_dropped_after_retries(self, coordinator, offline, backend) -> None:
        backend.on("POST", "/a", httpx.ConnectError("down"))
        await offline.enqueue_request("/a", "POST")

        reports = [await coordinator.sync() for _ in range(3)]

        assert [r.requests_retried for r in reports] == [1, 1, 0]
        assert reports[-1].requests_dropped == 1
        assert await offline.queued_requests() == []

    @pytest.mark.asyncio
    async def test_404_drops_request(self, coordinator, offline, backend) -> None:
        backend.on("DELETE", "/gone", httpx.Response(404))
        await offline.enqueue_request("/gone", "DELETE")
        report = await coordinator.sync()
        assert report.requests_dropped == 1
        assert await offline.queued_requests() == []

    @pytest.mark.asyncio
    async def test_auth_failure_is_retryable(self, coordinator, offline, backend) -> None:
        backend.on("POST", "/tasks", httpx.Response(401))
        action_id = await offline.enqueue_action("create", "tasks", {})
        await coordinator.sync()
        action = await offline.get_action(action_id)
        assert action.status is ActionStatus.PENDING
        assert action.retry_count == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_pass(self, coordinator, offline, backend, clock) -> None:
        backend.on("POST", "/bad", httpx.Response(500))
        await offline.enqueue_request("/bad", "POST")
        clock.advance(1)
        await offline.enqueue_request("/good", "POST")

        report = await coordinator.sync()

        assert report.requests_retried == 1
        assert report.requests_replayed == 1
        assert coordinator.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_dropped_connection_is_retryable(
        self, coordinator, offline, backend, clock
    ) -> None:
        backend.on("POST", "/a", httpx.RemoteProtocolError("Server disconnected"))
        await offline.enqueue_request("/a", "POST")
        clock.advance(1)
        await offline.enqueue_request("/b", "POST")

        report = await coordinator.sync()

        assert report.requests_retried == 1
        assert report.requests_replayed == 1
        assert len(backend.calls_to("POST", "/b")) == 1
        [left] = await offline.queued_requests()
        assert left.url == "/a"
        assert left.retry_count == 1
        assert coordinator.state is SyncState.IDLE


# ------------------------------------------------------------------ #
# Single flight and triggers
# ------------------------------------------------------------------ #


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_calls_run_one_pass(self, offline, transport, backend) -> None:
        gate = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            return httpx.Response(200)

        backend.on("POST", "/a", slow)
        coordinator = SyncCoordinator(offline, transport, ConnectivityMonitor())
        await offline.enqueue_request("/a", "POST")

        first = asyncio.create_task(coordinator.sync())
        await asyncio.sleep(0)
        assert coordinator.is_syncing
        assert await coordinator.sync() is None
        gate.set()
        report = await first

        assert report.requests_replayed == 1
        assert coordinator.state is SyncState.IDLE
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_work_enqueued_mid_pass_waits_for_next_pass(
        self, coordinator, offline, backend, clock
    ) -> None:
        async def enqueue_more(request: httpx.Request) -> httpx.Response:
            clock.advance(1)
            await offline.enqueue_request("/late", "POST", {"n": 2})
            await offline.enqueue_action("create", "tasks", {"title": "late"})
            return httpx.Response(200)

        backend.on("POST", "/first", enqueue_more, httpx.Response(200))
        await offline.enqueue_request("/first", "POST", {"n": 1})

        report = await coordinator.sync()

        assert report.requests_replayed == 1
        assert report.actions_synced == 0
        assert backend.calls_to("POST", "/late") == []
        assert len(await offline.queued_requests()) == 1
        assert len(await offline.pending_actions()) == 1

        second = await coordinator.sync()

        assert second.requests_replayed == 1
        assert second.actions_synced == 1
        assert len(backend.calls_to("POST", "/late")) == 1
        assert len(backend.calls_to("POST", "/tasks")) == 1
        assert await offline.queued_requests() == []

    @pytest.mark.asyncio
    async def test_gather_gives_one_pass(self, coordinator, offline, backend) -> None:
        async def yielding(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0)
            return httpx.Response(200)

        backend.on("POST", "/a", yielding)
        await offline.enqueue_request("/a", "POST")
        results = await asyncio.gather(coordinator.sync(), coordinator.sync())
        assert sum(r is not None for r in results) == 1
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_offline_skips(self, offline, transport, backend) -> None:
        coordinator = SyncCoordinator(offline, transport, ConnectivityMonitor(online=False))
        await offline.enqueue_request("/a", "POST")
        assert await coordinator.sync() is None
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_reconnect_triggers_sync(self, offline, transport, backend) -> None:
        monitor = ConnectivityMonitor(online=False)
        SyncCoordinator(offline, transport, monitor)
        await offline.enqueue_action("create", "tasks", {"title": "x"})

        await monitor.set_online(True)

        assert len(backend.calls_to("POST", "/tasks")) == 1

    @pytest.mark.asyncio
    async def test_storage_error_clears_flag(self, coordinator, offline, monkeypatch) -> None:
        async def boom():
            raise StorageError("disk gone")

        monkeypatch.setattr(offline, "queued_requests", boom)
        with pytest.raises(StorageError):
            await coordinator.sync()
        assert coordinator.state is SyncState.IDLE


class TestEvents:
    @pytest.mark.asyncio
    async def test_event_sequence(self, coordinator, offline, backend, events) -> None:
        backend.on("POST", "/fail", httpx.Response(400))
        rid = await offline.enqueue_request("/fail", "POST")
        aid = await offline.enqueue_action("create", "tasks", {})

        await coordinator.sync()

        kinds = [(e.kind, e.item_id) for e in events]
        assert kinds == [
            (EventKind.SYNC_STARTED, None),
            (EventKind.REQUEST_DROPPED, rid),
            (EventKind.ACTION_SYNCED, aid),
            (EventKind.SYNC_FINISHED, None),
        ]
        assert events[1].error is not None
        assert events[-1].detail["actions_synced"] == 1
