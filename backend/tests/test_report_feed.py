"""Tests for the report store and live feed."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from reportdash.services.report_feed import ReportFeed
from reportdash.services.report_store import (
    InMemoryReportStore,
    ReportNotFoundError,
    SnapshotChange,
)


class TestInMemoryReportStore:
    """Tests for the in-memory store."""

    def test_subscribe_delivers_current_snapshot(self, memory_store):
        received = []

        memory_store.subscribe(lambda snapshot, changes: received.append((snapshot, changes)))

        snapshot, changes = received[0]
        assert len(snapshot) == 6
        assert SnapshotChange("added", "doc-a") in changes

    def test_upsert_notifies(self, memory_store):
        received = []
        memory_store.subscribe(lambda snapshot, changes: received.append(changes))

        memory_store.upsert("doc-g", {"categoria": "Bacheo", "estado": "pendiente"})
        memory_store.upsert("doc-g", {"categoria": "Bacheo", "estado": "completado"})

        assert received[1] == [SnapshotChange("added", "doc-g")]
        assert received[2] == [SnapshotChange("modified", "doc-g")]

    def test_remove_notifies(self, memory_store):
        received = []
        memory_store.subscribe(lambda snapshot, changes: received.append(snapshot))

        memory_store.remove("doc-a")
        memory_store.remove("missing")

        assert len(received) == 2
        assert "doc-a" not in {report.id for report in received[-1]}

    def test_unsubscribe_stops_delivery(self, memory_store):
        received = []
        subscription = memory_store.subscribe(lambda snapshot, changes: received.append(changes))

        subscription.unsubscribe()
        subscription.unsubscribe()
        memory_store.upsert("doc-g", {})

        assert not subscription.active
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_set_status_writes_canonical_value(self, memory_store):
        await memory_store.set_status("doc-a", "Completed")

        assert memory_store.document("doc-a")["estado"] == "completado"

    @pytest.mark.asyncio
    async def test_set_status_unknown_report(self, memory_store):
        with pytest.raises(ReportNotFoundError):
            await memory_store.set_status("missing", "completado")

    def test_snapshot_does_not_share_documents(self, memory_store):
        document = memory_store.document("doc-a")
        document["estado"] = "completado"

        assert memory_store.document("doc-a")["estado"] == "pendiente"


class TestReportFeed:
    """Tests for the live report feed."""

    @pytest.mark.asyncio
    async def test_start_loads_snapshot(self, feed):
        assert feed.active
        assert len(feed) == 6
        assert feed.version == 1
        assert feed.last_update is not None
        assert feed.get("doc-b").status == "completado"
        assert feed.get("missing") is None

    @pytest.mark.asyncio
    async def test_store_changes_replace_snapshot(self, feed, memory_store):
        old_snapshot = feed.snapshot

        memory_store.upsert("doc-g", {"folio": 2000, "categoria": "Bacheo"})

        assert len(feed) == 7
        assert feed.version == 2
        assert feed.get("doc-g").folio == "2000"
        assert len(old_snapshot) == 6

    @pytest.mark.asyncio
    async def test_listener_receives_changes(self, feed, memory_store):
        listener = AsyncMock()
        feed.add_listener(listener)

        memory_store.upsert("doc-g", {})
        await asyncio.sleep(0)

        listener.assert_awaited_once()
        snapshot, changes = listener.await_args.args
        assert len(snapshot) == 7
        assert changes == [SnapshotChange("added", "doc-g")]

    @pytest.mark.asyncio
    async def test_removed_listener_not_called(self, feed, memory_store):
        listener = AsyncMock()
        remove = feed.add_listener(listener)
        remove()
        remove()

        memory_store.upsert("doc-g", {})
        await asyncio.sleep(0)

        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, feed, memory_store):
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        feed.add_listener(failing)
        feed.add_listener(healthy)

        memory_store.upsert("doc-g", {})
        await asyncio.sleep(0)

        healthy.assert_awaited_once()
        assert feed.version == 2

    @pytest.mark.asyncio
    async def test_exit_releases_subscription(self, memory_store):
        async with ReportFeed(memory_store) as report_feed:
            assert report_feed.active

        memory_store.upsert("doc-g", {})

        assert not report_feed.active
        assert len(report_feed) == 6

    @pytest.mark.asyncio
    async def test_exit_releases_subscription_on_error(self, memory_store):
        report_feed = ReportFeed(memory_store)

        with pytest.raises(RuntimeError):
            async with report_feed:
                raise RuntimeError("request failed")

        assert not report_feed.active

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, feed):
        feed.start()

        assert feed.version == 1

    @pytest.mark.asyncio
    async def test_recent_skips_deleted_and_undated_last(self, memory_store):
        memory_store.upsert("doc-b", {"folio": 1043, "fecha": "2024-01-17T11:00:00", "deleted": True})

        async with ReportFeed(memory_store) as report_feed:
            recent = report_feed.recent(limit=3)

        assert [report.id for report in recent] == ["doc-c", "doc-a", "doc-f"]
        assert report_feed.recent(limit=10)[-1].id == "doc-e"

    @pytest.mark.asyncio
    async def test_set_status_round_trips_through_store(self, feed):
        await feed.set_status("doc-a", "completado")

        assert feed.get("doc-a").is_completed
        assert feed.version == 2

    def test_store_without_loop_skips_listeners(self):
        store = InMemoryReportStore({"x": {}})
        report_feed = ReportFeed(store)
        report_feed.add_listener(AsyncMock())

        report_feed.start()

        assert len(report_feed) == 1
