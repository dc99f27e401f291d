"""Tests for the Firestore report store with a stubbed client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from reportdash.services.firestore_store import FirestoreReportStore
from reportdash.services.report_store import (
    InMemoryReportStore,
    ReportNotFoundError,
    ReportStoreError,
    SnapshotChange,
    build_report_store,
)


def document(doc_id: str, data: dict) -> SimpleNamespace:
    return SimpleNamespace(id=doc_id, to_dict=lambda: data)


def change(kind: str, doc_id: str) -> SimpleNamespace:
    return SimpleNamespace(type=SimpleNamespace(name=kind), document=SimpleNamespace(id=doc_id))


@pytest.fixture
def firestore_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(firestore_client) -> FirestoreReportStore:
    return FirestoreReportStore(firestore_client, "reportes")


class TestFirestoreSubscribe:
    """Tests for snapshot listener bridging."""

    @pytest.mark.asyncio
    async def test_snapshot_delivered_on_loop(self, store, firestore_client, sample_documents):
        received = []
        store.subscribe(lambda snapshot, changes: received.append((snapshot, changes)))

        firestore_client.collection.assert_called_with("reportes")
        on_snapshot = firestore_client.collection.return_value.on_snapshot.call_args.args[0]
        on_snapshot(
            [document("doc-a", sample_documents["doc-a"])],
            [change("ADDED", "doc-a")],
            None,
        )
        await asyncio.sleep(0)

        snapshot, changes = received[0]
        assert snapshot[0].id == "doc-a"
        assert snapshot[0].category == "Bacheo"
        assert changes == [SnapshotChange("added", "doc-a")]

    @pytest.mark.asyncio
    async def test_unsubscribe_releases_watch(self, store, firestore_client):
        watch = firestore_client.collection.return_value.on_snapshot.return_value

        subscription = store.subscribe(lambda snapshot, changes: None)
        subscription.unsubscribe()
        subscription.unsubscribe()

        watch.unsubscribe.assert_called_once()


class TestFirestoreSetStatus:
    """Tests for status writes."""

    @pytest.mark.asyncio
    async def test_writes_canonical_status(self, store, firestore_client):
        await store.set_status("doc-a", "Completed")

        doc_ref = firestore_client.collection.return_value.document
        doc_ref.assert_called_with("doc-a")
        doc_ref.return_value.update.assert_called_once_with({"estado": "completado"})

    @pytest.mark.asyncio
    async def test_not_found(self, store, firestore_client):
        doc_ref = firestore_client.collection.return_value.document.return_value
        doc_ref.update.side_effect = google_exceptions.NotFound("No document to update")

        with pytest.raises(ReportNotFoundError):
            await store.set_status("missing", "completado")

    @pytest.mark.asyncio
    async def test_api_error(self, store, firestore_client):
        doc_ref = firestore_client.collection.return_value.document.return_value
        doc_ref.update.side_effect = google_exceptions.ServiceUnavailable("backend unavailable")

        with pytest.raises(ReportStoreError):
            await store.set_status("doc-a", "completado")


class TestBuildReportStore:
    """Tests for store selection."""

    def test_memory_backend(self, test_settings):
        store = build_report_store(test_settings)

        assert isinstance(store, InMemoryReportStore)
        assert len(store) == 0
