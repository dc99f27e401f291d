"""Firestore-backed report store using firebase-admin."""

import asyncio
import logging
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from reportdash.config import Settings
from reportdash.schemas.report import Report, canonical_status
from reportdash.services.report_store import (
    ReportNotFoundError,
    ReportStoreError,
    SnapshotChange,
    SnapshotHandler,
    Subscription,
)

logger = logging.getLogger(__name__)

_CHANGE_TYPES = {"ADDED": "added", "MODIFIED": "modified", "REMOVED": "removed"}


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.firebase_credentials_path:
        cred = credentials.Certificate(settings.firebase_credentials_path)
    else:
        cred = credentials.ApplicationDefault()
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    app = firebase_admin.initialize_app(cred, options)
    logger.info(f"Firebase initialized for project {app.project_id}")
    return app


class FirestoreReportStore:
    """
    Report store over a Firestore collection.

    Firestore invokes snapshot listeners on its own thread; snapshots are
    converted there and handed to the subscribing event loop, so handlers
    always run on the loop.
    """

    def __init__(self, client: Any, collection: str = "reportes"):
        self.client = client
        self.collection = collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreReportStore":
        app = get_firebase_app(settings)
        return cls(firestore.client(app), settings.reports_collection)

    def _collection_ref(self):
        return self.client.collection(self.collection)

    def subscribe(self, handler: SnapshotHandler) -> Subscription:
        loop = asyncio.get_running_loop()

        def on_snapshot(documents, changes, read_time) -> None:
            snapshot = tuple(Report.from_document(doc.id, doc.to_dict()) for doc in documents)
            delivered = [
                SnapshotChange(_CHANGE_TYPES.get(change.type.name, "modified"), change.document.id)
                for change in changes
            ]
            logger.debug(f"Firestore snapshot at {read_time}: {len(snapshot)} reports")
            loop.call_soon_threadsafe(handler, snapshot, delivered)

        watch = self._collection_ref().on_snapshot(on_snapshot)
        logger.info(f"Subscribed to Firestore collection '{self.collection}'")

        def release() -> None:
            watch.unsubscribe()
            logger.info(f"Unsubscribed from Firestore collection '{self.collection}'")

        return Subscription(release)

    async def set_status(self, report_id: str, status: str) -> None:
        doc_ref = self._collection_ref().document(report_id)
        value = canonical_status(status)
        try:
            await asyncio.to_thread(doc_ref.update, {"estado": value})
        except google_exceptions.NotFound as e:
            raise ReportNotFoundError(f"Report {report_id} not found") from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to update status of report {report_id}: {e}")
            raise ReportStoreError(f"Status update failed: {e}") from e
        logger.info(f"Report {report_id} status set to {value}")
