"""Report store abstraction: live snapshot subscriptions and status writes."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from reportdash.schemas.report import Report, canonical_status

if TYPE_CHECKING:
    from reportdash.config import Settings

logger = logging.getLogger(__name__)

ChangeType = Literal["added", "modified", "removed"]


class ReportStoreError(Exception):
    """A write to the report store failed."""

    pass


class ReportNotFoundError(ReportStoreError):
    """The report does not exist in the store."""

    pass


@dataclass(frozen=True)
class SnapshotChange:
    """One document change delivered alongside a snapshot."""

    type: ChangeType
    report_id: str


Snapshot = tuple[Report, ...]
SnapshotHandler = Callable[[Snapshot, list[SnapshotChange]], None]


class Subscription:
    """Handle for a live subscription; ``unsubscribe`` may be called repeatedly."""

    def __init__(self, release: Callable[[], None]):
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()


class ReportStore(Protocol):
    """Remote collection of report documents."""

    def subscribe(self, handler: SnapshotHandler) -> Subscription:
        """Deliver the full snapshot now and after every change, until released."""
        ...

    async def set_status(self, report_id: str, status: str) -> None:
        """Write a report's status. Raises ``ReportStoreError`` on failure."""
        ...


class InMemoryReportStore:
    """
    Dict-backed report store.

    Handlers are called synchronously on every change with a fresh
    immutable snapshot. Used for local development and tests.
    """

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None):
        self._documents: dict[str, dict[str, Any]] = {
            str(doc_id): dict(data) for doc_id, data in (documents or {}).items()
        }
        self._handlers: dict[int, SnapshotHandler] = {}
        self._next_handle = 0

    def __len__(self) -> int:
        return len(self._documents)

    def snapshot(self) -> Snapshot:
        return tuple(
            Report.from_document(doc_id, data) for doc_id, data in self._documents.items()
        )

    def document(self, report_id: str) -> dict[str, Any] | None:
        data = self._documents.get(report_id)
        return dict(data) if data is not None else None

    def subscribe(self, handler: SnapshotHandler) -> Subscription:
        handle = self._next_handle
        self._next_handle += 1
        self._handlers[handle] = handler
        logger.info(f"Report store subscriber added. Total subscribers: {len(self._handlers)}")

        handler(self.snapshot(), [SnapshotChange("added", doc_id) for doc_id in self._documents])

        def release() -> None:
            self._handlers.pop(handle, None)
            logger.info(f"Report store subscriber removed. Total subscribers: {len(self._handlers)}")

        return Subscription(release)

    def _notify(self, changes: list[SnapshotChange]) -> None:
        snapshot = self.snapshot()
        for handler in list(self._handlers.values()):
            handler(snapshot, changes)

    def upsert(self, report_id: str, data: Mapping[str, Any]) -> None:
        change: ChangeType = "modified" if report_id in self._documents else "added"
        self._documents[report_id] = dict(data)
        self._notify([SnapshotChange(change, report_id)])

    def remove(self, report_id: str) -> None:
        if self._documents.pop(report_id, None) is not None:
            self._notify([SnapshotChange("removed", report_id)])

    async def set_status(self, report_id: str, status: str) -> None:
        if report_id not in self._documents:
            raise ReportNotFoundError(f"Report {report_id} not found")
        self._documents[report_id]["estado"] = canonical_status(status)
        self._notify([SnapshotChange("modified", report_id)])


def build_report_store(settings: "Settings") -> ReportStore:
    """Create the store selected by ``REPORT_STORE_BACKEND``."""
    if settings.report_store_backend == "memory":
        logger.info("Using in-memory report store")
        return InMemoryReportStore()

    from reportdash.services.firestore_store import FirestoreReportStore

    return FirestoreReportStore.from_settings(settings)
