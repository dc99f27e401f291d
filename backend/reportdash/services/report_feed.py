"""Live report snapshot kept in sync with the store."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from reportdash.schemas.report import Report
from reportdash.services.report_store import (
    ReportStore,
    Snapshot,
    SnapshotChange,
    Subscription,
)

logger = logging.getLogger(__name__)

FeedListener = Callable[[Snapshot, list[SnapshotChange]], Awaitable[None]]


class ReportFeed:
    """
    Owns the store subscription and the latest immutable snapshot.

    Use as an async context manager: the subscription is taken on enter
    and always released on exit. Registered async listeners are run on
    the event loop after every snapshot.
    """

    def __init__(self, store: ReportStore):
        self.store = store
        self._snapshot: Snapshot = ()
        self._by_id: dict[str, Report] = {}
        self._subscription: Subscription | None = None
        self._listeners: list[FeedListener] = []
        self._tasks: set[asyncio.Task] = set()
        self.version = 0
        self.last_update: datetime | None = None

    async def __aenter__(self) -> "ReportFeed":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def get(self, report_id: str) -> Report | None:
        return self._by_id.get(report_id)

    def start(self) -> None:
        if self.active:
            return
        self._subscription = self.store.subscribe(self._on_snapshot)
        logger.info("Report feed started")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.info("Report feed stopped")
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def add_listener(self, listener: FeedListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _on_snapshot(self, snapshot: Snapshot, changes: list[SnapshotChange]) -> None:
        self._snapshot = snapshot
        self._by_id = {report.id: report for report in snapshot}
        self.version += 1
        self.last_update = datetime.now(UTC)
        logger.info(f"Snapshot v{self.version}: {len(snapshot)} reports, {len(changes)} changes")

        if not self._listeners:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping feed listeners")
            return
        for listener in list(self._listeners):
            task = loop.create_task(self._run_listener(listener, snapshot, changes))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_listener(
        self, listener: FeedListener, snapshot: Snapshot, changes: list[SnapshotChange]
    ) -> None:
        try:
            await listener(snapshot, changes)
        except Exception as e:
            logger.error(f"Feed listener failed: {e}", exc_info=True)

    def recent(self, limit: int = 5) -> list[Report]:
        """Newest non-deleted reports, for the notification feed."""
        visible = [report for report in self._snapshot if not report.deleted]
        visible.sort(
            key=lambda report: report.timestamp or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
        return visible[:limit]

    async def set_status(self, report_id: str, status: str) -> None:
        """Pass a status change straight through to the store."""
        await self.store.set_status(report_id, status)
