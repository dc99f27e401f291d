"""WebSocket connection manager for pushing report snapshot updates."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from fastapi import WebSocket
from pydantic import BaseModel

from reportdash.config import get_settings
from reportdash.schemas.filters import FilterCriteria
from reportdash.schemas.report import NotificationOut, Report, ReportOut
from reportdash.services.filter_engine import ReportFilterEngine
from reportdash.services.report_store import Snapshot, SnapshotChange
from reportdash.websocket.schemas import ReportAddedMessage, ReportsUpdateMessage

logger = logging.getLogger(__name__)


@dataclass
class ClientSubscription:
    """Tracks a client's filter criteria and notification preference."""

    websocket: WebSocket
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    notifications: bool = True
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ConnectionManager:
    """
    Manages WebSocket connections and pushes per-client filtered views.

    Each snapshot change re-runs the filter engine with every client's own
    criteria. Designed for single-instance deployment.
    """

    def __init__(self, engine: ReportFilterEngine | None = None):
        self.engine = engine or ReportFilterEngine()
        self._connections: dict[WebSocket, ClientSubscription] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        """Number of active connections."""
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = ClientSubscription(websocket=websocket)
        logger.info(f"WebSocket connected. Total connections: {self.connection_count}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        async with self._lock:
            if websocket in self._connections:
                del self._connections[websocket]
        logger.info(f"WebSocket disconnected. Total connections: {self.connection_count}")

    async def update_subscription(
        self,
        websocket: WebSocket,
        criteria: FilterCriteria | None = None,
        notifications: bool | None = None,
    ) -> None:
        """Update a client's subscription preferences."""
        async with self._lock:
            if websocket in self._connections:
                sub = self._connections[websocket]
                if criteria is not None:
                    sub.criteria = criteria
                if notifications is not None:
                    sub.notifications = notifications
                logger.debug(f"Updated subscription: criteria={criteria}, notifications={notifications}")

    def build_update(self, snapshot: Snapshot, criteria: FilterCriteria, version: int) -> ReportsUpdateMessage:
        """Filter the snapshot for one client's criteria."""
        matches, stats = self.engine.filter(snapshot, criteria)
        return ReportsUpdateMessage(
            version=version,
            reports=[ReportOut.from_report(report, self.engine.tz) for report in matches],
            stats=stats,
            timestamp=datetime.now(UTC),
        )

    async def send_update(self, websocket: WebSocket, snapshot: Snapshot, version: int) -> None:
        """Send the current filtered view to a single client."""
        async with self._lock:
            sub = self._connections.get(websocket)
            if sub is None:
                return
            message = self.build_update(snapshot, sub.criteria, version)
        await self._send_safe(websocket, message)

    async def broadcast(
        self, snapshot: Snapshot, changes: list[SnapshotChange], version: int = 0
    ) -> None:
        """
        Push updated views to every client.

        Clients with notifications enabled also receive one ``report_added``
        message per newly added, non-deleted report.
        """
        async with self._lock:
            if not self._connections:
                return

            timestamp = datetime.now(UTC)
            by_id = {report.id: report for report in snapshot}
            added: list[Report] = [
                by_id[change.report_id]
                for change in changes
                if change.type == "added"
                and change.report_id in by_id
                and not by_id[change.report_id].deleted
            ]

            tasks = []
            for websocket, subscription in list(self._connections.items()):
                tasks.append(
                    self._send_safe(websocket, self.build_update(snapshot, subscription.criteria, version))
                )
                if subscription.notifications:
                    for report in added:
                        message = ReportAddedMessage(
                            notification=NotificationOut.from_report(report),
                            timestamp=timestamp,
                        )
                        tasks.append(self._send_safe(websocket, message))

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Broadcast snapshot of {len(snapshot)} reports to {self.connection_count} subscribers")

    async def _send_safe(self, websocket: WebSocket, message: BaseModel) -> None:
        """Send message to websocket, handling errors gracefully."""
        try:
            await websocket.send_json(message.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")
            # Schedule disconnect (don't do it here to avoid deadlock)
            asyncio.create_task(self.disconnect(websocket))


# Global singleton instance
manager = ConnectionManager(ReportFilterEngine(get_settings().tz))
