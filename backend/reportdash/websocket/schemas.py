"""WebSocket message schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from reportdash.schemas.filters import FilterCriteria, ReportStats
from reportdash.schemas.report import NotificationOut, ReportOut


class SubscribeMessage(BaseModel):
    """Client subscription message setting filter criteria."""

    type: Literal["subscribe"] = "subscribe"
    criteria: FilterCriteria | None = None
    notifications: bool = True


class ReportsUpdateMessage(BaseModel):
    """Server message with the client's filtered reports after a change."""

    type: Literal["reports_update"] = "reports_update"
    version: int
    reports: list[ReportOut]
    stats: ReportStats
    timestamp: datetime


class ReportAddedMessage(BaseModel):
    """Server notification that a new report arrived."""

    type: Literal["report_added"] = "report_added"
    notification: NotificationOut
    timestamp: datetime


class PongMessage(BaseModel):
    """Pong response for keep-alive."""

    type: Literal["pong"] = "pong"


class ErrorMessage(BaseModel):
    """Error message from server."""

    type: Literal["error"] = "error"
    message: str
