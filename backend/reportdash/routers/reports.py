"""API routes for the live report collection."""

import logging
from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from reportdash.dependencies import get_engine, get_feed
from reportdash.schemas.filters import (
    DateRange,
    FilterCriteria,
    Period,
    ReportsResponse,
    ReportStats,
)
from reportdash.schemas.report import (
    NotificationOut,
    ReportCategory,
    ReportOut,
    StatusUpdate,
)
from reportdash.services.filter_engine import ReportFilterEngine
from reportdash.services.report_feed import ReportFeed
from reportdash.services.report_store import ReportNotFoundError, ReportStoreError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])


def filter_criteria(
    period: Period = Query(Period.DAY, description="Time window: day, week, month, year, custom or all"),
    reference_date: datetime | None = Query(None, description="Anchor for the window (default: now)"),
    start: date | None = Query(None, description="Custom range start (YYYY-MM-DD, inclusive)"),
    end: date | None = Query(None, description="Custom range end (YYYY-MM-DD, inclusive)"),
    category: str = Query("all", description="Category label, or 'all'"),
    q: str | None = Query(None, description="Search folio, category, address or status"),
) -> FilterCriteria:
    """Build filter criteria from query parameters."""
    custom_range = DateRange(start=start, end=end) if start or end else None
    return FilterCriteria(
        period=period,
        reference_date=reference_date,
        custom_range=custom_range,
        category=category,
        search_term=q or "",
    )


@router.get("", response_model=ReportsResponse)
async def list_reports(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    engine: Annotated[ReportFilterEngine, Depends(get_engine)],
    criteria: Annotated[FilterCriteria, Depends(filter_criteria)],
) -> ReportsResponse:
    """
    List reports matching the filter criteria, most recent first.

    A complete custom range (start and end) overrides the period.
    """
    matches, stats = engine.filter(feed.snapshot, criteria)
    return ReportsResponse(
        reports=[ReportOut.from_report(report, engine.tz) for report in matches],
        stats=stats,
    )


@router.get("/stats", response_model=ReportStats)
async def report_stats(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    engine: Annotated[ReportFilterEngine, Depends(get_engine)],
    criteria: Annotated[FilterCriteria, Depends(filter_criteria)],
) -> ReportStats:
    """Total/pending/completed counts with change against the previous window."""
    return engine.filter(feed.snapshot, criteria).stats


@router.get("/categories", response_model=list[str])
async def list_categories() -> list[str]:
    """Get list of known report categories."""
    return [category.value for category in ReportCategory]


@router.get("/notifications", response_model=list[NotificationOut])
async def list_notifications(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    limit: int = Query(5, ge=1, le=50),
) -> list[NotificationOut]:
    """Latest non-deleted reports for the notification dropdown."""
    return [NotificationOut.from_report(report) for report in feed.recent(limit)]


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: str,
    feed: Annotated[ReportFeed, Depends(get_feed)],
    engine: Annotated[ReportFilterEngine, Depends(get_engine)],
) -> ReportOut:
    """Get a specific report by ID."""
    report = feed.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return ReportOut.from_report(report, engine.tz)


@router.patch("/{report_id}/status")
async def update_status(
    report_id: str,
    body: StatusUpdate,
    feed: Annotated[ReportFeed, Depends(get_feed)],
) -> dict:
    """
    Change a report's status.

    Written straight to the store; the new status reaches the snapshot
    through the regular change notification.
    """
    try:
        await feed.set_status(report_id, body.status.value)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
    except ReportStoreError as e:
        logger.error(f"Status update failed for {report_id}: {e}")
        raise HTTPException(status_code=502, detail="Could not update report status")

    return {"id": report_id, "status": body.status.value}
