"""Pydantic schemas for report filtering and summary statistics."""

from datetime import date, datetime
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel

from reportdash.schemas.report import Report, ReportOut

ALL_CATEGORIES = ("all", "todos")


class Period(StrEnum):
    """Named time window anchored to a reference date."""

    DAY = "day"
    WEEK = "week"  # 5-day window starting on the reference day
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"
    ALL = "all"


class DateRange(BaseModel):
    """Explicit start/end dates, both inclusive."""

    start: date | None = None
    end: date | None = None

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None


class FilterCriteria(BaseModel):
    """Criteria for narrowing the live report collection."""

    period: Period = Period.DAY
    reference_date: datetime | None = None
    custom_range: DateRange | None = None
    category: str = "all"
    search_term: str = ""

    @property
    def uses_custom_range(self) -> bool:
        return self.custom_range is not None and self.custom_range.is_complete

    @property
    def filters_category(self) -> bool:
        return self.category.strip().lower() not in ALL_CATEGORIES


class ReportStats(BaseModel):
    """Summary counts with change percentages against the preceding window."""

    total: int = 0
    pending: int = 0
    completed: int = 0
    total_change: float = 0.0
    pending_change: float = 0.0
    completed_change: float = 0.0


class FilterResult(NamedTuple):
    """Matching reports (most recent first) and their statistics."""

    matches: list[Report]
    stats: ReportStats


class ReportsResponse(BaseModel):
    """Filtered report list response."""

    reports: list[ReportOut]
    stats: ReportStats
