"""Pydantic schemas for reports, filters and geocoding."""

from reportdash.schemas.filters import (
    DateRange,
    FilterCriteria,
    FilterResult,
    Period,
    ReportsResponse,
    ReportStats,
)
from reportdash.schemas.geocode import GeocodeResult, RawGeocodeResponse
from reportdash.schemas.report import (
    Coordinates,
    Report,
    ReportCategory,
    ReportOut,
    ReportStatus,
)

__all__ = [
    "Coordinates",
    "DateRange",
    "FilterCriteria",
    "FilterResult",
    "GeocodeResult",
    "Period",
    "RawGeocodeResponse",
    "Report",
    "ReportCategory",
    "ReportOut",
    "ReportStats",
    "ReportStatus",
    "ReportsResponse",
]
