"""Services for report filtering, geocoding and the live report feed."""

from reportdash.services.filter_engine import ReportFilterEngine, filter_reports
from reportdash.services.geocoding import GeocodeCache, GeocodeDefaults
from reportdash.services.geocoding_clients import (
    GeocodingError,
    GeoNamesClient,
    NominatimClient,
)
from reportdash.services.report_feed import ReportFeed
from reportdash.services.report_store import (
    InMemoryReportStore,
    ReportNotFoundError,
    ReportStoreError,
)

__all__ = [
    "GeoNamesClient",
    "GeocodeCache",
    "GeocodeDefaults",
    "GeocodingError",
    "InMemoryReportStore",
    "NominatimClient",
    "ReportFeed",
    "ReportFilterEngine",
    "ReportNotFoundError",
    "ReportStoreError",
    "filter_reports",
]
