"""FastAPI dependencies exposing the objects created at startup."""

from fastapi import HTTPException, Request

from reportdash.config import get_settings
from reportdash.services.filter_engine import ReportFilterEngine
from reportdash.services.geocoding import GeocodeCache
from reportdash.services.report_feed import ReportFeed


def get_feed(request: Request) -> ReportFeed:
    """Dependency to get the live report feed."""
    feed = getattr(request.app.state, "feed", None)
    if feed is None:
        raise HTTPException(status_code=503, detail="Report feed not ready")
    return feed


def get_geocoder(request: Request) -> GeocodeCache:
    """Dependency to get the shared geocoding cache."""
    cache = getattr(request.app.state, "geocoder", None)
    if cache is None:
        raise HTTPException(status_code=503, detail="Geocoder not ready")
    return cache


def get_engine(request: Request) -> ReportFilterEngine:
    """Dependency to get the filter engine for the configured timezone."""
    engine = getattr(request.app.state, "engine", None)
    return engine or ReportFilterEngine(get_settings().tz)
