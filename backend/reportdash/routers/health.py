"""Health endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class FeedStatus(BaseModel):
    """Status of the live report subscription."""

    subscribed: bool
    report_count: int
    version: int
    last_update: datetime | None = None


class GeocoderStatus(BaseModel):
    """Status of the geocoding cache."""

    cached_locations: int
    provider_calls: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    reports: FeedStatus
    geocoder: GeocoderStatus


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint with feed status.

    Reports "degraded" while the store subscription is not active.
    """
    feed = getattr(request.app.state, "feed", None)
    geocoder = getattr(request.app.state, "geocoder", None)

    if feed is not None:
        feed_status = FeedStatus(
            subscribed=feed.active,
            report_count=len(feed),
            version=feed.version,
            last_update=feed.last_update,
        )
    else:
        feed_status = FeedStatus(subscribed=False, report_count=0, version=0)

    geocoder_status = GeocoderStatus(
        cached_locations=len(geocoder) if geocoder is not None else 0,
        provider_calls=geocoder.provider_calls if geocoder is not None else 0,
    )

    return HealthResponse(
        status="healthy" if feed_status.subscribed else "degraded",
        timestamp=datetime.now(UTC),
        reports=feed_status,
        geocoder=geocoder_status,
    )


@router.get("/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness probe: ready once the first snapshot has arrived."""
    feed = getattr(request.app.state, "feed", None)
    ready = feed is not None and feed.active and feed.version > 0
    return {"status": "ready" if ready else "starting"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
