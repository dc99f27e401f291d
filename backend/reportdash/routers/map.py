"""API routes for map overlays: markers, heatmap and neighborhood statistics."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from reportdash.dependencies import get_engine, get_feed, get_geocoder
from reportdash.rate_limit import GEOCODE_LIMIT, limiter
from reportdash.schemas.geocode import (
    GeocodeResult,
    HeatmapPoint,
    MapIncident,
    NeighborhoodStatsResponse,
)
from reportdash.services.filter_engine import (
    ReportFilterEngine,
    category_counts,
    filter_categories,
    heatmap_points,
    located,
    map_summary,
    neighborhood_stats,
)
from reportdash.services.geocoding import GeocodeCache, geocode_incidents
from reportdash.services.report_feed import ReportFeed

logger = logging.getLogger(__name__)
router = APIRouter(tags=["map"])

CategoryQuery = Annotated[
    list[str] | None,
    Query(description="Repeat to select several categories; omit or 'all' for every category"),
]


@router.get("/map/incidents", response_model=list[MapIncident])
async def map_incidents(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    geocoder: Annotated[GeocodeCache, Depends(get_geocoder)],
    engine: Annotated[ReportFilterEngine, Depends(get_engine)],
    category: CategoryQuery = None,
) -> list[MapIncident]:
    """Located reports with their resolved neighborhood, for map markers."""
    reports = located(filter_categories(feed.snapshot, category))
    return await geocode_incidents(geocoder, reports, engine.tz)


@router.get("/map/heatmap", response_model=list[HeatmapPoint])
async def map_heatmap(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    category: CategoryQuery = None,
) -> list[HeatmapPoint]:
    """Heatmap points for located reports."""
    return heatmap_points(filter_categories(feed.snapshot, category))


@router.get("/map/neighborhoods", response_model=NeighborhoodStatsResponse)
async def map_neighborhoods(
    feed: Annotated[ReportFeed, Depends(get_feed)],
    geocoder: Annotated[GeocodeCache, Depends(get_geocoder)],
    engine: Annotated[ReportFilterEngine, Depends(get_engine)],
    category: CategoryQuery = None,
    limit: int | None = Query(None, ge=1, le=100, description="Only the N busiest neighborhoods"),
) -> NeighborhoodStatsResponse:
    """Incident counts per neighborhood, busiest first, with an overall summary."""
    reports = located(filter_categories(feed.snapshot, category))
    incidents = await geocode_incidents(geocoder, reports, engine.tz)
    stats = neighborhood_stats(incidents, geocoder.defaults.unspecified)

    return NeighborhoodStatsResponse(
        neighborhoods=stats[:limit] if limit else stats,
        summary=map_summary(incidents, stats),
        category_counts=category_counts(incidents),
    )


@router.get("/geocode", response_model=GeocodeResult)
@limiter.limit(GEOCODE_LIMIT)
async def geocode(
    request: Request,
    geocoder: Annotated[GeocodeCache, Depends(get_geocoder)],
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    address: str = Query("", description="Raw address, used to pick among candidate neighborhoods"),
) -> GeocodeResult:
    """Resolve a coordinate pair to a neighborhood (cached)."""
    return await geocoder.resolve(lat, lng, address)
