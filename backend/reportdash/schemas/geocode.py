"""Pydantic schemas for geocoding results and provider responses."""

from pydantic import BaseModel, Field

from reportdash.schemas.report import ReportOut


class AddressComponent(BaseModel):
    """One named piece of a place, tagged with semantic types."""

    name: str
    types: list[str] = Field(default_factory=list)


class RawPlace(BaseModel):
    """A single candidate place returned by a provider."""

    components: list[AddressComponent] = Field(default_factory=list)
    formatted_address: str | None = None


class RawGeocodeResponse(BaseModel):
    """Provider-neutral reverse geocoding response."""

    results: list[RawPlace] = Field(default_factory=list)


class GeocodeResult(BaseModel):
    """Structured place descriptor for a coordinate pair."""

    neighborhood: str
    postal_code: str
    city: str
    state: str
    municipality: str
    formatted_address: str = ""
    candidate_neighborhoods: list[str] = Field(default_factory=list)


class MapIncident(ReportOut):
    """Located report enriched with its resolved place, for map markers."""

    neighborhood: str
    postal_code: str
    city: str
    state: str


class HeatmapPoint(BaseModel):
    """Weighted point for the heatmap overlay."""

    lat: float
    lng: float
    intensity: float = 1.0


class CategoryShare(BaseModel):
    """Category count within a neighborhood."""

    category: str
    count: int
    percentage: float


class NeighborhoodStats(BaseModel):
    """Incident totals for one neighborhood."""

    neighborhood: str
    total: int
    latitude: float | None = None
    longitude: float | None = None
    categories: list[CategoryShare] = Field(default_factory=list)


class MapSummary(BaseModel):
    """Overall map statistics."""

    affected_neighborhoods: int
    total_incidents: int
    most_affected: str | None = None
    incident_types: int


class NeighborhoodStatsResponse(BaseModel):
    """Per-neighborhood statistics plus summary."""

    neighborhoods: list[NeighborhoodStats]
    summary: MapSummary
    category_counts: dict[str, int] = Field(default_factory=dict)
