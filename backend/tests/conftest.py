"""Pytest fixtures for report dashboard backend tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from reportdash.config import Settings
from reportdash.main import app
from reportdash.schemas.geocode import AddressComponent, RawGeocodeResponse, RawPlace
from reportdash.schemas.report import Report
from reportdash.services.filter_engine import ReportFilterEngine
from reportdash.services.geocoding import GeocodeCache, GeocodeDefaults
from reportdash.services.report_feed import ReportFeed
from reportdash.services.report_store import InMemoryReportStore


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults."""
    return Settings(
        report_store_backend="memory",
        geonames_username="test_user",
        debug=True,
    )


@pytest.fixture
def reference_date() -> datetime:
    """Fixed reference "now" for window tests (a Wednesday)."""
    return datetime(2024, 1, 17, 15, 0, 0, tzinfo=UTC)


@pytest.fixture
def sample_documents() -> dict[str, dict[str, Any]]:
    """Raw report documents as stored in the ``reportes`` collection."""
    return {
        "doc-a": {
            "folio": 1042,
            "categoria": "Bacheo",
            "fecha": {"seconds": int(datetime(2024, 1, 17, 9, 30, tzinfo=UTC).timestamp()), "nanoseconds": 0},
            "direccion": "Av. Héroes 120, Centro, 77000 Chetumal",
            "estado": "pendiente",
            "ubicacion": {"latitud": 18.5001, "longitud": -88.2961},
            "comentario": "Bache profundo frente al mercado",
        },
        "doc-b": {
            "folio": 1043,
            "categoria": "Alumbrado Público",
            "fecha": datetime(2024, 1, 17, 11, 0, tzinfo=UTC),
            "direccion": "Calle Juárez 45, Barrio Bravo, 77098",
            "estado": "completado",
            "ubicacion": {"latitud": 18.5102, "longitud": -88.3001},
        },
        "doc-c": {
            "folio": 1044,
            "categoria": "Basura acumulada",
            "fecha": "2024-01-19T08:00:00",
            "direccion": "",
            "estado": "Pendiente",
        },
        "doc-d": {
            "folio": 1001,
            "categoria": "Drenajes Obstruidos",
            "fecha": datetime(2023, 12, 28, 18, 0, tzinfo=UTC),
            "direccion": "Calle 22 de Enero",
            "estado": "completado",
            "ubicacion": {"latitud": 18.4900, "longitud": -88.2800},
        },
        "doc-e": {
            "folio": 1045,
            "categoria": "Bacheo",
            "fecha": None,
            "direccion": "Sin fecha",
            "estado": "pendiente",
            "ubicacion": {"latitud": 18.5001, "longitud": -88.2961},
        },
        "doc-f": {
            "folio": 1040,
            "categoria": "Bacheo",
            "fecha": datetime(2024, 1, 16, 10, 0, tzinfo=UTC),
            "direccion": "Av. Insurgentes 300",
            "estado": "en revisión",
        },
    }


@pytest.fixture
def sample_reports(sample_documents) -> list[Report]:
    """Sample documents passed through the ingestion boundary."""
    return [Report.from_document(doc_id, data) for doc_id, data in sample_documents.items()]


@pytest.fixture
def engine() -> ReportFilterEngine:
    return ReportFilterEngine(UTC)


@pytest.fixture
def geonames_response() -> RawGeocodeResponse:
    """Raw response listing two neighborhoods for one postal code."""
    def place(name: str) -> RawPlace:
        return RawPlace(
            components=[
                AddressComponent(name=name, types=["neighborhood"]),
                AddressComponent(name="77000", types=["postal_code"]),
                AddressComponent(name="Chetumal", types=["locality"]),
                AddressComponent(name="Othón P. Blanco", types=["municipality"]),
                AddressComponent(name="Quintana Roo", types=["state"]),
            ]
        )

    return RawGeocodeResponse(results=[place("Plutarco Elías Calles"), place("Centro")])


@pytest.fixture
def mock_provider(geonames_response) -> AsyncMock:
    """Stub geocode provider returning ``geonames_response``."""
    provider = AsyncMock()
    provider.reverse = AsyncMock(return_value=geonames_response)
    return provider


@pytest.fixture
def geocode_cache(mock_provider) -> GeocodeCache:
    return GeocodeCache(mock_provider, GeocodeDefaults(), precision=6, timeout=2.0)


@pytest.fixture
def memory_store(sample_documents) -> InMemoryReportStore:
    return InMemoryReportStore(sample_documents)


@pytest_asyncio.fixture
async def feed(memory_store) -> AsyncGenerator[ReportFeed, None]:
    """Started feed over the in-memory store."""
    async with ReportFeed(memory_store) as report_feed:
        yield report_feed


@pytest_asyncio.fixture
async def client(feed, geocode_cache, engine) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with the feed, geocoder and engine installed."""
    app.state.feed = feed
    app.state.geocoder = geocode_cache
    app.state.engine = engine

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    for name in ("feed", "geocoder", "engine"):
        if hasattr(app.state, name):
            delattr(app.state, name)
