"""Coordinate-keyed geocoding cache with request coalescing and fallbacks."""

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, tzinfo

from reportdash.config import Settings
from reportdash.schemas.geocode import GeocodeResult, MapIncident, RawGeocodeResponse
from reportdash.schemas.report import Report, ReportOut
from reportdash.services.geocoding_clients import GeocodeProvider

logger = logging.getLogger(__name__)

NEIGHBORHOOD_TYPES = frozenset({"neighborhood", "sublocality", "suburb"})


@dataclass(frozen=True)
class GeocodeDefaults:
    """Regional values used when a location cannot be resolved."""

    city: str = "Chetumal"
    state: str = "Quintana Roo"
    municipality: str = "Othón P. Blanco"
    unspecified: str = "Sin especificar"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeocodeDefaults":
        return cls(
            city=settings.default_city,
            state=settings.default_state,
            municipality=settings.default_municipality,
            unspecified=settings.unspecified_label,
        )


class GeocodeCache:
    """
    Memoizing front for a ``GeocodeProvider``.

    - Keys are the coordinates rounded to ``precision`` decimal places.
    - Successful results are kept for the lifetime of the instance.
    - Concurrent misses for one key share a single provider call.
    - At most ``max_concurrency`` provider calls are in flight at once.
    - Failures return a default result and are not cached, so the next
      call for that key tries the provider again.

    ``resolve`` never raises.
    """

    def __init__(
        self,
        provider: GeocodeProvider,
        defaults: GeocodeDefaults | None = None,
        precision: int = 6,
        timeout: float = 10.0,
        max_concurrency: int = 4,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.provider = provider
        self.defaults = defaults or GeocodeDefaults()
        self.precision = precision
        self.timeout = timeout
        self._cache: dict[str, GeocodeResult] = {}
        self._pending: dict[str, asyncio.Task[GeocodeResult]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.provider_calls = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def cache_key(self, latitude: float, longitude: float) -> str:
        """Canonical ``"lat,lng"`` key at the configured precision."""
        lat = float(latitude)
        lng = float(longitude)
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError(f"Non-finite coordinates: ({latitude}, {longitude})")
        # Normalize -0.0 so it shares a key with 0.0
        lat = round(lat, self.precision) + 0.0
        lng = round(lng, self.precision) + 0.0
        return f"{lat:.{self.precision}f},{lng:.{self.precision}f}"

    def default_result(self, raw_address: str = "") -> GeocodeResult:
        address = (raw_address or "").strip()
        return GeocodeResult(
            neighborhood=address or self.defaults.unspecified,
            postal_code=self.defaults.unspecified,
            city=self.defaults.city,
            state=self.defaults.state,
            municipality=self.defaults.municipality,
            formatted_address=address,
            candidate_neighborhoods=[],
        )

    async def resolve(
        self, latitude: float, longitude: float, raw_address: str = ""
    ) -> GeocodeResult:
        """Resolve a coordinate pair to a place, from cache when possible."""
        try:
            key = self.cache_key(latitude, longitude)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cannot geocode invalid coordinates: {e}")
            return self.default_result(raw_address)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(key, latitude, longitude, raw_address))
            self._pending[key] = task

        # Shielded so one cancelled caller does not cancel the shared lookup
        return await asyncio.shield(task)

    async def _lookup(
        self, key: str, latitude: float, longitude: float, raw_address: str
    ) -> GeocodeResult:
        try:
            # The timeout covers the provider call only, not the wait for a slot
            async with self._semaphore:
                self.provider_calls += 1
                response = await asyncio.wait_for(
                    self.provider.reverse(latitude, longitude, raw_address),
                    timeout=self.timeout,
                )
            result = self.parse(response, raw_address)
            if result is None:
                logger.warning(f"No usable geocoding result for {key}")
                return self.default_result(raw_address)

            self._cache.setdefault(key, result)
            logger.info(f"Geocoded {key} -> {result.neighborhood}")
            return self._cache[key]
        except Exception as e:
            logger.warning(f"Geocoding failed for {key}: {e}")
            return self.default_result(raw_address)
        finally:
            self._pending.pop(key, None)

    def parse(self, response: RawGeocodeResponse | None, raw_address: str = "") -> GeocodeResult | None:
        """
        Walk the provider's components and build a result.

        Returns ``None`` when no neighborhood can be found. Among several
        candidate neighborhoods, one named in the raw address wins;
        otherwise the first one found.
        """
        if response is None or not response.results:
            return None

        candidates: list[str] = []
        found: dict[str, str] = {}
        formatted = None

        for place in response.results:
            if formatted is None and place.formatted_address:
                formatted = place.formatted_address
            for component in place.components:
                name = component.name.strip()
                if not name:
                    continue
                types = set(component.types)
                if types & NEIGHBORHOOD_TYPES:
                    if name not in candidates:
                        candidates.append(name)
                    continue
                for field in ("postal_code", "locality", "municipality", "state"):
                    if field in types:
                        found.setdefault(field, name)

        if not candidates:
            return None

        address = (raw_address or "").strip()
        lowered = address.lower()
        neighborhood = next(
            (candidate for candidate in candidates if candidate.lower() in lowered),
            candidates[0],
        )

        return GeocodeResult(
            neighborhood=neighborhood,
            postal_code=found.get("postal_code", self.defaults.unspecified),
            city=found.get("locality", self.defaults.city),
            state=found.get("state", self.defaults.state),
            municipality=found.get("municipality", self.defaults.municipality),
            formatted_address=address or formatted or "",
            candidate_neighborhoods=candidates,
        )


async def geocode_incidents(
    cache: GeocodeCache,
    reports: Sequence[Report],
    tz: tzinfo = UTC,
) -> list[MapIncident]:
    """Resolve every located report and build map markers, preserving order."""
    located = [report for report in reports if report.location is not None]
    places = await asyncio.gather(
        *(
            cache.resolve(report.location.latitude, report.location.longitude, report.address)
            for report in located
        )
    )
    return [
        MapIncident(
            **ReportOut.from_report(report, tz).model_dump(),
            neighborhood=place.neighborhood,
            postal_code=place.postal_code,
            city=place.city,
            state=place.state,
        )
        for report, place in zip(located, places)
    ]
