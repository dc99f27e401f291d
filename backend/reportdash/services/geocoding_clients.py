"""Reverse geocoding provider clients (GeoNames postal codes, Nominatim)."""

import logging
import re
from typing import Any, Protocol

import httpx

from reportdash.config import Settings, get_settings
from reportdash.schemas.geocode import AddressComponent, RawGeocodeResponse, RawPlace

logger = logging.getLogger(__name__)
settings = get_settings()

POSTAL_CODE_RE = re.compile(r"\b(\d{5})\b")


class GeocodingError(Exception):
    """Base exception for geocoding provider errors."""

    pass


class GeocodeProvider(Protocol):
    """Anything that can turn a coordinate pair into a raw place breakdown."""

    async def reverse(
        self, latitude: float, longitude: float, address: str = ""
    ) -> RawGeocodeResponse: ...


def extract_postal_code(address: str | None) -> str | None:
    """Return the first 5-digit postal code found in a free-text address."""
    if not address or not isinstance(address, str):
        return None
    match = POSTAL_CODE_RE.search(address)
    return match.group(1) if match else None


class _HTTPProvider:
    """Shared single-attempt JSON GET for provider clients."""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers: dict[str, str] = {"Accept": "application/json", **(headers or {})}
        self._transport = transport

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=self.headers, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise GeocodingError(f"HTTP error {e.response.status_code} from {url}") from e
        except httpx.RequestError as e:
            raise GeocodingError(f"Request error: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Invalid JSON from {url}") from e


class GeoNamesClient(_HTTPProvider):
    """
    Postal-code based lookup against the GeoNames web service.

    The coordinates only identify the cache entry; the lookup itself uses
    the postal code found in the report address. An address without a
    postal code yields an empty response.
    """

    def __init__(
        self,
        base_url: str = settings.geonames_base_url,
        username: str = settings.geonames_username,
        country: str = settings.geonames_country,
        timeout: float = settings.geocoder_timeout_seconds,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, transport=transport)
        self.username = username
        self.country = country

    async def reverse(
        self, latitude: float, longitude: float, address: str = ""
    ) -> RawGeocodeResponse:
        postal_code = extract_postal_code(address)
        if not postal_code:
            logger.debug(f"No postal code in address for ({latitude}, {longitude})")
            return RawGeocodeResponse()

        data = await self._get_json(
            "postalCodeLookupJSON",
            {"postalcode": postal_code, "country": self.country, "username": self.username},
        )
        # GeoNames reports quota/auth failures as a 200 with a status object
        if isinstance(data, dict) and "status" in data and "postalcodes" not in data:
            status = data["status"]
            message = status.get("message") if isinstance(status, dict) else status
            raise GeocodingError(f"GeoNames error: {message}")

        places = []
        for entry in (data or {}).get("postalcodes") or []:
            components = [
                AddressComponent(name=entry.get("placeName") or "", types=["neighborhood"]),
                AddressComponent(name=entry.get("postalcode") or postal_code, types=["postal_code"]),
                AddressComponent(name=entry.get("adminName3") or "", types=["locality"]),
                AddressComponent(name=entry.get("adminName2") or "", types=["municipality"]),
                AddressComponent(name=entry.get("adminName1") or "", types=["state"]),
            ]
            places.append(RawPlace(components=components))

        logger.info(f"GeoNames returned {len(places)} places for postal code {postal_code}")
        return RawGeocodeResponse(results=places)


# Nominatim address keys mapped to component types
_NOMINATIM_TYPES: dict[str, str] = {
    "neighbourhood": "neighborhood",
    "suburb": "neighborhood",
    "quarter": "neighborhood",
    "postcode": "postal_code",
    "city": "locality",
    "town": "locality",
    "village": "locality",
    "county": "municipality",
    "municipality": "municipality",
    "state": "state",
}


class NominatimClient(_HTTPProvider):
    """Coordinate reverse geocoding against an OpenStreetMap Nominatim server."""

    def __init__(
        self,
        base_url: str = settings.nominatim_base_url,
        user_agent: str = settings.geocoder_user_agent,
        timeout: float = settings.geocoder_timeout_seconds,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, headers={"User-Agent": user_agent}, transport=transport)

    async def reverse(
        self, latitude: float, longitude: float, address: str = ""
    ) -> RawGeocodeResponse:
        data = await self._get_json(
            "reverse",
            {
                "lat": latitude,
                "lon": longitude,
                "format": "json",
                "zoom": 18,
                "addressdetails": 1,
            },
        )
        if not isinstance(data, dict) or "error" in data:
            logger.info(f"Nominatim found nothing for ({latitude}, {longitude})")
            return RawGeocodeResponse()

        components = [
            AddressComponent(name=str(value), types=[_NOMINATIM_TYPES[key]])
            for key, value in (data.get("address") or {}).items()
            if key in _NOMINATIM_TYPES and value
        ]
        place = RawPlace(components=components, formatted_address=data.get("display_name"))
        return RawGeocodeResponse(results=[place])


def build_geocode_provider(config: Settings | None = None) -> GeocodeProvider:
    """Create the provider selected by ``GEOCODER_PROVIDER``."""
    config = config or settings
    if config.geocoder_provider == "nominatim":
        return NominatimClient(
            base_url=config.nominatim_base_url,
            user_agent=config.geocoder_user_agent,
            timeout=config.geocoder_timeout_seconds,
        )
    return GeoNamesClient(
        base_url=config.geonames_base_url,
        username=config.geonames_username,
        country=config.geonames_country,
        timeout=config.geocoder_timeout_seconds,
    )
