"""Pydantic schemas for citizen reports and the store ingestion boundary."""

import logging
import math
from collections.abc import Mapping
from datetime import UTC, datetime, tzinfo
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ReportCategory(StrEnum):
    """Known report categories, labelled in the source locale."""

    ALUMBRADO_PUBLICO = "Alumbrado Público"
    BACHEO = "Bacheo"
    BASURA_ACUMULADA = "Basura acumulada"
    DRENAJES_OBSTRUIDOS = "Drenajes Obstruidos"


class ReportStatus(StrEnum):
    """Report workflow status."""

    PENDING = "pendiente"
    COMPLETED = "completado"


_CATEGORY_LOOKUP = {category.value.casefold(): category.value for category in ReportCategory}

_STATUS_ALIASES = {
    "pendiente": ReportStatus.PENDING.value,
    "pending": ReportStatus.PENDING.value,
    "completado": ReportStatus.COMPLETED.value,
    "completed": ReportStatus.COMPLETED.value,
}

_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def canonical_category(value: Any) -> str:
    """Trim a category and map known labels to their canonical spelling.

    Unknown categories are kept (trimmed) rather than rejected.
    """
    if value is None:
        return ""
    text = str(value).strip()
    return _CATEGORY_LOOKUP.get(text.casefold(), text)


def canonical_status(value: Any) -> str:
    """Normalize a status value.

    Absent or blank values default to ``pendiente``. Unrecognized values are
    lower-cased and kept, so they count as neither pending nor completed.
    """
    if value is None:
        return ReportStatus.PENDING.value
    text = str(value).strip().lower()
    if not text:
        return ReportStatus.PENDING.value
    return _STATUS_ALIASES.get(text, text)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a store timestamp into an aware datetime.

    Accepts datetimes (naive ones are taken as UTC), Firestore-style
    ``{"seconds": ..., "nanoseconds": ...}`` mappings, epoch seconds and
    ISO 8601 strings. Anything else yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    try:
        if isinstance(value, Mapping):
            seconds = value.get("seconds", value.get("_seconds"))
            if seconds is None:
                return None
            nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
            return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=UTC)

        if isinstance(value, int | float):
            if not math.isfinite(value):
                return None
            return datetime.fromtimestamp(value, tz=UTC)

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                parsed = None
                for fmt in _DATETIME_FORMATS:
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue
            if parsed is None:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except (OverflowError, OSError, TypeError, ValueError):
        return None

    return None


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _folio_text(value: Any) -> str | None:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _optional_text(value)


TRUE_FLAGS = frozenset({"true", "1", "yes", "si", "sí"})


def _flag(value: Any) -> bool:
    """Document flag; only booleans, 1 and common "true" strings count as set."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_FLAGS
    if isinstance(value, (int, float)):
        return value == 1
    return False


class Coordinates(BaseModel):
    """Geographic coordinates."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    @classmethod
    def from_raw(cls, raw: Any) -> "Coordinates | None":
        """Build from a ``{"latitud", "longitud"}`` mapping, or ``None`` if unusable."""
        if not isinstance(raw, Mapping):
            return None
        lat = raw.get("latitud", raw.get("latitude"))
        lng = raw.get("longitud", raw.get("longitude"))
        try:
            lat_f = float(lat)
            lng_f = float(lng)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
            return None
        return cls(latitude=lat_f, longitude=lng_f)


class Report(BaseModel):
    """
    A citizen-submitted incident report.

    Instances are immutable snapshots of a store document; every field
    default is applied once, in ``from_document``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    category: str = ""
    timestamp: datetime | None = None
    address: str = ""
    status: str = ReportStatus.PENDING.value
    location: Coordinates | None = None
    comment: str | None = None
    photo_reference: str | None = None
    folio: str | None = None
    read: bool = False
    deleted: bool = False

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any] | None) -> "Report":
        """Build a report from a raw store document, tolerating missing or bad fields."""
        data = data or {}
        timestamp = parse_timestamp(data.get("fecha"))
        if timestamp is None and data.get("fecha") is not None:
            logger.debug(f"Report {doc_id} has an unparseable timestamp: {data.get('fecha')!r}")

        return cls(
            id=str(doc_id),
            category=canonical_category(data.get("categoria")),
            timestamp=timestamp,
            address=_optional_text(data.get("direccion")) or "",
            status=canonical_status(data.get("estado")),
            location=Coordinates.from_raw(data.get("ubicacion")),
            comment=_optional_text(data.get("comentario")),
            photo_reference=_optional_text(data.get("foto")),
            folio=_folio_text(data.get("folio")),
            read=_flag(data.get("read")),
            deleted=_flag(data.get("deleted")),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == ReportStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status == ReportStatus.COMPLETED


class ReportOut(BaseModel):
    """Report response schema with presentation-only derived fields."""

    id: str
    folio: str | None = None
    category: str
    timestamp: datetime | None = None
    formatted_date: str = ""
    address: str
    status: str
    location: Coordinates | None = None
    comment: str | None = None
    photo_reference: str | None = None

    @classmethod
    def from_report(cls, report: Report, tz: tzinfo = UTC) -> "ReportOut":
        return cls(
            id=report.id,
            folio=report.folio,
            category=report.category,
            timestamp=report.timestamp,
            formatted_date=format_timestamp(report.timestamp, tz),
            address=report.address,
            status=report.status,
            location=report.location,
            comment=report.comment,
            photo_reference=report.photo_reference,
        )


def format_timestamp(value: datetime | None, tz: tzinfo = UTC) -> str:
    """Format a timestamp as ``dd/mm/yyyy hh:mm a.m.`` in the given timezone."""
    if value is None:
        return ""
    local = value.astimezone(tz)
    suffix = "a.m." if local.hour < 12 else "p.m."
    hour = local.hour % 12 or 12
    return f"{local:%d/%m/%Y} {hour:02d}:{local:%M} {suffix}"


class StatusUpdate(BaseModel):
    """Request body for changing a report's status."""

    status: ReportStatus


class NotificationOut(BaseModel):
    """Latest-report entry for the dashboard notification feed."""

    id: str
    title: str
    message: str
    timestamp: datetime | None = None
    read: bool = False

    @classmethod
    def from_report(cls, report: Report) -> "NotificationOut":
        return cls(
            id=report.id,
            title=f"Nuevo reporte: {report.category or 'Sin categoría'}",
            message=f"Folio: {report.folio or 'N/A'}",
            timestamp=report.timestamp,
            read=report.read,
        )
