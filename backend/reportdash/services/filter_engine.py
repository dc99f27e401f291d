"""Filtering and aggregation over the in-memory report snapshot."""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from reportdash.schemas.filters import (
    ALL_CATEGORIES,
    FilterCriteria,
    FilterResult,
    Period,
    ReportStats,
)
from reportdash.schemas.geocode import (
    CategoryShare,
    HeatmapPoint,
    MapIncident,
    MapSummary,
    NeighborhoodStats,
)
from reportdash.schemas.report import Report, canonical_category

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Sin categoría"
UNSPECIFIED = "Sin especificar"

WEEK_SPAN_DAYS = 5


@dataclass(frozen=True)
class TimeWindow:
    """Half-open time interval ``[start, end)``; ``None`` bounds are open."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None


def percent_change(current: int, previous: int) -> float:
    """Period-over-period change, rounded to one decimal place."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def _offset(day: date, days: int) -> date | None:
    """``day`` shifted by ``days``, or ``None`` past the supported date range."""
    try:
        return day + timedelta(days=days)
    except OverflowError:
        return None


def _add_months(day: date, months: int) -> date | None:
    """First day of the month ``months`` away from ``day``'s month, or ``None`` out of range."""
    index = day.year * 12 + (day.month - 1) + months
    year = index // 12
    if not date.min.year <= year <= date.max.year:
        return None
    return date(year, index % 12 + 1, 1)


class ReportFilterEngine:
    """
    Pure filter over a report snapshot.

    All calendar arithmetic (day, week, month, year and custom ranges) is
    done in the single timezone given at construction. Inputs are never
    mutated, so the engine can be re-run on every snapshot change.
    """

    def __init__(self, tz: tzinfo = UTC):
        self.tz = tz

    def _midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def _span(self, first: date, last_exclusive: date | None) -> TimeWindow:
        """Window from ``first`` to ``last_exclusive``; open-ended past ``date.max``."""
        end = self._midnight(last_exclusive) if last_exclusive is not None else None
        return TimeWindow(self._midnight(first), end)

    def _previous(self, first: date | None, last_exclusive: date) -> TimeWindow | None:
        """Preceding window, or ``None`` (empty) when it starts before ``date.min``."""
        if first is None:
            return None
        return self._span(first, last_exclusive)

    def reference_moment(self, criteria: FilterCriteria) -> datetime:
        """Reference "now" for the criteria, in the engine timezone."""
        reference = criteria.reference_date
        if reference is None:
            return datetime.now(self.tz)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=self.tz)
        return reference.astimezone(self.tz)

    def windows(self, criteria: FilterCriteria) -> tuple[TimeWindow | None, TimeWindow | None]:
        """
        Compute the current window and the preceding window of equal length.

        ``None`` means an empty window (nothing matches). An unbounded
        current window has no preceding window. Windows reaching past the
        supported date range stay open at that end; a preceding window that
        would start before it is empty.
        """
        if criteria.uses_custom_range:
            start = criteria.custom_range.start
            end = criteria.custom_range.end
            if start > end:
                return None, None
            days = (end - start).days + 1
            return (
                self._span(start, _offset(end, 1)),
                self._previous(_offset(start, -days), start),
            )

        if criteria.period in (Period.ALL, Period.CUSTOM):
            # ALL, or CUSTOM without both bounds
            return TimeWindow(), None

        try:
            today = self.reference_moment(criteria).date()
        except (OverflowError, ValueError) as e:
            logger.debug(f"Reference date out of range for {criteria}: {e}")
            return None, None

        if criteria.period == Period.DAY:
            return self._span(today, _offset(today, 1)), self._previous(_offset(today, -1), today)
        if criteria.period == Period.WEEK:
            return (
                self._span(today, _offset(today, WEEK_SPAN_DAYS)),
                self._previous(_offset(today, -WEEK_SPAN_DAYS), today),
            )
        if criteria.period == Period.MONTH:
            first = today.replace(day=1)
            return self._span(first, _add_months(first, 1)), self._previous(_add_months(first, -1), first)

        first = date(today.year, 1, 1)
        return self._span(first, _add_months(first, 12)), self._previous(_add_months(first, -12), first)

    def _matcher(self, criteria: FilterCriteria):
        category = canonical_category(criteria.category) if criteria.filters_category else None
        term = criteria.search_term.strip().lower()

        def matches(report: Report, window: TimeWindow | None) -> bool:
            if window is None or report.timestamp is None:
                return False
            if not window.contains(report.timestamp):
                return False
            if category is not None and report.category != category:
                return False
            if term and not _matches_search(report, term):
                return False
            return True

        return matches

    def filter(self, reports: Sequence[Report], criteria: FilterCriteria) -> FilterResult:
        """
        Return matching reports, most recent first, and their statistics.

        Ties in timestamp keep their input order.
        """
        current, previous = self.windows(criteria)
        matches_fn = self._matcher(criteria)

        matches = [report for report in reports if matches_fn(report, current)]
        matches.sort(key=lambda report: report.timestamp, reverse=True)

        prior = [report for report in reports if matches_fn(report, previous)]

        return FilterResult(matches=matches, stats=build_stats(matches, prior))


def _matches_search(report: Report, term: str) -> bool:
    fields = (report.folio, report.category, report.address, report.status)
    return any(term in field.lower() for field in fields if field)


def _count_status(reports: Sequence[Report]) -> tuple[int, int]:
    pending = sum(1 for report in reports if report.is_pending)
    completed = sum(1 for report in reports if report.is_completed)
    return pending, completed


def build_stats(current: Sequence[Report], previous: Sequence[Report]) -> ReportStats:
    """Counts for ``current`` with change percentages against ``previous``."""
    pending, completed = _count_status(current)
    prev_pending, prev_completed = _count_status(previous)
    return ReportStats(
        total=len(current),
        pending=pending,
        completed=completed,
        total_change=percent_change(len(current), len(previous)),
        pending_change=percent_change(pending, prev_pending),
        completed_change=percent_change(completed, prev_completed),
    )


def filter_reports(
    reports: Sequence[Report],
    criteria: FilterCriteria,
    tz: tzinfo = UTC,
) -> FilterResult:
    """One-shot convenience wrapper around ``ReportFilterEngine.filter``."""
    return ReportFilterEngine(tz).filter(reports, criteria)


# Map aggregations


def located(reports: Iterable[Report]) -> list[Report]:
    """Reports that carry a location and can be placed on the map."""
    return [report for report in reports if report.location is not None]


def filter_categories(reports: Iterable[Report], categories: Iterable[str] | None) -> list[Report]:
    """Keep reports in any of ``categories``; empty, ``all`` or ``todos`` (any case) keeps everything."""
    categories = [c for c in categories or () if c is not None]
    if not categories or any(c.strip().lower() in ALL_CATEGORIES for c in categories):
        return list(reports)
    wanted = {canonical_category(c) for c in categories}
    return [report for report in reports if report.category in wanted]


def category_counts(reports: Iterable[Report]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for report in reports:
        key = report.category or UNCATEGORIZED
        counts[key] = counts.get(key, 0) + 1
    return counts


def heatmap_points(reports: Iterable[Report]) -> list[HeatmapPoint]:
    """One unit-intensity point per located report with finite coordinates."""
    points = []
    for report in reports:
        loc = report.location
        if loc is None or not (math.isfinite(loc.latitude) and math.isfinite(loc.longitude)):
            continue
        points.append(HeatmapPoint(lat=loc.latitude, lng=loc.longitude, intensity=1.0))
    return points


def neighborhood_stats(
    incidents: Sequence[MapIncident],
    unspecified: str = UNSPECIFIED,
) -> list[NeighborhoodStats]:
    """
    Group incidents by neighborhood, busiest first.

    The neighborhood falls back to the report address, then to the
    ``unspecified`` label. Each group lists its categories by count with
    their share of the group total.
    """
    groups: dict[str, dict] = {}
    for incident in incidents:
        name = incident.neighborhood or incident.address or unspecified
        group = groups.setdefault(
            name,
            {"total": 0, "location": incident.location, "categories": {}},
        )
        group["total"] += 1
        category = incident.category or UNCATEGORIZED
        group["categories"][category] = group["categories"].get(category, 0) + 1

    result = []
    for name, group in sorted(groups.items(), key=lambda item: item[1]["total"], reverse=True):
        shares = [
            CategoryShare(
                category=category,
                count=count,
                percentage=count / group["total"] * 100,
            )
            for category, count in group["categories"].items()
        ]
        shares.sort(key=lambda share: share.count, reverse=True)
        location = group["location"]
        result.append(
            NeighborhoodStats(
                neighborhood=name,
                total=group["total"],
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                categories=shares,
            )
        )
    return result


def map_summary(incidents: Sequence[MapIncident], stats: Sequence[NeighborhoodStats]) -> MapSummary:
    return MapSummary(
        affected_neighborhoods=len(stats),
        total_incidents=len(incidents),
        most_affected=stats[0].neighborhood if stats else None,
        incident_types=len({incident.category or UNCATEGORIZED for incident in incidents}),
    )
