"""Time segmentation: batch, week and month buckets.

Segments partition the record set for one granularity and are returned
newest first. Week and month boundaries follow the calendar of the
reporting timezone; naive timestamps are taken as UTC.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from xfunnel.analysis.hierarchy import group_key
from xfunnel.analysis.metrics import compute_changes, compute_metrics, metrics_status
from xfunnel.analysis.normalization import map_engine
from xfunnel.analysis.types import AnalysisRecord, EngineKey, TimeGranularity
from xfunnel.schemas.journey import EngineTimelinePoint, SegmentComparison, TimeSegment

logger = logging.getLogger(__name__)

_ONE_MICROSECOND = timedelta(microseconds=1)


class UnknownSegmentError(LookupError):
    """No segment with the requested id exists for the granularity."""


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _local(ts: datetime, tz: ZoneInfo) -> datetime:
    return _aware(ts).astimezone(tz)


def _resolve_tz(tz: ZoneInfo | str | None) -> ZoneInfo:
    if tz is None:
        return ZoneInfo("UTC")
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def _midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _format_time(ts: datetime) -> str:
    """12-hour clock, e.g. "3:04 PM"."""
    hour = ts.hour % 12 or 12
    return f"{hour}:{ts.minute:02d} {'AM' if ts.hour < 12 else 'PM'}"


# ---------------------------------------------------------------------------
# Week labels
# ---------------------------------------------------------------------------


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_label(monday: date) -> str:
    """Label like "Apr 2025 Week 1".

    The week belongs to the month owning most of its days (the month of its
    Thursday); the ordinal counts weeks from the Monday of the week that
    contains that month's first day.
    """
    thursday = monday + timedelta(days=3)
    first_of_month = thursday.replace(day=1)
    first_monday = week_start(first_of_month)
    diff_days = (monday - first_monday).days
    ordinal = -(-(diff_days + 1) // 7)
    return f"{thursday:%b} {thursday.year} Week {ordinal}"


def month_label(first_of_month: date) -> str:
    return f"{first_of_month:%B} {first_of_month.year}"


# ---------------------------------------------------------------------------
# Segment builders
# ---------------------------------------------------------------------------


def _batch_segments(records: list[AnalysisRecord], tz: ZoneInfo) -> list[TimeSegment]:
    groups: dict[str, list[AnalysisRecord]] = {}
    for r in records:
        groups.setdefault(group_key(r.analysis_batch_id), []).append(r)

    spans: list[tuple[str, int, datetime | None, datetime | None]] = []
    for batch_id, rows in groups.items():
        stamps = [_local(r.created_at, tz) for r in rows if r.created_at is not None]
        start = min(stamps) if stamps else None
        end = max(stamps) if stamps else None
        spans.append((batch_id, len(rows), start, end))

    # Newest batch first; batches without timestamps last
    spans.sort(key=lambda s: s[0], reverse=True)
    spans.sort(key=lambda s: (s[3] is not None, s[3] or datetime.min.replace(tzinfo=timezone.utc)), reverse=True)

    days: dict[date, int] = {}
    for _, _, _, end in spans:
        if end is not None:
            days[end.date()] = days.get(end.date(), 0) + 1

    segments = []
    for batch_id, count, start, end in spans:
        if end is None:
            label = f"Batch {batch_id} ({count} responses)"
        else:
            stamp = f"{end:%b} {end.day}, {end.year}"
            if days[end.date()] > 1:
                stamp = f"{stamp} {_format_time(end)}"
            label = f"Batch {stamp} ({count} responses)"
        segments.append(
            TimeSegment(
                id=batch_id,
                type=TimeGranularity.BATCH,
                label=label,
                start_date=start,
                end_date=end,
                response_count=count,
            )
        )
    return segments


def _calendar_segments(records: list[AnalysisRecord], granularity: TimeGranularity, tz: ZoneInfo) -> list[TimeSegment]:
    counts: dict[date, int] = {}
    skipped = 0
    for r in records:
        if r.created_at is None:
            skipped += 1
            continue
        day = _local(r.created_at, tz).date()
        anchor = week_start(day) if granularity == TimeGranularity.WEEK else day.replace(day=1)
        counts[anchor] = counts.get(anchor, 0) + 1

    if skipped:
        logger.warning("Skipped %d records without created_at for %s segments", skipped, granularity.value)

    segments = []
    for anchor in sorted(counts, reverse=True):
        start = _midnight(anchor, tz)
        if granularity == TimeGranularity.WEEK:
            seg_id = anchor.isoformat()
            label = f"{week_label(anchor)} ({counts[anchor]} responses)"
            next_start = _midnight(anchor + timedelta(days=7), tz)
        else:
            seg_id = f"{anchor:%Y-%m}"
            label = f"{month_label(anchor)} ({counts[anchor]} responses)"
            following = date(anchor.year + anchor.month // 12, anchor.month % 12 + 1, 1)
            next_start = _midnight(following, tz)
        segments.append(
            TimeSegment(
                id=seg_id,
                type=granularity,
                label=label,
                start_date=start,
                end_date=next_start - _ONE_MICROSECOND,
                response_count=counts[anchor],
            )
        )
    return segments


def build_segments(
    records: list[AnalysisRecord],
    granularity: TimeGranularity | str,
    tz: ZoneInfo | str | None = None,
) -> list[TimeSegment]:
    """Derive time segments for a granularity, newest first."""
    granularity = TimeGranularity(granularity)
    zone = _resolve_tz(tz)
    if granularity == TimeGranularity.BATCH:
        return _batch_segments(records, zone)
    return _calendar_segments(records, granularity, zone)


def records_in_segment(records: list[AnalysisRecord], segment: TimeSegment) -> list[AnalysisRecord]:
    """Records of one segment: same batch id, or created_at within [start, end]."""
    if segment.type == TimeGranularity.BATCH:
        return [r for r in records if group_key(r.analysis_batch_id) == segment.id]

    if segment.start_date is None or segment.end_date is None:
        return []
    return [
        r
        for r in records
        if r.created_at is not None and segment.start_date <= _aware(r.created_at) <= segment.end_date
    ]


# ---------------------------------------------------------------------------
# Comparison & timeline
# ---------------------------------------------------------------------------


def compare_segment(
    records: list[AnalysisRecord], segments: list[TimeSegment], segment_id: str
) -> SegmentComparison:
    """Metrics of a segment against the one before it.

    ``segments`` is newest first, so the previous segment is the next index.
    Raises UnknownSegmentError for an unknown segment id.
    """
    index = next((i for i, s in enumerate(segments) if s.id == segment_id), None)
    if index is None:
        raise UnknownSegmentError(segment_id)

    current = compute_metrics(records_in_segment(records, segments[index]))
    previous_segment = segments[index + 1] if index + 1 < len(segments) else None
    previous = compute_metrics(records_in_segment(records, previous_segment)) if previous_segment else None

    return SegmentComparison(
        segment_id=segment_id,
        previous_segment_id=previous_segment.id if previous_segment else None,
        current=current,
        previous=previous,
        changes=compute_changes(current, previous),
        status=metrics_status(current),
    )


def build_engine_timeline(
    records: list[AnalysisRecord],
    granularity: TimeGranularity | str,
    tz: ZoneInfo | str | None = None,
) -> list[EngineTimelinePoint]:
    """Per-engine totals for every segment, oldest first (chart order)."""
    points = []
    for segment in reversed(build_segments(records, granularity, tz)):
        rows = records_in_segment(records, segment)
        engines = {}
        for engine in EngineKey:
            engine_rows = [r for r in rows if map_engine(r.answer_engine) == engine]
            if engine_rows:
                engines[engine.value] = compute_metrics(engine_rows)
        points.append(
            EngineTimelinePoint(
                segment_id=segment.id,
                label=segment.label,
                start_date=segment.start_date,
                end_date=segment.end_date,
                engines=engines,
            )
        )
    return points
