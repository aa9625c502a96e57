"""Buying journey service.

Thin async layer: fetch response_analysis rows, convert them to
AnalysisRecord DTOs and delegate to the pure aggregator. Identical
concurrent fetches are coalesced onto one in-flight query.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from xfunnel.analysis.aggregator import aggregate, compute_research_summary, empty_report, split_by_engine_mapping
from xfunnel.analysis.competitors import compute_competitors, resolve_company_name
from xfunnel.analysis.segments import UnknownSegmentError, build_engine_timeline, build_segments, compare_segment
from xfunnel.analysis.types import AggregationConfig, AnalysisRecord, TimeGranularity
from xfunnel.core.config import settings
from xfunnel.core.exceptions import DataLoadError, NotFoundError
from xfunnel.core.metrics import COALESCED_REQUESTS
from xfunnel.core.sentry import tag_company
from xfunnel.schemas.journey import (
    AggregateReport,
    CompetitorsResponse,
    ResearchSummary,
    SegmentComparison,
    SegmentListResponse,
    TimelineResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Request coalescing
# ---------------------------------------------------------------------------


class RequestCoalescer:
    """Share one in-flight task between callers asking for the same key.

    The first caller starts the task; later callers with an equal key await
    the same result. The key is released as soon as the task finishes, so
    the next request after completion fetches fresh data.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._inflight: dict[Hashable, asyncio.Task] = {}

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(factory())
                self._inflight[key] = task
                task.add_done_callback(lambda t, k=key: self._release(k, t))
            else:
                COALESCED_REQUESTS.inc()
                logger.debug("Joining in-flight request %s", key)
        # A cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    @property
    def in_flight(self) -> int:
        return len(self._inflight)


_coalescer = RequestCoalescer()


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecordFilter:
    """response_analysis filter; hashable so it doubles as the coalescing key."""

    company_id: int
    region: str | None = None
    vertical: str | None = None
    batch_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def _citation_urls(value) -> list[str]:
    """citations_parsed is either {"urls": [...]} or a bare list."""
    if isinstance(value, dict):
        value = value.get("urls") or value.get("citations") or []
    if isinstance(value, list):
        return [str(v) for v in value if v]
    return []


def record_from_row(row) -> AnalysisRecord:
    return AnalysisRecord(
        id=row.id,
        company_id=row.company_id,
        company_name=row.company_name,
        query_id=row.query_id,
        query_text=row.query_text,
        response_id=row.response_id,
        answer_engine=row.answer_engine,
        buying_journey_stage=row.buying_journey_stage,
        geographic_region=row.geographic_region,
        icp_vertical=row.icp_vertical,
        buyer_persona=row.buyer_persona,
        sentiment_score=row.sentiment_score,
        ranking_position=row.ranking_position,
        company_mentioned=row.company_mentioned,
        recommended=row.recommended,
        solution_analysis=row.solution_analysis,
        rank_list=row.rank_list,
        mentioned_companies=list(row.mentioned_companies or []),
        citations=_citation_urls(row.citations_parsed),
        analysis_batch_id=row.analysis_batch_id,
        created_at=row.created_at,
    )


async def fetch_records(
    db,  # AsyncSession, imported lazily to keep module importable without DB
    filters: RecordFilter,
) -> list[AnalysisRecord]:
    """Fetch all response_analysis rows matching the filter."""
    from sqlalchemy import and_, select

    from xfunnel.models.response_analysis import ResponseAnalysis

    conditions = [ResponseAnalysis.company_id == filters.company_id]
    if filters.region:
        conditions.append(ResponseAnalysis.geographic_region == filters.region)
    if filters.vertical:
        conditions.append(ResponseAnalysis.icp_vertical == filters.vertical)
    if filters.batch_id:
        conditions.append(ResponseAnalysis.analysis_batch_id == filters.batch_id)
    if filters.date_from:
        conditions.append(ResponseAnalysis.created_at >= filters.date_from)
    if filters.date_to:
        conditions.append(ResponseAnalysis.created_at <= filters.date_to)

    stmt = (
        select(ResponseAnalysis)
        .where(and_(*conditions))
        .order_by(ResponseAnalysis.created_at, ResponseAnalysis.id)
    )
    result = await db.execute(stmt)
    return [record_from_row(row) for row in result.scalars()]


async def _fetch_on_own_session(filters: RecordFilter) -> list[AnalysisRecord]:
    """Shared fetch; the session belongs to the task, not to any one request."""
    from xfunnel.db.postgres import async_session_factory

    async with async_session_factory() as session:
        return await fetch_records(session, filters)


async def load_records(filters: RecordFilter, what: str) -> list[AnalysisRecord]:
    """Coalesced fetch. Failures surface as DataLoadError; nothing is aggregated.

    A caller that goes away (client disconnect) only stops waiting; the
    fetch and its session keep serving everyone else who joined.
    """
    tag_company(filters.company_id)
    try:
        records = await _coalescer.run(filters, lambda: _fetch_on_own_session(filters))
    except (SQLAlchemyError, OSError) as e:
        logger.exception("Failed to load %s for company %s", what, filters.company_id)
        raise DataLoadError(what) from e

    logger.info(
        "Loaded %d response_analysis rows for company %s",
        len(records),
        filters.company_id,
        extra={"company_id": filters.company_id},
    )
    return records


# ---------------------------------------------------------------------------
# Public API (one per endpoint)
# ---------------------------------------------------------------------------


def build_config(
    granularity: TimeGranularity | str | None = None,
    segment_id: str | None = None,
    company_name: str = "",
) -> AggregationConfig:
    return AggregationConfig(
        company_name=company_name,
        granularity=TimeGranularity(granularity or settings.default_granularity),
        timezone=settings.report_timezone,
        top_competitors=settings.top_competitors,
        segment_id=segment_id,
    )


async def get_report(
    filters: RecordFilter | None,
    granularity: TimeGranularity | str | None = None,
    segment_id: str | None = None,
) -> AggregateReport:
    """Full aggregate report; an empty placeholder when no company is selected."""
    config = build_config(granularity, segment_id)
    if filters is None:
        return empty_report(config)

    records = await load_records(filters, "report")
    try:
        return aggregate(records, config)
    except UnknownSegmentError:
        raise NotFoundError(f"Segment {segment_id} not found") from None


async def get_segments(
    filters: RecordFilter | None,
    granularity: TimeGranularity | str | None = None,
) -> SegmentListResponse:
    config = build_config(granularity)
    if filters is None:
        return SegmentListResponse(granularity=config.granularity, segments=[])

    records, _ = split_by_engine_mapping(await load_records(filters, "segments"))
    return SegmentListResponse(
        granularity=config.granularity,
        segments=build_segments(records, config.granularity, config.timezone),
    )


async def get_segment_comparison(
    filters: RecordFilter | None,
    segment_id: str,
    granularity: TimeGranularity | str | None = None,
) -> SegmentComparison | None:
    """Current segment vs. the one before it."""
    config = build_config(granularity, segment_id)
    if filters is None:
        return None

    records, _ = split_by_engine_mapping(await load_records(filters, "segment comparison"))
    segments = build_segments(records, config.granularity, config.timezone)
    try:
        return compare_segment(records, segments, segment_id)
    except UnknownSegmentError:
        raise NotFoundError(f"Segment {segment_id} not found") from None


async def get_competitors(filters: RecordFilter | None, company_name: str = "") -> CompetitorsResponse:
    if filters is None:
        return CompetitorsResponse(company_name=company_name, engines=[])

    records, _ = split_by_engine_mapping(await load_records(filters, "competitor data"))
    company_name = resolve_company_name(records, company_name)
    return CompetitorsResponse(
        company_name=company_name,
        engines=compute_competitors(records, company_name, settings.top_competitors),
    )


async def get_timeline(
    filters: RecordFilter | None,
    granularity: TimeGranularity | str | None = None,
) -> TimelineResponse:
    config = build_config(granularity)
    if filters is None:
        return TimelineResponse(granularity=config.granularity, points=[])

    records, _ = split_by_engine_mapping(await load_records(filters, "engine metrics"))
    return TimelineResponse(
        granularity=config.granularity,
        points=build_engine_timeline(records, config.granularity, config.timezone),
    )


async def get_summary(filters: RecordFilter | None) -> ResearchSummary:
    if filters is None:
        return ResearchSummary()

    records, _ = split_by_engine_mapping(await load_records(filters, "research summary"))
    return compute_research_summary(records)
