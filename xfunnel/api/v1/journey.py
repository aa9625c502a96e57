"""Buying journey API: aggregate report, segments, competitors, timeline."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from xfunnel.analysis.types import TimeGranularity
from xfunnel.core.rate_limit import REPORT_RATE_LIMIT, limiter
from xfunnel.schemas.journey import (
    AggregateReport,
    CompetitorsResponse,
    ResearchSummary,
    SegmentComparison,
    SegmentListResponse,
    TimelineResponse,
)
from xfunnel.services import journey_service
from xfunnel.services.journey_service import RecordFilter

router = APIRouter(prefix="/journey", tags=["buying-journey"])


def record_filter(
    company_id: int | None = Query(None, ge=1, description="Analyzed company; omitted = empty placeholder"),
    region: str | None = Query(None, description="geographic_region (raw value)"),
    vertical: str | None = Query(None, description="icp_vertical (raw value)"),
    batch_id: str | None = Query(None, description="analysis_batch_id"),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
) -> RecordFilter | None:
    if company_id is None:
        return None
    return RecordFilter(
        company_id=company_id,
        region=region,
        vertical=vertical,
        batch_id=batch_id,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/report", response_model=AggregateReport)
@limiter.limit(REPORT_RATE_LIMIT)
async def journey_report(
    request: Request,
    granularity: TimeGranularity | None = Query(None),
    segment_id: str | None = Query(None, description="Compare this segment with the previous one"),
    filters: RecordFilter | None = Depends(record_filter),
):
    """Full report: hierarchy, engines, segments, competitors, phases, summary."""
    return await journey_service.get_report(filters, granularity, segment_id)


@router.get("/segments", response_model=SegmentListResponse)
async def journey_segments(
    granularity: TimeGranularity | None = Query(None),
    filters: RecordFilter | None = Depends(record_filter),
):
    """Time segments for a granularity, newest first."""
    return await journey_service.get_segments(filters, granularity)


@router.get("/segments/{segment_id}/comparison", response_model=SegmentComparison | None)
async def journey_segment_comparison(
    segment_id: str,
    granularity: TimeGranularity | None = Query(None),
    filters: RecordFilter | None = Depends(record_filter),
):
    return await journey_service.get_segment_comparison(filters, segment_id, granularity)


@router.get("/competitors", response_model=CompetitorsResponse)
async def journey_competitors(
    company_name: str = Query("", description="Overrides the name stored on the rows"),
    filters: RecordFilter | None = Depends(record_filter),
):
    """Capped mention share and ranking views per engine."""
    return await journey_service.get_competitors(filters, company_name)


@router.get("/timeline", response_model=TimelineResponse)
async def journey_timeline(
    granularity: TimeGranularity | None = Query(None),
    filters: RecordFilter | None = Depends(record_filter),
):
    return await journey_service.get_timeline(filters, granularity)


@router.get("/summary", response_model=ResearchSummary)
async def journey_summary(
    filters: RecordFilter | None = Depends(record_filter),
):
    return await journey_service.get_summary(filters)
