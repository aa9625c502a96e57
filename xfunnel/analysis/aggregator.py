"""Aggregate entry point.

``aggregate(records, config)`` is a pure function of its inputs: it drops
records from unmapped engines, then builds every view from the same
filtered set.
"""

from __future__ import annotations

import logging
import time
from zoneinfo import ZoneInfo

from xfunnel.analysis.competitors import compute_competitors, resolve_company_name
from xfunnel.analysis.hierarchy import compute_engine_hierarchies, compute_hierarchy, rank_groups
from xfunnel.analysis.metrics import (
    compute_avg_position,
    compute_mention_rate,
    is_number,
    mean_ignoring_none,
    metrics_status,
    query_key,
)
from xfunnel.analysis.normalization import feature_flag, map_engine, phase_of
from xfunnel.analysis.segments import build_segments, compare_segment, records_in_segment
from xfunnel.analysis.types import AggregationConfig, AnalysisRecord, JourneyStage, TimeGranularity
from xfunnel.core.metrics import AGGREGATION_DURATION, AGGREGATION_RUNS
from xfunnel.schemas.journey import AggregateReport, HierarchicalMetrics, MetricValues, PhaseMetrics, ResearchSummary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine filter
# ---------------------------------------------------------------------------


def split_by_engine_mapping(records: list[AnalysisRecord]) -> tuple[list[AnalysisRecord], int]:
    """Return (records with a canonical engine, number dropped)."""
    kept = [r for r in records if map_engine(r.answer_engine) is not None]
    return kept, len(records) - len(kept)


# ---------------------------------------------------------------------------
# Research summary
# ---------------------------------------------------------------------------


def _distinct(values) -> int:
    return len({v for v in values if v is not None and v != ""})


def compute_research_summary(records: list[AnalysisRecord]) -> ResearchSummary:
    recommended = [r.recommended for r in records if r.recommended is not None]

    return ResearchSummary(
        unique_queries=_distinct(r.query_id for r in records),
        unique_responses=_distinct(r.response_id for r in records),
        unique_personas=_distinct(r.buyer_persona for r in records),
        unique_verticals=_distinct(r.icp_vertical for r in records),
        unique_regions=_distinct(r.geographic_region for r in records),
        avg_sentiment=mean_ignoring_none(r.sentiment_score if is_number(r.sentiment_score) else None for r in records),
        recommendation_rate=sum(recommended) / len(recommended) if recommended else None,
        responses_with_citations=sum(1 for r in records if r.citations),
    )


# ---------------------------------------------------------------------------
# Phase breakdown
# ---------------------------------------------------------------------------


def compute_phase_breakdown(records: list[AnalysisRecord]) -> list[PhaseMetrics]:
    """Per stage: query and response counts plus the stage's own metric."""
    by_stage: dict[JourneyStage, list[AnalysisRecord]] = {}
    for r in records:
        stage = phase_of(r.buying_journey_stage)
        if stage is not None:
            by_stage.setdefault(stage, []).append(r)

    phases = []
    for stage in JourneyStage:
        rows = by_stage.get(stage, [])
        phase = PhaseMetrics(
            stage=stage.value,
            query_count=len({query_key(r) for r in rows}),
            response_count=len(rows),
        )
        if stage in (JourneyStage.PROBLEM_EXPLORATION, JourneyStage.SOLUTION_EDUCATION):
            phase.mention_rate = compute_mention_rate(rows)
        elif stage in (JourneyStage.SOLUTION_COMPARISON, JourneyStage.FINAL_RESEARCH):
            phase.avg_position = compute_avg_position(rows)
        else:
            flags = [feature_flag(r.feature_analysis) for r in rows if r.feature_analysis is not None]
            if flags:
                phase.feature_present = flags.count("YES") / len(flags)
                phase.feature_missing = flags.count("NO") / len(flags)
                phase.feature_unknown = flags.count("UNKNOWN") / len(flags)
        phases.append(phase)
    return phases


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def empty_report(config: AggregationConfig) -> AggregateReport:
    """Placeholder returned when there is nothing to aggregate."""
    return AggregateReport(
        company_name=config.company_name,
        granularity=config.granularity,
        timezone=config.timezone,
        overall=HierarchicalMetrics(total=MetricValues()),
    )


def aggregate(records: list[AnalysisRecord], config: AggregationConfig) -> AggregateReport:
    """Build the full report for one company.

    Raises UnknownSegmentError when ``config.segment_id`` names no segment.
    """
    started = time.perf_counter()
    granularity = TimeGranularity(config.granularity)
    tz = ZoneInfo(config.timezone)

    kept, dropped = split_by_engine_mapping(records)
    if dropped:
        logger.info("Dropped %d records with unmapped answer engines", dropped)

    company_name = resolve_company_name(kept, config.company_name)
    overall = compute_hierarchy(kept)

    segments = build_segments(kept, granularity, tz)
    segments = [
        segment.model_copy(update={"metrics": compute_hierarchy(records_in_segment(kept, segment))})
        for segment in segments
    ]

    comparison = None
    if config.segment_id is not None:
        comparison = compare_segment(kept, segments, config.segment_id)

    report = AggregateReport(
        company_name=company_name,
        granularity=granularity,
        timezone=config.timezone,
        overall=overall,
        engines=compute_engine_hierarchies(kept),
        regions=rank_groups(overall.by_region, "region"),
        status=metrics_status(overall.total),
        segments=segments,
        comparison=comparison,
        competitors=compute_competitors(kept, company_name, config.top_competitors),
        phases=compute_phase_breakdown(kept),
        summary=compute_research_summary(kept),
        total_records=len(kept),
        dropped_records=dropped,
    )

    AGGREGATION_RUNS.labels(granularity=granularity.value).inc()
    AGGREGATION_DURATION.observe(time.perf_counter() - started)
    logger.debug("Aggregated %d records into %d %s segments", len(kept), len(segments), granularity.value)
    return report
