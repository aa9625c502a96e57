"""Pydantic response models for buying-journey aggregation."""

from datetime import datetime

from pydantic import BaseModel, Field

from xfunnel.analysis.types import TimeGranularity


class MetricValues(BaseModel):
    """Four metrics for one scope, each with its own denominator.

    A metric is None when nothing in the scope qualified for it.
    """

    mention_rate: float | None = Field(default=None, ge=0, le=1, description="Mean of per-query mention rates")
    avg_position: float | None = Field(default=None, gt=0, description="Record-weighted mean ranking position")
    feature_score: float | None = Field(default=None, ge=0, le=1, description="Share of has_feature == YES")
    avg_sentiment: float | None = Field(default=None, description="Mean sentiment score")
    mention_queries: int = Field(default=0, ge=0)
    mention_responses: int = Field(default=0, ge=0)
    position_responses: int = Field(default=0, ge=0)
    feature_responses: int = Field(default=0, ge=0)
    sentiment_responses: int = Field(default=0, ge=0)
    total_responses: int = Field(default=0, ge=0)


class HierarchicalMetrics(BaseModel):
    total: MetricValues
    by_region: dict[str, MetricValues] = Field(default_factory=dict)
    by_vertical: dict[str, MetricValues] = Field(default_factory=dict)
    by_persona: dict[str, MetricValues] = Field(default_factory=dict)
    by_query: dict[str, MetricValues] = Field(default_factory=dict)


class RankedGroup(BaseModel):
    key: str
    display_name: str
    metrics: MetricValues


class TimeSegment(BaseModel):
    id: str
    type: TimeGranularity
    label: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    response_count: int = Field(ge=0)
    metrics: HierarchicalMetrics | None = None


class MetricChange(BaseModel):
    """Relative change per metric; 1.0 = +100%."""

    mention_rate: float
    avg_position: float
    feature_score: float
    avg_sentiment: float


class SegmentComparison(BaseModel):
    segment_id: str
    previous_segment_id: str | None = None
    current: MetricValues
    previous: MetricValues | None = None
    changes: MetricChange
    status: dict[str, str] = Field(default_factory=dict)


class CompetitorEntry(BaseModel):
    name: str
    count: int = Field(ge=0)
    percentage: float = Field(ge=0)
    avg_position: float | None = None
    is_company: bool = False


class EngineCompetitors(BaseModel):
    engine: str
    display_name: str
    mentions: list[CompetitorEntry]
    rankings: list[CompetitorEntry]


class EngineTimelinePoint(BaseModel):
    segment_id: str
    label: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    engines: dict[str, MetricValues]


class PhaseMetrics(BaseModel):
    stage: str
    query_count: int = Field(ge=0)
    response_count: int = Field(ge=0)
    mention_rate: float | None = None
    avg_position: float | None = None
    feature_present: float | None = None
    feature_missing: float | None = None
    feature_unknown: float | None = None


class ResearchSummary(BaseModel):
    unique_queries: int = Field(default=0, ge=0)
    unique_responses: int = Field(default=0, ge=0)
    unique_personas: int = Field(default=0, ge=0)
    unique_verticals: int = Field(default=0, ge=0)
    unique_regions: int = Field(default=0, ge=0)
    avg_sentiment: float | None = None
    recommendation_rate: float | None = Field(default=None, ge=0, le=1)
    responses_with_citations: int = Field(default=0, ge=0)


class AggregateReport(BaseModel):
    company_name: str
    granularity: TimeGranularity
    timezone: str
    overall: HierarchicalMetrics
    engines: dict[str, HierarchicalMetrics] = Field(default_factory=dict)
    regions: list[RankedGroup] = Field(default_factory=list)
    status: dict[str, str] = Field(default_factory=dict)
    segments: list[TimeSegment] = Field(default_factory=list)
    comparison: SegmentComparison | None = None
    competitors: list[EngineCompetitors] = Field(default_factory=list)
    phases: list[PhaseMetrics] = Field(default_factory=list)
    summary: ResearchSummary = Field(default_factory=ResearchSummary)
    total_records: int = Field(default=0, ge=0)
    dropped_records: int = Field(default=0, ge=0, description="Records from unmapped engines")


# ---------------------------------------------------------------------------
# Endpoint payloads
# ---------------------------------------------------------------------------


class SegmentListResponse(BaseModel):
    granularity: TimeGranularity
    segments: list[TimeSegment]


class CompetitorsResponse(BaseModel):
    company_name: str
    engines: list[EngineCompetitors]


class TimelineResponse(BaseModel):
    granularity: TimeGranularity
    points: list[EngineTimelinePoint]
