"""Core types and DTOs for the Response Aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import cached_property


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EngineKey(str, Enum):
    """Canonical answer engines. Raw provider names map onto these."""

    PERPLEXITY = "perplexity"
    CLAUDE = "claude"
    GEMINI = "gemini"
    SEARCHGPT = "searchgpt"
    AIO = "aio"  # Google AI Overviews


class JourneyStage(str, Enum):
    """Buying journey phases, in funnel order."""

    PROBLEM_EXPLORATION = "problem_exploration"
    SOLUTION_EDUCATION = "solution_education"
    SOLUTION_COMPARISON = "solution_comparison"
    SOLUTION_EVALUATION = "solution_evaluation"
    FINAL_RESEARCH = "final_research"


class TimeGranularity(str, Enum):
    BATCH = "batch"
    WEEK = "week"
    MONTH = "month"


class MetricKey(str, Enum):
    MENTION_RATE = "mention_rate"
    AVG_POSITION = "avg_position"
    FEATURE_SCORE = "feature_score"
    AVG_SENTIMENT = "avg_sentiment"


# ---------------------------------------------------------------------------
# AnalysisRecord: one row of response_analysis
# ---------------------------------------------------------------------------


@dataclass
class AnalysisRecord:
    """One engine's analyzed response to one query.

    Fields mirror response_analysis columns and are kept raw: engine and
    stage strings are normalized on read, never on construction.
    """

    query_id: int | str | None = None
    answer_engine: str | None = None
    buying_journey_stage: str | None = None
    sentiment_score: float | None = None  # 0.0 .. 1.0
    ranking_position: int | None = None  # 1+ = position in the answer
    company_mentioned: bool | None = None
    solution_analysis: dict | str | None = None  # {"has_feature": "YES" | "NO" | "N/A"}
    geographic_region: str | None = None
    icp_vertical: str | None = None
    buyer_persona: str | None = None
    rank_list: str | None = None  # "1. Acme\n2. Beta"
    mentioned_companies: list[str] = field(default_factory=list)
    analysis_batch_id: str | None = None
    created_at: datetime | None = None

    # Identity & summary fields
    id: int | None = None
    response_id: int | None = None
    company_id: int | None = None
    company_name: str | None = None
    query_text: str | None = None
    recommended: bool | None = None
    citations: list[str] = field(default_factory=list)

    @cached_property
    def feature_analysis(self) -> dict | None:
        """solution_analysis parsed into a dict, or None when absent or malformed.

        Parsed once per record so a malformed value is reported once.
        """
        from xfunnel.analysis.normalization import parse_solution_analysis

        return parse_solution_analysis(self.solution_analysis, record_id=self.id)


# ---------------------------------------------------------------------------
# AggregationConfig: explicit inputs instead of ambient selection state
# ---------------------------------------------------------------------------


@dataclass
class AggregationConfig:
    company_name: str = ""  # Empty = take it from the first record
    granularity: TimeGranularity = TimeGranularity.BATCH
    timezone: str = "UTC"  # IANA name used for week/month boundaries and labels
    top_competitors: int = 5
    segment_id: str | None = None  # Segment to compare against its predecessor
