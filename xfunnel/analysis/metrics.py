"""Per-metric computation rules.

Each metric has its own qualifying set and its own denominator:

  - mention rate:   early stages (null flag = not mentioned); mean of per-query rates
  - avg position:   comparison / final research, positive ranking_position; record-weighted
  - feature score:  solution evaluation, parseable solution_analysis; YES / parseable
  - sentiment:      any stage, sentiment_score set; plain mean

An empty qualifying set gives None, never 0.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from xfunnel.analysis.normalization import (
    feature_flag,
    is_early_stage,
    is_evaluation_phase,
    is_position_phase,
)
from xfunnel.analysis.types import AnalysisRecord, MetricKey
from xfunnel.schemas.journey import MetricChange, MetricValues

UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def mean_ignoring_none(values: Iterable[float | None]) -> float | None:
    """Arithmetic mean of the non-None values; None if there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def query_key(record: AnalysisRecord) -> str:
    if record.query_id is None or record.query_id == "":
        return UNKNOWN
    return str(record.query_id)


# ---------------------------------------------------------------------------
# Mention rate (per-query averaged)
# ---------------------------------------------------------------------------


def _mention_stats(records: Iterable[AnalysisRecord]) -> tuple[float | None, int, int]:
    """Return (mention_rate, query_count, response_count).

    Every early-stage record counts as one engine for its query; a null
    ``company_mentioned`` counts as not mentioned.
    """
    per_query: dict[str, list[bool]] = defaultdict(list)
    for r in records:
        if not is_early_stage(r.buying_journey_stage):
            continue
        per_query[query_key(r)].append(bool(r.company_mentioned))

    if not per_query:
        return None, 0, 0

    rates = [sum(flags) / len(flags) for flags in per_query.values()]
    responses = sum(len(flags) for flags in per_query.values())
    return sum(rates) / len(rates), len(per_query), responses


def compute_mention_rate(records: Iterable[AnalysisRecord]) -> float | None:
    """Mean of per-query mention rates over early-stage records.

    Two queries answered 3/5 and 1/1 give mean(0.6, 1.0) = 0.8, not 4/6.
    """
    return _mention_stats(records)[0]


# ---------------------------------------------------------------------------
# Average position (record-weighted)
# ---------------------------------------------------------------------------


def _position_stats(records: Iterable[AnalysisRecord]) -> tuple[float | None, int]:
    positions = [
        r.ranking_position
        for r in records
        if is_position_phase(r.buying_journey_stage)
        and is_number(r.ranking_position)
        and r.ranking_position > 0
    ]
    if not positions:
        return None, 0
    return sum(positions) / len(positions), len(positions)


def compute_avg_position(records: Iterable[AnalysisRecord]) -> float | None:
    return _position_stats(records)[0]


# ---------------------------------------------------------------------------
# Feature score
# ---------------------------------------------------------------------------


def _feature_stats(records: Iterable[AnalysisRecord]) -> tuple[float | None, int]:
    flags = [
        feature_flag(r.feature_analysis)
        for r in records
        if is_evaluation_phase(r.buying_journey_stage) and r.feature_analysis is not None
    ]
    if not flags:
        return None, 0
    return flags.count("YES") / len(flags), len(flags)


def compute_feature_score(records: Iterable[AnalysisRecord]) -> float | None:
    """Share of parseable evaluation-stage records with has_feature == YES."""
    return _feature_stats(records)[0]


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------


def _sentiment_stats(records: Iterable[AnalysisRecord]) -> tuple[float | None, int]:
    scores = [r.sentiment_score for r in records if is_number(r.sentiment_score)]
    if not scores:
        return None, 0
    return sum(scores) / len(scores), len(scores)


def compute_avg_sentiment(records: Iterable[AnalysisRecord]) -> float | None:
    return _sentiment_stats(records)[0]


# ---------------------------------------------------------------------------
# All four metrics for one scope
# ---------------------------------------------------------------------------


def compute_metrics(records: list[AnalysisRecord]) -> MetricValues:
    mention_rate, mention_queries, mention_responses = _mention_stats(records)
    avg_position, position_responses = _position_stats(records)
    feature_score, feature_responses = _feature_stats(records)
    avg_sentiment, sentiment_responses = _sentiment_stats(records)

    return MetricValues(
        mention_rate=mention_rate,
        avg_position=avg_position,
        feature_score=feature_score,
        avg_sentiment=avg_sentiment,
        mention_queries=mention_queries,
        mention_responses=mention_responses,
        position_responses=position_responses,
        feature_responses=feature_responses,
        sentiment_responses=sentiment_responses,
        total_responses=len(records),
    )


# ---------------------------------------------------------------------------
# Segment-over-segment change
# ---------------------------------------------------------------------------


def calculate_change(current: float | None, previous: float | None) -> float:
    """Relative change as a fraction (1.0 = +100%).

    A missing or zero baseline reports +100% when current is positive and
    0% otherwise, instead of dividing by zero.
    """
    if previous is None or previous == 0:
        return 1.0 if current is not None and current > 0 else 0.0
    if current is None:
        return 0.0
    return (current - previous) / previous


def compute_changes(current: MetricValues, previous: MetricValues | None) -> MetricChange:
    prev = previous or MetricValues()
    return MetricChange(
        mention_rate=calculate_change(current.mention_rate, prev.mention_rate),
        avg_position=calculate_change(current.avg_position, prev.avg_position),
        feature_score=calculate_change(current.feature_score, prev.feature_score),
        avg_sentiment=calculate_change(current.avg_sentiment, prev.avg_sentiment),
    )


# ---------------------------------------------------------------------------
# Traffic-light status
# ---------------------------------------------------------------------------


def metric_status(metric: MetricKey | str, value: float | None) -> str:
    """Classify a metric value into red / yellow / green.

    Rates (mention, feature, sentiment) are given as fractions; position as a rank.
    """
    if value is None:
        return "red"

    metric = MetricKey(metric)
    if metric == MetricKey.AVG_POSITION:
        if value < 3:
            return "green"
        if value <= 5:
            return "yellow"
        return "red"

    pct = round(value * 100, 6)
    green, yellow = {
        MetricKey.MENTION_RATE: (10, 5),
        MetricKey.FEATURE_SCORE: (60, 40),
        MetricKey.AVG_SENTIMENT: (50, 30),
    }[metric]
    if pct >= green:
        return "green"
    if pct >= yellow:
        return "yellow"
    return "red"


def metrics_status(values: MetricValues) -> dict[str, str]:
    return {key.value: metric_status(key, getattr(values, key.value)) for key in MetricKey}
