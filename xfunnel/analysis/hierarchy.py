"""Hierarchical roll-up: total, region, vertical, persona, query."""

from __future__ import annotations

from collections.abc import Callable

from xfunnel.analysis.metrics import UNKNOWN, compute_metrics
from xfunnel.analysis.normalization import dimension_display_name, map_engine
from xfunnel.analysis.types import AnalysisRecord, EngineKey
from xfunnel.schemas.journey import HierarchicalMetrics, MetricValues, RankedGroup

DIMENSIONS: dict[str, Callable[[AnalysisRecord], object]] = {
    "region": lambda r: r.geographic_region,
    "vertical": lambda r: r.icp_vertical,
    "persona": lambda r: r.buyer_persona,
    "query": lambda r: r.query_id,
}


def group_key(value: object) -> str:
    """Bucket key for a raw dimension value; null and blank go to "unknown"."""
    if value is None:
        return UNKNOWN
    key = str(value).strip()
    return key or UNKNOWN


def group_by(
    records: list[AnalysisRecord], key_fn: Callable[[AnalysisRecord], object]
) -> dict[str, list[AnalysisRecord]]:
    """Partition records by key, buckets in first-seen order."""
    groups: dict[str, list[AnalysisRecord]] = {}
    for r in records:
        groups.setdefault(group_key(key_fn(r)), []).append(r)
    return groups


def _bucket_metrics(records: list[AnalysisRecord], dimension: str) -> dict[str, MetricValues]:
    return {key: compute_metrics(rows) for key, rows in group_by(records, DIMENSIONS[dimension]).items()}


def compute_hierarchy(records: list[AnalysisRecord], engine: EngineKey | str | None = None) -> HierarchicalMetrics:
    """Metrics at every hierarchy level, each recomputed on its own subset.

    With an engine, only that engine's records are considered.
    """
    if engine is not None:
        engine = EngineKey(engine)
        records = [r for r in records if map_engine(r.answer_engine) == engine]

    return HierarchicalMetrics(
        total=compute_metrics(records),
        by_region=_bucket_metrics(records, "region"),
        by_vertical=_bucket_metrics(records, "vertical"),
        by_persona=_bucket_metrics(records, "persona"),
        by_query=_bucket_metrics(records, "query"),
    )


def compute_engine_hierarchies(records: list[AnalysisRecord]) -> dict[str, HierarchicalMetrics]:
    """One hierarchy per canonical engine present in the records."""
    by_engine: dict[EngineKey, list[AnalysisRecord]] = {}
    for r in records:
        engine = map_engine(r.answer_engine)
        if engine is not None:
            by_engine.setdefault(engine, []).append(r)

    return {
        engine.value: compute_hierarchy(by_engine[engine])
        for engine in EngineKey
        if engine in by_engine
    }


def rank_groups(buckets: dict[str, MetricValues], dimension: str = "") -> list[RankedGroup]:
    """Buckets ordered by descending mention rate.

    Ties keep first-seen order; buckets without a mention rate go last.
    """
    ordered = sorted(
        buckets.items(),
        key=lambda item: (item[1].mention_rate is None, -(item[1].mention_rate or 0.0)),
    )
    return [
        RankedGroup(key=key, display_name=dimension_display_name(dimension, key), metrics=values)
        for key, values in ordered
    ]
