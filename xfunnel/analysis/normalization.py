"""Engine, phase and dimension normalization.

Upstream rows carry free-text provider names and stage strings. Everything
here maps raw values onto canonical keys, returning None for values that
should be excluded rather than guessing a default.
"""

from __future__ import annotations

import json
import logging

from xfunnel.analysis.types import EngineKey, JourneyStage
from xfunnel.core.metrics import SOLUTION_ANALYSIS_PARSE_FAILURES

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------

ENGINE_MAPPING: dict[str, EngineKey] = {
    "perplexity": EngineKey.PERPLEXITY,
    "claude": EngineKey.CLAUDE,
    "claude-2": EngineKey.CLAUDE,
    "gemini": EngineKey.GEMINI,
    "gemini-pro": EngineKey.GEMINI,
    "openai": EngineKey.SEARCHGPT,
    "gpt-4": EngineKey.SEARCHGPT,
    "gpt-3.5-turbo": EngineKey.SEARCHGPT,
    "google_search": EngineKey.AIO,
    "google-search": EngineKey.AIO,
}

ENGINE_DISPLAY_NAMES: dict[EngineKey, str] = {
    EngineKey.PERPLEXITY: "Perplexity",
    EngineKey.CLAUDE: "Claude",
    EngineKey.GEMINI: "Gemini",
    EngineKey.SEARCHGPT: "SearchGPT",
    EngineKey.AIO: "AIO",
}


def map_engine(raw: str | None) -> EngineKey | None:
    """Map a raw provider identifier to its canonical engine (case-insensitive)."""
    if not raw:
        return None
    return ENGINE_MAPPING.get(raw.strip().lower())


def engine_display_name(engine: EngineKey | str) -> str:
    try:
        return ENGINE_DISPLAY_NAMES[EngineKey(engine)]
    except ValueError:
        return str(engine)


# ---------------------------------------------------------------------------
# Buying journey phases
# ---------------------------------------------------------------------------

EARLY_STAGES: frozenset[JourneyStage] = frozenset(
    {JourneyStage.PROBLEM_EXPLORATION, JourneyStage.SOLUTION_EDUCATION}
)
POSITION_PHASES: frozenset[JourneyStage] = frozenset(
    {JourneyStage.SOLUTION_COMPARISON, JourneyStage.FINAL_RESEARCH}
)
EVALUATION_PHASES: frozenset[JourneyStage] = frozenset({JourneyStage.SOLUTION_EVALUATION})


def phase_of(raw: str | None) -> JourneyStage | None:
    """Canonical stage for a raw value; None routes the record to "unknown"."""
    if not raw:
        return None
    try:
        return JourneyStage(raw.strip().lower())
    except ValueError:
        return None


def is_early_stage(phase: str | None) -> bool:
    return phase_of(phase) in EARLY_STAGES


def is_position_phase(phase: str | None) -> bool:
    return phase_of(phase) in POSITION_PHASES


def is_evaluation_phase(phase: str | None) -> bool:
    return phase_of(phase) in EVALUATION_PHASES


# ---------------------------------------------------------------------------
# solution_analysis
# ---------------------------------------------------------------------------


def parse_solution_analysis(raw: dict | str | None, record_id: int | None = None) -> dict | None:
    """Parse a solution_analysis value into a dict.

    Accepts an already-decoded dict or a JSON string. Anything that does not
    yield a JSON object is logged, counted and treated as no data.
    """
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Unparseable solution_analysis (record=%s): %s", record_id, e)
            SOLUTION_ANALYSIS_PARSE_FAILURES.inc()
            return None
        if isinstance(parsed, dict):
            return parsed
    logger.warning("solution_analysis is not an object (record=%s): %r", record_id, type(raw).__name__)
    SOLUTION_ANALYSIS_PARSE_FAILURES.inc()
    return None


def feature_flag(analysis: dict) -> str:
    """has_feature reduced to YES / NO / UNKNOWN."""
    value = str(analysis.get("has_feature") or "").strip().upper()
    if value in ("YES", "NO"):
        return value
    return "UNKNOWN"


# ---------------------------------------------------------------------------
# Grouping dimensions (display only)
# ---------------------------------------------------------------------------

REGION_MAPPING: dict[str, str] = {
    # North America
    "north_america": "North America",
    "northamerica": "North America",
    "na": "North America",
    "n_america": "North America",
    "north america": "North America",
    # Europe
    "europe": "Europe",
    "eu": "Europe",
    "eur": "Europe",
    # LATAM
    "latam": "LATAM",
    "latin_america": "LATAM",
    "latinamerica": "LATAM",
    "latin america": "LATAM",
    "la": "LATAM",
    # EMEA
    "emea": "EMEA",
    "europe_middle_east_africa": "EMEA",
    "europe middle east africa": "EMEA",
    "europe_me_africa": "EMEA",
}


def standardize_region_name(region: str) -> str:
    """Display name for a raw region value. Aggregation keys stay raw."""
    return REGION_MAPPING.get(region.strip().lower(), region)


def dimension_display_name(dimension: str, key: str) -> str:
    if dimension == "region":
        return standardize_region_name(key)
    return key
