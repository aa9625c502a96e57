"""Competitor mentions & rankings per answer engine.

Mentions come from early-stage records (mentioned_companies plus the
analyzed company's own company_mentioned flag). Rankings come from
position-phase rank lists; a competitor's position is the running mean of
its 1-based index across every list it appears in.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from xfunnel.analysis.normalization import engine_display_name, is_early_stage, is_position_phase, map_engine
from xfunnel.analysis.types import AnalysisRecord, EngineKey
from xfunnel.schemas.journey import CompetitorEntry, EngineCompetitors

logger = logging.getLogger(__name__)

REST = "Rest"

# "1. Acme", "2) Beta"
_LEADING_ORDINAL = re.compile(r"^\s*\d+[.)]\s*")
# Several ordinals on one line: "1. Acme 2. Beta 3. Gamma"
_INLINE_ORDINAL = re.compile(r"(?:^|\s)\d+[.)]\s+")


# ---------------------------------------------------------------------------
# rank_list parsing
# ---------------------------------------------------------------------------


def parse_rank_list(text: str | None) -> list[str]:
    """Ordered competitor names from a numbered or newline-delimited list."""
    if not text:
        return []

    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) == 1 and len(_INLINE_ORDINAL.findall(lines[0])) >= 2:
        lines = _INLINE_ORDINAL.split(lines[0])

    names = []
    for line in lines:
        name = _LEADING_ORDINAL.sub("", line).strip()
        if name:
            names.append(name)
    return names


# ---------------------------------------------------------------------------
# Tally
# ---------------------------------------------------------------------------


@dataclass
class CompetitorTally:
    name: str
    count: int = 0
    position: float | None = None
    frequency: int = 0  # rank lists the competitor appeared in
    percentage: float = 0.0

    def add_position(self, position: int) -> None:
        if self.position is None:
            self.position = float(position)
        else:
            self.position = (self.position * self.frequency + position) / (self.frequency + 1)
        self.frequency += 1

    def to_entry(self, company_name: str) -> CompetitorEntry:
        return CompetitorEntry(
            name=self.name,
            count=self.count,
            percentage=self.percentage,
            avg_position=self.position,
            is_company=self.name == company_name,
        )


def tally_competitors(records: list[AnalysisRecord], company_name: str) -> dict[str, CompetitorTally]:
    """Mention counts, running-mean positions and mention percentages.

    The analyzed company is always the first entry. Other names appear in
    discovery order.
    """
    tallies: dict[str, CompetitorTally] = {company_name: CompetitorTally(name=company_name)}

    def _get(name: str) -> CompetitorTally:
        if name not in tallies:
            tallies[name] = CompetitorTally(name=name)
        return tallies[name]

    for r in records:
        if is_early_stage(r.buying_journey_stage):
            if r.company_mentioned:
                tallies[company_name].count += 1
            for name in r.mentioned_companies or []:
                name = name.strip()
                if name and name != company_name:
                    _get(name).count += 1

        if is_position_phase(r.buying_journey_stage) and r.rank_list:
            for index, name in enumerate(parse_rank_list(r.rank_list), start=1):
                _get(name).add_position(index)

    total = sum(t.count for t in tallies.values())
    for t in tallies.values():
        t.percentage = t.count / total * 100 if total > 0 else 0.0
    return tallies


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def capped_view(tallies: dict[str, CompetitorTally], company_name: str, top_n: int = 5) -> list[CompetitorEntry]:
    """Analyzed company, its top-N competitors by mention share, then "Rest".

    Equal shares keep discovery order. "Rest" sums the counts and
    percentages of everything past the top N and is omitted when empty.
    """
    company = tallies.get(company_name) or CompetitorTally(name=company_name)
    others = sorted(
        (t for name, t in tallies.items() if name != company_name),
        key=lambda t: -t.percentage,
    )
    top, rest = others[:top_n], others[top_n:]

    view = [company.to_entry(company_name)] + [t.to_entry(company_name) for t in top]
    if rest:
        view.append(
            CompetitorEntry(
                name=REST,
                count=sum(t.count for t in rest),
                percentage=sum(t.percentage for t in rest),
            )
        )
    return view


def rankings_view(tallies: dict[str, CompetitorTally], company_name: str, top_n: int = 5) -> list[CompetitorEntry]:
    """Capped view without "Rest", best average position first, unranked last."""
    entries = [e for e in capped_view(tallies, company_name, top_n) if e.name != REST]
    return sorted(entries, key=lambda e: (e.avg_position is None, e.avg_position or 0.0))


def resolve_company_name(records: list[AnalysisRecord], company_name: str = "") -> str:
    if company_name:
        return company_name
    for r in records:
        if r.company_name:
            return r.company_name
    return ""


def compute_competitors(
    records: list[AnalysisRecord], company_name: str = "", top_n: int = 5
) -> list[EngineCompetitors]:
    """Mention and ranking views for every canonical engine present."""
    company_name = resolve_company_name(records, company_name)

    by_engine: dict[EngineKey, list[AnalysisRecord]] = {}
    for r in records:
        engine = map_engine(r.answer_engine)
        if engine is not None:
            by_engine.setdefault(engine, []).append(r)

    results = []
    for engine in EngineKey:
        if engine not in by_engine:
            continue
        tallies = tally_competitors(by_engine[engine], company_name)
        results.append(
            EngineCompetitors(
                engine=engine.value,
                display_name=engine_display_name(engine),
                mentions=capped_view(tallies, company_name, top_n),
                rankings=rankings_view(tallies, company_name, top_n),
            )
        )
    logger.debug("Competitor views built for %d engines", len(results))
    return results
