"""Tests for competitor mentions, rankings and capped views."""

import pytest

from xfunnel.analysis.competitors import (
    REST,
    CompetitorTally,
    capped_view,
    compute_competitors,
    parse_rank_list,
    rankings_view,
    resolve_company_name,
    tally_competitors,
)
from xfunnel.analysis.types import AnalysisRecord

COMPANY = "Acme"


def _mention(companies: list[str], mentioned: bool = False, engine: str = "perplexity") -> AnalysisRecord:
    return AnalysisRecord(
        answer_engine=engine,
        buying_journey_stage="problem_exploration",
        company_mentioned=mentioned,
        mentioned_companies=companies,
        company_name=COMPANY,
    )


def _ranking(rank_list: str, stage: str = "solution_comparison", engine: str = "perplexity") -> AnalysisRecord:
    return AnalysisRecord(
        answer_engine=engine,
        buying_journey_stage=stage,
        rank_list=rank_list,
        company_name=COMPANY,
    )


def _tallies(counts: dict[str, int]) -> dict[str, CompetitorTally]:
    """Tallies with percentages computed over every count, company included."""
    tallies = {name: CompetitorTally(name=name, count=count) for name, count in counts.items()}
    total = sum(counts.values())
    for t in tallies.values():
        t.percentage = t.count / total * 100
    return tallies


# ===================================================================
# rank_list parsing
# ===================================================================


class TestParseRankList:
    def test_numbered(self):
        assert parse_rank_list("1. Acme\n2. Beta\n3. Gamma") == ["Acme", "Beta", "Gamma"]

    def test_parenthesis_markers(self):
        assert parse_rank_list("1) Acme\n2) Beta") == ["Acme", "Beta"]

    def test_plain_lines_and_blanks(self):
        assert parse_rank_list("Acme\n\n  Beta  \n") == ["Acme", "Beta"]

    def test_single_line_with_inline_ordinals(self):
        assert parse_rank_list("1. Acme 2. Beta 3. Gamma") == ["Acme", "Beta", "Gamma"]

    def test_version_numbers_are_not_markers(self):
        assert parse_rank_list("1. Web 2.0 Labs\n2. Beta") == ["Web 2.0 Labs", "Beta"]

    def test_empty(self):
        assert parse_rank_list(None) == []
        assert parse_rank_list("") == []


# ===================================================================
# Tally
# ===================================================================


class TestTally:
    def test_company_counted_from_flag(self):
        records = [
            _mention(["Beta"], mentioned=True),
            _mention(["Beta", "Gamma", COMPANY], mentioned=False),
        ]
        tallies = tally_competitors(records, COMPANY)
        assert list(tallies) == [COMPANY, "Beta", "Gamma"]
        assert tallies[COMPANY].count == 1  # listed name is not double counted
        assert tallies["Beta"].count == 2
        assert tallies["Gamma"].count == 1

    def test_percentages_over_all_counts(self):
        records = [_mention(["Beta", "Gamma"], mentioned=True), _mention(["Beta"])]
        tallies = tally_competitors(records, COMPANY)
        assert tallies[COMPANY].percentage == pytest.approx(25.0)
        assert tallies["Beta"].percentage == pytest.approx(50.0)
        assert sum(t.percentage for t in tallies.values()) == pytest.approx(100.0)

    def test_no_mentions_gives_zero_percentages(self):
        tallies = tally_competitors([_ranking("1. Beta")], COMPANY)
        assert all(t.percentage == 0.0 for t in tallies.values())

    def test_mentions_only_from_early_stages(self):
        late = AnalysisRecord(
            answer_engine="claude",
            buying_journey_stage="final_research",
            company_mentioned=True,
            mentioned_companies=["Beta"],
        )
        tallies = tally_competitors([late], COMPANY)
        assert tallies[COMPANY].count == 0
        assert "Beta" not in tallies

    def test_running_mean_position(self):
        records = [
            _ranking("1. Beta\n2. Acme"),
            _ranking("1. Acme\n2. Gamma\n3. Beta", stage="final_research"),
            _ranking("1. Beta"),
        ]
        tallies = tally_competitors(records, COMPANY)
        assert tallies["Beta"].position == pytest.approx((1 + 3 + 1) / 3)
        assert tallies["Beta"].frequency == 3
        assert tallies[COMPANY].position == pytest.approx(1.5)
        assert tallies["Gamma"].position == 2.0

    def test_rankings_only_from_position_phases(self):
        records = [_ranking("1. Beta", stage="solution_evaluation")]
        assert "Beta" not in tally_competitors(records, COMPANY)


# ===================================================================
# Capped & rankings views
# ===================================================================


class TestCappedView:
    def test_rest_collects_everything_past_top_five(self):
        counts = {COMPANY: 7, "C1": 40, "C2": 20, "C3": 10, "C4": 8, "C5": 6, "C6": 4, "C7": 3, "C8": 2}
        tallies = _tallies(counts)
        view = capped_view(tallies, COMPANY, top_n=5)

        assert [e.name for e in view] == [COMPANY, "C1", "C2", "C3", "C4", "C5", REST]
        assert [e.count for e in view[1:6]] == [40, 20, 10, 8, 6]
        rest = view[-1]
        assert rest.count == 4 + 3 + 2
        expected_pct = sum(tallies[n].percentage for n in ("C6", "C7", "C8"))
        assert rest.percentage == pytest.approx(expected_pct)
        assert view[0].is_company

    def test_no_rest_when_nothing_left(self):
        tallies = _tallies({COMPANY: 1, "B": 2, "C": 3})
        view = capped_view(tallies, COMPANY)
        assert [e.name for e in view] == [COMPANY, "C", "B"]

    def test_ties_keep_discovery_order(self):
        tallies = _tallies({COMPANY: 1, "First": 2, "Second": 2, "Third": 2})
        view = capped_view(tallies, COMPANY, top_n=2)
        assert [e.name for e in view] == [COMPANY, "First", "Second", REST]

    def test_missing_company_still_listed(self):
        tallies = _tallies({"B": 1})
        view = capped_view(tallies, COMPANY)
        assert view[0].name == COMPANY
        assert view[0].count == 0

    def test_rankings_view_omits_rest(self):
        counts = {COMPANY: 7, "C1": 40, "C2": 20, "C3": 10, "C4": 8, "C5": 6, "C6": 4, "C7": 3, "C8": 2}
        tallies = _tallies(counts)
        tallies["C2"].position = 1.0
        tallies[COMPANY].position = 2.5
        tallies["C1"].position = 4.0
        view = rankings_view(tallies, COMPANY, top_n=5)
        assert REST not in [e.name for e in view]
        assert [e.name for e in view] == ["C2", COMPANY, "C1", "C3", "C4", "C5"]
        assert view[-1].avg_position is None


class TestComputeCompetitors:
    def test_per_engine(self):
        records = [
            _mention(["Beta"], mentioned=True, engine="claude"),
            _mention(["Gamma"], engine="gpt-4"),
            _ranking("1. Gamma\n2. Acme", engine="openai"),
            _mention(["Delta"], engine="unknown-engine"),
        ]
        results = compute_competitors(records, top_n=5)
        assert [r.engine for r in results] == ["claude", "searchgpt"]
        searchgpt = results[1]
        assert searchgpt.display_name == "SearchGPT"
        assert [e.name for e in searchgpt.mentions] == [COMPANY, "Gamma"]
        assert searchgpt.rankings[0].name == "Gamma"
        assert searchgpt.rankings[0].avg_position == 1.0

    def test_company_name_from_records(self):
        assert resolve_company_name([_mention([])]) == COMPANY
        assert resolve_company_name([_mention([])], "Override") == "Override"
        assert resolve_company_name([]) == ""
