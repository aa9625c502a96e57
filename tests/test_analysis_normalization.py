"""Tests for engine, phase and dimension normalization."""

import pytest
from prometheus_client import REGISTRY

from xfunnel.analysis.normalization import (
    dimension_display_name,
    engine_display_name,
    feature_flag,
    is_early_stage,
    is_evaluation_phase,
    is_position_phase,
    map_engine,
    parse_solution_analysis,
    phase_of,
    standardize_region_name,
)
from xfunnel.analysis.types import AnalysisRecord, EngineKey, JourneyStage


def _parse_failures() -> float:
    return REGISTRY.get_sample_value("solution_analysis_parse_failures_total") or 0.0


class TestMapEngine:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("perplexity", EngineKey.PERPLEXITY),
            ("claude", EngineKey.CLAUDE),
            ("claude-2", EngineKey.CLAUDE),
            ("gemini", EngineKey.GEMINI),
            ("gemini-pro", EngineKey.GEMINI),
            ("openai", EngineKey.SEARCHGPT),
            ("gpt-4", EngineKey.SEARCHGPT),
            ("gpt-3.5-turbo", EngineKey.SEARCHGPT),
            ("google_search", EngineKey.AIO),
            ("google-search", EngineKey.AIO),
        ],
    )
    def test_known_providers(self, raw, expected):
        assert map_engine(raw) == expected

    def test_case_insensitive(self):
        assert map_engine("OpenAI") == EngineKey.SEARCHGPT
        assert map_engine("  Perplexity ") == EngineKey.PERPLEXITY

    def test_unknown_is_none(self):
        assert map_engine("yandexgpt") is None

    def test_empty_is_none(self):
        assert map_engine(None) is None
        assert map_engine("") is None

    def test_display_names(self):
        assert engine_display_name(EngineKey.SEARCHGPT) == "SearchGPT"
        assert engine_display_name("aio") == "AIO"
        assert engine_display_name("unknown-engine") == "unknown-engine"


class TestPhases:
    def test_early_stages(self):
        assert is_early_stage("problem_exploration")
        assert is_early_stage("solution_education")
        assert not is_early_stage("solution_comparison")

    def test_position_phases(self):
        assert is_position_phase("solution_comparison")
        assert is_position_phase("final_research")
        assert not is_position_phase("solution_evaluation")

    def test_evaluation_phase(self):
        assert is_evaluation_phase("solution_evaluation")
        assert not is_evaluation_phase("final_research")

    def test_null_and_unknown_phase_match_nothing(self):
        for raw in (None, "", "user_feedback"):
            assert phase_of(raw) is None
            assert not is_early_stage(raw)
            assert not is_position_phase(raw)
            assert not is_evaluation_phase(raw)

    def test_enum_value_accepted(self):
        assert phase_of(JourneyStage.FINAL_RESEARCH) == JourneyStage.FINAL_RESEARCH


class TestSolutionAnalysis:
    def test_dict_passthrough(self):
        assert parse_solution_analysis({"has_feature": "YES"}) == {"has_feature": "YES"}

    def test_json_string(self):
        assert parse_solution_analysis('{"has_feature": "NO"}') == {"has_feature": "NO"}

    def test_none(self):
        assert parse_solution_analysis(None) is None

    def test_malformed_logs_warning_and_counts(self, caplog):
        before = _parse_failures()
        with caplog.at_level("WARNING"):
            assert parse_solution_analysis("{not json", record_id=7) is None
        assert "Unparseable solution_analysis" in caplog.text
        assert _parse_failures() == before + 1

    def test_json_array_is_not_an_object(self):
        assert parse_solution_analysis('["YES"]') is None

    def test_record_parses_once(self, caplog):
        record = AnalysisRecord(solution_analysis="oops", id=3)
        with caplog.at_level("WARNING"):
            assert record.feature_analysis is None
            assert record.feature_analysis is None
        assert caplog.text.count("Unparseable solution_analysis") == 1

    def test_feature_flag(self):
        assert feature_flag({"has_feature": "YES"}) == "YES"
        assert feature_flag({"has_feature": "no"}) == "NO"
        assert feature_flag({"has_feature": "N/A"}) == "UNKNOWN"
        assert feature_flag({}) == "UNKNOWN"


class TestRegions:
    def test_synonyms(self):
        assert standardize_region_name("na") == "North America"
        assert standardize_region_name("North_America") == "North America"
        assert standardize_region_name("latin america") == "LATAM"
        assert standardize_region_name("EU") == "Europe"
        assert standardize_region_name("europe_me_africa") == "EMEA"

    def test_unknown_region_kept(self):
        assert standardize_region_name("APAC") == "APAC"

    def test_display_only_applies_to_regions(self):
        assert dimension_display_name("region", "na") == "North America"
        assert dimension_display_name("vertical", "na") == "na"
