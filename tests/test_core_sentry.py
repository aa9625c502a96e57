"""Tests for Sentry wiring: release, sampling and per-company tags."""

import sentry_sdk

from xfunnel.core import sentry
from xfunnel.core.config import settings


class TestInitSentry:
    def test_disabled_without_dsn(self, monkeypatch):
        calls = []
        monkeypatch.setattr(settings, "sentry_dsn", "")
        monkeypatch.setattr(sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))
        assert sentry.init_sentry() is False
        assert calls == []

    def test_release_and_tags_from_settings(self, monkeypatch):
        calls = []
        tags = {}
        monkeypatch.setattr(settings, "sentry_dsn", "https://key@sentry.example/1")
        monkeypatch.setattr(settings, "sentry_release", "xfunnel@2.3.4")
        monkeypatch.setattr(settings, "sentry_traces_sample_rate", 0.25)
        monkeypatch.setattr(settings, "report_timezone", "Europe/Berlin")
        monkeypatch.setattr(sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))
        monkeypatch.setattr(sentry_sdk, "set_tag", lambda key, value: tags.__setitem__(key, value))

        assert sentry.init_sentry() is True
        (kwargs,) = calls
        assert kwargs["release"] == "xfunnel@2.3.4"
        assert kwargs["traces_sample_rate"] == 0.25
        assert kwargs["environment"] == settings.app_env
        assert tags["report_timezone"] == "Europe/Berlin"
        assert tags["default_granularity"] == settings.default_granularity

    def test_default_sample_rate_by_environment(self, monkeypatch):
        monkeypatch.setattr(settings, "sentry_traces_sample_rate", None)
        monkeypatch.setattr(settings, "app_env", "production")
        assert sentry._traces_sample_rate() == 0.1
        monkeypatch.setattr(settings, "app_env", "development")
        assert sentry._traces_sample_rate() == 1.0


class TestTagCompany:
    def test_noop_without_dsn(self, monkeypatch):
        tags = {}
        monkeypatch.setattr(settings, "sentry_dsn", "")
        monkeypatch.setattr(sentry_sdk, "set_tag", lambda key, value: tags.__setitem__(key, value))
        sentry.tag_company(5)
        assert tags == {}

    def test_tags_company(self, monkeypatch):
        tags = {}
        monkeypatch.setattr(settings, "sentry_dsn", "https://key@sentry.example/1")
        monkeypatch.setattr(sentry_sdk, "set_tag", lambda key, value: tags.__setitem__(key, value))
        sentry.tag_company(5)
        assert tags == {"company_id": "5"}
