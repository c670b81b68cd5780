"""
Tests for environment-driven service settings.
"""

import pytest

from imagestudio.config import ServiceSettings, load_service_settings

ENV_NAMES = (
    "FETCH_TIMEOUT_SECONDS",
    "FETCH_PROXY",
    "ALLOWED_FETCH_HOSTS",
    "USER_AGENT",
    "OUTPUT_FORMAT",
    "QUALITY",
    "MAX_UPLOAD_MB",
    "MAX_FETCH_MB",
    "MAX_INFLIGHT",
)


@pytest.fixture
def fresh_settings():
    load_service_settings.cache_clear()
    yield load_service_settings
    load_service_settings.cache_clear()


class TestServiceSettings:
    def test_defaults(self, fresh_settings, monkeypatch):
        for name in ENV_NAMES:
            monkeypatch.delenv("IMAGESTUDIO_" + name, raising=False)
        settings = fresh_settings()
        assert settings == ServiceSettings()
        assert settings.allowed_fetch_hosts == ["supabase.co", "supabase.in"]
        assert settings.max_fetch_mb == 6.0

    def test_env_overrides(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("IMAGESTUDIO_FETCH_TIMEOUT_SECONDS", "4")
        monkeypatch.setenv("IMAGESTUDIO_FETCH_PROXY", "http://proxy.internal:3128")
        monkeypatch.setenv("IMAGESTUDIO_ALLOWED_FETCH_HOSTS", " Supabase.co, images.example.com ,")
        monkeypatch.setenv("IMAGESTUDIO_OUTPUT_FORMAT", "PNG")
        monkeypatch.setenv("IMAGESTUDIO_MAX_INFLIGHT", "8")
        settings = fresh_settings()
        assert settings.fetch_timeout_seconds == 4.0
        assert settings.fetch_proxy == "http://proxy.internal:3128"
        assert settings.allowed_fetch_hosts == ["supabase.co", "images.example.com"]
        assert settings.default_output_format == "png"
        assert settings.max_inflight_apply == 8

    def test_values_are_bounded(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("IMAGESTUDIO_QUALITY", "7")
        monkeypatch.setenv("IMAGESTUDIO_MAX_INFLIGHT", "0")
        monkeypatch.setenv("IMAGESTUDIO_FETCH_TIMEOUT_SECONDS", "0")
        settings = fresh_settings()
        assert settings.default_quality == 1.0
        assert settings.max_inflight_apply == 1
        assert settings.fetch_timeout_seconds == 0.5

    def test_wildcard_allows_any_host(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("IMAGESTUDIO_ALLOWED_FETCH_HOSTS", "*")
        monkeypatch.setenv("IMAGESTUDIO_MAX_FETCH_MB", "12")
        settings = fresh_settings()
        assert settings.allowed_fetch_hosts == []
        assert settings.max_fetch_mb == 12.0

    def test_blank_values_are_ignored(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("IMAGESTUDIO_FETCH_PROXY", "   ")
        assert fresh_settings().fetch_proxy is None
