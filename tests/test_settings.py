"""
Tests for environment-driven settings.
Run: pytest tests/test_settings.py -v
"""
import pytest
from pydantic import ValidationError

from deployment_bff.config.settings import Settings


class TestSettings:

    def test_preferred_order_parsed(self, monkeypatch):
        monkeypatch.setenv("PREFERRED_ENVIRONMENT_ORDER", " Dev , QA,,prod ")
        assert Settings().preferred_order == ["dev", "qa", "prod"]

    def test_default_preferred_order(self, monkeypatch):
        monkeypatch.delenv("PREFERRED_ENVIRONMENT_ORDER", raising=False)
        assert Settings().preferred_order == ["development", "staging", "production"]

    def test_cors_origins(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "http://a.test, http://b.test")
        assert Settings().cors_origins == ["http://a.test", "http://b.test"]
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "*")
        assert Settings().cors_origins == ["*"]

    def test_log_level_normalised(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert Settings().log_level == "WARNING"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings()

    def test_timeout_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_API_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValidationError):
            Settings()
