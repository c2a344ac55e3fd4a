"""
Tests for configuration and logging setup.
"""

import json
import logging

from scroll_guard.config import DEFAULT_MODEL, AnalysisConfig
from scroll_guard.logging_config import JsonFormatter, configure_logging, parse_level


class TestAnalysisConfig:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-env")
        monkeypatch.setenv("SCROLL_GUARD_MODEL", "openai/gpt-4o-mini")
        monkeypatch.setenv("SCROLL_GUARD_CACHE_MAX_SIZE", "50")

        config = AnalysisConfig()

        assert config.api_key == "sk-env"
        assert config.model == "openai/gpt-4o-mini"
        assert config.cache_max_size == 50

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SCROLL_GUARD_MODEL", raising=False)
        monkeypatch.delenv("SCROLL_GUARD_CACHE_TTL", raising=False)

        config = AnalysisConfig(api_key="k")

        assert config.model == DEFAULT_MODEL
        assert config.cache_ttl_seconds == 7200

    def test_missing_key_invalid(self):
        """Test that the server refuses to start without an API key."""
        errors = AnalysisConfig(api_key="").validate()

        assert any("OPENROUTER_API_KEY" in e for e in errors)

    def test_valid_config(self, analysis_config):
        assert analysis_config.validate() == []

    def test_bad_values(self):
        errors = AnalysisConfig(api_key="k", temperature=3.0, cache_max_size=0).validate()

        assert len(errors) == 2


class TestLogging:

    def test_parse_level(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level("WARN") == logging.WARNING
        assert parse_level("verbose") == logging.INFO
        assert parse_level(None) == logging.INFO

    def test_json_format_includes_extra(self):
        """Test that extra= fields appear in the JSON line."""
        record = logging.makeLogRecord({
            "name": "scroll_guard.cache_manager",
            "levelname": "INFO",
            "msg": "Cache hit",
            "key": "abcd1234",
        })

        entry = json.loads(JsonFormatter("scroll-guard-backend").format(record))

        assert entry["message"] == "Cache hit"
        assert entry["level"] == "info"
        assert entry["service"] == "scroll-guard-backend"
        assert entry["key"] == "abcd1234"

    def test_configure_logging(self):
        configure_logging("ERROR")

        package_logger = logging.getLogger("scroll_guard")

        assert package_logger.level == logging.ERROR
        assert len(package_logger.handlers) == 1
        assert not package_logger.propagate

        package_logger.handlers.clear()
        package_logger.propagate = True
        package_logger.setLevel(logging.NOTSET)
