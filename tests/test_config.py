"""Tests for configuration loading and fallbacks."""

import pytest
from pydantic import ValidationError

from payaudit.config import AuditConfig, AuditSettings, RedactionConfig, RotationConfig
from payaudit.enums import LogLevel, OverflowPolicy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep LOG_* variables from the outer environment out of these tests."""
    for name in (
        "LOG_LEVEL",
        "LOG_ASYNC_WRITES",
        "LOG_QUEUE_SIZE",
        "LOG_FLUSH_INTERVAL",
        "LOG_OVERFLOW_POLICY",
        "LOG_REDACTION_ENABLED",
        "LOG_REDACT_FIELDS",
        "LOG_RETENTION_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir("/")


class TestAuditConfigDefaults:
    def test_defaults(self):
        config = AuditConfig()
        assert config.min_log_level is LogLevel.INFO
        assert config.async_writes is True
        assert config.max_queue_size == 1000
        assert config.flush_interval_ms == 1000
        assert config.overflow_policy is OverflowPolicy.SPLIT
        assert config.redaction.enabled is True
        assert config.redaction.custom_fields == []
        assert config.rotation.retention_days == 90
        assert config.performance.buffer_size == 100

    def test_none_sections_use_defaults(self):
        config = AuditConfig(rotation=None, redaction=None, performance=None)
        assert config.rotation == RotationConfig()
        assert config.redaction == RedactionConfig()


class TestAuditConfigFallbacks:
    """Invalid values fall back to defaults instead of failing."""

    def test_invalid_level(self):
        assert AuditConfig(min_log_level="VERBOSE").min_log_level is LogLevel.INFO

    def test_level_case_insensitive(self):
        assert AuditConfig(min_log_level="warn").min_log_level is LogLevel.WARN

    def test_invalid_bool(self):
        assert AuditConfig(async_writes="maybe").async_writes is True

    @pytest.mark.parametrize("raw,expected", [("false", False), ("0", False), ("no", False)])
    def test_false_words(self, raw, expected):
        assert AuditConfig(async_writes=raw).async_writes is expected

    @pytest.mark.parametrize("raw", ["abc", "-5", "0"])
    def test_invalid_queue_size(self, raw):
        assert AuditConfig(max_queue_size=raw).max_queue_size == 1000

    @pytest.mark.parametrize("raw", ["50", "99", "soon"])
    def test_flush_interval_below_minimum(self, raw):
        assert AuditConfig(flush_interval_ms=raw).flush_interval_ms == 1000

    def test_flush_interval_at_minimum(self):
        assert AuditConfig(flush_interval_ms="100").flush_interval_ms == 100

    def test_invalid_overflow_policy(self):
        assert AuditConfig(overflow_policy="random").overflow_policy is OverflowPolicy.SPLIT

    def test_nested_invalid_int(self):
        config = AuditConfig(rotation={"retention_days": "forever"})
        assert config.rotation.retention_days == 90

    def test_config_is_frozen(self):
        config = AuditConfig()
        with pytest.raises(ValidationError):
            config.max_queue_size = 5


class TestAuditSettings:
    """Tests for reading LOG_* environment variables."""

    def test_empty_environment(self):
        assert AuditSettings().to_config() == AuditConfig()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.setenv("LOG_ASYNC_WRITES", "false")
        monkeypatch.setenv("LOG_QUEUE_SIZE", "5")
        monkeypatch.setenv("LOG_FLUSH_INTERVAL", "250")
        monkeypatch.setenv("LOG_OVERFLOW_POLICY", "drop_oldest")
        monkeypatch.setenv("LOG_REDACT_FIELDS", "ssn, iban,")

        config = AuditSettings().to_config()

        assert config.min_log_level is LogLevel.ERROR
        assert config.async_writes is False
        assert config.max_queue_size == 5
        assert config.flush_interval_ms == 250
        assert config.overflow_policy is OverflowPolicy.DROP_OLDEST
        assert config.redaction.custom_fields == ["ssn", "iban"]

    def test_invalid_environment_falls_back(self, monkeypatch):
        monkeypatch.setenv("LOG_QUEUE_SIZE", "lots")
        monkeypatch.setenv("LOG_REDACTION_ENABLED", "perhaps")

        config = AuditSettings().to_config()

        assert config.max_queue_size == 1000
        assert config.redaction.enabled is True
