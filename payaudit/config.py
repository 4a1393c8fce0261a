"""Configuration management for payaudit.

Two layers:
- ``Settings`` holds process settings (HTTP bind address, database URL).
- ``AuditConfig`` is the validated struct the audit pipeline consumes.
  It never rejects input: any missing or invalid value falls back to its
  documented default and the fallback is logged.

``AuditSettings`` reads the raw ``LOG_*`` environment variables and hands
them to ``AuditConfig`` for validation.
"""

from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payaudit.enums import LogLevel, OverflowPolicy
from payaudit.logging import get_logger

logger = get_logger(__name__)

_TRUE_WORDS = {"true", "1", "yes"}
_FALSE_WORDS = {"false", "0", "no"}

MIN_FLUSH_INTERVAL_MS = 100


def _parse_bool(value: Any, default: bool, field: str) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    logger.warning("config_invalid_bool", field=field, value=value, default=default)
    return default


def _parse_int(value: Any, default: int, field: str) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        parsed = -1
    if parsed < 0:
        logger.warning("config_invalid_int", field=field, value=value, default=default)
        return default
    return parsed


def _field_default(model: type[BaseModel], info: ValidationInfo) -> Any:
    return model.model_fields[info.field_name].default


class RotationConfig(BaseModel):
    """Log rotation settings. Parsed and validated but not acted upon."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    max_size_bytes: int = 1073741824
    retention_days: int = 90
    compression_enabled: bool = True

    @field_validator("enabled", "compression_enabled", mode="before")
    @classmethod
    def _bools(cls, value: Any, info: ValidationInfo) -> bool:
        return _parse_bool(value, _field_default(cls, info), info.field_name)

    @field_validator("max_size_bytes", "retention_days", mode="before")
    @classmethod
    def _ints(cls, value: Any, info: ValidationInfo) -> int:
        return _parse_int(value, _field_default(cls, info), info.field_name)


class RedactionConfig(BaseModel):
    """Redaction switch and extra sensitive field names."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    custom_fields: list[str] = Field(default_factory=list)

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, value: Any, info: ValidationInfo) -> bool:
        return _parse_bool(value, True, info.field_name)

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _custom_fields(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple, set)):
            logger.warning("config_invalid_field_list", field="custom_fields", value=value)
            return []
        return [str(item).strip() for item in value if str(item).strip()]


class PerformanceConfig(BaseModel):
    """Write budget settings. Parsed and validated but not acted upon."""

    model_config = ConfigDict(frozen=True)

    max_write_time_ms: int = 5
    buffer_size: int = 100

    @field_validator("max_write_time_ms", "buffer_size", mode="before")
    @classmethod
    def _ints(cls, value: Any, info: ValidationInfo) -> int:
        return _parse_int(value, _field_default(cls, info), info.field_name)


class AuditConfig(BaseModel):
    """Validated configuration for the audit pipeline."""

    model_config = ConfigDict(frozen=True)

    min_log_level: LogLevel = LogLevel.INFO
    async_writes: bool = True
    max_queue_size: int = 1000
    flush_interval_ms: int = 1000
    overflow_policy: OverflowPolicy = OverflowPolicy.SPLIT
    rotation: RotationConfig = Field(default_factory=RotationConfig)
    redaction: RedactionConfig = Field(default_factory=RedactionConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)

    @field_validator("min_log_level", mode="before")
    @classmethod
    def _level(cls, value: Any) -> LogLevel:
        if value is None or value == "":
            return LogLevel.INFO
        if isinstance(value, LogLevel):
            return value
        try:
            return LogLevel(str(value).strip().upper())
        except ValueError:
            logger.warning("config_invalid_log_level", value=value, default=LogLevel.INFO.value)
            return LogLevel.INFO

    @field_validator("async_writes", mode="before")
    @classmethod
    def _async_writes(cls, value: Any) -> bool:
        return _parse_bool(value, True, "async_writes")

    @field_validator("max_queue_size", mode="before")
    @classmethod
    def _queue_size(cls, value: Any) -> int:
        size = _parse_int(value, 1000, "max_queue_size")
        if size < 1:
            logger.warning("config_queue_size_too_small", value=size, default=1000)
            return 1000
        return size

    @field_validator("flush_interval_ms", mode="before")
    @classmethod
    def _flush_interval(cls, value: Any) -> int:
        interval = _parse_int(value, 1000, "flush_interval_ms")
        if interval < MIN_FLUSH_INTERVAL_MS:
            logger.warning(
                "config_flush_interval_too_small",
                value=interval,
                minimum=MIN_FLUSH_INTERVAL_MS,
                default=1000,
            )
            return 1000
        return interval

    @field_validator("overflow_policy", mode="before")
    @classmethod
    def _overflow_policy(cls, value: Any) -> OverflowPolicy:
        if value is None or value == "":
            return OverflowPolicy.SPLIT
        if isinstance(value, OverflowPolicy):
            return value
        try:
            return OverflowPolicy(str(value).strip().lower())
        except ValueError:
            logger.warning("config_invalid_overflow_policy", value=value, default="split")
            return OverflowPolicy.SPLIT

    @field_validator("rotation", "redaction", "performance", mode="before")
    @classmethod
    def _sections(cls, value: Any) -> Any:
        return {} if value is None else value


class AuditSettings(BaseSettings):
    """Raw ``LOG_*`` environment variables for the audit pipeline.

    Every field is kept as an unparsed string so that invalid values reach
    ``AuditConfig`` and fall back instead of failing at load time.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str | None = None
    async_writes: str | None = None
    queue_size: str | None = None
    flush_interval: str | None = None
    overflow_policy: str | None = None
    rotation_enabled: str | None = None
    max_size: str | None = None
    retention_days: str | None = None
    compression: str | None = None
    redaction_enabled: str | None = None
    redact_fields: str | None = None
    max_write_time: str | None = None
    buffer_size: str | None = None

    def to_config(self) -> AuditConfig:
        return AuditConfig(
            min_log_level=self.level,
            async_writes=self.async_writes,
            max_queue_size=self.queue_size,
            flush_interval_ms=self.flush_interval,
            overflow_policy=self.overflow_policy,
            rotation={
                "enabled": self.rotation_enabled,
                "max_size_bytes": self.max_size,
                "retention_days": self.retention_days,
                "compression_enabled": self.compression,
            },
            redaction={
                "enabled": self.redaction_enabled,
                "custom_fields": self.redact_fields,
            },
            performance={
                "max_write_time_ms": self.max_write_time,
                "buffer_size": self.buffer_size,
            },
        )


class Settings(BaseSettings):
    """Process settings loaded from ``PAYAUDIT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PAYAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = "127.0.0.1"
    port: int = 3334
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./payaudit.db"

    # Verbosity of the process's own logs, not the audit threshold
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache
def get_audit_config() -> AuditConfig:
    """Load and validate the audit configuration from the environment."""
    return AuditSettings().to_config()
