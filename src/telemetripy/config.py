"""
Configuration for the telemetry pipeline.

Uses Pydantic Settings with these sources:
- Environment variables prefixed with TELEMETRIPY_ (highest priority)
- .env file
- Defaults (lowest priority)

Hosts that already hold configuration in camelCase form (logPath,
maxScanLines, ...) can pass it through TelemetrySettings.from_options().
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Recognized option names and the settings field each maps to
OPTION_NAMES = {
    "logPath": "log_path",
    "maxScanLines": "max_scan_lines",
    "slowThresholdMs": "slow_threshold_ms",
    "verySlowThresholdMs": "very_slow_threshold_ms",
    "minSamplesForErrorRate": "min_samples_for_error_rate",
    "rankingLimit": "ranking_limit",
    "defaultDays": "default_days",
    "queueMaxSize": "queue_max_size",
    "excludePaths": "exclude_paths",
    "storageBackend": "storage_backend",
    "sqlitePath": "sqlite_path",
}


class TelemetrySettings(BaseSettings):
    """Request telemetry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRIPY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage_backend: Literal["file", "sqlite"] = Field(
        default="file",
        description="Durable record store: the NDJSON log file or a SQLite database",
    )
    log_path: Path = Field(
        default=Path("logs/performance.log"),
        description="Append-only NDJSON file holding one record per request",
    )
    sqlite_path: str = Field(
        default="logs/performance.db",
        description="SQLite database used when storage_backend is 'sqlite'",
    )
    max_scan_lines: int = Field(
        default=10_000,
        ge=1,
        description="Maximum log lines scanned from the tail per report",
    )
    slow_threshold_ms: int = Field(default=1000, ge=0)
    very_slow_threshold_ms: int = Field(default=3000, ge=0)
    min_samples_for_error_rate: int = Field(
        default=5,
        ge=1,
        description="Endpoints with fewer requests are left out of error-rate rankings",
    )
    ranking_limit: int = Field(default=10, ge=1)
    default_days: int = Field(default=7, ge=1)
    queue_max_size: int = Field(
        default=10_000,
        ge=1,
        description="Pending records held by the background writer before dropping",
    )
    exclude_paths: list[str] = Field(
        default_factory=list,
        description="Glob patterns of request paths that are not recorded",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "TelemetrySettings":
        if self.very_slow_threshold_ms < self.slow_threshold_ms:
            raise ValueError(
                "very_slow_threshold_ms must be >= slow_threshold_ms"
            )
        return self

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "TelemetrySettings":
        """Build settings from a mapping of camelCase or snake_case options.

        Unknown keys raise ValueError.
        """
        values: dict[str, Any] = {}
        fields = set(cls.model_fields)
        for key, value in options.items():
            name = OPTION_NAMES.get(key, key)
            if name not in fields:
                raise ValueError(f"unknown telemetry option: {key}")
            values[name] = value
        return cls(**values)
