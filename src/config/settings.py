# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for engine thresholds, intervals and deployment
settings. Heuristic weights live as named constants next to the code that
uses them; only operational knobs are exposed here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Discovery ===
    discovery_allowed_domains: str = "gov.uk,nhs.uk,police.uk,moderngov.co.uk"
    discovery_external_keywords: str = "manchester,lancashire,northwest"
    discovery_extra_unwanted_patterns: str = "/bin-collection,/contact-form"

    # === Scheduler ===
    scheduler_max_attempts: int = 3
    scheduler_min_interval_seconds: int = 30 * 60
    scheduler_max_interval_seconds: int = 365 * 24 * 3600
    scheduler_default_rate_limit_ms: int = 1000
    crawl_targets_file: Path | None = None

    # === Deduplication ===
    dedup_min_confidence: float = 0.6
    dedup_max_similar_items: int = 10
    dedup_bulk_batch_size: int = 50
    dedup_auto_resolve_threshold: float = 0.9

    # === Orchestrator ===
    orchestrator_max_concurrency: int = 5
    orchestrator_queue_drain_seconds: float = 5.0
    orchestrator_health_interval_seconds: float = 60.0
    orchestrator_default_retry_delay_ms: int = 5000
    crawl_batch_size: int = 25
    crawl_max_concurrency: int = 3
    crawl_max_depth: int = 4

    # === Monitoring ===
    monitoring_perf_buffer_size: int = 10_000
    monitoring_slow_operation_ms: float = 30_000
    monitoring_memory_threshold_bytes: int = 1024**3
    monitoring_error_rate_threshold: float = 0.1
    monitoring_retention_days: int = 7
    monitoring_cleanup_interval_seconds: float = 3600.0

    # === Fetch ===
    fetch_timeout_seconds: float = 30.0
    fetch_user_agent: str = "crawlintel/0.1 (+council data crawler)"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "dedup_min_confidence",
        "dedup_auto_resolve_threshold",
        "monitoring_error_rate_threshold",
    )
    @classmethod
    def validate_ratio(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("ratio thresholds must be within [0, 1]")
        return v

    @field_validator("scheduler_max_attempts", "dedup_bulk_batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.scheduler_min_interval_seconds >= self.scheduler_max_interval_seconds:
            errors.append(
                "SCHEDULER_MIN_INTERVAL_SECONDS must be < SCHEDULER_MAX_INTERVAL_SECONDS"
            )

        if self.orchestrator_max_concurrency < 1:
            errors.append("ORCHESTRATOR_MAX_CONCURRENCY must be >= 1")

        if self.crawl_max_concurrency < 1:
            errors.append("CRAWL_MAX_CONCURRENCY must be >= 1")

        if self.monitoring_perf_buffer_size < 1:
            errors.append("MONITORING_PERF_BUFFER_SIZE must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def allowed_domains_list(self) -> list[str]:
        """Parse comma-separated allowed domains."""
        return _split_csv(self.discovery_allowed_domains)

    @property
    def external_keywords_list(self) -> list[str]:
        """Parse comma-separated external reference keywords."""
        return _split_csv(self.discovery_external_keywords)

    @property
    def extra_unwanted_patterns_list(self) -> list[str]:
        """Parse comma-separated extra unwanted URL patterns."""
        return _split_csv(self.discovery_extra_unwanted_patterns)


def _split_csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
