# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine configuration settings using Pydantic Settings.

This module provides centralized configuration management for the mastery
engine. Settings are loaded from environment variables with sensible
defaults, and can be overridden from a YAML file for a deployment.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from mastery_engine.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.bkt.p_init
    0.3
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mastery_engine.core.config.yaml_loader import deep_merge, load_yaml


class BKTSettings(BaseSettings):
    """Bayesian Knowledge Tracing parameters.

    Attributes:
        p_init: Prior probability that a concept is already known.
        p_transit: Probability of learning the concept on each opportunity.
        p_slip: Probability of answering wrong despite knowing.
        p_guess: Probability of answering right without knowing.
    """

    model_config = SettingsConfigDict(
        env_prefix="BKT_",
        extra="ignore",
    )

    p_init: float = Field(default=0.30, ge=0.0, le=1.0)
    p_transit: float = Field(default=0.10, ge=0.0, le=1.0)
    p_slip: float = Field(default=0.10, ge=0.0, le=1.0)
    p_guess: float = Field(default=0.25, ge=0.0, le=1.0)


class DiagnosticSettings(BaseSettings):
    """Adaptive placement test configuration.

    Attributes:
        max_questions: Hard cap on administered questions.
        min_questions: Below this count the placement is low-confidence.
        confidence_target: Stop early once placement confidence reaches this.
        low_confidence_cap: Confidence ceiling for low-confidence placements.
        convergence_window: Number of recent answers used for convergence.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIAGNOSTIC_",
        extra="ignore",
    )

    max_questions: int = Field(default=20, ge=1)
    min_questions: int = Field(default=3, ge=1)
    confidence_target: float = Field(default=0.85, gt=0.0, le=1.0)
    low_confidence_cap: float = Field(default=0.4, ge=0.0, le=1.0)
    convergence_window: int = Field(default=5, ge=2)


class ReviewSettings(BaseSettings):
    """Spaced repetition configuration.

    Attributes:
        overdue_grace_days: Days past due before a review counts as overdue.
        minutes_per_review: Estimated minutes per review item.
        max_queue_size: Maximum items in a review queue.
        refresher_slots: Queue slots reserved for stale mastered concepts.
        refresher_stale_days: Days without practice before a refresher.
        notification_expiry_days: Days until a review notification expires.
        forecast_days: Default horizon of the review forecast.
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEW_",
        extra="ignore",
    )

    overdue_grace_days: float = Field(default=1.0, ge=0.0)
    minutes_per_review: int = Field(default=2, ge=1)
    max_queue_size: int = Field(default=10, ge=1)
    refresher_slots: int = Field(default=3, ge=0)
    refresher_stale_days: int = Field(default=14, ge=1)
    notification_expiry_days: int = Field(default=7, ge=1)
    forecast_days: int = Field(default=7, ge=1)


class SessionSettings(BaseSettings):
    """Live session orchestration configuration.

    Attributes:
        struggle_threshold: Consecutive incorrect answers before struggling.
        negative_emotion_signals: Consecutive negative signals before a check-in.
        emotion_confidence_threshold: Minimum signal confidence that counts.
        max_duration_seconds: Longer sessions are recorded with duration 0.
        ttl_seconds: Lifetime of a live session in the session store.
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        extra="ignore",
    )

    struggle_threshold: int = Field(default=3, ge=1)
    negative_emotion_signals: int = Field(default=2, ge=1)
    emotion_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_duration_seconds: int = Field(default=7200, ge=1)
    ttl_seconds: int = Field(default=14400, ge=1)


class RedisSettings(BaseSettings):
    """Redis configuration for the live session store.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
        key_prefix: Prefix for every session key.
        max_connections: Maximum connection pool size.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0
    key_prefix: str = "mastery:session"
    max_connections: int = 50

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is None:
            return f"redis://{self.host}:{self.port}/{self.database}"
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class Settings(BaseSettings):
    """Main engine settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        bkt: Knowledge tracing parameters.
        diagnostic: Placement test settings.
        review: Spaced repetition settings.
        session: Session orchestration settings.
        redis: Redis session store settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    bkt: BKTSettings = Field(default_factory=BKTSettings)
    diagnostic: DiagnosticSettings = Field(default_factory=DiagnosticSettings)
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    @model_validator(mode="after")
    def validate_review_queue(self) -> Self:
        """Validate that refresher slots fit in the review queue.

        Raises:
            ValueError: If refresher slots leave no room for due reviews.
        """
        if self.review.refresher_slots >= self.review.max_queue_size:
            raise ValueError(
                "REVIEW_REFRESHER_SLOTS must be smaller than REVIEW_MAX_QUEUE_SIZE."
            )
        if self.bkt.p_slip + self.bkt.p_guess >= 1.0:
            raise ValueError(
                "BKT_P_SLIP + BKT_P_GUESS must be below 1.0 for the model to be identifiable."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()


def load_settings_from_yaml(path: Path) -> Settings:
    """Build settings with deployment overrides from a YAML file.

    Values from the file take precedence over environment variables and
    defaults. Nested sections (bkt, review, ...) are merged key by key.

    Args:
        path: Path to the YAML override file.

    Returns:
        A new Settings instance (the cached singleton is untouched).

    Raises:
        YAMLLoadError: If the file cannot be loaded.
        pydantic.ValidationError: If an override value is invalid.

    Example:
        >>> # config/engine.yaml
        >>> # bkt:
        >>> #   p_init: 0.2
        >>> settings = load_settings_from_yaml(Path("config/engine.yaml"))
    """
    overrides = load_yaml(path)
    merged = deep_merge(Settings().model_dump(), overrides)
    return Settings(**merged)
