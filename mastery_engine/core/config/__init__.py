# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the mastery engine.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- YAML loader: Deployment overrides loaded from YAML files

Example:
    >>> from mastery_engine.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.review.max_queue_size
    10
"""

from mastery_engine.core.config.settings import (
    BKTSettings,
    DiagnosticSettings,
    RedisSettings,
    ReviewSettings,
    SessionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
    load_settings_from_yaml,
)
from mastery_engine.core.config.yaml_loader import (
    YAMLLoadError,
    deep_merge,
    load_yaml,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "load_settings_from_yaml",
    # Subsettings
    "BKTSettings",
    "DiagnosticSettings",
    "ReviewSettings",
    "SessionSettings",
    "RedisSettings",
    # YAML utilities
    "load_yaml",
    "deep_merge",
    "YAMLLoadError",
]
