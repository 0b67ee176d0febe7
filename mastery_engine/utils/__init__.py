# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for the mastery engine.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations and injectable clocks
"""

from mastery_engine.utils.datetime import (
    Clock,
    FrozenClock,
    SystemClock,
    days_between,
    days_from,
    ensure_utc,
    format_iso,
    utc_date,
    utc_now,
)
from mastery_engine.utils.logging import (
    bind_context,
    log_context,
    scoped_log_context,
    setup_logging,
)

__all__ = [
    # Logging
    "setup_logging",
    "bind_context",
    "log_context",
    "scoped_log_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "days_from",
    "days_between",
    "utc_date",
    "format_iso",
    # Clocks
    "Clock",
    "SystemClock",
    "FrozenClock",
]
