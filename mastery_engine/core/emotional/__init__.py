# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Emotional signal handling for live sessions."""

from mastery_engine.core.emotional.constants import (
    NEGATIVE_STATES,
    CheckInOutcome,
    EmotionalState,
    EmotionalThresholds,
)
from mastery_engine.core.emotional.signals import (
    EmotionalSignal,
    is_sustained,
    next_negative_streak,
)

__all__ = [
    "CheckInOutcome",
    "EmotionalSignal",
    "EmotionalState",
    "EmotionalThresholds",
    "NEGATIVE_STATES",
    "is_sustained",
    "next_negative_streak",
]
