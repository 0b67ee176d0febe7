# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Emotional signal model and sustained-emotion tracking."""

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.emotional.constants import (
    NEGATIVE_STATES,
    EmotionalState,
    EmotionalThresholds,
)


class EmotionalSignal(BaseModel):
    """One observation from an external emotion detector.

    Attributes:
        state: Detected emotional state.
        confidence: Detector confidence (0.0-1.0).
    """

    model_config = ConfigDict(frozen=True)

    state: EmotionalState
    confidence: float = Field(ge=0.0, le=1.0)

    def is_negative(
        self,
        min_confidence: float = EmotionalThresholds.CONFIDENCE_MODERATE,
    ) -> bool:
        """Whether this signal counts toward a check-in."""
        return self.state in NEGATIVE_STATES and self.confidence >= min_confidence


def next_negative_streak(
    streak: int,
    signal: EmotionalSignal | None,
    min_confidence: float = EmotionalThresholds.CONFIDENCE_MODERATE,
) -> int:
    """Advance the consecutive negative-signal counter.

    A qualifying signal extends the streak, any other signal resets it and
    a missing signal leaves it unchanged.

    Args:
        streak: Current consecutive count.
        signal: Latest signal, if the detector produced one.
        min_confidence: Minimum confidence for a signal to qualify.

    Returns:
        The updated streak.
    """
    if signal is None:
        return streak
    if signal.is_negative(min_confidence):
        return streak + 1
    return 0


def is_sustained(
    streak: int,
    required: int = EmotionalThresholds.MIN_SIGNALS_FOR_STATE_CHANGE,
) -> bool:
    """Whether a negative streak is long enough to act on."""
    return streak >= required
