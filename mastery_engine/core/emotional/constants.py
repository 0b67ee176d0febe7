# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Constants for emotional signals consumed by the session orchestrator.

Emotion detection happens outside the engine; the orchestrator only reads
a state tag and a confidence and decides whether to run a check-in.
"""

from enum import Enum


class EmotionalState(str, Enum):
    """Emotional states a detector may report for a learner."""

    CONFIDENT = "confident"  # Feeling capable, high self-efficacy
    CURIOUS = "curious"  # Engaged, exploring, asking questions
    FRUSTRATED = "frustrated"  # Struggling, giving up signs
    CONFUSED = "confused"  # Not understanding, needs clarification
    EXCITED = "excited"  # High engagement, discovery moments
    BORED = "bored"  # Disengaged, rushing through
    ANXIOUS = "anxious"  # Worried about performance
    NEUTRAL = "neutral"  # Baseline state
    ENGAGED = "engaged"  # Actively participating


class CheckInOutcome(str, Enum):
    """How an emotional check-in was resolved by the learner."""

    CONTINUE = "continue"  # Back to practice
    REEXPLAIN = "reexplain"  # Explain the concept again
    END = "end"  # Stop the session


# States that count toward a check-in when sustained
NEGATIVE_STATES: frozenset[EmotionalState] = frozenset(
    {EmotionalState.FRUSTRATED, EmotionalState.BORED}
)


class EmotionalThresholds:
    """Thresholds for emotional signal handling."""

    # Confidence thresholds for detection
    CONFIDENCE_HIGH = 0.8
    CONFIDENCE_MODERATE = 0.6
    CONFIDENCE_LOW = 0.4

    # Consecutive qualifying signals before the session reacts
    MIN_SIGNALS_FOR_STATE_CHANGE = 2
