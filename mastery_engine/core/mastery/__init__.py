# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery estimation with Bayesian Knowledge Tracing."""

from mastery_engine.core.mastery.estimator import (
    DEFAULT_PARAMETERS,
    BKTParameters,
    MasteryBelief,
    check_probability,
    crossed_into_mastered,
    is_challenge_unlocked,
    posterior,
    should_advance,
    should_review,
    trajectory,
    update,
)
from mastery_engine.core.mastery.levels import (
    ADVANCE_THRESHOLD,
    CHALLENGE_UNLOCK_THRESHOLD,
    DIAGNOSTIC_MASTERED_THRESHOLD,
    MASTERED_THRESHOLD,
    PROVISIONAL_PASS_THRESHOLD,
    REVIEW_PROBABILITY_THRESHOLD,
    REVIEW_STALE_DAYS,
    MasteryLevel,
    MasteryProbability,
)

__all__ = [
    # Estimator
    "BKTParameters",
    "DEFAULT_PARAMETERS",
    "MasteryBelief",
    "check_probability",
    "posterior",
    "update",
    "trajectory",
    "crossed_into_mastered",
    "should_advance",
    "should_review",
    "is_challenge_unlocked",
    # Levels and gates
    "MasteryLevel",
    "MasteryProbability",
    "MASTERED_THRESHOLD",
    "ADVANCE_THRESHOLD",
    "CHALLENGE_UNLOCK_THRESHOLD",
    "DIAGNOSTIC_MASTERED_THRESHOLD",
    "PROVISIONAL_PASS_THRESHOLD",
    "REVIEW_PROBABILITY_THRESHOLD",
    "REVIEW_STALE_DAYS",
]
