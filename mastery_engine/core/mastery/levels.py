# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mastery levels and the probability gates built on them.

0.95 is the one canonical MASTERED threshold. The lower gates below serve
different decisions and are deliberately separate constants.
"""

from enum import Enum
from typing import NewType

# Probability that a learner knows a concept (0.0-1.0)
MasteryProbability = NewType("MasteryProbability", float)

MASTERED_THRESHOLD = 0.95

# Good enough to recommend the next concept
ADVANCE_THRESHOLD = 0.90

# Unlocks a boss challenge on a concept
CHALLENGE_UNLOCK_THRESHOLD = 0.85

# Diagnostic: answered correctly and believed at least this much
DIAGNOSTIC_MASTERED_THRESHOLD = 0.85

# Diagnostic: provisionally passed (frontier and prerequisite checks)
PROVISIONAL_PASS_THRESHOLD = 0.60

# Should-review heuristic
REVIEW_PROBABILITY_THRESHOLD = 0.70
REVIEW_STALE_DAYS = 3


class MasteryLevel(str, Enum):
    """Discrete mastery level derived from a probability."""

    NOVICE = "novice"
    DEVELOPING = "developing"
    PROFICIENT = "proficient"
    ADVANCED = "advanced"
    MASTERED = "mastered"

    @classmethod
    def from_probability(cls, probability: float) -> "MasteryLevel":
        """Map a probability onto its level.

        Thresholds: <0.40 novice, <0.60 developing, <0.80 proficient,
        <0.95 advanced, otherwise mastered.
        """
        if probability < 0.40:
            return cls.NOVICE
        if probability < 0.60:
            return cls.DEVELOPING
        if probability < 0.80:
            return cls.PROFICIENT
        if probability < MASTERED_THRESHOLD:
            return cls.ADVANCED
        return cls.MASTERED

    @property
    def rank(self) -> int:
        """Ordinal position, novice = 0."""
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    MasteryLevel.NOVICE,
    MasteryLevel.DEVELOPING,
    MasteryLevel.PROFICIENT,
    MasteryLevel.ADVANCED,
    MasteryLevel.MASTERED,
]
