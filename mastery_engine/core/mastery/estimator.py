# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bayesian Knowledge Tracing estimator.

Each answer updates the probability that a learner knows a concept in two
stages:

1. Evidence (Bayes rule on the observed answer)
   correct:   p' = p(1-s) / [p(1-s) + (1-p)g]
   incorrect: p' = p s / [p s + (1-p)(1-g)]
2. Learning (chance of acquiring the skill on this opportunity)
   p_next = p' + (1-p') t

where s is the slip probability, g the guess probability and t the
transit probability. The result is clamped to [0, 1] to absorb floating
point rounding only; genuinely malformed input is rejected.

The estimator is a pure function: it never reads a clock or a store, and
the same inputs always produce the same belief.

Example:
    >>> belief = update(None, True, DEFAULT_PARAMETERS,
    ...                 learner_id="l1", concept_code="1.OA.1", now=now)
    >>> round(belief.probability, 3)
    0.646
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, computed_field

from mastery_engine.core.exceptions import MalformedInput
from mastery_engine.core.mastery.levels import (
    ADVANCE_THRESHOLD,
    CHALLENGE_UNLOCK_THRESHOLD,
    REVIEW_PROBABILITY_THRESHOLD,
    REVIEW_STALE_DAYS,
    MasteryLevel,
    MasteryProbability,
)
from mastery_engine.utils.datetime import days_between, ensure_utc

if TYPE_CHECKING:
    from mastery_engine.core.config.settings import BKTSettings


@dataclass(frozen=True)
class BKTParameters:
    """Knowledge tracing parameters.

    Attributes:
        p_init: Prior probability of knowing the concept.
        p_transit: Probability of learning on each opportunity.
        p_slip: Probability of a wrong answer despite knowing.
        p_guess: Probability of a right answer without knowing.
    """

    p_init: float = 0.30
    p_transit: float = 0.10
    p_slip: float = 0.10
    p_guess: float = 0.25

    @classmethod
    def from_settings(cls, settings: "BKTSettings") -> "BKTParameters":
        """Build parameters from BKT_* settings."""
        return cls(
            p_init=settings.p_init,
            p_transit=settings.p_transit,
            p_slip=settings.p_slip,
            p_guess=settings.p_guess,
        )

    def validate(self) -> None:
        """Check every parameter is a finite probability.

        Raises:
            MalformedInput: If a parameter is NaN, infinite or outside [0, 1].
        """
        for name in ("p_init", "p_transit", "p_slip", "p_guess"):
            check_probability(name, getattr(self, name))


DEFAULT_PARAMETERS = BKTParameters()


class MasteryBelief(BaseModel):
    """Belief that a learner knows a concept.

    Beliefs are immutable. Every answer produces a new belief that
    supersedes the previous one; the level is always derived from the
    probability.

    Attributes:
        learner_id: Learner the belief is about.
        concept_code: Concept the belief is about.
        probability: Probability the concept is known (0.0-1.0).
        practice_count: Answers observed so far.
        correct_count: Correct answers observed so far.
        last_updated_at: Time of the last update.
    """

    model_config = ConfigDict(frozen=True)

    learner_id: str
    concept_code: str
    probability: float = Field(ge=0.0, le=1.0)
    practice_count: int = Field(default=0, ge=0)
    correct_count: int = Field(default=0, ge=0)
    last_updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def level(self) -> MasteryLevel:
        """Mastery level derived from the probability."""
        return MasteryLevel.from_probability(self.probability)

    @property
    def accuracy(self) -> float | None:
        """Fraction of correct answers, None before any practice."""
        if self.practice_count == 0:
            return None
        return self.correct_count / self.practice_count


def check_probability(field: str, value: float) -> None:
    """Reject values that are not finite probabilities.

    Raises:
        MalformedInput: If value is NaN, infinite or outside [0, 1].
    """
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise MalformedInput(field, value, "must be a number")
    if math.isnan(value) or math.isinf(value):
        raise MalformedInput(field, value, "must be finite")
    if value < 0.0 or value > 1.0:
        raise MalformedInput(field, value, "must be within [0, 1]")


def _check_prior(prior: MasteryBelief) -> None:
    check_probability("probability", prior.probability)
    if prior.practice_count < 0:
        raise MalformedInput("practice_count", prior.practice_count, "must be >= 0")
    if prior.correct_count < 0:
        raise MalformedInput("correct_count", prior.correct_count, "must be >= 0")
    if prior.correct_count > prior.practice_count:
        raise MalformedInput(
            "correct_count",
            prior.correct_count,
            f"exceeds practice_count {prior.practice_count}",
        )


def posterior(probability: float, correct: bool, params: BKTParameters) -> float:
    """Apply one answer to a probability (evidence then learning stage).

    Args:
        probability: Probability before the answer.
        correct: Whether the answer was correct.
        params: Knowledge tracing parameters.

    Returns:
        Probability after the answer, clamped to [0, 1].
    """
    p = probability
    if correct:
        known = p * (1 - params.p_slip)
        unknown = (1 - p) * params.p_guess
    else:
        known = p * params.p_slip
        unknown = (1 - p) * (1 - params.p_guess)

    total = known + unknown
    evidence = known / total if total > 0 else p
    learned = evidence + (1 - evidence) * params.p_transit
    return min(1.0, max(0.0, learned))


def update(
    prior: MasteryBelief | None,
    correct: bool,
    params: BKTParameters = DEFAULT_PARAMETERS,
    *,
    now: datetime,
    learner_id: str | None = None,
    concept_code: str | None = None,
) -> MasteryBelief:
    """Produce the belief that follows one answer.

    Args:
        prior: Current belief, or None on the first answer (starts at p_init).
        correct: Whether the answer was correct.
        params: Knowledge tracing parameters.
        now: Timestamp recorded on the new belief.
        learner_id: Required when there is no prior.
        concept_code: Required when there is no prior.

    Returns:
        The new belief with counters incremented.

    Raises:
        MalformedInput: If a parameter or the prior is out of its domain,
            or identifiers are missing for a first answer.
    """
    params.validate()

    if prior is None:
        if not learner_id or not concept_code:
            raise MalformedInput(
                "prior", None, "learner_id and concept_code are required without a prior"
            )
        probability = params.p_init
        practice_count = 0
        correct_count = 0
    else:
        _check_prior(prior)
        learner_id = prior.learner_id
        concept_code = prior.concept_code
        probability = prior.probability
        practice_count = prior.practice_count
        correct_count = prior.correct_count

    return MasteryBelief(
        learner_id=learner_id,
        concept_code=concept_code,
        probability=posterior(probability, correct, params),
        practice_count=practice_count + 1,
        correct_count=correct_count + (1 if correct else 0),
        last_updated_at=ensure_utc(now),
    )


def trajectory(
    answers: Iterable[bool],
    params: BKTParameters = DEFAULT_PARAMETERS,
) -> list[MasteryProbability]:
    """Replay a sequence of answers from p_init.

    Returns:
        Probability after each answer, in order.
    """
    params.validate()
    probability = params.p_init
    points: list[MasteryProbability] = []
    for correct in answers:
        probability = posterior(probability, correct, params)
        points.append(MasteryProbability(probability))
    return points


def crossed_into_mastered(
    before: MasteryBelief | None,
    after: MasteryBelief,
) -> bool:
    """Whether an update moved the belief into MASTERED."""
    was_mastered = before is not None and before.level is MasteryLevel.MASTERED
    return not was_mastered and after.level is MasteryLevel.MASTERED


def should_advance(belief: MasteryBelief | None) -> bool:
    """Whether the learner is ready for the next concept."""
    return belief is not None and belief.probability >= ADVANCE_THRESHOLD


def is_challenge_unlocked(belief: MasteryBelief | None) -> bool:
    """Whether a boss challenge is available on the concept."""
    return belief is not None and belief.probability >= CHALLENGE_UNLOCK_THRESHOLD


def should_review(
    belief: MasteryBelief,
    now: datetime,
    stale_days: float = REVIEW_STALE_DAYS,
) -> bool:
    """Whether a practiced concept deserves a review.

    True when the belief is weak, or when it has not been updated for
    longer than stale_days.
    """
    if belief.probability < REVIEW_PROBABILITY_THRESHOLD:
        return True
    if belief.last_updated_at is None:
        return False
    return days_between(belief.last_updated_at, now) > stale_days
