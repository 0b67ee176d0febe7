# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Review queue construction and review-phase summaries.

A review queue mixes two kinds of items:
- Due reviews, most urgent first (overdue, then weakest belief)
- Refreshers: mastered concepts nobody has practiced for a while,
  surfaced before their schedule would bring them back
"""

from collections.abc import Iterable, Mapping
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.mastery.levels import MasteryLevel
from mastery_engine.core.review.scheduler import (
    MINUTES_PER_REVIEW,
    OVERDUE_GRACE_DAYS,
    ReviewSchedule,
)
from mastery_engine.utils.datetime import days_from, ensure_utc

MAX_QUEUE_SIZE = 10
REFRESHER_SLOTS = 3
REFRESHER_STALE_DAYS = 14


class ReviewItem(BaseModel):
    """One concept to review.

    Attributes:
        concept_code: Concept to review.
        probability: Current mastery probability (0.0 if never practiced).
        is_overdue: Past due beyond the grace period.
        is_refresher: Stale mastered concept rather than a due review.
    """

    model_config = ConfigDict(frozen=True)

    concept_code: str
    probability: float = Field(ge=0.0, le=1.0)
    is_overdue: bool = False
    is_refresher: bool = False


class ReviewQueue(BaseModel):
    """Ordered review items for one sitting."""

    model_config = ConfigDict(frozen=True)

    items: tuple[ReviewItem, ...] = ()
    estimated_minutes: int = 0

    @property
    def concept_codes(self) -> list[str]:
        """Codes of the queued concepts, in order."""
        return [item.concept_code for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


def build_review_queue(
    schedules: Iterable[ReviewSchedule],
    beliefs: Mapping[str, MasteryBelief],
    now: datetime,
    max_size: int = MAX_QUEUE_SIZE,
    refresher_slots: int = REFRESHER_SLOTS,
    refresher_stale_days: int = REFRESHER_STALE_DAYS,
    grace_days: float = OVERDUE_GRACE_DAYS,
    minutes_per_review: int = MINUTES_PER_REVIEW,
) -> ReviewQueue:
    """Build the review queue for a learner.

    Due reviews are sorted overdue first, then by lowest mastery
    probability, and capped at max_size - refresher_slots. Up to
    refresher_slots MASTERED concepts untouched for refresher_stale_days
    are appended, oldest first.

    Args:
        schedules: The learner's review schedules.
        beliefs: The learner's beliefs keyed by concept code.
        now: Reference time.
        max_size: Total queue capacity.
        refresher_slots: Capacity reserved for refreshers.
        refresher_stale_days: Days without practice before a refresher.
        grace_days: Days past due before a review counts as overdue.
        minutes_per_review: Estimated minutes per item.

    Returns:
        The review queue (possibly empty).
    """

    def probability_of(code: str) -> float:
        belief = beliefs.get(code)
        return belief.probability if belief else 0.0

    due = [review for review in schedules if review.is_due(now)]
    due.sort(
        key=lambda r: (
            not r.is_overdue(now, grace_days),
            probability_of(r.concept_code),
            ensure_utc(r.due_at),
            r.concept_code,
        )
    )

    items = [
        ReviewItem(
            concept_code=review.concept_code,
            probability=probability_of(review.concept_code),
            is_overdue=review.is_overdue(now, grace_days),
        )
        for review in due[: max(0, max_size - refresher_slots)]
    ]

    queued = {item.concept_code for item in items}
    stale_before = days_from(now, -refresher_stale_days)
    stale = sorted(
        (
            belief
            for code, belief in beliefs.items()
            if code not in queued
            and belief.level is MasteryLevel.MASTERED
            and belief.last_updated_at is not None
            and ensure_utc(belief.last_updated_at) <= stale_before
        ),
        key=lambda b: (ensure_utc(b.last_updated_at), b.concept_code),
    )
    items.extend(
        ReviewItem(
            concept_code=belief.concept_code,
            probability=belief.probability,
            is_refresher=True,
        )
        for belief in stale[:refresher_slots]
    )

    return ReviewQueue(
        items=tuple(items),
        estimated_minutes=len(items) * minutes_per_review,
    )


class ReviewAnswer(BaseModel):
    """Outcome of one review item."""

    model_config = ConfigDict(frozen=True)

    concept_code: str
    correct: bool
    next_due_at: datetime | None = None
    interval_days: float | None = None


class ReviewSessionSummary(BaseModel):
    """Results of a review phase.

    Attributes:
        total_items: Items that were queued.
        answers: Per-item outcomes, in answer order.
        retention_rate: Percentage of answered items recalled (0-100).
    """

    model_config = ConfigDict(frozen=True)

    total_items: int = 0
    answers: tuple[ReviewAnswer, ...] = ()

    @property
    def reviewed(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for answer in self.answers if answer.correct)

    @property
    def incorrect_count(self) -> int:
        return self.reviewed - self.correct_count

    @property
    def retention_rate(self) -> int:
        if not self.answers:
            return 0
        return round(self.correct_count / self.reviewed * 100)

    @property
    def failed_concepts(self) -> list[str]:
        """Concepts answered incorrectly, in answer order."""
        return [answer.concept_code for answer in self.answers if not answer.correct]
