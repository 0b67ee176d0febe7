# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Spaced repetition scheduling (SM-2 style).

Once a concept is mastered it resurfaces for review at growing intervals:
1 day, then 6 days, then the previous interval times the easiness factor.
A failed review resets the interval to 1 day and lowers the easiness
factor, so the concept comes back sooner from then on.

All functions are pure and take "now" explicitly.

Example:
    >>> review = create_schedule("l1", "1.OA.1", now)
    >>> review = schedule(review, correct=True, now=now)   # interval 1
    >>> review = schedule(review, correct=True, now=now)   # interval 6
    >>> review = schedule(review, correct=True, now=now)   # interval 15
"""

import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.exceptions import MalformedInput
from mastery_engine.utils.datetime import days_from, ensure_utc, utc_date

MIN_EASINESS = 1.3
MAX_EASINESS = 2.5
DEFAULT_EASINESS = 2.5
EASINESS_INCREMENT = 0.1
EASINESS_DECREMENT = 0.2

FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

OVERDUE_GRACE_DAYS = 1.0
MINUTES_PER_REVIEW = 2


class ReviewUrgency(str, Enum):
    """How pressing the learner's due reviews are."""

    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"


class ReviewSchedule(BaseModel):
    """Review state of one mastered concept.

    Attributes:
        learner_id: Owner of the schedule.
        concept_code: Concept under review.
        due_at: When the next review is due.
        interval_days: Current review interval.
        easiness_factor: SM-2 easiness factor (1.3-2.5).
        review_count: Consecutive successful reviews.
        last_reviewed_at: Time of the last review, None before the first.
    """

    model_config = ConfigDict(frozen=True)

    learner_id: str
    concept_code: str
    due_at: datetime
    interval_days: float = Field(default=FIRST_INTERVAL_DAYS, ge=0.0)
    easiness_factor: float = Field(default=DEFAULT_EASINESS, ge=MIN_EASINESS, le=MAX_EASINESS)
    review_count: int = Field(default=0, ge=0)
    last_reviewed_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        """Whether the review is due at the given time."""
        return ensure_utc(self.due_at) <= ensure_utc(now)

    def is_overdue(self, now: datetime, grace_days: float = OVERDUE_GRACE_DAYS) -> bool:
        """Whether the review is past due by more than the grace period."""
        return ensure_utc(self.due_at) < days_from(now, -grace_days)


class DueReviewSummary(BaseModel):
    """Snapshot of a learner's review workload.

    Attributes:
        due_now: Reviews due at or before now.
        overdue: Reviews past due beyond the grace period.
        due_tomorrow: Reviews due on the next UTC calendar day.
        due_this_week: Reviews due within the next seven days (including now).
        estimated_minutes: Expected time to clear the due reviews.
        urgency: HIGH if anything is overdue, MEDIUM if anything is due.
    """

    model_config = ConfigDict(frozen=True)

    due_now: int = 0
    overdue: int = 0
    due_tomorrow: int = 0
    due_this_week: int = 0
    estimated_minutes: int = 0
    urgency: ReviewUrgency = ReviewUrgency.NONE


def _check_schedule(review: ReviewSchedule) -> None:
    interval = review.interval_days
    if math.isnan(interval) or math.isinf(interval) or interval < 0:
        raise MalformedInput("interval_days", interval, "must be a finite value >= 0")
    easiness = review.easiness_factor
    if math.isnan(easiness) or math.isinf(easiness):
        raise MalformedInput("easiness_factor", easiness, "must be finite")
    if review.review_count < 0:
        raise MalformedInput("review_count", review.review_count, "must be >= 0")


def create_schedule(learner_id: str, concept_code: str, now: datetime) -> ReviewSchedule:
    """Start reviewing a freshly mastered concept.

    Args:
        learner_id: Owner of the schedule.
        concept_code: Concept that was just mastered.
        now: Time of mastery.

    Returns:
        Schedule due one day from now with the default easiness factor.
    """
    return ReviewSchedule(
        learner_id=learner_id,
        concept_code=concept_code,
        due_at=days_from(now, FIRST_INTERVAL_DAYS),
        interval_days=FIRST_INTERVAL_DAYS,
        easiness_factor=DEFAULT_EASINESS,
        review_count=0,
    )


def schedule(review: ReviewSchedule, correct: bool, now: datetime) -> ReviewSchedule:
    """Apply one review answer.

    Correct answers raise the easiness factor by 0.1 (capped at 2.5) and
    grow the interval: 1 day on the first success, 6 on the second, then
    round(interval * easiness). Incorrect answers reset the streak and the
    interval to 1 day and lower the easiness factor by 0.2 (floored at 1.3).

    Args:
        review: Current schedule.
        correct: Whether the review answer was correct.
        now: Time of the review.

    Returns:
        The updated schedule.

    Raises:
        MalformedInput: If the schedule holds a negative or non-finite
            interval, a non-finite easiness factor or a negative count.
    """
    _check_schedule(review)

    if not correct:
        easiness = max(MIN_EASINESS, review.easiness_factor - EASINESS_DECREMENT)
        return review.model_copy(
            update={
                "review_count": 0,
                "interval_days": FIRST_INTERVAL_DAYS,
                "easiness_factor": easiness,
                "due_at": days_from(now, FIRST_INTERVAL_DAYS),
                "last_reviewed_at": ensure_utc(now),
            }
        )

    easiness = min(MAX_EASINESS, max(MIN_EASINESS, review.easiness_factor + EASINESS_INCREMENT))
    if review.review_count == 0:
        interval: float = FIRST_INTERVAL_DAYS
    elif review.review_count == 1:
        interval = SECOND_INTERVAL_DAYS
    else:
        interval = round(review.interval_days * easiness)

    return review.model_copy(
        update={
            "review_count": review.review_count + 1,
            "interval_days": interval,
            "easiness_factor": easiness,
            "due_at": days_from(now, interval),
            "last_reviewed_at": ensure_utc(now),
        }
    )


def summarize(
    schedules: Iterable[ReviewSchedule],
    now: datetime,
    grace_days: float = OVERDUE_GRACE_DAYS,
    minutes_per_review: int = MINUTES_PER_REVIEW,
) -> DueReviewSummary:
    """Summarize a learner's review workload.

    Args:
        schedules: The learner's review schedules.
        now: Reference time.
        grace_days: Days past due before a review counts as overdue.
        minutes_per_review: Estimated minutes per due review.

    Returns:
        Counts, time estimate and urgency.
    """
    tomorrow = utc_date(now) + timedelta(days=1)
    week_end = days_from(now, 7)

    due_now = overdue = due_tomorrow = due_this_week = 0
    for review in schedules:
        due_at = ensure_utc(review.due_at)
        if review.is_due(now):
            due_now += 1
            if review.is_overdue(now, grace_days):
                overdue += 1
        elif utc_date(due_at) == tomorrow:
            due_tomorrow += 1
        if due_at <= week_end:
            due_this_week += 1

    if overdue > 0:
        urgency = ReviewUrgency.HIGH
    elif due_now > 0:
        urgency = ReviewUrgency.MEDIUM
    else:
        urgency = ReviewUrgency.NONE

    return DueReviewSummary(
        due_now=due_now,
        overdue=overdue,
        due_tomorrow=due_tomorrow,
        due_this_week=due_this_week,
        estimated_minutes=due_now * minutes_per_review,
        urgency=urgency,
    )


def forecast(
    schedules: Iterable[ReviewSchedule],
    now: datetime,
    days: int = 7,
) -> dict[date, int]:
    """Count reviews falling due on each of the next days.

    Reviews already due (including overdue ones) are counted on today.

    Args:
        schedules: The learner's review schedules.
        now: Reference time.
        days: Number of calendar days to cover, starting today.

    Returns:
        Ordered mapping of UTC date to number of reviews due that day.
    """
    today = utc_date(now)
    counts = {today + timedelta(days=offset): 0 for offset in range(days)}
    for review in schedules:
        day = max(today, utc_date(review.due_at))
        if day in counts:
            counts[day] += 1
    return counts


def describe_interval(days: float) -> str:
    """Get a human-readable description of a review interval.

    Args:
        days: Interval in days.

    Returns:
        Description such as "6 days" or "2 weeks".
    """
    if days < 1:
        hours = int(days * 24)
        if hours < 1:
            return "less than an hour"
        return f"{hours} hour{'s' if hours != 1 else ''}"

    whole = int(days)
    if whole == 1:
        return "1 day"
    if whole < 7:
        return f"{whole} days"
    if whole < 30:
        weeks = whole // 7
        return f"{weeks} week{'s' if weeks != 1 else ''}"
    if whole < 365:
        months = whole // 30
        return f"{months} month{'s' if months != 1 else ''}"
    years = whole // 365
    return f"{years} year{'s' if years != 1 else ''}"
