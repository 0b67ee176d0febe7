# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for spaced repetition: scheduling, queues and reminders."""

import math
from datetime import date, datetime, timedelta

import pytest

from mastery_engine.core.config.settings import ReviewSettings
from mastery_engine.core.exceptions import MalformedInput
from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.review.notifications import (
    REVIEW_DUE,
    ReviewNotifier,
    compose_reminder,
)
from mastery_engine.core.review.queue import (
    ReviewAnswer,
    ReviewSessionSummary,
    build_review_queue,
)
from mastery_engine.core.review.scheduler import (
    ReviewSchedule,
    ReviewUrgency,
    create_schedule,
    describe_interval,
    forecast,
    schedule,
    summarize,
)


# ============================================================================
# Fixtures
# ============================================================================


def _due(code: str, due_at: datetime, **overrides) -> ReviewSchedule:
    values = {"learner_id": "learner-1", "concept_code": code, "due_at": due_at}
    values.update(overrides)
    return ReviewSchedule(**values)


def _belief(code: str, probability: float, updated: datetime | None = None) -> MasteryBelief:
    return MasteryBelief(
        learner_id="learner-1",
        concept_code=code,
        probability=probability,
        practice_count=4,
        correct_count=4,
        last_updated_at=updated,
    )


@pytest.fixture
def workload(start_time: datetime) -> list[ReviewSchedule]:
    """One overdue, one due, one due tomorrow and one far-off review."""
    return [
        _due("A", start_time - timedelta(days=2)),
        _due("B", start_time - timedelta(hours=12)),
        _due("C", start_time + timedelta(days=1)),
        _due("D", start_time + timedelta(days=10)),
    ]


# ============================================================================
# Scheduling
# ============================================================================


@pytest.mark.unit
class TestSchedule:
    """Tests for create_schedule() and schedule()."""

    def test_new_schedule_is_due_tomorrow(self, start_time: datetime) -> None:
        """Freshly mastered concepts come back after one day."""
        review = create_schedule("learner-1", "1.OA.1", start_time)

        assert review.due_at == start_time + timedelta(days=1)
        assert review.interval_days == 1
        assert review.easiness_factor == 2.5
        assert review.review_count == 0
        assert not review.is_due(start_time)

    def test_successful_intervals_grow(self, start_time: datetime) -> None:
        """Intervals go 1, 6, then interval times easiness."""
        review = create_schedule("learner-1", "1.OA.1", start_time)
        intervals = []
        now = start_time
        for _ in range(3):
            now = review.due_at
            review = schedule(review, True, now)
            intervals.append(review.interval_days)

        assert intervals == [1, 6, 15]
        assert review.review_count == 3
        assert review.due_at == now + timedelta(days=15)
        assert review.last_reviewed_at == now

    def test_interval_uses_updated_easiness(self, start_time: datetime) -> None:
        """The third interval multiplies by the raised easiness factor."""
        review = _due(
            "1.OA.1", start_time, interval_days=6, easiness_factor=2.0, review_count=2
        )

        updated = schedule(review, True, start_time)

        assert updated.easiness_factor == pytest.approx(2.1)
        assert updated.interval_days == round(6 * 2.1)

    def test_failure_resets_schedule(self, start_time: datetime) -> None:
        """A lapse resets the streak and interval and lowers easiness."""
        review = _due("1.OA.1", start_time, interval_days=15, review_count=3)

        updated = schedule(review, False, start_time)

        assert updated.review_count == 0
        assert updated.interval_days == 1
        assert updated.easiness_factor == pytest.approx(2.3)
        assert updated.due_at == start_time + timedelta(days=1)

    def test_easiness_is_floored(self, start_time: datetime) -> None:
        """Easiness never drops below 1.3."""
        review = _due("1.OA.1", start_time, easiness_factor=1.4)

        assert schedule(review, False, start_time).easiness_factor == 1.3

    def test_malformed_schedule_is_rejected(self, start_time: datetime) -> None:
        """Negative or non-finite intervals raise."""
        negative = _due("1.OA.1", start_time).model_copy(update={"interval_days": -1})
        nan = _due("1.OA.1", start_time).model_copy(update={"easiness_factor": math.nan})

        with pytest.raises(MalformedInput):
            schedule(negative, True, start_time)
        with pytest.raises(MalformedInput):
            schedule(nan, True, start_time)


# ============================================================================
# Workload summaries
# ============================================================================


@pytest.mark.unit
class TestSummarize:
    """Tests for summarize() and forecast()."""

    def test_summary_counts(
        self, workload: list[ReviewSchedule], start_time: datetime
    ) -> None:
        """Due, overdue, tomorrow and weekly counts are reported."""
        summary = summarize(workload, start_time)

        assert summary.due_now == 2
        assert summary.overdue == 1
        assert summary.due_tomorrow == 1
        assert summary.due_this_week == 3
        assert summary.estimated_minutes == 4
        assert summary.urgency is ReviewUrgency.HIGH

    def test_medium_urgency_within_grace(self, start_time: datetime) -> None:
        """Reviews inside the grace period are due but not overdue."""
        summary = summarize([_due("B", start_time - timedelta(hours=12))], start_time)

        assert summary.urgency is ReviewUrgency.MEDIUM
        assert summary.overdue == 0

    def test_nothing_due(self, start_time: datetime) -> None:
        """An empty workload has no urgency."""
        assert summarize([], start_time).urgency is ReviewUrgency.NONE

    @pytest.mark.parametrize(
        ("overdue", "due", "urgency"),
        [
            (1, 9, ReviewUrgency.HIGH),
            (0, 3, ReviewUrgency.MEDIUM),
            (0, 0, ReviewUrgency.NONE),
        ],
    )
    def test_overdue_dominates_urgency(
        self, start_time: datetime, overdue: int, due: int, urgency: ReviewUrgency
    ) -> None:
        """A single overdue review outranks any number of merely due ones."""
        schedules = [
            _due(f"O{i}", start_time - timedelta(days=3)) for i in range(overdue)
        ] + [_due(f"D{i}", start_time - timedelta(hours=1)) for i in range(due)]

        summary = summarize(schedules, start_time)

        assert summary.due_now == overdue + due
        assert summary.overdue == overdue
        assert summary.urgency is urgency

    def test_forecast(self, workload: list[ReviewSchedule], start_time: datetime) -> None:
        """Already-due reviews count on today, far-off ones are left out."""
        counts = forecast(workload, start_time)

        assert len(counts) == 7
        assert counts[date(2025, 3, 10)] == 2
        assert counts[date(2025, 3, 11)] == 1
        assert sum(counts.values()) == 3

    @pytest.mark.parametrize(
        ("days", "text"),
        [
            (0.01, "less than an hour"),
            (0.5, "12 hours"),
            (1, "1 day"),
            (6, "6 days"),
            (15, "2 weeks"),
            (60, "2 months"),
            (400, "1 year"),
        ],
    )
    def test_describe_interval(self, days: float, text: str) -> None:
        """Intervals read naturally."""
        assert describe_interval(days) == text


# ============================================================================
# Review queue
# ============================================================================


@pytest.mark.unit
class TestReviewQueue:
    """Tests for build_review_queue()."""

    def test_overdue_then_weakest_first(self, start_time: datetime) -> None:
        """Overdue items lead, then the lowest probability."""
        schedules = [
            _due("strong", start_time - timedelta(hours=1)),
            _due("weak", start_time - timedelta(hours=1)),
            _due("late", start_time - timedelta(days=3)),
        ]
        beliefs = {
            "strong": _belief("strong", 0.97, start_time),
            "weak": _belief("weak", 0.80, start_time),
            "late": _belief("late", 0.99, start_time),
        }

        queue = build_review_queue(schedules, beliefs, start_time)

        assert queue.concept_codes == ["late", "weak", "strong"]
        assert queue.items[0].is_overdue
        assert queue.estimated_minutes == 6

    def test_due_items_leave_room_for_refreshers(self, start_time: datetime) -> None:
        """At most max_size - refresher_slots due items are queued."""
        schedules = [
            _due(f"c{i:02d}", start_time - timedelta(hours=1)) for i in range(12)
        ]

        queue = build_review_queue(schedules, {}, start_time)

        assert len(queue) == 7

    def test_stale_mastered_concepts_become_refreshers(self, start_time: datetime) -> None:
        """Mastered concepts untouched for two weeks are appended, oldest first."""
        beliefs = {
            "old": _belief("old", 0.97, start_time - timedelta(days=30)),
            "older": _belief("older", 0.96, start_time - timedelta(days=40)),
            "recent": _belief("recent", 0.97, start_time - timedelta(days=2)),
            "weak": _belief("weak", 0.5, start_time - timedelta(days=40)),
        }
        schedules = [_due("due", start_time)]

        queue = build_review_queue(schedules, beliefs, start_time)

        assert queue.concept_codes == ["due", "older", "old"]
        assert [item.is_refresher for item in queue.items] == [False, True, True]

    def test_nothing_due_and_nothing_stale(self, start_time: datetime) -> None:
        """An empty queue is returned when there is nothing to review."""
        queue = build_review_queue(
            [_due("later", start_time + timedelta(days=2))], {}, start_time
        )

        assert len(queue) == 0
        assert queue.estimated_minutes == 0


@pytest.mark.unit
class TestReviewSessionSummary:
    """Tests for ReviewSessionSummary."""

    def test_retention(self) -> None:
        """Retention is the rounded percentage of recalled items."""
        summary = ReviewSessionSummary(
            total_items=3,
            answers=(
                ReviewAnswer(concept_code="a", correct=True),
                ReviewAnswer(concept_code="b", correct=False),
                ReviewAnswer(concept_code="c", correct=True),
            ),
        )

        assert summary.reviewed == 3
        assert summary.correct_count == 2
        assert summary.incorrect_count == 1
        assert summary.retention_rate == 67
        assert summary.failed_concepts == ["b"]

    def test_empty_summary(self) -> None:
        """No answers means zero retention, not a division error."""
        assert ReviewSessionSummary().retention_rate == 0


# ============================================================================
# Reminders
# ============================================================================


@pytest.mark.unit
class TestReviewNotifier:
    """Tests for ReviewNotifier."""

    def test_compose_reminder(self) -> None:
        """Overdue reminders lead with the overdue count."""
        title, message = compose_reminder(due_now=3, overdue=1, minutes=6)

        assert title == "1 overdue review!"
        assert "1 overdue and 2 due" in message

        title, message = compose_reminder(due_now=2, overdue=0, minutes=4)

        assert title == "2 concepts ready for review"
        assert "about 4 minutes" in message

    def test_creates_one_reminder_per_day(
        self, workload: list[ReviewSchedule], start_time: datetime
    ) -> None:
        """A second reminder on the same UTC day is suppressed."""
        notifier = ReviewNotifier()

        first = notifier.create_reminder("learner-1", workload, start_time)
        second = notifier.create_reminder(
            "learner-1", workload, start_time + timedelta(hours=3)
        )
        next_day = notifier.create_reminder(
            "learner-1", workload, start_time + timedelta(days=1)
        )

        assert first is not None
        assert first.notification_type == REVIEW_DUE
        assert first.due_count == 2
        assert first.expires_at == start_time + timedelta(days=7)
        assert second is None
        assert next_day is not None

    def test_no_reminder_when_nothing_due(self, start_time: datetime) -> None:
        """Learners with nothing due get no reminder."""
        notifier = ReviewNotifier()
        schedules = [_due("later", start_time + timedelta(days=3))]

        assert notifier.create_reminder("learner-1", schedules, start_time) is None

    def test_unread_excludes_expired_and_read(
        self, workload: list[ReviewSchedule], start_time: datetime
    ) -> None:
        """Expired and read reminders are never shown."""
        notifier = ReviewNotifier()
        first = notifier.create_reminder("learner-1", workload, start_time)
        later = start_time + timedelta(days=2)
        second = notifier.create_reminder("learner-1", workload, later)

        assert [n.id for n in notifier.unread("learner-1", later)] == [second.id, first.id]
        assert [n.id for n in notifier.unread("learner-1", start_time + timedelta(days=7))] == [
            second.id
        ]

        assert notifier.mark_read("learner-1", second.id)
        assert notifier.unread("learner-1", later) == [first]
        assert not notifier.mark_read("learner-1", "missing")

    def test_from_settings_uses_configured_expiry(
        self, workload: list[ReviewSchedule], start_time: datetime
    ) -> None:
        """Reminder lifetime follows the review settings."""
        notifier = ReviewNotifier.from_settings(ReviewSettings(notification_expiry_days=3))

        reminder = notifier.create_reminder("learner-1", workload, start_time)

        assert reminder.expires_at == start_time + timedelta(days=3)

    def test_expired_reminders_are_dropped(
        self, workload: list[ReviewSchedule], start_time: datetime
    ) -> None:
        """Expired reminders are released instead of accumulating."""
        notifier = ReviewNotifier(expiry_days=2)
        for day in range(6):
            notifier.create_reminder("learner-1", workload, start_time + timedelta(days=day))

        assert notifier.held_count() == 2

        notifier.create_reminder("learner-1", [], start_time + timedelta(days=30))

        assert notifier.held_count() == 0
        assert notifier.unread("learner-1", start_time + timedelta(days=30)) == []
