# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Review reminder notifications.

Reminders are in-app records; delivery (push, email) happens elsewhere.
A learner gets at most one review reminder per UTC day, and every
reminder expires seven days after creation whether or not the review
was completed. Expired reminders are suppressed, never re-sent, and are
dropped the next time a reminder is considered for that learner.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.config.settings import ReviewSettings
from mastery_engine.core.review.scheduler import (
    MINUTES_PER_REVIEW,
    OVERDUE_GRACE_DAYS,
    ReviewSchedule,
    summarize,
)
from mastery_engine.utils.datetime import days_from, ensure_utc, utc_date

logger = logging.getLogger(__name__)

NOTIFICATION_EXPIRY_DAYS = 7
REVIEW_DUE = "review_due"


class ReviewNotification(BaseModel):
    """An in-app review reminder.

    Attributes:
        id: Unique notification id.
        learner_id: Recipient.
        notification_type: Always "review_due" for reminders.
        title: Short headline.
        message: Body text.
        due_count: Reviews due when the reminder was created.
        created_at: Creation time.
        expires_at: After this time the reminder is never shown.
        read: Whether the learner has seen it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    learner_id: str
    notification_type: str = REVIEW_DUE
    title: str
    message: str
    due_count: int = Field(ge=0)
    created_at: datetime
    expires_at: datetime
    read: bool = False

    def is_expired(self, now: datetime) -> bool:
        """Whether the reminder has passed its expiry time."""
        return ensure_utc(now) >= ensure_utc(self.expires_at)


def compose_reminder(due_now: int, overdue: int, minutes: int) -> tuple[str, str]:
    """Build the title and message of a review reminder."""
    if overdue > 0:
        title = f"{overdue} overdue review{'s' if overdue > 1 else ''}!"
        message = (
            f"You have {overdue} overdue and {due_now - overdue} due reviews. "
            "A quick review helps lock in your knowledge!"
        )
    else:
        plural = "s need" if due_now > 1 else " needs"
        title = f"{due_now} concept{'s' if due_now > 1 else ''} ready for review"
        message = (
            f"{due_now} concept{plural} a review to stay fresh. "
            f"It'll only take about {minutes} minutes!"
        )
    return title, message


class ReviewNotifier:
    """Creates and tracks review reminders per learner.

    Example:
        >>> notifier = ReviewNotifier()
        >>> reminder = notifier.create_reminder("l1", schedules, now)
        >>> notifier.unread("l1", now)
        [ReviewNotification(...)]
    """

    def __init__(
        self,
        expiry_days: int = NOTIFICATION_EXPIRY_DAYS,
        grace_days: float = OVERDUE_GRACE_DAYS,
        minutes_per_review: int = MINUTES_PER_REVIEW,
    ) -> None:
        """Initialize the notifier.

        Args:
            expiry_days: Lifetime of a reminder.
            grace_days: Days past due before a review counts as overdue.
            minutes_per_review: Estimated minutes per due review.
        """
        self.expiry_days = expiry_days
        self.grace_days = grace_days
        self.minutes_per_review = minutes_per_review
        self._notifications: dict[str, list[ReviewNotification]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: ReviewSettings) -> "ReviewNotifier":
        """Build a notifier from review settings."""
        return cls(
            expiry_days=settings.notification_expiry_days,
            grace_days=settings.overdue_grace_days,
            minutes_per_review=settings.minutes_per_review,
        )

    def held_count(self) -> int:
        """Number of reminders currently held, expired ones included."""
        with self._lock:
            return sum(len(n) for n in self._notifications.values())

    def _prune(self, learner_id: str, now: datetime) -> list[ReviewNotification]:
        """Drop a learner's expired reminders; caller holds the lock."""
        live = [
            n for n in self._notifications.get(learner_id, []) if not n.is_expired(now)
        ]
        if live:
            self._notifications[learner_id] = live
        else:
            self._notifications.pop(learner_id, None)
        return live

    def create_reminder(
        self,
        learner_id: str,
        schedules: Iterable[ReviewSchedule],
        now: datetime,
    ) -> ReviewNotification | None:
        """Create a review reminder if one is warranted.

        Args:
            learner_id: Recipient.
            schedules: The learner's review schedules.
            now: Reference time.

        Returns:
            The new reminder, or None when nothing is due or a reminder
            was already created today.
        """
        summary = summarize(
            schedules,
            now,
            grace_days=self.grace_days,
            minutes_per_review=self.minutes_per_review,
        )
        if summary.due_now == 0:
            with self._lock:
                self._prune(learner_id, now)
            return None

        today = utc_date(now)
        with self._lock:
            existing = self._prune(learner_id, now)
            if any(utc_date(n.created_at) == today for n in existing):
                logger.debug("Review reminder already sent today for %s", learner_id)
                return None

            title, message = compose_reminder(
                summary.due_now, summary.overdue, summary.estimated_minutes
            )
            notification = ReviewNotification(
                learner_id=learner_id,
                title=title,
                message=message,
                due_count=summary.due_now,
                created_at=ensure_utc(now),
                expires_at=days_from(now, self.expiry_days),
            )
            existing.append(notification)
            self._notifications[learner_id] = existing

        logger.info(
            "Created review reminder %s for learner %s (%d due)",
            notification.id,
            learner_id,
            summary.due_now,
        )
        return notification

    def unread(self, learner_id: str, now: datetime) -> list[ReviewNotification]:
        """Return unread, unexpired reminders, newest first."""
        with self._lock:
            notifications = list(self._notifications.get(learner_id, []))
        return sorted(
            (n for n in notifications if not n.read and not n.is_expired(now)),
            key=lambda n: n.created_at,
            reverse=True,
        )

    def mark_read(self, learner_id: str, notification_id: str) -> bool:
        """Mark a reminder as read.

        Returns:
            True if the reminder was found.
        """
        with self._lock:
            notifications = self._notifications.get(learner_id, [])
            for index, notification in enumerate(notifications):
                if notification.id == notification_id:
                    notifications[index] = notification.model_copy(update={"read": True})
                    return True
        return False
