# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Spaced repetition: scheduling, review queues and reminders."""

from mastery_engine.core.review.notifications import (
    NOTIFICATION_EXPIRY_DAYS,
    ReviewNotification,
    ReviewNotifier,
    compose_reminder,
)
from mastery_engine.core.review.queue import (
    ReviewAnswer,
    ReviewItem,
    ReviewQueue,
    ReviewSessionSummary,
    build_review_queue,
)
from mastery_engine.core.review.scheduler import (
    DEFAULT_EASINESS,
    MAX_EASINESS,
    MIN_EASINESS,
    DueReviewSummary,
    ReviewSchedule,
    ReviewUrgency,
    create_schedule,
    describe_interval,
    forecast,
    schedule,
    summarize,
)

__all__ = [
    # Scheduler
    "ReviewSchedule",
    "ReviewUrgency",
    "DueReviewSummary",
    "create_schedule",
    "schedule",
    "summarize",
    "forecast",
    "describe_interval",
    "MIN_EASINESS",
    "MAX_EASINESS",
    "DEFAULT_EASINESS",
    # Queue
    "ReviewItem",
    "ReviewQueue",
    "ReviewAnswer",
    "ReviewSessionSummary",
    "build_review_queue",
    # Notifications
    "ReviewNotification",
    "ReviewNotifier",
    "compose_reminder",
    "NOTIFICATION_EXPIRY_DAYS",
]
