# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities and injectable clocks.

All scheduling and diagnostic code receives "now" from a Clock instead of
reading the wall clock, so that every computation is reproducible in tests.

Design Decisions:
-----------------
1. All timestamps are timezone-aware UTC (datetime.timezone.utc)
2. Naive datetimes coming from collaborators are assumed to be UTC
3. The core never calls datetime.now() directly; it asks its Clock

Usage:
------
    from mastery_engine.utils.datetime import FrozenClock, SystemClock

    clock = SystemClock()
    now = clock.now()

    # In tests
    clock = FrozenClock(datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc))
    clock.advance(days=1)
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_from(moment: datetime, days: float) -> datetime:
    """Shift a datetime by a (possibly fractional) number of days.

    Args:
        moment: Reference datetime.
        days: Number of days to add (negative to go back).

    Returns:
        Timezone-aware UTC datetime.
    """
    return ensure_utc(moment) + timedelta(days=days)


def days_between(start: datetime, end: datetime) -> float:
    """Return the elapsed days between two datetimes as a float."""
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 86400


def utc_date(moment: datetime) -> date:
    """Return the UTC calendar date of a datetime."""
    return ensure_utc(moment).date()


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat()


class Clock(ABC):
    """Source of the current time for the engine."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware UTC time."""
        ...


class SystemClock(Clock):
    """Clock backed by the system wall clock."""

    def now(self) -> datetime:
        return utc_now()


class FrozenClock(Clock):
    """Manually driven clock.

    Time only moves when advance() or set() is called, which makes
    scheduling and TTL behaviour deterministic.
    """

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize the clock.

        Args:
            start: Initial time (defaults to the current UTC time).
        """
        self._now = ensure_utc(start) if start is not None else utc_now()

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        """Jump to an absolute point in time."""
        self._now = ensure_utc(moment)

    def advance(
        self,
        days: float = 0,
        hours: float = 0,
        minutes: float = 0,
        seconds: float = 0,
    ) -> datetime:
        """Move the clock forward and return the new time."""
        self._now = self._now + timedelta(
            days=days, hours=hours, minutes=minutes, seconds=seconds
        )
        return self._now
