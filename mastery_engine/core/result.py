# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Explicit success/failure values for collaborator calls.

Collaborators (curriculum, stores) report expected failures as values
instead of raising, so the caller decides between fallback, retry and
propagation.

Example:
    >>> result = curriculum.get_concept("1.OA.1")
    >>> if result.success:
    ...     concept = result.value
    ... else:
    ...     logger.warning("Lookup failed: %s", result.error)
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from mastery_engine.core.exceptions import MasteryEngineError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a collaborator call.

    Attributes:
        success: Whether the call succeeded.
        value: The produced value when successful.
        error: The failure when unsuccessful.
    """

    success: bool
    value: T | None = None
    error: MasteryEngineError | None = None

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure.

        Raises:
            MasteryEngineError: The error carried by a failed result.
        """
        if not self.success:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        """Return the value on success, otherwise the given default."""
        if self.success:
            return self.value  # type: ignore[return-value]
        return default

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "value": self.value,
            "error": str(self.error) if self.error else None,
        }


def Ok(value: T = None) -> Result[T]:  # noqa: N802
    """Build a successful result."""
    return Result(success=True, value=value)


def Err(error: MasteryEngineError) -> Result[Any]:  # noqa: N802
    """Build a failed result."""
    return Result(success=False, error=error)
