# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the mastery engine.

This module defines the exception hierarchy:
- MasteryEngineError: Base exception for all engine errors
- InvalidTransition: A session phase change outside the legal table
- MalformedInput: A probability, parameter or counter outside its domain
- ConceptNotFound: A concept code unknown to the curriculum
- InsufficientData: Too few answers for a trustworthy placement
- StorageConflict: An optimistic write lost against a concurrent update
- SessionNotFound: A live session id with no stored state
"""

from typing import Any


class MasteryEngineError(Exception):
    """Base exception for all mastery engine errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize engine error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class InvalidTransition(MasteryEngineError):
    """Requested session phase change is not in the transition table.

    Attributes:
        from_state: Phase the session was in.
        to_state: Phase that was requested.
        event: Event that triggered the request.
    """

    def __init__(
        self,
        from_state: str,
        to_state: str,
        event: str,
        details: dict[str, Any] | None = None,
    ):
        self.from_state = from_state
        self.to_state = to_state
        self.event = event
        super().__init__(
            f"Invalid transition {from_state} -> {to_state} on {event}",
            details,
        )


class MalformedInput(MasteryEngineError):
    """Input value outside its domain (NaN, infinite, out of range, negative count).

    Attributes:
        field: Name of the offending field.
        value: The rejected value.
    """

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        details: dict[str, Any] | None = None,
    ):
        self.field = field
        self.value = value
        super().__init__(f"Malformed {field}={value!r}: {reason}", details)


class ConceptNotFound(MasteryEngineError):
    """Concept code is unknown to the curriculum.

    Attributes:
        concept_code: The code that was looked up.
    """

    def __init__(self, concept_code: str, details: dict[str, Any] | None = None):
        self.concept_code = concept_code
        super().__init__(f"Concept not found: {concept_code}", details)


class InsufficientData(MasteryEngineError):
    """Too few answers were collected for a reliable placement.

    Attributes:
        questions_answered: Number of answers collected.
        required: Minimum number required.
    """

    def __init__(
        self,
        questions_answered: int,
        required: int,
        details: dict[str, Any] | None = None,
    ):
        self.questions_answered = questions_answered
        self.required = required
        super().__init__(
            f"Placement based on {questions_answered} answers, {required} required",
            details,
        )


class StorageConflict(MasteryEngineError):
    """Optimistic write rejected because the stored version moved on.

    Attributes:
        key: Storage key of the record.
        expected_version: Version the writer read.
        actual_version: Version currently stored.
    """

    def __init__(
        self,
        key: str,
        expected_version: int | None,
        actual_version: int | None,
        details: dict[str, Any] | None = None,
    ):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {key}: expected {expected_version}, "
            f"found {actual_version}",
            details,
        )


class SessionNotFound(MasteryEngineError):
    """No live session is stored under the given id.

    Attributes:
        session_id: The id that was looked up.
    """

    def __init__(self, session_id: str, details: dict[str, Any] | None = None):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}", details)
