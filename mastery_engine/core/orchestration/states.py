# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session phases and the guarded transition table.

A live session moves through eleven phases. Only the transitions listed
in ALLOWED_TRANSITIONS are legal; anything else raises InvalidTransition
naming the source phase, the requested phase and the triggering event.

    IDLE            -> DIAGNOSTIC, TEACHING, REVIEW, BOSS_CHALLENGE
    DIAGNOSTIC      -> DIAGNOSTIC, COMPLETED
    TEACHING        -> PRACTICE, EMOTIONAL_CHECK, COMPLETED
    PRACTICE        -> HINT_REQUESTED, STRUGGLING, CELEBRATING, TEACHING,
                       EMOTIONAL_CHECK, COMPLETED
    HINT_REQUESTED  -> PRACTICE, STRUGGLING, EMOTIONAL_CHECK
    STRUGGLING      -> TEACHING, EMOTIONAL_CHECK, COMPLETED
    CELEBRATING     -> TEACHING, PRACTICE, REVIEW, COMPLETED
    BOSS_CHALLENGE  -> CELEBRATING, STRUGGLING, COMPLETED
    REVIEW          -> PRACTICE, CELEBRATING, COMPLETED
    EMOTIONAL_CHECK -> TEACHING, PRACTICE, COMPLETED
    COMPLETED       -> (terminal)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.exceptions import InvalidTransition
from mastery_engine.utils.datetime import ensure_utc


class SessionPhase(str, Enum):
    """Pedagogical phase of a live session."""

    IDLE = "IDLE"
    DIAGNOSTIC = "DIAGNOSTIC"
    TEACHING = "TEACHING"
    PRACTICE = "PRACTICE"
    HINT_REQUESTED = "HINT_REQUESTED"
    STRUGGLING = "STRUGGLING"
    CELEBRATING = "CELEBRATING"
    BOSS_CHALLENGE = "BOSS_CHALLENGE"
    REVIEW = "REVIEW"
    EMOTIONAL_CHECK = "EMOTIONAL_CHECK"
    COMPLETED = "COMPLETED"


class SessionEvent(str, Enum):
    """Events that trigger phase transitions."""

    START_SESSION = "START_SESSION"
    START_DIAGNOSTIC = "START_DIAGNOSTIC"
    DIAGNOSTIC_ANSWER = "DIAGNOSTIC_ANSWER"
    DIAGNOSTIC_COMPLETE = "DIAGNOSTIC_COMPLETE"
    START_PRACTICE = "START_PRACTICE"
    SUBMIT_ANSWER = "SUBMIT_ANSWER"
    REQUEST_HINT = "REQUEST_HINT"
    RETURN_TO_PRACTICE = "RETURN_TO_PRACTICE"
    MASTERY_ACHIEVED = "MASTERY_ACHIEVED"
    STRUGGLE_DETECTED = "STRUGGLE_DETECTED"
    RETEACH = "RETEACH"
    EMOTIONAL_SIGNAL = "EMOTIONAL_SIGNAL"
    EMOTIONAL_CHECK_DONE = "EMOTIONAL_CHECK_DONE"
    START_REVIEW = "START_REVIEW"
    REVIEW_COMPLETE = "REVIEW_COMPLETE"
    START_BOSS = "START_BOSS"
    BOSS_PASSED = "BOSS_PASSED"
    BOSS_FAILED = "BOSS_FAILED"
    ADVANCE_CONCEPT = "ADVANCE_CONCEPT"
    NO_NEXT_CONCEPT = "NO_NEXT_CONCEPT"
    END_SESSION = "END_SESSION"
    SESSION_ABORTED = "SESSION_ABORTED"


P = SessionPhase

ALLOWED_TRANSITIONS: dict[SessionPhase, frozenset[SessionPhase]] = {
    P.IDLE: frozenset({P.DIAGNOSTIC, P.TEACHING, P.REVIEW, P.BOSS_CHALLENGE}),
    P.DIAGNOSTIC: frozenset({P.DIAGNOSTIC, P.COMPLETED}),
    P.TEACHING: frozenset({P.PRACTICE, P.EMOTIONAL_CHECK, P.COMPLETED}),
    P.PRACTICE: frozenset(
        {
            P.HINT_REQUESTED,
            P.STRUGGLING,
            P.CELEBRATING,
            P.TEACHING,
            P.EMOTIONAL_CHECK,
            P.COMPLETED,
        }
    ),
    P.HINT_REQUESTED: frozenset({P.PRACTICE, P.STRUGGLING, P.EMOTIONAL_CHECK}),
    P.STRUGGLING: frozenset({P.TEACHING, P.EMOTIONAL_CHECK, P.COMPLETED}),
    P.CELEBRATING: frozenset({P.TEACHING, P.PRACTICE, P.REVIEW, P.COMPLETED}),
    P.BOSS_CHALLENGE: frozenset({P.CELEBRATING, P.STRUGGLING, P.COMPLETED}),
    P.REVIEW: frozenset({P.PRACTICE, P.CELEBRATING, P.COMPLETED}),
    P.EMOTIONAL_CHECK: frozenset({P.TEACHING, P.PRACTICE, P.COMPLETED}),
    P.COMPLETED: frozenset(),
}

RECOMMENDED_ACTIONS: dict[SessionPhase, str] = {
    P.IDLE: "show_session_menu",
    P.DIAGNOSTIC: "present_diagnostic_question",
    P.TEACHING: "present_concept_explanation",
    P.PRACTICE: "present_practice_problem",
    P.HINT_REQUESTED: "provide_hint",
    P.STRUGGLING: "offer_simpler_approach",
    P.CELEBRATING: "show_mastery_celebration",
    P.BOSS_CHALLENGE: "present_boss_problem",
    P.REVIEW: "present_review_problem",
    P.EMOTIONAL_CHECK: "run_emotional_checkin",
    P.COMPLETED: "show_session_summary",
}


class TransitionRecord(BaseModel):
    """One applied phase transition.

    Attributes:
        from_state: Phase before the transition.
        to_state: Phase after the transition.
        event: Event that triggered it.
        at: When it happened.
        metadata: Free-form context (concept, probability, reason...).
    """

    model_config = ConfigDict(frozen=True)

    from_state: SessionPhase
    to_state: SessionPhase
    event: SessionEvent
    at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


def can_transition(current: SessionPhase, target: SessionPhase) -> bool:
    """Whether the table allows current -> target."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    current: SessionPhase,
    target: SessionPhase,
    event: SessionEvent,
    at: datetime,
    metadata: dict[str, Any] | None = None,
) -> TransitionRecord:
    """Validate and record a phase transition.

    Args:
        current: Phase the session is in.
        target: Requested phase.
        event: Triggering event.
        at: Time of the transition.
        metadata: Optional context stored on the record.

    Returns:
        The transition record.

    Raises:
        InvalidTransition: If current -> target is not in the table.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value, event.value)
    return TransitionRecord(
        from_state=current,
        to_state=target,
        event=event,
        at=ensure_utc(at),
        metadata=metadata or {},
    )


def diagnostic_transition(current: SessionPhase, event: SessionEvent) -> SessionPhase:
    """Map a diagnostic event to its target phase.

    START_DIAGNOSTIC leads from IDLE into DIAGNOSTIC, DIAGNOSTIC_ANSWER
    stays in DIAGNOSTIC and DIAGNOSTIC_COMPLETE ends the session.

    Raises:
        InvalidTransition: If the event does not apply in the current phase.
    """
    routes = {
        SessionEvent.START_DIAGNOSTIC: (P.IDLE, P.DIAGNOSTIC),
        SessionEvent.DIAGNOSTIC_ANSWER: (P.DIAGNOSTIC, P.DIAGNOSTIC),
        SessionEvent.DIAGNOSTIC_COMPLETE: (P.DIAGNOSTIC, P.COMPLETED),
    }
    if event not in routes:
        raise InvalidTransition(current.value, P.DIAGNOSTIC.value, event.value)
    source, target = routes[event]
    if current is not source:
        raise InvalidTransition(current.value, target.value, event.value)
    return target


def recommended_action(phase: SessionPhase) -> str:
    """Action the client should take in a phase."""
    return RECOMMENDED_ACTIONS[phase]
