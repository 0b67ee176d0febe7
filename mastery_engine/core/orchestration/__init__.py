# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session orchestration: the phase table and live session state.

SessionOrchestrator is imported from orchestration.orchestrator.
"""

from mastery_engine.core.orchestration.session import (
    AnswerOutcome,
    CompletionReason,
    SessionOutcome,
    SessionState,
)
from mastery_engine.core.orchestration.states import (
    ALLOWED_TRANSITIONS,
    RECOMMENDED_ACTIONS,
    SessionEvent,
    SessionPhase,
    TransitionRecord,
    can_transition,
    diagnostic_transition,
    recommended_action,
    transition,
)

__all__ = [
    # Session state
    "SessionState",
    "AnswerOutcome",
    "SessionOutcome",
    "CompletionReason",
    # Phase table
    "SessionPhase",
    "SessionEvent",
    "TransitionRecord",
    "ALLOWED_TRANSITIONS",
    "RECOMMENDED_ACTIONS",
    "can_transition",
    "transition",
    "diagnostic_transition",
    "recommended_action",
]
