# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Live session state and the results handed back to callers.

SessionState is what the session store persists between learner actions.
Counters and flags follow these rules:
- consecutive_incorrect resets on any correct answer and on reteaching
- negative_emotion_streak counts consecutive qualifying emotional signals
- needs_reteach is set on STRUGGLING and cleared when TEACHING starts
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.curriculum.models import Subject
from mastery_engine.core.diagnostic.models import DiagnosticSession, PlacementResult
from mastery_engine.core.emotional.constants import EmotionalState
from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.orchestration.states import (
    SessionPhase,
    TransitionRecord,
    recommended_action,
)
from mastery_engine.core.review.notifications import ReviewNotification
from mastery_engine.core.review.queue import ReviewAnswer, ReviewSessionSummary
from mastery_engine.core.review.scheduler import DueReviewSummary


class CompletionReason(str, Enum):
    """Why a session reached COMPLETED."""

    LEARNER_ENDED = "learner_ended"
    DIAGNOSTIC_COMPLETE = "diagnostic_complete"
    NO_CONCEPT_AVAILABLE = "no_concept_available"
    NO_NEXT_CONCEPT = "no_next_concept"
    SESSION_ENDED_EARLY = "session_ended_early"


class SessionState(BaseModel):
    """Persisted state of one live session.

    Attributes:
        session_id: Unique session identifier.
        learner_id: Learner in the session.
        subject: Subject being tutored.
        state: Current phase.
        concept_code: Concept currently taught or practiced.
        pending_concept_code: Concept to teach once a leading review is done.
        questions_answered: Answers submitted in this session.
        correct_answers: Correct answers in this session.
        correct_streak: Consecutive correct answers.
        consecutive_incorrect: Consecutive incorrect answers at the concept.
        hint_count: Hints requested in this session.
        negative_emotion_streak: Consecutive qualifying negative signals.
        needs_reteach: Learner struggled and must be taught again first.
        emotional_state: Last reported emotional state.
        review_queue: Concept codes of the current review phase.
        review_position: Index of the next review item.
        review_answers: Outcomes of the current review phase.
        diagnostic: Hosted diagnostic, when the session runs one.
        placement: Placement produced by a hosted diagnostic.
        history: Every applied transition, oldest first.
        completion_reason: Why the session completed.
        started_at: Session start.
        ended_at: Session end.
        duration_seconds: Recorded duration (0 for abandoned sessions).
    """

    model_config = ConfigDict(validate_assignment=True)

    session_id: str = Field(default_factory=lambda: str(uuid4()))
    learner_id: str
    subject: Subject
    state: SessionPhase = SessionPhase.IDLE
    concept_code: str | None = None
    pending_concept_code: str | None = None

    questions_answered: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    correct_streak: int = Field(default=0, ge=0)
    consecutive_incorrect: int = Field(default=0, ge=0)
    hint_count: int = Field(default=0, ge=0)
    negative_emotion_streak: int = Field(default=0, ge=0)
    needs_reteach: bool = False
    emotional_state: EmotionalState | None = None

    review_queue: list[str] = Field(default_factory=list)
    review_position: int = Field(default=0, ge=0)
    review_answers: list[ReviewAnswer] = Field(default_factory=list)

    diagnostic: DiagnosticSession | None = None
    placement: PlacementResult | None = None

    history: list[TransitionRecord] = Field(default_factory=list)
    completion_reason: CompletionReason | None = None
    started_at: datetime
    ended_at: datetime | None = None
    duration_seconds: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.state is SessionPhase.COMPLETED

    @property
    def recommended_action(self) -> str:
        """Action the client should take next."""
        return recommended_action(self.state)

    @property
    def current_review_item(self) -> str | None:
        """Concept code of the next review item, None when the queue is done."""
        if self.review_position < len(self.review_queue):
            return self.review_queue[self.review_position]
        return None

    def review_summary(self) -> ReviewSessionSummary:
        """Summary of the current review phase."""
        return ReviewSessionSummary(
            total_items=len(self.review_queue),
            answers=tuple(self.review_answers),
        )


class AnswerOutcome(BaseModel):
    """Result of one submitted answer.

    Attributes:
        session_id: Session the answer belongs to.
        correct: Whether the answer was correct.
        state: Phase after the answer was applied.
        belief: Updated belief for the answered concept.
        mastered: The answer moved the concept into MASTERED.
        transitions: Transitions applied while handling the answer.
        recommended_action: Action the client should take next.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    correct: bool
    state: SessionPhase
    belief: MasteryBelief | None = None
    mastered: bool = False
    transitions: tuple[TransitionRecord, ...] = ()
    recommended_action: str


class SessionOutcome(BaseModel):
    """Summary returned when a session ends.

    Attributes:
        session_id: Ended session.
        learner_id: Learner of the session.
        completion_reason: Why the session completed.
        duration_seconds: Recorded duration (0 for abandoned sessions).
        questions_answered: Answers submitted.
        correct_answers: Correct answers.
        hint_count: Hints requested.
        review: Outcome of the review phase, if the session had one.
        due_reviews: Review workload at session end.
        notification: Review reminder created at session end, if any.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    learner_id: str
    completion_reason: CompletionReason | None
    duration_seconds: int
    questions_answered: int
    correct_answers: int
    hint_count: int
    review: ReviewSessionSummary | None = None
    due_reviews: DueReviewSummary
    notification: ReviewNotification | None = None

    @property
    def accuracy(self) -> float | None:
        if self.questions_answered == 0:
            return None
        return self.correct_answers / self.questions_answered
