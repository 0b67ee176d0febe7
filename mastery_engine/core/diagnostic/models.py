# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models of the diagnostic placement test."""

from datetime import datetime
from enum import Enum
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.curriculum.models import Concept, GradeLevel, Subject
from mastery_engine.core.mastery.estimator import MasteryBelief

# Confidence in a placement (0.0-0.99); not a mastery probability
PlacementConfidence = NewType("PlacementConfidence", float)


class StopReason(str, Enum):
    """Why a diagnostic stopped asking questions."""

    MAX_QUESTIONS = "max_questions"
    CONFIDENCE_REACHED = "confidence_reached"
    NO_CANDIDATES = "no_candidates"


class DiagnosticResponse(BaseModel):
    """One administered diagnostic question.

    Attributes:
        concept_code: Concept the question assessed.
        index: Position of the concept on the difficulty ladder.
        correct: Whether the answer was correct (timeouts are incorrect).
        answered_at: When the answer was recorded.
    """

    model_config = ConfigDict(frozen=True)

    concept_code: str
    index: int = Field(ge=0)
    correct: bool
    answered_at: datetime


class DiagnosticSession(BaseModel):
    """State of an in-progress placement test.

    The session is ephemeral and immutable: every recorded answer returns
    a new session. Beliefs here are provisional and scoped to the session;
    they never touch the learner's persisted mastery.

    Attributes:
        learner_id: Learner being placed.
        subject: Subject being diagnosed.
        grade: Learner's nominal grade (selects the seed question).
        concepts: Difficulty ladder, ordered by (grade, difficulty, code).
        seed_index: Ladder position of the first question.
        search_low: Lowest ladder position still in the search window.
        search_high: Highest ladder position still in the search window.
        responses: Administered questions, in order.
        beliefs: Provisional beliefs keyed by concept code.
        gaps: Concepts answered incorrectly.
        untested: Concepts skipped because a prerequisite is a gap.
        completed: Whether the test has stopped.
        stop_reason: Why the test stopped.
        started_at: When the test started.
    """

    model_config = ConfigDict(frozen=True)

    learner_id: str
    subject: Subject
    grade: GradeLevel
    concepts: tuple[Concept, ...]
    seed_index: int = Field(ge=0)
    search_low: int
    search_high: int
    responses: tuple[DiagnosticResponse, ...] = ()
    beliefs: dict[str, MasteryBelief] = Field(default_factory=dict)
    gaps: frozenset[str] = frozenset()
    untested: frozenset[str] = frozenset()
    completed: bool = False
    stop_reason: StopReason | None = None
    started_at: datetime

    @property
    def questions_answered(self) -> int:
        return len(self.responses)

    @property
    def asked(self) -> set[str]:
        """Codes of every concept already asked."""
        return {response.concept_code for response in self.responses}

    @property
    def correct_codes(self) -> set[str]:
        """Codes of concepts answered correctly."""
        return {r.concept_code for r in self.responses if r.correct}

    def index_of(self, concept_code: str) -> int | None:
        """Ladder position of a concept, None if it is not on the ladder."""
        for index, concept in enumerate(self.concepts):
            if concept.code == concept_code:
                return index
        return None


class PlacementResult(BaseModel):
    """Outcome of a placement test.

    Attributes:
        learner_id: Learner that was placed.
        subject: Diagnosed subject.
        grade_estimate: Estimated working grade (K = 0.0).
        confidence: Confidence in the placement, distinct from mastery.
        frontier_node_code: Hardest concept the learner securely knows.
        mastered_nodes: Concepts answered correctly with strong belief.
        gap_nodes: Concepts answered incorrectly at or below the frontier.
        untested_nodes: Concepts skipped because a prerequisite is a gap.
        recommended_start_node: Where the first real session should begin.
        total_correct: Correct answers.
        total_questions: Administered questions.
        low_confidence: Too few questions for a trustworthy placement.
        summary: Learner-facing one-line description of the placement.
    """

    model_config = ConfigDict(frozen=True)

    learner_id: str
    subject: Subject
    grade_estimate: float
    confidence: PlacementConfidence = Field(ge=0.0, le=0.99)
    frontier_node_code: str
    mastered_nodes: tuple[str, ...] = ()
    gap_nodes: tuple[str, ...] = ()
    untested_nodes: tuple[str, ...] = ()
    recommended_start_node: str
    total_correct: int = Field(ge=0)
    total_questions: int = Field(ge=0)
    low_confidence: bool = False
    summary: str = ""
