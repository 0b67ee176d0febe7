# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Question content collaborator.

Question text and explanations are produced elsewhere. The engine only
needs a structured multiple-choice question: the session orchestrator
grades the learner's choice against the correct option id in
SessionOrchestrator.submit_choice().
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mastery_engine.core.curriculum.models import Concept


class AnswerOption(BaseModel):
    """One multiple-choice option."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str


class GeneratedQuestion(BaseModel):
    """A multiple-choice question for one concept.

    Attributes:
        concept_code: Concept the question assesses.
        text: Question stem.
        options: Exactly four answer options with unique ids.
        correct_option_id: Id of the correct option.
        explanation: Worked explanation shown after answering.
    """

    model_config = ConfigDict(frozen=True)

    concept_code: str
    text: str
    options: tuple[AnswerOption, ...] = Field(min_length=4, max_length=4)
    correct_option_id: str
    explanation: str = ""

    @model_validator(mode="after")
    def validate_options(self) -> "GeneratedQuestion":
        """Ensure option ids are unique and include the correct one."""
        ids = [option.id for option in self.options]
        if len(set(ids)) != len(ids):
            raise ValueError("Option ids must be unique")
        if self.correct_option_id not in ids:
            raise ValueError("correct_option_id must match one of the options")
        return self

    def is_correct(self, chosen_option_id: str | None) -> bool:
        """Grade a choice; no choice (timeout) is incorrect."""
        return chosen_option_id is not None and chosen_option_id == self.correct_option_id


class ContentGenerator(ABC):
    """Produces questions for a concept at a requested difficulty."""

    @abstractmethod
    def generate(self, concept: Concept, difficulty: int) -> GeneratedQuestion:
        """Generate one question.

        Args:
            concept: Concept to assess.
            difficulty: Target difficulty, 1 (easiest) to 10.

        Returns:
            A structured multiple-choice question.
        """
        ...
