# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the curriculum graph, question content and emotional signals."""

import logging

import pytest
from pydantic import ValidationError

from mastery_engine.core.curriculum.models import (
    Concept,
    GradeLevel,
    KnowledgeDomain,
    Subject,
    domains_for,
)
from mastery_engine.core.curriculum.provider import (
    InMemoryCurriculum,
    transitive_prerequisites,
)
from mastery_engine.core.content import AnswerOption, ContentGenerator, GeneratedQuestion
from mastery_engine.core.emotional.constants import EmotionalState
from mastery_engine.core.emotional.signals import (
    EmotionalSignal,
    is_sustained,
    next_negative_streak,
)
from mastery_engine.core.exceptions import ConceptNotFound, MalformedInput


# ============================================================================
# Fixtures
# ============================================================================


def _options(*ids: str) -> tuple[AnswerOption, ...]:
    return tuple(AnswerOption(id=option_id, text=f"Option {option_id}") for option_id in ids)


class FixedContentGenerator(ContentGenerator):
    """Content generator returning one canned question per concept."""

    def generate(self, concept: Concept, difficulty: int) -> GeneratedQuestion:
        return GeneratedQuestion(
            concept_code=concept.code,
            text=f"{concept.title} (level {difficulty})",
            options=_options("a", "b", "c", "d"),
            correct_option_id="b",
        )


# ============================================================================
# Curriculum
# ============================================================================


@pytest.mark.unit
class TestCurriculumModels:
    """Tests for grades, domains and concepts."""

    def test_domain_subjects(self) -> None:
        """Every domain belongs to exactly one subject."""
        assert KnowledgeDomain.FRACTIONS.subject is Subject.MATH
        assert KnowledgeDomain.READING.subject is Subject.ENGLISH
        assert domains_for(Subject.ENGLISH) == {
            KnowledgeDomain.GRAMMAR,
            KnowledgeDomain.READING,
            KnowledgeDomain.WRITING,
            KnowledgeDomain.VOCABULARY,
        }

    def test_grade_labels(self) -> None:
        """Kindergarten is labelled K and grades follow in order."""
        assert GradeLevel.K.label == "K"
        assert GradeLevel.G3.label == "3"
        assert GradeLevel.K.next() is GradeLevel.G1
        assert GradeLevel.G12.next() is None

    def test_difficulty_bounds(self) -> None:
        """Difficulty must stay within 1-10."""
        with pytest.raises(ValidationError):
            Concept(
                code="X",
                title="Too hard",
                domain=KnowledgeDomain.ALGEBRA,
                difficulty=11,
                grade=GradeLevel.G8,
            )


@pytest.mark.unit
class TestInMemoryCurriculum:
    """Tests for the in-memory curriculum provider."""

    def test_get_concept(self, curriculum: InMemoryCurriculum) -> None:
        """Known codes resolve, unknown codes return an error result."""
        assert curriculum.get_concept("1.OA.1").value.title == "Add within 20"

        missing = curriculum.get_concept("9.XX.1")

        assert not missing.success
        assert isinstance(missing.error, ConceptNotFound)

    def test_lists_are_ordered_and_filtered(self, curriculum: InMemoryCurriculum) -> None:
        """Listings are per subject and in ladder order."""
        grade_two = curriculum.list_concepts_by_grade(GradeLevel.G2, Subject.MATH)

        assert [c.code for c in grade_two] == ["2.OA.1", "2.NBT.5"]
        assert [c.code for c in curriculum.list_concepts(Subject.ENGLISH)] == ["1.RF.1"]
        assert len(curriculum) == 9

    def test_duplicate_codes_are_rejected(self, math_concepts: list[Concept]) -> None:
        """Two concepts cannot share a code."""
        with pytest.raises(MalformedInput):
            InMemoryCurriculum(math_concepts + [math_concepts[0]])

    def test_prerequisites(self, curriculum: InMemoryCurriculum) -> None:
        """Direct prerequisites resolve to concepts."""
        result = curriculum.get_prerequisites("3.OA.7")

        assert [c.code for c in result.value] == ["2.NBT.5"]

    def test_unknown_prerequisite_is_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Dangling prerequisite codes are logged and skipped."""
        curriculum = InMemoryCurriculum(
            [
                Concept(
                    code="1.OA.1",
                    title="Add within 20",
                    domain=KnowledgeDomain.OPERATIONS,
                    difficulty=2,
                    grade=GradeLevel.G1,
                    prerequisites=frozenset({"K.GONE"}),
                )
            ]
        )

        with caplog.at_level(logging.WARNING):
            result = curriculum.get_prerequisites("1.OA.1")

        assert result.value == []
        assert "K.GONE" in caplog.text

    def test_transitive_prerequisites(self, curriculum: InMemoryCurriculum) -> None:
        """Every ancestor is collected, the concept itself excluded."""
        assert transitive_prerequisites(curriculum, "3.NF.1") == {
            "2.OA.1",
            "1.OA.2",
            "1.OA.1",
            "K.CC.2",
            "K.CC.1",
        }
        assert transitive_prerequisites(curriculum, "9.XX.1") == set()


# ============================================================================
# Content
# ============================================================================


@pytest.mark.unit
class TestGeneratedQuestion:
    """Tests for generated multiple-choice questions."""

    def test_grading(self, curriculum: InMemoryCurriculum) -> None:
        """Only the correct option id counts as correct."""
        question = FixedContentGenerator().generate(
            curriculum.get_concept("1.OA.1").value, difficulty=2
        )

        assert question.is_correct("b")
        assert not question.is_correct("a")
        assert not question.is_correct(None)

    def test_requires_four_options(self) -> None:
        """Questions carry exactly four options."""
        with pytest.raises(ValidationError):
            GeneratedQuestion(
                concept_code="1.OA.1",
                text="1 + 1?",
                options=_options("a", "b", "c"),
                correct_option_id="a",
            )

    @pytest.mark.parametrize(
        ("ids", "correct"),
        [(("a", "a", "c", "d"), "a"), (("a", "b", "c", "d"), "z")],
    )
    def test_option_ids(self, ids: tuple[str, ...], correct: str) -> None:
        """Ids must be unique and include the correct one."""
        with pytest.raises(ValidationError):
            GeneratedQuestion(
                concept_code="1.OA.1",
                text="1 + 1?",
                options=_options(*ids),
                correct_option_id=correct,
            )


# ============================================================================
# Emotional signals
# ============================================================================


@pytest.mark.unit
class TestEmotionalSignals:
    """Tests for negative-streak tracking."""

    @pytest.mark.parametrize(
        ("state", "confidence", "negative"),
        [
            (EmotionalState.FRUSTRATED, 0.9, True),
            (EmotionalState.BORED, 0.6, True),
            (EmotionalState.BORED, 0.59, False),
            (EmotionalState.CONFUSED, 0.9, False),
            (EmotionalState.ENGAGED, 1.0, False),
        ],
    )
    def test_is_negative(
        self, state: EmotionalState, confidence: float, negative: bool
    ) -> None:
        """Only confident frustration or boredom counts."""
        assert EmotionalSignal(state=state, confidence=confidence).is_negative() is negative

    def test_streak(self) -> None:
        """Negative signals extend, others reset, missing signals keep the streak."""
        frustrated = EmotionalSignal(state=EmotionalState.FRUSTRATED, confidence=0.9)
        calm = EmotionalSignal(state=EmotionalState.NEUTRAL, confidence=0.9)

        streak = next_negative_streak(0, frustrated)
        streak = next_negative_streak(streak, None)
        assert streak == 1
        assert not is_sustained(streak)

        streak = next_negative_streak(streak, frustrated)
        assert is_sustained(streak)

        assert next_negative_streak(streak, calm) == 0
