# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the adaptive placement diagnostic.

The shared math ladder (see conftest) in diagnostic order:
    0 K.CC.1   1 K.CC.2   2 1.OA.1   3 1.OA.2
    4 2.OA.1   5 2.NBT.5  6 3.NF.1   7 3.OA.7
"""

from collections.abc import Callable
from datetime import datetime

import pytest

from mastery_engine.core.config.settings import DiagnosticSettings
from mastery_engine.core.curriculum.models import Concept, GradeLevel, Subject
from mastery_engine.core.curriculum.provider import InMemoryCurriculum
from mastery_engine.core.diagnostic.engine import DiagnosticEngine, placement_summary
from mastery_engine.core.diagnostic.models import StopReason
from mastery_engine.core.diagnostic.skill_map import (
    SEEDED_GAP_PROBABILITY,
    SEEDED_MASTERED_PROBABILITY,
    SkillStatus,
    estimate_hours,
    seed_beliefs,
)
from mastery_engine.core.exceptions import ConceptNotFound, MalformedInput
from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.infrastructure.storage.memory import InMemoryMasteryStore
from mastery_engine.utils.datetime import FrozenClock

KNOWS_FIRST_GRADE = {"K.CC.1", "K.CC.2", "1.OA.1", "1.OA.2"}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def engine(curriculum: InMemoryCurriculum, clock: FrozenClock) -> DiagnosticEngine:
    """Diagnostic engine over the shared curriculum."""
    return DiagnosticEngine(curriculum, clock=clock)


def knows(codes: set[str]) -> Callable[[Concept], bool]:
    """Answer function of a learner who knows exactly the given concepts."""
    return lambda concept: concept.code in codes


def run_session(engine: DiagnosticEngine, answer: Callable[[Concept], bool | None]):
    """Drive a second-grade math diagnostic to completion."""
    session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)
    asked = []
    while (concept := engine.next_question(session)) is not None:
        asked.append(concept.code)
        session = engine.record_answer(session, concept.code, answer(concept))
    return session, asked


# ============================================================================
# Session start
# ============================================================================


@pytest.mark.unit
class TestStart:
    """Tests for DiagnosticEngine.start()."""

    def test_ladder_is_ordered(
        self, engine: DiagnosticEngine, math_concepts: list[Concept]
    ) -> None:
        """Concepts are ordered by grade, difficulty and code."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        assert [c.code for c in session.concepts] == [c.code for c in math_concepts]
        assert session.search_low == 0
        assert session.search_high == 7

    def test_seed_is_middle_of_grade_band(self, engine: DiagnosticEngine) -> None:
        """The first question sits in the middle of the learner's grade."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        assert engine.next_question(session).code == "2.NBT.5"

    def test_grade_without_concepts_seeds_easiest(self, engine: DiagnosticEngine) -> None:
        """Without concepts at the learner's grade the easiest concept is asked."""
        session = engine.start("learner-1", GradeLevel.G5, Subject.MATH)

        assert engine.next_question(session).code == "K.CC.1"

    def test_subject_without_concepts(
        self, math_concepts: list[Concept], clock: FrozenClock
    ) -> None:
        """An empty subject cannot be diagnosed."""
        engine = DiagnosticEngine(InMemoryCurriculum(math_concepts), clock=clock)

        with pytest.raises(ConceptNotFound):
            engine.start("learner-1", GradeLevel.G1, Subject.ENGLISH)


# ============================================================================
# Answers and stop conditions
# ============================================================================


@pytest.mark.unit
class TestRecordAnswer:
    """Tests for record_answer() and the search."""

    def test_binary_search_path(self, engine: DiagnosticEngine) -> None:
        """A first-grade learner is questioned around the boundary."""
        session, asked = run_session(engine, knows(KNOWS_FIRST_GRADE))

        assert asked == ["2.NBT.5", "1.OA.1", "1.OA.2", "2.OA.1"]
        assert session.completed
        assert session.stop_reason is StopReason.NO_CANDIDATES
        assert session.gaps == frozenset({"2.NBT.5", "2.OA.1"})
        assert session.untested == frozenset({"3.NF.1", "3.OA.7"})

    def test_correct_answer_credits_prerequisites(self, engine: DiagnosticEngine) -> None:
        """Prerequisites of a passed concept gain belief without being asked."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        session = engine.record_answer(session, "2.NBT.5", True)

        assert session.beliefs["K.CC.1"].probability == pytest.approx(0.646, abs=1e-3)
        assert "2.OA.1" not in session.beliefs
        assert session.search_low == 6

    def test_gap_blocks_dependent_concepts(self, engine: DiagnosticEngine) -> None:
        """Concepts above a gap are recorded as untested and never asked."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        session = engine.record_answer(session, "2.NBT.5", False)

        assert session.untested == frozenset({"3.OA.7"})
        assert session.search_high == 4
        assert engine.next_question(session).code == "1.OA.1"

    def test_timeout_counts_as_incorrect(self, engine: DiagnosticEngine) -> None:
        """A None answer is recorded as incorrect."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        session = engine.record_answer(session, "2.NBT.5", None)

        assert session.responses[0].correct is False
        assert "2.NBT.5" in session.gaps

    def test_repeated_concept_is_rejected(self, engine: DiagnosticEngine) -> None:
        """Each concept is asked at most once."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)
        session = engine.record_answer(session, "2.NBT.5", True)

        with pytest.raises(MalformedInput):
            engine.record_answer(session, "2.NBT.5", True)

    def test_unknown_concept_is_rejected(self, engine: DiagnosticEngine) -> None:
        """Concepts off the ladder raise ConceptNotFound."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        with pytest.raises(ConceptNotFound):
            engine.record_answer(session, "1.RF.1", True)

    def test_completed_session_is_rejected(self, engine: DiagnosticEngine) -> None:
        """No answers are accepted after the test stopped."""
        session, _ = run_session(engine, knows(KNOWS_FIRST_GRADE))

        assert engine.next_question(session) is None
        with pytest.raises(MalformedInput):
            engine.record_answer(session, "3.NF.1", True)

    def test_question_cap(self, curriculum: InMemoryCurriculum, clock: FrozenClock) -> None:
        """The test stops at the configured number of questions."""
        engine = DiagnosticEngine(
            curriculum, settings=DiagnosticSettings(max_questions=2), clock=clock
        )

        session, asked = run_session(engine, knows(KNOWS_FIRST_GRADE))

        assert len(asked) == 2
        assert session.stop_reason is StopReason.MAX_QUESTIONS

    def test_session_is_immutable(self, engine: DiagnosticEngine) -> None:
        """Recording an answer returns a new session."""
        session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)

        engine.record_answer(session, "2.NBT.5", True)

        assert session.responses == ()


# ============================================================================
# Placement
# ============================================================================


@pytest.mark.unit
class TestPlacement:
    """Tests for build_placement() and run_diagnostic()."""

    def test_first_grade_placement(self, engine: DiagnosticEngine) -> None:
        """The frontier is the hardest securely passed concept."""
        placement = engine.run_diagnostic(
            "learner-1", GradeLevel.G2, Subject.MATH, knows(KNOWS_FIRST_GRADE)
        )

        assert placement.frontier_node_code == "1.OA.2"
        assert placement.mastered_nodes == ("1.OA.1",)
        assert placement.gap_nodes == ()
        assert placement.untested_nodes == ("3.NF.1", "3.OA.7")
        assert placement.recommended_start_node == "1.OA.2"
        assert placement.grade_estimate == 1.5
        assert placement.total_questions == 4
        assert placement.total_correct == 2
        assert placement.confidence == pytest.approx(0.84)
        assert not placement.low_confidence
        assert placement.summary.startswith("Awesome! You're at a Grade 1 (50% through) math")

    def test_placement_is_deterministic(self, curriculum: InMemoryCurriculum) -> None:
        """Identical answers produce identical placements."""
        placements = [
            DiagnosticEngine(curriculum, clock=FrozenClock(datetime(2025, 1, 6))).run_diagnostic(
                "learner-1", GradeLevel.G2, Subject.MATH, knows(KNOWS_FIRST_GRADE)
            )
            for _ in range(2)
        ]

        assert placements[0] == placements[1]

    def test_beginner_placement(self, engine: DiagnosticEngine) -> None:
        """A learner with no correct answers starts at the easiest concept."""
        placement = engine.run_diagnostic(
            "learner-1", GradeLevel.K, Subject.MATH, lambda concept: None
        )

        assert placement.frontier_node_code == "K.CC.1"
        assert placement.recommended_start_node == "K.CC.1"
        assert placement.gap_nodes == ("K.CC.1",)
        assert placement.grade_estimate == 0.0
        assert placement.total_correct == 0
        assert placement.low_confidence
        assert placement.confidence <= 0.4
        assert placement.summary.startswith("Let's start from the very beginning")

    def test_few_answers_cap_confidence(self, engine: DiagnosticEngine) -> None:
        """Fewer than three answers never exceed the low-confidence cap."""
        placement = engine.run_diagnostic(
            "learner-1", GradeLevel.G2, Subject.MATH, lambda concept: True
        )

        assert placement.total_questions == 2
        assert placement.low_confidence
        assert placement.confidence == pytest.approx(0.4)
        assert placement.frontier_node_code == "3.OA.7"
        assert placement.mastered_nodes == ("2.NBT.5",)
        assert placement.grade_estimate == 3.0

    @pytest.mark.parametrize(
        ("grade", "correct", "gaps", "expected"),
        [
            (0.5, 3, 0, "Kindergarten math"),
            (2.25, 5, 1, "Grade 2 (25% through) math level. We found 1 gap "),
            (2.0, 5, 2, "We found 2 gaps"),
        ],
    )
    def test_summary(self, grade: float, correct: int, gaps: int, expected: str) -> None:
        """Summaries mention the grade level and any gaps."""
        assert expected in placement_summary(Subject.MATH, grade, correct, gaps)

    def test_english_summary(self) -> None:
        """The subject label is capitalized for English."""
        assert "English level" in placement_summary(Subject.ENGLISH, 1.0, 2, 0)


# ============================================================================
# Skill map and seeding
# ============================================================================


@pytest.mark.unit
class TestSkillMap:
    """Tests for skill maps and belief seeding."""

    def test_skill_map_statuses(self, engine: DiagnosticEngine) -> None:
        """Every ladder concept gets a status and an estimate."""
        session, _ = run_session(engine, knows(KNOWS_FIRST_GRADE))

        skill_map = engine.generate_skill_map(session)
        statuses = {entry.concept_code: entry.status for entry in skill_map.entries}

        assert skill_map.total == 8
        assert statuses["1.OA.1"] is SkillStatus.MASTERED
        assert statuses["1.OA.2"] is SkillStatus.IN_PROGRESS
        assert statuses["3.NF.1"] is SkillStatus.UNTESTED
        assert skill_map.count(SkillStatus.MASTERED) == 1
        assert skill_map.count(SkillStatus.UNTESTED) == 2
        assert skill_map.remaining_hours == pytest.approx(7.5)

    def test_existing_beliefs_fill_untouched_concepts(
        self, engine: DiagnosticEngine, start_time: datetime
    ) -> None:
        """Long-term beliefs classify concepts the diagnostic skipped."""
        session, _ = run_session(engine, knows(KNOWS_FIRST_GRADE))
        existing = {
            "3.NF.1": MasteryBelief(
                learner_id="learner-1",
                concept_code="3.NF.1",
                probability=0.97,
                practice_count=6,
                correct_count=6,
                last_updated_at=start_time,
            )
        }

        skill_map = engine.generate_skill_map(session, existing)
        entry = next(e for e in skill_map.entries if e.concept_code == "3.NF.1")

        assert entry.status is SkillStatus.MASTERED
        assert entry.estimated_hours == 0.0

    @pytest.mark.parametrize(
        ("difficulty", "hours"), [(1, 0.5), (4, 1.0), (6, 1.5), (8, 2.0), (10, 2.5)]
    )
    def test_estimate_hours(self, difficulty: int, hours: float) -> None:
        """Harder concepts take longer."""
        assert estimate_hours(difficulty) == hours

    def test_seed_beliefs(
        self,
        engine: DiagnosticEngine,
        mastery_store: InMemoryMasteryStore,
        start_time: datetime,
    ) -> None:
        """Mastered concepts and gaps become initial beliefs."""
        mastered = engine.run_diagnostic(
            "learner-1", GradeLevel.G2, Subject.MATH, knows(KNOWS_FIRST_GRADE)
        )
        beginner = engine.run_diagnostic(
            "learner-2", GradeLevel.K, Subject.MATH, lambda concept: False
        )

        seed_beliefs(mastered, mastery_store, start_time)
        seed_beliefs(beginner, mastery_store, start_time)

        assert mastery_store.get("learner-1", "1.OA.1").value.probability == (
            SEEDED_MASTERED_PROBABILITY
        )
        assert mastery_store.get("learner-2", "K.CC.1").value.probability == (
            SEEDED_GAP_PROBABILITY
        )
        assert mastery_store.get("learner-2", "K.CC.1").value.correct_count == 0

    def test_seed_keeps_existing_beliefs(
        self,
        engine: DiagnosticEngine,
        mastery_store: InMemoryMasteryStore,
        start_time: datetime,
    ) -> None:
        """Seeding never overwrites a belief the learner already has."""
        existing = MasteryBelief(
            learner_id="learner-1",
            concept_code="1.OA.1",
            probability=0.5,
            practice_count=2,
            correct_count=1,
        )
        mastery_store.put("learner-1", "1.OA.1", existing, expected_version=None)
        placement = engine.run_diagnostic(
            "learner-1", GradeLevel.G2, Subject.MATH, knows(KNOWS_FIRST_GRADE)
        )

        written = seed_beliefs(placement, mastery_store, start_time)

        assert written == []
        assert mastery_store.get("learner-1", "1.OA.1").value == existing
