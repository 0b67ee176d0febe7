# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adaptive diagnostic placement engine.

Places a new learner on the curriculum with as few questions as possible.
The subject's concepts form a difficulty ladder ordered by (grade,
difficulty, code); the engine runs a binary search over it:

- The first question is the middle concept of the learner's grade band
- A correct answer moves the search window above the concept, an
  incorrect one moves it below and marks the concept as a gap
- The next question is the unasked concept closest to the middle of the
  window; after a correct answer, concepts whose prerequisites were all
  answered correctly are strongly preferred
- Concepts with a gap prerequisite are never asked, only recorded as
  untested

Each answer also updates a provisional, session-scoped belief with the
knowledge tracing estimator. A correct answer counts as correct evidence
for every transitive prerequisite too, so foundations of a passed concept
build up belief without being asked.

The test stops after the question cap, when no candidate is left, or
once the placement confidence reaches its target.

Example:
    >>> engine = DiagnosticEngine(curriculum, clock=clock)
    >>> session = engine.start("learner-1", GradeLevel.G2, Subject.MATH)
    >>> while (concept := engine.next_question(session)) is not None:
    ...     session = engine.record_answer(session, concept.code, ask(concept))
    >>> placement = engine.build_placement(session)
"""

import logging
from collections.abc import Callable, Mapping

from mastery_engine.core.config.settings import DiagnosticSettings
from mastery_engine.core.curriculum.models import Concept, GradeLevel, Subject
from mastery_engine.core.curriculum.provider import (
    CurriculumProvider,
    transitive_prerequisites,
)
from mastery_engine.core.diagnostic.models import (
    DiagnosticResponse,
    DiagnosticSession,
    PlacementConfidence,
    PlacementResult,
    StopReason,
)
from mastery_engine.core.diagnostic.skill_map import SkillMap, build_skill_map
from mastery_engine.core.exceptions import (
    ConceptNotFound,
    InsufficientData,
    MalformedInput,
)
from mastery_engine.core.mastery.estimator import (
    DEFAULT_PARAMETERS,
    BKTParameters,
    MasteryBelief,
    update,
)
from mastery_engine.core.mastery.levels import (
    DIAGNOSTIC_MASTERED_THRESHOLD,
    PROVISIONAL_PASS_THRESHOLD,
)
from mastery_engine.utils.datetime import Clock, SystemClock

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 0.99

# Convergence: answers within this many ladder steps form a tight boundary
TIGHT_SPREAD = 4

AnswerFn = Callable[[Concept], bool | None]


class DiagnosticEngine:
    """Runs adaptive placement tests against a curriculum.

    Attributes:
        curriculum: Source of concepts and prerequisite edges.
        params: Knowledge tracing parameters for provisional beliefs.
        settings: Question cap, confidence target and related limits.
        clock: Time source for answer timestamps.
    """

    def __init__(
        self,
        curriculum: CurriculumProvider,
        params: BKTParameters = DEFAULT_PARAMETERS,
        settings: DiagnosticSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            curriculum: Curriculum collaborator.
            params: Knowledge tracing parameters.
            settings: Diagnostic settings (defaults if omitted).
            clock: Time source (system clock if omitted).
        """
        self.curriculum = curriculum
        self.params = params
        self.settings = settings or DiagnosticSettings()
        self.clock = clock or SystemClock()

    # =========================================================================
    # Interactive contract
    # =========================================================================

    def start(
        self,
        learner_id: str,
        grade: GradeLevel,
        subject: Subject,
    ) -> DiagnosticSession:
        """Open a placement test.

        Args:
            learner_id: Learner to place.
            grade: Learner's nominal grade.
            subject: Subject to diagnose.

        Returns:
            A fresh diagnostic session.

        Raises:
            ConceptNotFound: If the curriculum has no concepts for the subject.
        """
        concepts = tuple(
            sorted(self.curriculum.list_concepts(subject), key=lambda c: c.ordering_key)
        )
        if not concepts:
            raise ConceptNotFound(
                f"<any {subject.value} concept>",
                {"subject": subject.value},
            )

        band = [i for i, concept in enumerate(concepts) if concept.grade is grade]
        if band:
            seed_index = band[len(band) // 2]
        else:
            logger.warning(
                "No %s concepts at grade %s; seeding diagnostic at easiest concept %s",
                subject.value,
                grade.label,
                concepts[0].code,
            )
            seed_index = 0

        logger.info(
            "Diagnostic started for learner %s (%s, grade %s, %d concepts)",
            learner_id,
            subject.value,
            grade.label,
            len(concepts),
        )
        return DiagnosticSession(
            learner_id=learner_id,
            subject=subject,
            grade=grade,
            concepts=concepts,
            seed_index=seed_index,
            search_low=0,
            search_high=len(concepts) - 1,
            started_at=self.clock.now(),
        )

    def next_question(self, session: DiagnosticSession) -> Concept | None:
        """Select the next concept to ask.

        Returns:
            The next concept, or None when the test is over.
        """
        if session.completed:
            return None
        if session.questions_answered >= self.settings.max_questions:
            return None
        index = self._select_index(session)
        if index is None:
            return None
        return session.concepts[index]

    def record_answer(
        self,
        session: DiagnosticSession,
        concept_code: str,
        correct: bool | None,
    ) -> DiagnosticSession:
        """Apply an answer and return the updated session.

        Args:
            session: Current session.
            concept_code: Concept that was asked.
            correct: Whether the answer was correct; None (timeout) is incorrect.

        Returns:
            The new session, marked completed when a stop condition is met.

        Raises:
            MalformedInput: If the session is completed or the concept was
                already asked.
            ConceptNotFound: If the concept is not on the session's ladder.
        """
        if session.completed:
            raise MalformedInput(
                "concept_code", concept_code, "diagnostic session is already completed"
            )
        index = session.index_of(concept_code)
        if index is None:
            raise ConceptNotFound(concept_code, {"subject": session.subject.value})
        if concept_code in session.asked:
            raise MalformedInput("concept_code", concept_code, "concept was already asked")

        is_correct = bool(correct)
        now = self.clock.now()
        beliefs = dict(session.beliefs)
        beliefs[concept_code] = self._updated(beliefs, session, concept_code, is_correct)

        search_low, search_high = session.search_low, session.search_high
        gaps = set(session.gaps)
        if is_correct:
            search_low = index + 1
            on_ladder = {c.code for c in session.concepts}
            for prereq in sorted(transitive_prerequisites(self.curriculum, concept_code)):
                if prereq in on_ladder:
                    beliefs[prereq] = self._updated(beliefs, session, prereq, True)
        else:
            search_high = index - 1
            gaps.add(concept_code)

        responses = (
            *session.responses,
            DiagnosticResponse(
                concept_code=concept_code,
                index=index,
                correct=is_correct,
                answered_at=now,
            ),
        )
        updated = session.model_copy(
            update={
                "search_low": search_low,
                "search_high": search_high,
                "responses": responses,
                "beliefs": beliefs,
                "gaps": frozenset(gaps),
            }
        )
        updated = updated.model_copy(update={"untested": self._blocked(updated)})

        stop_reason = self._stop_reason(updated)
        if stop_reason is not None:
            logger.info(
                "Diagnostic for learner %s stopped after %d questions: %s",
                session.learner_id,
                updated.questions_answered,
                stop_reason.value,
            )
            updated = updated.model_copy(
                update={"completed": True, "stop_reason": stop_reason}
            )
        return updated

    def build_placement(self, session: DiagnosticSession) -> PlacementResult:
        """Derive the placement from a (normally completed) session.

        Returns:
            The placement result. With fewer than the minimum number of
            questions, confidence is capped and low_confidence is set.
        """
        concepts = session.concepts
        responses = session.responses
        correct_idx = [r.index for r in responses if r.correct]
        incorrect_idx = [r.index for r in responses if not r.correct]

        frontier_index = self._frontier_index(session)
        frontier = concepts[frontier_index]

        mastered = tuple(
            r.concept_code
            for r in responses
            if r.correct
            and self._probability(session.beliefs, r.concept_code)
            >= DIAGNOSTIC_MASTERED_THRESHOLD
        )
        gaps = tuple(
            r.concept_code
            for r in responses
            if not r.correct and r.index <= frontier_index
        )
        start = self._recommended_start(session, frontier, set(mastered))

        low_confidence = len(responses) < self.settings.min_questions
        if low_confidence:
            logger.warning(
                "Low-confidence placement for learner %s: %s",
                session.learner_id,
                InsufficientData(len(responses), self.settings.min_questions),
            )

        grade_estimate = self._grade_estimate(concepts, correct_idx, incorrect_idx)
        return PlacementResult(
            learner_id=session.learner_id,
            subject=session.subject,
            grade_estimate=grade_estimate,
            confidence=self.confidence(session),
            frontier_node_code=frontier.code,
            mastered_nodes=mastered,
            gap_nodes=gaps,
            untested_nodes=tuple(c.code for c in concepts if c.code in session.untested),
            recommended_start_node=start.code,
            total_correct=len(correct_idx),
            total_questions=len(responses),
            low_confidence=low_confidence,
            summary=placement_summary(
                session.subject, grade_estimate, len(correct_idx), len(gaps)
            ),
        )

    def run_diagnostic(
        self,
        learner_id: str,
        grade: GradeLevel,
        subject: Subject,
        answer_fn: AnswerFn,
    ) -> PlacementResult:
        """Run a complete placement test in one call.

        Args:
            learner_id: Learner to place.
            grade: Learner's nominal grade.
            subject: Subject to diagnose.
            answer_fn: Called with each asked concept; returns whether the
                learner answered correctly, or None on timeout.

        Returns:
            The placement result.
        """
        session = self.start(learner_id, grade, subject)
        while (concept := self.next_question(session)) is not None:
            session = self.record_answer(session, concept.code, answer_fn(concept))
        return self.build_placement(session)

    def generate_skill_map(
        self,
        session: DiagnosticSession,
        existing_beliefs: Mapping[str, MasteryBelief] | None = None,
    ) -> SkillMap:
        """Build a per-concept skill map from a diagnostic session.

        Args:
            session: Diagnostic session (normally completed).
            existing_beliefs: Long-term beliefs keyed by concept code, used
                for concepts the diagnostic did not settle.

        Returns:
            The skill map over the session's ladder.
        """
        return build_skill_map(
            session.concepts,
            self.build_placement(session),
            session.beliefs,
            existing_beliefs or {},
        )

    # =========================================================================
    # Confidence
    # =========================================================================

    def confidence(self, session: DiagnosticSession) -> PlacementConfidence:
        """Confidence in the placement the session currently supports.

        Weighted blend of search-space reduction (0.4), convergence of the
        recent answers on a pass/fail boundary (0.4) and the
        share of the question limit used (0.2), capped at 0.99. Below the minimum
        number of questions the confidence is also capped at the
        low-confidence ceiling.
        """
        total = len(session.concepts)
        window = max(0, session.search_high - session.search_low + 1)
        search_reduction = 1 - window / total
        question_ratio = min(1.0, session.questions_answered / self.settings.max_questions)
        boundary = self._boundary_convergence(session)

        value = min(
            MAX_CONFIDENCE,
            0.4 * search_reduction + 0.4 * boundary + 0.2 * question_ratio,
        )
        if session.questions_answered < self.settings.min_questions:
            value = min(value, self.settings.low_confidence_cap)
        return PlacementConfidence(max(0.0, value))

    def _boundary_convergence(self, session: DiagnosticSession) -> float:
        recent = session.responses[-self.settings.convergence_window :]
        passed = [r.index for r in recent if r.correct]
        failed = [r.index for r in recent if not r.correct]
        if not passed or not failed:
            return 0.0

        pairs = [(p, f) for p in passed for f in failed]
        consistent = sum(1 for p, f in pairs if p < f) / len(pairs)

        indices = passed + failed
        spread = max(indices) - min(indices)
        tightness = 1.0 if spread <= TIGHT_SPREAD else TIGHT_SPREAD / spread
        return consistent * tightness

    # =========================================================================
    # Selection helpers
    # =========================================================================

    def _select_index(self, session: DiagnosticSession) -> int | None:
        if not session.responses:
            return session.seed_index

        low, high = session.search_low, session.search_high
        if low > high:
            return None

        asked = session.asked
        candidates = [
            i
            for i in range(low, high + 1)
            if session.concepts[i].code not in asked
            and session.concepts[i].code not in session.untested
        ]
        if not candidates:
            return None

        mid = (low + high) // 2
        if session.responses[-1].correct:
            passed = session.correct_codes
            on_ladder = {c.code for c in session.concepts}

            def is_ready(i: int) -> bool:
                prereqs = session.concepts[i].prerequisites & on_ladder
                return prereqs <= passed

            return min(candidates, key=lambda i: (not is_ready(i), abs(i - mid), i))
        return min(candidates, key=lambda i: (abs(i - mid), i))

    def _blocked(self, session: DiagnosticSession) -> frozenset[str]:
        """Unasked concepts with a gap among their prerequisites."""
        if not session.gaps:
            return frozenset()
        asked = session.asked
        return frozenset(
            concept.code
            for concept in session.concepts
            if concept.code not in asked
            and transitive_prerequisites(self.curriculum, concept.code) & session.gaps
        )

    def _stop_reason(self, session: DiagnosticSession) -> StopReason | None:
        if session.questions_answered >= self.settings.max_questions:
            return StopReason.MAX_QUESTIONS
        if (
            session.questions_answered >= self.settings.min_questions
            and self.confidence(session) >= self.settings.confidence_target
        ):
            return StopReason.CONFIDENCE_REACHED
        if self._select_index(session) is None:
            return StopReason.NO_CANDIDATES
        return None

    # =========================================================================
    # Placement helpers
    # =========================================================================

    def _updated(
        self,
        beliefs: Mapping[str, MasteryBelief],
        session: DiagnosticSession,
        concept_code: str,
        correct: bool,
    ) -> MasteryBelief:
        return update(
            beliefs.get(concept_code),
            correct,
            self.params,
            now=self.clock.now(),
            learner_id=session.learner_id,
            concept_code=concept_code,
        )

    def _probability(self, beliefs: Mapping[str, MasteryBelief], code: str) -> float:
        belief = beliefs.get(code)
        return belief.probability if belief else self.params.p_init

    def _frontier_index(self, session: DiagnosticSession) -> int:
        """Hardest correct concept whose on-ladder prerequisites are provisionally passed."""
        on_ladder = {c.code for c in session.concepts}
        for index in sorted({r.index for r in session.responses if r.correct}, reverse=True):
            prereqs = session.concepts[index].prerequisites & on_ladder
            if all(
                self._probability(session.beliefs, code) >= PROVISIONAL_PASS_THRESHOLD
                for code in prereqs
            ):
                return index
        return 0

    def _recommended_start(
        self,
        session: DiagnosticSession,
        frontier: Concept,
        mastered: set[str],
    ) -> Concept:
        candidates = [
            concept
            for concept in session.concepts
            if concept.code in frontier.prerequisites and concept.code not in mastered
        ]
        if not candidates:
            return frontier
        return min(candidates, key=lambda c: (c.difficulty, c.ordering_key))

    @staticmethod
    def _grade_estimate(
        concepts: tuple[Concept, ...],
        correct_idx: list[int],
        incorrect_idx: list[int],
    ) -> float:
        if not correct_idx:
            return float(concepts[0].grade.value)

        hardest = max(correct_idx)
        harder = min((i for i in incorrect_idx if i > hardest), default=hardest + 1)
        if harder >= len(concepts):
            return float(concepts[hardest].grade.value)
        return (concepts[hardest].grade.value + concepts[harder].grade.value) / 2


def placement_summary(
    subject: Subject,
    grade_estimate: float,
    total_correct: int,
    gap_count: int,
) -> str:
    """Learner-facing sentence describing a placement."""
    match subject:
        case Subject.MATH:
            subject_label = "math"
        case Subject.ENGLISH:
            subject_label = "English"

    if total_correct == 0:
        return "Let's start from the very beginning. Every expert was once a beginner!"

    if grade_estimate < 1:
        grade_label = "Kindergarten"
    else:
        whole = int(grade_estimate)
        through = round((grade_estimate - whole) * 100)
        grade_label = f"Grade {whole} ({through}% through)"

    if gap_count > 0:
        plural = "s" if gap_count > 1 else ""
        return (
            f"Great work! You're at a {grade_label} {subject_label} level. "
            f"We found {gap_count} gap{plural} we'll help you fill in."
        )
    return (
        f"Awesome! You're at a {grade_label} {subject_label} level. "
        "You have a solid foundation, so let's keep building!"
    )
