# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session orchestrator: transition policy for live tutoring sessions.

The orchestrator is the entry point for every learner action. It loads
the session from the session store, consults the mastery estimator and
the review scheduler, moves the session through the phase table and
stores it again.

Practice policy, applied after each practice answer:
1. The belief is updated atomically per (learner, concept)
2. Crossing into MASTERED goes to CELEBRATING and starts a review schedule
3. Otherwise, too many consecutive incorrect answers go to STRUGGLING
4. Otherwise, sustained frustration or boredom goes to EMOTIONAL_CHECK
5. Otherwise the session stays in PRACTICE

A struggling learner must be taught again before practicing: STRUGGLING
only leads to TEACHING, and the needs_reteach flag redirects an emotional
check that would resume practice to TEACHING as well.

Illegal requests raise InvalidTransition and malformed stored values raise
MalformedInput; both reach the caller unchanged. A storage conflict that
survives its retry never reaches the learner: the session is ended with
reason session_ended_early instead, and mastery and review state stay
exactly as after the last applied update.

Example:
    >>> orchestrator = SessionOrchestrator(
    ...     curriculum, mastery_store, review_store, session_store, clock=clock
    ... )
    >>> session = orchestrator.start_session("learner-1", Subject.MATH, concept_code="1.OA.1")
    >>> session = orchestrator.begin_practice(session.session_id)
    >>> outcome = orchestrator.submit_answer(session.session_id, correct=True)
    >>> outcome.recommended_action
    'present_practice_problem'
"""

import logging
from datetime import date
from typing import Any

from mastery_engine.core.config.settings import Settings
from mastery_engine.core.content import GeneratedQuestion
from mastery_engine.core.curriculum.models import Concept, GradeLevel, Subject
from mastery_engine.core.curriculum.provider import CurriculumProvider
from mastery_engine.core.diagnostic.engine import DiagnosticEngine
from mastery_engine.core.diagnostic.models import PlacementResult
from mastery_engine.core.diagnostic.skill_map import seed_beliefs
from mastery_engine.core.emotional.constants import CheckInOutcome
from mastery_engine.core.emotional.signals import (
    EmotionalSignal,
    is_sustained,
    next_negative_streak,
)
from mastery_engine.core.exceptions import (
    InvalidTransition,
    MalformedInput,
    StorageConflict,
)
from mastery_engine.core.mastery.estimator import (
    BKTParameters,
    MasteryBelief,
    crossed_into_mastered,
    is_challenge_unlocked,
    should_advance,
    update,
)
from mastery_engine.core.orchestration.session import (
    AnswerOutcome,
    CompletionReason,
    SessionOutcome,
    SessionState,
)
from mastery_engine.core.orchestration.states import (
    SessionEvent,
    SessionPhase,
    TransitionRecord,
    diagnostic_transition,
    transition,
)
from mastery_engine.core.review.notifications import ReviewNotifier
from mastery_engine.core.review.queue import ReviewAnswer, build_review_queue
from mastery_engine.core.review.scheduler import (
    DueReviewSummary,
    ReviewSchedule,
    ReviewUrgency,
    create_schedule,
    forecast,
    schedule,
    summarize,
)
from mastery_engine.infrastructure.cache.session_store import SessionStore
from mastery_engine.infrastructure.storage.base import MasteryStore, ReviewStore
from mastery_engine.infrastructure.storage.retry import apply_atomic_update
from mastery_engine.utils.datetime import Clock, SystemClock
from mastery_engine.utils.logging import bind_context, scoped_log_context

logger = logging.getLogger(__name__)

# Phases in which a sustained negative emotion triggers a check-in
CHECK_IN_PHASES = frozenset(
    {
        SessionPhase.TEACHING,
        SessionPhase.PRACTICE,
        SessionPhase.HINT_REQUESTED,
        SessionPhase.STRUGGLING,
    }
)


class SessionOrchestrator:
    """Drives live sessions through the phase table.

    Attributes:
        curriculum: Concept graph.
        mastery_store: Persisted mastery beliefs.
        review_store: Persisted review schedules.
        session_store: Live session state.
        settings: Engine settings.
        params: Knowledge tracing parameters.
        clock: Time source.
        diagnostic_engine: Engine used for hosted diagnostics.
        notifier: Creates review reminders at session end (optional).
    """

    def __init__(
        self,
        curriculum: CurriculumProvider,
        mastery_store: MasteryStore,
        review_store: ReviewStore,
        session_store: SessionStore,
        settings: Settings | None = None,
        clock: Clock | None = None,
        notifier: ReviewNotifier | None = None,
        diagnostic_engine: DiagnosticEngine | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            curriculum: Curriculum collaborator.
            mastery_store: Store of mastery beliefs.
            review_store: Store of review schedules.
            session_store: Store of live sessions.
            settings: Engine settings (defaults if omitted).
            clock: Time source (system clock if omitted).
            notifier: Review reminder notifier (no reminders if omitted).
            diagnostic_engine: Engine for hosted diagnostics (built from
                the curriculum and settings if omitted).
        """
        self.curriculum = curriculum
        self.mastery_store = mastery_store
        self.review_store = review_store
        self.session_store = session_store
        self.settings = settings or Settings()
        self.clock = clock or SystemClock()
        self.notifier = notifier
        self.params = BKTParameters.from_settings(self.settings.bkt)
        self.diagnostic_engine = diagnostic_engine or DiagnosticEngine(
            curriculum,
            params=self.params,
            settings=self.settings.diagnostic,
            clock=self.clock,
        )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    @scoped_log_context
    def start_session(
        self,
        learner_id: str,
        subject: Subject,
        concept_code: str | None = None,
        placement: PlacementResult | None = None,
    ) -> SessionState:
        """Open a tutoring session.

        Starts with REVIEW when reviews are overdue, otherwise with
        TEACHING on the requested concept or the placement's recommended
        start. Without any concept the session completes immediately with
        reason no_concept_available.

        Args:
            learner_id: Learner starting the session.
            subject: Subject to tutor.
            concept_code: Explicit concept to teach.
            placement: Placement whose recommended start is used when no
                concept is given.

        Returns:
            The new session.
        """
        session = self._new_session(learner_id, subject)
        target_code = concept_code or (
            placement.recommended_start_node if placement else None
        )
        session.pending_concept_code = target_code

        due = self._due_summary(learner_id)
        if due.urgency is ReviewUrgency.HIGH and self._enter_review(
            session, SessionEvent.START_REVIEW
        ):
            return self._save(session)

        concept = self._resolve_concept(target_code, subject)
        if concept is None:
            self._abort(session, CompletionReason.NO_CONCEPT_AVAILABLE)
            return self._save(session)

        self._teach(session, concept.code, SessionEvent.START_SESSION)
        return self._save(session)

    @scoped_log_context
    def start_boss_challenge(
        self,
        learner_id: str,
        subject: Subject,
        concept_code: str,
    ) -> SessionState:
        """Open a session with a boss challenge on a concept.

        Raises:
            InvalidTransition: If the concept's belief is below the
                challenge-unlock gate.
        """
        session = self._new_session(learner_id, subject)
        current = self.mastery_store.get(learner_id, concept_code)
        belief = current.value if current else None
        if not is_challenge_unlocked(belief):
            raise InvalidTransition(
                SessionPhase.IDLE.value,
                SessionPhase.BOSS_CHALLENGE.value,
                SessionEvent.START_BOSS.value,
                {
                    "concept_code": concept_code,
                    "probability": belief.probability if belief else None,
                    "reason": "challenge_locked",
                },
            )
        session.concept_code = concept_code
        self._move(
            session,
            SessionPhase.BOSS_CHALLENGE,
            SessionEvent.START_BOSS,
            concept_code=concept_code,
        )
        return self._save(session)

    @scoped_log_context
    def end_session(self, session_id: str) -> SessionOutcome:
        """End a session and summarize it.

        Sessions already completed (by policy or abort) are summarized
        without a further transition.

        Raises:
            SessionNotFound: If the session is missing or expired.
            InvalidTransition: If the current phase cannot complete.
        """
        session = self._load(session_id)
        if not session.is_completed:
            self._move(session, SessionPhase.COMPLETED, SessionEvent.END_SESSION)
            self._complete(session, CompletionReason.LEARNER_ENDED)
            self._save(session)

        now = self.clock.now()
        schedules = self.review_store.list_for_learner(session.learner_id)
        notification = (
            self.notifier.create_reminder(session.learner_id, schedules, now)
            if self.notifier is not None
            else None
        )
        return SessionOutcome(
            session_id=session.session_id,
            learner_id=session.learner_id,
            completion_reason=session.completion_reason,
            duration_seconds=session.duration_seconds or 0,
            questions_answered=session.questions_answered,
            correct_answers=session.correct_answers,
            hint_count=session.hint_count,
            review=session.review_summary() if session.review_queue else None,
            due_reviews=self._summarize(schedules),
            notification=notification,
        )

    @scoped_log_context
    def abort_session(self, session_id: str, reason: str | None = None) -> SessionState:
        """Force a session to COMPLETED with reason session_ended_early.

        Used when the caller hits an unrecoverable failure. Works from any
        phase, including those without a COMPLETED edge.
        """
        session = self._load(session_id)
        if not session.is_completed:
            self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error=reason)
            self._save(session)
        return session

    @scoped_log_context
    def get_session(self, session_id: str) -> SessionState:
        """Load a live session.

        Raises:
            SessionNotFound: If the session is missing or expired.
        """
        return self._load(session_id)

    @scoped_log_context
    def review_forecast(self, learner_id: str) -> dict[date, int]:
        """Reviews falling due per day over the configured forecast horizon."""
        bind_context(learner_id=learner_id)
        return forecast(
            self.review_store.list_for_learner(learner_id),
            self.clock.now(),
            days=self.settings.review.forecast_days,
        )

    # =========================================================================
    # Hosted diagnostic
    # =========================================================================

    @scoped_log_context
    def start_diagnostic(
        self,
        learner_id: str,
        subject: Subject,
        grade: GradeLevel,
    ) -> SessionState:
        """Open a session that runs a placement diagnostic."""
        session = self._new_session(learner_id, subject)
        session.diagnostic = self.diagnostic_engine.start(learner_id, grade, subject)
        self._move_diagnostic(session, SessionEvent.START_DIAGNOSTIC)
        return self._save(session)

    @scoped_log_context
    def next_diagnostic_question(self, session_id: str) -> Concept | None:
        """Concept to ask next in a hosted diagnostic, None when done."""
        session = self._load(session_id)
        if session.diagnostic is None or session.state is not SessionPhase.DIAGNOSTIC:
            return None
        return self.diagnostic_engine.next_question(session.diagnostic)

    @scoped_log_context
    def submit_diagnostic_answer(
        self,
        session_id: str,
        concept_code: str,
        correct: bool | None,
    ) -> SessionState:
        """Record a diagnostic answer.

        When the diagnostic stops, the placement is built, initial beliefs
        are seeded and the session completes with reason
        diagnostic_complete.

        Raises:
            InvalidTransition: If the session is not running a diagnostic.
        """
        session = self._load(session_id)
        if session.diagnostic is None:
            raise InvalidTransition(
                session.state.value,
                SessionPhase.DIAGNOSTIC.value,
                SessionEvent.DIAGNOSTIC_ANSWER.value,
            )

        target = diagnostic_transition(session.state, SessionEvent.DIAGNOSTIC_ANSWER)
        diagnostic = self.diagnostic_engine.record_answer(
            session.diagnostic, concept_code, correct
        )
        session.diagnostic = diagnostic
        session.questions_answered += 1
        if correct:
            session.correct_answers += 1
        self._move(
            session,
            target,
            SessionEvent.DIAGNOSTIC_ANSWER,
            concept_code=concept_code,
            correct=bool(correct),
        )

        if self.diagnostic_engine.next_question(diagnostic) is None:
            placement = self.diagnostic_engine.build_placement(diagnostic)
            session.placement = placement
            try:
                seed_beliefs(placement, self.mastery_store, self.clock.now())
            except StorageConflict as e:
                self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error=str(e))
                return self._save(session)
            self._move_diagnostic(
                session,
                SessionEvent.DIAGNOSTIC_COMPLETE,
                frontier=placement.frontier_node_code,
                confidence=placement.confidence,
            )
            self._complete(session, CompletionReason.DIAGNOSTIC_COMPLETE)
        return self._save(session)

    # =========================================================================
    # Teaching and practice
    # =========================================================================

    @scoped_log_context
    def begin_practice(self, session_id: str) -> SessionState:
        """Finish the explanation and start practicing (TEACHING -> PRACTICE)."""
        session = self._load(session_id)
        self._move(session, SessionPhase.PRACTICE, SessionEvent.START_PRACTICE)
        return self._save(session)

    @scoped_log_context
    def request_hint(self, session_id: str) -> SessionState:
        """Ask for a hint (PRACTICE -> HINT_REQUESTED)."""
        session = self._load(session_id)
        self._move(session, SessionPhase.HINT_REQUESTED, SessionEvent.REQUEST_HINT)
        session.hint_count += 1
        return self._save(session)

    @scoped_log_context
    def submit_answer(
        self,
        session_id: str,
        correct: bool | None,
        signal: EmotionalSignal | None = None,
    ) -> AnswerOutcome:
        """Apply an answer in PRACTICE, HINT_REQUESTED, BOSS_CHALLENGE or REVIEW.

        Args:
            session_id: Session the answer belongs to.
            correct: Whether the answer was correct; None (timeout) is incorrect.
            signal: Emotional signal observed with the answer, if any.

        Returns:
            The outcome, including any transitions applied.

        Raises:
            SessionNotFound: If the session is missing or expired.
            InvalidTransition: If the session is not in an answering phase.
            MalformedInput: If the stored belief or schedule is malformed.
        """
        session = self._load(session_id)
        is_correct = bool(correct)
        history_start = len(session.history)

        match session.state:
            case SessionPhase.PRACTICE | SessionPhase.HINT_REQUESTED:
                belief, mastered = self._practice_answer(session, is_correct, signal)
            case SessionPhase.BOSS_CHALLENGE:
                belief, mastered = self._boss_answer(session, is_correct)
            case SessionPhase.REVIEW:
                belief, mastered = self._review_answer(session, is_correct)
            case _:
                raise InvalidTransition(
                    session.state.value,
                    SessionPhase.PRACTICE.value,
                    SessionEvent.SUBMIT_ANSWER.value,
                )

        self._save(session)
        return AnswerOutcome(
            session_id=session.session_id,
            correct=is_correct,
            state=session.state,
            belief=belief,
            mastered=mastered,
            transitions=tuple(session.history[history_start:]),
            recommended_action=session.recommended_action,
        )

    @scoped_log_context
    def submit_choice(
        self,
        session_id: str,
        question: GeneratedQuestion,
        chosen_option_id: str | None,
        signal: EmotionalSignal | None = None,
    ) -> AnswerOutcome:
        """Grade a multiple-choice answer and apply it like submit_answer().

        Args:
            session_id: Session the answer belongs to.
            question: Question the learner answered, as produced by a
                ContentGenerator for the concept being assessed.
            chosen_option_id: Option picked by the learner; None on timeout.
            signal: Emotional signal observed with the answer, if any.

        Raises:
            MalformedInput: If the question assesses a different concept
                than the one the session is asking about.
        """
        session = self._load(session_id)
        expected = (
            session.current_review_item
            if session.state is SessionPhase.REVIEW
            else session.concept_code
        )
        if expected is not None and question.concept_code != expected:
            raise MalformedInput(
                "concept_code",
                question.concept_code,
                f"question does not assess the current concept {expected}",
            )
        return self.submit_answer(
            session_id, question.is_correct(chosen_option_id), signal
        )

    @scoped_log_context
    def reteach(self, session_id: str) -> SessionState:
        """Teach the concept again after a struggle (STRUGGLING -> TEACHING)."""
        session = self._load(session_id)
        if session.concept_code is None:
            raise InvalidTransition(
                session.state.value,
                SessionPhase.TEACHING.value,
                SessionEvent.RETEACH.value,
                {"reason": "no_current_concept"},
            )
        self._teach(session, session.concept_code, SessionEvent.RETEACH)
        return self._save(session)

    @scoped_log_context
    def continue_after_celebration(self, session_id: str) -> SessionState:
        """Leave CELEBRATING.

        Goes to REVIEW when reviews are due, otherwise to TEACHING on the
        next concept, otherwise completes with reason no_next_concept.
        """
        session = self._load(session_id)
        if session.state is not SessionPhase.CELEBRATING:
            raise InvalidTransition(
                session.state.value,
                SessionPhase.TEACHING.value,
                SessionEvent.ADVANCE_CONCEPT.value,
            )

        if self._due_summary(session.learner_id).due_now > 0 and self._enter_review(
            session, SessionEvent.START_REVIEW
        ):
            return self._save(session)

        next_code = self._next_concept(session)
        if next_code is None:
            self._move(
                session,
                SessionPhase.COMPLETED,
                SessionEvent.NO_NEXT_CONCEPT,
                concept_code=session.concept_code,
            )
            self._complete(session, CompletionReason.NO_NEXT_CONCEPT)
        else:
            self._teach(session, next_code, SessionEvent.ADVANCE_CONCEPT)
        return self._save(session)

    # =========================================================================
    # Emotional check-ins
    # =========================================================================

    @scoped_log_context
    def report_emotion(self, session_id: str, signal: EmotionalSignal) -> SessionState:
        """Record an emotional signal outside of an answer.

        A sustained negative streak moves the session to EMOTIONAL_CHECK
        from TEACHING, PRACTICE, HINT_REQUESTED or STRUGGLING.
        """
        session = self._load(session_id)
        self._observe_emotion(session, signal)
        if session.state in CHECK_IN_PHASES and self._emotion_sustained(session):
            self._move(
                session,
                SessionPhase.EMOTIONAL_CHECK,
                SessionEvent.EMOTIONAL_SIGNAL,
                emotional_state=signal.state.value,
            )
        return self._save(session)

    @scoped_log_context
    def resolve_emotional_check(
        self,
        session_id: str,
        outcome: CheckInOutcome,
    ) -> SessionState:
        """Leave EMOTIONAL_CHECK according to the learner's choice.

        CONTINUE resumes practice (or reteaches when the learner had been
        struggling), REEXPLAIN goes to TEACHING and END completes the
        session.
        """
        session = self._load(session_id)
        session.negative_emotion_streak = 0

        match outcome:
            case CheckInOutcome.END:
                self._move(
                    session,
                    SessionPhase.COMPLETED,
                    SessionEvent.EMOTIONAL_CHECK_DONE,
                    outcome=outcome.value,
                )
                self._complete(session, CompletionReason.LEARNER_ENDED)
            case CheckInOutcome.CONTINUE if not session.needs_reteach:
                self._move(
                    session,
                    SessionPhase.PRACTICE,
                    SessionEvent.EMOTIONAL_CHECK_DONE,
                    outcome=outcome.value,
                )
            case _:
                if session.concept_code is None:
                    raise InvalidTransition(
                        session.state.value,
                        SessionPhase.TEACHING.value,
                        SessionEvent.EMOTIONAL_CHECK_DONE.value,
                        {"reason": "no_current_concept"},
                    )
                self._teach(
                    session,
                    session.concept_code,
                    SessionEvent.EMOTIONAL_CHECK_DONE,
                    outcome=outcome.value,
                )
        return self._save(session)

    # =========================================================================
    # Answer policies
    # =========================================================================

    def _practice_answer(
        self,
        session: SessionState,
        correct: bool,
        signal: EmotionalSignal | None,
    ) -> tuple[MasteryBelief | None, bool]:
        if session.state is SessionPhase.HINT_REQUESTED:
            self._move(session, SessionPhase.PRACTICE, SessionEvent.RETURN_TO_PRACTICE)

        updated = self._update_belief(session, session.concept_code, correct)
        if updated is None:
            return None, False
        before, after = updated

        self._count_answer(session, correct)
        self._observe_emotion(session, signal)

        if crossed_into_mastered(before, after):
            if not self._start_review_schedule(session, after.concept_code):
                return after, True
            self._move(
                session,
                SessionPhase.CELEBRATING,
                SessionEvent.MASTERY_ACHIEVED,
                concept_code=after.concept_code,
                probability=after.probability,
            )
            return after, True

        if session.consecutive_incorrect >= self.settings.session.struggle_threshold:
            session.needs_reteach = True
            self._move(
                session,
                SessionPhase.STRUGGLING,
                SessionEvent.STRUGGLE_DETECTED,
                concept_code=after.concept_code,
                consecutive_incorrect=session.consecutive_incorrect,
            )
        elif self._emotion_sustained(session):
            self._move(
                session,
                SessionPhase.EMOTIONAL_CHECK,
                SessionEvent.EMOTIONAL_SIGNAL,
                emotional_state=session.emotional_state.value
                if session.emotional_state
                else None,
            )
        return after, False

    def _boss_answer(
        self,
        session: SessionState,
        correct: bool,
    ) -> tuple[MasteryBelief | None, bool]:
        updated = self._update_belief(session, session.concept_code, correct)
        if updated is None:
            return None, False
        before, after = updated
        self._count_answer(session, correct)

        mastered = crossed_into_mastered(before, after)
        if mastered and not self._start_review_schedule(session, after.concept_code):
            return after, mastered

        if correct:
            self._move(
                session,
                SessionPhase.CELEBRATING,
                SessionEvent.BOSS_PASSED,
                concept_code=after.concept_code,
            )
        else:
            session.needs_reteach = True
            self._move(
                session,
                SessionPhase.STRUGGLING,
                SessionEvent.BOSS_FAILED,
                concept_code=after.concept_code,
            )
        return after, mastered

    def _review_answer(
        self,
        session: SessionState,
        correct: bool,
    ) -> tuple[MasteryBelief | None, bool]:
        concept_code = session.current_review_item
        if concept_code is None:
            raise InvalidTransition(
                session.state.value,
                SessionPhase.REVIEW.value,
                SessionEvent.SUBMIT_ANSWER.value,
                {"reason": "review_queue_exhausted"},
            )

        updated = self._update_belief(session, concept_code, correct)
        if updated is None:
            return None, False
        before, after = updated
        reviewed = self._apply_review(session, concept_code, correct)
        if reviewed is None:
            return after, False

        self._count_answer(session, correct)
        session.review_answers.append(
            ReviewAnswer(
                concept_code=concept_code,
                correct=correct,
                next_due_at=reviewed.due_at,
                interval_days=reviewed.interval_days,
            )
        )
        session.review_position += 1

        if session.current_review_item is None:
            summary = session.review_summary()
            failed = summary.failed_concepts
            if failed:
                session.concept_code = failed[0]
                session.consecutive_incorrect = 0
                self._move(
                    session,
                    SessionPhase.PRACTICE,
                    SessionEvent.REVIEW_COMPLETE,
                    concept_code=failed[0],
                    retention_rate=summary.retention_rate,
                )
            else:
                self._move(
                    session,
                    SessionPhase.CELEBRATING,
                    SessionEvent.REVIEW_COMPLETE,
                    retention_rate=summary.retention_rate,
                )
        return after, crossed_into_mastered(before, after)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _new_session(self, learner_id: str, subject: Subject) -> SessionState:
        session = SessionState(
            learner_id=learner_id,
            subject=subject,
            started_at=self.clock.now(),
        )
        bind_context(learner_id=learner_id, session_id=session.session_id)
        return session

    def _load(self, session_id: str) -> SessionState:
        bind_context(session_id=session_id)
        session = self.session_store.require(session_id)
        bind_context(learner_id=session.learner_id)
        return session

    def _save(self, session: SessionState) -> SessionState:
        self.session_store.put(session, self.settings.session.ttl_seconds)
        return session

    def _move(
        self,
        session: SessionState,
        target: SessionPhase,
        event: SessionEvent,
        **metadata: Any,
    ) -> TransitionRecord:
        record = transition(session.state, target, event, self.clock.now(), metadata)
        session.history.append(record)
        session.state = target
        logger.info(
            "Session %s: %s -> %s on %s",
            session.session_id,
            record.from_state.value,
            record.to_state.value,
            record.event.value,
        )
        return record

    def _move_diagnostic(
        self,
        session: SessionState,
        event: SessionEvent,
        **metadata: Any,
    ) -> TransitionRecord:
        target = diagnostic_transition(session.state, event)
        return self._move(session, target, event, **metadata)

    def _teach(
        self,
        session: SessionState,
        concept_code: str,
        event: SessionEvent,
        **metadata: Any,
    ) -> None:
        self._move(
            session,
            SessionPhase.TEACHING,
            event,
            concept_code=concept_code,
            **metadata,
        )
        session.concept_code = concept_code
        session.needs_reteach = False
        session.consecutive_incorrect = 0

    def _complete(self, session: SessionState, reason: CompletionReason) -> None:
        now = self.clock.now()
        elapsed = int((now - session.started_at).total_seconds())
        session.completion_reason = reason
        session.ended_at = now
        session.duration_seconds = (
            elapsed if 0 <= elapsed <= self.settings.session.max_duration_seconds else 0
        )
        logger.info(
            "Session %s completed: %s after %ds",
            session.session_id,
            reason.value,
            session.duration_seconds,
        )

    def _abort(
        self,
        session: SessionState,
        reason: CompletionReason,
        error: str | None = None,
    ) -> None:
        """Force COMPLETED regardless of the phase table."""
        record = TransitionRecord(
            from_state=session.state,
            to_state=SessionPhase.COMPLETED,
            event=SessionEvent.SESSION_ABORTED,
            at=self.clock.now(),
            metadata={"reason": reason.value, "error": error},
        )
        session.history.append(record)
        session.state = SessionPhase.COMPLETED
        logger.warning(
            "Session %s aborted from %s: %s (%s)",
            session.session_id,
            record.from_state.value,
            reason.value,
            error,
        )
        self._complete(session, reason)

    def _resolve_concept(self, code: str | None, subject: Subject) -> Concept | None:
        if code is None:
            return None
        result = self.curriculum.get_concept(code)
        if not result.success:
            logger.warning("Cannot start on concept %s: %s", code, result.error)
            return None
        concept = result.value
        if concept.subject is not subject:
            logger.warning(
                "Concept %s belongs to %s, not %s", code, concept.subject.value, subject.value
            )
            return None
        return concept

    def _count_answer(self, session: SessionState, correct: bool) -> None:
        session.questions_answered += 1
        if correct:
            session.correct_answers += 1
            session.correct_streak += 1
            session.consecutive_incorrect = 0
        else:
            session.correct_streak = 0
            session.consecutive_incorrect += 1

    def _observe_emotion(
        self,
        session: SessionState,
        signal: EmotionalSignal | None,
    ) -> None:
        if signal is None:
            return
        session.emotional_state = signal.state
        session.negative_emotion_streak = next_negative_streak(
            session.negative_emotion_streak,
            signal,
            self.settings.session.emotion_confidence_threshold,
        )

    def _emotion_sustained(self, session: SessionState) -> bool:
        return is_sustained(
            session.negative_emotion_streak,
            self.settings.session.negative_emotion_signals,
        )

    def _update_belief(
        self,
        session: SessionState,
        concept_code: str | None,
        correct: bool,
    ) -> tuple[MasteryBelief | None, MasteryBelief] | None:
        """Atomically apply one answer; None if the session had to be aborted."""
        if concept_code is None:
            self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error="no_current_concept")
            return None
        now = self.clock.now()
        try:
            return apply_atomic_update(
                self.mastery_store,
                session.learner_id,
                concept_code,
                lambda prior: update(
                    prior,
                    correct,
                    self.params,
                    now=now,
                    learner_id=session.learner_id,
                    concept_code=concept_code,
                ),
            )
        except StorageConflict as e:
            self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error=str(e))
            return None

    def _apply_review(
        self,
        session: SessionState,
        concept_code: str,
        correct: bool,
    ) -> ReviewSchedule | None:
        now = self.clock.now()

        def apply(current: ReviewSchedule | None) -> ReviewSchedule:
            base = current or create_schedule(session.learner_id, concept_code, now)
            return schedule(base, correct, now)

        try:
            _, reviewed = apply_atomic_update(
                self.review_store, session.learner_id, concept_code, apply
            )
        except StorageConflict as e:
            self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error=str(e))
            return None
        return reviewed

    def _start_review_schedule(self, session: SessionState, concept_code: str) -> bool:
        """Create a review schedule for a newly mastered concept.

        An existing schedule (from an earlier mastery) is kept as is.

        Returns:
            False if the schedule could not be written and the session
            was aborted.
        """
        learner_id = session.learner_id
        now = self.clock.now()
        try:
            apply_atomic_update(
                self.review_store,
                learner_id,
                concept_code,
                lambda current: current or create_schedule(learner_id, concept_code, now),
            )
        except StorageConflict as e:
            self._abort(session, CompletionReason.SESSION_ENDED_EARLY, error=str(e))
            return False
        return True

    def _summarize(self, schedules: list[ReviewSchedule]) -> DueReviewSummary:
        return summarize(
            schedules,
            self.clock.now(),
            grace_days=self.settings.review.overdue_grace_days,
            minutes_per_review=self.settings.review.minutes_per_review,
        )

    def _due_summary(self, learner_id: str) -> DueReviewSummary:
        return self._summarize(self.review_store.list_for_learner(learner_id))

    def _enter_review(self, session: SessionState, event: SessionEvent) -> bool:
        """Build the review queue and move to REVIEW; False if the queue is empty."""
        review = self.settings.review
        beliefs = {
            belief.concept_code: belief
            for belief in self.mastery_store.list_for_learner(session.learner_id)
        }
        queue = build_review_queue(
            self.review_store.list_for_learner(session.learner_id),
            beliefs,
            self.clock.now(),
            max_size=review.max_queue_size,
            refresher_slots=review.refresher_slots,
            refresher_stale_days=review.refresher_stale_days,
            grace_days=review.overdue_grace_days,
            minutes_per_review=review.minutes_per_review,
        )
        if not queue.items:
            return False

        self._move(
            session,
            SessionPhase.REVIEW,
            event,
            items=len(queue),
            estimated_minutes=queue.estimated_minutes,
        )
        session.review_queue = queue.concept_codes
        session.review_position = 0
        session.review_answers = []
        return True

    def _next_concept(self, session: SessionState) -> str | None:
        """Successor of the current concept that still needs work.

        Looks at the current and the following grade for a concept that
        lists the current one as a prerequisite and whose belief is below
        the advance gate. Without a current concept (a session that opened
        with a review), the planned concept is taught if it still needs work.
        """
        learner_id = session.learner_id

        def needs_work(code: str) -> bool:
            current = self.mastery_store.get(learner_id, code)
            return not should_advance(current.value if current else None)

        if session.concept_code is None:
            pending = self._resolve_concept(session.pending_concept_code, session.subject)
            if pending is not None and needs_work(pending.code):
                return pending.code
            return None

        result = self.curriculum.get_concept(session.concept_code)
        if not result.success:
            logger.warning(
                "Current concept %s vanished from the curriculum", session.concept_code
            )
            return None
        current = result.value

        grades = [current.grade]
        following = current.grade.next()
        if following is not None:
            grades.append(following)

        for grade in grades:
            for candidate in self.curriculum.list_concepts_by_grade(grade, session.subject):
                if (
                    current.code in candidate.prerequisites
                    and candidate.code != current.code
                    and needs_work(candidate.code)
                ):
                    return candidate.code
        return None
