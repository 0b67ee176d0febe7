# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Skill maps and belief seeding from a placement.

A skill map shows every concept of the diagnosed ladder with its status
and the time the learner is expected to need for it. Seeding turns a
placement into the learner's first long-term beliefs, so that the first
real session starts from what the diagnostic found instead of from the
prior.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mastery_engine.core.curriculum.models import Concept, GradeLevel, KnowledgeDomain
from mastery_engine.core.diagnostic.models import PlacementResult
from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.mastery.levels import MasteryLevel
from mastery_engine.infrastructure.storage.base import MasteryStore
from mastery_engine.infrastructure.storage.retry import apply_atomic_update
from mastery_engine.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

SEEDED_MASTERED_PROBABILITY = 0.85
SEEDED_GAP_PROBABILITY = 0.10


class SkillStatus(str, Enum):
    """Placement status of one concept."""

    MASTERED = "mastered"
    GAP = "gap"
    UNTESTED = "untested"
    IN_PROGRESS = "in_progress"


def estimate_hours(difficulty: int) -> float:
    """Estimate hours needed to learn a concept of the given difficulty."""
    if difficulty <= 2:
        return 0.5
    if difficulty <= 4:
        return 1.0
    if difficulty <= 6:
        return 1.5
    if difficulty <= 8:
        return 2.0
    return 2.5


class SkillMapEntry(BaseModel):
    """One concept on the skill map."""

    model_config = ConfigDict(frozen=True)

    concept_code: str
    title: str
    domain: KnowledgeDomain
    grade: GradeLevel
    difficulty: int
    status: SkillStatus
    probability: float | None = Field(default=None, ge=0.0, le=1.0)
    estimated_hours: float = Field(ge=0.0)


class SkillMap(BaseModel):
    """Per-concept status of a diagnosed ladder, with totals.

    Attributes:
        entries: One entry per concept, easiest first.
        completion_percentage: Share of concepts mastered (0-100).
        remaining_hours: Estimated hours for every concept not mastered.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[SkillMapEntry, ...] = ()

    def count(self, status: SkillStatus) -> int:
        """Number of concepts with the given status."""
        return sum(1 for entry in self.entries if entry.status is status)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def completion_percentage(self) -> int:
        if not self.entries:
            return 0
        return round(self.count(SkillStatus.MASTERED) / self.total * 100)

    @property
    def remaining_hours(self) -> float:
        return sum(
            entry.estimated_hours
            for entry in self.entries
            if entry.status is not SkillStatus.MASTERED
        )


def build_skill_map(
    concepts: Sequence[Concept],
    placement: PlacementResult,
    session_beliefs: Mapping[str, MasteryBelief],
    existing_beliefs: Mapping[str, MasteryBelief],
) -> SkillMap:
    """Classify every concept of the ladder.

    Status precedence: mastered or gap from the placement, then the
    long-term belief if the learner has practiced the concept, then
    in progress for anything the diagnostic touched, else untested.

    Args:
        concepts: The diagnosed ladder.
        placement: Placement derived from the diagnostic.
        session_beliefs: Provisional diagnostic beliefs by concept code.
        existing_beliefs: Long-term beliefs by concept code.

    Returns:
        The skill map.
    """
    mastered = set(placement.mastered_nodes)
    gaps = set(placement.gap_nodes)

    entries = []
    for concept in concepts:
        existing = existing_beliefs.get(concept.code)
        provisional = session_beliefs.get(concept.code)

        if concept.code in mastered:
            status = SkillStatus.MASTERED
        elif concept.code in gaps:
            status = SkillStatus.GAP
        elif existing is not None:
            status = (
                SkillStatus.MASTERED
                if existing.level is MasteryLevel.MASTERED
                else SkillStatus.IN_PROGRESS
            )
        elif provisional is not None:
            status = SkillStatus.IN_PROGRESS
        else:
            status = SkillStatus.UNTESTED

        belief = provisional or existing
        entries.append(
            SkillMapEntry(
                concept_code=concept.code,
                title=concept.title,
                domain=concept.domain,
                grade=concept.grade,
                difficulty=concept.difficulty,
                status=status,
                probability=belief.probability if belief else None,
                estimated_hours=(
                    0.0 if status is SkillStatus.MASTERED
                    else estimate_hours(concept.difficulty)
                ),
            )
        )
    return SkillMap(entries=tuple(entries))


def seed_beliefs(
    placement: PlacementResult,
    store: MasteryStore,
    now: datetime,
) -> list[MasteryBelief]:
    """Write initial long-term beliefs derived from a placement.

    Mastered concepts start at 0.85 and gaps at 0.10, each counted as one
    practice opportunity. Concepts the learner already has a belief for
    are left untouched.

    Args:
        placement: Placement to seed from.
        store: Mastery store to write to.
        now: Timestamp of the seeded beliefs.

    Returns:
        The beliefs that were written.

    Raises:
        StorageConflict: If a write still conflicts after its retry.
    """
    seeds = [(code, SEEDED_MASTERED_PROBABILITY, 1) for code in placement.mastered_nodes]
    seeds += [(code, SEEDED_GAP_PROBABILITY, 0) for code in placement.gap_nodes]

    written: list[MasteryBelief] = []
    for code, probability, correct_count in seeds:
        seeded = MasteryBelief(
            learner_id=placement.learner_id,
            concept_code=code,
            probability=probability,
            practice_count=1,
            correct_count=correct_count,
            last_updated_at=ensure_utc(now),
        )
        if store.get(placement.learner_id, code) is not None:
            logger.debug("Keeping existing belief for %s/%s", placement.learner_id, code)
            continue
        _, stored = apply_atomic_update(
            store,
            placement.learner_id,
            code,
            lambda current, seeded=seeded: current or seeded,
        )
        written.append(stored)

    logger.info(
        "Seeded %d beliefs for learner %s from placement",
        len(written),
        placement.learner_id,
    )
    return written
