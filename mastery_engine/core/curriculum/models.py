# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum data models.

Concepts are immutable nodes of a prerequisite graph. Each concept belongs
to a knowledge domain, and each domain to exactly one subject.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Subject(str, Enum):
    """Subjects the engine can tutor."""

    MATH = "math"
    ENGLISH = "english"


class KnowledgeDomain(str, Enum):
    """Knowledge domains, each owned by one subject."""

    # Math
    COUNTING = "counting"
    OPERATIONS = "operations"
    GEOMETRY = "geometry"
    MEASUREMENT = "measurement"
    DATA = "data"
    ALGEBRA = "algebra"
    FRACTIONS = "fractions"
    # English
    GRAMMAR = "grammar"
    READING = "reading"
    WRITING = "writing"
    VOCABULARY = "vocabulary"

    @property
    def subject(self) -> Subject:
        """Subject this domain belongs to."""
        return DOMAIN_SUBJECTS[self]


DOMAIN_SUBJECTS: dict[KnowledgeDomain, Subject] = {
    KnowledgeDomain.COUNTING: Subject.MATH,
    KnowledgeDomain.OPERATIONS: Subject.MATH,
    KnowledgeDomain.GEOMETRY: Subject.MATH,
    KnowledgeDomain.MEASUREMENT: Subject.MATH,
    KnowledgeDomain.DATA: Subject.MATH,
    KnowledgeDomain.ALGEBRA: Subject.MATH,
    KnowledgeDomain.FRACTIONS: Subject.MATH,
    KnowledgeDomain.GRAMMAR: Subject.ENGLISH,
    KnowledgeDomain.READING: Subject.ENGLISH,
    KnowledgeDomain.WRITING: Subject.ENGLISH,
    KnowledgeDomain.VOCABULARY: Subject.ENGLISH,
}


def domains_for(subject: Subject) -> frozenset[KnowledgeDomain]:
    """Return every knowledge domain of a subject."""
    return frozenset(
        domain for domain, owner in DOMAIN_SUBJECTS.items() if owner is subject
    )


class GradeLevel(int, Enum):
    """School grade, kindergarten through grade 12 (K = 0)."""

    K = 0
    G1 = 1
    G2 = 2
    G3 = 3
    G4 = 4
    G5 = 5
    G6 = 6
    G7 = 7
    G8 = 8
    G9 = 9
    G10 = 10
    G11 = 11
    G12 = 12

    @property
    def label(self) -> str:
        """Short display label ("K", "1", ... "12")."""
        return "K" if self is GradeLevel.K else str(self.value)

    def next(self) -> "GradeLevel | None":
        """Return the following grade, or None after grade 12."""
        if self is GradeLevel.G12:
            return None
        return GradeLevel(self.value + 1)


class Concept(BaseModel):
    """A teachable node of the curriculum graph.

    Attributes:
        code: Stable concept identifier (e.g., "1.OA.1").
        title: Human-readable name.
        domain: Knowledge domain; determines the subject.
        difficulty: Relative difficulty within the curriculum, 1 (easiest) to 10.
        grade: Grade at which the concept is taught.
        prerequisites: Codes of the immediate prerequisite concepts.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=1)
    title: str
    domain: KnowledgeDomain
    difficulty: int = Field(ge=1, le=10)
    grade: GradeLevel
    prerequisites: frozenset[str] = Field(default_factory=frozenset)

    @property
    def subject(self) -> Subject:
        """Subject derived from the knowledge domain."""
        return self.domain.subject

    @property
    def ordering_key(self) -> tuple[int, int, str]:
        """Sort key of the diagnostic difficulty ladder."""
        return (self.grade.value, self.difficulty, self.code)
