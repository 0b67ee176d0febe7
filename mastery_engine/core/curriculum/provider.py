# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum collaborator interface and an in-memory implementation.

The engine never owns curriculum content. It asks a CurriculumProvider for
concepts and their prerequisite edges; lookups of unknown codes come back as
failed Results carrying ConceptNotFound.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from mastery_engine.core.curriculum.models import Concept, GradeLevel, Subject
from mastery_engine.core.exceptions import ConceptNotFound, MalformedInput
from mastery_engine.core.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class CurriculumProvider(ABC):
    """Read-only access to the concept graph."""

    @abstractmethod
    def get_concept(self, code: str) -> Result[Concept]:
        """Look up a concept by code.

        Returns:
            Ok(concept), or Err(ConceptNotFound) for an unknown code.
        """
        ...

    @abstractmethod
    def list_concepts(self, subject: Subject) -> list[Concept]:
        """List every concept of a subject, easiest first."""
        ...

    @abstractmethod
    def list_concepts_by_grade(
        self,
        grade: GradeLevel,
        subject: Subject,
    ) -> list[Concept]:
        """List the concepts taught at one grade, easiest first."""
        ...

    def get_prerequisites(self, code: str) -> Result[list[Concept]]:
        """Return the immediate prerequisites of a concept.

        Prerequisite codes the curriculum cannot resolve are skipped and
        logged; an unknown concept code yields Err(ConceptNotFound).
        """
        result = self.get_concept(code)
        if not result.success:
            return result
        prerequisites: list[Concept] = []
        for prereq_code in sorted(result.value.prerequisites):
            prereq = self.get_concept(prereq_code)
            if prereq.success:
                prerequisites.append(prereq.value)
            else:
                logger.warning(
                    "Concept %s lists unknown prerequisite %s", code, prereq_code
                )
        return Ok(prerequisites)


def transitive_prerequisites(
    curriculum: CurriculumProvider,
    code: str,
) -> set[str]:
    """Collect every direct and indirect prerequisite code of a concept.

    Args:
        curriculum: Curriculum to walk.
        code: Starting concept code (not included in the result).

    Returns:
        Set of prerequisite codes; empty if the concept is unknown.
    """
    seen: set[str] = set()
    stack = [code]
    while stack:
        current = stack.pop()
        result = curriculum.get_concept(current)
        if not result.success:
            continue
        for prereq in result.value.prerequisites:
            if prereq not in seen and prereq != code:
                seen.add(prereq)
                stack.append(prereq)
    return seen


class InMemoryCurriculum(CurriculumProvider):
    """Curriculum held in a dictionary.

    Suitable for tests and for deployments that load the whole curriculum
    at startup.

    Example:
        >>> curriculum = InMemoryCurriculum([
        ...     Concept(code="K.CC.1", title="Count to 10",
        ...             domain=KnowledgeDomain.COUNTING, difficulty=1,
        ...             grade=GradeLevel.K),
        ... ])
        >>> curriculum.get_concept("K.CC.1").success
        True
    """

    def __init__(self, concepts: Iterable[Concept]) -> None:
        """Initialize the curriculum.

        Args:
            concepts: Concepts of every subject.

        Raises:
            MalformedInput: If two concepts share a code.
        """
        self._concepts: dict[str, Concept] = {}
        for concept in concepts:
            if concept.code in self._concepts:
                raise MalformedInput("code", concept.code, "duplicate concept code")
            self._concepts[concept.code] = concept

    def __len__(self) -> int:
        return len(self._concepts)

    def get_concept(self, code: str) -> Result[Concept]:
        concept = self._concepts.get(code)
        if concept is None:
            return Err(ConceptNotFound(code))
        return Ok(concept)

    def list_concepts(self, subject: Subject) -> list[Concept]:
        return sorted(
            (c for c in self._concepts.values() if c.subject is subject),
            key=lambda c: c.ordering_key,
        )

    def list_concepts_by_grade(
        self,
        grade: GradeLevel,
        subject: Subject,
    ) -> list[Concept]:
        return [c for c in self.list_concepts(subject) if c.grade is grade]
