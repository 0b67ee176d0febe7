# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum models and the curriculum collaborator."""

from mastery_engine.core.curriculum.models import (
    DOMAIN_SUBJECTS,
    Concept,
    GradeLevel,
    KnowledgeDomain,
    Subject,
    domains_for,
)
from mastery_engine.core.curriculum.provider import (
    CurriculumProvider,
    InMemoryCurriculum,
    transitive_prerequisites,
)

__all__ = [
    "Concept",
    "CurriculumProvider",
    "DOMAIN_SUBJECTS",
    "GradeLevel",
    "InMemoryCurriculum",
    "KnowledgeDomain",
    "Subject",
    "domains_for",
    "transitive_prerequisites",
]
