# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across the unit tests:
- A frozen clock
- A small math and English curriculum
- In-memory stores
"""

from datetime import datetime, timezone

import pytest

from mastery_engine.core.config.settings import Settings, clear_settings_cache
from mastery_engine.core.curriculum.models import Concept, GradeLevel, KnowledgeDomain
from mastery_engine.core.curriculum.provider import InMemoryCurriculum
from mastery_engine.infrastructure.cache.session_store import InMemorySessionStore
from mastery_engine.infrastructure.storage.memory import (
    InMemoryMasteryStore,
    InMemoryReviewStore,
)
from mastery_engine.utils.datetime import FrozenClock

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def start_time() -> datetime:
    """Fixed reference time for the tests (Monday 2025-03-10 09:00 UTC)."""
    return START


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at the reference time."""
    return FrozenClock(START)


# =============================================================================
# Curriculum
# =============================================================================


def _concept(
    code: str,
    title: str,
    domain: KnowledgeDomain,
    difficulty: int,
    grade: GradeLevel,
    *prerequisites: str,
) -> Concept:
    return Concept(
        code=code,
        title=title,
        domain=domain,
        difficulty=difficulty,
        grade=grade,
        prerequisites=frozenset(prerequisites),
    )


MATH_CONCEPTS = [
    _concept("K.CC.1", "Count to 10", KnowledgeDomain.COUNTING, 1, GradeLevel.K),
    _concept("K.CC.2", "Count to 100", KnowledgeDomain.COUNTING, 2, GradeLevel.K, "K.CC.1"),
    _concept("1.OA.1", "Add within 20", KnowledgeDomain.OPERATIONS, 2, GradeLevel.G1, "K.CC.2"),
    _concept(
        "1.OA.2", "Subtract within 20", KnowledgeDomain.OPERATIONS, 3, GradeLevel.G1, "1.OA.1"
    ),
    _concept(
        "2.OA.1", "Two-step word problems", KnowledgeDomain.OPERATIONS, 4, GradeLevel.G2, "1.OA.2"
    ),
    _concept(
        "2.NBT.5", "Add within 100", KnowledgeDomain.OPERATIONS, 5, GradeLevel.G2, "1.OA.1"
    ),
    _concept("3.NF.1", "Unit fractions", KnowledgeDomain.FRACTIONS, 5, GradeLevel.G3, "2.OA.1"),
    _concept(
        "3.OA.7", "Multiply within 100", KnowledgeDomain.OPERATIONS, 6, GradeLevel.G3, "2.NBT.5"
    ),
]

ENGLISH_CONCEPTS = [
    _concept("1.RF.1", "Print concepts", KnowledgeDomain.READING, 1, GradeLevel.G1),
]


@pytest.fixture
def math_concepts() -> list[Concept]:
    """Math ladder in diagnostic order (grade, difficulty, code)."""
    return list(MATH_CONCEPTS)


@pytest.fixture
def curriculum() -> InMemoryCurriculum:
    """Curriculum with eight math concepts and one English concept."""
    return InMemoryCurriculum(MATH_CONCEPTS + ENGLISH_CONCEPTS)


# =============================================================================
# Stores and settings
# =============================================================================


@pytest.fixture
def mastery_store() -> InMemoryMasteryStore:
    """Empty in-memory mastery store."""
    return InMemoryMasteryStore()


@pytest.fixture
def review_store() -> InMemoryReviewStore:
    """Empty in-memory review store."""
    return InMemoryReviewStore()


@pytest.fixture
def session_store(clock: FrozenClock) -> InMemorySessionStore:
    """In-memory session store on the frozen clock."""
    return InMemorySessionStore(clock)


@pytest.fixture
def settings() -> Settings:
    """Default engine settings."""
    clear_settings_cache()
    return Settings()


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
