# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Storage collaborator interfaces.

Mastery beliefs and review schedules are stored per (learner, concept) key.
Every stored record carries a version; writers pass the version they read
and the store rejects the write if another writer got there first.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.result import Result
from mastery_engine.core.review.scheduler import ReviewSchedule

T = TypeVar("T")


@dataclass(frozen=True)
class Versioned(Generic[T]):
    """A stored value together with its version.

    Attributes:
        value: The stored record.
        version: Monotonic version, 1 for the first write.
    """

    value: T
    version: int


class VersionedStore(ABC, Generic[T]):
    """Keyed record store with optimistic concurrency."""

    @abstractmethod
    def get(self, learner_id: str, concept_code: str) -> Versioned[T] | None:
        """Read the current record, or None if nothing is stored."""
        ...

    @abstractmethod
    def put(
        self,
        learner_id: str,
        concept_code: str,
        value: T,
        expected_version: int | None,
    ) -> Result[Versioned[T]]:
        """Write a record if the stored version still matches.

        Args:
            learner_id: Owner of the record.
            concept_code: Concept the record is about.
            value: New record.
            expected_version: Version read by the caller, None for a new key.

        Returns:
            Ok(new versioned record), or Err(StorageConflict) when the stored
            version differs from expected_version.
        """
        ...

    @abstractmethod
    def list_for_learner(self, learner_id: str) -> list[T]:
        """Return every record owned by a learner."""
        ...


class MasteryStore(VersionedStore[MasteryBelief]):
    """Store of mastery beliefs."""


class ReviewStore(VersionedStore[ReviewSchedule]):
    """Store of review schedules."""


def storage_key(learner_id: str, concept_code: str) -> str:
    """Canonical key of a per-learner, per-concept record."""
    return f"{learner_id}:{concept_code}"
