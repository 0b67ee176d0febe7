# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory versioned stores.

A dictionary guarded by a lock provides the per-key compare-and-set that a
database row version or a Redis WATCH would provide in production.
"""

import logging
import threading
from typing import Generic, TypeVar

from mastery_engine.core.exceptions import StorageConflict
from mastery_engine.core.mastery.estimator import MasteryBelief
from mastery_engine.core.result import Err, Ok, Result
from mastery_engine.core.review.scheduler import ReviewSchedule
from mastery_engine.infrastructure.storage.base import (
    MasteryStore,
    ReviewStore,
    Versioned,
    VersionedStore,
    storage_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryVersionedStore(VersionedStore[T], Generic[T]):
    """Thread-safe dictionary store with optimistic versioning."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], Versioned[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def get(self, learner_id: str, concept_code: str) -> Versioned[T] | None:
        with self._lock:
            return self._records.get((learner_id, concept_code))

    def put(
        self,
        learner_id: str,
        concept_code: str,
        value: T,
        expected_version: int | None,
    ) -> Result[Versioned[T]]:
        key = (learner_id, concept_code)
        with self._lock:
            current = self._records.get(key)
            actual_version = current.version if current else None
            if actual_version != expected_version:
                logger.debug(
                    "Rejected write on %s: expected version %s, found %s",
                    storage_key(learner_id, concept_code),
                    expected_version,
                    actual_version,
                )
                return Err(
                    StorageConflict(
                        storage_key(learner_id, concept_code),
                        expected_version,
                        actual_version,
                    )
                )
            stored = Versioned(value=value, version=(actual_version or 0) + 1)
            self._records[key] = stored
            return Ok(stored)

    def list_for_learner(self, learner_id: str) -> list[T]:
        with self._lock:
            return [
                record.value
                for (owner, _), record in sorted(self._records.items())
                if owner == learner_id
            ]


class InMemoryMasteryStore(InMemoryVersionedStore[MasteryBelief], MasteryStore):
    """In-memory store of mastery beliefs."""


class InMemoryReviewStore(InMemoryVersionedStore[ReviewSchedule], ReviewStore):
    """In-memory store of review schedules."""
