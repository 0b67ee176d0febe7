# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Atomic read-modify-write on a versioned store.

The update function must be pure: on a conflict it is simply applied
again to the freshly read value. One retry is attempted; a second
conflict is raised to the caller.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from mastery_engine.core.exceptions import StorageConflict
from mastery_engine.infrastructure.storage.base import (
    Versioned,
    VersionedStore,
    storage_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2


def apply_atomic_update(
    store: VersionedStore[T],
    learner_id: str,
    concept_code: str,
    apply: Callable[[T | None], T],
) -> tuple[T | None, T]:
    """Read, transform and write one record with optimistic concurrency.

    Args:
        store: Store holding the record.
        learner_id: Owner of the record.
        concept_code: Concept the record is about.
        apply: Pure function from the current value (None if absent) to
            the new value.

    Returns:
        Tuple of (value before, value written).

    Raises:
        StorageConflict: If the write conflicts twice.
    """
    conflict: StorageConflict | None = None

    for attempt in range(1, MAX_ATTEMPTS + 1):
        current: Versioned[T] | None = store.get(learner_id, concept_code)
        before = current.value if current else None
        after = apply(before)

        result = store.put(
            learner_id,
            concept_code,
            after,
            expected_version=current.version if current else None,
        )
        if result.success:
            return before, after

        conflict = result.error  # type: ignore[assignment]
        logger.warning(
            "Storage conflict on %s (attempt %d/%d)",
            storage_key(learner_id, concept_code),
            attempt,
            MAX_ATTEMPTS,
        )

    assert conflict is not None
    raise conflict
