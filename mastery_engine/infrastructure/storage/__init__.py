# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Versioned storage for mastery beliefs and review schedules."""

from mastery_engine.infrastructure.storage.base import (
    MasteryStore,
    ReviewStore,
    Versioned,
    VersionedStore,
    storage_key,
)
from mastery_engine.infrastructure.storage.memory import (
    InMemoryMasteryStore,
    InMemoryReviewStore,
    InMemoryVersionedStore,
)
from mastery_engine.infrastructure.storage.retry import apply_atomic_update

__all__ = [
    "InMemoryMasteryStore",
    "InMemoryReviewStore",
    "InMemoryVersionedStore",
    "MasteryStore",
    "ReviewStore",
    "Versioned",
    "VersionedStore",
    "apply_atomic_update",
    "storage_key",
]
