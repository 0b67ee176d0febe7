# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Live session stores (in-memory and Redis)."""

from mastery_engine.infrastructure.cache.redis_store import RedisError, RedisSessionStore
from mastery_engine.infrastructure.cache.session_store import (
    InMemorySessionStore,
    SessionStore,
)

__all__ = [
    "InMemorySessionStore",
    "RedisError",
    "RedisSessionStore",
    "SessionStore",
]
