# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis-backed live session store.

Sessions are stored as JSON strings under {key_prefix}:{session_id} with
a Redis expiry, so abandoned sessions clean themselves up.

Example:
    from mastery_engine.core.config import get_settings
    from mastery_engine.infrastructure.cache import RedisSessionStore

    store = RedisSessionStore.from_settings(get_settings())
    store.put(session, ttl_seconds=3600)
    session = store.get(session.session_id)
"""

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError
from redis import ConnectionPool, Redis
from redis.exceptions import RedisError as BaseRedisError

from mastery_engine.core.exceptions import MasteryEngineError
from mastery_engine.core.orchestration.session import SessionState
from mastery_engine.infrastructure.cache.session_store import SessionStore

if TYPE_CHECKING:
    from mastery_engine.core.config.settings import Settings

logger = logging.getLogger(__name__)


class RedisError(MasteryEngineError):
    """Exception raised for Redis operation failures.

    Attributes:
        original_error: The underlying Redis error.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize the Redis error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RedisSessionStore(SessionStore):
    """Session store on a synchronous Redis client.

    Attributes:
        key_prefix: Prefix of every session key.
    """

    def __init__(self, client: Redis, key_prefix: str = "mastery:session") -> None:
        """Initialize the store.

        Args:
            client: Redis client created with decode_responses=True.
            key_prefix: Prefix of every session key.
        """
        self._redis = client
        self.key_prefix = key_prefix

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RedisSessionStore":
        """Create a store with its own connection pool.

        Args:
            settings: Engine settings containing Redis configuration.

        Returns:
            A store bound to a pooled client.
        """
        pool = ConnectionPool.from_url(
            settings.redis.url,
            max_connections=settings.redis.max_connections,
            decode_responses=True,
        )
        return cls(Redis(connection_pool=pool), key_prefix=settings.redis.key_prefix)

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    def get(self, session_id: str) -> SessionState | None:
        """Load a session.

        Raises:
            RedisError: If Redis fails or the stored payload is corrupt.
        """
        try:
            payload = self._redis.get(self._key(session_id))
        except BaseRedisError as e:
            raise RedisError(f"Failed to get session {session_id}", e) from e

        if payload is None:
            return None

        try:
            return SessionState.model_validate_json(payload)
        except ValidationError as e:
            raise RedisError(f"Corrupt session payload for {session_id}", e) from e

    def put(self, session: SessionState, ttl_seconds: int) -> None:
        """Store a session with an expiry.

        Raises:
            RedisError: If Redis fails.
        """
        try:
            self._redis.setex(
                self._key(session.session_id),
                ttl_seconds,
                session.model_dump_json(),
            )
        except BaseRedisError as e:
            raise RedisError(f"Failed to store session {session.session_id}", e) from e

    def delete(self, session_id: str) -> bool:
        """Remove a session.

        Raises:
            RedisError: If Redis fails.
        """
        try:
            return bool(self._redis.delete(self._key(session_id)))
        except BaseRedisError as e:
            raise RedisError(f"Failed to delete session {session_id}", e) from e

    def ping(self) -> bool:
        """Check that Redis is reachable."""
        try:
            return bool(self._redis.ping())
        except BaseRedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    def close(self) -> None:
        """Release the client's connections."""
        self._redis.close()
