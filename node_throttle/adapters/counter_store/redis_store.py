"""Redis-backed counter store.

Each identifier lives in its own hash at `<prefix>s:<id>` (str) or
`<prefix>b:<id>` (bytes) with the fields `counter` and `timestamp`. State is shared by every process pointing at the
same Redis database and survives restarts when Redis persistence is on.
"""

from __future__ import annotations

import logging
import time

import redis

from node_throttle.adapters.counter_store.base import (
    AbstractCounterStore,
    Clock,
    Identifier,
    ThrottleState,
)
from node_throttle.core.errors import StoreAppError
from node_throttle.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store using one Redis hash per identifier."""

    backend_name = "redis"
    read_errors = (redis.RedisError, ValueError)

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "throttle:",
        clock: Clock = time.time,
    ) -> None:
        super().__init__(clock=clock)
        self._redis = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "throttle:", clock: Clock = time.time) -> RedisCounterStore:
        """Build a store from a redis:// URL."""
        return cls(redis.Redis.from_url(url), key_prefix=key_prefix, clock=clock)

    def _key(self, identifier: Identifier) -> str | bytes:
        # "s:" and "b:" keep str and bytes identifiers in separate keys.
        if isinstance(identifier, bytes):
            return self._key_prefix.encode() + b"b:" + identifier
        return f"{self._key_prefix}s:{identifier}"

    def _read(self, identifier: Identifier) -> ThrottleState | None:
        counter, timestamp = self._redis.hmget(self._key(identifier), "counter", "timestamp")
        if counter is None or timestamp is None:
            return None
        return ThrottleState(id=identifier, counter=int(counter), timestamp=float(timestamp))

    def write(self, state: ThrottleState) -> None:
        try:
            self._redis.hset(
                self._key(state.id),
                mapping={"counter": state.counter, "timestamp": state.timestamp},
            )
        except redis.RedisError as exc:
            logger.error(
                "store.write_failed",
                extra={
                    "backend": self.backend_name,
                    "id_hash": hash_identifier(state.id),
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreAppError(
                code="store_write_failed",
                message="Failed to write throttle state to Redis",
                details={"backend": self.backend_name, "operation": "hset"},
            ) from exc

    def ensure_ready(self) -> None:
        """Check connectivity; Redis needs no schema."""
        try:
            self._redis.ping()
        except redis.RedisError as exc:
            raise StoreAppError(
                code="store_unavailable",
                message="Redis counter store is not reachable",
                details={"backend": self.backend_name, "operation": "ping"},
            ) from exc
