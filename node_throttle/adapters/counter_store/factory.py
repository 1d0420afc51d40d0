"""Factory for creating counter store instances."""

import time

from node_throttle.adapters.counter_store.base import AbstractCounterStore, Clock
from node_throttle.adapters.counter_store.in_memory import InMemoryCounterStore
from node_throttle.adapters.counter_store.redis_store import RedisCounterStore
from node_throttle.adapters.counter_store.sql_store import SqlCounterStore
from node_throttle.core.config import StoreSettings, settings
from node_throttle.core.errors import ValidationAppError


def create_counter_store(
    store_settings: StoreSettings | None = None,
    *,
    clock: Clock = time.time,
) -> AbstractCounterStore:
    """Instantiate the counter store selected by STORE_BACKEND.

    Args:
        store_settings: Optional store settings; defaults to global settings.
        clock: Time source shared with the engine.

    Returns:
        AbstractCounterStore: Configured (not yet prepared) store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryCounterStore(clock=clock)

    if backend == "redis":
        return RedisCounterStore.from_url(cfg.redis_url, key_prefix=cfg.redis_key_prefix, clock=clock)

    if backend == "sql":
        return SqlCounterStore.from_url(cfg.database_url, clock=clock)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: memory, redis, sql",
        details={"backend": backend},
    )
