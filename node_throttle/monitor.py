"""Process-wide throttle facade.

Host applications call these module-level functions instead of wiring an
engine themselves. The engine and its counter store are built from settings
on first use and cached in-module so state and connections are reused across
calls.

Until `init()` runs, the whitelist is uninitialized and every identifier is
accepted (fail-open).
"""

from __future__ import annotations

import logging
from typing import Iterable

from node_throttle.adapters.counter_store.base import Identifier, ThrottleState
from node_throttle.adapters.counter_store.factory import create_counter_store
from node_throttle.core.config import settings
from node_throttle.services.throttle_service import ThrottleEngine
from node_throttle.services.whitelist import parse_whitelist

logger = logging.getLogger(__name__)


_engine: ThrottleEngine | None = None


def get_engine() -> ThrottleEngine:
    """Return the process-wide engine, building it from settings if needed."""

    global _engine

    if _engine is None:
        _engine = ThrottleEngine(create_counter_store(settings.store))
        logger.info("monitor.engine_created", extra={"backend": _engine.store.backend_name})

    return _engine


def reset_engine() -> None:
    """Drop the cached engine so the next call rebuilds it (tests, reconfiguration)."""

    global _engine
    _engine = None


def init(whitelist: Iterable[Identifier] | None = None) -> None:
    """Prepare the counter store and (re)initialize the whitelist.

    Args:
        whitelist: Exempt identifiers. When None, THROTTLE_WHITELIST is used
            (an empty whitelist when that is unset too).

    Raises:
        StoreAppError: If the counter store cannot be prepared.
    """

    engine = get_engine()
    engine.store.ensure_ready()

    if whitelist is None:
        whitelist = parse_whitelist(settings.throttle.whitelist)
    engine.whitelist.init(whitelist)


def _resolve_limits(max_count: int | None, period: float | None) -> tuple[int, float]:
    if max_count is None:
        max_count = settings.throttle.default_max
    if period is None:
        period = settings.throttle.default_period_seconds
    return max_count, period


def accept(identifier: Identifier, max_count: int | None = None, period: float | None = None) -> bool:
    """Hard acceptance; see ThrottleEngine.accept. Omitted limits use settings."""

    max_count, period = _resolve_limits(max_count, period)
    return get_engine().accept(identifier, max_count, period)


def soft_accept(identifier: Identifier, max_count: int | None = None, period: float | None = None) -> bool:
    """Soft acceptance; see ThrottleEngine.soft_accept. Omitted limits use settings."""

    max_count, period = _resolve_limits(max_count, period)
    return get_engine().soft_accept(identifier, max_count, period)


def enforce(
    identifier: Identifier,
    max_count: int | None = None,
    period: float | None = None,
    *,
    soft: bool = False,
) -> None:
    max_count, period = _resolve_limits(max_count, period)
    get_engine().enforce(identifier, max_count, period, soft=soft)


def reset(identifier: Identifier) -> None:
    get_engine().reset(identifier)


def get_node(identifier: Identifier) -> ThrottleState:
    return get_engine().get_node(identifier)
