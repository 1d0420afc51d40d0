"""Per-identifier request throttling backed by a shared counter store."""

from node_throttle.adapters.counter_store.base import AbstractCounterStore, ThrottleState
from node_throttle.core.errors import (
    AppError,
    StoreAppError,
    ThrottledAppError,
    ValidationAppError,
)
from node_throttle.core.logging import configure_logging
from node_throttle.monitor import accept, enforce, get_node, init, reset, soft_accept
from node_throttle.services.throttle_service import ThrottleEngine
from node_throttle.services.whitelist import WhitelistSet, WhitelistState

__all__ = [
    "AbstractCounterStore",
    "AppError",
    "StoreAppError",
    "ThrottleEngine",
    "ThrottleState",
    "ThrottledAppError",
    "ValidationAppError",
    "WhitelistSet",
    "WhitelistState",
    "accept",
    "configure_logging",
    "enforce",
    "get_node",
    "init",
    "reset",
    "soft_accept",
]
