"""Per-identifier throttle decisions.

The engine answers "may this unit of work proceed?" for an identifier, given
a maximum count per decay period. Counters decay by `max` for every whole
period elapsed since the identifier's last write (plus one), so a quiet
identifier recovers its quota without any background expiry.

Two acceptance modes share the same arithmetic:
- accept (hard/cumulative): every call is charged and written, so rejected
  traffic keeps consuming quota and advances the decay baseline.
- soft_accept: only accepted calls are written; a rejected call leaves the
  stored state untouched.

Read-modify-write against the store is not atomic. Concurrent calls for the
same identifier can interleave between read and write and the last writer
wins.
"""

from __future__ import annotations

import logging
import math
import numbers
import time

from node_throttle.adapters.counter_store.base import (
    AbstractCounterStore,
    Clock,
    Identifier,
    ThrottleState,
)
from node_throttle.core.errors import ThrottledAppError, ValidationAppError
from node_throttle.core.logging import hash_identifier
from node_throttle.services.whitelist import WhitelistSet

logger = logging.getLogger(__name__)


def _validate_limits(max_count: int, period: float) -> None:
    """Reject limits the decay arithmetic cannot handle.

    Raises:
        ValidationAppError: If max_count < 1 or period <= 0.
    """
    if isinstance(max_count, bool) or not isinstance(max_count, numbers.Integral) or max_count < 1:
        raise ValidationAppError(
            code="invalid_max",
            message="max must be an integer >= 1",
            details={"min_value": 1, "actual_value": max_count},
        )
    if isinstance(period, bool) or not isinstance(period, numbers.Real) or not period > 0:
        raise ValidationAppError(
            code="invalid_period",
            message="period must be a number of seconds > 0",
            details={"min_value": 0, "actual_value": period},
        )


def decayed_counter(counter: int, max_count: int, elapsed: float, period: float, *, floor: int) -> int:
    """Apply whole-period decay to a counter that already includes this call.

    Within the same period the counter is returned unchanged. Once more than
    one period has elapsed it drops by `max_count` per decay period, where
    decay periods are floor(elapsed / period + 1). A result that would go
    negative is replaced by `floor`; zero is kept as is.
    """
    if elapsed > period:
        decay_periods = math.floor(elapsed / period + 1)
        value = counter - max_count * decay_periods
        return floor if value < 0 else value
    return counter


class ThrottleEngine:
    """Throttle decision engine over a counter store and a whitelist."""

    def __init__(
        self,
        store: AbstractCounterStore,
        whitelist: WhitelistSet | None = None,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._whitelist = whitelist if whitelist is not None else WhitelistSet()
        self._clock = clock

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    @property
    def whitelist(self) -> WhitelistSet:
        return self._whitelist

    def _next_counter(self, identifier: Identifier, max_count: int, period: float, *, floor: int) -> tuple[ThrottleState, int, float]:
        """Read the identifier's state and compute its post-call counter.

        Returns:
            Tuple of (previous_state, new_counter, now).
        """
        prev = self._store.get_or_create(identifier)
        now = self._clock()
        elapsed = now - prev.timestamp
        new_counter = decayed_counter(prev.counter + 1, max_count, elapsed, period, floor=floor)
        return prev, new_counter, now

    def accept(self, identifier: Identifier, max_count: int, period: float) -> bool:
        """Hard (cumulative) acceptance: charge and persist every call.

        Args:
            identifier: Key throttled independently (e.g., a node or session key).
            max_count: Maximum accepted units per decay period (>= 1).
            period: Decay period in seconds (> 0).

        Returns:
            True if the call is within quota (or the identifier is whitelisted).

        Raises:
            ValidationAppError: If max_count or period is invalid (not checked
                for whitelisted identifiers).
            StoreAppError: If the store rejects the write.
        """
        if self._whitelist.is_white(identifier):
            return True
        _validate_limits(max_count, period)

        _, new_counter, now = self._next_counter(identifier, max_count, period, floor=0)
        self._store.write(ThrottleState(id=identifier, counter=new_counter, timestamp=now))

        allowed = new_counter <= max_count
        self._log_decision("accept", identifier, allowed, new_counter, max_count, period)
        return allowed

    def soft_accept(self, identifier: Identifier, max_count: int, period: float) -> bool:
        """Soft acceptance: only accepted calls are charged and persisted.

        When a decay would take the counter below zero it is set to 1, since
        the accepted call itself is counted. An exact decay to 0 is kept.

        Raises:
            ValidationAppError: If max_count or period is invalid.
            StoreAppError: If the store rejects the write.
        """
        if self._whitelist.is_white(identifier):
            return True
        _validate_limits(max_count, period)

        _, new_counter, now = self._next_counter(identifier, max_count, period, floor=1)
        allowed = new_counter <= max_count
        if allowed:
            self._store.write(ThrottleState(id=identifier, counter=new_counter, timestamp=now))

        self._log_decision("soft_accept", identifier, allowed, new_counter, max_count, period)
        return allowed

    def reset(self, identifier: Identifier) -> None:
        """Overwrite the identifier's state with a zero counter.

        The whitelist is not consulted.
        """
        self._store.write(ThrottleState(id=identifier, counter=0, timestamp=self._clock()))
        logger.info("throttle.reset", extra={"id_hash": hash_identifier(identifier)})

    def get_node(self, identifier: Identifier) -> ThrottleState:
        """Return the identifier's stored state, creating a fresh one if absent."""
        return self._store.get_or_create(identifier)

    def enforce(self, identifier: Identifier, max_count: int, period: float, *, soft: bool = False) -> None:
        """Raise ThrottledAppError when the call is not accepted.

        Args:
            identifier: Key throttled independently.
            max_count: Maximum accepted units per decay period.
            period: Decay period in seconds.
            soft: Use soft_accept semantics instead of accept.

        Raises:
            ThrottledAppError: If the identifier is over quota.
        """
        decide = self.soft_accept if soft else self.accept
        if decide(identifier, max_count, period):
            return

        raise ThrottledAppError(
            code="throttled",
            message="Throttle limit exceeded. Try again later.",
            details={
                "limit": max_count,
                "period_seconds": period,
                "retry_after": period,
            },
        )

    def _log_decision(
        self,
        mode: str,
        identifier: Identifier,
        allowed: bool,
        counter: int,
        max_count: int,
        period: float,
    ) -> None:
        extra = {
            "mode": mode,
            "id_hash": hash_identifier(identifier),
            "counter": counter,
            "limit": max_count,
            "period_s": period,
        }
        if allowed:
            logger.debug("throttle.accepted", extra=extra)
        else:
            logger.info("throttle.rejected", extra=extra)
