"""Counter store interfaces.

The engine depends on this abstraction (not a concrete backend) so the
durable store can be swapped (in-memory, Redis, SQL) without touching the
decision logic.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from node_throttle.core.logging import hash_identifier

logger = logging.getLogger(__name__)

Identifier = str | bytes
Clock = Callable[[], float]


@dataclass(frozen=True)
class ThrottleState:
    """Persisted throttle state for a single identifier.

    Attributes:
        id: Opaque identifier being throttled.
        counter: Units charged in the current decay window (never negative).
        timestamp: UNIX epoch seconds of the last write.
    """

    id: Identifier
    counter: int
    timestamp: float


class AbstractCounterStore(ABC):
    """Interface for durable, shared per-identifier counter storage.

    Subclasses implement `_read` (explicit existence check) and `write`.
    There is no compare-and-swap: a read followed by a write can race with
    another caller for the same identifier and the last writer wins.
    """

    backend_name = "abstract"
    # Backend errors that mean "unreadable"; treated like a missing identifier.
    read_errors: tuple[type[Exception], ...] = ()

    def __init__(self, *, clock: Clock = time.time) -> None:
        self._clock = clock

    @abstractmethod
    def _read(self, identifier: Identifier) -> ThrottleState | None:
        """Return the stored state, or None when the identifier is absent.

        Raises:
            One of `read_errors` when the store is unreadable.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, state: ThrottleState) -> None:
        """Unconditionally overwrite the stored state for `state.id`.

        Raises:
            StoreAppError: If the backend rejects the write.
        """
        raise NotImplementedError

    def ensure_ready(self) -> None:
        """Make sure the backing collection exists. No-op by default."""

    def get_or_create(self, identifier: Identifier) -> ThrottleState:
        """Return the stored state for `identifier`, creating a fresh one if absent.

        Read failures are treated as "not found": they are logged and a fresh
        state is persisted in place of the unreadable one.
        """
        try:
            state = self._read(identifier)
        except self.read_errors as exc:
            logger.warning(
                "store.read_failed",
                extra={
                    "backend": self.backend_name,
                    "id_hash": hash_identifier(identifier),
                    "error_type": type(exc).__name__,
                },
            )
            state = None

        if state is not None:
            return state

        state = ThrottleState(id=identifier, counter=0, timestamp=self._clock())
        self.write(state)
        logger.debug(
            "store.created",
            extra={"backend": self.backend_name, "id_hash": hash_identifier(identifier)},
        )
        return state
