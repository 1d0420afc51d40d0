"""In-memory counter store.

Notes:
- Per-process only: state is lost on restart and not shared across workers.
- The lock keeps individual reads/writes consistent; it does not make the
  engine's read-modify-write atomic.
"""

from __future__ import annotations

import threading
import time

from node_throttle.adapters.counter_store.base import (
    AbstractCounterStore,
    Clock,
    Identifier,
    ThrottleState,
)


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a plain dict.

    Useful for tests and single-process deployments.
    """

    backend_name = "memory"

    def __init__(self, *, clock: Clock = time.time) -> None:
        super().__init__(clock=clock)
        self._lock = threading.RLock()
        self._state_by_id: dict[Identifier, ThrottleState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_id)

    def _read(self, identifier: Identifier) -> ThrottleState | None:
        with self._lock:
            return self._state_by_id.get(identifier)

    def write(self, state: ThrottleState) -> None:
        with self._lock:
            self._state_by_id[state.id] = state
