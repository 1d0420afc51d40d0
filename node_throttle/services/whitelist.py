"""Whitelist of identifiers exempt from throttling.

The set starts UNINITIALIZED, in which state every identifier is exempt
(fail-open). `init()` swaps in a new immutable member set in one assignment,
so readers never observe a partially populated whitelist.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

from node_throttle.adapters.counter_store.base import Identifier

logger = logging.getLogger(__name__)


class WhitelistState(str, Enum):
    """Lifecycle states of a whitelist."""

    UNINITIALIZED = "uninitialized"
    EMPTY = "empty"
    POPULATED = "populated"


def parse_whitelist(whitelist_string: str | None) -> list[str]:
    """Parse a comma-separated whitelist into a list of identifiers.

    Examples:
        >>> parse_whitelist("node1, node2 ,node3")
        ['node1', 'node2', 'node3']
        >>> parse_whitelist(None)
        []
    """
    if not whitelist_string:
        return []
    return [item.strip() for item in whitelist_string.split(",") if item.strip()]


class WhitelistSet:
    """Swappable set of exempt identifiers."""

    def __init__(self) -> None:
        self._members: frozenset[Identifier] | None = None

    def __len__(self) -> int:
        members = self._members
        return len(members) if members is not None else 0

    def __contains__(self, identifier: object) -> bool:
        members = self._members
        return members is not None and identifier in members

    @property
    def state(self) -> WhitelistState:
        members = self._members
        if members is None:
            return WhitelistState.UNINITIALIZED
        return WhitelistState.POPULATED if members else WhitelistState.EMPTY

    def init(self, identifiers: Iterable[Identifier]) -> None:
        """Replace the whitelist contents with exactly `identifiers`."""
        members = frozenset(identifiers)
        self._members = members
        logger.info("whitelist.initialized", extra={"size": len(members)})

    def is_white(self, identifier: Identifier) -> bool:
        """Return True if the identifier is exempt (or the set is uninitialized)."""
        members = self._members
        if members is None:
            return True
        return identifier in members
