"""SQL table counter store (SQLAlchemy).

Durable storage in a single `throttle_state` table keyed by identifier.
Any database SQLAlchemy supports works; SQLite is the default.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Column, Double, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from node_throttle.adapters.counter_store.base import (
    AbstractCounterStore,
    Clock,
    Identifier,
    ThrottleState,
)
from node_throttle.core.errors import StoreAppError
from node_throttle.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for counter store models."""

    pass


class ThrottleStateRecord(Base):
    """Row holding the counter and last-write time of one identifier."""

    __tablename__ = "throttle_state"

    id = Column(String(255), primary_key=True)
    counter = Column(Integer, nullable=False, default=0)
    # Double precision; single-precision FLOAT cannot resolve epoch seconds.
    timestamp = Column(Double, nullable=False)


def _row_key(identifier: Identifier) -> str:
    """Tag keys by type so "n" and b"n" are distinct rows, as they are in memory."""
    if isinstance(identifier, bytes):
        return f"b:{identifier.hex()}"
    return f"s:{identifier}"


class SqlCounterStore(AbstractCounterStore):
    """Counter store persisting one row per identifier."""

    backend_name = "sql"
    read_errors = (SQLAlchemyError,)

    def __init__(self, engine: Engine, *, clock: Clock = time.time) -> None:
        super().__init__(clock=clock)
        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_url(cls, url: str, *, clock: Clock = time.time) -> SqlCounterStore:
        """Build a store from a SQLAlchemy database URL."""
        return cls(create_engine(url), clock=clock)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ensure_ready(self) -> None:
        """Create the throttle_state table if it does not exist."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as exc:
            raise StoreAppError(
                code="store_unavailable",
                message="Failed to create the throttle_state table",
                details={"backend": self.backend_name, "operation": "create_all"},
            ) from exc

    def _read(self, identifier: Identifier) -> ThrottleState | None:
        with self._session() as session:
            record = session.get(ThrottleStateRecord, _row_key(identifier))
            if record is None:
                return None
            return ThrottleState(id=identifier, counter=record.counter, timestamp=record.timestamp)

    def write(self, state: ThrottleState) -> None:
        try:
            with self._session() as session:
                session.merge(
                    ThrottleStateRecord(
                        id=_row_key(state.id),
                        counter=state.counter,
                        timestamp=state.timestamp,
                    )
                )
        except SQLAlchemyError as exc:
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
                message="Failed to write throttle state to the database",
                details={"backend": self.backend_name, "operation": "merge"},
            ) from exc
