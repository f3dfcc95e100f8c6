from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from sqlalchemy.engine import Connection, Engine

from .session import Statement, StatementRunner

logger = logging.getLogger(__name__)


class DbTx(Protocol):
    """What Storage needs from a statement runner: DbSession or DbTransaction."""

    def execute(self, sql: Statement, params: Mapping[str, Any] | None = None) -> int: ...

    def execute_insert(
        self, sql: Statement, params: Mapping[str, Any] | None = None
    ) -> tuple[Any, dict[str, Any] | None]: ...

    def execute_ddl(self, sql: Statement, params: Mapping[str, Any] | None = None) -> None: ...

    def execute_scalar(self, sql: Statement, params: Mapping[str, Any] | None = None) -> Any: ...

    def fetch_one(
        self, sql: Statement, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None: ...

    def fetch_all(
        self, sql: Statement, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...


class DbTransaction(StatementRunner):
    """
    Database transaction with explicit commit/rollback methods.

    Same statement interface as DbSession, but the caller decides when the
    transaction ends. Storage hands one out from ``begin()`` and routes every
    call through it until it is committed or rolled back, which is how
    several record writes share one transaction.

    The transaction begins on construction. After commit or rollback the
    connection is closed and any further use raises RuntimeError.

    Usage:
        tx = DbFactory(engine).begin()
        try:
            tx.execute("UPDATE ...", {...})
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._closed = False
        self._conn: Connection | None = engine.connect()
        self._tx = self._conn.begin()

    @property
    def closed(self) -> bool:
        return self._closed

    def _connection(self) -> Connection:
        self._ensure_open()
        assert self._conn is not None
        return self._conn

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction is already closed")

    def _close(self) -> None:
        self._closed = True
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._tx = None

    def commit(self) -> None:
        """
        Commit and release the connection.

        A failed commit is rolled back before its error propagates.
        """
        self._ensure_open()
        try:
            self._tx.commit()
        except Exception:
            try:
                self._tx.rollback()
            except Exception:
                logger.warning("Rollback after failed commit also failed", exc_info=True)
            raise
        finally:
            self._close()

    def rollback(self) -> None:
        self._ensure_open()
        try:
            self._tx.rollback()
        finally:
            self._close()


class DbFactory:
    """Begins DbTransactions against one engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def begin(self) -> DbTransaction:
        return DbTransaction(self.engine)
