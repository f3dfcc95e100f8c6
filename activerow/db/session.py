from __future__ import annotations

from contextlib import closing
from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.sql import Executable

Statement = str | Executable


def _as_statement(sql: Statement) -> Executable:
    return text(sql) if isinstance(sql, str) else sql


class StatementRunner:
    """
    Statement execution over a single open connection.

    Subclasses decide the connection's lifetime by implementing
    ``_connection()``; every method here runs on whatever it returns and
    closes the cursor before returning.
    """

    def _connection(self) -> Connection:
        raise NotImplementedError

    def _run(self, sql: Statement, params: Mapping[str, Any] | None) -> CursorResult:
        return self._connection().execute(_as_statement(sql), params or {})

    def execute(self, sql: Statement, params: Mapping[str, Any] | None = None) -> int:
        """
        Execute a non-SELECT statement and return affected row count.

        Raises:
            RuntimeError: If the driver reports no rowcount (e.g. DDL)
        """
        with closing(self._run(sql, params)) as result:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount; use execute_ddl() for DDL statements"
                )
            return int(result.rowcount)

    def execute_insert(
        self,
        sql: Statement,
        params: Mapping[str, Any] | None = None,
    ) -> tuple[Any, dict[str, Any] | None]:
        """
        Execute an INSERT and return ``(lastrowid, returned_row)``.

        ``returned_row`` is only set when the statement carries a RETURNING
        clause; ``lastrowid`` only when it does not.
        """
        with closing(self._run(sql, params)) as result:
            if result.returns_rows:
                row = result.mappings().one_or_none()
                return None, dict(row) if row is not None else None
            return result.lastrowid, None

    def execute_ddl(self, sql: Statement, params: Mapping[str, Any] | None = None) -> None:
        self._run(sql, params).close()

    def execute_scalar(self, sql: Statement, params: Mapping[str, Any] | None = None) -> Any:
        """Execute a statement expected to return a single scalar (e.g. ``SELECT COUNT(*)``)."""
        with closing(self._run(sql, params)) as result:
            return result.scalar_one_or_none()

    def fetch_one(
        self,
        sql: Statement,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Execute a SELECT expected to return 0 or 1 row.

        Raises:
            MultipleResultsFound: If more than one row is returned
        """
        with closing(self._run(sql, params)) as result:
            row = result.mappings().one_or_none()
            return dict(row) if row is not None else None

    def fetch_all(
        self,
        sql: Statement,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        with closing(self._run(sql, params)) as result:
            return [dict(row) for row in result.mappings()]


class DbSession(StatementRunner):
    """
    Transactional wrapper around a SQLAlchemy Engine connection.

    Commits when the block exits normally, rolls back when it raises.

    Use as:
        with DbSession(engine) as session:
            session.execute(...)
            row = session.fetch_one(...)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn
