from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Sequence

from sqlalchemy import column, delete, insert, update
from sqlalchemy.engine import Dialect, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from .helpers import Condition, build_condition, table_clause
from .session import DbSession, Statement
from .tx import DbFactory, DbTransaction, DbTx

logger = logging.getLogger(__name__)


class Storage:
    """
    Storage handle injected into the persistence engine and data providers.

    While a transaction opened with begin()/transaction() is active, every
    statement runs on that transaction's connection. Otherwise each call is
    its own short DbSession (commit on success, rollback on error).

    Driver failures surface as StorageError with the original exception
    chained; nothing is logged and swallowed.

    Usage:
        storage = Storage(engine)
        with storage.transaction():
            storage.update("user_info", {"type": 3}, {"id": 7})
            storage.delete("user_info", {"id": 8})
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._factory = DbFactory(engine)
        self._tx: DbTransaction | None = None

    @property
    def dialect(self) -> Dialect:
        return self.engine.dialect

    @property
    def in_transaction(self) -> bool:
        return self._tx is not None and not self._tx.closed

    def begin(self) -> DbTransaction:
        """
        Begin an explicit transaction on this storage handle.

        The caller owns it and must commit() or rollback(); until then every
        Storage call runs on it.

        Raises:
            RuntimeError: If a transaction is already active
        """
        if self.in_transaction:
            raise RuntimeError("A transaction is already active on this storage handle")
        try:
            self._tx = self._factory.begin()
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        return self._tx

    @contextmanager
    def transaction(self) -> Iterator[DbTransaction]:
        """Context-managed begin(): commit on success, rollback on exception."""
        tx = self.begin()
        try:
            yield tx
        except BaseException:
            if not tx.closed:
                tx.rollback()
            raise
        if not tx.closed:
            try:
                tx.commit()
            except SQLAlchemyError as exc:
                raise StorageError(str(exc)) from exc

    @contextmanager
    def _runner(self) -> Iterator[DbTx]:
        try:
            if self.in_transaction:
                yield self._tx
            else:
                with DbSession(self.engine) as session:
                    yield session
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Raw statements
    # ------------------------------------------------------------------

    def execute(self, stmt: Statement, params: Mapping[str, Any] | None = None) -> int:
        """Execute a non-SELECT statement and return affected row count."""
        with self._runner() as runner:
            return runner.execute(stmt, params)

    def execute_ddl(self, stmt: Statement, params: Mapping[str, Any] | None = None) -> None:
        with self._runner() as runner:
            runner.execute_ddl(stmt, params)

    def scalar(self, stmt: Statement, params: Mapping[str, Any] | None = None) -> Any:
        with self._runner() as runner:
            return runner.execute_scalar(stmt, params)

    def fetch_one(
        self, stmt: Statement, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        with self._runner() as runner:
            return runner.fetch_one(stmt, params)

    def fetch_all(
        self, stmt: Statement, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        with self._runner() as runner:
            return runner.fetch_all(stmt, params)

    # ------------------------------------------------------------------
    # Table-level operations
    # ------------------------------------------------------------------

    def insert(
        self,
        table: str,
        values: Mapping[str, Any],
        primary_key: Sequence[str] = (),
        autoincrement: str | None = None,
    ) -> dict[str, Any]:
        """
        Insert one row and return its primary-key values.

        Primary-key columns missing from ``values`` are read back from
        storage: through RETURNING where the dialect supports it, otherwise
        from the cursor's lastrowid for the autoincrement column.

        Returns:
            Mapping of primary-key column -> value (supplied or generated)
        """
        tbl = table_clause(table, values.keys())
        stmt = insert(tbl).values(dict(values)) if values else insert(tbl)
        missing = [pk for pk in primary_key if values.get(pk) is None]
        use_returning = bool(missing) and getattr(self.dialect, "insert_returning", False)
        if use_returning:
            stmt = stmt.returning(*(column(pk) for pk in missing))

        with self._runner() as runner:
            lastrowid, returned = runner.execute_insert(stmt)

        keys = {pk: values[pk] for pk in primary_key if values.get(pk) is not None}
        if returned:
            keys.update(returned)
        elif autoincrement is not None and autoincrement in missing and lastrowid:
            keys[autoincrement] = lastrowid
        return keys

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Update all rows matching ``condition``; returns affected row count."""
        if not values:
            return 0
        stmt = update(table_clause(table, values.keys())).values(dict(values))
        where = build_condition(condition, params)
        if where is not None:
            stmt = stmt.where(where)
        return self.execute(stmt)

    def increment(
        self,
        table: str,
        counters: Mapping[str, int | float],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Add ``counters[col]`` to each column in SQL (``col = col + n``)."""
        if not counters:
            return 0
        tbl = table_clause(table, counters.keys())
        stmt = update(tbl).values({name: tbl.c[name] + n for name, n in counters.items()})
        where = build_condition(condition, params)
        if where is not None:
            stmt = stmt.where(where)
        return self.execute(stmt)

    def delete(
        self,
        table: str,
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Delete all rows matching ``condition``; returns affected row count."""
        stmt = delete(table_clause(table))
        where = build_condition(condition, params)
        if where is not None:
            stmt = stmt.where(where)
        return self.execute(stmt)
