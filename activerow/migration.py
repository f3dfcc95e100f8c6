"""Schema migrations.

Subclass Migration and implement ``safe_up()`` (and ``safe_down()`` if
the migration can be reverted). ``up()``/``down()`` run them inside one
storage transaction. Every step is logged with its elapsed time, and
every DDL step drops the touched table from the schema catalog so the
next Record or provider use reflects the new shape.

Usage:
    class CreateUserInfo(Migration):
        def safe_up(self):
            self.create_table(
                "user_info",
                Column("id", Integer, primary_key=True, autoincrement=True),
                Column("name", String(255), nullable=False),
            )
            self.create_index("name", "user_info", ["name"])

        def safe_down(self):
            self.drop_table("user_info")

    CreateUserInfo(storage, catalog).up()

Note that MySQL commits implicitly around DDL statements, so only data
steps are really rolled back there when a migration fails.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, Sequence

from sqlalchemy import Column, Index, MetaData, Table
from sqlalchemy.schema import CreateColumn, CreateIndex, CreateTable, DropTable

from .db.helpers import Condition, _validate_identifier
from .db.session import Statement
from .db.storage import Storage
from .schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)


class Migration:
    def __init__(self, storage: Storage, catalog: SchemaCatalog) -> None:
        self.storage = storage
        self.catalog = catalog

    @property
    def name(self) -> str:
        return type(self).__name__

    def up(self) -> bool:
        """Apply the migration; returns False (after rollback) if it failed."""
        return self._run("up", self.safe_up)

    def down(self) -> bool:
        """Revert the migration; returns False (after rollback) if it failed."""
        return self._run("down", self.safe_down)

    def safe_up(self) -> bool | None:
        return None

    def safe_down(self) -> bool | None:
        logger.warning("%s cannot be reverted.", self.name)
        return False

    def _run(self, direction: str, step: Callable[[], bool | None]) -> bool:
        start = time.monotonic()
        try:
            with self.storage.transaction() as tx:
                if step() is False:
                    tx.rollback()
                    logger.error("*** failed to apply %s (%s)", self.name, direction)
                    return False
        except Exception:
            logger.exception("*** failed to apply %s (%s)", self.name, direction)
            return False
        finally:
            self.catalog.refresh()
        logger.info(
            "*** applied %s (%s) (time: %.3fs)", self.name, direction, time.monotonic() - start
        )
        return True

    @contextmanager
    def _step(self, description: str, *args: Any) -> Iterator[None]:
        message = description % args if args else description
        logger.info("    > %s ...", message)
        start = time.monotonic()
        yield
        logger.info("    > %s done (time: %.3fs)", message, time.monotonic() - start)

    def _quote(self, name: str, identifier_type: str = "identifier") -> str:
        return self.storage.dialect.identifier_preparer.quote(_validate_identifier(name, identifier_type))

    # ------------------------------------------------------------------
    # Data steps
    # ------------------------------------------------------------------

    def execute(self, sql: Statement, params: Mapping[str, Any] | None = None) -> None:
        with self._step("execute SQL: %s", sql):
            self.storage.execute_ddl(sql, params)

    def insert(self, table: str, values: Mapping[str, Any]) -> None:
        with self._step("insert into %s", table):
            self.storage.insert(table, values)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        with self._step("update %s", table):
            return self.storage.update(table, values, condition, params)

    def delete(
        self,
        table: str,
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        with self._step("delete from %s", table):
            return self.storage.delete(table, condition, params)

    # ------------------------------------------------------------------
    # DDL steps
    # ------------------------------------------------------------------

    def create_table(self, table: str, *columns: Column, **table_kwargs: Any) -> None:
        """
        Create ``table`` from SQLAlchemy Column objects.

        Extra keyword arguments go to ``sqlalchemy.Table`` (for example
        ``mysql_engine="InnoDB"`` or ``comment=...``).
        """
        _validate_identifier(table, "table")
        definition = Table(table, MetaData(), *columns, **table_kwargs)
        with self._step("create table %s", table):
            self.storage.execute_ddl(CreateTable(definition))
        self.catalog.refresh(table)

    def drop_table(self, table: str) -> None:
        _validate_identifier(table, "table")
        with self._step("drop table %s", table):
            self.storage.execute_ddl(DropTable(Table(table, MetaData())))
        self.catalog.refresh(table)

    def rename_table(self, table: str, new_name: str) -> None:
        with self._step("rename table %s to %s", table, new_name):
            self.storage.execute_ddl(
                f"ALTER TABLE {self._quote(table, 'table')} RENAME TO {self._quote(new_name, 'table')}"
            )
        self.catalog.refresh(table)
        self.catalog.refresh(new_name)

    def truncate_table(self, table: str) -> None:
        with self._step("truncate table %s", table):
            if self.storage.dialect.name == "sqlite":
                self.storage.delete(table)
            else:
                self.storage.execute_ddl(f"TRUNCATE TABLE {self._quote(table, 'table')}")

    def add_column(self, table: str, column: Column) -> None:
        _validate_identifier(table, "table")
        # The column must belong to a table for dialect-specific compilation.
        Table(table, MetaData(), column)
        spec = CreateColumn(column).compile(dialect=self.storage.dialect)
        with self._step("add column %s to table %s", column.name, table):
            self.storage.execute_ddl(f"ALTER TABLE {self._quote(table, 'table')} ADD COLUMN {spec}")
        self.catalog.refresh(table)

    def drop_column(self, table: str, column: str) -> None:
        with self._step("drop column %s from table %s", column, table):
            self.storage.execute_ddl(
                f"ALTER TABLE {self._quote(table, 'table')} DROP COLUMN {self._quote(column, 'column')}"
            )
        self.catalog.refresh(table)

    def rename_column(self, table: str, name: str, new_name: str) -> None:
        with self._step("rename column %s in table %s to %s", name, table, new_name):
            self.storage.execute_ddl(
                f"ALTER TABLE {self._quote(table, 'table')} "
                f"RENAME COLUMN {self._quote(name, 'column')} TO {self._quote(new_name, 'column')}"
            )
        self.catalog.refresh(table)

    def create_index(self, name: str, table: str, columns: Sequence[str] | str, unique: bool = False) -> None:
        if isinstance(columns, str):
            columns = [columns]
        _validate_identifier(name, "index")
        definition = Table(
            _validate_identifier(table, "table"),
            MetaData(),
            *(Column(_validate_identifier(c, "column")) for c in columns),
        )
        index = Index(name, *(definition.c[c] for c in columns), unique=unique)
        label = "unique index" if unique else "index"
        with self._step("create %s %s on %s (%s)", label, name, table, ", ".join(columns)):
            self.storage.execute_ddl(CreateIndex(index))
        self.catalog.refresh(table)

    def drop_index(self, name: str, table: str) -> None:
        statement = f"DROP INDEX {self._quote(name, 'index')}"
        if self.storage.dialect.name == "mysql":
            statement += f" ON {self._quote(table, 'table')}"
        with self._step("drop index %s on %s", name, table):
            self.storage.execute_ddl(statement)
        self.catalog.refresh(table)
