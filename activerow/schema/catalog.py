"""Schema catalog backed by SQLAlchemy reflection.

Reflects column metadata (abstract type, nullability, default, size,
primary key, autoincrement) per table and caches it until ``refresh()``
is called. Migrations must refresh the catalog after DDL.

Usage:
    catalog = SchemaCatalog(engine)
    columns = catalog.get_columns("user_info")
    pk = catalog.get_primary_key("user_info")   # ["id"]
    catalog.refresh("user_info")                # after ALTER TABLE
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.types import (
    BINARY,
    VARBINARY,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    Text,
    Time,
    TypeEngine,
)

from ..errors import SchemaError, StorageError
from .models import ColumnMeta, TableMeta

logger = logging.getLogger(__name__)

_QUOTED_DEFAULT_RE = re.compile(r"^'(.*)'(::[\w\s]+)?$", re.DOTALL)
_NUMERIC_DEFAULT_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")


def abstract_type(sa_type: TypeEngine) -> str:
    """Map a reflected SQLAlchemy type onto an abstract type name."""
    # Order matters: Float subclasses Numeric, Text subclasses String.
    if isinstance(sa_type, Boolean):
        return "boolean"
    if isinstance(sa_type, Integer):
        return "integer"
    if isinstance(sa_type, Float):
        return "float"
    if isinstance(sa_type, Numeric):
        return "decimal"
    if isinstance(sa_type, DateTime):
        return "datetime"
    if isinstance(sa_type, Date):
        return "date"
    if isinstance(sa_type, Time):
        return "time"
    if isinstance(sa_type, (LargeBinary, BINARY, VARBINARY)):
        return "binary"
    if isinstance(sa_type, Text):
        return "text"
    return "string"


def parse_default(raw: Any) -> Any:
    """
    Extract a literal from a reflected server default.

    Returns the unquoted literal string, or None for NULL and for
    expressions (CURRENT_TIMESTAMP, nextval(...), ...).
    """
    if raw is None or not isinstance(raw, str):
        return raw
    value = raw.strip()
    while value.startswith("(") and value.endswith(")"):
        value = value[1:-1].strip()
    if value.upper() == "NULL":
        return None
    match = _QUOTED_DEFAULT_RE.match(value)
    if match:
        return match.group(1).replace("''", "'")
    if _NUMERIC_DEFAULT_RE.match(value) or value.lower() in ("true", "false"):
        return value
    return None


class SchemaCatalog:
    """Reflects and caches table metadata for one engine."""

    def __init__(self, engine: Engine, schema: str | None = None) -> None:
        self.engine = engine
        self.schema = schema
        self._tables: dict[str, TableMeta] = {}

    def get_table(self, name: str) -> TableMeta:
        """
        Return metadata for ``name``, reflecting it on first use.

        Raises:
            SchemaError: If the table does not exist
            StorageError: If reflection itself fails
        """
        table = self._tables.get(name)
        if table is None:
            table = self._load(name)
            self._tables[name] = table
        return table

    def get_columns(self, name: str) -> dict[str, ColumnMeta]:
        return self.get_table(name).columns

    def get_primary_key(self, name: str) -> list[str]:
        return list(self.get_table(name).primary_key)

    def has_table(self, name: str) -> bool:
        if name in self._tables:
            return True
        try:
            return inspect(self.engine).has_table(name, schema=self.schema)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def refresh(self, name: str | None = None) -> None:
        """Drop cached metadata for one table, or for all tables."""
        if name is None:
            self._tables.clear()
        else:
            self._tables.pop(name, None)

    def _load(self, name: str) -> TableMeta:
        try:
            inspector = inspect(self.engine)
            if not inspector.has_table(name, schema=self.schema):
                raise SchemaError(f"The table does not exist: {name}")
            reflected = inspector.get_columns(name, schema=self.schema)
            pk = inspector.get_pk_constraint(name, schema=self.schema)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

        primary_key = list(pk.get("constrained_columns") or [])
        columns: dict[str, ColumnMeta] = {}
        for col in reflected:
            columns[col["name"]] = self._column_meta(col, primary_key)

        logger.debug("Loaded schema for table %s (%d columns)", name, len(columns))
        return TableMeta(name=name, columns=columns, primary_key=primary_key)

    def _column_meta(self, col: dict[str, Any], primary_key: list[str]) -> ColumnMeta:
        sa_type = col["type"]
        kind = abstract_type(sa_type)
        try:
            db_type = sa_type.compile(dialect=self.engine.dialect)
        except CompileError:
            db_type = type(sa_type).__name__

        name = col["name"]
        is_pk = name in primary_key
        auto = col.get("autoincrement")
        autoincrement = auto is True or (
            auto in (None, "auto") and primary_key == [name] and kind == "integer"
        )

        meta = ColumnMeta(
            name=name,
            type=kind,
            db_type=db_type,
            nullable=bool(col.get("nullable", True)),
            size=getattr(sa_type, "length", None),
            precision=getattr(sa_type, "precision", None),
            scale=getattr(sa_type, "scale", None),
            is_primary_key=is_pk,
            autoincrement=autoincrement,
            comment=col.get("comment"),
        )
        default = parse_default(col.get("default"))
        if default is None or autoincrement:
            return meta
        try:
            typed_default = meta.typecast(default)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparseable default %r for column %s", default, name)
            return meta
        return replace(meta, default=typed_default)
