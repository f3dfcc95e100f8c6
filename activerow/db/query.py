from __future__ import annotations

import copy
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Sequence, Union

from sqlalchemy import and_, column, func, literal_column, select
from sqlalchemy.sql import ColumnElement, Select

from ..errors import InvalidConfigError
from .helpers import Condition, _validate_identifier, build_condition, table_clause

if TYPE_CHECKING:
    from ..record import Record
    from ..schema.catalog import SchemaCatalog
    from .storage import Storage


class Direction(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def coerce(cls, value: Any) -> "Direction":
        """Accept a Direction or a case-insensitive 'asc'/'desc' string."""
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidConfigError(f"Invalid sort direction {value!r}; expected 'asc' or 'desc'")


Orders = Union[Mapping[str, Union[Direction, str]], Sequence[tuple[str, Union[Direction, str]]]]


class Query:
    """
    Minimal SELECT builder over a single table.

    Builder methods mutate the query and return it, so calls can be chained.
    Use clone() before specializing a shared base query.

    Usage:
        query = Query("user_info").where({"type": 2}).order_by({"name": "asc"})
        rows = query.clone().limit(10).all(storage)
        total = query.count(storage)
    """

    def __init__(self, table: str, columns: Sequence[str] | None = None) -> None:
        self.table = _validate_identifier(table, "table")
        self.columns: list[str] | None = None
        self._where: list[ColumnElement] = []
        self._order_by: dict[str, Direction] = {}
        self._limit: int | None = None
        self._offset: int | None = None
        if columns:
            self.select(columns)

    @property
    def orders(self) -> dict[str, Direction]:
        return dict(self._order_by)

    @property
    def limit_value(self) -> int | None:
        return self._limit

    @property
    def offset_value(self) -> int | None:
        return self._offset

    def select(self, columns: Sequence[str] | None) -> "Query":
        self.columns = [_validate_identifier(c, "column") for c in columns] if columns else None
        return self

    def where(self, condition: Condition, params: Mapping[str, Any] | None = None) -> "Query":
        """Replace the filter with ``condition``."""
        self._where = []
        return self.and_where(condition, params)

    def and_where(self, condition: Condition, params: Mapping[str, Any] | None = None) -> "Query":
        clause = build_condition(condition, params)
        if clause is not None:
            self._where.append(clause)
        return self

    def order_by(self, orders: Orders | None) -> "Query":
        """Replace the ordering; an empty or None value removes it."""
        self._order_by = {}
        return self.add_order_by(orders or {})

    def add_order_by(self, orders: Orders) -> "Query":
        items = orders.items() if isinstance(orders, Mapping) else orders
        for name, direction in items:
            self._order_by[_validate_identifier(name, "column")] = Direction.coerce(direction)
        return self

    def limit(self, value: int | None) -> "Query":
        """Set the row limit; None or a negative value removes it."""
        self._limit = value if value is not None and value >= 0 else None
        return self

    def offset(self, value: int | None) -> "Query":
        """Set the row offset; None or a negative value removes it."""
        self._offset = value if value is not None and value >= 0 else None
        return self

    def clone(self) -> "Query":
        new = copy.copy(self)
        new.columns = list(self.columns) if self.columns else None
        new._where = list(self._where)
        new._order_by = dict(self._order_by)
        return new

    def _filtered(self, stmt: Select) -> Select:
        if self._where:
            stmt = stmt.where(and_(*self._where))
        return stmt

    def build(self) -> Select:
        tbl = table_clause(self.table)
        cols = [column(c) for c in self.columns] if self.columns else [literal_column("*")]
        stmt = self._filtered(select(*cols).select_from(tbl))
        for name, direction in self._order_by.items():
            col = column(name)
            stmt = stmt.order_by(col.desc() if direction is Direction.DESC else col.asc())
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset:
            stmt = stmt.offset(self._offset)
        return stmt

    def build_count(self) -> Select:
        """COUNT(*) over the filter only; limit, offset and ordering are ignored."""
        return self._filtered(select(func.count()).select_from(table_clause(self.table)))

    def populate(self, rows: list[dict[str, Any]]) -> list[Any]:
        return rows

    def all(self, storage: "Storage") -> list[Any]:
        return self.populate(storage.fetch_all(self.build()))

    def one(self, storage: "Storage") -> Any | None:
        rows = self.populate(storage.fetch_all(self.clone().limit(1).build()))
        return rows[0] if rows else None

    def count(self, storage: "Storage") -> int:
        return int(storage.scalar(self.build_count()) or 0)

    def exists(self, storage: "Storage") -> bool:
        return bool(storage.fetch_all(self.clone().limit(1).build()))


class RecordQuery(Query):
    """
    Query bound to a Record class.

    Rows come back as populated records (typecast, old attributes set,
    after_find() called) unless as_rows() was requested.
    """

    def __init__(
        self,
        model_class: type["Record"],
        catalog: "SchemaCatalog",
        columns: Sequence[str] | None = None,
    ) -> None:
        super().__init__(model_class.table_name, columns)
        self.model_class = model_class
        self.catalog = catalog
        self._as_rows = False

    def as_rows(self, value: bool = True) -> "RecordQuery":
        self._as_rows = value
        return self

    def primary_key_names(self) -> list[str]:
        return self.catalog.get_primary_key(self.table)

    def attribute_names(self) -> list[str]:
        return list(self.catalog.get_columns(self.table))

    def new_model(self) -> "Record":
        return self.model_class(self.catalog)

    def populate(self, rows: list[dict[str, Any]]) -> list[Any]:
        if self._as_rows:
            return rows
        return [self.model_class.instantiate(self.catalog, row) for row in rows]
