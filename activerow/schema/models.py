"""Column and table metadata exposed by the schema catalog.

``ColumnMeta.type`` is an abstract type name independent of the database
dialect: ``integer``, ``float``, ``decimal``, ``boolean``, ``string``,
``text``, ``binary``, ``date``, ``datetime`` or ``time``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from ..errors import UnknownAttributeError

STRING_TYPES = frozenset({"string", "text", "binary"})
_FALSE_STRINGS = frozenset({"", "0", "false", "f", "no", "off"})


@dataclass(frozen=True)
class ColumnMeta:
    """Metadata for a single column.

    Example:
        >>> col = ColumnMeta(name="type", type="integer", default=2)
        >>> col.typecast("3")
        3
    """

    name: str
    type: str
    db_type: str = ""
    nullable: bool = True
    default: Any = None
    size: int | None = None
    precision: int | None = None
    scale: int | None = None
    is_primary_key: bool = False
    autoincrement: bool = False
    comment: str | None = None

    def typecast(self, value: Any) -> Any:
        """Convert a storage (or user supplied) value to the column's Python type.

        Empty strings become None for every non-string type.
        """
        if value is None:
            return None
        if isinstance(value, str) and value == "" and self.type not in STRING_TYPES:
            return None

        kind = self.type
        if kind == "integer":
            return int(value)
        if kind == "float":
            return float(value)
        if kind == "decimal":
            return value if isinstance(value, Decimal) else Decimal(str(value))
        if kind == "boolean":
            if isinstance(value, str):
                return value.strip().lower() not in _FALSE_STRINGS
            return bool(value)
        if kind == "datetime":
            if isinstance(value, datetime):
                return value
            return datetime.fromisoformat(str(value))
        if kind == "date":
            if isinstance(value, datetime):
                return value.date()
            if isinstance(value, date):
                return value
            return date.fromisoformat(str(value)[:10])
        if kind == "time":
            if isinstance(value, time):
                return value
            return time.fromisoformat(str(value))
        if kind == "binary":
            if isinstance(value, str):
                return value.encode()
            return bytes(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode()
        return value if isinstance(value, str) else str(value)

    def db_typecast(self, value: Any) -> Any:
        """Convert a Python value into something every driver can bind."""
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return value


@dataclass(frozen=True)
class TableMeta:
    """Metadata for a table: ordered columns plus primary key."""

    name: str
    columns: dict[str, ColumnMeta] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=list)

    @property
    def autoincrement_column(self) -> str | None:
        for name in self.primary_key:
            if self.columns[name].autoincrement:
                return name
        return None

    def column(self, name: str) -> ColumnMeta:
        try:
            return self.columns[name]
        except KeyError:
            raise UnknownAttributeError(
                f"Table {self.name!r} has no column {name!r}"
            ) from None
