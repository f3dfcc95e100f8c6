from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Union

from sqlalchemy import and_, column, table, text, update
from sqlalchemy.sql import ClauseElement, ColumnElement, TableClause

from ..errors import InvalidConfigError

if TYPE_CHECKING:
    from .storage import Storage

# Mapping column -> value, a SQL fragment with named params, or a prebuilt clause.
Condition = Union[Mapping[str, Any], str, ColumnElement, None]

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe to embed in SQL.

    Identifiers are letters, digits and underscores, starting with a letter
    or underscore. Quoting of reserved words is left to the SQLAlchemy
    dialect when the statement is compiled.

    ⚠️ SECURITY CONTRACT ⚠️
    This function validates identifier format but does NOT make identifiers
    coming from untrusted input safe to use. Table and column names MUST be
    trusted (declared on Record classes or hardcoded by the caller).

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is invalid

    Example:
        >>> _validate_identifier("user_info", "table")
        'user_info'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ValueError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


def table_clause(name: str, columns: Iterable[str] = ()) -> TableClause:
    """Build a lightweight ``table()`` clause carrying the given column names."""
    return table(
        _validate_identifier(name, "table"),
        *(column(_validate_identifier(c, "column")) for c in columns),
    )


def build_condition(
    condition: Condition,
    params: Mapping[str, Any] | None = None,
) -> ColumnElement | None:
    """
    Turn a condition into a SQLAlchemy clause.

    Mapping conditions are ANDed column predicates: ``None`` becomes
    ``IS NULL``, a list/tuple/set becomes ``IN``, anything else ``=``.
    A string is a SQL fragment whose named parameters come from ``params``.

    Returns:
        The clause, or None when the condition is empty (match all rows)
    """
    if condition is None:
        return None

    if isinstance(condition, str):
        if not condition.strip():
            return None
        clause = text(condition)
        if params:
            clause = clause.bindparams(**params)
        return clause

    if isinstance(condition, ClauseElement):
        return condition

    if isinstance(condition, Mapping):
        if not condition:
            return None
        clauses = []
        for name, value in condition.items():
            col = column(_validate_identifier(name, "column"))
            if value is None:
                clauses.append(col.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(col.in_(list(value)))
            else:
                clauses.append(col == value)
        return and_(*clauses)

    raise InvalidConfigError(
        f"Unsupported condition type {type(condition).__name__}; "
        "expected a mapping, a SQL string or a SQLAlchemy clause"
    )


def occ_update(
    storage: "Storage",
    table_name: str,
    condition: Mapping[str, Any],
    lock_column: str,
    lock_value: Any,
    updates: Mapping[str, Any],
) -> int:
    """
    Execute an optimistic concurrency control (OCC) update using version checking.

    The update is conditional on ``lock_column`` still holding ``lock_value``;
    the lock column is incremented as part of the same statement.

    ⚠️ IMPORTANT USAGE CONTRACT ⚠️
    This helper is a *low-level primitive*. A return value of 0 means the
    row was changed (or removed) by another writer since it was read. The
    caller decides what that means; RecordStore raises StaleObjectError.
    Retrying requires re-reading the row first, in a new transaction.

    Args:
        storage: Storage handle (runs inside its active transaction, if any)
        table_name: Table name (must be a trusted identifier)
        condition: Primary-key column -> value mapping identifying the row
        lock_column: Version column name (must be a trusted identifier)
        lock_value: Expected version value
        updates: Column -> value to update (lock_column is handled automatically)

    Returns:
        Affected row count:
        - 1: Update succeeded (version matched)
        - 0: Update failed (version mismatch or missing row)
    """
    lock_column = _validate_identifier(lock_column, "lock_column")

    values = {col: val for col, val in updates.items() if col != lock_column}
    tbl = table_clause(table_name, [*values, lock_column])
    lock_col = tbl.c[lock_column]
    values[lock_column] = (lock_col if lock_value is not None else 0) + 1

    where = dict(condition)
    where[lock_column] = lock_value
    stmt = update(tbl).where(build_condition(where)).values(values)
    return storage.execute(stmt)
