from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import Column, Integer

from activerow.errors import SchemaError, UnknownAttributeError
from activerow.schema.catalog import SchemaCatalog, parse_default
from activerow.schema.models import ColumnMeta


def test_columns_are_ordered_and_typed(catalog: SchemaCatalog, user_info_table) -> None:
    columns = catalog.get_columns("user_info")

    assert list(columns) == ["id", "name", "type", "image", "phone", "birthday", "describe", "cost"]
    assert {name: meta.type for name, meta in columns.items()} == {
        "id": "integer",
        "name": "string",
        "type": "integer",
        "image": "string",
        "phone": "string",
        "birthday": "date",
        "describe": "text",
        "cost": "decimal",
    }
    assert columns["phone"].size == 11
    assert columns["name"].nullable is False
    assert columns["type"].default == 2
    assert columns["image"].default is None


def test_primary_key_and_autoincrement(catalog: SchemaCatalog, user_info_table, plain_table) -> None:
    assert catalog.get_primary_key("user_info") == ["id"]
    assert catalog.get_table("user_info").autoincrement_column == "id"

    assert catalog.get_primary_key("order_line") == ["order_id", "line_no"]
    assert catalog.get_table("order_line").autoincrement_column is None


def test_unknown_table_raises_schema_error(catalog: SchemaCatalog) -> None:
    with pytest.raises(SchemaError, match="no_such_table"):
        catalog.get_columns("no_such_table")
    assert catalog.has_table("no_such_table") is False


def test_metadata_is_cached_until_refresh(catalog: SchemaCatalog, table_factory) -> None:
    table_factory("cached_t", Column("id", Integer, primary_key=True))
    assert list(catalog.get_columns("cached_t")) == ["id"]

    table_factory("cached_t", Column("id", Integer, primary_key=True), Column("extra", Integer))
    assert list(catalog.get_columns("cached_t")) == ["id"]

    catalog.refresh("cached_t")
    assert list(catalog.get_columns("cached_t")) == ["id", "extra"]


def test_table_meta_column_lookup(catalog: SchemaCatalog, user_info_table) -> None:
    with pytest.raises(UnknownAttributeError):
        catalog.get_table("user_info").column("nope")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("'2'", "2"),
        ("('it''s')", "it's"),
        ("'abc'::character varying", "abc"),
        ("42", "42"),
        ("NULL", None),
        ("CURRENT_TIMESTAMP", None),
        (None, None),
    ],
)
def test_parse_default(raw, expected) -> None:
    assert parse_default(raw) == expected


def test_column_typecast() -> None:
    assert ColumnMeta("n", "integer").typecast("7") == 7
    assert ColumnMeta("n", "integer").typecast("") is None
    assert ColumnMeta("s", "string").typecast("") == ""
    assert ColumnMeta("s", "string").typecast(12) == "12"
    assert ColumnMeta("d", "date").typecast("1990-01-02") == date(1990, 1, 2)
    assert ColumnMeta("c", "decimal").typecast(12.5) == Decimal("12.5")
    assert ColumnMeta("b", "boolean").typecast("0") is False
    assert ColumnMeta("d", "date").db_typecast(date(1990, 1, 2)) == "1990-01-02"
