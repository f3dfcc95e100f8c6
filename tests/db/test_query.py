from __future__ import annotations

import pytest

from activerow.db.query import Direction, Query, RecordQuery
from activerow.errors import InvalidConfigError
from tests._models import VersionedItem


@pytest.fixture
def items(storage, versioned_table) -> None:
    for title, qty in [("pear", 3), ("apple", 5), ("fig", 1), ("kiwi", 5)]:
        storage.insert("versioned_item", {"title": title, "qty": qty})


def test_all_applies_filter_order_limit_and_offset(storage, items) -> None:
    query = Query("versioned_item", ["title"]).where({"qty": 5}).order_by({"title": "desc"})
    assert query.all(storage) == [{"title": "kiwi"}, {"title": "apple"}]

    paged = Query("versioned_item", ["title"]).order_by([("qty", "asc"), ("title", "asc")])
    assert paged.clone().limit(2).offset(1).all(storage) == [{"title": "pear"}, {"title": "apple"}]


def test_count_ignores_limit_offset_and_order(storage, items) -> None:
    query = Query("versioned_item").and_where("qty > :min", {"min": 2}).order_by({"id": "asc"}).limit(1).offset(1)
    assert query.count(storage) == 3
    assert len(query.all(storage)) == 1


def test_one_and_exists(storage, items) -> None:
    query = Query("versioned_item", ["title"]).order_by({"qty": "asc"})
    assert query.one(storage) == {"title": "fig"}
    assert query.exists(storage) is True
    assert Query("versioned_item").where({"qty": 100}).one(storage) is None
    assert Query("versioned_item").where({"qty": 100}).exists(storage) is False


def test_clone_does_not_share_state() -> None:
    base = Query("versioned_item").where({"qty": 1}).order_by({"id": "asc"})
    copy = base.clone().and_where({"title": "x"}).add_order_by({"title": "desc"}).limit(3)

    assert base.limit_value is None
    assert base.orders == {"id": Direction.ASC}
    assert copy.orders == {"id": Direction.ASC, "title": Direction.DESC}
    assert len(copy._where) == 2 and len(base._where) == 1


def test_negative_limit_and_offset_clear_them() -> None:
    query = Query("versioned_item").limit(5).offset(10)
    query.limit(-1).offset(None)
    assert query.limit_value is None
    assert query.offset_value is None


def test_invalid_direction_raises() -> None:
    with pytest.raises(InvalidConfigError):
        Query("versioned_item").order_by({"id": "sideways"})


def test_record_query_populates_records(storage, catalog, items) -> None:
    query = RecordQuery(VersionedItem, catalog).where({"title": "fig"})

    record = query.one(storage)
    assert isinstance(record, VersionedItem)
    assert record.is_new_record is False
    assert record["qty"] == 1
    assert record.dirty_attributes() == {}

    assert query.clone().as_rows().one(storage)["title"] == "fig"
    assert query.primary_key_names() == ["id"]
    assert query.attribute_names() == ["id", "title", "qty", "version"]
