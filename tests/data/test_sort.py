from __future__ import annotations

import pytest

from activerow.data.sort import Sort, SortAttribute
from activerow.db.query import Direction
from activerow.errors import InvalidConfigError

ASC = Direction.ASC
DESC = Direction.DESC


@pytest.fixture
def sort() -> Sort:
    return Sort(
        attributes={
            "id": {},
            "age": {"default": "desc"},
            "name": {
                "asc": {"last_name": "asc", "first_name": "asc"},
                "desc": {"last_name": "desc", "first_name": "desc"},
                "label": "Full name",
            },
        },
        default_order={"id": "asc"},
    )


def test_attribute_definitions_are_normalized(sort: Sort) -> None:
    assert sort.attributes["id"] == SortAttribute(asc={"id": ASC}, desc={"id": DESC})
    assert sort.attributes["age"].default is DESC
    assert sort.get_label("name") == "Full name"
    assert sort.get_label("id") == "id"


def test_default_order_applies_without_request(sort: Sort) -> None:
    assert sort.get_attribute_orders() == {"id": ASC}
    assert sort.get_orders() == {"id": ASC}


def test_param_expands_to_column_orders(sort: Sort) -> None:
    sort.set_param("-name")
    assert sort.get_attribute_orders() == {"name": DESC}
    assert sort.get_attribute_order("name") is DESC
    assert sort.get_attribute_order("id") is None
    assert sort.get_orders() == {"last_name": DESC, "first_name": DESC}


def test_only_first_attribute_without_multi_sort(sort: Sort) -> None:
    sort.set_param("age,-id")
    assert sort.get_attribute_orders() == {"age": ASC}

    sort.enable_multi_sort = True
    assert sort.get_attribute_orders() == {"age": ASC, "id": DESC}


def test_unknown_attributes_are_ignored(sort: Sort) -> None:
    sort.set_param("password,-id")
    assert sort.get_attribute_orders() == {"id": DESC}

    sort.set_param("password")
    assert sort.get_attribute_orders() == {"id": ASC}


def test_request_and_parse_param(sort: Sort) -> None:
    assert sort.parse_param(" -id, name ,") == ["-id", "name"]
    sort.request({"sort": "-age"})
    assert sort.get_orders() == {"age": DESC}
    sort.request({"sort": ["not", "a", "string"]})
    assert sort.get_orders() == {"id": ASC}


def test_create_sort_param_toggles_direction(sort: Sort) -> None:
    assert sort.create_sort_param("id") == "-id"
    assert sort.create_sort_param("age") == "-age"
    assert sort.create_sort_param("name") == "name"

    sort.enable_multi_sort = True
    sort.set_param("name,-id")
    assert sort.create_sort_param("id") == "id,name"
    with pytest.raises(InvalidConfigError):
        sort.create_sort_param("password")


def test_explicit_orders(sort: Sort) -> None:
    sort.set_attribute_orders({"age": "desc"})
    assert sort.get_orders() == {"age": DESC}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"attributes": "id"},
        {"attributes": {"id": {"bogus": 1}}},
        {"attributes": {"id": 5}},
        {"default_order": {"id": "up"}},
        {"separator": ""},
    ],
)
def test_invalid_configuration_raises_eagerly(kwargs) -> None:
    with pytest.raises(InvalidConfigError):
        Sort(**kwargs)
