from __future__ import annotations

import pytest

from activerow.data.pagination import Pagination
from activerow.errors import InvalidConfigError


def test_offset_limit_and_page_count() -> None:
    pagination = Pagination(page=1, page_size=2, total_count=5)
    assert pagination.page_count == 3
    assert pagination.offset == 2
    assert pagination.limit == 2


def test_page_past_the_end_is_kept_unless_validated() -> None:
    pagination = Pagination(page=10, page_size=2, total_count=5)
    assert pagination.page == 10
    assert pagination.offset == 20

    pagination.validate_page = True
    assert pagination.page == 2
    assert pagination.offset == 4


def test_validated_page_with_no_items_is_zero() -> None:
    pagination = Pagination(page=3, page_size=10, total_count=0, validate_page=True)
    assert pagination.page_count == 0
    assert pagination.page == 0


def test_page_size_below_one_disables_the_window() -> None:
    pagination = Pagination(page=0, page_size=0, total_count=7)
    assert pagination.limit is None
    assert pagination.offset == 0
    assert pagination.page_count == 1


@pytest.mark.parametrize("page", [-1, "2", 1.5, True])
def test_invalid_page_raises(page) -> None:
    with pytest.raises(InvalidConfigError):
        Pagination(page=page)


def test_request_reads_one_based_page() -> None:
    pagination = Pagination().request({"page": "3", "per-page": "5"})
    assert pagination.page == 2
    assert pagination.page_size == 5

    pagination.request({"page": "zero", "per-page": None})
    assert pagination.page == 2


@pytest.mark.parametrize("page_size", ["2", 2.0, None, False])
def test_invalid_page_size_raises(page_size) -> None:
    with pytest.raises(InvalidConfigError):
        Pagination(page_size=page_size)


def test_invalid_validate_page_raises() -> None:
    pagination = Pagination()
    with pytest.raises(InvalidConfigError):
        pagination.validate_page = "yes"
