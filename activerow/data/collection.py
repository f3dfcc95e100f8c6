from __future__ import annotations

from typing import Any, Mapping, Sequence

from ..db.query import Direction
from ..errors import InvalidConfigError
from .base import BaseDataProvider, KeySelector, PaginationConfig, SortConfig, get_value


def sort_models(models: Sequence[Any], orders: Mapping[str, Direction]) -> list[Any]:
    """
    Stable multi-key sort.

    Earlier keys take precedence; models equal on every key keep their
    original relative order. None sorts before any other value.
    """
    result = list(models)
    for name, direction in reversed(list(orders.items())):

        def sort_key(model: Any, name: str = name) -> tuple[bool, Any]:
            value = get_value(model, name)
            return (value is not None, value)

        result.sort(key=sort_key, reverse=direction is Direction.DESC)
    return result


class CollectionDataProvider(BaseDataProvider):
    """
    Data provider over an in-memory sequence of models.

    Models may be records, mappings or plain objects. Sorting happens
    before slicing, so pages are windows over the fully sorted
    collection. Without a ``key`` selector, keys are positions in that
    sorted collection.

    Usage:
        provider = CollectionDataProvider(
            rows,
            sort={"attributes": ["id", "name"], "default_order": {"id": "asc"}},
            pagination={"page_size": 2, "page": 1},
        )
    """

    def __init__(
        self,
        all_models: Sequence[Any] | None = None,
        key: KeySelector = None,
        sort: SortConfig = None,
        pagination: PaginationConfig = None,
    ) -> None:
        if all_models is None:
            all_models = []
        if isinstance(all_models, (str, bytes)) or not isinstance(all_models, Sequence):
            raise InvalidConfigError(
                f"CollectionDataProvider requires a sequence of models, got {type(all_models).__name__}"
            )
        self.all_models = all_models
        super().__init__(key=key, sort=sort, pagination=pagination)

    def prepare_models(self) -> list[Any]:
        models = list(self.all_models)
        sort = self.get_sort()
        if sort is not None:
            orders = sort.get_orders()
            if orders:
                models = sort_models(models, orders)

        pagination = self.get_pagination()
        if pagination is not None:
            pagination.total_count = self.get_total_count()
            if pagination.limit is not None:
                offset = pagination.offset
                models = models[offset:offset + pagination.limit]
        return models

    def prepare_keys(self, models: list[Any]) -> list[Any]:
        if self.key is not None:
            return [self._selected_key(model) for model in models]
        offset = self._page_offset()
        return list(range(offset, offset + len(models)))

    def prepare_total_count(self) -> int:
        return len(self.all_models)
