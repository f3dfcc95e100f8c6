from __future__ import annotations

from typing import Any

from ..db.query import Query, RecordQuery
from ..db.storage import Storage
from ..errors import InvalidConfigError
from .base import BaseDataProvider, KeySelector, PaginationConfig, SortConfig, get_value
from .sort import Sort


class QueryDataProvider(BaseDataProvider):
    """
    Data provider backed by a Query executed against storage.

    The base query is cloned for every fetch, so it is never modified.
    Models are records when the query is a RecordQuery, plain row dicts
    otherwise. For a RecordQuery with no sortable attributes configured,
    every model attribute becomes sortable.

    Usage:
        provider = QueryDataProvider(
            store.find(UserInfo).where({"type": 2}),
            storage,
            pagination={"page_size": 10},
            sort={"default_order": {"id": "desc"}},
        )
        users = provider.get_models()
        total = provider.get_total_count()
    """

    def __init__(
        self,
        query: Query,
        storage: Storage,
        key: KeySelector = None,
        sort: SortConfig = None,
        pagination: PaginationConfig = None,
    ) -> None:
        if not isinstance(query, Query):
            raise InvalidConfigError(
                f"QueryDataProvider requires a Query instance, got {type(query).__name__}"
            )
        if not isinstance(storage, Storage):
            raise InvalidConfigError(
                f"QueryDataProvider requires a Storage handle, got {type(storage).__name__}"
            )
        self.query = query
        self.storage = storage
        super().__init__(key=key, sort=sort, pagination=pagination)

    def get_sort(self) -> Sort | None:
        sort = super().get_sort()
        if sort is not None and not sort.attributes and isinstance(self.query, RecordQuery):
            sort.set_attributes(self.query.attribute_names())
        return sort

    def prepare_models(self) -> list[Any]:
        query = self.query.clone()
        pagination = self.get_pagination()
        if pagination is not None:
            pagination.total_count = self.get_total_count()
            if pagination.total_count == 0:
                return []
            query.limit(pagination.limit).offset(pagination.offset)
        sort = self.get_sort()
        if sort is not None:
            query.add_order_by(sort.get_orders())
        return query.all(self.storage)

    def prepare_keys(self, models: list[Any]) -> list[Any]:
        if self.key is not None:
            return [self._selected_key(model) for model in models]
        if isinstance(self.query, RecordQuery):
            primary_key = self.query.primary_key_names()
            if len(primary_key) == 1:
                name = primary_key[0]
                return [get_value(model, name) for model in models]
            if primary_key:
                return [{name: get_value(model, name) for name in primary_key} for model in models]
        offset = self._page_offset()
        return list(range(offset, offset + len(models)))

    def prepare_total_count(self) -> int:
        return self.query.count(self.storage)

