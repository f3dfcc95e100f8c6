from __future__ import annotations

from typing import Any, Callable, Mapping, Union

from ..errors import InvalidConfigError
from ..record import Record
from .pagination import Pagination
from .sort import Sort

KeySelector = Union[str, Callable[[Any], Any], None]
SortConfig = Union[Sort, Mapping[str, Any], bool, None]
PaginationConfig = Union[Pagination, Mapping[str, Any], bool, None]


def get_value(model: Any, name: str) -> Any:
    """Read ``name`` from a record, a mapping or a plain object."""
    if isinstance(model, Record):
        return model.get_attribute(name)
    if isinstance(model, Mapping):
        return model.get(name)
    return getattr(model, name, None)


class BaseDataProvider:
    """
    Paginated, sortable view over a set of models.

    Models, keys and the total count are computed lazily on first access
    and cached until refresh(). Sort and pagination are enabled by default;
    pass False to disable either, a mapping to configure it, or a ready
    Sort/Pagination object.

    Subclasses implement prepare_models(), prepare_keys() and
    prepare_total_count().
    """

    def __init__(
        self,
        key: KeySelector = None,
        sort: SortConfig = None,
        pagination: PaginationConfig = None,
    ) -> None:
        if key is not None and not isinstance(key, str) and not callable(key):
            raise InvalidConfigError(f"Key must be an attribute name or a callable, got {key!r}")
        self.key = key
        self._models: list[Any] | None = None
        self._keys: list[Any] | None = None
        self._total_count: int | None = None
        self._sort: Sort | None = None
        self._pagination: Pagination | None = None
        self.set_sort(sort)
        self.set_pagination(pagination)

    # ------------------------------------------------------------------
    # Sort / pagination
    # ------------------------------------------------------------------

    def set_sort(self, value: SortConfig) -> None:
        if value is False:
            self._sort = None
        elif value is None or value is True:
            self._sort = Sort()
        elif isinstance(value, Sort):
            self._sort = value
        elif isinstance(value, Mapping):
            self._sort = Sort(**value)
        else:
            raise InvalidConfigError(f"Invalid sort configuration: {value!r}")

    def get_sort(self) -> Sort | None:
        return self._sort

    def set_pagination(self, value: PaginationConfig) -> None:
        if value is False:
            self._pagination = None
        elif value is None or value is True:
            self._pagination = Pagination()
        elif isinstance(value, Pagination):
            self._pagination = value
        elif isinstance(value, Mapping):
            self._pagination = Pagination(**value)
        else:
            raise InvalidConfigError(f"Invalid pagination configuration: {value!r}")

    def get_pagination(self) -> Pagination | None:
        return self._pagination

    # ------------------------------------------------------------------
    # Cached state
    # ------------------------------------------------------------------

    def prepare(self, force: bool = False) -> None:
        """Compute models and keys unless cached; ``force`` recomputes everything."""
        if force:
            self._total_count = None
        if force or self._models is None:
            self._models = self.prepare_models()
            self._keys = None
        if self._keys is None:
            self._keys = self.prepare_keys(self._models)

    def get_models(self) -> list[Any]:
        self.prepare()
        return self._models

    def set_models(self, models: list[Any]) -> None:
        """Replace the current page; keys are recomputed for the new models."""
        self._models = models
        self._keys = None

    def get_keys(self) -> list[Any]:
        self.prepare()
        return self._keys

    def set_keys(self, keys: list[Any]) -> None:
        self._keys = keys

    def get_count(self) -> int:
        """Number of models on the current page."""
        return len(self.get_models())

    def get_total_count(self) -> int:
        """Number of models across all pages."""
        if self._pagination is None:
            return self.get_count()
        if self._total_count is None:
            self._total_count = self.prepare_total_count()
        return self._total_count

    def set_total_count(self, value: int) -> None:
        self._total_count = value

    def refresh(self) -> None:
        self._models = None
        self._keys = None
        self._total_count = None

    def _selected_key(self, model: Any) -> Any:
        if isinstance(self.key, str):
            return get_value(model, self.key)
        return self.key(model)

    def _page_offset(self) -> int:
        return self._pagination.offset if self._pagination is not None else 0

    def prepare_models(self) -> list[Any]:
        raise NotImplementedError

    def prepare_keys(self, models: list[Any]) -> list[Any]:
        raise NotImplementedError

    def prepare_total_count(self) -> int:
        raise NotImplementedError
