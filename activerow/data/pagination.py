from __future__ import annotations

import logging
from typing import Any, Mapping

from ..errors import InvalidConfigError

logger = logging.getLogger(__name__)


class Pagination:
    """
    Page window over ``total_count`` items.

    Pages are 0-indexed. A ``page_size`` below 1 disables the window: one
    page holding everything, ``limit`` None and ``offset`` 0.

    ``total_count`` is written by the data provider right before it reads
    ``offset``/``limit``. With ``validate_page`` set, a requested page past
    the end is clamped to the last page; otherwise it yields no items.

    Example:
        >>> p = Pagination(page=1, page_size=2, total_count=5)
        >>> p.page_count, p.offset, p.limit
        (3, 2, 2)
    """

    def __init__(
        self,
        page: int = 0,
        page_size: int = 20,
        total_count: int = 0,
        validate_page: bool = False,
    ) -> None:
        self.page_size = page_size
        self.total_count = total_count
        self.validate_page = validate_page
        self.page = page

    def __repr__(self) -> str:
        return (
            f"Pagination(page={self._page}, page_size={self.page_size}, "
            f"total_count={self.total_count})"
        )

    @property
    def page(self) -> int:
        if self.validate_page:
            return max(0, min(self._page, self.page_count - 1))
        return self._page

    @page.setter
    def page(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigError(f"Page must be an integer, got {value!r}")
        if value < 0:
            raise InvalidConfigError(f"Page must be >= 0, got {value}")
        self._page = value

    @property
    def page_size(self) -> int:
        return self._page_size

    @page_size.setter
    def page_size(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigError(f"Page size must be an integer, got {value!r}")
        self._page_size = value

    @property
    def validate_page(self) -> bool:
        return self._validate_page

    @validate_page.setter
    def validate_page(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise InvalidConfigError(f"validate_page must be a bool, got {value!r}")
        self._validate_page = value

    @property
    def page_count(self) -> int:
        total = max(self.total_count, 0)
        if self.page_size < 1:
            return 1 if total > 0 else 0
        return (total + self.page_size - 1) // self.page_size

    @property
    def offset(self) -> int:
        return 0 if self.page_size < 1 else self.page * self.page_size

    @property
    def limit(self) -> int | None:
        return None if self.page_size < 1 else self.page_size

    def request(
        self,
        params: Mapping[str, Any],
        page_param: str = "page",
        page_size_param: str = "per-page",
    ) -> "Pagination":
        """
        Read page and page size from request parameters.

        Request pages are 1-based (``?page=2`` is the second page); malformed
        values are ignored.
        """
        raw_size = params.get(page_size_param)
        if raw_size is not None:
            try:
                self.page_size = int(raw_size)
            except (TypeError, ValueError):
                logger.debug("Ignoring invalid %s=%r", page_size_param, raw_size)
        raw_page = params.get(page_param)
        if raw_page is not None:
            try:
                self.page = max(int(raw_page) - 1, 0)
            except (TypeError, ValueError):
                logger.debug("Ignoring invalid %s=%r", page_param, raw_page)
        return self
