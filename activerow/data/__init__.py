from .base import BaseDataProvider
from .collection import CollectionDataProvider
from .pagination import Pagination
from .query import QueryDataProvider
from .sort import Sort, SortAttribute

__all__ = [
    "BaseDataProvider",
    "CollectionDataProvider",
    "Pagination",
    "QueryDataProvider",
    "Sort",
    "SortAttribute",
]
