from .config import DbConfig, make_engine
from .data import CollectionDataProvider, Pagination, QueryDataProvider, Sort
from .db import Direction, Query, RecordQuery, Storage
from .errors import (
    ActiveRowError,
    InvalidConfigError,
    RecordStateError,
    SchemaError,
    StaleObjectError,
    StorageError,
    UnknownAttributeError,
    ValidationError,
)
from .migration import Migration
from .persistence import RecordStore
from .record import Op, Record
from .schema import SchemaCatalog
from .validators import Rule

__all__ = [
    "DbConfig",
    "make_engine",
    "Storage",
    "SchemaCatalog",
    "Query",
    "RecordQuery",
    "Direction",
    "Record",
    "Op",
    "Rule",
    "RecordStore",
    "Migration",
    "QueryDataProvider",
    "CollectionDataProvider",
    "Pagination",
    "Sort",
    "ActiveRowError",
    "SchemaError",
    "UnknownAttributeError",
    "RecordStateError",
    "StaleObjectError",
    "StorageError",
    "InvalidConfigError",
    "ValidationError",
]
