from .helpers import build_condition, occ_update
from .query import Direction, Query, RecordQuery
from .session import DbSession
from .storage import Storage
from .tx import DbFactory, DbTransaction, DbTx

__all__ = [
    "DbSession",
    "DbTx",
    "DbTransaction",
    "DbFactory",
    "Storage",
    "Query",
    "RecordQuery",
    "Direction",
    "build_condition",
    "occ_update",
]
