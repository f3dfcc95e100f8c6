"""Persistence engine: single-record writes plus bulk and lookup helpers.

Each insert/update/delete follows the same state machine:

    validate -> before hook -> storage write -> after hook

Validation runs outside any transaction. When the record's scenario
declares the operation transactional (``Record.transactions``), the hook
and write steps run inside one storage transaction: a False result rolls
it back and is returned, an exception rolls it back and propagates, and
anything else commits. If the caller already opened a transaction on the
storage handle, the operation joins it instead and leaves commit/rollback
to the caller.

Usage:
    store = RecordStore(Storage(engine))
    user = store.new(UserInfo, name="alice", phone="13800000000")
    if not store.save(user):
        print(user.errors)

    user["type"] = 3
    store.update(user)          # rows affected, or False when declined

    store.delete(user)          # user is inert afterwards
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, TypeVar

from sqlalchemy.sql import ClauseElement

from .db.helpers import Condition, occ_update
from .db.metrics import observe_record_write, observe_stale_object
from .db.query import RecordQuery
from .db.session import Statement
from .db.storage import Storage
from .errors import InvalidConfigError, RecordStateError, StaleObjectError
from .record import DEFAULT_SCENARIO, Op, Record
from .schema.catalog import SchemaCatalog
from .schema.models import TableMeta

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

_DECLINED_MESSAGES = {
    Op.INSERT: "Record not inserted due to validation error.",
    Op.UPDATE: "Record not updated due to validation error.",
}


def _db_values(schema: TableMeta, values: Mapping[str, Any]) -> dict[str, Any]:
    return {name: schema.column(name).db_typecast(value) for name, value in values.items()}


class RecordStore:
    """
    Writes records to an injected Storage handle.

    The store also owns the SchemaCatalog handed to records it creates or
    loads; pass one explicitly to share a catalog between stores.
    """

    def __init__(self, storage: Storage, catalog: SchemaCatalog | None = None) -> None:
        self.storage = storage
        self.catalog = catalog if catalog is not None else SchemaCatalog(storage.engine)

    def new(self, model_class: type[R], scenario: str = DEFAULT_SCENARIO, **attributes: Any) -> R:
        return model_class(self.catalog, scenario, **attributes)

    # ------------------------------------------------------------------
    # Single-record writes
    # ------------------------------------------------------------------

    def save(
        self,
        record: Record,
        run_validation: bool = True,
        attribute_names: Iterable[str] | None = None,
    ) -> bool:
        """Insert a new record or update an existing one."""
        if record.is_new_record and not record.is_deleted:
            return self.insert(record, run_validation, attribute_names)
        return self.update(record, run_validation, attribute_names) is not False

    def insert(
        self,
        record: Record,
        run_validation: bool = True,
        attribute_names: Iterable[str] | None = None,
    ) -> bool:
        """
        Insert a new record.

        Primary-key values generated by storage are assigned back to the
        record. After a successful insert the record is no longer new.

        Returns:
            True on success, False when validation or before_save() declined

        Raises:
            RecordStateError: If the record is not new (or was deleted)
            StorageError: If the driver fails (after rollback)
        """
        self._check_alive(record)
        if not record.is_new_record:
            raise RecordStateError(f"{type(record).__name__} is not new; use update()")
        names = None if attribute_names is None else list(attribute_names)
        return self._write(
            record, Op.INSERT, run_validation, names, lambda: self._insert_internal(record, names)
        )

    def update(
        self,
        record: Record,
        run_validation: bool = True,
        attribute_names: Iterable[str] | None = None,
    ) -> int | bool:
        """
        Write the record's dirty attributes.

        With a lock column declared, the row is matched on the lock
        column's persisted value as well, and the lock column is
        incremented in the same statement.

        Returns:
            Rows affected (0 when nothing was dirty or nothing matched), or
            False when validation or before_save() declined

        Raises:
            RecordStateError: If the record is new or deleted
            StaleObjectError: If a lock column is declared and no row matched
            StorageError: If the driver fails (after rollback)
        """
        self._check_alive(record)
        if record.is_new_record:
            raise RecordStateError(f"{type(record).__name__} is new; use insert()")
        names = None if attribute_names is None else list(attribute_names)
        return self._write(
            record, Op.UPDATE, run_validation, names, lambda: self._update_internal(record, names)
        )

    def delete(self, record: Record) -> int | bool:
        """
        Delete the row behind the record, matched by its persisted primary key.

        On success the record's old attributes are cleared and any further
        use of it raises RecordStateError.

        Returns:
            Rows affected (0 is benign without a lock column), or False when
            before_delete() declined

        Raises:
            RecordStateError: If the record is new or already deleted
            StaleObjectError: If a lock column is declared and no row matched
        """
        self._check_alive(record)
        if record.is_new_record:
            raise RecordStateError(f"{type(record).__name__} is new and cannot be deleted")
        return self._write(record, Op.DELETE, False, None, lambda: self._delete_internal(record))

    def refresh(self, record: Record) -> bool:
        """
        Reload the record's attributes from storage.

        Returns:
            False if the row no longer exists, True otherwise
        """
        self._check_alive(record)
        row = (
            self.find(type(record))
            .where(_db_values(record.table_schema(), record.get_old_primary_key(as_dict=True)))
            .as_rows()
            .one(self.storage)
        )
        if row is None:
            return False
        record._populate(row)
        record.clear_errors()
        record.after_refresh()
        return True

    @staticmethod
    def _check_alive(record: Record) -> None:
        if record.is_deleted:
            raise RecordStateError(
                f"{type(record).__name__} has been deleted and can no longer be saved"
            )

    def _write(
        self,
        record: Record,
        op: Op,
        run_validation: bool,
        attribute_names: list[str] | None,
        internal: Callable[[], Any],
    ) -> Any:
        op_type = op.name.lower()
        start_time = time.monotonic()
        status = "success"
        try:
            if run_validation and not record.validate(attribute_names):
                logger.info(_DECLINED_MESSAGES[op])
                status = "declined"
                return False

            if record.is_transactional(op) and not self.storage.in_transaction:
                with self.storage.transaction() as tx:
                    result = internal()
                    if result is False:
                        tx.rollback()
            else:
                result = internal()

            if result is False:
                status = "declined"
            return result
        except StaleObjectError:
            status = "stale"
            observe_stale_object(record.table_name, op_type)
            raise
        except Exception:
            status = "error"
            raise
        finally:
            observe_record_write(record.table_name, op_type, status, time.monotonic() - start_time)

    def _insert_internal(self, record: Record, attribute_names: list[str] | None) -> bool:
        if not record.before_save(True):
            return False
        schema = record.table_schema()
        lock = record.lock_column
        if lock is not None and record.get_attribute(lock) is None:
            record.set_attribute(lock, 0)
        values = record.dirty_attributes(attribute_names)
        if lock is not None:
            values[lock] = record.get_attribute(lock)
        keys = self.storage.insert(
            record.table_name,
            _db_values(schema, values),
            primary_key=schema.primary_key,
            autoincrement=schema.autoincrement_column,
        )
        for name, value in keys.items():
            if name not in values:
                record.set_attribute(name, schema.column(name).typecast(value))
                values[name] = record.get_attribute(name)

        record.set_old_attributes(values)
        record.after_save(True, dict.fromkeys(values))
        return True

    def _update_internal(self, record: Record, attribute_names: list[str] | None) -> int | bool:
        if not record.before_save(False):
            return False
        values = record.dirty_attributes(attribute_names)
        if not values:
            record.after_save(False, {})
            return 0

        schema = record.table_schema()
        condition = _db_values(schema, record.get_old_primary_key(as_dict=True))
        lock = record.lock_column
        if lock is None:
            rows = self.storage.update(record.table_name, _db_values(schema, values), condition)
        else:
            lock_value = record.get_old_attribute(lock)
            rows = occ_update(
                self.storage,
                record.table_name,
                condition,
                lock,
                lock_value,
                _db_values(schema, values),
            )
            if rows == 0:
                logger.warning(
                    "Optimistic lock conflict updating %s %s (%s=%s)",
                    record.table_name,
                    condition,
                    lock,
                    lock_value,
                )
                raise StaleObjectError("The object being updated is outdated.")
            values[lock] = (lock_value or 0) + 1
            record.set_attribute(lock, values[lock])

        old_attributes = record.old_attributes or {}
        changed = {name: old_attributes.get(name) for name in values}
        old_attributes.update(values)
        record.set_old_attributes(old_attributes)
        record.after_save(False, changed)
        return rows

    def _delete_internal(self, record: Record) -> int | bool:
        if not record.before_delete():
            return False
        schema = record.table_schema()
        condition = record.get_old_primary_key(as_dict=True)
        lock = record.lock_column
        if lock is not None:
            condition[lock] = record.get_old_attribute(lock)
        rows = self.storage.delete(record.table_name, _db_values(schema, condition))
        if lock is not None and rows == 0:
            logger.warning(
                "Optimistic lock conflict deleting %s %s", record.table_name, condition
            )
            raise StaleObjectError("The object being deleted is outdated.")

        record.set_old_attributes(None)
        record.after_delete()
        record._mark_deleted()
        return rows

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find(self, model_class: type[Record]) -> RecordQuery:
        return RecordQuery(model_class, self.catalog)

    def _lookup(self, model_class: type[Record], condition: Any) -> RecordQuery:
        query = self.find(model_class)
        if condition is None or isinstance(condition, (Mapping, str, ClauseElement)):
            return query.where(condition)
        # Anything else is a primary-key value or a list of them.
        primary_key = query.primary_key_names()
        if len(primary_key) != 1:
            raise InvalidConfigError(
                f"{model_class.__name__} needs a single-column primary key for lookup by value"
            )
        key_column = self.catalog.get_table(model_class.table_name).column(primary_key[0])
        if isinstance(condition, (list, tuple, set)):
            value: Any = [key_column.db_typecast(v) for v in condition]
        else:
            value = key_column.db_typecast(condition)
        return query.where({primary_key[0]: value})

    def find_one(self, model_class: type[R], condition: Any) -> R | None:
        """
        Load the first record matching ``condition``.

        ``condition`` is a condition mapping, a SQL fragment, a SQLAlchemy
        clause, or a bare primary-key value.
        """
        return self._lookup(model_class, condition).one(self.storage)

    def find_all(self, model_class: type[R], condition: Any = None) -> list[R]:
        return self._lookup(model_class, condition).all(self.storage)

    def find_by_sql(
        self,
        model_class: type[R],
        sql: Statement,
        params: Mapping[str, Any] | None = None,
    ) -> list[R]:
        """
        Load records from an arbitrary SELECT.

        Result columns that are not attributes of ``model_class`` are
        dropped; each record is populated and after_find() is called as
        for find_all().
        """
        rows = self.storage.fetch_all(sql, params)
        return [model_class.instantiate(self.catalog, row) for row in rows]

    # ------------------------------------------------------------------
    # Bulk operations (no validation, no hooks)
    # ------------------------------------------------------------------

    def update_all(
        self,
        model_class: type[Record],
        values: Mapping[str, Any],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Update every matching row directly; lifecycle hooks are not run."""
        schema = self.catalog.get_table(model_class.table_name)
        rows = self.storage.update(model_class.table_name, _db_values(schema, values), condition, params)
        logger.debug("update_all on %s affected %d rows", model_class.table_name, rows)
        return rows

    def update_all_counters(
        self,
        model_class: type[Record],
        counters: Mapping[str, int | float],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Add ``counters[name]`` to each named column of every matching row."""
        schema = self.catalog.get_table(model_class.table_name)
        for name in counters:
            schema.column(name)
        rows = self.storage.increment(model_class.table_name, counters, condition, params)
        logger.debug("update_all_counters on %s affected %d rows", model_class.table_name, rows)
        return rows

    def delete_all(
        self,
        model_class: type[Record],
        condition: Condition = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Delete every matching row directly; lifecycle hooks are not run."""
        rows = self.storage.delete(model_class.table_name, condition, params)
        logger.debug("delete_all on %s affected %d rows", model_class.table_name, rows)
        return rows
