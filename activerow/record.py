"""In-memory records bound to one table row.

A Record tracks the values currently assigned (``attributes``) and the
last values known to be persisted (``old_attributes``). A record without
old attributes is new and goes down the insert path; one with old
attributes is existing and goes down the update/delete path. Persistence
itself lives in RecordStore; records never talk to storage.

Usage:
    class UserInfo(Record):
        table_name = "user_info"
        transactions = {"default": Op.ALL}

        @classmethod
        def rules(cls):
            return [
                Rule(["name", "phone"], Required()),
                Rule("phone", String(max=11)),
            ]

    user = UserInfo(catalog, name="alice", phone="13800000000")
    user.validate()
"""

from __future__ import annotations

import logging
import re
from enum import IntFlag
from typing import Any, ClassVar, Iterable, Mapping

from .errors import InvalidConfigError, RecordStateError, UnknownAttributeError
from .schema.catalog import SchemaCatalog
from .schema.models import TableMeta
from .validators import Rule, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SCENARIO = "default"


class Op(IntFlag):
    """Operations a scenario can declare as transactional."""

    INSERT = 0x01
    UPDATE = 0x02
    DELETE = 0x04
    ALL = 0x07


def _values_differ(current: Any, old: Any) -> bool:
    return type(current) is not type(old) or current != old


def generate_attribute_label(name: str) -> str:
    """``"user_name"`` -> ``"User Name"``; ``"birthDate"`` -> ``"Birth Date"``."""
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", name)
    return " ".join(word.capitalize() for word in re.split(r"[\W_]+", spaced) if word)


class Record:
    table_name: ClassVar[str] = ""
    lock_column: ClassVar[str | None] = None
    transactions: ClassVar[Mapping[str, Op]] = {}
    attribute_labels: ClassVar[Mapping[str, str]] = {}

    def __init__(
        self,
        catalog: SchemaCatalog,
        scenario: str = DEFAULT_SCENARIO,
        **attributes: Any,
    ) -> None:
        if not self.table_name:
            raise InvalidConfigError(f"{type(self).__name__} must declare table_name")
        self.catalog = catalog
        self.scenario = scenario
        self._attributes: dict[str, Any] = {}
        self._old_attributes: dict[str, Any] | None = None
        self._errors: dict[str, list[str]] = {}
        self._deleted = False
        for name, value in attributes.items():
            self.set_attribute(name, value)

    def __repr__(self) -> str:
        state = "deleted" if self._deleted else ("new" if self.is_new_record else "existing")
        return f"<{type(self).__name__} {self.table_name} {state} {self._attributes!r}>"

    @classmethod
    def rules(cls) -> list[Rule]:
        return []

    @classmethod
    def instantiate(cls, catalog: SchemaCatalog, row: Mapping[str, Any]) -> "Record":
        """Build an existing record from a storage row, casting values per column."""
        record = cls(catalog)
        record._populate(row)
        record.after_find()
        return record

    def _populate(self, row: Mapping[str, Any]) -> None:
        columns = self.table_schema().columns
        values = {
            name: columns[name].typecast(value)
            for name, value in row.items()
            if name in columns
        }
        self._attributes = values
        self._old_attributes = dict(values)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def table_schema(self) -> TableMeta:
        return self.catalog.get_table(self.table_name)

    def attributes(self) -> list[str]:
        return list(self.table_schema().columns)

    def primary_key_names(self) -> list[str]:
        return list(self.table_schema().primary_key)

    def has_attribute(self, name: str) -> bool:
        return name in self.table_schema().columns

    def _check_attribute(self, name: str) -> None:
        if self._deleted:
            raise RecordStateError(
                f"{type(self).__name__} has been deleted and can no longer be used"
            )
        if not self.has_attribute(name):
            raise UnknownAttributeError(f"Unknown attribute {type(self).__name__}.{name}")

    # ------------------------------------------------------------------
    # Attribute access
    # ------------------------------------------------------------------

    def get_attribute(self, name: str) -> Any:
        self._check_attribute(name)
        return self._attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        self._check_attribute(name)
        self._attributes[name] = value

    __getitem__ = get_attribute
    __setitem__ = set_attribute

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_attribute(name)

    def get_attributes(self, names: Iterable[str] | None = None) -> dict[str, Any]:
        names = self.attributes() if names is None else list(names)
        return {name: self.get_attribute(name) for name in names}

    def set_attributes(self, values: Mapping[str, Any], safe_only: bool = True) -> None:
        """Mass-assign ``values``; with ``safe_only`` unsafe names are skipped."""
        safe = set(self.safe_attributes()) if safe_only else None
        for name, value in values.items():
            if safe is not None and name not in safe:
                logger.debug(
                    "Skipping unsafe attribute %s for %s in scenario %s",
                    name,
                    type(self).__name__,
                    self.scenario,
                )
                continue
            self.set_attribute(name, value)

    # ------------------------------------------------------------------
    # Persisted state
    # ------------------------------------------------------------------

    @property
    def is_new_record(self) -> bool:
        return self._old_attributes is None

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    @property
    def old_attributes(self) -> dict[str, Any] | None:
        return None if self._old_attributes is None else dict(self._old_attributes)

    def get_old_attribute(self, name: str) -> Any:
        self._check_attribute(name)
        return (self._old_attributes or {}).get(name)

    def set_old_attributes(self, values: Mapping[str, Any] | None) -> None:
        self._old_attributes = None if values is None else dict(values)

    def is_attribute_changed(self, name: str) -> bool:
        current = self.get_attribute(name)
        old = (self._old_attributes or {}).get(name)
        if current is not None and old is not None:
            return _values_differ(current, old)
        return current is not None or old is not None

    def mark_attribute_dirty(self, name: str) -> None:
        self._check_attribute(name)
        if self._old_attributes is not None:
            self._old_attributes.pop(name, None)

    def dirty_attributes(self, names: Iterable[str] | None = None) -> dict[str, Any]:
        """
        Assigned attributes whose value differs from the persisted one.

        For a new record every assigned attribute is dirty. ``names``
        restricts the result to a subset of attributes.
        """
        wanted = None if names is None else set(names)
        for name in wanted or ():
            self._check_attribute(name)
        dirty = {}
        for name, value in self._attributes.items():
            if wanted is not None and name not in wanted:
                continue
            if self._old_attributes is None:
                dirty[name] = value
            elif name not in self._old_attributes or _values_differ(value, self._old_attributes[name]):
                dirty[name] = value
        return dirty

    def get_primary_key(self, as_dict: bool = False) -> Any:
        """Current primary key: a scalar for single-column keys unless ``as_dict``."""
        keys = self.primary_key_names()
        if len(keys) == 1 and not as_dict:
            return self._attributes.get(keys[0])
        return {key: self._attributes.get(key) for key in keys}

    def get_old_primary_key(self, as_dict: bool = False) -> Any:
        """
        Primary key as last persisted.

        Raises:
            RecordStateError: If the record is new or the table has no primary key
        """
        if self._old_attributes is None:
            raise RecordStateError(
                f"{type(self).__name__} is new and has no persisted primary key"
            )
        keys = self.primary_key_names()
        if not keys:
            raise RecordStateError(f"{type(self).__name__} must have a primary key")
        if len(keys) == 1 and not as_dict:
            return self._old_attributes.get(keys[0])
        return {key: self._old_attributes.get(key) for key in keys}

    def load_default_values(self, skip_if_set: bool = True) -> "Record":
        """Assign column defaults; with ``skip_if_set`` only to attributes still None."""
        for name, column in self.table_schema().columns.items():
            if column.default is None:
                continue
            if not skip_if_set or self._attributes.get(name) is None:
                self.set_attribute(name, column.default)
        return self

    def equals(self, other: "Record") -> bool:
        if self.is_new_record or other.is_new_record:
            return False
        return (
            self.table_name == other.table_name
            and self.get_primary_key() == other.get_primary_key()
        )

    # ------------------------------------------------------------------
    # Scenarios and validation
    # ------------------------------------------------------------------

    def scenarios(self) -> set[str]:
        names = {DEFAULT_SCENARIO, *self.transactions}
        for rule in self.rules():
            names.update(rule.on)
            names.update(rule.except_)
        return names

    def is_transactional(self, op: Op) -> bool:
        mask = self.transactions.get(self.scenario)
        return bool(mask is not None and mask & op)

    def active_rules(self) -> list[Rule]:
        return [rule for rule in self.rules() if rule.is_active(self.scenario)]

    def active_attributes(self) -> list[str]:
        names: dict[str, None] = {}
        for rule in self.active_rules():
            names.update(dict.fromkeys(rule.attribute_names))
        return list(names)

    def safe_attributes(self) -> list[str]:
        safe: dict[str, None] = {}
        unsafe: set[str] = set()
        for rule in self.active_rules():
            safe.update(dict.fromkeys(rule.safe_attribute_names))
            unsafe.update(name[1:] for name in rule.attributes if name.startswith("!"))
        return [name for name in safe if name not in unsafe]

    def validate(self, attribute_names: Iterable[str] | None = None, clear_errors: bool = True) -> bool:
        """
        Run the active scenario's rules.

        Rules for one attribute stop at its first failure; the other
        attributes are still checked. Returns False if any attribute has
        an error.

        Raises:
            InvalidConfigError: If the scenario is not declared
            UnknownAttributeError: If ``attribute_names`` names an unknown column
        """
        if clear_errors:
            self.clear_errors()
        if self.scenario not in self.scenarios():
            raise InvalidConfigError(f"Unknown scenario: {self.scenario}")

        if attribute_names is None:
            names = set(self.active_attributes())
        else:
            names = set(attribute_names)
            for name in names:
                self._check_attribute(name)

        if not self.before_validate():
            return False

        failed: set[str] = set()
        for rule in self.active_rules():
            for attribute in rule.attribute_names:
                if attribute not in names or attribute in failed:
                    continue
                try:
                    rule.validator.validate_attribute(self, attribute)
                except ValidationError as exc:
                    self.add_error(attribute, str(exc))
                    failed.add(attribute)

        self.after_validate()
        return not self.has_errors()

    @property
    def errors(self) -> dict[str, list[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}

    def add_error(self, attribute: str, message: str) -> None:
        self._errors.setdefault(attribute, []).append(message)

    def has_errors(self, attribute: str | None = None) -> bool:
        if attribute is None:
            return bool(self._errors)
        return bool(self._errors.get(attribute))

    def get_first_error(self, attribute: str) -> str | None:
        messages = self._errors.get(attribute)
        return messages[0] if messages else None

    def get_first_errors(self) -> dict[str, str]:
        return {name: messages[0] for name, messages in self._errors.items() if messages}

    def clear_errors(self, attribute: str | None = None) -> None:
        if attribute is None:
            self._errors = {}
        else:
            self._errors.pop(attribute, None)

    def get_attribute_label(self, name: str) -> str:
        return self.attribute_labels.get(name) or generate_attribute_label(name)

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def before_validate(self) -> bool:
        return True

    def after_validate(self) -> None:
        pass

    def before_save(self, insert: bool) -> bool:
        """Return False to cancel the insert/update."""
        return True

    def after_save(self, insert: bool, changed_attributes: Mapping[str, Any]) -> None:
        """``changed_attributes`` maps each written attribute to its previous value."""

    def before_delete(self) -> bool:
        """Return False to cancel the delete."""
        return True

    def after_delete(self) -> None:
        pass

    def after_find(self) -> None:
        pass

    def after_refresh(self) -> None:
        pass

    def _mark_deleted(self) -> None:
        self._deleted = True
