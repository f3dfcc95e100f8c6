class ActiveRowError(Exception):
    """Base exception for activerow errors."""


class SchemaError(ActiveRowError):
    """A table is unknown to the schema catalog or its metadata is unusable."""


class UnknownAttributeError(ActiveRowError):
    """An attribute name does not correspond to a column of the record's table."""


class RecordStateError(ActiveRowError):
    """An operation is not allowed in the record's current lifecycle state."""


class StaleObjectError(ActiveRowError):
    """Optimistic-lock conflict: the row was changed or removed by another writer."""


class StorageError(ActiveRowError):
    """Any failure reported by the underlying database driver."""


class InvalidConfigError(ActiveRowError):
    """Invalid provider, sort, pagination or query configuration."""


class ValidationError(ActiveRowError):
    """A single attribute failed a validation rule."""
