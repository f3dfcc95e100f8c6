"""Sort specification for data providers.

Sortable attributes form a whitelist. Each one maps to the column
orders it expands to, so one attribute may sort by several columns:

    sort = Sort(
        attributes={
            "id": {},
            "name": {
                "asc": {"last_name": "asc", "first_name": "asc"},
                "desc": {"last_name": "desc", "first_name": "desc"},
                "label": "Name",
            },
        },
        default_order={"id": "desc"},
    )
    sort.set_param("-name")
    sort.get_orders()   # {"last_name": DESC, "first_name": DESC}

Requests naming attributes outside the whitelist are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, Union

from ..db.query import Direction, Orders
from ..errors import InvalidConfigError

logger = logging.getLogger(__name__)


def _column_orders(orders: Orders) -> dict[str, Direction]:
    items = orders.items() if isinstance(orders, Mapping) else orders
    return {name: Direction.coerce(direction) for name, direction in items}


@dataclass
class SortAttribute:
    """Column orders one sortable attribute expands to."""

    asc: dict[str, Direction] = field(default_factory=dict)
    desc: dict[str, Direction] = field(default_factory=dict)
    default: Direction = Direction.ASC
    label: str | None = None

    @classmethod
    def build(cls, name: str, definition: Union["SortAttribute", Mapping[str, Any], None]) -> "SortAttribute":
        if isinstance(definition, SortAttribute):
            return definition
        if definition is None:
            definition = {}
        if not isinstance(definition, Mapping):
            raise InvalidConfigError(
                f"Sort attribute {name!r} must be a mapping or SortAttribute, "
                f"got {type(definition).__name__}"
            )
        unknown = set(definition) - {"asc", "desc", "default", "label"}
        if unknown:
            raise InvalidConfigError(f"Unknown keys for sort attribute {name!r}: {sorted(unknown)}")
        return cls(
            asc=_column_orders(definition.get("asc") or {name: Direction.ASC}),
            desc=_column_orders(definition.get("desc") or {name: Direction.DESC}),
            default=Direction.coerce(definition.get("default", Direction.ASC)),
            label=definition.get("label"),
        )


SortAttributes = Union[Sequence[str], Mapping[str, Union[SortAttribute, Mapping[str, Any], None]]]


class Sort:
    def __init__(
        self,
        attributes: SortAttributes | None = None,
        default_order: Orders | None = None,
        orders: Orders | None = None,
        enable_multi_sort: bool = False,
        separator: str = ",",
    ) -> None:
        if not separator:
            raise InvalidConfigError("Sort separator cannot be empty")
        self.enable_multi_sort = enable_multi_sort
        self.separator = separator
        self.attributes: dict[str, SortAttribute] = {}
        self.set_attributes(attributes or {})
        self.default_order = _column_orders(default_order or {})
        self._requested: list[tuple[str, Direction]] = []
        if orders:
            self.set_attribute_orders(orders)

    def set_attributes(self, attributes: SortAttributes) -> None:
        """Replace the whitelist of sortable attributes."""
        if isinstance(attributes, Mapping):
            items = attributes.items()
        elif isinstance(attributes, str):
            raise InvalidConfigError("Sort attributes must be a list or a mapping, not a string")
        else:
            items = ((name, None) for name in attributes)
        self.attributes = {name: SortAttribute.build(name, definition) for name, definition in items}

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def parse_param(self, param: str) -> list[str]:
        """Split a request sort value such as ``"-id,name"``."""
        return [part.strip() for part in param.split(self.separator) if part.strip()]

    def set_param(self, param: str | None) -> "Sort":
        """Request orders from a sort parameter; a ``-`` prefix means descending."""
        requested = []
        for part in self.parse_param(param or ""):
            if part.startswith("-"):
                requested.append((part[1:], Direction.DESC))
            else:
                requested.append((part, Direction.ASC))
        self._requested = requested
        return self

    def request(self, params: Mapping[str, Any], sort_param: str = "sort") -> "Sort":
        value = params.get(sort_param)
        return self.set_param(value if isinstance(value, str) else None)

    def set_attribute_orders(self, orders: Orders) -> "Sort":
        self._requested = list(_column_orders(orders).items())
        return self

    def get_attribute_orders(self) -> dict[str, Direction]:
        """
        Requested attribute orders, restricted to the whitelist.

        Only the first valid request is kept unless multi-sort is enabled.
        Falls back to ``default_order`` when no valid request remains.
        """
        orders: dict[str, Direction] = {}
        for name, direction in self._requested:
            if not self.has_attribute(name):
                logger.debug("Ignoring sort on %s: not a sortable attribute", name)
                continue
            orders[name] = direction
            if not self.enable_multi_sort:
                break
        return orders or dict(self.default_order)

    def get_attribute_order(self, name: str) -> Direction | None:
        return self.get_attribute_orders().get(name)

    def get_orders(self) -> dict[str, Direction]:
        """Column orders to apply, expanded from the attribute orders."""
        columns: dict[str, Direction] = {}
        for name, direction in self.get_attribute_orders().items():
            definition = self.attributes.get(name)
            if definition is None:
                columns[name] = direction
                continue
            columns.update(definition.asc if direction is Direction.ASC else definition.desc)
        return columns

    def create_sort_param(self, name: str) -> str:
        """
        Sort parameter that toggles ``name`` when followed.

        The attribute moves to the front with its direction flipped (or
        its default direction when not currently sorted); other current
        orders follow when multi-sort is enabled.

        Raises:
            InvalidConfigError: If ``name`` is not sortable
        """
        if not self.has_attribute(name):
            raise InvalidConfigError(f"Unknown sort attribute: {name}")
        orders = self.get_attribute_orders()
        current = orders.pop(name, None)
        if current is None:
            direction = self.attributes[name].default
        else:
            direction = Direction.ASC if current is Direction.DESC else Direction.DESC

        parts = [_param_part(name, direction)]
        if self.enable_multi_sort:
            parts.extend(_param_part(other, d) for other, d in orders.items())
        return self.separator.join(parts)

    def get_label(self, name: str) -> str:
        definition = self.attributes.get(name)
        if definition is not None and definition.label:
            return definition.label
        return name


def _param_part(name: str, direction: Direction) -> str:
    return f"-{name}" if direction is Direction.DESC else name
