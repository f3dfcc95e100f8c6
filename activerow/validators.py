"""Validation rules for records.

A rule binds one validator to one or more attributes, optionally limited
to some scenarios:

    Rule(["name", "phone"], Required())
    Rule("phone", String(max=11))
    Rule("type", Integer(min=1, max=4), on="signup")

Validators raise ValidationError; Record.validate() collects the messages
per attribute. Every validator except Required skips empty values
(None, "" and empty containers).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Collection, Sequence

from .errors import ValidationError

if TYPE_CHECKING:
    from .record import Record

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")
_NUMBER_RE = re.compile(r"^\s*[-+]?[0-9]*\.?[0-9]+([eE][-+]?[0-9]+)?\s*$")


def is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple, dict, set)) and not value)


class Validator:
    skip_on_empty = True
    message = "{attribute} is invalid."

    def __init__(self, message: str | None = None, skip_on_empty: bool | None = None) -> None:
        if message is not None:
            self.message = message
        if skip_on_empty is not None:
            self.skip_on_empty = skip_on_empty

    def validate_attribute(self, record: "Record", attribute: str) -> None:
        value = record.get_attribute(attribute)
        if self.skip_on_empty and is_empty(value):
            return
        self.validate_value(value, record.get_attribute_label(attribute))

    def validate_value(self, value: Any, label: str) -> None:
        raise NotImplementedError

    def fail(self, label: str, message: str | None = None, **params: Any) -> None:
        raise ValidationError((message or self.message).format(attribute=label, **params))


class Required(Validator):
    skip_on_empty = False
    message = "{attribute} cannot be blank."

    def validate_value(self, value: Any, label: str) -> None:
        if is_empty(value) or (isinstance(value, str) and not value.strip()):
            self.fail(label)


class _Range(Validator):
    too_small = "{attribute} must be no less than {min}."
    too_big = "{attribute} must be no greater than {max}."

    def __init__(self, min: Any = None, max: Any = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.min = min
        self.max = max

    def check_range(self, number: Any, label: str) -> None:
        if self.min is not None and number < self.min:
            self.fail(label, self.too_small, min=self.min)
        if self.max is not None and number > self.max:
            self.fail(label, self.too_big, max=self.max)


class Integer(_Range):
    message = "{attribute} must be an integer."

    def validate_value(self, value: Any, label: str) -> None:
        if isinstance(value, bool):
            self.fail(label)
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and _INTEGER_RE.match(value):
            number = int(value)
        else:
            self.fail(label)
        self.check_range(number, label)


class Number(_Range):
    message = "{attribute} must be a number."

    def validate_value(self, value: Any, label: str) -> None:
        if isinstance(value, bool):
            self.fail(label)
        if isinstance(value, (int, float, Decimal)):
            number = value
        elif isinstance(value, str) and _NUMBER_RE.match(value):
            number = Decimal(value.strip())
        else:
            self.fail(label)
        self.check_range(number, label)


class String(Validator):
    message = "{attribute} must be a string."
    too_short = "{attribute} should contain at least {min} characters."
    too_long = "{attribute} should contain at most {max} characters."
    not_equal = "{attribute} should contain {length} characters."

    def __init__(
        self,
        min: int | None = None,
        max: int | None = None,
        length: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.min = min
        self.max = max
        self.length = length

    def validate_value(self, value: Any, label: str) -> None:
        if not isinstance(value, str):
            self.fail(label)
        size = len(value)
        if self.min is not None and size < self.min:
            self.fail(label, self.too_short, min=self.min)
        if self.max is not None and size > self.max:
            self.fail(label, self.too_long, max=self.max)
        if self.length is not None and size != self.length:
            self.fail(label, self.not_equal, length=self.length)


class Match(Validator):
    def __init__(self, pattern: str | re.Pattern, negate: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.negate = negate

    def validate_value(self, value: Any, label: str) -> None:
        matched = isinstance(value, str) and self.pattern.search(value) is not None
        if matched == self.negate:
            self.fail(label)


class In(Validator):
    def __init__(self, values: Collection[Any], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.values = values

    def validate_value(self, value: Any, label: str) -> None:
        if value not in self.values:
            self.fail(label)


class Date(Validator):
    message = "The format of {attribute} is invalid."

    def __init__(self, format: str = "%Y-%m-%d", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.format = format

    def validate_value(self, value: Any, label: str) -> None:
        if isinstance(value, (date, datetime)):
            return
        if not isinstance(value, str):
            self.fail(label)
        try:
            datetime.strptime(value, self.format)
        except ValueError:
            self.fail(label)


class Boolean(Validator):
    message = '{attribute} must be either "{true}" or "{false}".'

    def __init__(self, true_value: Any = 1, false_value: Any = 0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.true_value = true_value
        self.false_value = false_value

    def validate_value(self, value: Any, label: str) -> None:
        accepted = (self.true_value, self.false_value, str(self.true_value), str(self.false_value))
        if value not in accepted:
            self.fail(label, true=self.true_value, false=self.false_value)


class Safe(Validator):
    """Marks attributes as safe for mass assignment without checking them."""

    def validate_attribute(self, record: "Record", attribute: str) -> None:
        return None


class Inline(Validator):
    """
    Wraps ``func(record, attribute)``.

    The function reports a failure by returning a message or by raising
    ValidationError; returning None means the value is valid.
    """

    skip_on_empty = False

    def __init__(self, func: Callable[["Record", str], str | None], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.func = func

    def validate_attribute(self, record: "Record", attribute: str) -> None:
        if self.skip_on_empty and is_empty(record.get_attribute(attribute)):
            return
        error = self.func(record, attribute)
        if error:
            raise ValidationError(error)


def _names(value: Sequence[str] | str) -> tuple[str, ...]:
    return (value,) if isinstance(value, str) else tuple(value)


@dataclass
class Rule:
    """One validator applied to some attributes in some scenarios.

    A ``!`` prefix on an attribute name keeps it validated but excludes it
    from mass assignment.
    """

    attributes: Sequence[str] | str
    validator: Validator
    on: Sequence[str] | str = ()
    except_: Sequence[str] | str = ()

    def __post_init__(self) -> None:
        self.attributes = _names(self.attributes)
        self.on = _names(self.on)
        self.except_ = _names(self.except_)

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(name.lstrip("!") for name in self.attributes)

    @property
    def safe_attribute_names(self) -> tuple[str, ...]:
        return tuple(name for name in self.attributes if not name.startswith("!"))

    def is_active(self, scenario: str) -> bool:
        return (not self.on or scenario in self.on) and scenario not in self.except_
