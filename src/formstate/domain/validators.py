"""Fluent field validators for building ErrorTree leaves.

Each builder wraps one input value, applies rules in call order, and keeps
only the first failing rule's message::

    errors = {
        "name": string_validator(source["name"]).required().max_length(5).get_error(),
        "age": number_validator(source["age"]).required().between(0, 130).get_error(),
    }

A ``None`` input skips every rule except ``required`` / ``required_if``.
``get_error()`` returns ``""`` when all rules passed.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any, Literal, Self

PrepareOp = Literal["trim", "normalize", "upper", "lower", "locale_upper", "locale_lower"]

_PREPARE_OPS: dict[str, Callable[[str], str]] = {
    "trim": str.strip,
    "normalize": lambda s: re.sub(r"\s{2,}", " ", s),
    "upper": str.upper,
    "lower": str.lower,
    "locale_upper": str.upper,
    "locale_lower": str.lower,
}

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_HTTP_PREFIX = re.compile(r"^https?://")
_ALPHANUMERIC = re.compile(r"^[0-9A-Za-z]+$")
_NUMERIC = re.compile(r"^\d+$")
_SLUG = re.compile(r"^[0-9a-z-]+$")
_IDENTIFIER = re.compile(r"^[A-Z_a-z]\w*$")


def _fmt(number: float) -> str:
    """Render a number the way messages show it (``5`` rather than ``5.0``)."""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def _item_key(item: Any) -> str:
    if isinstance(item, (dict, list)):
        return json.dumps(item, default=str)
    return str(item)


class _ValidatorBuilder:
    """Shared first-error-wins bookkeeping."""

    def __init__(self, value: Any) -> None:
        self._error = ""
        self._is_none = value is None

    def _set_error(self, message: str) -> None:
        if not self._error:
            self._error = message

    def _is_missing(self) -> bool:
        return self._is_none

    def required(self) -> Self:
        if not self._error and self._is_missing():
            self._set_error("Required")
        return self

    def required_if(self, condition: bool) -> Self:
        if condition:
            self.required()
        return self

    def get_error(self) -> str:
        return self._error


class StringValidator(_ValidatorBuilder):
    """Rules for string fields."""

    def __init__(self, value: str | None) -> None:
        super().__init__(value)
        self._value = value or ""

    def _is_missing(self) -> bool:
        return self._is_none or not self._value

    def prepare(self, *ops: PrepareOp) -> Self:
        """Transform the input before later rules see it."""
        for op in ops:
            self._value = _PREPARE_OPS[op](self._value)
        return self

    def _check(self, failed: bool, message: str, *, skip_none: bool = True) -> Self:
        if self._error or (skip_none and self._is_none):
            return self
        if failed:
            self._set_error(message)
        return self

    def no_space(self) -> Self:
        return self._check(" " in self._value, "No space allowed")

    def not_blank(self) -> Self:
        return self._check(
            bool(self._value) and not self._value.strip(), "Must not be blank"
        )

    def min_length(self, length: int) -> Self:
        return self._check(len(self._value) < length, f"Min length {length}")

    def max_length(self, length: int) -> Self:
        return self._check(len(self._value) > length, f"Max length {length}")

    def uppercase(self) -> Self:
        return self._check(self._value != self._value.upper(), "Uppercase only")

    def lowercase(self) -> Self:
        return self._check(self._value != self._value.lower(), "Lowercase only")

    def starts_with(self, prefix: str | Sequence[str]) -> Self:
        prefixes = [prefix] if isinstance(prefix, str) else list(prefix)
        return self._check(
            bool(self._value) and not self._value.startswith(tuple(prefixes)),
            f"Must start with {', '.join(prefixes)}",
            skip_none=False,
        )

    def ends_with(self, suffix: str | Sequence[str]) -> Self:
        suffixes = [suffix] if isinstance(suffix, str) else list(suffix)
        return self._check(
            bool(self._value) and not self._value.endswith(tuple(suffixes)),
            f"Must end with {', '.join(suffixes)}",
            skip_none=False,
        )

    def contains(self, substring: str) -> Self:
        return self._check(
            bool(self._value) and substring not in self._value,
            f'Must contain "{substring}"',
            skip_none=False,
        )

    def regexp(self, pattern: re.Pattern[str] | str, message: str | None = None) -> Self:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._check(
            bool(self._value) and compiled.search(self._value) is None,
            message or "Not allowed chars",
            skip_none=False,
        )

    def one_of(self, values: Iterable[str] | Mapping[str, Any]) -> Self:
        allowed = list(values)
        return self._check(
            bool(self._value) and self._value not in allowed,
            f"Must be one of: {', '.join(allowed)}",
            skip_none=False,
        )

    def not_one_of(self, values: Iterable[str] | Mapping[str, Any]) -> Self:
        disallowed = list(values)
        return self._check(
            bool(self._value) and self._value in disallowed,
            f"Must not be one of: {', '.join(disallowed)}",
            skip_none=False,
        )

    def email(self) -> Self:
        return self._pattern(_EMAIL, "Invalid email format")

    def website(self, prefix: Literal["required", "forbidden", "optional"] = "optional") -> Self:
        if self._error or not self._value or prefix == "optional":
            return self
        has_prefix = _HTTP_PREFIX.match(self._value) is not None
        if prefix == "required" and not has_prefix:
            self._set_error("Must start with http:// or https://")
        elif prefix == "forbidden" and has_prefix:
            self._set_error("Must not start with http:// or https://")
        return self

    def alphanumeric(self) -> Self:
        return self._pattern(_ALPHANUMERIC, "Only letters and numbers allowed")

    def numeric(self) -> Self:
        return self._pattern(_NUMERIC, "Only numbers allowed")

    def slug(self) -> Self:
        return self._pattern(_SLUG, "Invalid slug format")

    def identifier(self) -> Self:
        return self._pattern(_IDENTIFIER, "Invalid identifier format")

    def _pattern(self, pattern: re.Pattern[str], message: str) -> Self:
        return self._check(
            bool(self._value) and pattern.match(self._value) is None,
            message,
            skip_none=False,
        )


class NumberValidator(_ValidatorBuilder):
    """Rules for numeric fields. NaN counts as missing for ``required``."""

    def __init__(self, value: float | None) -> None:
        super().__init__(value)
        self._value = value

    def _is_missing(self) -> bool:
        return self._value is None or (isinstance(self._value, float) and math.isnan(self._value))

    def _check(self, predicate: Callable[[float], bool], message: str) -> Self:
        if self._error or self._value is None:
            return self
        if predicate(self._value):
            self._set_error(message)
        return self

    def min(self, n: float) -> Self:
        return self._check(lambda v: v < n, f"Minimum {_fmt(n)}")

    def max(self, n: float) -> Self:
        return self._check(lambda v: v > n, f"Maximum {_fmt(n)}")

    def between(self, low: float, high: float) -> Self:
        return self._check(
            lambda v: v < low or v > high, f"Must be between {_fmt(low)} and {_fmt(high)}"
        )

    def integer(self) -> Self:
        return self._check(
            lambda v: not (isinstance(v, int) or (isinstance(v, float) and v.is_integer())),
            "Must be an integer",
        )

    def positive(self) -> Self:
        return self._check(lambda v: v <= 0, "Must be positive")

    def negative(self) -> Self:
        return self._check(lambda v: v >= 0, "Must be negative")

    def non_negative(self) -> Self:
        return self._check(lambda v: v < 0, "Must be non-negative")

    def not_zero(self) -> Self:
        return self._check(lambda v: v == 0, "Must not be zero")

    def multiple_of(self, n: float) -> Self:
        return self._check(lambda v: v % n != 0, f"Must be a multiple of {_fmt(n)}")

    step = multiple_of

    def decimal(self, places: int) -> Self:
        def too_precise(v: float) -> bool:
            if isinstance(v, float) and math.isnan(v):
                return False
            _, _, fraction = str(v).partition(".")
            return len(fraction) > places

        return self._check(too_precise, f"Maximum {places} decimal places")

    def percentage(self) -> Self:
        return self._check(lambda v: v < 0 or v > 100, "Must be between 0 and 100")


class ArrayValidator(_ValidatorBuilder):
    """Rules for list fields. Dict and list items compare by their JSON form."""

    def __init__(self, value: Sequence[Any] | None) -> None:
        super().__init__(value)
        self._items = list(value) if value is not None else []

    def _is_missing(self) -> bool:
        return self._is_none or not self._items

    def _check(self, failed: Callable[[], bool], message: Callable[[], str]) -> Self:
        if self._error or self._is_none:
            return self
        if failed():
            self._set_error(message())
        return self

    def min_length(self, n: int) -> Self:
        return self._check(lambda: len(self._items) < n, lambda: f"Minimum {n} items")

    def max_length(self, n: int) -> Self:
        return self._check(lambda: len(self._items) > n, lambda: f"Maximum {n} items")

    def of_length(self, n: int) -> Self:
        return self._check(lambda: len(self._items) != n, lambda: f"Must have exactly {n} items")

    def unique(self) -> Self:
        keys = [_item_key(item) for item in self._items]
        return self._check(lambda: len(set(keys)) != len(keys), lambda: "Items must be unique")

    def includes(self, item: Any) -> Self:
        key = _item_key(item)
        return self._check(
            lambda: key not in {_item_key(i) for i in self._items},
            lambda: f"Must include {key}",
        )

    def includes_any(self, items: Sequence[Any]) -> Self:
        wanted = [_item_key(i) for i in items]
        present = {_item_key(i) for i in self._items}
        return self._check(
            lambda: not any(key in present for key in wanted),
            lambda: f"Must include at least one of: {', '.join(wanted)}",
        )

    def includes_all(self, items: Sequence[Any]) -> Self:
        present = {_item_key(i) for i in self._items}
        missing = [_item_key(i) for i in items if _item_key(i) not in present]
        return self._check(
            lambda: bool(missing),
            lambda: f"Missing required items: {', '.join(missing)}",
        )


DateInput = datetime | date | str | int | float


def _to_datetime(value: DateInput) -> datetime | None:
    """Coerce *value* to an aware datetime (naive values are taken as UTC)."""
    try:
        if isinstance(value, datetime):
            result = value
        elif isinstance(value, date):
            result = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            result = datetime.fromisoformat(value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, tz=UTC)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None
    return result if result.tzinfo else result.replace(tzinfo=UTC)


def _years_ago(years: int) -> datetime:
    now = datetime.now(UTC)
    try:
        return now.replace(year=now.year - years)
    except ValueError:  # Feb 29 on a non-leap target year
        return now.replace(year=now.year - years, day=28)


class DateValidator(_ValidatorBuilder):
    """Rules for date fields. Accepts datetimes, dates, ISO strings, or epoch seconds."""

    def __init__(self, value: DateInput | None) -> None:
        super().__init__(value)
        self._date = _to_datetime(value) if value is not None else None

    def _is_missing(self) -> bool:
        return self._date is None

    def _check(self, failed: Callable[[datetime], bool], message: str) -> Self:
        if self._error or self._date is None:
            return self
        if failed(self._date):
            self._set_error(message)
        return self

    @staticmethod
    def _target(value: DateInput) -> datetime:
        target = _to_datetime(value)
        if target is None:
            msg = f"Invalid comparison date: {value!r}"
            raise ValueError(msg)
        return target

    def before(self, target: DateInput) -> Self:
        limit = self._target(target)
        return self._check(lambda d: d >= limit, f"Must be before {limit.isoformat()}")

    def after(self, target: DateInput) -> Self:
        limit = self._target(target)
        return self._check(lambda d: d <= limit, f"Must be after {limit.isoformat()}")

    def between(self, start: DateInput, end: DateInput) -> Self:
        low, high = self._target(start), self._target(end)
        return self._check(
            lambda d: d < low or d > high,
            f"Must be between {low.isoformat()} and {high.isoformat()}",
        )

    def past(self) -> Self:
        return self._check(lambda d: d >= datetime.now(UTC), "Must be in the past")

    def future(self) -> Self:
        return self._check(lambda d: d <= datetime.now(UTC), "Must be in the future")

    def weekday(self) -> Self:
        return self._check(lambda d: d.weekday() >= 5, "Must be a weekday")

    def weekend(self) -> Self:
        return self._check(lambda d: d.weekday() < 5, "Must be a weekend")

    def min_age(self, years: int) -> Self:
        return self._check(lambda d: d > _years_ago(years), f"Must be at least {years} years ago")

    def max_age(self, years: int) -> Self:
        return self._check(lambda d: d < _years_ago(years), f"Must be at most {years} years ago")


def string_validator(value: str | None) -> StringValidator:
    return StringValidator(value)


def number_validator(value: float | None) -> NumberValidator:
    return NumberValidator(value)


def array_validator(value: Sequence[Any] | None) -> ArrayValidator:
    return ArrayValidator(value)


def date_validator(value: DateInput | None) -> DateValidator:
    return DateValidator(value)
