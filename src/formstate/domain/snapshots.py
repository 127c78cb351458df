"""Snapshot model and the deep clone used to capture state.

A snapshot holds a detached copy of the state root. Plain containers are
copied recursively and date-like leaves are duplicated, so later edits to
the live state never leak into the history.
"""

from __future__ import annotations

import copy
import datetime
from dataclasses import dataclass
from typing import Any, TypeVar

INITIAL_TITLE = "Initial"

_T = TypeVar("_T")

_DATE_TYPES = (datetime.date, datetime.time, datetime.timedelta)


def deep_clone(value: _T) -> _T:
    """Return a detached copy of *value*.

    ``dict`` and ``list`` are rebuilt recursively, ``set`` is copied, and
    date/time values get a fresh instance. Any other object (primitives,
    tuples, patterns, exceptions, futures) is shared as-is.
    """
    if isinstance(value, dict):
        return {key: deep_clone(item) for key, item in value.items()}  # type: ignore[return-value]
    if isinstance(value, list):
        return [deep_clone(item) for item in value]  # type: ignore[return-value]
    if isinstance(value, set):
        return set(value)  # type: ignore[return-value]
    if isinstance(value, _DATE_TYPES):
        return copy.copy(value)
    return value


@dataclass(frozen=True)
class Snapshot:
    """A named, deep-cloned capture of the state root."""

    title: str
    data: dict[str, Any]

    @classmethod
    def capture(cls, title: str, source: dict[str, Any]) -> Snapshot:
        return cls(title=title, data=deep_clone(source))


def restore_into(target: dict[str, Any], source: dict[str, Any]) -> None:
    """Make *target* equal to *source* without replacing its containers.

    Keys missing from *source* are deleted. Where both sides hold a ``dict``
    (or both a ``list``) at the same position, the existing container is
    rewritten recursively and keeps its identity; any other value is
    assigned from *source*. Pass a clone as *source* if it must stay
    detached from *target*.
    """
    for key in [key for key in target if key not in source]:
        del target[key]
    for key, value in source.items():
        target[key] = _merge(target.get(key), value)


def _restore_list(target: list[Any], source: list[Any]) -> None:
    shared = min(len(target), len(source))
    for index in range(shared):
        target[index] = _merge(target[index], source[index])
    if len(target) > shared:
        del target[shared:]
    else:
        target.extend(source[shared:])


def _merge(current: Any, value: Any) -> Any:
    if current is value:
        return current
    if isinstance(current, dict) and isinstance(value, dict):
        restore_into(current, value)
        return current
    if isinstance(current, list) and isinstance(value, list):
        _restore_list(current, value)
        return current
    return value
