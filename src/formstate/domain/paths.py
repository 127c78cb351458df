"""Dotted field paths: construction, matching, and lookup.

A path joins ancestor keys with ``.`` from the state root down to a field.
Integer index segments are elided, so a write to ``items[2]`` reports the
path of ``items`` itself. Downstream validators and effects observe that
collapsed path; see DESIGN.md (Open Questions) before changing it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

PATH_SEPARATOR = "."

_INTEGER_KEY = re.compile(r"^-?\d+$")


def is_index_segment(key: Any) -> bool:
    """Whether *key* is an index-like segment that paths elide.

    Matches list indices and mapping keys that are integers or
    integer-looking strings (``"0"``, ``"-3"``).

    Examples:
        >>> is_index_segment(2)
        True
        >>> is_index_segment("12")
        True
        >>> is_index_segment("name")
        False
        >>> is_index_segment(True)
        False
    """
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return True
    return isinstance(key, str) and _INTEGER_KEY.match(key) is not None


def join_path(parent: str, key: Any) -> str:
    """Extend *parent* with *key*, eliding index segments.

    Examples:
        >>> join_path("", "user")
        'user'
        >>> join_path("user", "name")
        'user.name'
        >>> join_path("items", 3)
        'items'
    """
    if is_index_segment(key):
        return parent
    segment = str(key)
    return f"{parent}{PATH_SEPARATOR}{segment}" if parent else segment


def split_path(path: str) -> list[str]:
    """Split a dotted path into its segments. The empty path has none."""
    return path.split(PATH_SEPARATOR) if path else []


def is_ancestor(ancestor: str, path: str) -> bool:
    """Whether *ancestor* is a strict ancestor of *path*.

    The empty path is the root, an ancestor of every non-empty path. A
    root-level write to an index-like key reports ``""``, so it relates to
    every registered field.

    Examples:
        >>> is_ancestor("address", "address.zip")
        True
        >>> is_ancestor("", "address")
        True
        >>> is_ancestor("", "")
        False
    """
    if not ancestor:
        return bool(path)
    return path.startswith(ancestor + PATH_SEPARATOR)


def paths_related(changed: str, registered: str) -> bool:
    """Whether a change at *changed* affects a field registered at *registered*.

    True for equality, or when either path is an ancestor of the other.
    """
    return (
        changed == registered
        or is_ancestor(changed, registered)
        or is_ancestor(registered, changed)
    )


def matching_paths(changed: str, registered: Iterable[str]) -> list[str]:
    """Return every registered path related to *changed*, in registration order."""
    return [path for path in registered if paths_related(changed, path)]


def get_at_path(source: Any, path: str) -> Any:
    """Walk *source* along *path*; return None if any segment is missing."""
    current = source
    for segment in split_path(path):
        if isinstance(current, Mapping):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, str):
            if not is_index_segment(segment) or not -len(current) <= int(segment) < len(current):
                return None
            current = current[int(segment)]
        else:
            return None
    return current
