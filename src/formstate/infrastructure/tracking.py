"""Deep change observation over plain ``dict`` / ``list`` graphs.

``observe(root, on_change)`` returns a tracked view of *root*. Reading a key
that holds a ``dict`` or ``list`` returns a fresh tracked view of that child,
so writes at any depth are seen. Every other value is an opaque leaf and is
returned raw.

Each accepted write is committed to the underlying container *before*
``on_change(root_view, path, new_value, old_value)`` runs, and the callback
runs before the write returns. Writes whose value is unchanged are dropped
without notification.

Numbers compare by value across ``int`` and ``float`` (``1`` then ``1.0`` is
not a change); ``bool`` is never equal to a number.

INVARIANT: views are thin handles over raw containers. Rollback and reset
rewrite those containers in place wherever the snapshot holds the same kind
of container, so a view obtained before a restore stays valid after it.
Only a write that assigns a new container to a key detaches views taken
from the old one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, MutableMapping, MutableSequence
from typing import Any, Protocol, overload

from formstate.domain.paths import join_path

logger = logging.getLogger(__name__)

_MISSING: Any = object()


class ChangeCallback(Protocol):
    def __call__(
        self, root: TrackedDict, path: str, new_value: Any, old_value: Any
    ) -> None: ...


def is_plain_container(value: Any) -> bool:
    """Whether *value* is traversed by the tracker (``dict`` or ``list`` only)."""
    return isinstance(value, (dict, list))


def unwrap(value: Any) -> Any:
    """Return the raw container behind a tracked view, or *value* unchanged."""
    if isinstance(value, (TrackedDict, TrackedList)):
        return value._target
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_unchanged(old: Any, new: Any) -> bool:
    """Strict-equality test used to drop no-op writes.

    Identical objects are unchanged. Non-container values of the same type
    that compare equal are unchanged, and so are equal ``int`` / ``float``
    numbers. Containers compare by identity only.
    """
    if old is new:
        return True
    if old is _MISSING or is_plain_container(old) or is_plain_container(new):
        return False
    if _is_number(old) and _is_number(new):
        return bool(old == new)
    if type(old) is not type(new):
        return False
    try:
        return bool(old == new)
    except (TypeError, ValueError):  # ambiguous truth value, e.g. array-likes
        return False


class _Tracker:
    """Shared state for all views over one root: the root view and the callback."""

    __slots__ = ("on_change", "root_view")

    def __init__(self, on_change: ChangeCallback) -> None:
        self.on_change = on_change
        self.root_view: TrackedDict | None = None

    def wrap(self, value: Any, path: str) -> Any:
        if isinstance(value, dict):
            return TrackedDict(value, path, self)
        if isinstance(value, list):
            return TrackedList(value, path, self)
        return value

    def notify(self, path: str, new_value: Any, old_value: Any) -> None:
        assert self.root_view is not None
        self.on_change(
            self.root_view,
            path,
            new_value,
            None if old_value is _MISSING else old_value,
        )


class TrackedDict(MutableMapping[str, Any]):
    """Tracked view over a ``dict``."""

    __slots__ = ("_path", "_target", "_tracker")

    def __init__(self, target: dict[str, Any], path: str, tracker: _Tracker) -> None:
        self._target = target
        self._path = path
        self._tracker = tracker

    @property
    def path(self) -> str:
        """Dotted path of this container from the root."""
        return self._path

    def __getitem__(self, key: str) -> Any:
        return self._tracker.wrap(self._target[key], join_path(self._path, key))

    def __setitem__(self, key: str, value: Any) -> None:
        value = unwrap(value)
        old = self._target.get(key, _MISSING)
        if is_unchanged(old, value):
            return
        self._target[key] = value
        self._tracker.notify(join_path(self._path, key), value, old)

    def __delitem__(self, key: str) -> None:
        old = self._target.pop(key)
        self._tracker.notify(join_path(self._path, key), None, old)

    def __iter__(self) -> Iterator[str]:
        return iter(self._target)

    def __len__(self) -> int:
        return len(self._target)

    def __contains__(self, key: object) -> bool:
        return key in self._target

    def __eq__(self, other: object) -> bool:
        return self._target == unwrap(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TrackedDict({self._target!r})"

    def to_plain(self) -> dict[str, Any]:
        """The raw ``dict`` behind this view. Mutating it bypasses tracking."""
        return self._target


class TrackedList(MutableSequence[Any]):
    """Tracked view over a ``list``. Index writes report the list's own path."""

    __slots__ = ("_path", "_target", "_tracker")

    def __init__(self, target: list[Any], path: str, tracker: _Tracker) -> None:
        self._target = target
        self._path = path
        self._tracker = tracker

    @property
    def path(self) -> str:
        return self._path

    @overload
    def __getitem__(self, index: int) -> Any: ...

    @overload
    def __getitem__(self, index: slice) -> list[Any]: ...

    def __getitem__(self, index: int | slice) -> Any:
        if isinstance(index, slice):
            return [self._tracker.wrap(item, self._path) for item in self._target[index]]
        return self._tracker.wrap(self._target[index], join_path(self._path, index))

    def __setitem__(self, index: int | slice, value: Any) -> None:
        if isinstance(index, slice):
            old = self._target[index]
            new = [unwrap(item) for item in value]
            if len(old) == len(new) and all(map(is_unchanged, old, new)):
                return
            self._target[index] = new
            self._tracker.notify(self._path, new, old)
            return
        value = unwrap(value)
        old = self._target[index]
        if is_unchanged(old, value):
            return
        self._target[index] = value
        self._tracker.notify(join_path(self._path, index), value, old)

    def __delitem__(self, index: int | slice) -> None:
        old = self._target[index]
        del self._target[index]
        self._tracker.notify(self._path, None, old)

    def __len__(self) -> int:
        return len(self._target)

    def insert(self, index: int, value: Any) -> None:
        value = unwrap(value)
        self._target.insert(index, value)
        self._tracker.notify(join_path(self._path, index), value, None)

    def sort(self, *, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> None:
        """Sort in place; one notification at the list's path if the order changed."""
        old = list(self._target)
        self._target.sort(key=key, reverse=reverse)
        self._notify_reordered(old)

    def reverse(self) -> None:
        """Reverse in place; one notification at the list's path if the order changed."""
        old = list(self._target)
        self._target.reverse()
        self._notify_reordered(old)

    def _notify_reordered(self, old: list[Any]) -> None:
        if all(map(is_unchanged, old, self._target)):
            return
        self._tracker.notify(self._path, self._target, old)

    def __eq__(self, other: object) -> bool:
        return self._target == unwrap(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TrackedList({self._target!r})"

    def to_plain(self) -> list[Any]:
        return self._target


def observe(root: dict[str, Any], on_change: ChangeCallback | Callable[..., None]) -> TrackedDict:
    """Wrap *root* so that every accepted write at any depth calls *on_change*."""
    if not isinstance(root, dict):
        msg = f"State root must be a dict, got {type(root).__name__}"
        raise TypeError(msg)
    tracker = _Tracker(on_change)
    tracker.root_view = TrackedDict(root, "", tracker)
    logger.debug("Tracking state root with %d top-level keys", len(root))
    return tracker.root_view
