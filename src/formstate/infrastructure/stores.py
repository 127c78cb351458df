"""Push-style observable values.

Each value exposes ``get()`` and ``subscribe(callback)``. Subscribing calls
*callback* immediately with the current value and again on every change;
the returned callable unsubscribes. ``Derived`` recomputes from its sources
whenever one of them changes.

Scalars notify only when the value actually changes. ``dict`` and ``list``
values always notify on ``set``, since publishers replace them wholesale.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Unsubscribe = Callable[[], None]


class Readable(Protocol[T_co]):
    """Read-only observable surface handed to callers."""

    def get(self) -> T_co: ...

    def subscribe(self, callback: Callable[[T_co], None]) -> Unsubscribe: ...


def _changed(old: Any, new: Any) -> bool:
    if isinstance(new, (dict, list)):
        return True
    return old is not new and old != new


class Store(Generic[T]):
    """A writable observable value."""

    def __init__(self, value: T) -> None:
        self._value = value
        self._subscribers: list[Callable[[T], None]] = []

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if not _changed(self._value, value):
            return
        self._value = value
        for callback in list(self._subscribers):
            callback(value)

    def update(self, fn: Callable[[T], T]) -> None:
        self.set(fn(self._value))

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._subscribers.append(callback)
        callback(self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class Derived(Store[T]):
    """An observable computed from other observables.

    Subscribes to its sources eagerly, so ``get()`` is always current.
    Call ``close()`` to detach from the sources.
    """

    def __init__(self, sources: Sequence[Readable[Any]], fn: Callable[..., T]) -> None:
        self._sources = list(sources)
        self._fn = fn
        super().__init__(self._compute())
        self._unsubscribers = [source.subscribe(self._on_source) for source in self._sources]

    def _compute(self) -> T:
        return self._fn(*(source.get() for source in self._sources))

    def _on_source(self, _value: Any) -> None:
        # Sources call back once on subscribe, before _unsubscribers is bound.
        if not hasattr(self, "_unsubscribers"):
            return
        self.set(self._compute())

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
