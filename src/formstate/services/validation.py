"""Synchronous validation scheduling.

Every accepted mutation *requests* a pass; requests are coalesced so a burst
of writes yields exactly one validator call against the final state:

- ``debounce == 0``: the first request in a burst queues one pass on the
  next event-loop turn (``loop.call_soon``); later requests ride along.
- ``debounce > 0``: each request restarts a single ``loop.call_later`` timer.

Outside a running event loop there is nothing to defer to, so a request runs
the pass inline. Inside a :meth:`ValidationScheduler.hold` block such inline
requests are folded into one pass that runs when the outermost block exits;
the engine holds for the length of each write and its effect cascade, and
callers can hold around a burst of writes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from formstate.domain.errors import ErrorTree, has_errors
from formstate.infrastructure.stores import Derived, Store
from formstate.services._helpers import running_loop

logger = logging.getLogger(__name__)

SyncValidator = Callable[[Any], ErrorTree]


class ValidationScheduler:
    """Owns the sync validator and the published ErrorTree.

    Parameters:
        validator: ``validate(source) -> ErrorTree``, or None to disable.
        source: The tracked data handle the validator reads.
        debounce: Quiet period in seconds (``0`` = next loop turn).
        on_validated: Called with each freshly published tree.
    """

    def __init__(
        self,
        validator: SyncValidator | None,
        source: Mapping[str, Any],
        *,
        debounce: float = 0.0,
        on_validated: Callable[[ErrorTree | None], None] | None = None,
    ) -> None:
        self._validator = validator
        self._source = source
        self._debounce = debounce
        self._on_validated = on_validated
        self._handle: asyncio.Handle | None = None
        self._holds = 0
        self._held = False

        self.errors: Store[ErrorTree | None] = Store(None)
        self.has_errors = Derived([self.errors], has_errors)

    @property
    def enabled(self) -> bool:
        return self._validator is not None

    @property
    def pending(self) -> bool:
        """Whether a deferred pass is queued and has not fired yet."""
        return self._handle is not None

    def request(self) -> None:
        """Ask for a pass after the current burst of mutations."""
        if self._validator is None:
            return
        loop = running_loop()
        if loop is None:
            if self._holds:
                self._held = True
            else:
                self._validate()
            return
        if self._debounce > 0:
            if self._handle is not None:
                self._handle.cancel()
            self._handle = loop.call_later(self._debounce, self._fire)
        elif self._handle is None:
            self._handle = loop.call_soon(self._fire)

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Fold inline passes requested inside the block into one, run on exit.

        Blocks nest; only the outermost exit validates. With a running loop
        requests are deferred anyway and the block changes nothing.
        """
        self._holds += 1
        try:
            yield
        finally:
            self._holds -= 1
            if self._holds == 0 and self._held:
                self._held = False
                self._validate()

    def run_now(self) -> None:
        """Validate immediately, superseding any deferred pass."""
        if self._validator is None:
            return
        self.cancel()
        self._validate()

    def cancel(self) -> None:
        self._held = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        self.cancel()
        self.has_errors.close()

    def _fire(self) -> None:
        self._handle = None
        self._validate()

    def _validate(self) -> None:
        assert self._validator is not None
        tree = self._validator(self._source)
        self.errors.set(tree)
        logger.debug("Validation pass published, has_errors=%s", self.has_errors.get())
        if self._on_validated is not None:
            self._on_validated(tree)
