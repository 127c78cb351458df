"""Named snapshot history with rollback and reset.

The history is never empty: index 0 is the baseline. Restoring rewrites the
live root *in place*, nested containers included: keys absent from the
snapshot are removed and existing dicts and lists are rewritten rather than
swapped, so every tracked view handed out earlier stays valid.
Restores write the raw root directly and emit no change notifications; the
engine re-validates afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from formstate.domain.snapshots import INITIAL_TITLE, Snapshot, deep_clone, restore_into
from formstate.infrastructure.stores import Store

logger = logging.getLogger(__name__)


class SnapshotManager:
    """Owns the ordered snapshot list for one state root.

    Parameters:
        root: The raw (untracked) state root dict.
        on_snapshot: Called with every snapshot created by :meth:`push`.
    """

    def __init__(
        self,
        root: dict[str, Any],
        *,
        on_snapshot: Callable[[Snapshot], None] | None = None,
    ) -> None:
        self._root = root
        self._on_snapshot = on_snapshot
        self.snapshots: Store[list[Snapshot]] = Store([Snapshot.capture(INITIAL_TITLE, root)])

    def __len__(self) -> int:
        return len(self.snapshots.get())

    @property
    def baseline(self) -> Snapshot:
        return self.snapshots.get()[0]

    def push(self, title: str, replace: bool = True) -> Snapshot:
        """Capture the current state.

        With *replace*, a last snapshot carrying the same *title* is
        overwritten in place instead of appending a new entry.
        """
        snapshot = Snapshot.capture(title, self._root)
        current = self.snapshots.get()
        if replace and current[-1].title == title:
            self.snapshots.set([*current[:-1], snapshot])
        else:
            self.snapshots.set([*current, snapshot])
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
        return snapshot

    def rollback(self, steps: int = 1) -> Snapshot | None:
        """Restore the snapshot *steps* entries back; None if only the baseline exists."""
        if steps < 0:
            msg = f"steps must be >= 0, got {steps}"
            raise ValueError(msg)
        count = len(self)
        if count <= 1:
            return None
        return self.restore(max(0, count - 1 - steps))

    def rollback_to(self, title: str) -> Snapshot | None:
        """Restore the most recent snapshot titled *title*; None if there is none."""
        for index in range(len(self) - 1, -1, -1):
            if self.snapshots.get()[index].title == title:
                return self.restore(index)
        return None

    def reset(self) -> Snapshot:
        """Restore the baseline and drop every later snapshot."""
        return self.restore(0)

    def restore(self, index: int) -> Snapshot:
        """Rewrite the root from snapshot *index* and truncate history after it."""
        current = self.snapshots.get()
        snapshot = current[index]
        restore_into(self._root, deep_clone(snapshot.data))
        self.snapshots.set(current[: index + 1])
        logger.debug("Restored snapshot %d (%s)", index, snapshot.title)
        return snapshot

    def collapse(self) -> Snapshot:
        """Replace the whole history with one fresh baseline of the current state."""
        baseline = Snapshot.capture(INITIAL_TITLE, self._root)
        self.snapshots.set([baseline])
        return baseline
