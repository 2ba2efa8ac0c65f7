"""Undo/redo history of timeline snapshots.

A linear list of snapshots with a cursor pointing at the current state.
Recording after an undo discards everything past the cursor (the redo
branch). Snapshots are tuples of frozen Clip values, so restoring one
replaces the timeline wholesale instead of replaying diffs.

Undo/redo at either end of the list is a silent no-op returning None.
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


class History:
    """Branch-truncating snapshot stack."""

    def __init__(self, initial=(), max_depth: int | None = DEFAULT_MAX_DEPTH):
        if max_depth is not None and max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        self.max_depth = max_depth
        self._snapshots: list[tuple] = [tuple(initial)]
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def current(self) -> tuple:
        return self._snapshots[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def reset(self, snapshot=()) -> None:
        """Forget all history; `snapshot` becomes the only state."""
        self._snapshots = [tuple(snapshot)]
        self._cursor = 0

    def record(self, snapshot) -> bool:
        """Record a committed state. Returns False if nothing changed."""
        snapshot = tuple(snapshot)
        if snapshot == self.current:
            return False

        del self._snapshots[self._cursor + 1:]
        self._snapshots.append(snapshot)
        self._cursor += 1

        if self.max_depth is not None and len(self._snapshots) > self.max_depth:
            overflow = len(self._snapshots) - self.max_depth
            del self._snapshots[:overflow]
            self._cursor -= overflow
        return True

    def undo(self) -> tuple | None:
        if not self.can_undo:
            logger.debug("nothing to undo")
            return None
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> tuple | None:
        if not self.can_redo:
            logger.debug("nothing to redo")
            return None
        self._cursor += 1
        return self._snapshots[self._cursor]
