"""UndoRedoStack — snapshot history for a single editing session.

Snapshots are plain tuples of GeoPoint. The stack never touches a
VertexStore: undo/redo hand a snapshot back and the caller applies it.
"""

from __future__ import annotations

from fieldsketch.errors import NothingToRedo, NothingToUndo
from fieldsketch.geometry.point import GeoPoint

Snapshot = tuple[GeoPoint, ...]


class UndoRedoStack:
    """Two snapshot stacks with record/undo/redo semantics.

    Args:
        limit: Maximum undo depth; 0 keeps every entry. When bounded the
            oldest entry is dropped on overflow.
    """

    def __init__(self, limit: int = 0) -> None:
        self.limit = limit
        self._undo: list[Snapshot] = []
        self._redo: list[Snapshot] = []

    def record(self, snapshot: Snapshot) -> None:
        """Push the pre-mutation state and invalidate the redo branch."""
        self._undo.append(tuple(snapshot))
        if self.limit and len(self._undo) > self.limit:
            del self._undo[0]
        self._redo.clear()

    def undo(self, current: Snapshot) -> Snapshot:
        """Pop the last recorded state; ``current`` moves onto the redo stack."""
        if not self._undo:
            raise NothingToUndo("nothing to undo")
        snapshot = self._undo.pop()
        self._redo.append(tuple(current))
        return snapshot

    def redo(self, current: Snapshot) -> Snapshot:
        if not self._redo:
            raise NothingToRedo("nothing to redo")
        snapshot = self._redo.pop()
        self._undo.append(tuple(current))
        return snapshot

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def depth(self) -> int:
        """Number of undoable entries."""
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)
