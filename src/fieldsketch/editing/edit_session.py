"""EditSession — reshape a finished field (or distance path).

Interactivity of the selected shape:

  selected -> editing_vertex -> selected   (vertex drag)
  selected -> editing_edge   -> selected   (midpoint insert-drag)

Drags are momentary sub-states: every drag ends back in ``selected``.
A drag records exactly one undo entry, the state captured when the drag
began, no matter how many pointer-move events it received. Cancelling a
drag restores that state without recording anything.

Edge-length entry always anchors the lower-index endpoint of the edge
and moves the later one, (i + 1) mod n.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Optional

from loguru import logger

from fieldsketch.editing.history import Snapshot, UndoRedoStack
from fieldsketch.editing.metrics import ShapeMetrics
from fieldsketch.editing.session import Session, SessionKind
from fieldsketch.editing.vertex_store import VertexStore
from fieldsketch.errors import IndexOutOfRange, InsufficientVertices, InvalidSessionState
from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint


class EditState(str, Enum):
    SELECTED = "selected"
    EDITING_VERTEX = "editing_vertex"
    EDITING_EDGE = "editing_edge"
    ENDED = "ended"


_DRAG_STATES = (EditState.EDITING_VERTEX, EditState.EDITING_EDGE)


class EditSession(Session):
    """Editing session bound to one registered shape.

    Args:
        shape_id: Id of the FieldPolygon or DistancePath being edited.
        vertices: Starting vertices; copied into the session's own store.
        closed: True for fields, False for open distance paths.
        history_limit: Undo depth for this session.
        radius: Earth radius for metrics and length entry.
        on_change: Called with fresh ShapeMetrics after every vertex change.
    """

    kind = SessionKind.EDITING

    def __init__(
        self,
        shape_id: str,
        vertices: Iterable[GeoPoint],
        closed: bool = True,
        history_limit: int = 0,
        radius: float = spherical.EARTH_RADIUS_M,
        on_change: Optional[Callable[[ShapeMetrics], None]] = None,
    ) -> None:
        super().__init__()
        self.shape_id = shape_id
        self.closed = closed
        self.radius = radius
        self.on_change = on_change
        self.store = VertexStore(vertices)
        self.store.subscribe(self._on_store_change)
        self.history = UndoRedoStack(history_limit)
        self.state = EditState.SELECTED

        self._drag_index: int | None = None
        self._drag_snapshot: Snapshot | None = None
        self._drag_moved = False

    @property
    def min_vertices(self) -> int:
        return 3 if self.closed else 2

    # ------------------------------------------------------------------
    # Vertex relocation
    # ------------------------------------------------------------------

    def begin_vertex_drag(self, index: int) -> None:
        """Pointer-down on vertex ``index``."""
        self._require_selected()
        if not 0 <= index < len(self.store):
            raise IndexOutOfRange(index, 0, len(self.store) - 1)
        self._begin_drag(EditState.EDITING_VERTEX, index)

    # ------------------------------------------------------------------
    # Edge insertion-drag
    # ------------------------------------------------------------------

    def begin_edge_drag(self, edge_index: int) -> None:
        """Pointer-down on the midpoint marker of edge ``edge_index``.

        Nothing is inserted yet: a pure click must leave the shape as is.
        """
        self._require_selected()
        self._check_edge(edge_index)
        self._begin_drag(EditState.EDITING_EDGE, edge_index)

    # ------------------------------------------------------------------
    # Shared drag handling
    # ------------------------------------------------------------------

    def _begin_drag(self, state: EditState, index: int) -> None:
        self.state = state
        self._drag_index = index
        self._drag_snapshot = self.store.to_array()
        self._drag_moved = False
        logger.debug(f"{state.value} begin at {index} on {self.shape_id}")

    def drag_to(self, point: GeoPoint) -> None:
        """Pointer-move during a drag."""
        self._check_current()
        if self.state is EditState.EDITING_VERTEX:
            self.store.set_at(self._drag_index, point)
        elif self.state is EditState.EDITING_EDGE:
            new_index = self._drag_index + 1
            if not self._drag_moved:
                self.store.insert_at(new_index, point)
            else:
                self.store.set_at(new_index, point)
        else:
            raise InvalidSessionState(f"no drag in progress (state={self.state.value})")
        self._drag_moved = True

    def end_drag(self) -> bool:
        """Pointer-up. Records one undo entry if the drag changed anything.

        Returns:
            True if the shape changed.
        """
        self._check_current()
        if self.state not in _DRAG_STATES:
            raise InvalidSessionState(f"no drag in progress (state={self.state.value})")
        changed = self._drag_moved
        if changed:
            self.history.record(self._drag_snapshot)
        logger.debug(f"{self.state.value} end on {self.shape_id} (changed={changed})")
        self._reset_drag()
        return changed

    def cancel_drag(self) -> None:
        """Abort the drag (e.g. Escape) and restore the pre-drag vertices."""
        self._check_current()
        if self.state not in _DRAG_STATES:
            return
        if self._drag_moved:
            self.store.replace_all(self._drag_snapshot)
        logger.debug(f"{self.state.value} cancelled on {self.shape_id}")
        self._reset_drag()

    def _reset_drag(self) -> None:
        self.state = EditState.SELECTED
        self._drag_index = None
        self._drag_snapshot = None
        self._drag_moved = False

    @property
    def dragging(self) -> bool:
        return self.state in _DRAG_STATES

    # ------------------------------------------------------------------
    # Direct edits
    # ------------------------------------------------------------------

    def set_edge_length(self, edge_index: int, length_m: float) -> bool:
        """Commit a typed length for edge (i, i+1).

        The later endpoint slides along the edge's own direction; every
        other vertex stays put. A zero-length edge has no direction, so
        the request is a visible no-op rather than an error.

        Returns:
            True if a vertex moved.
        """
        self._require_selected()
        self._check_edge(edge_index)
        n = len(self.store)
        target_index = (edge_index + 1) % n
        anchor = self.store[edge_index]
        target = self.store[target_index]
        moved = spherical.extrapolate_to_distance(anchor, target, length_m, self.radius)
        if moved == target:
            return False
        self.history.record(self.store.to_array())
        self.store.set_at(target_index, moved)
        logger.info(
            f"Edge {edge_index} of {self.shape_id} set to {length_m:.2f} m "
            f"(moved vertex {target_index})"
        )
        return True

    def remove_vertex(self, index: int) -> GeoPoint:
        """Delete one vertex, keeping the shape valid."""
        self._require_selected()
        if not 0 <= index < len(self.store):
            raise IndexOutOfRange(index, 0, len(self.store) - 1)
        if len(self.store) - 1 < self.min_vertices:
            raise InsufficientVertices(self.min_vertices, len(self.store) - 1)
        self.history.record(self.store.to_array())
        return self.store.remove_at(index)

    def undo(self) -> None:
        self._require_selected()
        self.store.replace_all(self.history.undo(self.store.to_array()))

    def redo(self) -> None:
        self._require_selected()
        self.store.replace_all(self.history.redo(self.store.to_array()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def commit(self) -> Snapshot:
        """Current vertices, to be written back to the shape."""
        return self.store.to_array()

    def end(self) -> Snapshot:
        """Finish editing: cancel any open drag and return final vertices."""
        if self.dragging:
            self.cancel_drag()
        vertices = self.commit()
        self.state = EditState.ENDED
        self.history.clear()
        return vertices

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def vertices(self) -> Snapshot:
        return self.store.to_array()

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo and not self.dragging

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo and not self.dragging

    def edge_count(self) -> int:
        return len(spherical.edges(len(self.store), self.closed))

    def midpoints(self) -> list[GeoPoint]:
        """Positions of the edge midpoint markers, in edge order."""
        pts = self.store.to_array()
        return [spherical.midpoint(pts[i], pts[j]) for i, j in spherical.edges(len(pts), self.closed)]

    def metrics(self) -> ShapeMetrics:
        return ShapeMetrics.compute(self.store.to_array(), self.closed, self.radius)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_selected(self) -> None:
        self._check_current()
        if self.state is not EditState.SELECTED:
            raise InvalidSessionState(f"busy (state={self.state.value})")

    def _check_edge(self, edge_index: int) -> None:
        count = self.edge_count()
        if not 0 <= edge_index < count:
            raise IndexOutOfRange(edge_index, 0, count - 1)

    def _on_store_change(self, store: VertexStore) -> None:
        if self.on_change is not None:
            self.on_change(self.metrics())
