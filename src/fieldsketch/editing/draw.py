"""DrawStateMachine — lifecycle of one freehand drawing.

States:
  idle -> drawing -> closed -> idle
  drawing -> idle (cancel)

A placed vertex can be dragged while drawing. Like an edit drag it
records one undo entry on release, and only if the vertex moved.

A FIELD drawing needs at least 3 vertices to close and becomes a
FieldPolygon; a PATH drawing (distance measurement) needs 2 and becomes
a DistancePath. The machine itself only produces a DrawResult; turning
that into a registered shape is PolygonRegistry's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from fieldsketch.editing.history import Snapshot, UndoRedoStack
from fieldsketch.editing.metrics import ShapeMetrics
from fieldsketch.editing.session import Session, SessionKind
from fieldsketch.editing.vertex_store import VertexStore
from fieldsketch.errors import IndexOutOfRange, InsufficientVertices, InvalidSessionState
from fieldsketch.geometry.point import GeoPoint
from fieldsketch.geometry.spherical import EARTH_RADIUS_M, is_closed_ring


class DrawState(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    CLOSED = "closed"


class DrawMode(str, Enum):
    FIELD = "field"
    PATH = "path"


MIN_VERTICES = {DrawMode.FIELD: 3, DrawMode.PATH: 2}


@dataclass(frozen=True)
class DrawResult:
    """What a closed drawing hands to the registry."""

    mode: DrawMode
    vertices: Snapshot
    closed: bool


MetricsCallback = Callable[[ShapeMetrics], None]


class DrawStateMachine(Session):
    """Drawing session: click-to-add vertices with undo/redo until close.

    Args:
        mode: FIELD for a closed polygon, PATH for a distance measurement.
        history_limit: Undo depth passed to the session's UndoRedoStack.
        radius: Earth radius used for live metrics.
        on_change: Called with fresh ShapeMetrics after every vertex change.
    """

    kind = SessionKind.DRAWING

    def __init__(
        self,
        mode: DrawMode = DrawMode.FIELD,
        history_limit: int = 0,
        radius: float = EARTH_RADIUS_M,
        on_change: Optional[MetricsCallback] = None,
    ) -> None:
        super().__init__()
        self.mode = DrawMode(mode)
        self.state = DrawState.IDLE
        self.history_limit = history_limit
        self.radius = radius
        self.on_change = on_change
        self.store: Optional[VertexStore] = None
        self.history: Optional[UndoRedoStack] = None
        self.result: Optional[DrawResult] = None

        self._drag_index: Optional[int] = None
        self._drag_snapshot: Optional[Snapshot] = None
        self._drag_moved = False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """idle -> drawing with a fresh vertex store and history."""
        self._check_current()
        if self.state is not DrawState.IDLE:
            raise InvalidSessionState(f"cannot start while {self.state.value}")
        self.store = VertexStore()
        self.store.subscribe(self._on_store_change)
        self.history = UndoRedoStack(self.history_limit)
        self.result = None
        self.state = DrawState.DRAWING
        logger.info(f"Drawing started ({self.mode.value}, {self.session_id})")

    def add_point(self, point: GeoPoint) -> int:
        """Snapshot, then append. Returns the new vertex index."""
        store, history = self._require_idle_drawing()
        history.record(store.to_array())
        store.append(point)
        return len(store) - 1

    def close(self) -> DrawResult:
        """drawing -> closed -> idle.

        Raises:
            InsufficientVertices: Too few points; the drawing stays open.
        """
        store, _ = self._require_idle_drawing()
        required = MIN_VERTICES[self.mode]
        if len(store) < required:
            raise InsufficientVertices(required, len(store))

        vertices = store.to_array()
        closed = self.mode is DrawMode.FIELD
        if self.mode is DrawMode.PATH and is_closed_ring(vertices):
            # A path that returns to its start is a closed loop
            vertices = vertices[:-1]
            closed = True

        self.state = DrawState.CLOSED
        self.result = DrawResult(mode=self.mode, vertices=vertices, closed=closed)
        logger.info(f"Drawing closed with {len(vertices)} vertices ({self.session_id})")
        self._teardown()
        return self.result

    def cancel(self) -> None:
        """drawing -> idle, discarding every uncommitted vertex."""
        self._check_current()
        if self.state is not DrawState.DRAWING:
            return
        count = len(self.store) if self.store is not None else 0
        self._teardown()
        logger.info(f"Drawing cancelled, discarded {count} vertices ({self.session_id})")

    def _teardown(self) -> None:
        self._reset_drag()
        self.store = None
        self.history = None
        self.state = DrawState.IDLE

    # ------------------------------------------------------------------
    # Vertex drag
    # ------------------------------------------------------------------

    def begin_vertex_drag(self, index: int) -> None:
        """Pointer-down on an already placed vertex."""
        store, _ = self._require_idle_drawing()
        if not 0 <= index < len(store):
            raise IndexOutOfRange(index, 0, len(store) - 1)
        self._drag_index = index
        self._drag_snapshot = store.to_array()
        self._drag_moved = False
        logger.debug(f"Drawing vertex drag begin at {index} ({self.session_id})")

    def drag_to(self, point: GeoPoint) -> None:
        store, _ = self._require_drawing()
        if self._drag_index is None:
            raise InvalidSessionState("no drag in progress")
        store.set_at(self._drag_index, point)
        self._drag_moved = True

    def end_drag(self) -> bool:
        """Pointer-up. One undo entry per drag, and only if a vertex moved."""
        _, history = self._require_drawing()
        if self._drag_index is None:
            raise InvalidSessionState("no drag in progress")
        changed = self._drag_moved
        if changed:
            history.record(self._drag_snapshot)
        logger.debug(f"Drawing vertex drag end ({self.session_id}, changed={changed})")
        self._reset_drag()
        return changed

    def cancel_drag(self) -> None:
        """Restore the pre-drag vertices without touching history."""
        self._check_current()
        if self._drag_index is None:
            return
        if self._drag_moved and self.store is not None:
            self.store.replace_all(self._drag_snapshot)
        self._reset_drag()

    def _reset_drag(self) -> None:
        self._drag_index = None
        self._drag_snapshot = None
        self._drag_moved = False

    @property
    def dragging(self) -> bool:
        return self._drag_index is not None

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> None:
        store, history = self._require_idle_drawing()
        store.replace_all(history.undo(store.to_array()))

    def redo(self) -> None:
        store, history = self._require_idle_drawing()
        store.replace_all(history.redo(store.to_array()))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def vertices(self) -> Snapshot:
        return self.store.to_array() if self.store is not None else ()

    @property
    def can_close(self) -> bool:
        return (
            self.state is DrawState.DRAWING
            and self.store is not None
            and len(self.store) >= MIN_VERTICES[self.mode]
            and not self.dragging
        )

    @property
    def can_undo(self) -> bool:
        return self.history is not None and self.history.can_undo and not self.dragging

    @property
    def can_redo(self) -> bool:
        return self.history is not None and self.history.can_redo and not self.dragging

    def metrics(self) -> ShapeMetrics:
        """Live metrics; a FIELD in progress is measured as if closed."""
        return ShapeMetrics.compute(
            self.vertices, closed=self.mode is DrawMode.FIELD, radius=self.radius
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_drawing(self) -> tuple[VertexStore, UndoRedoStack]:
        self._check_current()
        if self.state is not DrawState.DRAWING or self.store is None or self.history is None:
            raise InvalidSessionState(f"not drawing (state={self.state.value})")
        return self.store, self.history

    def _require_idle_drawing(self) -> tuple[VertexStore, UndoRedoStack]:
        store, history = self._require_drawing()
        if self.dragging:
            raise InvalidSessionState("vertex drag in progress")
        return store, history

    def _on_store_change(self, store: VertexStore) -> None:
        if self.on_change is not None:
            self.on_change(self.metrics())
