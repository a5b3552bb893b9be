"""PolygonRegistry — every finished shape plus the one active session.

Responsibilities:
  - holds FieldPolygons and DistancePaths by id
  - owns the single active Session (idle, drawing or editing)
  - selection: the selected shape is the one being edited
  - z-order: newer fields above older ones, selected field always on top
  - publishes lifecycle events on an EventBus and to direct listeners

Starting a session while another is active never fails and never drops
work silently: an unfinished drawing with enough vertices is finalized,
one without is discarded, an edit is committed. Each of those is logged
and published as ``session_conflict``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from loguru import logger

from fieldsketch.comms.event_bus import EventBus
from fieldsketch.config import settings
from fieldsketch.editing.draw import DrawMode, DrawResult, DrawStateMachine
from fieldsketch.editing.edit_session import EditSession
from fieldsketch.editing.metrics import ShapeMetrics
from fieldsketch.editing.session import IDLE, Session
from fieldsketch.errors import InvalidSessionState, UnknownShape
from fieldsketch.geometry.point import GeoPoint
from fieldsketch.overlay.labels import OverlayLabelManager
from fieldsketch.registry.models import (
    DistancePath,
    FieldPolygon,
    FieldStyle,
    new_field_id,
    new_path_id,
)

Shape = Union[FieldPolygon, DistancePath]
RegistryListener = Callable[[str, dict], None]


class PolygonRegistry:
    """Registry of finished shapes and the single active draw/edit session.

    Args:
        event_bus: Bus for change notifications; a private one is created
            if omitted.
        labels: Optional label manager kept in sync with every change.
        history_limit: Undo depth per session (default from settings).
        radius: Earth radius for metrics (default from settings).
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        labels: Optional[OverlayLabelManager] = None,
        history_limit: Optional[int] = None,
        radius: Optional[float] = None,
    ) -> None:
        self.event_bus = event_bus or EventBus()
        self.labels = labels
        self.history_limit = settings.history_limit if history_limit is None else history_limit
        self.radius = settings.earth_radius_m if radius is None else radius

        self._fields: dict[str, FieldPolygon] = {}
        self._paths: dict[str, DistancePath] = {}
        self._session: Session = IDLE
        self._selected_id: Optional[str] = None
        self._edit_origin: tuple[GeoPoint, ...] = ()
        self._next_z = 1
        self._listeners: list[RegistryListener] = []

    # ==================
    # Notification
    # ==================

    def add_listener(self, listener: RegistryListener) -> Callable[[], None]:
        """Register a synchronous (event_type, data) listener."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def attach_labels(self, labels: OverlayLabelManager) -> None:
        """Start keeping ``labels`` in sync, seeding it with every shape."""
        self.labels = labels
        for shape in [*self._fields.values(), *self._paths.values()]:
            self._sync_labels(shape)

    def _emit(self, event_type: str, data: dict) -> None:
        self.event_bus.publish(event_type, data)
        for listener in list(self._listeners):
            try:
                listener(event_type, data)
            except Exception:
                logger.exception(f"Registry listener failed on {event_type}")

    # ==================
    # Session access
    # ==================

    @property
    def session(self) -> Session:
        return self._session

    @property
    def drawing(self) -> Optional[DrawStateMachine]:
        return self._session if isinstance(self._session, DrawStateMachine) else None

    @property
    def editing(self) -> Optional[EditSession]:
        return self._session if isinstance(self._session, EditSession) else None

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def can_undo(self) -> bool:
        session = self.drawing or self.editing
        return bool(session and session.can_undo)

    @property
    def can_redo(self) -> bool:
        session = self.drawing or self.editing
        return bool(session and session.can_redo)

    def _set_session(self, session: Session) -> None:
        if self._session is not IDLE and self._session is not session:
            self._session.supersede()
        self._session = session

    def _resolve_active_session(self, reason: str) -> Optional[Shape]:
        """End whatever session is active so a new one can begin.

        Returns the shape produced if an unfinished drawing was finalized.
        """
        session = self._session
        if session is IDLE:
            return None

        produced: Optional[Shape] = None
        if isinstance(session, DrawStateMachine):
            session.cancel_drag()
            if session.can_close:
                produced = self._materialize(session.close())
                resolution = "finalized"
            else:
                session.cancel()
                if self.labels is not None:
                    self.labels.remove_owner(session.session_id)
                resolution = "discarded"
            logger.warning(
                f"Active drawing {session.session_id} {resolution} before {reason}"
            )
        elif isinstance(session, EditSession):
            self._finish_editing(session)
            resolution = "committed"
            logger.info(f"Edit of {session.shape_id} committed before {reason}")
        else:
            resolution = "ended"

        self._emit("session_conflict", {
            "session_id": session.session_id,
            "kind": session.kind.value,
            "resolution": resolution,
            "reason": reason,
            "shape_id": self._shape_id_of(produced),
        })
        self._end_session(session)
        return produced

    def _end_session(self, session: Session) -> None:
        session.supersede()
        if self._session is session:
            self._session = IDLE
        self._emit("session_ended", {"session_id": session.session_id, "kind": session.kind.value})

    # ==================
    # Drawing
    # ==================

    def start_drawing(self, mode: DrawMode = DrawMode.FIELD) -> DrawStateMachine:
        """Begin a new field (or distance path) drawing."""
        self._resolve_active_session(reason=f"start_drawing({DrawMode(mode).value})")
        if self._selected_id is not None:
            self.deselect()

        machine = DrawStateMachine(mode, history_limit=self.history_limit, radius=self.radius)
        machine.on_change = lambda metrics: self._on_draw_change(machine, metrics)
        machine.start()
        self._set_session(machine)
        self._emit("session_started", {
            "session_id": machine.session_id,
            "kind": machine.kind.value,
            "mode": machine.mode.value,
        })
        return machine

    def add_point(self, point: GeoPoint) -> int:
        return self._require_drawing().add_point(point)

    def close_drawing(self) -> Shape:
        """Close the active drawing and register the resulting shape.

        Raises:
            InsufficientVertices: Too few points; the drawing stays active.
        """
        machine = self._require_drawing()
        shape = self._materialize(machine.close())
        self._end_session(machine)
        return shape

    def cancel_drawing(self) -> None:
        machine = self.drawing
        if machine is None:
            return
        owner = machine.session_id
        machine.cancel()
        if self.labels is not None:
            self.labels.remove_owner(owner)
        self._end_session(machine)

    def _require_drawing(self) -> DrawStateMachine:
        machine = self.drawing
        if machine is None:
            raise InvalidSessionState("no drawing in progress")
        return machine

    def _on_draw_change(self, machine: DrawStateMachine, metrics: ShapeMetrics) -> None:
        closed = machine.mode is DrawMode.FIELD
        if self.labels is not None:
            self.labels.sync_shape(
                machine.session_id,
                machine.vertices,
                closed=closed,
                name="" if closed else None,
                is_field=closed,
            )
        self._emit("metrics_updated", self._metrics_payload(machine.session_id, metrics))

    def _materialize(self, result: DrawResult) -> Shape:
        if self.labels is not None and self._session is not IDLE:
            self.labels.remove_owner(self._session.session_id)

        if result.mode is DrawMode.FIELD:
            field_polygon = FieldPolygon(
                field_id=new_field_id(),
                vertices=result.vertices,
                name=f"{settings.default_field_name} {len(self._fields) + 1}",
                style=FieldStyle.default(),
                z_index=self._take_z(),
            )
            self._fields[field_polygon.field_id] = field_polygon
            self._sync_labels(field_polygon)
            logger.info(
                f"Created field '{field_polygon.name}' ({field_polygon.field_id}) "
                f"with {len(result.vertices)} vertices, {field_polygon.area_m2:.1f} m²"
            )
            self._emit("field_created", field_polygon.to_dict())
            return field_polygon

        path = DistancePath(
            path_id=new_path_id(),
            vertices=result.vertices,
            closed=result.closed,
            name=f"{settings.default_path_name} {len(self._paths) + 1}",
        )
        self._paths[path.path_id] = path
        self._sync_labels(path)
        logger.info(f"Created path {path.path_id}: {path.total_distance_m:.1f} m")
        self._emit("path_created", path.to_dict())
        return path

    def _take_z(self) -> int:
        z = self._next_z
        self._next_z += 1
        return z

    # ==================
    # Selection / editing
    # ==================

    def select(self, shape_id: str) -> EditSession:
        """Select a shape and open an editing session on it."""
        shape = self.get(shape_id)
        current = self.editing
        if current is not None and current.shape_id == shape_id:
            return current

        self._resolve_active_session(reason=f"select({shape_id})")
        session = EditSession(
            shape_id,
            shape.vertices,
            closed=shape.closed,
            history_limit=self.history_limit,
            radius=self.radius,
        )
        session.on_change = lambda metrics: self._on_edit_change(session, metrics)
        self._set_session(session)
        self._selected_id = shape_id
        self._edit_origin = tuple(shape.vertices)
        self._sync_labels(shape)
        self._emit("selection_changed", {"selected_id": shape_id})
        self._emit("session_started", {
            "session_id": session.session_id,
            "kind": session.kind.value,
            "shape_id": shape_id,
        })
        return session

    def deselect(self) -> None:
        """Commit any edit of the selected shape and hide its markers."""
        session = self.editing
        if session is not None:
            self._finish_editing(session)
            self._end_session(session)
        if self._selected_id is None:
            return
        previous = self._selected_id
        self._selected_id = None
        shape = self._fields.get(previous) or self._paths.get(previous)
        if shape is not None:
            self._sync_labels(shape)
        self._emit("selection_changed", {"selected_id": None, "previous_id": previous})

    def toggle_selection(self, shape_id: str) -> Optional[EditSession]:
        if self._selected_id == shape_id:
            self.deselect()
            return None
        return self.select(shape_id)

    def _finish_editing(self, session: EditSession) -> None:
        vertices = session.end()
        shape = self._fields.get(session.shape_id) or self._paths.get(session.shape_id)
        if shape is None:
            return
        shape.vertices = vertices
        if vertices != self._edit_origin:
            if isinstance(shape, FieldPolygon):
                shape.updated_at = datetime.now(timezone.utc).isoformat()
                logger.info(f"Updated field {shape.field_id}: {shape.area_m2:.1f} m²")
                self._emit("field_updated", shape.to_dict())
            else:
                self._emit("path_updated", shape.to_dict())
        self._edit_origin = ()
        if self._selected_id == session.shape_id:
            self._selected_id = None
            self._sync_labels(shape)
            self._emit("selection_changed", {"selected_id": None, "previous_id": session.shape_id})

    def _on_edit_change(self, session: EditSession, metrics: ShapeMetrics) -> None:
        shape = self._fields.get(session.shape_id) or self._paths.get(session.shape_id)
        if shape is None:
            return
        # Readers (labels, presentation) see the live outline while editing
        shape.vertices = session.vertices
        self._sync_labels(shape)
        self._emit("metrics_updated", self._metrics_payload(session.shape_id, metrics))

    def undo(self) -> None:
        session = self.drawing or self.editing
        if session is None:
            raise InvalidSessionState("no active session to undo in")
        session.undo()

    def redo(self) -> None:
        session = self.drawing or self.editing
        if session is None:
            raise InvalidSessionState("no active session to redo in")
        session.redo()

    # ==================
    # Shape CRUD
    # ==================

    def get(self, shape_id: str) -> Shape:
        shape = self._fields.get(shape_id) or self._paths.get(shape_id)
        if shape is None:
            raise UnknownShape(shape_id)
        return shape

    def get_field(self, field_id: str) -> FieldPolygon:
        field_polygon = self._fields.get(field_id)
        if field_polygon is None:
            raise UnknownShape(field_id)
        return field_polygon

    def fields(self) -> list[FieldPolygon]:
        return list(self._fields.values())

    def paths(self) -> list[DistancePath]:
        return list(self._paths.values())

    def delete(self, shape_id: str) -> Shape:
        """Remove a shape for good, along with its session and history."""
        shape = self.get(shape_id)
        session = self.editing
        if session is not None and session.shape_id == shape_id:
            # Discard, not commit: the shape is going away
            session.history.clear()
            self._end_session(session)
        if self._selected_id == shape_id:
            self._selected_id = None
            self._emit("selection_changed", {"selected_id": None, "previous_id": shape_id})
        if self.labels is not None:
            self.labels.remove_owner(shape_id)

        if isinstance(shape, FieldPolygon):
            del self._fields[shape_id]
            logger.info(f"Deleted field {shape_id}")
            self._emit("field_deleted", {"field_id": shape_id})
        else:
            del self._paths[shape_id]
            logger.info(f"Deleted path {shape_id}")
            self._emit("path_deleted", {"path_id": shape_id})
        return shape

    def set_style(self, field_id: str, **changes) -> FieldPolygon:
        field_polygon = self.get_field(field_id)
        field_polygon.style = field_polygon.style.with_changes(**changes)
        field_polygon.updated_at = datetime.now(timezone.utc).isoformat()
        self._emit("field_updated", field_polygon.to_dict())
        return field_polygon

    def rename(self, shape_id: str, name: str) -> Shape:
        shape = self.get(shape_id)
        shape.name = name
        self._sync_labels(shape)
        if isinstance(shape, FieldPolygon):
            shape.updated_at = datetime.now(timezone.utc).isoformat()
            self._emit("field_updated", shape.to_dict())
        else:
            self._emit("path_updated", shape.to_dict())
        return shape

    def load(self, fields: Iterable[FieldPolygon]) -> int:
        """Hydrate from persistence. Existing ids are replaced."""
        count = 0
        for field_polygon in fields:
            self._fields[field_polygon.field_id] = field_polygon
            self._next_z = max(self._next_z, field_polygon.z_index + 1)
            self._sync_labels(field_polygon)
            count += 1
        logger.info(f"Loaded {count} fields")
        self._emit("fields_loaded", {"count": count})
        return count

    # ==================
    # Queries
    # ==================

    def render_order(self) -> list[FieldPolygon]:
        """Fields bottom-to-top: by creation z, selected one last."""
        ordered = sorted(self._fields.values(), key=lambda f: f.z_index)
        if self._selected_id in self._fields:
            selected = self._fields[self._selected_id]
            ordered.remove(selected)
            ordered.append(selected)
        return ordered

    def field_at(self, point: GeoPoint) -> Optional[FieldPolygon]:
        """Topmost field whose outline contains ``point``."""
        for field_polygon in reversed(self.render_order()):
            if field_polygon.contains_point(point):
                return field_polygon
        return None

    def total_area_m2(self) -> float:
        return sum(f.area_m2 for f in self._fields.values())

    # ==================
    # Internals
    # ==================

    def _sync_labels(self, shape: Shape) -> None:
        if self.labels is None:
            return
        if isinstance(shape, FieldPolygon):
            self.labels.sync_shape(
                shape.field_id,
                shape.vertices,
                closed=True,
                name=shape.name,
                show_edges=shape.field_id == self._selected_id,
                is_field=True,
            )
        else:
            self.labels.sync_shape(
                shape.path_id,
                shape.vertices,
                closed=shape.closed,
                show_edges=True,
                is_field=False,
            )

    @staticmethod
    def _shape_id_of(shape: Optional[Shape]) -> Optional[str]:
        if isinstance(shape, FieldPolygon):
            return shape.field_id
        if isinstance(shape, DistancePath):
            return shape.path_id
        return None

    @staticmethod
    def _metrics_payload(owner_id: str, metrics: ShapeMetrics) -> dict:
        return {
            "owner_id": owner_id,
            "vertex_count": metrics.vertex_count,
            "area_m2": metrics.area_m2,
            "area_text": metrics.area_text,
            "perimeter_m": metrics.perimeter_m,
            "edge_lengths": list(metrics.edge_lengths),
        }
