"""FieldEditorController — routes host pointer events into the engine.

A host calls ``handle_pointer`` (directly, or through the callbacks bound
in the constructor) and repaints from the registry, the label manager and
``markers()``. Engine errors raised while handling an event are logged
and dropped; with ``settings.debug`` they propagate instead.
"""

from __future__ import annotations

import math
from typing import Optional, Union

from loguru import logger

from fieldsketch.comms.event_bus import EventBus
from fieldsketch.config import settings
from fieldsketch.editing.draw import DrawMode, DrawStateMachine
from fieldsketch.editing.edit_session import EditSession
from fieldsketch.errors import FieldSketchError, InvalidSessionState
from fieldsketch.host.protocols import (
    MapHost,
    Marker,
    MarkerRef,
    MarkerRole,
    PointerEvent,
    PointerKind,
)
from fieldsketch.overlay.labels import OverlayLabelManager
from fieldsketch.registry.models import DistancePath, FieldPolygon
from fieldsketch.registry.registry import PolygonRegistry

Shape = Union[FieldPolygon, DistancePath]


class FieldEditorController:
    """Binds a MapHost to a PolygonRegistry.

    Args:
        host: The map surface.
        registry: Registry to drive; created if omitted.
        event_bus: Bus for a newly created registry.
    """

    def __init__(
        self,
        host: MapHost,
        registry: Optional[PolygonRegistry] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.host = host
        if registry is not None and registry.labels is not None:
            self.labels = registry.labels
        else:
            self.labels = OverlayLabelManager(
                host.project_to_screen,
                zoom_provider=lambda: getattr(host, "zoom", None),
            )
        if registry is None:
            registry = PolygonRegistry(event_bus=event_bus, labels=self.labels)
        elif registry.labels is None:
            registry.attach_labels(self.labels)
        self.registry = registry

        host.on_camera_idle(self.handle_camera_idle)
        for kind in PointerKind:
            host.on_pointer_event(kind, self.handle_pointer)

    # ------------------------------------------------------------------
    # Host callbacks
    # ------------------------------------------------------------------

    def handle_pointer(self, event: PointerEvent) -> None:
        try:
            self._dispatch(event)
        except FieldSketchError as e:
            if settings.debug:
                raise
            logger.warning(f"Ignored {event.kind.value} event: {e}")

    def handle_camera_idle(self) -> None:
        visible = self.labels.reproject()
        logger.debug(f"Camera idle: {visible} labels visible")

    def _dispatch(self, event: PointerEvent) -> None:
        kind = event.kind
        if kind is PointerKind.CLICK:
            self._on_click(event)
        elif kind is PointerKind.DBLCLICK:
            if self.registry.drawing is not None:
                self.finish_drawing()
        elif kind is PointerKind.DRAG_START:
            self._on_drag_start(event)
        elif kind is PointerKind.DRAG_MOVE:
            session = self._dragging_session()
            if session is not None and event.point is not None:
                session.drag_to(event.point)
        elif kind is PointerKind.DRAG_END:
            session = self._dragging_session()
            if session is not None:
                session.end_drag()
        elif kind is PointerKind.CANCEL:
            self.cancel()

    def _on_click(self, event: PointerEvent) -> None:
        if event.point is None:
            return
        if self.registry.drawing is not None:
            self.registry.add_point(event.point)
            return
        if event.target is not None:
            # Marker presses arrive as drag_start/drag_end
            return
        hit = self.registry.field_at(event.point)
        if hit is not None:
            self.registry.toggle_selection(hit.field_id)
        elif self.registry.selected_id is not None:
            self.registry.deselect()

    def _on_drag_start(self, event: PointerEvent) -> None:
        target = event.target
        machine = self.registry.drawing
        if machine is not None:
            if (
                target is not None
                and target.owner_id == machine.session_id
                and target.role is MarkerRole.VERTEX
            ):
                machine.begin_vertex_drag(target.index)
            return
        session = self.registry.editing
        if session is None or target is None or target.owner_id != session.shape_id:
            return
        if target.role is MarkerRole.VERTEX:
            session.begin_vertex_drag(target.index)
        else:
            session.begin_edge_drag(target.index)

    # ------------------------------------------------------------------
    # Commands (toolbar / keyboard)
    # ------------------------------------------------------------------

    def start_field(self) -> DrawStateMachine:
        return self.registry.start_drawing(DrawMode.FIELD)

    def start_measurement(self) -> DrawStateMachine:
        return self.registry.start_drawing(DrawMode.PATH)

    def finish_drawing(self) -> Optional[Shape]:
        """Close the drawing if it has enough points; otherwise keep drawing."""
        machine = self.registry.drawing
        if machine is None:
            return None
        if not machine.can_close:
            logger.warning(
                f"Cannot close {machine.mode.value} with {len(machine.vertices)} points"
            )
            return None
        return self.registry.close_drawing()

    def cancel(self) -> None:
        """Escape: abort a drag first, otherwise the drawing."""
        session = self._dragging_session()
        if session is not None:
            session.cancel_drag()
        elif self.registry.drawing is not None:
            self.registry.cancel_drawing()

    def set_edge_length(self, edge_index: int, value: Union[str, float]) -> bool:
        """Commit the text typed into an edge label.

        Non-numeric, negative or non-finite input changes nothing.
        """
        session = self._require_editing()
        try:
            length_m = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Rejected edge length {value!r}: not a number")
            return False
        if not math.isfinite(length_m) or length_m < 0:
            logger.warning(f"Rejected edge length {value!r}")
            return False
        return session.set_edge_length(edge_index, length_m)

    def undo(self) -> None:
        self.registry.undo()

    def redo(self) -> None:
        self.registry.redo()

    def delete_selected(self) -> Optional[Shape]:
        shape_id = self.registry.selected_id
        if shape_id is None:
            return None
        return self.registry.delete(shape_id)

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def markers(self) -> list[Marker]:
        """Handles to draw: drawing vertices, or vertex and midpoint handles of the edited shape."""
        machine = self.registry.drawing
        if machine is not None:
            return [
                Marker(MarkerRef(machine.session_id, MarkerRole.VERTEX, i), p)
                for i, p in enumerate(machine.vertices)
            ]
        session = self.registry.editing
        if session is None:
            return []
        result = [
            Marker(MarkerRef(session.shape_id, MarkerRole.VERTEX, i), p)
            for i, p in enumerate(session.vertices)
        ]
        result.extend(
            Marker(MarkerRef(session.shape_id, MarkerRole.MIDPOINT, i), p)
            for i, p in enumerate(session.midpoints())
        )
        return result

    def _dragging_session(self) -> Optional[Union[DrawStateMachine, EditSession]]:
        for session in (self.registry.drawing, self.registry.editing):
            if session is not None and session.dragging:
                return session
        return None

    def _require_editing(self) -> EditSession:
        session = self.registry.editing
        if session is None:
            raise InvalidSessionState("no shape selected")
        return session
