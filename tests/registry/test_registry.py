"""Unit tests for PolygonRegistry — sessions, selection, z-order and events."""

from __future__ import annotations

import pytest

from fieldsketch.comms.event_bus import EventBus, drain
from fieldsketch.editing.draw import DrawMode
from fieldsketch.editing.session import SessionKind
from fieldsketch.errors import (
    ConcurrentSessionConflict,
    InsufficientVertices,
    InvalidSessionState,
    UnknownShape,
)
from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint, ScreenPoint
from fieldsketch.overlay.labels import LabelKind, OverlayLabelManager
from fieldsketch.registry.models import DistancePath, FieldPolygon
from fieldsketch.registry.registry import PolygonRegistry


pytestmark = pytest.mark.unit


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    return bus.subscribe()


@pytest.fixture
def labels():
    return OverlayLabelManager(lambda p: ScreenPoint(p.lng, p.lat))


@pytest.fixture
def registry(bus, labels):
    return PolygonRegistry(event_bus=bus, labels=labels)


def draw_field(registry, vertices):
    registry.start_drawing(DrawMode.FIELD)
    for p in vertices:
        registry.add_point(p)
    return registry.close_drawing()


def types(messages):
    return [m["type"] for m in messages]


class TestDrawing:
    def test_close_registers_field(self, registry, events, square):
        field = draw_field(registry, square)
        assert isinstance(field, FieldPolygon)
        assert field.vertices == square
        assert field.name == "Field 1"
        assert field.z_index == 1
        assert registry.fields() == [field]
        assert registry.session.kind is SessionKind.IDLE

        messages = drain(events)
        assert "field_created" in types(messages)
        created = next(m for m in messages if m["type"] == "field_created")
        assert created["data"]["field_id"] == field.field_id
        assert created["data"]["area_m2"] == pytest.approx(10_000, rel=1e-3)

    def test_live_metrics_while_drawing(self, registry, events, square):
        registry.start_drawing()
        for p in square[:3]:
            registry.add_point(p)
        metrics = [m for m in drain(events) if m["type"] == "metrics_updated"]
        assert [m["data"]["vertex_count"] for m in metrics] == [1, 2, 3]
        assert metrics[-1]["data"]["area_m2"] > 0

    def test_close_with_too_few_points(self, registry, square):
        registry.start_drawing()
        registry.add_point(square[0])
        registry.add_point(square[1])
        with pytest.raises(InsufficientVertices):
            registry.close_drawing()
        assert registry.drawing is not None
        assert registry.fields() == []

    def test_cancel_drawing(self, registry, labels, square):
        machine = registry.start_drawing()
        registry.add_point(square[0])
        registry.cancel_drawing()
        assert registry.drawing is None
        assert machine.session_id not in labels.owners
        assert registry.fields() == []

    def test_path_drawing(self, registry, events):
        registry.start_drawing(DrawMode.PATH)
        registry.add_point(GeoPoint(0, 0))
        registry.add_point(GeoPoint(0, 0.001))
        path = registry.close_drawing()
        assert isinstance(path, DistancePath)
        assert path.closed is False
        assert path.total_distance_m == pytest.approx(111.32, rel=1e-3)
        assert registry.paths() == [path]
        assert "path_created" in types(drain(events))

    def test_undo_redo_through_registry(self, registry, square):
        registry.start_drawing()
        registry.add_point(square[0])
        registry.add_point(square[1])
        assert registry.can_undo
        registry.undo()
        assert registry.drawing.vertices == (square[0],)
        assert registry.can_redo
        registry.redo()
        assert registry.drawing.vertices == square[:2]

    def test_undo_when_idle(self, registry):
        with pytest.raises(InvalidSessionState):
            registry.undo()
        with pytest.raises(InvalidSessionState):
            registry.add_point(GeoPoint(0, 0))


class TestSessionConflicts:
    def test_new_drawing_finalizes_complete_one(self, registry, events, square):
        first = registry.start_drawing()
        for p in square:
            registry.add_point(p)
        drain(events)

        registry.start_drawing()
        assert len(registry.fields()) == 1
        messages = drain(events)
        conflict = next(m for m in messages if m["type"] == "session_conflict")
        assert conflict["data"]["resolution"] == "finalized"
        assert conflict["data"]["session_id"] == first.session_id
        assert conflict["data"]["shape_id"] == registry.fields()[0].field_id

        with pytest.raises(ConcurrentSessionConflict):
            first.add_point(GeoPoint(1, 1))

    def test_new_drawing_discards_incomplete_one(self, registry, events, labels, square):
        first = registry.start_drawing()
        registry.add_point(square[0])
        registry.add_point(square[1])
        assert first.session_id in labels.owners
        registry.start_drawing()
        assert registry.fields() == []
        assert first.session_id not in labels.owners
        conflict = next(m for m in drain(events) if m["type"] == "session_conflict")
        assert conflict["data"]["resolution"] == "discarded"
        assert conflict["data"]["shape_id"] is None
        assert first.superseded

    def test_new_drawing_finalizes_one_mid_drag(self, registry, square):
        first = registry.start_drawing()
        for p in square:
            registry.add_point(p)
        first.begin_vertex_drag(3)
        first.drag_to(GeoPoint(5, 5))
        registry.start_drawing()
        assert registry.fields()[0].vertices == square

    def test_selecting_while_drawing(self, registry, square, square_at):
        field = draw_field(registry, square)
        registry.start_drawing()
        registry.add_point(GeoPoint(5, 5))
        session = registry.select(field.field_id)
        assert registry.drawing is None
        assert registry.editing is session
        assert len(registry.fields()) == 1

    def test_selecting_other_field_commits_edit(self, registry, events, square, square_at):
        a = draw_field(registry, square)
        b = draw_field(registry, square_at(lat=0.01))
        session = registry.select(a.field_id)
        session.set_edge_length(0, 150.0)
        drain(events)

        registry.select(b.field_id)
        messages = drain(events)
        assert "field_updated" in types(messages)
        conflict = next(m for m in messages if m["type"] == "session_conflict")
        assert conflict["data"]["resolution"] == "committed"
        assert a.edge_lengths[0] == pytest.approx(150.0, rel=1e-6)
        assert registry.selected_id == b.field_id
        with pytest.raises(ConcurrentSessionConflict):
            session.undo()


class TestSelectionAndEditing:
    def test_select_and_deselect(self, registry, events, square):
        field = draw_field(registry, square)
        drain(events)
        session = registry.select(field.field_id)
        assert registry.selected_id == field.field_id
        assert session.shape_id == field.field_id
        assert registry.select(field.field_id) is session

        registry.deselect()
        assert registry.selected_id is None
        assert registry.editing is None
        messages = drain(events)
        assert types(messages).count("selection_changed") == 2
        assert "field_updated" not in types(messages)

    def test_toggle_selection(self, registry, square):
        field = draw_field(registry, square)
        assert registry.toggle_selection(field.field_id) is not None
        assert registry.toggle_selection(field.field_id) is None
        assert registry.selected_id is None

    def test_edit_writes_back_live(self, registry, square):
        field = draw_field(registry, square)
        session = registry.select(field.field_id)
        session.begin_vertex_drag(2)
        session.drag_to(GeoPoint(0.002, 0.002))
        assert field.vertices[2] == GeoPoint(0.002, 0.002)
        session.end_drag()
        registry.deselect()
        assert field.vertices[2] == GeoPoint(0.002, 0.002)
        assert field.updated_at

    def test_edge_labels_only_while_selected(self, registry, labels, square):
        field = draw_field(registry, square)
        assert labels.label(field.field_id, LabelKind.EDGE_LENGTH, 0) is None
        registry.select(field.field_id)
        assert labels.label(field.field_id, LabelKind.EDGE_LENGTH, 0) is not None
        registry.deselect()
        assert labels.label(field.field_id, LabelKind.EDGE_LENGTH, 0) is None
        assert labels.label(field.field_id, LabelKind.FIELD_NAME) is not None

    def test_edge_label_tracks_typed_length(self, registry, labels, square):
        field = draw_field(registry, square)
        registry.select(field.field_id)
        registry.editing.set_edge_length(1, 250.0)
        assert labels.label(field.field_id, LabelKind.EDGE_LENGTH, 1).text == "250m"

    def test_undo_edit_through_registry(self, registry, square):
        field = draw_field(registry, square)
        registry.select(field.field_id)
        registry.editing.set_edge_length(0, 300.0)
        registry.undo()
        assert field.vertices == square

    def test_stale_edit_session_after_deselect(self, registry, square):
        field = draw_field(registry, square)
        session = registry.select(field.field_id)
        registry.deselect()
        with pytest.raises(ConcurrentSessionConflict):
            session.begin_vertex_drag(0)


class TestZOrder:
    def test_newer_fields_on_top(self, registry, square, square_at):
        a = draw_field(registry, square)
        b = draw_field(registry, square_at(lat=0.0005))
        assert registry.render_order() == [a, b]

    def test_selected_field_drawn_last(self, registry, square, square_at):
        a = draw_field(registry, square)
        b = draw_field(registry, square_at(lat=0.0005))
        registry.select(a.field_id)
        assert registry.render_order() == [b, a]

    def test_field_at_prefers_topmost(self, registry, square, square_at):
        a = draw_field(registry, square)
        b = draw_field(registry, square_at(lat=0.0005))
        overlap = GeoPoint(0.0007, 0.0004)
        assert registry.field_at(overlap) is b
        registry.select(a.field_id)
        assert registry.field_at(overlap) is a
        assert registry.field_at(GeoPoint(1, 1)) is None


class TestCrud:
    def test_delete_selected_field(self, registry, events, labels, square):
        field = draw_field(registry, square)
        session = registry.select(field.field_id)
        drain(events)
        registry.delete(field.field_id)
        assert registry.fields() == []
        assert registry.editing is None
        assert session.superseded
        assert labels.labels_for(field.field_id) == []
        messages = drain(events)
        deleted = next(m for m in messages if m["type"] == "field_deleted")
        assert deleted["data"] == {"field_id": field.field_id}
        assert "field_updated" not in types(messages)

    def test_unknown_shape(self, registry):
        with pytest.raises(UnknownShape):
            registry.get("field_missing")
        with pytest.raises(KeyError):
            registry.delete("field_missing")

    def test_set_style_and_rename(self, registry, events, square):
        field = draw_field(registry, square)
        drain(events)
        registry.set_style(field.field_id, fill_color="#FF0000", fill_opacity=0.5)
        registry.rename(field.field_id, "Orchard")
        assert field.style.fill_color == "#FF0000"
        assert field.style.fill_opacity == 0.5
        assert field.name == "Orchard"
        assert types(drain(events)) == ["field_updated", "field_updated"]

    def test_load_and_total_area(self, registry, events, square, square_at):
        fields = [
            FieldPolygon(field_id="field_a", vertices=square, z_index=4),
            FieldPolygon(field_id="field_b", vertices=square_at(lat=0.01), z_index=7),
        ]
        assert registry.load(fields) == 2
        assert registry.total_area_m2() == pytest.approx(20_000, rel=1e-3)
        assert "fields_loaded" in types(drain(events))
        new = draw_field(registry, square_at(lat=0.02))
        assert new.z_index == 8

    def test_listener_errors_are_contained(self, registry, square):
        seen = []

        def broken(event_type, data):
            raise RuntimeError("boom")

        registry.add_listener(broken)
        remove = registry.add_listener(lambda t, d: seen.append(t))
        draw_field(registry, square)
        assert "field_created" in seen
        remove()
        seen.clear()
        draw_field(registry, square)
        assert seen == []


@pytest.mark.integration
class TestSquareScenario:
    def test_draw_square_then_double_first_edge(self, registry):
        corners = [GeoPoint(0, 0), GeoPoint(0, 0.001), GeoPoint(0.001, 0.001), GeoPoint(0.001, 0)]
        field = draw_field(registry, corners)
        assert len(field.vertices) == 4
        assert field.metrics.signed_area_m2 > 0
        lengths = field.edge_lengths
        for length in lengths:
            assert length == pytest.approx(lengths[0], rel=1e-6)

        session = registry.select(field.field_id)
        session.set_edge_length(0, 2 * lengths[0])
        registry.deselect()

        v = field.vertices
        assert v[0] == corners[0]
        assert v[2] == corners[2]
        assert v[3] == corners[3]
        assert v[1] != corners[1]
        assert spherical.distance(v[0], v[1]) == pytest.approx(2 * lengths[0], rel=1e-6)


class TestGeometryConsistency:
    def test_field_area_matches_geometry(self, registry, triangle):
        field = draw_field(registry, triangle)
        assert field.area_m2 == pytest.approx(abs(spherical.signed_area(triangle)))
        assert field.perimeter_m == pytest.approx(spherical.perimeter(triangle, True))
