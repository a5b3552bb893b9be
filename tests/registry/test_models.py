"""Unit tests for FieldPolygon, DistancePath and FieldStyle."""

from __future__ import annotations

import pytest
from loguru import logger

from fieldsketch.geometry.point import GeoPoint
from fieldsketch.registry.models import DistancePath, FieldPolygon, FieldStyle


pytestmark = pytest.mark.unit


@pytest.fixture
def warnings():
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


class TestFieldStyle:
    def test_defaults_from_settings(self):
        style = FieldStyle.default()
        assert style.stroke_color == "#00C853"
        assert style.fill_opacity == 0.3

    def test_clamping(self):
        style = FieldStyle(fill_opacity=1.7, stroke_weight=0.2)
        assert style.fill_opacity == 1.0
        assert style.stroke_weight == 1.0
        assert FieldStyle(fill_opacity=-0.5).fill_opacity == 0.0

    def test_clamping_is_logged(self, warnings):
        style = FieldStyle(stroke_weight=0)
        assert style.stroke_weight == 1.0
        assert len(warnings) == 1
        assert "stroke_weight" in warnings[0]
        FieldStyle(fill_opacity=2)
        assert "fill_opacity" in warnings[1]

    def test_in_range_values_are_not_logged(self, warnings):
        FieldStyle(stroke_weight=3, fill_opacity=1)
        FieldStyle.default()
        assert warnings == []

    def test_with_changes(self):
        style = FieldStyle().with_changes(stroke_color="#000000")
        assert style.stroke_color == "#000000"
        assert style.fill_color == "#00C853"

    def test_with_unknown_change(self):
        with pytest.raises(ValueError):
            FieldStyle().with_changes(dash_pattern=[2, 2])

    def test_from_partial_dict(self):
        style = FieldStyle.from_dict({"fill_color": "#FFFFFF"})
        assert style.fill_color == "#FFFFFF"
        assert style.stroke_weight == 2.0


class TestFieldPolygon:
    def _make(self, vertices, **kwargs) -> FieldPolygon:
        return FieldPolygon(field_id="field_1", vertices=tuple(vertices), **kwargs)

    def test_derived_metrics(self, square):
        field = self._make(square)
        assert field.area_m2 == pytest.approx(10_000, rel=1e-3)
        assert field.perimeter_m == pytest.approx(400, rel=1e-4)
        assert len(field.edge_lengths) == 4
        assert field.metrics.vertex_count == 4

    def test_area_is_positive_for_clockwise_ring(self, square):
        field = self._make(reversed(square))
        assert field.area_m2 == pytest.approx(10_000, rel=1e-3)
        assert field.metrics.signed_area_m2 < 0

    def test_area_breakdown(self, square):
        breakdown = self._make(square).area_breakdown()
        assert breakdown.hectares == pytest.approx(1.0, rel=1e-3)
        assert breakdown.square_feet == pytest.approx(107_639, rel=1e-3)

    def test_contains_point(self, square):
        field = self._make(square)
        mid = square[2].lat / 2
        assert field.contains_point(GeoPoint(mid, mid)) is True
        assert field.contains_point(GeoPoint(-mid, mid)) is False
        assert field.contains_point(GeoPoint(mid, 3 * mid)) is False

    def test_contains_point_too_few_vertices(self):
        field = self._make([GeoPoint(0, 0), GeoPoint(0, 1)])
        assert field.contains_point(GeoPoint(0, 0.5)) is False

    def test_dict_round_trip(self, square):
        field = self._make(square, name="Orchard", z_index=5, style=FieldStyle(fill_color="#ABCDEF"))
        data = field.to_dict()
        assert data["area_m2"] == pytest.approx(field.area_m2)
        restored = FieldPolygon.from_dict(data)
        assert restored == field

    def test_centroid(self, square):
        c = self._make(square).centroid
        assert c.lat == pytest.approx(square[2].lat / 2)


class TestDistancePath:
    def test_open_path_total(self):
        path = DistancePath(path_id="p", vertices=(GeoPoint(0, 0), GeoPoint(0, 0.001), GeoPoint(0.001, 0.001)))
        assert len(path.segment_lengths) == 2
        assert path.total_distance_m == pytest.approx(sum(path.segment_lengths))

    def test_closed_loop_includes_return_leg(self, triangle):
        open_path = DistancePath(path_id="p", vertices=triangle)
        loop = DistancePath(path_id="q", vertices=triangle, closed=True)
        assert len(loop.segment_lengths) == 3
        assert loop.total_distance_m > open_path.total_distance_m

    def test_to_dict(self, triangle):
        data = DistancePath(path_id="p", vertices=triangle, name="Fence").to_dict()
        assert data["path_id"] == "p"
        assert data["closed"] is False
        assert len(data["vertices"]) == 3
