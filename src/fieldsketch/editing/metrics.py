"""Live shape metrics recomputed after every vertex mutation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint
from fieldsketch.geometry.units import AreaBreakdown, format_hectares


@dataclass(frozen=True)
class ShapeMetrics:
    """Area, perimeter and per-edge lengths of a field or path.

    ``signed_area_m2`` keeps the winding sign; ``area_m2`` is the
    magnitude shown to users.
    """

    vertex_count: int
    closed: bool
    signed_area_m2: float = 0.0
    perimeter_m: float = 0.0
    edge_lengths: tuple[float, ...] = field(default_factory=tuple)

    @property
    def area_m2(self) -> float:
        return abs(self.signed_area_m2)

    @property
    def area_text(self) -> str:
        return format_hectares(self.signed_area_m2)

    def area_breakdown(self) -> AreaBreakdown:
        return AreaBreakdown.from_square_meters(self.signed_area_m2)

    @classmethod
    def compute(
        cls,
        vertices: Sequence[GeoPoint],
        closed: bool,
        radius: float = spherical.EARTH_RADIUS_M,
    ) -> ShapeMetrics:
        lengths = tuple(spherical.edge_lengths(vertices, closed, radius))
        area = spherical.signed_area(vertices, radius) if closed else 0.0
        return cls(
            vertex_count=len(vertices),
            closed=closed,
            signed_area_m2=area,
            perimeter_m=sum(lengths),
            edge_lengths=lengths,
        )
