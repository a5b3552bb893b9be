"""FieldPolygon, DistancePath and FieldStyle models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from fieldsketch.config import settings
from fieldsketch.editing.metrics import ShapeMetrics
from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint
from fieldsketch.geometry.units import AreaBreakdown


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_field_id() -> str:
    return f"field_{uuid.uuid4().hex[:8]}"


def new_path_id() -> str:
    return f"path_{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class FieldStyle:
    """Outline and fill rendering of a field."""

    stroke_color: str = "#00C853"
    fill_color: str = "#00C853"
    stroke_weight: float = 2.0
    fill_opacity: float = 0.3

    def __post_init__(self) -> None:
        # Opacity outside [0, 1] and hairline strokes are clamped, not rejected
        opacity = min(1.0, max(0.0, float(self.fill_opacity)))
        if opacity != self.fill_opacity:
            logger.warning(f"fill_opacity {self.fill_opacity} clamped to {opacity}")
        weight = max(1.0, float(self.stroke_weight))
        if weight != self.stroke_weight:
            logger.warning(f"stroke_weight {self.stroke_weight} raised to {weight}")
        object.__setattr__(self, "fill_opacity", opacity)
        object.__setattr__(self, "stroke_weight", weight)

    @classmethod
    def default(cls) -> FieldStyle:
        return cls(
            stroke_color=settings.default_stroke_color,
            fill_color=settings.default_fill_color,
            stroke_weight=settings.default_stroke_weight,
            fill_opacity=settings.default_fill_opacity,
        )

    def with_changes(self, **changes) -> FieldStyle:
        unknown = set(changes) - {"stroke_color", "fill_color", "stroke_weight", "fill_opacity"}
        if unknown:
            raise ValueError(f"Unknown style fields: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "stroke_color": self.stroke_color,
            "fill_color": self.fill_color,
            "stroke_weight": self.stroke_weight,
            "fill_opacity": self.fill_opacity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FieldStyle:
        base = cls.default()
        return cls(
            stroke_color=data.get("stroke_color", base.stroke_color),
            fill_color=data.get("fill_color", base.fill_color),
            stroke_weight=data.get("stroke_weight", base.stroke_weight),
            fill_opacity=data.get("fill_opacity", base.fill_opacity),
        )


@dataclass
class FieldPolygon:
    """A finished, closed field outline.

    Area and perimeter are always derived from ``vertices``; they are
    written out for readers but never read back as the source of truth.
    """

    field_id: str
    vertices: tuple[GeoPoint, ...]
    name: str = ""
    style: FieldStyle = field(default_factory=FieldStyle.default)
    z_index: int = 0
    created_at: str = field(default_factory=_now)
    updated_at: str = ""

    closed = True

    @property
    def metrics(self) -> ShapeMetrics:
        return ShapeMetrics.compute(self.vertices, closed=True, radius=settings.earth_radius_m)

    @property
    def area_m2(self) -> float:
        return abs(spherical.signed_area(self.vertices, settings.earth_radius_m))

    @property
    def perimeter_m(self) -> float:
        return spherical.perimeter(self.vertices, True, settings.earth_radius_m)

    @property
    def edge_lengths(self) -> list[float]:
        return spherical.edge_lengths(self.vertices, True, settings.earth_radius_m)

    @property
    def centroid(self) -> Optional[GeoPoint]:
        return spherical.centroid(self.vertices)

    def area_breakdown(self) -> AreaBreakdown:
        return AreaBreakdown.from_square_meters(self.area_m2)

    def contains_point(self, point: GeoPoint) -> bool:
        """Ray-casting point-in-polygon in raw lat/lng space."""
        n = len(self.vertices)
        if n < 3:
            return False
        inside = False
        j = n - 1
        for i in range(n):
            yi, xi = self.vertices[i].lat, self.vertices[i].lng
            yj, xj = self.vertices[j].lat, self.vertices[j].lng
            if ((yi > point.lat) != (yj > point.lat)) and (
                point.lng < (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            ):
                inside = not inside
            j = i
        return inside

    def to_dict(self) -> dict:
        return {
            "field_id": self.field_id,
            "name": self.name,
            "vertices": [p.to_dict() for p in self.vertices],
            "style": self.style.to_dict(),
            "z_index": self.z_index,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "area_m2": self.area_m2,
            "perimeter_m": self.perimeter_m,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FieldPolygon:
        return cls(
            field_id=data["field_id"],
            vertices=tuple(GeoPoint.from_dict(p) for p in data["vertices"]),
            name=data.get("name", ""),
            style=FieldStyle.from_dict(data.get("style", {})),
            z_index=data.get("z_index", 0),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class DistancePath:
    """A distance measurement: an open polyline, or a loop if it returned to its start."""

    path_id: str
    vertices: tuple[GeoPoint, ...]
    closed: bool = False
    name: str = ""
    created_at: str = field(default_factory=_now)

    @property
    def metrics(self) -> ShapeMetrics:
        return ShapeMetrics.compute(self.vertices, closed=self.closed, radius=settings.earth_radius_m)

    @property
    def total_distance_m(self) -> float:
        return spherical.perimeter(self.vertices, self.closed, settings.earth_radius_m)

    @property
    def segment_lengths(self) -> list[float]:
        return spherical.edge_lengths(self.vertices, self.closed, settings.earth_radius_m)

    def to_dict(self) -> dict:
        return {
            "path_id": self.path_id,
            "name": self.name,
            "vertices": [p.to_dict() for p in self.vertices],
            "closed": self.closed,
            "created_at": self.created_at,
            "total_distance_m": self.total_distance_m,
        }
