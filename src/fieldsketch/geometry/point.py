"""GeoPoint and ScreenPoint value types.

GeoPoint stores (lat, lng) in degrees. GeoJSON-facing helpers use the
[lng, lat] order, matching the map layer convention.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    """An immutable geographic coordinate in degrees."""

    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict) -> GeoPoint:
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))

    def as_lnglat(self) -> list[float]:
        """GeoJSON coordinate order: [lng, lat]."""
        return [self.lng, self.lat]

    @classmethod
    def from_lnglat(cls, coords: list[float] | tuple[float, float]) -> GeoPoint:
        return cls(lat=float(coords[1]), lng=float(coords[0]))


@dataclass(frozen=True)
class ScreenPoint:
    """A pixel position on the host map surface."""

    x: float
    y: float
