"""Unit conversion and display text for distances and areas."""

from __future__ import annotations

import math
from dataclasses import dataclass

SQ_FEET_PER_SQ_METER = 10.7639
SQ_YARDS_PER_SQ_METER = 1.19599
SQ_METERS_PER_HECTARE = 10_000.0
METERS_PER_KILOMETER = 1000.0


def format_distance(meters: float, km_threshold: float = METERS_PER_KILOMETER) -> str:
    """Edge label text: whole meters below the threshold, else km to 2 places.

    Halves round up, as map UIs do, rather than to even.
    """
    if meters < km_threshold:
        return f"{math.floor(meters + 0.5)}m"
    return f"{meters / METERS_PER_KILOMETER:.2f}km"


def square_meters_to_hectares(area_m2: float) -> float:
    return area_m2 / SQ_METERS_PER_HECTARE


def format_hectares(area_m2: float) -> str:
    """Live area banner text, always hectares to 2 places."""
    return f"{square_meters_to_hectares(abs(area_m2)):.2f} ha"


@dataclass(frozen=True)
class AreaBreakdown:
    """An area expressed in the four unit systems shown on field details."""

    square_meters: float
    square_feet: float
    square_yards: float
    hectares: float

    @classmethod
    def from_square_meters(cls, area_m2: float) -> AreaBreakdown:
        area_m2 = abs(area_m2)
        return cls(
            square_meters=area_m2,
            square_feet=area_m2 * SQ_FEET_PER_SQ_METER,
            square_yards=area_m2 * SQ_YARDS_PER_SQ_METER,
            hectares=area_m2 / SQ_METERS_PER_HECTARE,
        )

    def to_text(self) -> dict[str, str]:
        """Printable values: hectares to 4 places, the rest to 2."""
        return {
            "square_meters": f"{self.square_meters:.2f} m²",
            "square_feet": f"{self.square_feet:.2f} ft²",
            "square_yards": f"{self.square_yards:.2f} yd²",
            "hectares": f"{self.hectares:.4f} ha",
        }
