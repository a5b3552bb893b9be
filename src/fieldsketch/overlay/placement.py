"""Geo-space anchor placement for floating labels."""

from __future__ import annotations

import math
from typing import Optional

from fieldsketch.config import settings
from fieldsketch.geometry import spherical
from fieldsketch.geometry.point import GeoPoint


def segment_offset_deg(length_m: float, zoom: Optional[float] = None) -> float:
    """How far (degrees) a segment label sits from its segment.

    Long segments get more room, short ones less; the offset grows as
    the map zooms out so labels keep a similar on-screen gap.
    """
    if length_m > 1000:
        offset = settings.label_offset_long_deg
    elif length_m < 100:
        offset = settings.label_offset_short_deg
    else:
        offset = settings.label_offset_deg
    if zoom is not None:
        offset *= settings.label_zoom_factor ** (settings.label_reference_zoom - zoom)
    return offset


def segment_label_anchor(
    a: GeoPoint,
    b: GeoPoint,
    zoom: Optional[float] = None,
    radius: float = spherical.EARTH_RADIUS_M,
) -> GeoPoint:
    """Midpoint of a->b pushed 90 degrees left of the direction of travel."""
    mid = spherical.midpoint(a, b)
    if a == b:
        return mid
    angle = math.atan2(b.lat - a.lat, b.lng - a.lng)
    perp = angle + math.pi / 2
    offset = segment_offset_deg(spherical.distance(a, b, radius), zoom)
    return GeoPoint(mid.lat + math.sin(perp) * offset, mid.lng + math.cos(perp) * offset)
