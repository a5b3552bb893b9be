"""Spherical geometry and unit formatting for field outlines."""

from fieldsketch.geometry.point import GeoPoint, ScreenPoint
from fieldsketch.geometry.spherical import (
    EARTH_RADIUS_M,
    bearing,
    centroid,
    distance,
    edge_lengths,
    edges,
    extrapolate_to_distance,
    is_closed_ring,
    midpoint,
    perimeter,
    polygon_area,
    signed_area,
)
from fieldsketch.geometry.units import AreaBreakdown, format_distance, format_hectares

__all__ = [
    "AreaBreakdown",
    "EARTH_RADIUS_M",
    "GeoPoint",
    "ScreenPoint",
    "bearing",
    "centroid",
    "distance",
    "edge_lengths",
    "edges",
    "extrapolate_to_distance",
    "format_distance",
    "format_hectares",
    "is_closed_ring",
    "midpoint",
    "perimeter",
    "polygon_area",
    "signed_area",
]
