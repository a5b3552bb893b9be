"""Spherical-earth geometry for field outlines and distance paths.

Pure functions over GeoPoint sequences. All distances are meters on a
sphere of radius EARTH_RADIUS_M. Every function is O(n) in the vertex count.

Conventions:
    - Closed rings never repeat the first vertex at the end.
    - Signed area is positive for counter-clockwise rings (east, then north).
    - Degenerate input (too few vertices, zero-length edges) yields 0,
      never an exception.
"""

from __future__ import annotations

import math
from typing import Sequence

from loguru import logger

from fieldsketch.geometry.point import GeoPoint

EARTH_RADIUS_M = 6_378_137.0


def distance(a: GeoPoint, b: GeoPoint, radius: float = EARTH_RADIUS_M) -> float:
    """Great-circle distance in meters (haversine)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = phi2 - phi1
    dlmb = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Clamp against rounding just above 1.0 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * radius * math.asin(math.sqrt(h))


def _polar_triangle_area(tan1: float, lng1: float, tan2: float, lng2: float) -> float:
    """Signed area of the triangle (pole, p1, p2) on the unit sphere."""
    dlng = lng1 - lng2
    t = tan1 * tan2
    return 2 * math.atan2(t * math.sin(dlng), 1 + t * math.cos(dlng))


def signed_area(vertices: Sequence[GeoPoint], radius: float = EARTH_RADIUS_M) -> float:
    """Signed spherical area of a closed ring in square meters.

    The ring is implicitly closed (last vertex connects back to the
    first). Fewer than 3 vertices return 0. The sign follows winding
    order; callers presenting an area to a user take abs() themselves.
    """
    n = len(vertices)
    if n < 3:
        return 0.0
    total = 0.0
    prev = vertices[-1]
    prev_tan = math.tan((math.pi / 2 - math.radians(prev.lat)) / 2)
    prev_lng = math.radians(prev.lng)
    for point in vertices:
        tan_lat = math.tan((math.pi / 2 - math.radians(point.lat)) / 2)
        lng = math.radians(point.lng)
        total += _polar_triangle_area(tan_lat, lng, prev_tan, prev_lng)
        prev_tan = tan_lat
        prev_lng = lng
    return total * radius * radius


# Signed area of a closed ring, under its polygon name
polygon_area = signed_area


def edges(count: int, closed: bool) -> list[tuple[int, int]]:
    """Index pairs for the edges of a shape with ``count`` vertices.

    Closed shapes include the wrap edge (n-1, 0); open paths omit it.
    """
    if count < 2:
        return []
    pairs = [(i, i + 1) for i in range(count - 1)]
    if closed and count > 2:
        pairs.append((count - 1, 0))
    return pairs


def edge_lengths(
    vertices: Sequence[GeoPoint], closed: bool, radius: float = EARTH_RADIUS_M
) -> list[float]:
    """Length in meters of every edge, in edge order."""
    return [distance(vertices[i], vertices[j], radius) for i, j in edges(len(vertices), closed)]


def perimeter(
    vertices: Sequence[GeoPoint], closed: bool, radius: float = EARTH_RADIUS_M
) -> float:
    """Sum of edge lengths, including the wrap edge iff ``closed``."""
    return sum(edge_lengths(vertices, closed, radius))


def midpoint(a: GeoPoint, b: GeoPoint) -> GeoPoint:
    """Plain lat/lng average. Not the geodesic midpoint; fine at plot scale."""
    return GeoPoint((a.lat + b.lat) / 2, (a.lng + b.lng) / 2)


def centroid(vertices: Sequence[GeoPoint]) -> GeoPoint | None:
    """Vertex average, used to anchor the field name label."""
    if not vertices:
        return None
    n = len(vertices)
    return GeoPoint(
        sum(p.lat for p in vertices) / n,
        sum(p.lng for p in vertices) / n,
    )


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Initial great-circle bearing from a to b in degrees (0 = north, clockwise)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dlmb = math.radians(b.lng - a.lng)
    y = math.sin(dlmb) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlmb)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def extrapolate_to_distance(
    anchor: GeoPoint,
    target: GeoPoint,
    new_distance: float,
    radius: float = EARTH_RADIUS_M,
) -> GeoPoint:
    """Point on the ray anchor->target at ``new_distance`` meters from anchor.

    Scales the raw lat/lng offset linearly by new/current distance. This
    is not a geodesic projection.

    A zero-length edge cannot define a direction, so the anchor comes
    back unchanged. A negative or non-finite length is rejected by
    returning the target unchanged.
    """
    if not math.isfinite(new_distance) or new_distance < 0:
        logger.warning(f"Ignoring invalid edge length {new_distance!r}")
        return target
    current = distance(anchor, target, radius)
    if current == 0:
        logger.debug("Degenerate edge: anchor and target coincide, no-op")
        return anchor
    ratio = new_distance / current
    return GeoPoint(
        anchor.lat + (target.lat - anchor.lat) * ratio,
        anchor.lng + (target.lng - anchor.lng) * ratio,
    )


def is_closed_ring(points: Sequence[GeoPoint]) -> bool:
    """True when a path returns to its start (first == last, at least 4 points)."""
    return len(points) >= 4 and points[0] == points[-1]
