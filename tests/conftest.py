"""Shared fixtures: small outlines near the equator where 1e-3 deg is ~111 m."""

from __future__ import annotations

import pytest

from fieldsketch.geometry.point import GeoPoint

# Degrees of arc spanning 100 m on the default earth radius
D100 = 100 / 111_319.490793


def make_square(lat: float = 0.0, lng: float = 0.0, side_deg: float = D100) -> tuple[GeoPoint, ...]:
    """Counter-clockwise square: east along the bottom edge, then north."""
    return (
        GeoPoint(lat, lng),
        GeoPoint(lat, lng + side_deg),
        GeoPoint(lat + side_deg, lng + side_deg),
        GeoPoint(lat + side_deg, lng),
    )


@pytest.fixture
def square():
    return make_square()


@pytest.fixture
def triangle():
    return (GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.002), GeoPoint(0.0015, 0.001))


@pytest.fixture
def square_at():
    return make_square
