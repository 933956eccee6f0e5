"""Polygon area on the Earth's surface.

Coordinates are (lat, lng) pairs in decimal degrees. The area is computed on a
sphere of radius ``EARTH_RADIUS_M`` by summing, for every edge, the longitude
delta weighted by ``2 + sin(lat1) + sin(lat2)``. This tracks the surface
curvature, so it stays accurate for field-sized polygons and degrades
gracefully for very large ones.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Final, TypedDict

EARTH_RADIUS_M: Final[float] = 6378137.0
SQ_METERS_PER_KM2: Final[int] = 1_000_000
SQ_METERS_PER_HECTARE: Final[int] = 10_000

LatLng = tuple[float, float]


class FormattedArea(TypedDict):
    km2: str
    hectares: str


def polygon_area_m2(coordinates: Sequence[LatLng]) -> float:
    """Return the polygon area in square meters (0 for < 3 vertices)."""

    count = len(coordinates)
    if count < 3:
        return 0.0

    total = 0.0
    for index in range(count):
        lat1, lng1 = coordinates[index]
        lat2, lng2 = coordinates[(index + 1) % count]
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        total += math.radians(lng2 - lng1) * (
            2 + math.sin(phi1) + math.sin(phi2)
        )

    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def square_meters_to_km2(sq_meters: float) -> float:
    return sq_meters / SQ_METERS_PER_KM2


def square_meters_to_hectares(sq_meters: float) -> float:
    return sq_meters / SQ_METERS_PER_HECTARE


def format_area(coordinates: Sequence[LatLng]) -> FormattedArea:
    """Return the polygon area as display strings with two decimals."""

    area = polygon_area_m2(coordinates)
    return {
        "km2": f"{square_meters_to_km2(area):.2f}",
        "hectares": f"{square_meters_to_hectares(area):.2f}",
    }
