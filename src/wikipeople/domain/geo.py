"""Spherical distance and GeoJSON polygon containment."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

EARTH_RADIUS_KM = 6371.0088

type Ring = Sequence[Sequence[float]]


class InvalidGeometryError(ValueError):
    """Raised when a GeoJSON object is not a usable polygon."""


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def polygon_rings(geojson: Mapping[str, Any]) -> list[Ring]:
    """Validate a GeoJSON ``Polygon`` and return its rings (outer ring first)."""

    if geojson.get("type") != "Polygon":
        raise InvalidGeometryError(f"Expected a GeoJSON Polygon, got {geojson.get('type')!r}")
    rings = geojson.get("coordinates")
    if not isinstance(rings, list) or not rings:
        raise InvalidGeometryError("Polygon has no coordinates")
    for ring in rings:
        if not isinstance(ring, list) or len(ring) < 4:
            raise InvalidGeometryError("Polygon rings need at least four positions")
        for position in ring:
            if not isinstance(position, (list, tuple)) or len(position) < 2:
                raise InvalidGeometryError(f"Invalid position {position!r}")
    return rings


def _in_ring(lng: float, lat: float, ring: Ring) -> bool:
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat) and lng < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def point_in_polygon(lat: float, lng: float, geojson: Mapping[str, Any]) -> bool:
    """Even-odd containment; points inside a hole are outside the polygon."""

    outer, *holes = polygon_rings(geojson)
    if not _in_ring(lng, lat, outer):
        return False
    return not any(_in_ring(lng, lat, hole) for hole in holes)
