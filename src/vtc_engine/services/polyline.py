"""Encoded polyline decoding and path helpers."""

from __future__ import annotations

from typing import Callable, Sequence

import polyline as polyline_codec

from ..errors import InvalidInputError
from ..models.domain import GeoPoint
from .geospatial import haversine_km

DEFAULT_SIMPLIFY_DISTANCE_KM = 0.05
CROSSING_PRECISION_KM = 0.01
CROSSING_MAX_ITERATIONS = 20


def decode_polyline(polyline: str) -> list[GeoPoint]:
    """Decode a Google-encoded polyline (1e5 precision) into points.

    OSRM and Google Directions both return route geometry in this format.
    """
    if not polyline:
        return []

    # the codec does not reject characters outside the encoding alphabet
    for index, char in enumerate(polyline):
        if not 63 <= ord(char) <= 126:
            raise InvalidInputError(f"Invalid polyline character at index {index}")

    try:
        coords = polyline_codec.decode(polyline, 5)
    except IndexError as e:
        raise InvalidInputError(f"Truncated polyline: {polyline!r}") from e
    return [GeoPoint(lat, lng) for lat, lng in coords]


def segment_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    return haversine_km(p1.lat, p1.lng, p2.lat, p2.lng)


def polyline_distance_km(points: Sequence[GeoPoint]) -> float:
    return sum(segment_distance(a, b) for a, b in zip(points, points[1:]))


def simplify_polyline(
    points: Sequence[GeoPoint],
    min_distance_km: float = DEFAULT_SIMPLIFY_DISTANCE_KM,
) -> list[GeoPoint]:
    """Drop intermediate points closer than ``min_distance_km`` to the last kept point."""
    if len(points) <= 2:
        return list(points)

    simplified = [points[0]]
    last = points[0]
    for point in points[1:-1]:
        if segment_distance(last, point) >= min_distance_km:
            simplified.append(point)
            last = point
    simplified.append(points[-1])
    return simplified


def _interpolate(p1: GeoPoint, p2: GeoPoint, t: float) -> GeoPoint:
    return GeoPoint(p1.lat + (p2.lat - p1.lat) * t, p1.lng + (p2.lng - p1.lng) * t)


def find_zone_crossing_point(
    p1: GeoPoint,
    p2: GeoPoint,
    is_in_first_zone: Callable[[GeoPoint], bool],
    precision_km: float = CROSSING_PRECISION_KM,
) -> GeoPoint:
    """Binary-search the point between p1 and p2 where membership of p1's zone ends."""
    distance = segment_distance(p1, p2)
    if distance < precision_km:
        return _interpolate(p1, p2, 0.5)

    low, high = 0.0, 1.0
    iterations = 0
    while high - low > precision_km / distance and iterations < CROSSING_MAX_ITERATIONS:
        mid = (low + high) / 2
        if is_in_first_zone(_interpolate(p1, p2, mid)):
            low = mid
        else:
            high = mid
        iterations += 1

    return _interpolate(p1, p2, (low + high) / 2)
