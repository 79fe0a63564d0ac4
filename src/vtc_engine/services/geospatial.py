"""Geospatial helper functions and pricing-zone matching."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from shapely.geometry import Point, Polygon

from ..models.domain import GeoPoint, ZoneData

EARTH_RADIUS_KM = 6371.0
POINT_ZONE_RADIUS_KM = 0.1

ZONE_CONFLICT_STRATEGIES = ("PRIORITY", "MOST_EXPENSIVE", "CLOSEST", "COMBINED")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def is_point_in_radius(point: GeoPoint, center: GeoPoint, radius_km: float) -> bool:
    return distance_between(point, center) <= radius_km


def point_in_polygon(lat: float, lon: float, ring: Sequence[Sequence[float]]) -> bool:
    """Return True if the point is inside the polygon ring given as GeoJSON ``[lng, lat]`` pairs."""

    if len(ring) < 3:
        return False
    polygon = Polygon([(float(lng), float(lat_)) for lng, lat_, *_ in ring])
    return polygon.contains(Point(lon, lat))


def _outer_ring(zone: ZoneData) -> Sequence[Sequence[float]] | None:
    geometry = zone.geometry or {}
    coordinates = geometry.get("coordinates") or []
    if not coordinates or not coordinates[0]:
        return None
    return coordinates[0]


def is_point_in_zone(point: GeoPoint, zone: ZoneData) -> bool:
    if not zone.is_active:
        return False

    match zone.zone_type:
        case "POLYGON":
            ring = _outer_ring(zone)
            if ring is None:
                return False
            return point_in_polygon(point.lat, point.lng, ring)
        case "RADIUS":
            if zone.center_latitude is None or zone.center_longitude is None or zone.radius_km is None:
                return False
            return is_point_in_radius(
                point, GeoPoint(zone.center_latitude, zone.center_longitude), zone.radius_km
            )
        case "POINT":
            if zone.center_latitude is None or zone.center_longitude is None:
                return False
            return is_point_in_radius(
                point, GeoPoint(zone.center_latitude, zone.center_longitude), POINT_ZONE_RADIUS_KM
            )
        case _:
            return False


def _specificity_key(zone: ZoneData) -> tuple[int, float]:
    # POINT first, then RADIUS (smallest first), then POLYGON
    if zone.zone_type == "POINT":
        return (0, 0.0)
    if zone.zone_type == "RADIUS":
        return (1, zone.radius_km or 0.0)
    return (2, 0.0)


def sort_by_specificity(zones: Sequence[ZoneData]) -> list[ZoneData]:
    return sorted(zones, key=_specificity_key)


def find_zones_for_point(point: GeoPoint, zones: Sequence[ZoneData]) -> list[ZoneData]:
    """Return every zone containing the point, most specific first."""

    return sort_by_specificity([zone for zone in zones if is_point_in_zone(point, zone)])


def get_zone_center(zone: ZoneData) -> GeoPoint | None:
    if zone.center_latitude is not None and zone.center_longitude is not None:
        return GeoPoint(zone.center_latitude, zone.center_longitude)

    if zone.zone_type == "POLYGON":
        ring = _outer_ring(zone)
        if ring is None or len(ring) < 3:
            return None
        # ring is closed, the last vertex repeats the first
        vertices = ring[:-1]
        lat = sum(vertex[1] for vertex in vertices) / len(vertices)
        lng = sum(vertex[0] for vertex in vertices) / len(vertices)
        return GeoPoint(lat, lng)

    return None


def resolve_zone_conflict(
    point: GeoPoint,
    zones: Sequence[ZoneData],
    strategy: Optional[str],
) -> ZoneData | None:
    """Pick one zone among overlapping matches according to the conflict strategy.

    ``zones`` is expected in specificity order (see ``find_zones_for_point``);
    sorting is stable so ties keep that order.
    """

    if not zones:
        return None
    if len(zones) == 1:
        return zones[0]

    match strategy:
        case "PRIORITY":
            return sorted(zones, key=lambda z: -(z.priority or 0))[0]
        case "MOST_EXPENSIVE":
            return sorted(zones, key=lambda z: -(z.price_multiplier or 1.0))[0]
        case "CLOSEST":
            def _distance(zone: ZoneData) -> float:
                center = get_zone_center(zone)
                return distance_between(point, center) if center else math.inf

            return sorted(zones, key=_distance)[0]
        case "COMBINED":
            max_priority = max(z.priority or 0 for z in zones)
            top = [z for z in zones if (z.priority or 0) == max_priority]
            return sorted(top, key=lambda z: -(z.price_multiplier or 1.0))[0]
        case _:
            return sort_by_specificity(zones)[0]


def find_zone_for_point(
    point: GeoPoint,
    zones: Sequence[ZoneData],
    strategy: Optional[str] = "PRIORITY",
) -> ZoneData | None:
    return resolve_zone_conflict(point, find_zones_for_point(point, zones), strategy)
