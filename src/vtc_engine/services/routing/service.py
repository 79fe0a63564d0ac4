"""Resolve trip legs through OSRM with a straight-line fallback."""

from __future__ import annotations

import logging
from typing import Optional

from ...config import settings
from ...models.domain import GeoPoint
from ..geospatial import distance_between
from ..numeric import round_to
from .models import RoutedLeg, TripLegs
from .osrm_client import OSRMClient

logger = logging.getLogger(__name__)


def estimate_routing_from_haversine(origin: GeoPoint, destination: GeoPoint) -> RoutedLeg:
    """Straight-line distance scaled by the road factor, timed at the fallback average speed."""
    distance_km = distance_between(origin, destination) * settings.road_distance_factor
    duration_minutes = distance_km / settings.fallback_average_speed_kmh * 60
    return RoutedLeg(
        distance_km=round_to(distance_km, 2),
        duration_minutes=round_to(duration_minutes, 2),
        routing_source="HAVERSINE_ESTIMATE",
    )


def _default_client() -> Optional[OSRMClient]:
    if not settings.osrm_base_url:
        return None
    return OSRMClient()


def resolve_leg(
    origin: GeoPoint,
    destination: GeoPoint,
    client: Optional[OSRMClient] = None,
) -> RoutedLeg:
    """Route a leg with OSRM when available, otherwise estimate it from the haversine distance."""
    osrm_client = client or _default_client()
    if osrm_client is None:
        logger.debug("OSRM not configured; using haversine estimate")
        return estimate_routing_from_haversine(origin, destination)

    try:
        route = osrm_client.route([(origin.lat, origin.lng), (destination.lat, destination.lng)])
    except Exception as e:
        logger.warning(f"OSRM routing failed, falling back to haversine estimate: {e}")
        return estimate_routing_from_haversine(origin, destination)

    return RoutedLeg(
        distance_km=round_to(route.distance_km, 2),
        duration_minutes=round_to(route.duration_minutes, 2),
        routing_source="ROUTED",
        polyline=route.geometry or None,
    )


def resolve_trip_legs(
    pickup: GeoPoint,
    dropoff: GeoPoint,
    vehicle_base: Optional[GeoPoint] = None,
    client: Optional[OSRMClient] = None,
) -> TripLegs:
    """Resolve pickup → dropoff, plus base → pickup and dropoff → base when a base is given.

    One OSRM client serves every leg; each leg falls back to the haversine
    estimate on its own.
    """
    osrm_client = client or _default_client()
    service = resolve_leg(pickup, dropoff, osrm_client)
    if vehicle_base is None:
        return TripLegs(service=service)
    return TripLegs(
        service=service,
        approach=resolve_leg(vehicle_base, pickup, osrm_client),
        return_=resolve_leg(dropoff, vehicle_base, osrm_client),
    )
