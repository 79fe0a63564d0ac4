"""Pricing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.encoders import jsonable_encoder

from ...schemas.pricing import QuoteRequest, SegmentRouteRequest
from ...services.geospatial import find_zone_for_point
from ...services.pricing.engine import calculate_price
from ...services.routing.service import resolve_trip_legs
from ...services.zoning.segmentation import create_fallback_segmentation, segment_route_by_zones

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", status_code=status.HTTP_200_OK)
def quote(payload: QuoteRequest) -> dict:
    """Price a trip and return the price with its full explanation.

    A trip sent with pickup and dropoff but no distance is routed first.
    """
    trip = payload.trip
    try:
        legs = None
        if trip.needs_routing:
            legs = resolve_trip_legs(
                trip.pickup.to_domain(),
                trip.dropoff.to_domain(),
                trip.vehicle_base.to_domain() if trip.vehicle_base else None,
            )
        result = calculate_price(trip.to_domain(legs), payload.to_context())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error pricing trip: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to price trip: {str(exc)}",
        ) from exc
    return jsonable_encoder(result)


@router.post("/segment-route", status_code=status.HTTP_200_OK)
def segment_route(payload: SegmentRouteRequest) -> dict:
    """Split a route across pricing zones.

    With a polyline the route is walked point by point; without one, the
    pickup and dropoff zones share the distance.
    """
    zones = [zone.to_domain() for zone in payload.zones]
    try:
        if payload.polyline:
            result = segment_route_by_zones(
                payload.polyline, zones, payload.duration_minutes, payload.conflict_strategy
            )
        else:
            pickup_zone = (
                find_zone_for_point(payload.pickup.to_domain(), zones, payload.conflict_strategy)
                if payload.pickup
                else None
            )
            dropoff_zone = (
                find_zone_for_point(payload.dropoff.to_domain(), zones, payload.conflict_strategy)
                if payload.dropoff
                else None
            )
            result = create_fallback_segmentation(
                pickup_zone, dropoff_zone, payload.distance_km, payload.duration_minutes
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error segmenting route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to segment route: {str(exc)}",
        ) from exc
    return jsonable_encoder(result)
