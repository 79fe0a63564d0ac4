"""Split a route polyline into per-zone segments and derive its weighted multiplier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...models.domain import AppliedRule, GeoPoint, ZoneData
from ..geospatial import find_zone_for_point
from ..numeric import round_to
from ..polyline import decode_polyline, find_zone_crossing_point, segment_distance, simplify_polyline
from .models import RouteSegmentationResult, ZoneSegment

logger = logging.getLogger(__name__)

OUTSIDE_ZONE = ZoneData(
    id="OUTSIDE",
    code="OUTSIDE_ZONES",
    name="Outside Defined Zones",
    zone_type="POLYGON",
    price_multiplier=1.0,
    priority=0,
)

_UNKNOWN_POINT = GeoPoint(0.0, 0.0)


@dataclass(slots=True)
class _Transition:
    zone: Optional[ZoneData]
    entry_point: GeoPoint
    distance_km: float


def _zone_id(zone: Optional[ZoneData]) -> str:
    return zone.id if zone is not None else OUTSIDE_ZONE.id


def _zone_surcharge(zone: ZoneData) -> float:
    return (zone.fixed_parking_surcharge or 0.0) + (zone.fixed_access_fee or 0.0)


def calculate_weighted_multiplier(segments: Sequence[ZoneSegment], total_distance_km: float) -> float:
    """Distance-weighted average of the segment multipliers, 1.0 when there is nothing to weigh."""
    if not segments or total_distance_km <= 0:
        return 1.0
    weighted_sum = sum(seg.distance_km * seg.price_multiplier for seg in segments)
    return round_to(weighted_sum / total_distance_km, 3)


def segment_route_by_zones(
    polyline: str,
    zones: Sequence[ZoneData],
    total_duration_minutes: float,
    strategy: Optional[str] = "PRIORITY",
) -> RouteSegmentationResult:
    points = decode_polyline(polyline)
    if len(points) < 2:
        return RouteSegmentationResult()

    points = simplify_polyline(points)

    def zone_at(point: GeoPoint) -> Optional[ZoneData]:
        return find_zone_for_point(point, zones, strategy)

    transitions: list[_Transition] = []
    current_zone = zone_at(points[0])
    current = _Transition(zone=current_zone, entry_point=points[0], distance_km=0.0)

    for p1, p2 in zip(points, points[1:]):
        next_zone = zone_at(p2)
        current_id = _zone_id(current_zone)
        if current_id == _zone_id(next_zone):
            current.distance_km += segment_distance(p1, p2)
            continue

        crossing = find_zone_crossing_point(
            p1, p2, lambda point, zid=current_id: _zone_id(zone_at(point)) == zid
        )
        current.distance_km += segment_distance(p1, crossing)
        transitions.append(current)

        current_zone = next_zone
        current = _Transition(zone=next_zone, entry_point=crossing, distance_km=segment_distance(crossing, p2))

    transitions.append(current)

    total_distance_km = sum(t.distance_km for t in transitions)

    segments: list[ZoneSegment] = []
    zones_traversed: list[str] = []
    surcharged: set[str] = set()
    total_surcharges = 0.0

    for index, transition in enumerate(transitions):
        zone = transition.zone or OUTSIDE_ZONE
        proportion = (
            transition.distance_km / total_distance_km if total_distance_km > 0 else 1 / len(transitions)
        )

        surcharge = 0.0
        if transition.zone is not None and zone.id not in surcharged:
            surcharge = _zone_surcharge(zone)
            total_surcharges += surcharge
            surcharged.add(zone.id)

        exit_point = transitions[index + 1].entry_point if index < len(transitions) - 1 else points[-1]
        segments.append(
            ZoneSegment(
                zone_id=zone.id,
                zone_code=zone.code,
                zone_name=zone.name,
                distance_km=round_to(transition.distance_km, 3),
                duration_minutes=round_to(total_duration_minutes * proportion, 2),
                price_multiplier=zone.price_multiplier if zone.price_multiplier is not None else 1.0,
                surcharges_applied=surcharge,
                entry_point=transition.entry_point,
                exit_point=exit_point,
            )
        )
        if zone.code not in zones_traversed:
            zones_traversed.append(zone.code)

    logger.debug(f"Route segmented into {len(segments)} zone segment(s): {' -> '.join(zones_traversed)}")

    return RouteSegmentationResult(
        segments=segments,
        weighted_multiplier=calculate_weighted_multiplier(segments, total_distance_km),
        total_surcharges=total_surcharges,
        zones_traversed=zones_traversed,
        total_distance_km=round_to(total_distance_km, 3),
        segmentation_method="POLYLINE",
    )


def _single_segment(zone: ZoneData, distance_km: float, duration_minutes: float) -> ZoneSegment:
    return ZoneSegment(
        zone_id=zone.id,
        zone_code=zone.code,
        zone_name=zone.name,
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        price_multiplier=zone.price_multiplier if zone.price_multiplier is not None else 1.0,
        surcharges_applied=_zone_surcharge(zone),
        entry_point=_UNKNOWN_POINT,
        exit_point=_UNKNOWN_POINT,
    )


def create_fallback_segmentation(
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
    total_distance_km: float,
    total_duration_minutes: float,
) -> RouteSegmentationResult:
    """Approximate segmentation from pickup/dropoff zones when no polyline is available."""
    if pickup_zone is None and dropoff_zone is None:
        return RouteSegmentationResult()

    same_zone = pickup_zone is not None and dropoff_zone is not None and pickup_zone.id == dropoff_zone.id

    if same_zone or dropoff_zone is None:
        segments = [_single_segment(pickup_zone or OUTSIDE_ZONE, total_distance_km, total_duration_minutes)]
    elif pickup_zone is None:
        segments = [_single_segment(dropoff_zone, total_distance_km, total_duration_minutes)]
    else:
        half_distance = total_distance_km / 2
        half_duration = total_duration_minutes / 2
        segments = [
            _single_segment(pickup_zone, half_distance, half_duration),
            _single_segment(dropoff_zone, half_distance, half_duration),
        ]

    return RouteSegmentationResult(
        segments=segments,
        weighted_multiplier=calculate_weighted_multiplier(segments, total_distance_km),
        total_surcharges=sum(seg.surcharges_applied for seg in segments),
        zones_traversed=[seg.zone_code for seg in segments],
        total_distance_km=total_distance_km,
        segmentation_method="FALLBACK",
    )


def build_route_segmentation_rule(
    result: RouteSegmentationResult,
    price_before: float,
    price_after: float,
) -> AppliedRule:
    path = " → ".join(result.zones_traversed)
    if result.segmentation_method == "POLYLINE":
        description = (
            f"Route segmented across {len(result.segments)} zone(s): {path}. "
            f"Weighted multiplier: {result.weighted_multiplier}×"
        )
    else:
        description = f"Fallback segmentation (no polyline): {path}. Weighted multiplier: {result.weighted_multiplier}×"

    return AppliedRule(
        type="ROUTE_SEGMENTATION",
        description=description,
        price_before=price_before,
        price_after=price_after,
        multiplier=result.weighted_multiplier,
        details={
            "segmentation_method": result.segmentation_method,
            "zones_traversed": list(result.zones_traversed),
            "segment_count": len(result.segments),
            "total_surcharges": result.total_surcharges,
            "segments": [
                {
                    "zone_code": seg.zone_code,
                    "zone_name": seg.zone_name,
                    "distance_km": seg.distance_km,
                    "multiplier": seg.price_multiplier,
                }
                for seg in result.segments
            ],
        },
    )
