"""Partner contract grid matching.

A partner's contract fixes prices per zone route (transfers), excursion
package and dispo package. The first active entry for the trip's vehicle
category whose zones fit the trip wins; every entry passed over is kept with
its rejection reason so the quote can show why the grid did not apply.
"""

from __future__ import annotations

from typing import Literal, Optional, Sequence

from ...models.domain import TripType, ZoneData
from .models import (
    DispoPackage,
    ExcursionPackage,
    GridSearchResult,
    MatchedGrid,
    PartnerContract,
    RejectedGrid,
    ZoneRoute,
)


def _zone_id(zone: Optional[ZoneData]) -> Optional[str]:
    return zone.id if zone is not None else None


def _route_name(route: ZoneRoute) -> str:
    return route.name or f"{route.from_zone_id or '*'} → {route.to_zone_id or '*'}"


def zone_route_matches(
    route: ZoneRoute,
    pickup_zone_id: Optional[str],
    dropoff_zone_id: Optional[str],
    direction: Literal["A_TO_B", "B_TO_A"],
) -> bool:
    """Whether the trip runs along the route in the given direction."""
    if route.origin_zone_ids or route.destination_zone_ids:
        origins, destinations = list(route.origin_zone_ids), list(route.destination_zone_ids)
    else:
        origins = [route.from_zone_id] if route.from_zone_id else []
        destinations = [route.to_zone_id] if route.to_zone_id else []

    if direction == "B_TO_A":
        origins, destinations = destinations, origins

    return (not origins or pickup_zone_id in origins) and (not destinations or dropoff_zone_id in destinations)


def match_zone_route(
    zone_routes: Sequence[ZoneRoute],
    vehicle_category_id: Optional[str],
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
) -> GridSearchResult:
    pickup_id, dropoff_id = _zone_id(pickup_zone), _zone_id(dropoff_zone)
    rejected: list[RejectedGrid] = []

    for route in zone_routes:
        name = _route_name(route)
        forward = zone_route_matches(route, pickup_id, dropoff_id, "A_TO_B")
        reverse = zone_route_matches(route, pickup_id, dropoff_id, "B_TO_A")

        reason = None
        if not route.is_active:
            reason = "INACTIVE"
        elif route.vehicle_category_id != vehicle_category_id:
            reason = "CATEGORY_MISMATCH"
        elif not forward and not reverse:
            reason = "ZONE_MISMATCH"
        elif (route.direction == "A_TO_B" and not forward) or (route.direction == "B_TO_A" and not reverse):
            reason = "DIRECTION_MISMATCH"

        if reason is not None:
            rejected.append(RejectedGrid(type="ZONE_ROUTE", id=route.id, name=name, rejection_reason=reason))
            continue

        price = route.override_price if route.override_price is not None else route.fixed_price
        return GridSearchResult(
            matched=MatchedGrid(
                type="ZONE_ROUTE",
                id=route.id,
                name=name,
                price=price,
                from_zone_id=route.from_zone_id,
                to_zone_id=route.to_zone_id,
            ),
            rejected=tuple(rejected),
        )

    return GridSearchResult(rejected=tuple(rejected))


def match_excursion_package(
    packages: Sequence[ExcursionPackage],
    vehicle_category_id: Optional[str],
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
) -> GridSearchResult:
    pickup_id, dropoff_id = _zone_id(pickup_zone), _zone_id(dropoff_zone)
    rejected: list[RejectedGrid] = []

    for package in packages:
        origin_ok = package.origin_zone_id is None or package.origin_zone_id == pickup_id
        destination_ok = package.destination_zone_id is None or package.destination_zone_id == dropoff_id

        reason = None
        if not package.is_active:
            reason = "INACTIVE"
        elif package.vehicle_category_id != vehicle_category_id:
            reason = "CATEGORY_MISMATCH"
        elif not origin_ok or not destination_ok:
            reason = "ZONE_MISMATCH"

        if reason is not None:
            rejected.append(
                RejectedGrid(type="EXCURSION_PACKAGE", id=package.id, name=package.name, rejection_reason=reason)
            )
            continue

        price = package.override_price if package.override_price is not None else package.price
        return GridSearchResult(
            matched=MatchedGrid(
                type="EXCURSION_PACKAGE",
                id=package.id,
                name=package.name,
                price=price,
                from_zone_id=package.origin_zone_id,
                to_zone_id=package.destination_zone_id,
            ),
            rejected=tuple(rejected),
        )

    return GridSearchResult(rejected=tuple(rejected))


def match_dispo_package(
    packages: Sequence[DispoPackage],
    vehicle_category_id: Optional[str],
) -> GridSearchResult:
    rejected: list[RejectedGrid] = []

    for package in packages:
        if not package.is_active:
            reason = "INACTIVE"
        elif package.vehicle_category_id != vehicle_category_id:
            reason = "CATEGORY_MISMATCH"
        else:
            price = package.override_price if package.override_price is not None else package.base_price
            return GridSearchResult(
                matched=MatchedGrid(type="DISPO_PACKAGE", id=package.id, name=package.name, price=price),
                rejected=tuple(rejected),
            )
        rejected.append(RejectedGrid(type="DISPO_PACKAGE", id=package.id, name=package.name, rejection_reason=reason))

    return GridSearchResult(rejected=tuple(rejected))


def match_grid(
    trip_type: TripType,
    vehicle_category_id: Optional[str],
    contract: PartnerContract,
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
) -> GridSearchResult:
    match trip_type:
        case "TRANSFER":
            return match_zone_route(contract.zone_routes, vehicle_category_id, pickup_zone, dropoff_zone)
        case "EXCURSION":
            return match_excursion_package(
                contract.excursion_packages, vehicle_category_id, pickup_zone, dropoff_zone
            )
        case "DISPO":
            return match_dispo_package(contract.dispo_packages, vehicle_category_id)
        case _:
            return GridSearchResult()
