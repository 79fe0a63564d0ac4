"""Positioning (deadhead) costs: approach fee, empty return and dispo availability fee."""

from __future__ import annotations

from typing import Optional

from ...models.domain import (
    AvailabilityFeeItem,
    OrganizationPricingSettings,
    PositioningCostItem,
    PositioningCosts,
    Segment,
    TripSegments,
    TripType,
)
from ..numeric import round_currency, round_to


def _approach_fee(approach: Optional[Segment]) -> PositioningCostItem:
    if approach is None:
        return PositioningCostItem(
            required=True,
            distance_km=0.0,
            duration_minutes=0.0,
            cost=0.0,
            reason="Approach cost calculated at dispatch (depends on vehicle base)",
        )
    if approach.distance_km == 0:
        return PositioningCostItem(
            required=False,
            distance_km=0.0,
            duration_minutes=0.0,
            cost=0.0,
            reason="Trip originates at the vehicle base",
        )
    return PositioningCostItem(
        required=True,
        distance_km=approach.distance_km,
        duration_minutes=approach.duration_minutes,
        cost=approach.cost.total,
        reason=f"Vehicle travels {approach.distance_km:g} km from base to pickup",
    )


def _empty_return(
    trip_type: TripType,
    return_segment: Optional[Segment],
    empty_return_cost_percent: float,
) -> PositioningCostItem:
    if trip_type == "DISPO":
        return PositioningCostItem(
            required=False,
            distance_km=0.0,
            duration_minutes=0.0,
            cost=0.0,
            reason="Vehicle stays with the client during a dispo; no empty return billed",
        )
    if return_segment is None:
        return PositioningCostItem(
            required=True,
            distance_km=0.0,
            duration_minutes=0.0,
            cost=0.0,
            reason="Empty return cost calculated at dispatch (depends on vehicle base)",
        )
    cost = round_currency(return_segment.cost.total * empty_return_cost_percent / 100)
    return PositioningCostItem(
        required=True,
        distance_km=return_segment.distance_km,
        duration_minutes=return_segment.duration_minutes,
        cost=cost,
        reason=(
            f"Vehicle returns empty to base ({return_segment.distance_km:g} km), "
            f"{empty_return_cost_percent:g}% of return cost charged"
        ),
    )


def _availability_fee(
    duration_hours: float,
    included_hours: float,
    rate_per_hour: float,
) -> AvailabilityFeeItem:
    waiting_hours = round_to(max(0.0, duration_hours - included_hours), 2)
    cost = round_currency(waiting_hours * rate_per_hour)
    if waiting_hours > 0:
        reason = f"{waiting_hours:g}h beyond the {included_hours:g}h included at {rate_per_hour:g}€/h"
    else:
        reason = f"Within the {included_hours:g}h included allowance"
    return AvailabilityFeeItem(
        required=waiting_hours > 0,
        waiting_hours=waiting_hours,
        rate_per_hour=rate_per_hour,
        cost=cost,
        reason=reason,
    )


def calculate_positioning_costs(
    trip_type: TripType,
    segments: TripSegments,
    settings: OrganizationPricingSettings,
    duration_hours: Optional[float] = None,
) -> PositioningCosts:
    """Deadhead costs of a trip, each item carrying a human-readable reason."""
    approach = _approach_fee(segments.approach)
    empty_return = _empty_return(trip_type, segments.return_, settings.empty_return_cost_percent)

    availability = None
    if trip_type == "DISPO":
        hours = duration_hours if duration_hours is not None else segments.service.duration_minutes / 60
        rate = (
            settings.availability_rate_per_hour
            if settings.availability_rate_per_hour is not None
            else settings.base_rate_per_hour
        )
        availability = _availability_fee(hours, settings.dispo_included_hours, rate)

    total = approach.cost + empty_return.cost + (availability.cost if availability else 0.0)
    return PositioningCosts(
        approach_fee=approach,
        empty_return=empty_return,
        availability_fee=availability,
        total_positioning_cost=round_currency(total),
    )
