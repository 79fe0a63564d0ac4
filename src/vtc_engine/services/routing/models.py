"""Routing models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...models.domain import RoutingSource


@dataclass(frozen=True, slots=True)
class OSRMRoute:
    distance_km: float
    duration_minutes: float
    geometry: str


@dataclass(frozen=True, slots=True)
class RoutedLeg:
    distance_km: float
    duration_minutes: float
    routing_source: RoutingSource
    polyline: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TripLegs:
    """Routed service leg plus the approach/return legs when a vehicle base is known."""

    service: RoutedLeg
    approach: Optional[RoutedLeg] = None
    return_: Optional[RoutedLeg] = None

    @property
    def routing_source(self) -> RoutingSource:
        legs = [leg for leg in (self.approach, self.service, self.return_) if leg is not None]
        if all(leg.routing_source == "ROUTED" for leg in legs):
            return "ROUTED"
        return "HAVERSINE_ESTIMATE"
