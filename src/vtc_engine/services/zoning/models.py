"""Route segmentation models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal

from ...models.domain import GeoPoint

SegmentationMethod = Literal["POLYLINE", "FALLBACK"]


@dataclass(frozen=True, slots=True)
class ZoneSegment:
    zone_id: str
    zone_code: str
    zone_name: str
    distance_km: float
    duration_minutes: float
    price_multiplier: float
    surcharges_applied: float
    entry_point: GeoPoint
    exit_point: GeoPoint


@dataclass(frozen=True, slots=True)
class RouteSegmentationResult:
    segments: List[ZoneSegment] = field(default_factory=list)
    weighted_multiplier: float = 1.0
    total_surcharges: float = 0.0
    zones_traversed: List[str] = field(default_factory=list)
    total_distance_km: float = 0.0
    segmentation_method: SegmentationMethod = "FALLBACK"
