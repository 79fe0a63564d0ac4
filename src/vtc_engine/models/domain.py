"""Domain models shared by the pricing, zoning and compliance services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

FuelType = Literal["DIESEL", "GASOLINE", "LPG", "ELECTRIC"]
RegulatoryCategory = Literal["LIGHT", "HEAVY"]
TripType = Literal["TRANSFER", "DISPO", "EXCURSION"]
ZoneType = Literal["POLYGON", "RADIUS", "POINT"]
RoutingSource = Literal["ROUTED", "HAVERSINE_ESTIMATE"]
SegmentName = Literal["approach", "service", "return"]


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(slots=True)
class CostParameters:
    """Organization cost parameters used to compute the internal cost of a leg."""

    fuel_consumption_l100km: float = 8.0
    # None: cached market price, else the default price for the fuel type
    fuel_price_per_liter: Optional[float] = None
    toll_cost_per_km: float = 0.15
    wear_cost_per_km: float = 0.10
    driver_hourly_cost: float = 25.0
    fuel_type: FuelType = "DIESEL"


@dataclass(frozen=True, slots=True)
class AlternativeCostParameters:
    """Rates used to cost extra drivers, hotel nights and meals of a staffing plan."""

    driver_hourly_cost: float = 25.0
    hotel_cost_per_night: float = 100.0
    meal_allowance_per_day: float = 30.0


@dataclass(frozen=True, slots=True)
class FuelCost:
    amount: float
    distance_km: float
    consumption_l100km: float
    price_per_liter: float
    fuel_type: FuelType = "DIESEL"


@dataclass(frozen=True, slots=True)
class TollCost:
    amount: float
    distance_km: float
    rate_per_km: float


@dataclass(frozen=True, slots=True)
class WearCost:
    amount: float
    distance_km: float
    rate_per_km: float


@dataclass(frozen=True, slots=True)
class DriverCost:
    amount: float
    duration_minutes: float
    hourly_rate: float


@dataclass(frozen=True, slots=True)
class ParkingCost:
    amount: float = 0.0
    description: str = ""


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    fuel: FuelCost
    tolls: TollCost
    wear: WearCost
    driver: DriverCost
    parking: ParkingCost
    total: float


@dataclass(slots=True)
class ZoneData:
    """A configured pricing zone (polygon, radius around a center, or a single point)."""

    id: str
    code: str
    name: str
    zone_type: ZoneType = "POLYGON"
    geometry: Optional[dict[str, Any]] = None
    center_latitude: Optional[float] = None
    center_longitude: Optional[float] = None
    radius_km: Optional[float] = None
    is_active: bool = True
    price_multiplier: float = 1.0
    priority: int = 0
    fixed_parking_surcharge: Optional[float] = None
    fixed_access_fee: Optional[float] = None
    surcharge_description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ZoneSurchargeComponent:
    zone_id: str
    zone_code: str
    zone_name: str
    parking_surcharge: float
    access_fee: float
    total: float
    description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ZoneSurcharges:
    pickup: Optional[ZoneSurchargeComponent]
    dropoff: Optional[ZoneSurchargeComponent]
    total: float


@dataclass(slots=True)
class VehicleCategory:
    id: str
    code: str
    name: str
    regulatory_category: RegulatoryCategory = "LIGHT"
    price_multiplier: float = 1.0
    default_rate_per_km: Optional[float] = None
    default_rate_per_hour: Optional[float] = None
    fuel_type: Optional[FuelType] = None
    fuel_consumption_l100km: Optional[float] = None
    license_category_id: Optional[str] = None


@dataclass(slots=True)
class OrganizationPricingSettings:
    """Organization-level pricing configuration supplied by the calling context."""

    base_rate_per_km: float = 2.5
    base_rate_per_hour: float = 45.0
    target_margin_percent: float = 20.0
    cost_parameters: CostParameters = field(default_factory=CostParameters)
    staffing_cost_parameters: AlternativeCostParameters = field(default_factory=AlternativeCostParameters)
    excursion_minimum_hours: float = 4.0
    excursion_surcharge_percent: float = 15.0
    dispo_included_km_per_hour: float = 50.0
    dispo_overage_rate_per_km: float = 0.50
    dispo_included_hours: float = 4.0
    availability_rate_per_hour: Optional[float] = None
    empty_return_cost_percent: float = 100.0
    zone_multiplier_aggregation_strategy: Optional[str] = None
    zone_conflict_strategy: Optional[str] = "PRIORITY"
    difficulty_multipliers: Optional[dict[str, float]] = None
    green_margin_threshold: float = 20.0
    orange_margin_threshold: float = 0.0


@dataclass(frozen=True, slots=True)
class AppliedRule:
    """Append-only audit record of one pricing adjustment."""

    type: str
    description: str
    price_before: Optional[float] = None
    price_after: Optional[float] = None
    multiplier: Optional[float] = None
    amount: Optional[float] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Segment:
    """One leg of the operational loop: approach, service (billed) or return."""

    name: SegmentName
    description: str
    distance_km: float
    duration_minutes: float
    cost: CostBreakdown
    is_estimated: bool = False


@dataclass(frozen=True, slots=True)
class TripSegments:
    service: Segment
    approach: Optional[Segment] = None
    return_: Optional[Segment] = None

    def present(self) -> list[Segment]:
        return [s for s in (self.approach, self.service, self.return_) if s is not None]


@dataclass(frozen=True, slots=True)
class PositioningCostItem:
    required: bool
    distance_km: float
    duration_minutes: float
    cost: float
    reason: str


@dataclass(frozen=True, slots=True)
class AvailabilityFeeItem:
    required: bool
    waiting_hours: float
    rate_per_hour: float
    cost: float
    reason: str


@dataclass(frozen=True, slots=True)
class PositioningCosts:
    approach_fee: PositioningCostItem
    empty_return: PositioningCostItem
    availability_fee: Optional[AvailabilityFeeItem]
    total_positioning_cost: float


@dataclass(frozen=True, slots=True)
class StaffingCostBreakdown:
    extra_driver_cost: float = 0.0
    hotel_cost: float = 0.0
    meal_allowance: float = 0.0
    other_costs: float = 0.0


@dataclass(frozen=True, slots=True)
class StaffingSchedule:
    days_required: int = 1
    drivers_required: int = 1
    hotel_nights_required: int = 0


@dataclass(frozen=True, slots=True)
class CompliancePlan:
    """Staffing plan attached to a trip analysis after compliance integration."""

    plan_type: str
    is_required: bool
    additional_cost: float
    cost_breakdown: StaffingCostBreakdown
    adjusted_schedule: StaffingSchedule
    original_violations: tuple[dict[str, Any], ...]
    selected_reason: str


@dataclass(frozen=True, slots=True)
class TripAnalysis:
    segments: TripSegments
    cost_breakdown: CostBreakdown
    total_distance_km: float
    total_duration_minutes: float
    total_internal_cost: float
    routing_source: RoutingSource = "HAVERSINE_ESTIMATE"
    positioning_costs: Optional[PositioningCosts] = None
    compliance_plan: Optional[CompliancePlan] = None
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class TripInput:
    """A trip to price, as resolved by the calling context."""

    service_distance_km: float
    service_duration_minutes: float
    trip_type: TripType = "TRANSFER"
    pickup: Optional[GeoPoint] = None
    dropoff: Optional[GeoPoint] = None
    pickup_address: str = ""
    dropoff_address: str = ""
    pickup_at: Optional[datetime] = None
    estimated_dropoff_at: Optional[datetime] = None
    approach_distance_km: Optional[float] = None
    approach_duration_minutes: Optional[float] = None
    return_distance_km: Optional[float] = None
    return_duration_minutes: Optional[float] = None
    routing_source: RoutingSource = "HAVERSINE_ESTIMATE"
    polyline: Optional[str] = None
    vehicle_category: Optional[VehicleCategory] = None
    vehicle_fuel_consumption_l100km: Optional[float] = None
    is_round_trip: bool = False
    duration_hours: Optional[float] = None
    end_customer_difficulty_score: Optional[int] = None
    contact_difficulty_score: Optional[int] = None
