"""Pricing request/result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Literal, Optional, Sequence

from ...models.domain import (
    AppliedRule,
    CompliancePlan,
    CostBreakdown,
    OrganizationPricingSettings,
    TripAnalysis,
    ZoneData,
    ZoneSurcharges,
)
from ..zoning.models import RouteSegmentationResult

AdvancedRateType = Literal["NIGHT", "WEEKEND"]
AdjustmentType = Literal["PERCENTAGE", "FIXED_AMOUNT"]
ProfitabilityIndicator = Literal["green", "orange", "red"]
DifficultyScoreSource = Literal["END_CUSTOMER", "CONTACT", "NONE"]
PricingMode = Literal["FIXED_GRID", "DYNAMIC"]
FallbackReason = Literal["PRIVATE_CLIENT", "NO_CONTRACT", "NO_ROUTE_MATCH"]
FuelPriceOrigin = Literal["CACHE", "ORGANIZATION", "DEFAULT"]
GridType = Literal["ZONE_ROUTE", "EXCURSION_PACKAGE", "DISPO_PACKAGE"]
GridDirection = Literal["BIDIRECTIONAL", "A_TO_B", "B_TO_A"]
GridRejectionReason = Literal["INACTIVE", "CATEGORY_MISMATCH", "ZONE_MISMATCH", "DIRECTION_MISMATCH"]


@dataclass(slots=True)
class AdvancedRate:
    """Time-based rate (night window or weekend days) configured by the organization."""

    id: str
    name: str
    applies_to: AdvancedRateType
    adjustment_type: AdjustmentType
    value: float
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    days_of_week: Optional[str] = None
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: Optional[str] = None
    vehicle_category_ids: Optional[List[str]] = None


@dataclass(slots=True)
class SeasonalMultiplier:
    id: str
    name: str
    multiplier: float
    start_date: date
    end_date: date
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: Optional[str] = None
    vehicle_category_ids: Optional[List[str]] = None


@dataclass(frozen=True, slots=True)
class MultiplierContext:
    pickup_at: Optional[datetime] = None
    estimated_end_at: Optional[datetime] = None
    distance_km: float = 0.0
    pickup_zone_id: Optional[str] = None
    dropoff_zone_id: Optional[str] = None
    vehicle_category_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MultiplierResult:
    adjusted_price: float
    applied_rule: Optional[AppliedRule] = None


@dataclass(frozen=True, slots=True)
class MultiplierEvaluation:
    adjusted_price: float
    applied_rules: tuple[AppliedRule, ...] = ()


@dataclass(frozen=True, slots=True)
class WeightedNightRateResult:
    adjusted_price: float
    night_minutes: int
    total_minutes: int
    night_percentage: float
    base_adjustment: float
    effective_adjustment: float


@dataclass(frozen=True, slots=True)
class ZoneMultiplierResult:
    adjusted_price: float
    applied_multiplier: float
    applied_rule: AppliedRule


@dataclass(frozen=True, slots=True)
class RoundTripResult:
    adjusted_price: float
    adjusted_internal_cost: float
    applied_rule: Optional[AppliedRule] = None


@dataclass(frozen=True, slots=True)
class ResolvedDifficultyScore:
    score: Optional[int]
    source: DifficultyScoreSource


@dataclass(frozen=True, slots=True)
class ResolvedRates:
    rate_per_km: float
    rate_per_hour: float
    source: Literal["CATEGORY", "ORGANIZATION"]


@dataclass(frozen=True, slots=True)
class DynamicBasePrice:
    distance_based_price: float
    duration_based_price: float
    selected_method: Literal["distance", "duration"]
    base_price: float
    price_with_margin: float
    rates: ResolvedRates


@dataclass(frozen=True, slots=True)
class TripTypePricing:
    price: float
    rule: Optional[AppliedRule] = None


@dataclass(frozen=True, slots=True)
class ProfitabilityData:
    indicator: ProfitabilityIndicator
    margin_percent: float
    label: str
    description: str


@dataclass(slots=True)
class ZoneRoute:
    """Fixed transfer price between two zones (or zone groups) for one vehicle category.

    Multi-zone ``origin_zone_ids`` / ``destination_zone_ids`` take precedence
    over the single ``from_zone_id`` / ``to_zone_id`` pair. An empty side
    matches any zone.
    """

    id: str
    vehicle_category_id: str
    fixed_price: float
    name: str = ""
    from_zone_id: Optional[str] = None
    to_zone_id: Optional[str] = None
    origin_zone_ids: Sequence[str] = ()
    destination_zone_ids: Sequence[str] = ()
    direction: GridDirection = "BIDIRECTIONAL"
    is_active: bool = True
    override_price: Optional[float] = None


@dataclass(slots=True)
class ExcursionPackage:
    id: str
    name: str
    vehicle_category_id: str
    price: float
    origin_zone_id: Optional[str] = None
    destination_zone_id: Optional[str] = None
    is_active: bool = True
    override_price: Optional[float] = None


@dataclass(slots=True)
class DispoPackage:
    id: str
    name: str
    vehicle_category_id: str
    base_price: float
    is_active: bool = True
    override_price: Optional[float] = None


@dataclass(slots=True)
class PartnerContract:
    """Price grids negotiated with a partner; ``override_price`` on an entry wins over its list price."""

    id: str
    zone_routes: Sequence[ZoneRoute] = ()
    excursion_packages: Sequence[ExcursionPackage] = ()
    dispo_packages: Sequence[DispoPackage] = ()


@dataclass(frozen=True, slots=True)
class MatchedGrid:
    type: GridType
    id: str
    name: str
    price: float
    from_zone_id: Optional[str] = None
    to_zone_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RejectedGrid:
    type: GridType
    id: str
    name: str
    rejection_reason: GridRejectionReason


@dataclass(frozen=True, slots=True)
class GridSearchResult:
    matched: Optional[MatchedGrid] = None
    rejected: tuple[RejectedGrid, ...] = ()


@dataclass(slots=True)
class PricingContext:
    """Everything the calling context resolved for one pricing request."""

    settings: OrganizationPricingSettings = field(default_factory=OrganizationPricingSettings)
    zones: Sequence[ZoneData] = ()
    advanced_rates: Sequence[AdvancedRate] = ()
    seasonal_multipliers: Sequence[SeasonalMultiplier] = ()
    fuel_country_code: Optional[str] = None
    fuel_type: Optional[str] = None
    rse_rules: Optional[Any] = None
    staffing_policy: Optional[str] = None
    is_partner: bool = False
    partner_contract: Optional[PartnerContract] = None


@dataclass(frozen=True, slots=True)
class PricingResult:
    price: float
    internal_cost: float
    margin: float
    margin_percent: float
    profitability: ProfitabilityData
    applied_rules: tuple[AppliedRule, ...]
    trip_analysis: TripAnalysis
    cost_breakdown: CostBreakdown
    pickup_zone: Optional[ZoneData]
    dropoff_zone: Optional[ZoneData]
    # total is the amount carried by the internal cost: with a segmented
    # polyline, every zone crossed once rather than only pickup and dropoff
    zone_surcharges: ZoneSurcharges
    route_segmentation: Optional[RouteSegmentationResult]
    fuel_price_source: FuelPriceOrigin
    compliance_plan: Optional[CompliancePlan] = None
    additional_staffing_cost: float = 0.0
    estimated_end_at: Optional[datetime] = None
    pricing_mode: PricingMode = "DYNAMIC"
    fallback_reason: Optional[FallbackReason] = None
    grid_search: Optional[GridSearchResult] = None

    @property
    def is_contract_price(self) -> bool:
        return self.pricing_mode == "FIXED_GRID"
