"""Pydantic request models for pricing endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import (
    CostParameters,
    GeoPoint,
    OrganizationPricingSettings,
    TripInput,
    VehicleCategory,
    ZoneData,
)
from ..services.pricing.models import (
    AdvancedRate,
    DispoPackage,
    ExcursionPackage,
    PartnerContract,
    PricingContext,
    SeasonalMultiplier,
    ZoneRoute,
)
from ..services.routing.models import TripLegs
from .compliance import AlternativeCostParametersModel, RSERulesModel

FuelTypeLiteral = Literal["DIESEL", "GASOLINE", "LPG", "ELECTRIC"]


class GeoPointModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


class CostParametersModel(BaseModel):
    fuel_consumption_l100km: float = Field(default=8.0, ge=0)
    fuel_price_per_liter: Optional[float] = Field(
        default=None,
        ge=0,
        description="Used when the fuel price cache has no price; leave empty for the fuel type default.",
    )
    toll_cost_per_km: float = Field(default=0.15, ge=0)
    wear_cost_per_km: float = Field(default=0.10, ge=0)
    driver_hourly_cost: float = Field(default=25.0, ge=0)
    fuel_type: FuelTypeLiteral = "DIESEL"

    def to_domain(self) -> CostParameters:
        return CostParameters(**self.model_dump())


class ZoneModel(BaseModel):
    id: str
    code: str
    name: str
    zone_type: Literal["POLYGON", "RADIUS", "POINT"] = "POLYGON"
    geometry: Optional[Dict[str, Any]] = Field(default=None, description="GeoJSON Polygon for POLYGON zones.")
    center_latitude: Optional[float] = None
    center_longitude: Optional[float] = None
    radius_km: Optional[float] = Field(default=None, ge=0)
    is_active: bool = True
    price_multiplier: float = Field(default=1.0, gt=0)
    priority: int = 0
    fixed_parking_surcharge: Optional[float] = Field(default=None, ge=0)
    fixed_access_fee: Optional[float] = Field(default=None, ge=0)
    surcharge_description: Optional[str] = None

    def to_domain(self) -> ZoneData:
        return ZoneData(**self.model_dump())


class VehicleCategoryModel(BaseModel):
    id: str
    code: str
    name: str
    regulatory_category: Literal["LIGHT", "HEAVY"] = "LIGHT"
    price_multiplier: float = Field(default=1.0, gt=0)
    default_rate_per_km: Optional[float] = Field(default=None, ge=0)
    default_rate_per_hour: Optional[float] = Field(default=None, ge=0)
    fuel_type: Optional[FuelTypeLiteral] = None
    fuel_consumption_l100km: Optional[float] = Field(default=None, ge=0)
    license_category_id: Optional[str] = None

    def to_domain(self) -> VehicleCategory:
        return VehicleCategory(**self.model_dump())


class PricingSettingsModel(BaseModel):
    base_rate_per_km: float = Field(default=2.5, ge=0)
    base_rate_per_hour: float = Field(default=45.0, ge=0)
    target_margin_percent: float = 20.0
    cost_parameters: CostParametersModel = Field(default_factory=CostParametersModel)
    staffing_cost_parameters: AlternativeCostParametersModel = Field(default_factory=AlternativeCostParametersModel)
    excursion_minimum_hours: float = Field(default=4.0, ge=0)
    excursion_surcharge_percent: float = Field(default=15.0, ge=0)
    dispo_included_km_per_hour: float = Field(default=50.0, ge=0)
    dispo_overage_rate_per_km: float = Field(default=0.50, ge=0)
    dispo_included_hours: float = Field(default=4.0, ge=0)
    availability_rate_per_hour: Optional[float] = Field(default=None, ge=0)
    empty_return_cost_percent: float = Field(default=100.0, ge=0)
    zone_multiplier_aggregation_strategy: Optional[Literal["MAX", "PICKUP_ONLY", "DROPOFF_ONLY", "AVERAGE"]] = None
    zone_conflict_strategy: Optional[Literal["PRIORITY", "MOST_EXPENSIVE", "CLOSEST", "COMBINED"]] = "PRIORITY"
    difficulty_multipliers: Optional[Dict[str, float]] = Field(
        default=None,
        description='Multiplier per difficulty score, keyed "1" to "5".',
    )
    green_margin_threshold: float = 20.0
    orange_margin_threshold: float = 0.0

    def to_domain(self) -> OrganizationPricingSettings:
        data = self.model_dump(exclude={"cost_parameters", "staffing_cost_parameters"})
        return OrganizationPricingSettings(
            cost_parameters=self.cost_parameters.to_domain(),
            staffing_cost_parameters=self.staffing_cost_parameters.to_domain(),
            **data,
        )


class AdvancedRateModel(BaseModel):
    id: str
    name: str
    applies_to: Literal["NIGHT", "WEEKEND"]
    adjustment_type: Literal["PERCENTAGE", "FIXED_AMOUNT"]
    value: float
    start_time: Optional[str] = Field(default=None, description="HH:MM, local time.")
    end_time: Optional[str] = Field(default=None, description="HH:MM, local time.")
    days_of_week: Optional[str] = Field(default=None, description='Comma-separated days, Sunday=0 (e.g. "0,6").')
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: Optional[str] = None
    vehicle_category_ids: Optional[List[str]] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        hours, sep, minutes = value.partition(":")
        if not sep or not hours.isdigit() or not minutes.isdigit():
            raise ValueError("time must be formatted HH:MM")
        if int(hours) > 23 or int(minutes) > 59:
            raise ValueError("time must be formatted HH:MM")
        return value

    def to_domain(self) -> AdvancedRate:
        return AdvancedRate(**self.model_dump())


class SeasonalMultiplierModel(BaseModel):
    id: str
    name: str
    multiplier: float = Field(..., gt=0)
    start_date: date
    end_date: date
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: Optional[str] = None
    vehicle_category_ids: Optional[List[str]] = None

    def to_domain(self) -> SeasonalMultiplier:
        return SeasonalMultiplier(**self.model_dump())


class ZoneRouteModel(BaseModel):
    id: str
    vehicle_category_id: str
    fixed_price: float = Field(..., ge=0)
    name: str = ""
    from_zone_id: Optional[str] = None
    to_zone_id: Optional[str] = None
    origin_zone_ids: List[str] = Field(default_factory=list)
    destination_zone_ids: List[str] = Field(default_factory=list)
    direction: Literal["BIDIRECTIONAL", "A_TO_B", "B_TO_A"] = "BIDIRECTIONAL"
    is_active: bool = True
    override_price: Optional[float] = Field(default=None, ge=0)

    def to_domain(self) -> ZoneRoute:
        return ZoneRoute(**self.model_dump())


class ExcursionPackageModel(BaseModel):
    id: str
    name: str
    vehicle_category_id: str
    price: float = Field(..., ge=0)
    origin_zone_id: Optional[str] = None
    destination_zone_id: Optional[str] = None
    is_active: bool = True
    override_price: Optional[float] = Field(default=None, ge=0)

    def to_domain(self) -> ExcursionPackage:
        return ExcursionPackage(**self.model_dump())


class DispoPackageModel(BaseModel):
    id: str
    name: str
    vehicle_category_id: str
    base_price: float = Field(..., ge=0)
    is_active: bool = True
    override_price: Optional[float] = Field(default=None, ge=0)

    def to_domain(self) -> DispoPackage:
        return DispoPackage(**self.model_dump())


class PartnerContractModel(BaseModel):
    id: str
    zone_routes: List[ZoneRouteModel] = Field(default_factory=list)
    excursion_packages: List[ExcursionPackageModel] = Field(default_factory=list)
    dispo_packages: List[DispoPackageModel] = Field(default_factory=list)

    def to_domain(self) -> PartnerContract:
        return PartnerContract(
            id=self.id,
            zone_routes=[route.to_domain() for route in self.zone_routes],
            excursion_packages=[package.to_domain() for package in self.excursion_packages],
            dispo_packages=[package.to_domain() for package in self.dispo_packages],
        )


class TripModel(BaseModel):
    service_distance_km: Optional[float] = Field(
        default=None,
        ge=0,
        description="Leave empty with pickup and dropoff set to route the trip.",
    )
    service_duration_minutes: Optional[float] = Field(default=None, ge=0)
    trip_type: Literal["TRANSFER", "DISPO", "EXCURSION"] = "TRANSFER"
    pickup: Optional[GeoPointModel] = None
    dropoff: Optional[GeoPointModel] = None
    vehicle_base: Optional[GeoPointModel] = Field(
        default=None,
        description="Garage of the vehicle; approach and return legs are routed from it.",
    )
    pickup_address: str = ""
    dropoff_address: str = ""
    pickup_at: Optional[datetime] = None
    estimated_dropoff_at: Optional[datetime] = None
    approach_distance_km: Optional[float] = Field(default=None, ge=0)
    approach_duration_minutes: Optional[float] = Field(default=None, ge=0)
    return_distance_km: Optional[float] = Field(default=None, ge=0)
    return_duration_minutes: Optional[float] = Field(default=None, ge=0)
    routing_source: Literal["ROUTED", "HAVERSINE_ESTIMATE"] = "HAVERSINE_ESTIMATE"
    polyline: Optional[str] = Field(default=None, description="Encoded route polyline (precision 5).")
    vehicle_category: Optional[VehicleCategoryModel] = None
    vehicle_fuel_consumption_l100km: Optional[float] = Field(default=None, ge=0)
    is_round_trip: bool = False
    duration_hours: Optional[float] = Field(default=None, ge=0)
    end_customer_difficulty_score: Optional[int] = None
    contact_difficulty_score: Optional[int] = None

    @model_validator(mode="after")
    def check_routable(self) -> "TripModel":
        if self.needs_routing and (self.pickup is None or self.dropoff is None):
            raise ValueError("service distance and duration are required unless pickup and dropoff are given")
        return self

    @property
    def needs_routing(self) -> bool:
        return self.service_distance_km is None or self.service_duration_minutes is None

    def to_domain(self, legs: Optional[TripLegs] = None) -> TripInput:
        """Build the trip, filling distances the caller left out from the routed ``legs``."""
        data = self.model_dump(exclude={"pickup", "dropoff", "vehicle_base", "vehicle_category"})
        if legs is not None:
            if self.service_distance_km is None:
                data["service_distance_km"] = legs.service.distance_km
            if self.service_duration_minutes is None:
                data["service_duration_minutes"] = legs.service.duration_minutes
            if self.approach_distance_km is None and legs.approach is not None:
                data["approach_distance_km"] = legs.approach.distance_km
                data["approach_duration_minutes"] = legs.approach.duration_minutes
            if self.return_distance_km is None and legs.return_ is not None:
                data["return_distance_km"] = legs.return_.distance_km
                data["return_duration_minutes"] = legs.return_.duration_minutes
            data["routing_source"] = legs.routing_source
            data["polyline"] = self.polyline or legs.service.polyline
        return TripInput(
            pickup=self.pickup.to_domain() if self.pickup else None,
            dropoff=self.dropoff.to_domain() if self.dropoff else None,
            vehicle_category=self.vehicle_category.to_domain() if self.vehicle_category else None,
            **data,
        )


class QuoteRequest(BaseModel):
    trip: TripModel
    settings: PricingSettingsModel = Field(default_factory=PricingSettingsModel)
    zones: List[ZoneModel] = Field(default_factory=list)
    advanced_rates: List[AdvancedRateModel] = Field(default_factory=list)
    seasonal_multipliers: List[SeasonalMultiplierModel] = Field(default_factory=list)
    fuel_country_code: Optional[str] = None
    fuel_type: Optional[FuelTypeLiteral] = None
    rse_rules: Optional[RSERulesModel] = None
    staffing_policy: Optional[str] = None
    is_partner: bool = False
    partner_contract: Optional[PartnerContractModel] = None

    def to_context(self) -> PricingContext:
        return PricingContext(
            settings=self.settings.to_domain(),
            zones=[zone.to_domain() for zone in self.zones],
            advanced_rates=[rate.to_domain() for rate in self.advanced_rates],
            seasonal_multipliers=[m.to_domain() for m in self.seasonal_multipliers],
            fuel_country_code=self.fuel_country_code,
            fuel_type=self.fuel_type,
            rse_rules=self.rse_rules.to_domain() if self.rse_rules else None,
            staffing_policy=self.staffing_policy,
            is_partner=self.is_partner,
            partner_contract=self.partner_contract.to_domain() if self.partner_contract else None,
        )


class SegmentRouteRequest(BaseModel):
    zones: List[ZoneModel]
    polyline: Optional[str] = None
    pickup: Optional[GeoPointModel] = None
    dropoff: Optional[GeoPointModel] = None
    distance_km: float = Field(default=0.0, ge=0, description="Used when no polyline is given.")
    duration_minutes: float = Field(default=0.0, ge=0)
    conflict_strategy: Optional[Literal["PRIORITY", "MOST_EXPENSIVE", "CLOSEST", "COMBINED"]] = "PRIORITY"
