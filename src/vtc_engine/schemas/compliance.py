"""Pydantic request models for RSE compliance endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..models.domain import AlternativeCostParameters, OrganizationPricingSettings, TripAnalysis, TripInput
from ..services.compliance.models import ComplianceValidationInput, RSERules
from ..services.pricing.engine import compute_trip_analysis


class RSERulesModel(BaseModel):
    license_category_id: str
    license_category_code: str
    max_daily_driving_hours: float = Field(..., gt=0)
    max_daily_amplitude_hours: float = Field(..., gt=0)
    break_minutes_per_driving_block: float = Field(..., ge=0)
    driving_block_hours_for_break: float = Field(..., gt=0)
    capped_average_speed_kmh: Optional[float] = Field(default=None, gt=0)

    def to_domain(self) -> RSERules:
        return RSERules(**self.model_dump())


class LegModel(BaseModel):
    distance_km: float = Field(..., ge=0)
    duration_minutes: float = Field(..., ge=0)


class AlternativeCostParametersModel(BaseModel):
    driver_hourly_cost: float = Field(default=25.0, ge=0)
    hotel_cost_per_night: float = Field(default=100.0, ge=0)
    meal_allowance_per_day: float = Field(default=30.0, ge=0)

    def to_domain(self) -> AlternativeCostParameters:
        return AlternativeCostParameters(**self.model_dump())


class ComplianceRequest(BaseModel):
    regulatory_category: Literal["LIGHT", "HEAVY"] = "HEAVY"
    pickup_at: datetime
    estimated_dropoff_at: Optional[datetime] = None
    service: LegModel
    approach: Optional[LegModel] = None
    return_leg: Optional[LegModel] = Field(default=None, description="Dropoff back to the vehicle base.")
    vehicle_category_id: Optional[str] = None
    license_category_id: Optional[str] = None
    rules: Optional[RSERulesModel] = Field(
        default=None,
        description="RSE rules to apply. When omitted they are loaded for the license category, then defaulted.",
    )

    def to_trip_analysis(self) -> TripAnalysis:
        trip = TripInput(
            service_distance_km=self.service.distance_km,
            service_duration_minutes=self.service.duration_minutes,
            pickup_at=self.pickup_at,
            estimated_dropoff_at=self.estimated_dropoff_at,
            approach_distance_km=self.approach.distance_km if self.approach else None,
            approach_duration_minutes=self.approach.duration_minutes if self.approach else None,
            return_distance_km=self.return_leg.distance_km if self.return_leg else None,
            return_duration_minutes=self.return_leg.duration_minutes if self.return_leg else None,
        )
        return compute_trip_analysis(trip, OrganizationPricingSettings())

    def to_input(self) -> ComplianceValidationInput:
        return ComplianceValidationInput(
            regulatory_category=self.regulatory_category,
            trip_analysis=self.to_trip_analysis(),
            pickup_at=self.pickup_at,
            estimated_dropoff_at=self.estimated_dropoff_at,
            vehicle_category_id=self.vehicle_category_id,
            license_category_id=self.license_category_id,
        )


class AlternativesRequest(ComplianceRequest):
    cost_parameters: AlternativeCostParametersModel = Field(default_factory=AlternativeCostParametersModel)
    policy: Optional[str] = Field(
        default=None,
        description="CHEAPEST, FASTEST or PREFER_INTERNAL. Unknown values behave like CHEAPEST.",
    )
