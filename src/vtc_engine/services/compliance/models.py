"""Heavy-vehicle (RSE) compliance models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from ...models.domain import RegulatoryCategory, StaffingCostBreakdown, TripAnalysis

ViolationType = Literal["DRIVING_TIME_EXCEEDED", "AMPLITUDE_EXCEEDED", "BREAK_REQUIRED", "SPEED_LIMIT_EXCEEDED"]
WarningType = Literal["APPROACHING_LIMIT", "BREAK_RECOMMENDED"]
RuleOutcome = Literal["PASS", "FAIL", "WARNING"]
AlternativeType = Literal["DOUBLE_CREW", "RELAY_DRIVER", "MULTI_DAY"]
StaffingPolicy = Literal["CHEAPEST", "FASTEST", "PREFER_INTERNAL"]


@dataclass(frozen=True, slots=True)
class RSERules:
    """Driving-time regulation limits for one license category."""

    license_category_id: str
    license_category_code: str
    max_daily_driving_hours: float
    max_daily_amplitude_hours: float
    break_minutes_per_driving_block: float
    driving_block_hours_for_break: float
    capped_average_speed_kmh: Optional[float] = None


DEFAULT_HEAVY_VEHICLE_RSE_RULES = RSERules(
    license_category_id="default",
    license_category_code="DEFAULT",
    max_daily_driving_hours=10,
    max_daily_amplitude_hours=14,
    break_minutes_per_driving_block=45,
    driving_block_hours_for_break=4.5,
    capped_average_speed_kmh=85,
)


@dataclass(frozen=True, slots=True)
class ComplianceViolation:
    type: ViolationType
    message: str
    actual: float
    limit: float
    unit: Literal["hours", "minutes", "km/h"] = "hours"
    severity: Literal["BLOCKING"] = "BLOCKING"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ComplianceWarning:
    type: WarningType
    message: str
    actual: float
    limit: float
    percent_of_limit: int


@dataclass(frozen=True, slots=True)
class AppliedComplianceRule:
    rule_id: str
    rule_name: str
    threshold: float
    unit: str
    result: RuleOutcome
    actual_value: Optional[float] = None


@dataclass(frozen=True, slots=True)
class AdjustedDurations:
    total_driving_minutes: float
    total_amplitude_minutes: float
    injected_break_minutes: float
    capped_speed_applied: bool
    original_driving_minutes: float
    original_amplitude_minutes: float


@dataclass(frozen=True, slots=True)
class ComplianceValidationInput:
    regulatory_category: RegulatoryCategory
    trip_analysis: TripAnalysis
    pickup_at: datetime
    estimated_dropoff_at: Optional[datetime] = None
    vehicle_category_id: Optional[str] = None
    license_category_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ComplianceValidationResult:
    is_compliant: bool
    regulatory_category: RegulatoryCategory
    violations: tuple[ComplianceViolation, ...]
    warnings: tuple[ComplianceWarning, ...]
    adjusted_durations: AdjustedDurations
    rules_applied: tuple[AppliedComplianceRule, ...]
    rules_used: Optional[RSERules]


@dataclass(frozen=True, slots=True)
class ComplianceSummary:
    status: Literal["OK", "WARNING", "VIOLATION"]
    message: str
    violation_count: int
    warning_count: int


@dataclass(frozen=True, slots=True)
class AlternativeCost:
    total: float
    breakdown: StaffingCostBreakdown
    currency: str = "EUR"


@dataclass(frozen=True, slots=True)
class AlternativeSchedule:
    total_driving_minutes: float
    total_amplitude_minutes: float
    days_required: int
    drivers_required: int
    hotel_nights_required: int


@dataclass(frozen=True, slots=True)
class AlternativeOption:
    type: AlternativeType
    title: str
    description: str
    is_feasible: bool
    additional_cost: AlternativeCost
    adjusted_schedule: AlternativeSchedule
    would_be_compliant: bool
    remaining_violations: tuple[ComplianceViolation, ...] = ()
    feasibility_reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AlternativesGenerationResult:
    has_alternatives: bool
    alternatives: tuple[AlternativeOption, ...]
    original_violations: tuple[ComplianceViolation, ...]
    message: str
    recommended_alternative: Optional[AlternativeType] = None


@dataclass(frozen=True, slots=True)
class StaffingSelectionResult:
    selected_plan: Optional[AlternativeOption]
    is_required: bool
    reason: str
    policy: str
    all_alternatives: tuple[AlternativeOption, ...] = field(default_factory=tuple)
    original_violations: tuple[ComplianceViolation, ...] = field(default_factory=tuple)
