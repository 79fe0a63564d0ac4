"""Costed staffing alternatives for non-compliant heavy-vehicle missions."""

from __future__ import annotations

import math
from typing import Optional

from ...models.domain import AlternativeCostParameters, StaffingCostBreakdown
from ..numeric import round_currency
from .models import (
    DEFAULT_HEAVY_VEHICLE_RSE_RULES,
    AlternativeCost,
    AlternativeOption,
    AlternativeSchedule,
    AlternativesGenerationResult,
    ComplianceValidationResult,
    ComplianceViolation,
    RSERules,
)
from .validator import minutes_to_hours

DEFAULT_ALTERNATIVE_COST_PARAMETERS = AlternativeCostParameters()

DOUBLE_CREW_AMPLITUDE_HOURS = 18
MIN_DAILY_REST_HOURS = 11
MAX_MULTI_DAY_DAYS = 3
STANDARD_WORK_DAY_HOURS = 8

ALTERNATIVE_RSE_LIMITS = {
    "DOUBLE_CREW_AMPLITUDE_HOURS": DOUBLE_CREW_AMPLITUDE_HOURS,
    "MIN_DAILY_REST_HOURS": MIN_DAILY_REST_HOURS,
    "MAX_MULTI_DAY_DAYS": MAX_MULTI_DAY_DAYS,
    "STANDARD_WORK_DAY_HOURS": STANDARD_WORK_DAY_HOURS,
}


def _fmt(value: float) -> str:
    return f"{value:g}"


def _find_violation(result: ComplianceValidationResult, violation_type: str) -> Optional[ComplianceViolation]:
    return next((v for v in result.violations if v.type == violation_type), None)


def _cost(extra_driver: float = 0.0, hotel: float = 0.0, meals: float = 0.0) -> AlternativeCost:
    return AlternativeCost(
        total=round_currency(extra_driver + hotel + meals),
        breakdown=StaffingCostBreakdown(
            extra_driver_cost=round_currency(extra_driver),
            hotel_cost=round_currency(hotel),
            meal_allowance=round_currency(meals),
            other_costs=0.0,
        ),
    )


def _schedule(result: ComplianceValidationResult, days: int, drivers: int, nights: int) -> AlternativeSchedule:
    return AlternativeSchedule(
        total_driving_minutes=result.adjusted_durations.total_driving_minutes,
        total_amplitude_minutes=result.adjusted_durations.total_amplitude_minutes,
        days_required=days,
        drivers_required=drivers,
        hotel_nights_required=nights,
    )


def generate_double_crew_alternative(
    result: ComplianceValidationResult,
    cost_parameters: AlternativeCostParameters = DEFAULT_ALTERNATIVE_COST_PARAMETERS,
    rules: Optional[RSERules] = None,
) -> Optional[AlternativeOption]:
    """A second driver on board extends the amplitude limit; driving time is unaffected."""
    if result.regulatory_category != "HEAVY":
        return None
    amplitude_violation = _find_violation(result, "AMPLITUDE_EXCEEDED")
    if amplitude_violation is None:
        return None

    effective = rules or DEFAULT_HEAVY_VEHICLE_RSE_RULES
    amplitude_hours = amplitude_violation.actual
    feasible = amplitude_hours <= DOUBLE_CREW_AMPLITUDE_HOURS
    extra_driver_cost = max(0.0, amplitude_hours - STANDARD_WORK_DAY_HOURS) * cost_parameters.driver_hourly_cost

    remaining: list[ComplianceViolation] = []
    driving_violation = _find_violation(result, "DRIVING_TIME_EXCEEDED")
    if driving_violation is not None:
        remaining.append(driving_violation)
    if not feasible:
        remaining.append(
            ComplianceViolation(
                type="AMPLITUDE_EXCEEDED",
                message=(
                    f"Amplitude ({_fmt(amplitude_hours)}h) exceeds double crew limit "
                    f"({DOUBLE_CREW_AMPLITUDE_HOURS}h)"
                ),
                actual=amplitude_hours,
                limit=DOUBLE_CREW_AMPLITUDE_HOURS,
            )
        )

    return AlternativeOption(
        type="DOUBLE_CREW",
        title="Double Crew",
        description=(
            f"Add a second driver to extend amplitude limit from "
            f"{_fmt(effective.max_daily_amplitude_hours)}h to {DOUBLE_CREW_AMPLITUDE_HOURS}h"
        ),
        is_feasible=feasible,
        feasibility_reason=None
        if feasible
        else f"Amplitude ({_fmt(amplitude_hours)}h) exceeds {DOUBLE_CREW_AMPLITUDE_HOURS}h limit even with double crew",
        additional_cost=_cost(extra_driver=extra_driver_cost),
        adjusted_schedule=_schedule(result, days=1, drivers=2, nights=0),
        would_be_compliant=feasible and not remaining,
        remaining_violations=tuple(remaining),
    )


def generate_relay_driver_alternative(
    result: ComplianceValidationResult,
    cost_parameters: AlternativeCostParameters = DEFAULT_ALTERNATIVE_COST_PARAMETERS,
    rules: Optional[RSERules] = None,
) -> Optional[AlternativeOption]:
    """Split the driving between two drivers with a handover at the midpoint; amplitude is unaffected."""
    if result.regulatory_category != "HEAVY":
        return None
    driving_violation = _find_violation(result, "DRIVING_TIME_EXCEEDED")
    if driving_violation is None:
        return None

    max_driving_hours = (rules or DEFAULT_HEAVY_VEHICLE_RSE_RULES).max_daily_driving_hours
    per_driver = driving_violation.actual / 2
    feasible = per_driver <= max_driving_hours
    extra_driver_cost = per_driver * cost_parameters.driver_hourly_cost

    remaining: list[ComplianceViolation] = []
    amplitude_violation = _find_violation(result, "AMPLITUDE_EXCEEDED")
    if amplitude_violation is not None:
        remaining.append(amplitude_violation)
    if not feasible:
        remaining.append(
            ComplianceViolation(
                type="DRIVING_TIME_EXCEEDED",
                message=f"Driving time per driver ({per_driver:.2f}h) still exceeds limit ({_fmt(max_driving_hours)}h)",
                actual=per_driver,
                limit=max_driving_hours,
            )
        )

    return AlternativeOption(
        type="RELAY_DRIVER",
        title="Relay Driver",
        description=f"Split driving between two drivers ({per_driver:.1f}h each) with handover at midpoint",
        is_feasible=feasible,
        feasibility_reason=None
        if feasible
        else f"Even split ({per_driver:.2f}h per driver) exceeds {_fmt(max_driving_hours)}h limit",
        additional_cost=_cost(extra_driver=extra_driver_cost),
        adjusted_schedule=_schedule(result, days=1, drivers=2, nights=0),
        would_be_compliant=feasible and not remaining,
        remaining_violations=tuple(remaining),
    )


def generate_multi_day_alternative(
    result: ComplianceValidationResult,
    cost_parameters: AlternativeCostParameters = DEFAULT_ALTERNATIVE_COST_PARAMETERS,
    rules: Optional[RSERules] = None,
) -> Optional[AlternativeOption]:
    """Spread the mission over several days with overnight hotel stops."""
    if result.regulatory_category != "HEAVY" or not result.violations:
        return None

    effective = rules or DEFAULT_HEAVY_VEHICLE_RSE_RULES
    amplitude_hours = minutes_to_hours(result.adjusted_durations.total_amplitude_minutes)
    driving_hours = minutes_to_hours(result.adjusted_durations.total_driving_minutes)
    max_driving = effective.max_daily_driving_hours
    max_amplitude = effective.max_daily_amplitude_hours

    days = max(1, math.ceil(amplitude_hours / max_amplitude))
    feasible = days <= MAX_MULTI_DAY_DAYS
    nights = days - 1

    hotel_cost = nights * cost_parameters.hotel_cost_per_night
    meal_allowance = days * cost_parameters.meal_allowance_per_day
    extra_driver_cost = nights * STANDARD_WORK_DAY_HOURS * cost_parameters.driver_hourly_cost

    remaining: list[ComplianceViolation] = []
    driving_per_day = driving_hours / days
    amplitude_per_day = amplitude_hours / days
    if driving_per_day > max_driving:
        remaining.append(
            ComplianceViolation(
                type="DRIVING_TIME_EXCEEDED",
                message=(
                    f"Daily driving ({driving_per_day:.2f}h) exceeds limit ({_fmt(max_driving)}h) "
                    f"even with {days} days"
                ),
                actual=driving_per_day,
                limit=max_driving,
            )
        )
    if amplitude_per_day > max_amplitude:
        remaining.append(
            ComplianceViolation(
                type="AMPLITUDE_EXCEEDED",
                message=(
                    f"Daily amplitude ({amplitude_per_day:.2f}h) exceeds limit ({_fmt(max_amplitude)}h) "
                    f"even with {days} days"
                ),
                actual=amplitude_per_day,
                limit=max_amplitude,
            )
        )

    plural = "s" if nights > 1 else ""
    return AlternativeOption(
        type="MULTI_DAY",
        title="Multi-Day Mission",
        description=(
            f"Convert to {days}-day mission with {nights} overnight stop{plural} "
            f"and {MIN_DAILY_REST_HOURS}h daily rest"
        ),
        is_feasible=feasible,
        feasibility_reason=None
        if feasible
        else f"Mission requires {days} days, exceeding maximum {MAX_MULTI_DAY_DAYS} days",
        additional_cost=_cost(extra_driver=extra_driver_cost, hotel=hotel_cost, meals=meal_allowance),
        adjusted_schedule=_schedule(result, days=days, drivers=1, nights=nights),
        would_be_compliant=feasible and not remaining,
        remaining_violations=tuple(remaining),
    )


def _sort_key(option: AlternativeOption) -> tuple[bool, bool, float]:
    return (not option.is_feasible, not option.would_be_compliant, option.additional_cost.total)


def generate_alternatives(
    result: ComplianceValidationResult,
    cost_parameters: AlternativeCostParameters = DEFAULT_ALTERNATIVE_COST_PARAMETERS,
    rules: Optional[RSERules] = None,
) -> AlternativesGenerationResult:
    """All applicable alternatives, feasible first, then compliant, then cheapest."""
    if result.is_compliant:
        return AlternativesGenerationResult(
            has_alternatives=False,
            alternatives=(),
            original_violations=(),
            message="Mission is compliant, no alternatives needed",
        )
    if result.regulatory_category != "HEAVY":
        return AlternativesGenerationResult(
            has_alternatives=False,
            alternatives=(),
            original_violations=result.violations,
            message="Alternatives only available for heavy vehicles",
        )

    generators = (generate_double_crew_alternative, generate_relay_driver_alternative, generate_multi_day_alternative)
    alternatives = [
        option for option in (generate(result, cost_parameters, rules) for generate in generators) if option is not None
    ]
    alternatives.sort(key=_sort_key)

    recommended = next((a.type for a in alternatives if a.is_feasible and a.would_be_compliant), None)
    if alternatives:
        plural = "s" if len(alternatives) > 1 else ""
        message = f"{len(alternatives)} alternative{plural} available"
    else:
        message = "No alternatives available for this violation pattern"

    return AlternativesGenerationResult(
        has_alternatives=bool(alternatives),
        alternatives=tuple(alternatives),
        original_violations=result.violations,
        message=message,
        recommended_alternative=recommended,
    )
