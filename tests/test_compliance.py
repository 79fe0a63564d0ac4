from datetime import datetime

import pytest

from vtc_engine.errors import InvalidInputError
from vtc_engine.models.domain import OrganizationPricingSettings, StaffingCostBreakdown, TripInput
from vtc_engine.services.compliance import (
    generate_alternatives,
    get_compliance_summary,
    is_heavy_vehicle_trip_compliant,
    select_best_staffing_plan,
    validate_heavy_vehicle_compliance,
)
from vtc_engine.services.compliance.models import (
    AlternativeCost,
    AlternativeOption,
    AlternativeSchedule,
    AlternativesGenerationResult,
    ComplianceValidationInput,
    RSERules,
)
from vtc_engine.services.compliance.validator import calculate_required_breaks, recalculate_with_capped_speed
from vtc_engine.services.pricing.engine import compute_trip_analysis

PICKUP = datetime(2025, 3, 12, 8, 0)


def _input(
    service_km: float,
    service_minutes: float,
    category: str = "HEAVY",
    approach: tuple[float, float] | None = None,
    return_leg: tuple[float, float] | None = None,
    dropoff_at: datetime | None = None,
) -> ComplianceValidationInput:
    trip = TripInput(
        service_distance_km=service_km,
        service_duration_minutes=service_minutes,
        approach_distance_km=approach[0] if approach else None,
        approach_duration_minutes=approach[1] if approach else None,
        return_distance_km=return_leg[0] if return_leg else None,
        return_duration_minutes=return_leg[1] if return_leg else None,
    )
    return ComplianceValidationInput(
        regulatory_category=category,
        trip_analysis=compute_trip_analysis(trip, OrganizationPricingSettings()),
        pickup_at=PICKUP,
        estimated_dropoff_at=dropoff_at,
    )


def _amplitude_violation_input() -> ComplianceValidationInput:
    # 7h of driving, but a 12h client mission plus 2h of deadhead and a 45 min break
    return _input(250, 300, approach=(50, 60), return_leg=(50, 60), dropoff_at=datetime(2025, 3, 12, 20, 0))


def _option(option_type: str, total: float, days: int = 1, feasible: bool = True, compliant: bool = True):
    return AlternativeOption(
        type=option_type,
        title=option_type.replace("_", " ").title(),
        description="",
        is_feasible=feasible,
        additional_cost=AlternativeCost(total=total, breakdown=StaffingCostBreakdown(extra_driver_cost=total)),
        adjusted_schedule=AlternativeSchedule(
            total_driving_minutes=600,
            total_amplitude_minutes=700,
            days_required=days,
            drivers_required=2 if days == 1 else 1,
            hotel_nights_required=days - 1,
        ),
        would_be_compliant=compliant,
    )


def _alternatives(*options: AlternativeOption) -> AlternativesGenerationResult:
    return AlternativesGenerationResult(
        has_alternatives=bool(options),
        alternatives=tuple(options),
        original_violations=(),
        message="",
    )


def test_light_vehicles_bypass_rse_rules():
    result = validate_heavy_vehicle_compliance(_input(1500, 1200, category="LIGHT"))

    assert result.is_compliant
    assert result.rules_used is None
    assert result.rules_applied == ()


def test_driving_time_at_limit_passes_with_warning():
    result = validate_heavy_vehicle_compliance(_input(600, 600))

    assert result.is_compliant
    assert [w.type for w in result.warnings] == ["APPROACHING_LIMIT"]
    assert result.adjusted_durations.injected_break_minutes == 90
    assert result.adjusted_durations.total_amplitude_minutes == 690
    assert result.rules_used.license_category_id == "default"


def test_one_minute_over_driving_limit_fails():
    result = validate_heavy_vehicle_compliance(_input(500, 601))

    assert not result.is_compliant
    violation = result.violations[0]
    assert violation.type == "DRIVING_TIME_EXCEEDED"
    assert violation.actual == 10.02
    assert violation.message == "Total driving time (10.02h) exceeds maximum allowed (10h)"
    assert not is_heavy_vehicle_trip_compliant(_input(500, 601))


@pytest.mark.parametrize("driving_minutes, expected", [(270, 0), (300, 1), (600, 2)])
def test_required_breaks(driving_minutes, expected):
    assert calculate_required_breaks(driving_minutes, 4.5) == expected


def test_required_breaks_rejects_empty_block():
    with pytest.raises(InvalidInputError):
        calculate_required_breaks(300, 0)


def test_speed_cap_stretches_fast_segments():
    assert recalculate_with_capped_speed(170, 60, 85) == (120, True)
    assert recalculate_with_capped_speed(80, 60, 85) == (60, False)

    result = validate_heavy_vehicle_compliance(_input(170, 60))

    assert result.adjusted_durations.capped_speed_applied
    assert result.adjusted_durations.total_driving_minutes == 120
    assert result.adjusted_durations.original_driving_minutes == 60


def test_custom_rules_are_used():
    rules = RSERules(
        license_category_id="d",
        license_category_code="D",
        max_daily_driving_hours=9,
        max_daily_amplitude_hours=13,
        break_minutes_per_driving_block=30,
        driving_block_hours_for_break=4,
    )

    result = validate_heavy_vehicle_compliance(_input(500, 560), rules)

    assert [v.type for v in result.violations] == ["DRIVING_TIME_EXCEEDED"]
    assert result.adjusted_durations.injected_break_minutes == 60
    assert result.rules_applied[0].rule_id == "driving-time-d"


def test_amplitude_uses_explicit_dropoff_time():
    result = validate_heavy_vehicle_compliance(_amplitude_violation_input())

    assert [v.type for v in result.violations] == ["AMPLITUDE_EXCEEDED"]
    # 12h mission + 2h deadhead + one 45 min break
    assert result.adjusted_durations.total_amplitude_minutes == 885
    assert result.violations[0].actual == 14.75

    summary = get_compliance_summary(result)
    assert summary.status == "VIOLATION"
    assert summary.violation_count == 1


def test_compliant_summary():
    summary = get_compliance_summary(validate_heavy_vehicle_compliance(_input(100, 90)))

    assert summary.status == "OK"
    assert summary.message == "All compliance checks passed"


def test_alternatives_for_amplitude_violation():
    result = generate_alternatives(validate_heavy_vehicle_compliance(_amplitude_violation_input()))

    assert [a.type for a in result.alternatives] == ["DOUBLE_CREW", "MULTI_DAY"]
    double_crew, multi_day = result.alternatives
    assert double_crew.additional_cost.total == 168.75
    assert double_crew.would_be_compliant
    assert multi_day.adjusted_schedule.days_required == 2
    # 1 hotel night + 2 meal allowances + 8h of driver time for the extra day
    assert multi_day.additional_cost.total == 360.0
    assert result.recommended_alternative == "DOUBLE_CREW"
    assert result.message == "2 alternatives available"


def test_alternatives_for_driving_violation_use_relay():
    result = generate_alternatives(validate_heavy_vehicle_compliance(_input(600, 700)))

    assert [a.type for a in result.alternatives] == ["RELAY_DRIVER", "MULTI_DAY"]
    relay, multi_day = result.alternatives
    assert relay.additional_cost.total == pytest.approx(145.875, abs=0.01)
    assert relay.adjusted_schedule.drivers_required == 2
    assert not multi_day.would_be_compliant
    assert result.recommended_alternative == "RELAY_DRIVER"


def test_compliant_trip_needs_no_alternatives():
    result = generate_alternatives(validate_heavy_vehicle_compliance(_input(100, 90)))

    assert not result.has_alternatives
    assert result.message == "Mission is compliant, no alternatives needed"


def test_cheapest_policy_selects_lowest_cost():
    selection = select_best_staffing_plan(_alternatives(_option("DOUBLE_CREW", 300), _option("RELAY_DRIVER", 200)))

    assert selection.selected_plan.type == "RELAY_DRIVER"
    assert selection.is_required
    assert selection.reason == "Selected Relay Driver: lowest cost option (200 EUR)"


def test_fastest_and_internal_policies():
    options = _alternatives(_option("MULTI_DAY", 100, days=2), _option("RELAY_DRIVER", 200))

    assert select_best_staffing_plan(options, "FASTEST").selected_plan.type == "RELAY_DRIVER"
    assert select_best_staffing_plan(options, "PREFER_INTERNAL").selected_plan.type == "MULTI_DAY"


def test_unknown_policy_falls_back_to_cheapest():
    selection = select_best_staffing_plan(
        _alternatives(_option("DOUBLE_CREW", 300), _option("RELAY_DRIVER", 200)), "WHATEVER"
    )

    assert selection.policy == "CHEAPEST"
    assert selection.selected_plan.type == "RELAY_DRIVER"


def test_no_feasible_plan_requires_manual_intervention():
    selection = select_best_staffing_plan(
        _alternatives(_option("DOUBLE_CREW", 300, feasible=False), _option("RELAY_DRIVER", 200, compliant=False))
    )

    assert selection.selected_plan is None
    assert selection.is_required
    assert "manual intervention" in selection.reason


def test_no_alternatives_means_no_plan_required():
    selection = select_best_staffing_plan(_alternatives())

    assert selection.selected_plan is None
    assert not selection.is_required
    assert selection.reason == "No staffing plan required."
