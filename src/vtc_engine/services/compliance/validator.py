"""RSE compliance validation for heavy vehicles.

One validation pass runs the whole pipeline: speed capping, driving-time check,
break injection, then the amplitude check. Each rule evaluated is recorded in
``rules_applied``; exceeding a limit yields a violation in the result, it is
never raised.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ...errors import InvalidInputError
from ...models.domain import Segment, TripAnalysis
from ..numeric import round_to
from .models import (
    DEFAULT_HEAVY_VEHICLE_RSE_RULES,
    AdjustedDurations,
    AppliedComplianceRule,
    ComplianceSummary,
    ComplianceValidationInput,
    ComplianceValidationResult,
    ComplianceViolation,
    ComplianceWarning,
    RSERules,
)

WARNING_THRESHOLD = 0.9


def minutes_to_hours(minutes: float) -> float:
    return round_to(minutes / 60, 2)


def hours_to_minutes(hours: float) -> float:
    return hours * 60


def _fmt(value: float) -> str:
    return f"{value:g}"


def calculate_total_driving_minutes(trip_analysis: TripAnalysis) -> float:
    """Approach + service + return durations."""
    return round_to(sum(segment.duration_minutes for segment in trip_analysis.segments.present()), 2)


def calculate_total_amplitude_minutes(
    trip_analysis: TripAnalysis,
    pickup_at: datetime,
    estimated_dropoff_at: Optional[datetime] = None,
) -> float:
    """Working day span in minutes.

    When an explicit dropoff time is known it wins: (dropoff - pickup) plus the
    approach and return legs. Otherwise the segment durations are summed.
    """
    if estimated_dropoff_at is not None:
        segments = trip_analysis.segments
        approach = segments.approach.duration_minutes if segments.approach else 0.0
        return_ = segments.return_.duration_minutes if segments.return_ else 0.0
        elapsed = (estimated_dropoff_at - pickup_at).total_seconds() / 60
        return round_to(elapsed + approach + return_, 2)
    return calculate_total_driving_minutes(trip_analysis)


def calculate_required_breaks(driving_minutes: float, driving_block_hours_for_break: float) -> int:
    block_minutes = driving_block_hours_for_break * 60
    if block_minutes <= 0:
        raise InvalidInputError("Driving block length must be positive.")
    if driving_minutes <= block_minutes:
        return 0
    return math.floor(driving_minutes / block_minutes)


def calculate_injected_break_minutes(driving_minutes: float, rules: RSERules) -> float:
    return calculate_required_breaks(driving_minutes, rules.driving_block_hours_for_break) * rules.break_minutes_per_driving_block


def recalculate_with_capped_speed(
    distance_km: float,
    duration_minutes: float,
    capped_speed_kmh: float,
) -> tuple[float, bool]:
    """Return (duration, was_capped): the duration is stretched when the implied speed exceeds the cap."""
    if capped_speed_kmh <= 0:
        raise InvalidInputError(f"Capped speed must be positive (got {capped_speed_kmh} km/h).")
    if distance_km <= 0 or duration_minutes <= 0:
        return duration_minutes, False

    implied_speed = distance_km / duration_minutes * 60
    if implied_speed > capped_speed_kmh:
        return round_to(distance_km / capped_speed_kmh * 60, 2), True
    return duration_minutes, False


def _cap_segment(segment: Optional[Segment], capped_speed_kmh: float) -> tuple[Optional[Segment], bool]:
    if segment is None:
        return None, False
    duration, capped = recalculate_with_capped_speed(segment.distance_km, segment.duration_minutes, capped_speed_kmh)
    if not capped:
        return segment, False
    return replace(segment, duration_minutes=duration), True


def apply_speed_capping(trip_analysis: TripAnalysis, capped_speed_kmh: float) -> tuple[TripAnalysis, bool]:
    """Return a copy of the analysis with every over-speed segment re-timed at the cap."""
    approach, approach_capped = _cap_segment(trip_analysis.segments.approach, capped_speed_kmh)
    service, service_capped = _cap_segment(trip_analysis.segments.service, capped_speed_kmh)
    return_, return_capped = _cap_segment(trip_analysis.segments.return_, capped_speed_kmh)

    segments = replace(trip_analysis.segments, approach=approach, service=service, return_=return_)
    total = round_to(sum(segment.duration_minutes for segment in segments.present()), 2)
    adjusted = replace(trip_analysis, segments=segments, total_duration_minutes=total)
    return adjusted, approach_capped or service_capped or return_capped


def _check_limit(
    actual_minutes: float,
    limit_hours: float,
    rule_id: str,
    rule_name: str,
    violation_type: str,
    violation_message: str,
    warning_message: str,
    violations: list[ComplianceViolation],
    warnings: list[ComplianceWarning],
    rules_applied: list[AppliedComplianceRule],
) -> None:
    actual_hours = minutes_to_hours(actual_minutes)
    limit_minutes = hours_to_minutes(limit_hours)

    if actual_minutes > limit_minutes:
        violations.append(
            ComplianceViolation(
                type=violation_type,
                message=violation_message.format(actual=_fmt(actual_hours), limit=_fmt(limit_hours)),
                actual=actual_hours,
                limit=limit_hours,
            )
        )
        outcome = "FAIL"
    else:
        share = actual_minutes / limit_minutes if limit_minutes > 0 else 0.0
        if share >= WARNING_THRESHOLD:
            warnings.append(
                ComplianceWarning(
                    type="APPROACHING_LIMIT",
                    message=warning_message.format(actual=_fmt(actual_hours), limit=_fmt(limit_hours)),
                    actual=actual_hours,
                    limit=limit_hours,
                    percent_of_limit=int(round_to(share * 100, 0)),
                )
            )
            outcome = "WARNING"
        else:
            outcome = "PASS"

    rules_applied.append(
        AppliedComplianceRule(
            rule_id=rule_id,
            rule_name=rule_name,
            threshold=limit_hours,
            unit="hours",
            result=outcome,
            actual_value=actual_hours,
        )
    )


def validate_heavy_vehicle_compliance(
    validation_input: ComplianceValidationInput,
    rules: Optional[RSERules] = None,
) -> ComplianceValidationResult:
    """Validate a trip against RSE rules; missing rules fall back to the default heavy-vehicle set."""
    trip = validation_input.trip_analysis
    original_driving = calculate_total_driving_minutes(trip)
    original_amplitude = calculate_total_amplitude_minutes(
        trip, validation_input.pickup_at, validation_input.estimated_dropoff_at
    )

    if validation_input.regulatory_category != "HEAVY":
        return ComplianceValidationResult(
            is_compliant=True,
            regulatory_category=validation_input.regulatory_category,
            violations=(),
            warnings=(),
            adjusted_durations=AdjustedDurations(
                total_driving_minutes=original_driving,
                total_amplitude_minutes=original_amplitude,
                injected_break_minutes=0,
                capped_speed_applied=False,
                original_driving_minutes=original_driving,
                original_amplitude_minutes=original_amplitude,
            ),
            rules_applied=(),
            rules_used=None,
        )

    effective = rules or DEFAULT_HEAVY_VEHICLE_RSE_RULES
    category_id = effective.license_category_id
    violations: list[ComplianceViolation] = []
    warnings: list[ComplianceWarning] = []
    rules_applied: list[AppliedComplianceRule] = []

    adjusted_trip = trip
    capped_speed_applied = False
    if effective.capped_average_speed_kmh:
        adjusted_trip, capped_speed_applied = apply_speed_capping(trip, effective.capped_average_speed_kmh)
        rules_applied.append(
            AppliedComplianceRule(
                rule_id=f"speed-cap-{category_id}",
                rule_name="Capped Average Speed",
                threshold=effective.capped_average_speed_kmh,
                unit="km/h",
                result="PASS",
                actual_value=effective.capped_average_speed_kmh if capped_speed_applied else None,
            )
        )

    driving_minutes = calculate_total_driving_minutes(adjusted_trip)
    _check_limit(
        driving_minutes,
        effective.max_daily_driving_hours,
        f"driving-time-{category_id}",
        "Maximum Daily Driving Time",
        "DRIVING_TIME_EXCEEDED",
        "Total driving time ({actual}h) exceeds maximum allowed ({limit}h)",
        "Driving time ({actual}h) is approaching the limit ({limit}h)",
        violations,
        warnings,
        rules_applied,
    )

    injected_breaks = calculate_injected_break_minutes(driving_minutes, effective)
    if injected_breaks > 0:
        rules_applied.append(
            AppliedComplianceRule(
                rule_id=f"breaks-{category_id}",
                rule_name="Mandatory Breaks",
                threshold=effective.break_minutes_per_driving_block,
                unit="minutes per block",
                result="PASS",
                actual_value=injected_breaks,
            )
        )

    amplitude_minutes = (
        calculate_total_amplitude_minutes(
            adjusted_trip, validation_input.pickup_at, validation_input.estimated_dropoff_at
        )
        + injected_breaks
    )
    _check_limit(
        amplitude_minutes,
        effective.max_daily_amplitude_hours,
        f"amplitude-{category_id}",
        "Maximum Daily Amplitude",
        "AMPLITUDE_EXCEEDED",
        "Total work amplitude ({actual}h) exceeds maximum allowed ({limit}h)",
        "Work amplitude ({actual}h) is approaching the limit ({limit}h)",
        violations,
        warnings,
        rules_applied,
    )

    return ComplianceValidationResult(
        is_compliant=not violations,
        regulatory_category=validation_input.regulatory_category,
        violations=tuple(violations),
        warnings=tuple(warnings),
        adjusted_durations=AdjustedDurations(
            total_driving_minutes=driving_minutes,
            total_amplitude_minutes=amplitude_minutes,
            injected_break_minutes=injected_breaks,
            capped_speed_applied=capped_speed_applied,
            original_driving_minutes=original_driving,
            original_amplitude_minutes=original_amplitude,
        ),
        rules_applied=tuple(rules_applied),
        rules_used=effective,
    )


def is_heavy_vehicle_trip_compliant(
    validation_input: ComplianceValidationInput,
    rules: Optional[RSERules] = None,
) -> bool:
    return validate_heavy_vehicle_compliance(validation_input, rules).is_compliant


def get_compliance_summary(result: ComplianceValidationResult) -> ComplianceSummary:
    if result.violations:
        return ComplianceSummary(
            status="VIOLATION",
            message=result.violations[0].message,
            violation_count=len(result.violations),
            warning_count=len(result.warnings),
        )
    if result.warnings:
        return ComplianceSummary(
            status="WARNING",
            message=result.warnings[0].message,
            violation_count=0,
            warning_count=len(result.warnings),
        )
    return ComplianceSummary(status="OK", message="All compliance checks passed", violation_count=0, warning_count=0)
