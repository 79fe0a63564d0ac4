"""Price multipliers applied on top of the base price.

Every function here is pure: it takes the current price plus its inputs and
returns the adjusted price together with the ``AppliedRule`` describing the
adjustment (or ``None`` when nothing changed). Prices are rounded to cents at
every step, so chaining functions accumulates rounding exactly like a quote
built by hand would.

Night and weekend rules are evaluated in the organization's local time
(``settings.pricing_timezone``); naive datetimes are taken as already local.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import AppliedRule, VehicleCategory, ZoneData
from ..numeric import round_currency, round_to
from .models import (
    AdvancedRate,
    DifficultyScoreSource,
    MultiplierContext,
    MultiplierEvaluation,
    MultiplierResult,
    ResolvedDifficultyScore,
    RoundTripResult,
    SeasonalMultiplier,
    WeightedNightRateResult,
    ZoneMultiplierResult,
)

DEFAULT_DIFFICULTY_MULTIPLIERS: dict[int, float] = {1: 1.00, 2: 1.02, 3: 1.05, 4: 1.08, 5: 1.10}
DEFAULT_WEEKEND_DAYS = "0,6"
ZONE_AGGREGATION_STRATEGIES = ("MAX", "PICKUP_ONLY", "DROPOFF_ONLY", "AVERAGE")


def _fmt(value: float) -> str:
    return f"{value:g}"


def _local(moment: datetime) -> datetime:
    tz = ZoneInfo(settings.pricing_timezone)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _parse_time_to_minutes(value: str) -> int:
    hours, _, minutes = value.partition(":")
    return int(hours or 0) * 60 + int(minutes or 0)


def _js_day_of_week(moment: datetime) -> int:
    # Sunday = 0 ... Saturday = 6
    return (moment.weekday() + 1) % 7


def matches_vehicle_category(
    category_id: Optional[str],
    category_ids: Optional[Sequence[str]],
    quote_category_id: Optional[str],
) -> bool:
    """Whether a category-scoped adjustment applies to the quoted category."""
    if not quote_category_id:
        return True
    if category_ids:
        return quote_category_id in category_ids
    if not category_id:
        return True
    return category_id == quote_category_id


# ---------------------------------------------------------------------------
# Time ranges
# ---------------------------------------------------------------------------


def is_time_in_range(hours: int, minutes: int, start_time: str, end_time: str) -> bool:
    """Start-inclusive, end-exclusive check that also handles overnight ranges (22:00-06:00)."""
    current = hours * 60 + minutes
    start = _parse_time_to_minutes(start_time)
    end = _parse_time_to_minutes(end_time)
    if start > end:
        return current >= start or current < end
    return start <= current < end


def is_day_in_range(day_of_week: int, days_of_week: str) -> bool:
    days = {int(day.strip()) for day in days_of_week.split(",") if day.strip()}
    return day_of_week in days


def is_night_time(pickup_at: datetime, start_time: str, end_time: str) -> bool:
    local = _local(pickup_at)
    return is_time_in_range(local.hour, local.minute, start_time, end_time)


def is_weekend(pickup_at: datetime, days_of_week: Optional[str] = None) -> bool:
    return is_day_in_range(_js_day_of_week(_local(pickup_at)), days_of_week or DEFAULT_WEEKEND_DAYS)


def is_within_date_range(pickup_at: datetime, multiplier: SeasonalMultiplier) -> bool:
    """The end date is inclusive: the whole last day is covered."""
    return multiplier.start_date <= _local(pickup_at).date() <= multiplier.end_date


# ---------------------------------------------------------------------------
# Weighted night rate
# ---------------------------------------------------------------------------


def _overlap(range_start: int, range_end: int, seg_start: int, seg_end: int) -> int:
    return max(0, min(range_end, seg_end) - max(range_start, seg_start))


def _minutes_between(start: datetime, end: datetime) -> int:
    return int(round_to((end - start).total_seconds() / 60, 0))


def calculate_night_overlap_minutes(
    pickup_at: datetime,
    estimated_end_at: datetime,
    night_start: str,
    night_end: str,
) -> int:
    """Minutes of the trip spent inside the night window, walking each local calendar day."""
    start = _local(pickup_at)
    end = _local(estimated_end_at)
    if end <= start:
        return 0

    trip_minutes = _minutes_between(start, end)
    night_start_min = _parse_time_to_minutes(night_start)
    night_end_min = _parse_time_to_minutes(night_end)
    overnight = night_start_min > night_end_min

    total = 0
    day = start.date()
    while day <= end.date():
        day_start = datetime.combine(day, time.min, tzinfo=start.tzinfo)
        day_end = day_start + timedelta(days=1)
        on_day_start = max(start, day_start)
        on_day_end = min(end, day_end)
        day += timedelta(days=1)
        if on_day_start >= on_day_end:
            continue

        seg_start = _minutes_between(day_start, on_day_start)
        seg_end = _minutes_between(day_start, on_day_end)
        if overnight:
            total += _overlap(night_start_min, 1440, seg_start, seg_end)
            total += _overlap(0, night_end_min, seg_start, seg_end)
        else:
            total += _overlap(night_start_min, night_end_min, seg_start, seg_end)

    return min(total, trip_minutes)


def calculate_weighted_night_rate(
    base_price: float,
    pickup_at: datetime,
    estimated_end_at: Optional[datetime],
    rate: AdvancedRate,
) -> Optional[WeightedNightRateResult]:
    """Pro-rate a night rate by the share of the trip that falls inside the night window.

    Returns ``None`` when the trip end is unknown or not after the pickup, in
    which case the plain pickup-time check applies instead.
    """
    if estimated_end_at is None or not rate.start_time or not rate.end_time:
        return None

    total_minutes = _minutes_between(_local(pickup_at), _local(estimated_end_at))
    if total_minutes <= 0:
        return None

    night_minutes = calculate_night_overlap_minutes(pickup_at, estimated_end_at, rate.start_time, rate.end_time)
    if night_minutes == 0:
        return WeightedNightRateResult(
            adjusted_price=base_price,
            night_minutes=0,
            total_minutes=total_minutes,
            night_percentage=0.0,
            base_adjustment=rate.value,
            effective_adjustment=0.0,
        )

    fraction = night_minutes / total_minutes
    effective = rate.value * fraction
    if rate.adjustment_type == "PERCENTAGE":
        adjusted = round_currency(base_price * (1 + effective / 100))
    else:
        adjusted = round_currency(base_price + effective)

    return WeightedNightRateResult(
        adjusted_price=adjusted,
        night_minutes=night_minutes,
        total_minutes=total_minutes,
        night_percentage=round_to(fraction * 100, 2),
        base_adjustment=rate.value,
        effective_adjustment=round_currency(effective),
    )


# ---------------------------------------------------------------------------
# Advanced rates and seasonal multipliers
# ---------------------------------------------------------------------------


def evaluate_advanced_rate(rate: AdvancedRate, context: MultiplierContext) -> bool:
    if not rate.is_active:
        return False
    if not matches_vehicle_category(rate.vehicle_category_id, rate.vehicle_category_ids, context.vehicle_category_id):
        return False

    match rate.applies_to:
        case "NIGHT":
            if context.pickup_at is None or not rate.start_time or not rate.end_time:
                return False
            return is_night_time(context.pickup_at, rate.start_time, rate.end_time)
        case "WEEKEND":
            if context.pickup_at is None:
                return False
            return is_weekend(context.pickup_at, rate.days_of_week)
        case _:
            return False


def apply_advanced_rate_adjustment(price: float, rate: AdvancedRate) -> float:
    if rate.adjustment_type == "PERCENTAGE":
        return round_currency(price * (1 + rate.value / 100))
    return round_currency(price + rate.value)


def evaluate_advanced_rates(
    base_price: float,
    context: MultiplierContext,
    rates: Sequence[AdvancedRate],
) -> MultiplierEvaluation:
    applied: list[AppliedRule] = []
    current = base_price

    for rate in sorted(rates, key=lambda r: -r.priority):
        if (
            rate.applies_to == "NIGHT"
            and rate.is_active
            and context.pickup_at is not None
            and matches_vehicle_category(rate.vehicle_category_id, rate.vehicle_category_ids, context.vehicle_category_id)
        ):
            weighted = calculate_weighted_night_rate(current, context.pickup_at, context.estimated_end_at, rate)
            if weighted is not None:
                if weighted.night_minutes > 0:
                    before = current
                    current = weighted.adjusted_price
                    applied.append(
                        AppliedRule(
                            type="ADVANCED_RATE",
                            description=(
                                f"Applied NIGHT rate: {rate.name} "
                                f"({int(round_to(weighted.night_percentage, 0))}% of trip)"
                            ),
                            price_before=before,
                            price_after=current,
                            amount=weighted.effective_adjustment,
                            details={
                                "rule_id": rate.id,
                                "rule_name": rate.name,
                                "adjustment_type": rate.adjustment_type,
                                "night_period_start": rate.start_time,
                                "night_period_end": rate.end_time,
                                "night_minutes": weighted.night_minutes,
                                "total_minutes": weighted.total_minutes,
                                "night_percentage": weighted.night_percentage,
                                "base_adjustment": weighted.base_adjustment,
                                "effective_adjustment": weighted.effective_adjustment,
                            },
                        )
                    )
                continue

        if evaluate_advanced_rate(rate, context):
            before = current
            current = apply_advanced_rate_adjustment(current, rate)
            applied.append(
                AppliedRule(
                    type="ADVANCED_RATE",
                    description=f"Applied {rate.applies_to} rate: {rate.name}",
                    price_before=before,
                    price_after=current,
                    amount=rate.value,
                    details={
                        "rule_id": rate.id,
                        "rule_name": rate.name,
                        "adjustment_type": rate.adjustment_type,
                    },
                )
            )

    return MultiplierEvaluation(adjusted_price=current, applied_rules=tuple(applied))


def evaluate_seasonal_multiplier(
    multiplier: SeasonalMultiplier,
    pickup_at: datetime,
    vehicle_category_id: Optional[str] = None,
) -> bool:
    if not multiplier.is_active:
        return False
    if not matches_vehicle_category(multiplier.vehicle_category_id, multiplier.vehicle_category_ids, vehicle_category_id):
        return False
    return is_within_date_range(pickup_at, multiplier)


def evaluate_seasonal_multipliers(
    price: float,
    pickup_at: Optional[datetime],
    multipliers: Sequence[SeasonalMultiplier],
    vehicle_category_id: Optional[str] = None,
) -> MultiplierEvaluation:
    if pickup_at is None:
        return MultiplierEvaluation(adjusted_price=price)

    applied: list[AppliedRule] = []
    current = price
    for multiplier in sorted(multipliers, key=lambda m: -m.priority):
        if not evaluate_seasonal_multiplier(multiplier, pickup_at, vehicle_category_id):
            continue
        before = current
        current = round_currency(current * multiplier.multiplier)
        applied.append(
            AppliedRule(
                type="SEASONAL_MULTIPLIER",
                description=f"Applied seasonal multiplier: {multiplier.name}",
                price_before=before,
                price_after=current,
                multiplier=multiplier.multiplier,
                details={"rule_id": multiplier.id, "rule_name": multiplier.name},
            )
        )

    return MultiplierEvaluation(adjusted_price=current, applied_rules=tuple(applied))


def apply_all_multipliers(
    base_price: float,
    context: MultiplierContext,
    advanced_rates: Sequence[AdvancedRate],
    seasonal_multipliers: Sequence[SeasonalMultiplier],
) -> MultiplierEvaluation:
    """Advanced rates first, then seasonal multipliers on the result."""
    advanced = evaluate_advanced_rates(base_price, context, advanced_rates)
    seasonal = evaluate_seasonal_multipliers(
        advanced.adjusted_price, context.pickup_at, seasonal_multipliers, context.vehicle_category_id
    )
    return MultiplierEvaluation(
        adjusted_price=seasonal.adjusted_price,
        applied_rules=advanced.applied_rules + seasonal.applied_rules,
    )


# ---------------------------------------------------------------------------
# Vehicle category, zones, round trip
# ---------------------------------------------------------------------------


def apply_vehicle_category_multiplier(
    base_price: float,
    vehicle_category: Optional[VehicleCategory],
    used_category_rates: bool = False,
) -> MultiplierResult:
    if vehicle_category is None:
        return MultiplierResult(adjusted_price=base_price)

    details = {
        "category_id": vehicle_category.id,
        "category_code": vehicle_category.code,
        "category_name": vehicle_category.name,
    }

    if used_category_rates:
        return MultiplierResult(
            adjusted_price=base_price,
            applied_rule=AppliedRule(
                type="VEHICLE_CATEGORY_MULTIPLIER",
                description=(
                    f"Category multiplier skipped: {vehicle_category.name} uses category-specific rates "
                    "(premium already included)"
                ),
                price_before=base_price,
                price_after=base_price,
                multiplier=1.0,
                details={**details, "skipped_reason": "CATEGORY_RATES_USED"},
            ),
        )

    multiplier = vehicle_category.price_multiplier
    if multiplier == 1.0:
        return MultiplierResult(adjusted_price=base_price)

    adjusted = round_currency(base_price * multiplier)
    return MultiplierResult(
        adjusted_price=adjusted,
        applied_rule=AppliedRule(
            type="VEHICLE_CATEGORY_MULTIPLIER",
            description=f"Vehicle category multiplier applied: {vehicle_category.name} ({_fmt(multiplier)}×)",
            price_before=base_price,
            price_after=adjusted,
            multiplier=multiplier,
            details=details,
        ),
    )


def calculate_effective_zone_multiplier(
    pickup_multiplier: float,
    dropoff_multiplier: float,
    strategy: Optional[str] = None,
) -> tuple[float, str]:
    """Aggregate pickup/dropoff multipliers; returns the multiplier and its source (pickup, dropoff or both)."""
    match strategy:
        case "PICKUP_ONLY":
            return pickup_multiplier, "pickup"
        case "DROPOFF_ONLY":
            return dropoff_multiplier, "dropoff"
        case "AVERAGE":
            return round_to((pickup_multiplier + dropoff_multiplier) / 2, 3), "both"
        case _:
            source = "pickup" if pickup_multiplier >= dropoff_multiplier else "dropoff"
            return max(pickup_multiplier, dropoff_multiplier), source


def apply_zone_multiplier(
    base_price: float,
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
    strategy: Optional[str] = None,
) -> ZoneMultiplierResult:
    """Apply the aggregated zone multiplier. A rule is always produced, even without adjustment."""
    pickup_multiplier = pickup_zone.price_multiplier if pickup_zone else 1.0
    dropoff_multiplier = dropoff_zone.price_multiplier if dropoff_zone else 1.0
    multiplier, source = calculate_effective_zone_multiplier(pickup_multiplier, dropoff_multiplier, strategy)
    effective_strategy = strategy if strategy in ZONE_AGGREGATION_STRATEGIES else "MAX"
    adjusted = round_currency(base_price * multiplier)

    pickup_code = pickup_zone.code if pickup_zone else "UNKNOWN"
    dropoff_code = dropoff_zone.code if dropoff_zone else "UNKNOWN"
    pickup_name = pickup_zone.name if pickup_zone else "Unknown"
    dropoff_name = dropoff_zone.name if dropoff_zone else "Unknown"

    if multiplier == 1.0:
        description = f"Zone multiplier: no adjustment ({pickup_code} → {dropoff_code})"
    elif source == "both":
        description = (
            f"Zone multiplier applied: average of {pickup_name} ({_fmt(pickup_multiplier)}×) and "
            f"{dropoff_name} ({_fmt(dropoff_multiplier)}×) = {_fmt(multiplier)}×"
        )
    else:
        source_name = pickup_name if source == "pickup" else dropoff_name
        description = f"Zone multiplier applied: {source_name} ({_fmt(multiplier)}×) [{effective_strategy}]"

    return ZoneMultiplierResult(
        adjusted_price=adjusted,
        applied_multiplier=multiplier,
        applied_rule=AppliedRule(
            type="ZONE_MULTIPLIER",
            description=description,
            price_before=base_price,
            price_after=adjusted,
            multiplier=multiplier,
            details={
                "strategy": effective_strategy,
                "source": source,
                "pickup_zone": {"code": pickup_code, "name": pickup_name, "multiplier": pickup_multiplier},
                "dropoff_zone": {"code": dropoff_code, "name": dropoff_name, "multiplier": dropoff_multiplier},
            },
        ),
    )


def apply_round_trip_multiplier(price: float, internal_cost: float, is_round_trip: bool) -> RoundTripResult:
    if not is_round_trip:
        return RoundTripResult(adjusted_price=price, adjusted_internal_cost=internal_cost)

    adjusted_price = round_currency(price * 2)
    adjusted_cost = round_currency(internal_cost * 2)
    return RoundTripResult(
        adjusted_price=adjusted_price,
        adjusted_internal_cost=adjusted_cost,
        applied_rule=AppliedRule(
            type="ROUND_TRIP",
            description="Round trip multiplier applied (×2)",
            price_before=price,
            price_after=adjusted_price,
            multiplier=2.0,
            details={"internal_cost_before": internal_cost, "internal_cost_after": adjusted_cost},
        ),
    )


# ---------------------------------------------------------------------------
# Client difficulty
# ---------------------------------------------------------------------------


def _valid_score(score: Optional[int]) -> bool:
    return score is not None and 1 <= score <= 5


def resolve_difficulty_score(
    end_customer_score: Optional[int],
    contact_score: Optional[int],
) -> ResolvedDifficultyScore:
    """End-customer score wins over the contact score; scores outside 1-5 are ignored."""
    if _valid_score(end_customer_score):
        return ResolvedDifficultyScore(score=end_customer_score, source="END_CUSTOMER")
    if _valid_score(contact_score):
        return ResolvedDifficultyScore(score=contact_score, source="CONTACT")
    return ResolvedDifficultyScore(score=None, source="NONE")


def apply_client_difficulty_multiplier(
    price: float,
    difficulty_score: Optional[int],
    configured_multipliers: Optional[Mapping[str, float]] = None,
    score_source: Optional[DifficultyScoreSource] = None,
) -> MultiplierResult:
    if not _valid_score(difficulty_score):
        return MultiplierResult(adjusted_price=price)

    if configured_multipliers:
        multiplier = configured_multipliers.get(str(difficulty_score), 1.0)
    else:
        multiplier = DEFAULT_DIFFICULTY_MULTIPLIERS.get(difficulty_score, 1.0)

    if multiplier == 1.0:
        return MultiplierResult(adjusted_price=price)

    adjusted = round_currency(price * multiplier)
    percent = round_to((multiplier - 1) * 100, 2)
    if score_source in ("END_CUSTOMER", "CONTACT"):
        label = "end-customer" if score_source == "END_CUSTOMER" else "contact"
        description = f"Client difficulty adjustment: +{_fmt(percent)}% ({label} score {difficulty_score}/5)"
    else:
        description = f"Client difficulty adjustment: +{_fmt(percent)}% (score {difficulty_score}/5)"

    return MultiplierResult(
        adjusted_price=adjusted,
        applied_rule=AppliedRule(
            type="CLIENT_DIFFICULTY_MULTIPLIER",
            description=description,
            price_before=price,
            price_after=adjusted,
            multiplier=multiplier,
            details={"difficulty_score": difficulty_score, "score_source": score_source},
        ),
    )
