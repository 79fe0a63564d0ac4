from datetime import date, datetime

import pytest

from vtc_engine.models.domain import VehicleCategory, ZoneData
from vtc_engine.services.pricing.models import AdvancedRate, MultiplierContext, SeasonalMultiplier
from vtc_engine.services.pricing.multipliers import (
    apply_all_multipliers,
    apply_client_difficulty_multiplier,
    apply_round_trip_multiplier,
    apply_vehicle_category_multiplier,
    apply_zone_multiplier,
    calculate_effective_zone_multiplier,
    calculate_night_overlap_minutes,
    calculate_weighted_night_rate,
    evaluate_advanced_rates,
    evaluate_seasonal_multipliers,
    is_time_in_range,
    is_weekend,
    resolve_difficulty_score,
)


def _night_rate(**overrides) -> AdvancedRate:
    values = dict(
        id="night",
        name="Night",
        applies_to="NIGHT",
        adjustment_type="PERCENTAGE",
        value=20,
        start_time="22:00",
        end_time="06:00",
    )
    values.update(overrides)
    return AdvancedRate(**values)


def _weekend_rate(**overrides) -> AdvancedRate:
    values = dict(id="weekend", name="Weekend", applies_to="WEEKEND", adjustment_type="FIXED_AMOUNT", value=15)
    values.update(overrides)
    return AdvancedRate(**values)


def _zone(code: str, multiplier: float) -> ZoneData:
    return ZoneData(id=code.lower(), code=code, name=code.title(), price_multiplier=multiplier)


def _category(**overrides) -> VehicleCategory:
    values = dict(id="van", code="VAN", name="Van", price_multiplier=1.3)
    values.update(overrides)
    return VehicleCategory(**values)


# 2025-03-15 is a Saturday, 2025-03-12 a Wednesday
SATURDAY_NOON = datetime(2025, 3, 15, 12, 0)
WEDNESDAY_NOON = datetime(2025, 3, 12, 12, 0)


def test_time_range_overnight_is_start_inclusive_end_exclusive():
    assert is_time_in_range(22, 0, "22:00", "06:00")
    assert is_time_in_range(3, 30, "22:00", "06:00")
    assert not is_time_in_range(6, 0, "22:00", "06:00")
    assert is_time_in_range(9, 0, "08:00", "18:00")
    assert not is_time_in_range(18, 0, "08:00", "18:00")


def test_weekend_defaults_to_saturday_and_sunday():
    assert is_weekend(SATURDAY_NOON)
    assert is_weekend(datetime(2025, 3, 16, 9, 0))
    assert not is_weekend(WEDNESDAY_NOON)
    assert is_weekend(WEDNESDAY_NOON, "3")


def test_night_rate_applies_at_pickup_time():
    context = MultiplierContext(pickup_at=datetime(2025, 3, 12, 23, 0))

    result = evaluate_advanced_rates(100.0, context, [_night_rate()])

    assert result.adjusted_price == 120.0
    assert result.applied_rules[0].description == "Applied NIGHT rate: Night"


def test_night_rate_skipped_during_the_day():
    result = evaluate_advanced_rates(100.0, MultiplierContext(pickup_at=WEDNESDAY_NOON), [_night_rate()])

    assert result.adjusted_price == 100.0
    assert result.applied_rules == ()


def test_night_overlap_spanning_midnight():
    minutes = calculate_night_overlap_minutes(
        datetime(2025, 3, 12, 21, 0), datetime(2025, 3, 13, 1, 0), "22:00", "06:00"
    )

    assert minutes == 180


def test_weighted_night_rate_prorates_adjustment():
    result = calculate_weighted_night_rate(
        100.0, datetime(2025, 3, 12, 20, 0), datetime(2025, 3, 12, 23, 0), _night_rate()
    )

    assert result.night_minutes == 60
    assert result.total_minutes == 180
    assert result.night_percentage == pytest.approx(33.33)
    assert result.effective_adjustment == pytest.approx(6.67)
    assert result.adjusted_price == pytest.approx(106.67)


def test_weighted_night_rate_needs_an_end_time():
    assert calculate_weighted_night_rate(100.0, datetime(2025, 3, 12, 23, 0), None, _night_rate()) is None


def test_evaluate_advanced_rates_uses_weighted_night_when_end_known():
    context = MultiplierContext(
        pickup_at=datetime(2025, 3, 12, 20, 0),
        estimated_end_at=datetime(2025, 3, 12, 23, 0),
    )

    result = evaluate_advanced_rates(100.0, context, [_night_rate()])

    assert result.adjusted_price == pytest.approx(106.67)
    assert result.applied_rules[0].description == "Applied NIGHT rate: Night (33% of trip)"


def test_advanced_rates_apply_by_priority_and_category():
    context = MultiplierContext(pickup_at=datetime(2025, 3, 15, 23, 0), vehicle_category_id="van")
    rates = [
        _weekend_rate(priority=1),
        _night_rate(priority=5),
        _weekend_rate(id="other", name="Sedan weekend", vehicle_category_id="sedan"),
    ]

    result = evaluate_advanced_rates(100.0, context, rates)

    # night +20% first, then weekend +15
    assert result.adjusted_price == 135.0
    assert [rule.details["rule_id"] for rule in result.applied_rules] == ["night", "weekend"]


def test_inactive_rate_is_ignored():
    result = evaluate_advanced_rates(100.0, MultiplierContext(pickup_at=SATURDAY_NOON), [_weekend_rate(is_active=False)])

    assert result.adjusted_price == 100.0


def test_seasonal_multiplier_end_date_inclusive():
    season = SeasonalMultiplier(
        id="summer", name="Summer", multiplier=1.1, start_date=date(2025, 7, 1), end_date=date(2025, 8, 31)
    )

    last_day = evaluate_seasonal_multipliers(100.0, datetime(2025, 8, 31, 23, 30), [season])
    after = evaluate_seasonal_multipliers(100.0, datetime(2025, 9, 1, 0, 30), [season])

    assert last_day.adjusted_price == 110.0
    assert last_day.applied_rules[0].description == "Applied seasonal multiplier: Summer"
    assert after.adjusted_price == 100.0


def test_apply_all_multipliers_chains_advanced_then_seasonal():
    season = SeasonalMultiplier(
        id="spring", name="Spring", multiplier=2.0, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31)
    )

    result = apply_all_multipliers(100.0, MultiplierContext(pickup_at=SATURDAY_NOON), [_weekend_rate()], [season])

    assert result.adjusted_price == 230.0
    assert [rule.type for rule in result.applied_rules] == ["ADVANCED_RATE", "SEASONAL_MULTIPLIER"]


def test_vehicle_category_multiplier():
    result = apply_vehicle_category_multiplier(100.0, _category())

    assert result.adjusted_price == 130.0
    assert result.applied_rule.description == "Vehicle category multiplier applied: Van (1.3×)"


def test_vehicle_category_multiplier_skipped_with_category_rates():
    result = apply_vehicle_category_multiplier(100.0, _category(), used_category_rates=True)

    assert result.adjusted_price == 100.0
    assert result.applied_rule.details["skipped_reason"] == "CATEGORY_RATES_USED"


def test_neutral_vehicle_category_produces_no_rule():
    assert apply_vehicle_category_multiplier(100.0, _category(price_multiplier=1.0)).applied_rule is None
    assert apply_vehicle_category_multiplier(100.0, None).applied_rule is None


@pytest.mark.parametrize(
    "strategy, expected",
    [
        (None, (1.5, "dropoff")),
        ("MAX", (1.5, "dropoff")),
        ("PICKUP_ONLY", (1.2, "pickup")),
        ("DROPOFF_ONLY", (1.5, "dropoff")),
        ("AVERAGE", (1.35, "both")),
    ],
)
def test_effective_zone_multiplier(strategy, expected):
    multiplier, source = calculate_effective_zone_multiplier(1.2, 1.5, strategy)

    assert (multiplier, source) == (pytest.approx(expected[0]), expected[1])


def test_zone_multiplier_always_records_a_rule():
    neutral = apply_zone_multiplier(100.0, None, None)
    applied = apply_zone_multiplier(100.0, _zone("CDG", 1.2), _zone("PARIS", 1.0))

    assert neutral.adjusted_price == 100.0
    assert neutral.applied_rule.description == "Zone multiplier: no adjustment (UNKNOWN → UNKNOWN)"
    assert applied.adjusted_price == 120.0
    assert applied.applied_rule.description == "Zone multiplier applied: Cdg (1.2×) [MAX]"


def test_round_trip_doubles_price_and_cost():
    result = apply_round_trip_multiplier(80.0, 50.0, True)

    assert (result.adjusted_price, result.adjusted_internal_cost) == (160.0, 100.0)
    assert result.applied_rule.description == "Round trip multiplier applied (×2)"
    assert apply_round_trip_multiplier(80.0, 50.0, False).applied_rule is None


def test_client_difficulty_default_multipliers():
    result = apply_client_difficulty_multiplier(100.0, 3)

    assert result.adjusted_price == 105.0
    assert result.applied_rule.description == "Client difficulty adjustment: +5% (score 3/5)"


@pytest.mark.parametrize("score", [None, 0, 6, 1])
def test_client_difficulty_without_adjustment(score):
    result = apply_client_difficulty_multiplier(100.0, score)

    assert result.adjusted_price == 100.0
    assert result.applied_rule is None


def test_client_difficulty_configured_multipliers():
    result = apply_client_difficulty_multiplier(200.0, 5, {"5": 1.25}, "END_CUSTOMER")

    assert result.adjusted_price == 250.0
    assert result.applied_rule.description == "Client difficulty adjustment: +25% (end-customer score 5/5)"


def test_difficulty_score_resolution():
    assert resolve_difficulty_score(4, 2).source == "END_CUSTOMER"
    assert resolve_difficulty_score(None, 2).score == 2
    assert resolve_difficulty_score(9, None).source == "NONE"
