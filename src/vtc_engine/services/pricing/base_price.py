"""Dynamic base price, trip-type pricing (excursion, dispo) and profitability."""

from __future__ import annotations

from typing import Optional

from ...models.domain import AppliedRule, OrganizationPricingSettings, TripType, VehicleCategory
from ..numeric import round_currency
from .models import DynamicBasePrice, ProfitabilityData, ProfitabilityIndicator, ResolvedRates, TripTypePricing

DEFAULT_PRICING_SETTINGS = OrganizationPricingSettings()

_PROFITABILITY_LABELS: dict[str, str] = {
    "green": "Profitable",
    "orange": "Low margin",
    "red": "Loss",
}


def _fmt(value: float) -> str:
    return f"{value:g}"


def resolve_rates(
    vehicle_category: Optional[VehicleCategory],
    settings: OrganizationPricingSettings,
) -> ResolvedRates:
    """Category rates win only when the category defines both of them."""
    if (
        vehicle_category is not None
        and vehicle_category.default_rate_per_km is not None
        and vehicle_category.default_rate_per_hour is not None
    ):
        return ResolvedRates(
            rate_per_km=vehicle_category.default_rate_per_km,
            rate_per_hour=vehicle_category.default_rate_per_hour,
            source="CATEGORY",
        )
    return ResolvedRates(
        rate_per_km=settings.base_rate_per_km,
        rate_per_hour=settings.base_rate_per_hour,
        source="ORGANIZATION",
    )


def apply_target_margin(price: float, target_margin_percent: float) -> float:
    return round_currency(price * (1 + target_margin_percent / 100))


def calculate_dynamic_base_price(
    distance_km: float,
    duration_minutes: float,
    settings: OrganizationPricingSettings,
    rates: Optional[ResolvedRates] = None,
) -> DynamicBasePrice:
    """max(distance x rate per km, hours x rate per hour), plus the target margin."""
    rates = rates or resolve_rates(None, settings)
    distance_price = round_currency(distance_km * rates.rate_per_km)
    duration_price = round_currency(duration_minutes / 60 * rates.rate_per_hour)
    selected = "distance" if distance_price >= duration_price else "duration"
    base = max(distance_price, duration_price)
    return DynamicBasePrice(
        distance_based_price=distance_price,
        duration_based_price=duration_price,
        selected_method=selected,
        base_price=base,
        price_with_margin=apply_target_margin(base, settings.target_margin_percent),
        rates=rates,
    )


def calculate_excursion_price(
    duration_minutes: float,
    rate_per_hour: float,
    settings: OrganizationPricingSettings,
) -> TripTypePricing:
    """Excursions bill at least ``excursion_minimum_hours`` plus a flat surcharge percentage."""
    minimum_hours = settings.excursion_minimum_hours
    surcharge_percent = settings.excursion_surcharge_percent

    requested_hours = duration_minutes / 60
    effective_hours = max(requested_hours, minimum_hours)
    minimum_applied = effective_hours > requested_hours

    base = round_currency(effective_hours * rate_per_hour)
    surcharge = round_currency(base * surcharge_percent / 100)
    price = round_currency(base + surcharge)

    description = (
        f"Excursion pricing: {_fmt(round_currency(effective_hours))}h × {_fmt(rate_per_hour)}€/h "
        f"+ {_fmt(surcharge_percent)}% surcharge"
    )
    if minimum_applied:
        description += f" (minimum {_fmt(minimum_hours)}h applied)"

    return TripTypePricing(
        price=price,
        rule=AppliedRule(
            type="TRIP_TYPE",
            description=description,
            price_before=base,
            price_after=price,
            amount=surcharge,
            details={
                "trip_type": "EXCURSION",
                "minimum_applied": minimum_applied,
                "requested_hours": round_currency(requested_hours),
                "effective_hours": effective_hours,
                "surcharge_percent": surcharge_percent,
                "surcharge_amount": surcharge,
            },
        ),
    )


def calculate_dispo_price(
    duration_minutes: float,
    distance_km: float,
    rate_per_hour: float,
    settings: OrganizationPricingSettings,
) -> TripTypePricing:
    """Dispo bills by the hour with an included kilometre allowance; extra km are charged per km."""
    hours = duration_minutes / 60
    base = round_currency(hours * rate_per_hour)

    included_km = round_currency(hours * settings.dispo_included_km_per_hour)
    overage_km = max(0.0, round_currency(distance_km - included_km))
    overage_amount = round_currency(overage_km * settings.dispo_overage_rate_per_km)
    price = round_currency(base + overage_amount)

    description = f"Dispo pricing: {_fmt(round_currency(hours))}h × {_fmt(rate_per_hour)}€/h"
    if overage_km > 0:
        description += f" + {_fmt(overage_km)}km overage × {_fmt(settings.dispo_overage_rate_per_km)}€/km"

    return TripTypePricing(
        price=price,
        rule=AppliedRule(
            type="TRIP_TYPE",
            description=description,
            price_before=base,
            price_after=price,
            amount=overage_amount,
            details={
                "trip_type": "DISPO",
                "included_km": included_km,
                "actual_km": distance_km,
                "overage_km": overage_km,
                "overage_rate_per_km": settings.dispo_overage_rate_per_km,
                "overage_amount": overage_amount,
                "requested_hours": round_currency(hours),
            },
        ),
    )


def apply_trip_type_pricing(
    trip_type: TripType,
    distance_km: float,
    duration_minutes: float,
    rate_per_hour: float,
    standard_price: float,
    settings: OrganizationPricingSettings,
) -> TripTypePricing:
    match trip_type:
        case "EXCURSION":
            return calculate_excursion_price(duration_minutes, rate_per_hour, settings)
        case "DISPO":
            return calculate_dispo_price(duration_minutes, distance_km, rate_per_hour, settings)
        case _:
            return TripTypePricing(price=standard_price)


def calculate_margin(price: float, internal_cost: float) -> tuple[float, float]:
    """Return (margin, margin percent of the selling price)."""
    margin = round_currency(price - internal_cost)
    margin_percent = round_currency(margin / price * 100) if price > 0 else 0.0
    return margin, margin_percent


def calculate_profitability_indicator(
    margin_percent: float,
    green_threshold: float = 20.0,
    orange_threshold: float = 0.0,
) -> ProfitabilityIndicator:
    if margin_percent >= green_threshold:
        return "green"
    if margin_percent >= orange_threshold:
        return "orange"
    return "red"


def get_profitability_data(
    margin_percent: float,
    settings: OrganizationPricingSettings = DEFAULT_PRICING_SETTINGS,
) -> ProfitabilityData:
    green = settings.green_margin_threshold
    orange = settings.orange_margin_threshold
    indicator = calculate_profitability_indicator(margin_percent, green, orange)

    match indicator:
        case "green":
            description = f"Margin: {margin_percent:.1f}% (≥{green:.0f}% target)"
        case "orange":
            description = f"Margin: {margin_percent:.1f}% (below {green:.0f}% target)"
        case _:
            description = f"Margin: {margin_percent:.1f}% (loss - below {orange:.0f}%)"

    return ProfitabilityData(
        indicator=indicator,
        margin_percent=round_currency(margin_percent),
        label=_PROFITABILITY_LABELS[indicator],
        description=description,
    )
