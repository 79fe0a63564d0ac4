"""Internal cost of a trip leg: fuel, tolls, wear, driver time and parking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ...errors import InvalidInputError
from ...models.domain import (
    CostBreakdown,
    CostParameters,
    DriverCost,
    FuelCost,
    FuelType,
    ParkingCost,
    TollCost,
    WearCost,
    ZoneData,
    ZoneSurchargeComponent,
    ZoneSurcharges,
)
from ..numeric import round_currency

DEFAULT_COST_PARAMETERS = CostParameters()

# price used when neither the organization nor the fuel price cache has one
DEFAULT_FUEL_PRICE_PER_LITRE = 1.80

DEFAULT_FUEL_PRICES: dict[str, float] = {
    "DIESEL": 1.789,
    "GASOLINE": 1.899,
    "LPG": 0.999,
    "ELECTRIC": 0.25,
}


@dataclass(frozen=True, slots=True)
class FuelConsumptionResolution:
    consumption_l100km: float
    source: str


def get_default_fuel_price(fuel_type: FuelType, custom_prices: Optional[Mapping[str, float]] = None) -> float:
    if custom_prices and fuel_type in custom_prices:
        return custom_prices[fuel_type]
    return DEFAULT_FUEL_PRICES[fuel_type]


def resolve_fuel_consumption(
    vehicle_consumption: Optional[float] = None,
    category_consumption: Optional[float] = None,
    organization_consumption: Optional[float] = None,
) -> FuelConsumptionResolution:
    """Pick the most specific positive consumption: vehicle, then category, then organization."""
    for value, source in (
        (vehicle_consumption, "VEHICLE"),
        (category_consumption, "CATEGORY"),
        (organization_consumption, "ORGANIZATION"),
    ):
        if value is not None and value > 0:
            return FuelConsumptionResolution(consumption_l100km=value, source=source)
    return FuelConsumptionResolution(
        consumption_l100km=DEFAULT_COST_PARAMETERS.fuel_consumption_l100km, source="DEFAULT"
    )


def resolve_fuel_price_per_liter(params: CostParameters) -> float:
    """Configured price, else the electric default for EVs, else ``DEFAULT_FUEL_PRICE_PER_LITRE``."""
    if params.fuel_price_per_liter is not None:
        return params.fuel_price_per_liter
    if params.fuel_type == "ELECTRIC":
        return get_default_fuel_price("ELECTRIC")
    return DEFAULT_FUEL_PRICE_PER_LITRE


def calculate_fuel_cost(distance_km: float, params: CostParameters) -> FuelCost:
    price_per_liter = resolve_fuel_price_per_liter(params)
    amount = round_currency(distance_km / 100 * params.fuel_consumption_l100km * price_per_liter)
    return FuelCost(
        amount=amount,
        distance_km=distance_km,
        consumption_l100km=params.fuel_consumption_l100km,
        price_per_liter=price_per_liter,
        fuel_type=params.fuel_type,
    )


def calculate_toll_cost(distance_km: float, rate_per_km: float) -> TollCost:
    return TollCost(amount=round_currency(distance_km * rate_per_km), distance_km=distance_km, rate_per_km=rate_per_km)


def calculate_wear_cost(distance_km: float, rate_per_km: float) -> WearCost:
    return WearCost(amount=round_currency(distance_km * rate_per_km), distance_km=distance_km, rate_per_km=rate_per_km)


def calculate_driver_cost(duration_minutes: float, hourly_rate: float) -> DriverCost:
    return DriverCost(
        amount=round_currency(duration_minutes / 60 * hourly_rate),
        duration_minutes=duration_minutes,
        hourly_rate=hourly_rate,
    )


def compute_cost(
    distance_km: float,
    duration_minutes: float,
    cost_parameters: CostParameters | None = None,
    parking: ParkingCost | None = None,
) -> CostBreakdown:
    """Compute the cost breakdown of one leg.

    Each component is rounded to cents on its own and the total is the rounded
    sum of the rounded components.
    """
    if distance_km < 0:
        raise InvalidInputError(f"Distance must not be negative (got {distance_km} km).")
    if duration_minutes < 0:
        raise InvalidInputError(f"Duration must not be negative (got {duration_minutes} min).")

    params = cost_parameters or DEFAULT_COST_PARAMETERS
    parking = parking or ParkingCost()

    fuel = calculate_fuel_cost(distance_km, params)
    tolls = calculate_toll_cost(distance_km, params.toll_cost_per_km)
    wear = calculate_wear_cost(distance_km, params.wear_cost_per_km)
    driver = calculate_driver_cost(duration_minutes, params.driver_hourly_cost)
    total = round_currency(fuel.amount + tolls.amount + wear.amount + driver.amount + parking.amount)

    return CostBreakdown(fuel=fuel, tolls=tolls, wear=wear, driver=driver, parking=parking, total=total)


def combine_cost_breakdowns(breakdowns: Sequence[CostBreakdown]) -> CostBreakdown:
    """Sum several breakdowns; rates shown are the first non-zero ones."""
    fuel_with_rate = next((b.fuel for b in breakdowns if b.fuel.consumption_l100km > 0), None)
    tolls_rate = next((b.tolls.rate_per_km for b in breakdowns if b.tolls.rate_per_km > 0), 0.0)
    wear_rate = next((b.wear.rate_per_km for b in breakdowns if b.wear.rate_per_km > 0), 0.0)
    driver_rate = next((b.driver.hourly_rate for b in breakdowns if b.driver.hourly_rate > 0), 0.0)
    parking_descriptions = [b.parking.description for b in breakdowns if b.parking.description]

    return CostBreakdown(
        fuel=FuelCost(
            amount=round_currency(sum(b.fuel.amount for b in breakdowns)),
            distance_km=sum(b.fuel.distance_km for b in breakdowns),
            consumption_l100km=fuel_with_rate.consumption_l100km if fuel_with_rate else 0.0,
            price_per_liter=fuel_with_rate.price_per_liter if fuel_with_rate else 0.0,
            fuel_type=fuel_with_rate.fuel_type if fuel_with_rate else "DIESEL",
        ),
        tolls=TollCost(
            amount=round_currency(sum(b.tolls.amount for b in breakdowns)),
            distance_km=sum(b.tolls.distance_km for b in breakdowns),
            rate_per_km=tolls_rate,
        ),
        wear=WearCost(
            amount=round_currency(sum(b.wear.amount for b in breakdowns)),
            distance_km=sum(b.wear.distance_km for b in breakdowns),
            rate_per_km=wear_rate,
        ),
        driver=DriverCost(
            amount=round_currency(sum(b.driver.amount for b in breakdowns)),
            duration_minutes=sum(b.driver.duration_minutes for b in breakdowns),
            hourly_rate=driver_rate,
        ),
        parking=ParkingCost(
            amount=round_currency(sum(b.parking.amount for b in breakdowns)),
            description="; ".join(parking_descriptions),
        ),
        total=round_currency(sum(b.total for b in breakdowns)),
    )


def _zone_surcharge_component(zone: ZoneData) -> ZoneSurchargeComponent:
    parking = zone.fixed_parking_surcharge or 0.0
    access = zone.fixed_access_fee or 0.0
    return ZoneSurchargeComponent(
        zone_id=zone.id,
        zone_code=zone.code,
        zone_name=zone.name,
        parking_surcharge=parking,
        access_fee=access,
        total=round_currency(parking + access),
        description=zone.surcharge_description,
    )


def calculate_zone_surcharges(
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
) -> ZoneSurcharges:
    """Parking and access fees of the pickup and dropoff zones, counted once when they are the same zone."""
    pickup = _zone_surcharge_component(pickup_zone) if pickup_zone else None
    same_zone = pickup_zone is not None and dropoff_zone is not None and dropoff_zone.id == pickup_zone.id
    dropoff = _zone_surcharge_component(dropoff_zone) if dropoff_zone and not same_zone else None
    total = round_currency((pickup.total if pickup else 0.0) + (dropoff.total if dropoff else 0.0))
    return ZoneSurcharges(pickup=pickup, dropoff=dropoff, total=total)
