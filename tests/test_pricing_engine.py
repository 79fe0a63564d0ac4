from dataclasses import replace
from datetime import datetime, timedelta

import polyline
import pytest

from vtc_engine.models.domain import (
    AlternativeCostParameters,
    CostParameters,
    GeoPoint,
    OrganizationPricingSettings,
    TripInput,
    VehicleCategory,
    ZoneData,
)
from vtc_engine.services.compliance.models import DEFAULT_HEAVY_VEHICLE_RSE_RULES
from vtc_engine.services.fuel.service import FuelPriceResult
from vtc_engine.services.pricing import engine
from vtc_engine.services.pricing.cost_model import compute_cost
from vtc_engine.services.pricing.models import AdvancedRate, DispoPackage, PartnerContract, PricingContext, ZoneRoute
from vtc_engine.services.pricing.engine import (
    calculate_estimated_end_at,
    calculate_price,
    compute_trip_analysis,
    integrate_compliance_into_pricing,
)

PICKUP_AT = datetime(2025, 3, 12, 8, 0)

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[2.30, 48.83], [2.40, 48.83], [2.40, 48.88], [2.30, 48.88], [2.30, 48.83]]],
}


@pytest.fixture(autouse=True)
def default_fuel_price(monkeypatch):
    def fake_get_fuel_price(country_code=None, fuel_type=None):
        return FuelPriceResult(
            price_per_litre=1.80,
            source="DEFAULT",
            fetched_at=None,
            is_stale=False,
            fuel_type=fuel_type or "DIESEL",
            country_code=country_code or "FR",
        )

    monkeypatch.setattr(engine, "get_fuel_price", fake_get_fuel_price)


def _heavy_category() -> VehicleCategory:
    return VehicleCategory(id="coach", code="COACH", name="Coach", regulatory_category="HEAVY")


def test_transfer_price_and_margin():
    result = calculate_price(TripInput(service_distance_km=50, service_duration_minutes=60), PricingContext())

    # max(50 km x 2.5, 1h x 45) = 125, +20% margin
    assert result.price == 150.0
    assert result.internal_cost == 44.7
    assert result.margin == 105.3
    assert result.margin_percent == 70.2
    assert result.profitability.indicator == "green"
    assert [rule.type for rule in result.applied_rules] == [
        "DYNAMIC_BASE_CALCULATION",
        "TARGET_MARGIN",
        "ZONE_MULTIPLIER",
    ]
    assert result.fuel_price_source == "DEFAULT"
    assert result.compliance_plan is None
    assert result.estimated_end_at is None


def test_round_trip_doubles_price_and_cost():
    trip = TripInput(service_distance_km=50, service_duration_minutes=60, is_round_trip=True)

    result = calculate_price(trip, PricingContext())

    assert result.price == 300.0
    assert result.internal_cost == 89.4
    assert result.applied_rules[-1].type == "ROUND_TRIP"


def test_positioning_costs_count_towards_internal_cost():
    trip = TripInput(
        service_distance_km=50,
        service_duration_minutes=60,
        approach_distance_km=10,
        approach_duration_minutes=15,
        return_distance_km=20,
        return_duration_minutes=30,
    )

    result = calculate_price(trip, PricingContext())

    # 44.70 service + 10.19 approach + 20.38 empty return
    assert result.internal_cost == pytest.approx(75.27)
    assert result.trip_analysis.total_distance_km == 80
    assert result.price == 150.0


def test_night_rate_weighted_over_trip():
    rate = AdvancedRate(
        id="night",
        name="Night",
        applies_to="NIGHT",
        adjustment_type="PERCENTAGE",
        value=20,
        start_time="22:00",
        end_time="06:00",
    )
    trip = TripInput(service_distance_km=50, service_duration_minutes=60, pickup_at=datetime(2025, 3, 12, 23, 0))

    result = calculate_price(trip, PricingContext(advanced_rates=[rate]))

    assert result.price == 180.0
    assert result.estimated_end_at == datetime(2025, 3, 13, 0, 0)


def test_polyline_route_uses_weighted_zone_multiplier():
    paris = ZoneData(
        id="paris",
        code="PARIS",
        name="Paris",
        geometry=SQUARE,
        price_multiplier=1.2,
        fixed_parking_surcharge=5.0,
    )
    trip = TripInput(
        service_distance_km=11,
        service_duration_minutes=30,
        pickup=GeoPoint(48.855, 2.20),
        dropoff=GeoPoint(48.855, 2.35),
        polyline=polyline.encode([(48.855, 2.20), (48.855, 2.35)], 5),
    )

    result = calculate_price(trip, PricingContext(zones=[paris]))

    rule_types = [rule.type for rule in result.applied_rules]
    assert "ROUTE_SEGMENTATION" in rule_types
    assert "ZONE_MULTIPLIER" not in rule_types
    assert result.dropoff_zone.id == "paris"
    assert result.pickup_zone is None
    assert result.zone_surcharges.total == 5.0
    assert result.internal_cost == pytest.approx(compute_cost(11, 30).total + 5.0)
    assert 33.0 < result.price < 33.0 * 1.2


def test_zone_multiplier_without_polyline():
    airport = ZoneData(
        id="cdg",
        code="CDG",
        name="CDG",
        zone_type="RADIUS",
        center_latitude=49.0097,
        center_longitude=2.5479,
        radius_km=5,
        price_multiplier=1.5,
    )
    trip = TripInput(
        service_distance_km=50,
        service_duration_minutes=60,
        pickup=GeoPoint(48.855, 2.35),
        dropoff=GeoPoint(49.0097, 2.5479),
    )

    result = calculate_price(trip, PricingContext(zones=[airport]))

    assert result.price == 225.0
    assert result.route_segmentation.segmentation_method == "FALLBACK"


def test_heavy_vehicle_staffing_cost_added_to_price():
    trip = TripInput(
        service_distance_km=600,
        service_duration_minutes=700,
        pickup_at=PICKUP_AT,
        vehicle_category=_heavy_category(),
    )

    result = calculate_price(trip, PricingContext(rse_rules=DEFAULT_HEAVY_VEHICLE_RSE_RULES))

    assert result.compliance_plan.plan_type == "RELAY_DRIVER"
    assert result.additional_staffing_cost == pytest.approx(145.875, abs=0.01)
    assert result.price == pytest.approx(1800 + result.additional_staffing_cost)
    assert result.applied_rules[-1].type == "COMPLIANCE_STAFFING"
    assert result.applied_rules[-1].description.startswith("RSE compliance: Relay Driver - ")
    assert result.trip_analysis.compliance_plan == result.compliance_plan
    assert result.estimated_end_at == PICKUP_AT + timedelta(minutes=700)


def test_light_vehicle_gets_no_compliance_plan():
    analysis = compute_trip_analysis(
        TripInput(service_distance_km=900, service_duration_minutes=800), OrganizationPricingSettings()
    )

    result = integrate_compliance_into_pricing(analysis, "LIGHT", PICKUP_AT)

    assert result.compliance_plan is None
    assert result.additional_staffing_cost == 0


def test_compliant_heavy_trip_gets_empty_plan():
    analysis = compute_trip_analysis(
        TripInput(service_distance_km=100, service_duration_minutes=90), OrganizationPricingSettings()
    )

    result = integrate_compliance_into_pricing(analysis, "HEAVY", PICKUP_AT)

    assert result.compliance_plan.plan_type == "NONE"
    assert not result.compliance_plan.is_required
    assert result.applied_rule is None


def test_estimated_end_of_multi_day_plan():
    analysis = compute_trip_analysis(
        TripInput(service_distance_km=100, service_duration_minutes=90), OrganizationPricingSettings()
    )
    plan = integrate_compliance_into_pricing(analysis, "HEAVY", PICKUP_AT).compliance_plan
    multi_day = replace(
        plan,
        plan_type="MULTI_DAY",
        adjusted_schedule=replace(plan.adjusted_schedule, days_required=2),
    )

    assert calculate_estimated_end_at(PICKUP_AT, analysis) == PICKUP_AT + timedelta(minutes=90)
    assert calculate_estimated_end_at(PICKUP_AT, analysis, multi_day) == PICKUP_AT + timedelta(days=2)


def test_estimated_end_without_duration():
    analysis = compute_trip_analysis(
        TripInput(service_distance_km=0, service_duration_minutes=0), OrganizationPricingSettings()
    )

    assert calculate_estimated_end_at(PICKUP_AT, analysis) is None


def test_trip_analysis_segments():
    trip = TripInput(
        service_distance_km=50,
        service_duration_minutes=60,
        approach_distance_km=10,
        approach_duration_minutes=15,
        routing_source="ROUTED",
    )

    analysis = compute_trip_analysis(trip, OrganizationPricingSettings())

    assert analysis.segments.approach.description == "Base → Pickup (deadhead)"
    assert analysis.segments.return_ is None
    assert not analysis.segments.service.is_estimated
    assert analysis.total_internal_cost == pytest.approx(54.89)
    assert analysis.total_duration_minutes == 75


def test_excursion_price_carries_no_target_margin():
    trip = TripInput(service_distance_km=100, service_duration_minutes=300, trip_type="EXCURSION")

    result = calculate_price(trip, PricingContext())

    # 5h x 45 = 225, +15% excursion surcharge
    assert result.price == 258.75
    rule_types = [rule.type for rule in result.applied_rules]
    assert "TRIP_TYPE" in rule_types
    assert "TARGET_MARGIN" not in rule_types


def test_dispo_price_carries_no_target_margin():
    trip = TripInput(service_distance_km=300, service_duration_minutes=300, trip_type="DISPO")

    result = calculate_price(trip, PricingContext())

    # 5h x 45 = 225, plus 50 km over the 250 included at 0.50
    assert result.price == 250.0
    assert "TARGET_MARGIN" not in [rule.type for rule in result.applied_rules]


def test_electric_vehicle_skips_fuel_cache(monkeypatch):
    def unexpected_lookup(country_code=None, fuel_type=None):
        raise AssertionError("electric vehicles have no cached fuel price")

    monkeypatch.setattr(engine, "get_fuel_price", unexpected_lookup)
    tesla = VehicleCategory(id="ev", code="EV", name="EV", fuel_type="ELECTRIC")

    result = calculate_price(
        TripInput(service_distance_km=50, service_duration_minutes=60, vehicle_category=tesla), PricingContext()
    )

    assert result.fuel_price_source == "DEFAULT"
    assert result.cost_breakdown.fuel.price_per_liter == 0.25
    # 50 km x 8 kWh/100km x 0.25
    assert result.trip_analysis.segments.service.cost.fuel.amount == 1.0


def test_organization_fuel_price_used_without_cached_price():
    settings = OrganizationPricingSettings(cost_parameters=CostParameters(fuel_price_per_liter=0.30))

    result = calculate_price(
        TripInput(service_distance_km=50, service_duration_minutes=60), PricingContext(settings=settings)
    )

    assert result.fuel_price_source == "ORGANIZATION"
    assert result.cost_breakdown.fuel.price_per_liter == 0.30


def test_cached_fuel_price_wins_over_organization_price(monkeypatch):
    def cached_price(country_code=None, fuel_type=None):
        return FuelPriceResult(
            price_per_litre=1.95,
            source="CACHE",
            fetched_at=PICKUP_AT,
            is_stale=False,
            fuel_type=fuel_type,
            country_code="FR",
        )

    monkeypatch.setattr(engine, "get_fuel_price", cached_price)
    settings = OrganizationPricingSettings(cost_parameters=CostParameters(fuel_price_per_liter=0.30))

    result = calculate_price(
        TripInput(service_distance_km=50, service_duration_minutes=60), PricingContext(settings=settings)
    )

    assert result.fuel_price_source == "CACHE"
    assert result.cost_breakdown.fuel.price_per_liter == 1.95


def test_polyline_route_charges_zones_crossed_between_pickup_and_dropoff():
    toll_zone = ZoneData(id="center", code="CENTER", name="Center", geometry=SQUARE, fixed_access_fee=20.0)
    trip = TripInput(
        service_distance_km=22,
        service_duration_minutes=40,
        pickup=GeoPoint(48.855, 2.20),
        dropoff=GeoPoint(48.855, 2.50),
        polyline=polyline.encode([(48.855, 2.20), (48.855, 2.35), (48.855, 2.50)], 5),
    )

    result = calculate_price(trip, PricingContext(zones=[toll_zone]))

    assert result.pickup_zone is None and result.dropoff_zone is None
    assert result.zone_surcharges.total == 20.0
    assert result.internal_cost == pytest.approx(compute_cost(22, 40).total + 20.0)
    surcharge_rule = next(rule for rule in result.applied_rules if rule.type == "ZONE_SURCHARGE")
    assert surcharge_rule.details["zones_traversed"] == ["CENTER"]


def test_staffing_cost_uses_organization_rates():
    settings = OrganizationPricingSettings(
        staffing_cost_parameters=AlternativeCostParameters(
            driver_hourly_cost=50.0, hotel_cost_per_night=200.0, meal_allowance_per_day=60.0
        )
    )
    trip = TripInput(
        service_distance_km=600,
        service_duration_minutes=700,
        pickup_at=PICKUP_AT,
        vehicle_category=_heavy_category(),
    )

    result = calculate_price(
        trip, PricingContext(settings=settings, rse_rules=DEFAULT_HEAVY_VEHICLE_RSE_RULES)
    )

    # every staffing rate doubled: same plan, twice the cost
    assert result.compliance_plan.plan_type == "RELAY_DRIVER"
    assert result.additional_staffing_cost == pytest.approx(2 * 145.875, abs=0.02)


def _airport_contract() -> PartnerContract:
    return PartnerContract(
        id="contract-1",
        zone_routes=[
            ZoneRoute(
                id="paris-cdg",
                vehicle_category_id="sedan",
                fixed_price=95.0,
                name="Paris ↔ CDG",
                from_zone_id="paris",
                to_zone_id="cdg",
            )
        ],
        dispo_packages=[DispoPackage(id="half-day", name="Half day", vehicle_category_id="sedan", base_price=300.0)],
    )


def _airport_transfer() -> TripInput:
    return TripInput(
        service_distance_km=30,
        service_duration_minutes=45,
        pickup=GeoPoint(48.855, 2.35),
        dropoff=GeoPoint(49.0097, 2.5479),
        vehicle_category=VehicleCategory(id="sedan", code="SEDAN", name="Sedan"),
    )


def _airport_zones() -> list[ZoneData]:
    return [
        ZoneData(id="paris", code="PARIS", name="Paris", geometry=SQUARE),
        ZoneData(
            id="cdg",
            code="CDG",
            name="CDG",
            zone_type="RADIUS",
            center_latitude=49.0097,
            center_longitude=2.5479,
            radius_km=5,
        ),
    ]


def test_partner_contract_grid_price():
    context = PricingContext(zones=_airport_zones(), is_partner=True, partner_contract=_airport_contract())

    result = calculate_price(_airport_transfer(), context)

    assert result.pricing_mode == "FIXED_GRID"
    assert result.is_contract_price
    assert result.fallback_reason is None
    assert result.price == 95.0
    assert result.applied_rules[0].type == "GRID_MATCH"
    assert result.applied_rules[0].details["contract_id"] == "contract-1"
    assert "TARGET_MARGIN" not in [rule.type for rule in result.applied_rules]


def test_partner_grid_matches_reverse_direction():
    trip = replace(_airport_transfer(), pickup=GeoPoint(49.0097, 2.5479), dropoff=GeoPoint(48.855, 2.35))
    context = PricingContext(zones=_airport_zones(), is_partner=True, partner_contract=_airport_contract())

    result = calculate_price(trip, context)

    assert result.grid_search.matched.id == "paris-cdg"
    assert result.price == 95.0


def test_partner_dispo_package_price():
    trip = replace(_airport_transfer(), trip_type="DISPO", service_duration_minutes=240)
    context = PricingContext(zones=_airport_zones(), is_partner=True, partner_contract=_airport_contract())

    result = calculate_price(trip, context)

    assert result.grid_search.matched.type == "DISPO_PACKAGE"
    assert result.price == 300.0


def test_private_client_priced_dynamically():
    result = calculate_price(_airport_transfer(), PricingContext(zones=_airport_zones()))

    assert result.pricing_mode == "DYNAMIC"
    assert result.fallback_reason == "PRIVATE_CLIENT"
    assert result.grid_search is None
    assert result.applied_rules[0].type == "DYNAMIC_BASE_CALCULATION"


def test_partner_without_contract_priced_dynamically():
    result = calculate_price(_airport_transfer(), PricingContext(zones=_airport_zones(), is_partner=True))

    assert result.pricing_mode == "DYNAMIC"
    assert result.fallback_reason == "NO_CONTRACT"


def test_partner_without_matching_route_priced_dynamically():
    trip = replace(_airport_transfer(), vehicle_category=VehicleCategory(id="van", code="VAN", name="Van"))
    context = PricingContext(zones=_airport_zones(), is_partner=True, partner_contract=_airport_contract())

    result = calculate_price(trip, context)

    assert result.pricing_mode == "DYNAMIC"
    assert result.fallback_reason == "NO_ROUTE_MATCH"
    assert [grid.rejection_reason for grid in result.grid_search.rejected] == ["CATEGORY_MISMATCH"]
