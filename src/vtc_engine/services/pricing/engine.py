"""Pricing orchestrator.

``calculate_price`` runs the full chain for one trip:

1. partner contract grid price, or the dynamic base price (distance vs
   duration) with the target margin; excursions and dispos use their
   trip-type price instead
2. zone multiplier (weighted route segmentation when a polyline is known)
3. vehicle category multiplier
4. advanced rates (night, weekend) then seasonal multipliers
5. client difficulty
6. round trip
7. RSE staffing for heavy vehicles
8. positioning costs, margin and profitability

Each step appends its ``AppliedRule`` so the final quote can be explained line
by line.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from ...models.domain import (
    AlternativeCostParameters,
    AppliedRule,
    CompliancePlan,
    CostParameters,
    FuelType,
    OrganizationPricingSettings,
    RegulatoryCategory,
    Segment,
    StaffingCostBreakdown,
    StaffingSchedule,
    TripAnalysis,
    TripInput,
    TripSegments,
    ZoneData,
)
from ..compliance.alternatives import DEFAULT_ALTERNATIVE_COST_PARAMETERS, generate_alternatives
from ..compliance.models import (
    ComplianceValidationInput,
    ComplianceValidationResult,
    RSERules,
    StaffingSelectionResult,
)
from ..compliance.staffing import select_best_staffing_plan
from ..compliance.validator import validate_heavy_vehicle_compliance
from ..fuel.service import FuelPriceResult, get_fuel_price
from ..geospatial import find_zone_for_point
from ..numeric import round_currency
from ..zoning.models import RouteSegmentationResult
from ..zoning.segmentation import (
    build_route_segmentation_rule,
    create_fallback_segmentation,
    segment_route_by_zones,
)
from .base_price import (
    apply_trip_type_pricing,
    calculate_dynamic_base_price,
    calculate_margin,
    get_profitability_data,
    resolve_rates,
)
from .cost_model import calculate_zone_surcharges, combine_cost_breakdowns, compute_cost, resolve_fuel_consumption
from .grid import match_grid
from .models import (
    FallbackReason,
    FuelPriceOrigin,
    GridSearchResult,
    MultiplierContext,
    PricingContext,
    PricingResult,
)
from .multipliers import (
    apply_all_multipliers,
    apply_client_difficulty_multiplier,
    apply_round_trip_multiplier,
    apply_vehicle_category_multiplier,
    apply_zone_multiplier,
    resolve_difficulty_score,
)
from .positioning import calculate_positioning_costs

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ComplianceIntegrationResult:
    compliance_plan: Optional[CompliancePlan]
    additional_staffing_cost: float = 0.0
    applied_rule: Optional[AppliedRule] = None
    validation: Optional[ComplianceValidationResult] = None
    staffing: Optional[StaffingSelectionResult] = None


# ---------------------------------------------------------------------------
# Trip analysis
# ---------------------------------------------------------------------------


def _segment(
    name: str,
    description: str,
    distance_km: float,
    duration_minutes: float,
    cost_parameters: CostParameters,
    is_estimated: bool,
) -> Segment:
    return Segment(
        name=name,
        description=description,
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        cost=compute_cost(distance_km, duration_minutes, cost_parameters),
        is_estimated=is_estimated,
    )


def compute_trip_analysis(
    trip: TripInput,
    settings: OrganizationPricingSettings,
    cost_parameters: Optional[CostParameters] = None,
) -> TripAnalysis:
    """Cost the approach, service and return legs of a trip.

    Approach and return legs only exist when their distance is known; their
    cost is otherwise settled at dispatch once the vehicle base is chosen.
    """
    params = cost_parameters or settings.cost_parameters
    estimated = trip.routing_source == "HAVERSINE_ESTIMATE"

    approach = None
    if trip.approach_distance_km is not None:
        approach = _segment(
            "approach",
            "Base → Pickup (deadhead)",
            trip.approach_distance_km,
            trip.approach_duration_minutes or 0.0,
            params,
            estimated,
        )

    service = _segment(
        "service",
        "Pickup → Dropoff (client trip)",
        trip.service_distance_km,
        trip.service_duration_minutes,
        params,
        estimated,
    )

    return_segment = None
    if trip.return_distance_km is not None:
        return_segment = _segment(
            "return",
            "Dropoff → Base (deadhead)",
            trip.return_distance_km,
            trip.return_duration_minutes or 0.0,
            params,
            estimated,
        )

    segments = TripSegments(service=service, approach=approach, return_=return_segment)
    present = segments.present()

    return TripAnalysis(
        segments=segments,
        cost_breakdown=combine_cost_breakdowns([s.cost for s in present]),
        total_distance_km=round_currency(sum(s.distance_km for s in present)),
        total_duration_minutes=round_currency(sum(s.duration_minutes for s in present)),
        total_internal_cost=round_currency(sum(s.cost.total for s in present)),
        routing_source=trip.routing_source,
        positioning_costs=calculate_positioning_costs(trip.trip_type, segments, settings, trip.duration_hours),
    )


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


def _no_plan(reason: str) -> CompliancePlan:
    return CompliancePlan(
        plan_type="NONE",
        is_required=False,
        additional_cost=0.0,
        cost_breakdown=StaffingCostBreakdown(),
        adjusted_schedule=StaffingSchedule(),
        original_violations=(),
        selected_reason=reason,
    )


def integrate_compliance_into_pricing(
    trip_analysis: TripAnalysis,
    regulatory_category: RegulatoryCategory,
    pickup_at: datetime,
    estimated_dropoff_at: Optional[datetime] = None,
    license_category_id: Optional[str] = None,
    vehicle_category_id: Optional[str] = None,
    rules: Optional[RSERules] = None,
    policy: Optional[str] = "CHEAPEST",
    cost_parameters: AlternativeCostParameters = DEFAULT_ALTERNATIVE_COST_PARAMETERS,
) -> ComplianceIntegrationResult:
    """Validate a heavy-vehicle trip and attach the selected staffing plan.

    Light vehicles are not subject to RSE rules and get no plan at all. A
    compliant heavy trip gets a ``NONE`` plan.
    """
    if regulatory_category != "HEAVY":
        return ComplianceIntegrationResult(compliance_plan=None)

    validation = validate_heavy_vehicle_compliance(
        ComplianceValidationInput(
            regulatory_category=regulatory_category,
            trip_analysis=trip_analysis,
            pickup_at=pickup_at,
            estimated_dropoff_at=estimated_dropoff_at,
            vehicle_category_id=vehicle_category_id,
            license_category_id=license_category_id,
        ),
        rules,
    )
    alternatives = generate_alternatives(validation, cost_parameters, rules)
    staffing = select_best_staffing_plan(alternatives, policy)

    selected = staffing.selected_plan
    if not staffing.is_required or selected is None:
        if not validation.is_compliant:
            logger.warning(f"Heavy-vehicle trip is not compliant and has no staffing plan: {staffing.reason}")
        return ComplianceIntegrationResult(
            compliance_plan=_no_plan(staffing.reason),
            validation=validation,
            staffing=staffing,
        )

    cost = selected.additional_cost
    schedule = selected.adjusted_schedule
    plan = CompliancePlan(
        plan_type=selected.type,
        is_required=True,
        additional_cost=cost.total,
        cost_breakdown=cost.breakdown,
        adjusted_schedule=StaffingSchedule(
            days_required=schedule.days_required,
            drivers_required=schedule.drivers_required,
            hotel_nights_required=schedule.hotel_nights_required,
        ),
        original_violations=tuple(
            {"type": v.type, "message": v.message, "actual": v.actual, "limit": v.limit}
            for v in staffing.original_violations
        ),
        selected_reason=staffing.reason,
    )

    rule = AppliedRule(
        type="COMPLIANCE_STAFFING",
        description=f"RSE compliance: {selected.title} - {staffing.reason}",
        amount=cost.total,
        details={
            "plan_type": selected.type,
            "cost_breakdown": {
                "extra_driver_cost": cost.breakdown.extra_driver_cost,
                "hotel_cost": cost.breakdown.hotel_cost,
                "meal_allowance": cost.breakdown.meal_allowance,
                "other_costs": cost.breakdown.other_costs,
            },
            "adjusted_schedule": {
                "days_required": schedule.days_required,
                "drivers_required": schedule.drivers_required,
                "hotel_nights_required": schedule.hotel_nights_required,
            },
            "violations_resolved": len(staffing.original_violations),
            "policy": staffing.policy,
        },
    )

    return ComplianceIntegrationResult(
        compliance_plan=plan,
        additional_staffing_cost=cost.total,
        applied_rule=rule,
        validation=validation,
        staffing=staffing,
    )


def calculate_estimated_end_at(
    pickup_at: datetime,
    trip_analysis: TripAnalysis,
    compliance_plan: Optional[CompliancePlan] = None,
) -> Optional[datetime]:
    """Pickup time plus the trip duration.

    A multi-day plan spans ``days_required`` whole days from the pickup. Returns
    ``None`` when there is no duration to add.
    """
    plan = compliance_plan or trip_analysis.compliance_plan
    total_minutes = trip_analysis.total_duration_minutes
    if plan is not None and plan.plan_type == "MULTI_DAY" and plan.adjusted_schedule.days_required > 0:
        total_minutes = plan.adjusted_schedule.days_required * 24 * 60
    if total_minutes <= 0:
        return None
    return pickup_at + timedelta(minutes=total_minutes)


# ---------------------------------------------------------------------------
# Full price
# ---------------------------------------------------------------------------


def _resolve_zones(
    trip: TripInput,
    zones: Sequence[ZoneData],
    strategy: Optional[str],
) -> tuple[Optional[ZoneData], Optional[ZoneData]]:
    pickup_zone = find_zone_for_point(trip.pickup, zones, strategy) if trip.pickup else None
    dropoff_zone = find_zone_for_point(trip.dropoff, zones, strategy) if trip.dropoff else None
    return pickup_zone, dropoff_zone


def _segment_route(
    trip: TripInput,
    zones: Sequence[ZoneData],
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
    strategy: Optional[str],
) -> Optional[RouteSegmentationResult]:
    if not zones:
        return None
    if trip.polyline:
        result = segment_route_by_zones(trip.polyline, zones, trip.service_duration_minutes, strategy)
        if result.segments:
            return result
        logger.warning("Route polyline could not be segmented; using pickup/dropoff zones instead")
    return create_fallback_segmentation(
        pickup_zone, dropoff_zone, trip.service_distance_km, trip.service_duration_minutes
    )


def _cost_parameters(
    trip: TripInput,
    settings: OrganizationPricingSettings,
    fuel_type: FuelType,
    fuel: Optional[FuelPriceResult],
) -> tuple[CostParameters, FuelPriceOrigin]:
    """Cost parameters for this trip and where their fuel price came from.

    A cached market price wins; otherwise the organization's configured price,
    and failing that the default for the fuel type.
    """
    category = trip.vehicle_category
    base = settings.cost_parameters
    consumption = resolve_fuel_consumption(
        trip.vehicle_fuel_consumption_l100km,
        category.fuel_consumption_l100km if category else None,
        base.fuel_consumption_l100km,
    )

    price = base.fuel_price_per_liter
    source: FuelPriceOrigin = "ORGANIZATION" if price is not None else "DEFAULT"
    if fuel is not None and fuel.source == "CACHE":
        price, source = fuel.price_per_litre, "CACHE"

    params = replace(
        base,
        fuel_consumption_l100km=consumption.consumption_l100km,
        fuel_price_per_liter=price,
        fuel_type=fuel_type,
    )
    return params, source


def _match_contract_grid(
    trip: TripInput,
    context: PricingContext,
    pickup_zone: Optional[ZoneData],
    dropoff_zone: Optional[ZoneData],
) -> tuple[Optional[GridSearchResult], Optional[FallbackReason]]:
    if not context.is_partner:
        return None, "PRIVATE_CLIENT"
    if context.partner_contract is None:
        return None, "NO_CONTRACT"

    category_id = trip.vehicle_category.id if trip.vehicle_category else None
    search = match_grid(trip.trip_type, category_id, context.partner_contract, pickup_zone, dropoff_zone)
    if search.matched is None:
        logger.debug(f"No grid of contract {context.partner_contract.id} matches; pricing dynamically")
        return search, "NO_ROUTE_MATCH"
    return search, None


def calculate_price(trip: TripInput, context: PricingContext) -> PricingResult:
    """Price a trip and explain the price.

    Partners with a matching contract grid get the grid price; everyone else is
    priced dynamically. Raises ``InvalidInputError`` for negative distances or
    durations. Outages of the fuel cache or the rules store never fail the
    call: defaults apply.
    """
    org = context.settings
    category = trip.vehicle_category
    fuel_type: FuelType = (
        context.fuel_type or (category.fuel_type if category else None) or org.cost_parameters.fuel_type
    )
    conflict_strategy = org.zone_conflict_strategy

    # the fuel lookup is I/O bound, zone matching is not: run them side by side.
    # electricity is not in the fuel price cache
    with ThreadPoolExecutor(max_workers=1) as executor:
        fuel_future = (
            executor.submit(get_fuel_price, context.fuel_country_code, fuel_type)
            if fuel_type != "ELECTRIC"
            else None
        )
        pickup_zone, dropoff_zone = _resolve_zones(trip, context.zones, conflict_strategy)
        segmentation = _segment_route(trip, context.zones, pickup_zone, dropoff_zone, conflict_strategy)
        fuel = fuel_future.result() if fuel_future is not None else None

    cost_parameters, fuel_price_source = _cost_parameters(trip, org, fuel_type, fuel)
    trip_analysis = compute_trip_analysis(trip, org, cost_parameters)
    applied_rules: list[AppliedRule] = []
    rates = resolve_rates(category, org)

    # 1. contract grid, or base price with trip type and margin
    grid_search, fallback_reason = _match_contract_grid(trip, context, pickup_zone, dropoff_zone)
    matched_grid = grid_search.matched if grid_search else None

    if matched_grid is not None:
        price = matched_grid.price
        applied_rules.append(
            AppliedRule(
                type="GRID_MATCH",
                description=f"Contract price: {matched_grid.name} = {matched_grid.price:g}€",
                price_after=price,
                details={
                    "grid_type": matched_grid.type,
                    "grid_id": matched_grid.id,
                    "contract_id": context.partner_contract.id,
                },
            )
        )
    else:
        dynamic = calculate_dynamic_base_price(
            trip.service_distance_km, trip.service_duration_minutes, org, rates
        )
        applied_rules.append(
            AppliedRule(
                type="DYNAMIC_BASE_CALCULATION",
                description=(
                    f"Base price: max(distance {dynamic.distance_based_price:g}€, "
                    f"duration {dynamic.duration_based_price:g}€) = {dynamic.base_price:g}€ "
                    f"({dynamic.selected_method})"
                ),
                price_after=dynamic.base_price,
                details={
                    "rate_per_km": rates.rate_per_km,
                    "rate_per_hour": rates.rate_per_hour,
                    "rates_source": rates.source,
                    "selected_method": dynamic.selected_method,
                },
            )
        )

        trip_type_pricing = apply_trip_type_pricing(
            trip.trip_type,
            trip.service_distance_km,
            trip.service_duration_minutes,
            rates.rate_per_hour,
            dynamic.price_with_margin,
            org,
        )
        if trip_type_pricing.rule is not None:
            # excursion and dispo prices replace the base price and carry no target margin
            price = trip_type_pricing.price
            applied_rules.append(trip_type_pricing.rule)
        else:
            price = dynamic.price_with_margin
            if org.target_margin_percent:
                applied_rules.append(
                    AppliedRule(
                        type="TARGET_MARGIN",
                        description=f"Target margin applied: +{org.target_margin_percent:g}%",
                        price_before=dynamic.base_price,
                        price_after=price,
                        details={"target_margin_percent": org.target_margin_percent},
                    )
                )

    # 2. zones
    route_segmented = segmentation is not None and segmentation.segmentation_method == "POLYLINE"
    if route_segmented:
        before = price
        price = round_currency(price * segmentation.weighted_multiplier)
        applied_rules.append(build_route_segmentation_rule(segmentation, before, price))
    else:
        zone_result = apply_zone_multiplier(price, pickup_zone, dropoff_zone, org.zone_multiplier_aggregation_strategy)
        price = zone_result.adjusted_price
        applied_rules.append(zone_result.applied_rule)

    # 3. vehicle category
    category_result = apply_vehicle_category_multiplier(price, category, rates.source == "CATEGORY")
    price = category_result.adjusted_price
    if category_result.applied_rule is not None:
        applied_rules.append(category_result.applied_rule)

    # 4. time-based rates
    estimated_end_at = trip.estimated_dropoff_at
    if estimated_end_at is None and trip.pickup_at is not None:
        estimated_end_at = trip.pickup_at + timedelta(minutes=trip.service_duration_minutes)
    multipliers = apply_all_multipliers(
        price,
        MultiplierContext(
            pickup_at=trip.pickup_at,
            estimated_end_at=estimated_end_at,
            distance_km=trip.service_distance_km,
            pickup_zone_id=pickup_zone.id if pickup_zone else None,
            dropoff_zone_id=dropoff_zone.id if dropoff_zone else None,
            vehicle_category_id=category.id if category else None,
        ),
        context.advanced_rates,
        context.seasonal_multipliers,
    )
    price = multipliers.adjusted_price
    applied_rules.extend(multipliers.applied_rules)

    # 5. client difficulty
    difficulty = resolve_difficulty_score(trip.end_customer_difficulty_score, trip.contact_difficulty_score)
    difficulty_result = apply_client_difficulty_multiplier(
        price, difficulty.score, org.difficulty_multipliers, difficulty.source
    )
    price = difficulty_result.adjusted_price
    if difficulty_result.applied_rule is not None:
        applied_rules.append(difficulty_result.applied_rule)

    # internal cost of the client leg, plus zone parking and access fees
    zone_surcharges = calculate_zone_surcharges(pickup_zone, dropoff_zone)
    surcharge_details: dict = {
        "pickup_zone": zone_surcharges.pickup.zone_code if zone_surcharges.pickup else None,
        "dropoff_zone": zone_surcharges.dropoff.zone_code if zone_surcharges.dropoff else None,
    }
    if route_segmented:
        # each zone the route crosses charges its fees once
        zone_surcharges = replace(zone_surcharges, total=round_currency(segmentation.total_surcharges))
        surcharge_details["zones_traversed"] = list(segmentation.zones_traversed)

    internal_cost = round_currency(trip_analysis.segments.service.cost.total + zone_surcharges.total)
    if zone_surcharges.total > 0:
        applied_rules.append(
            AppliedRule(
                type="ZONE_SURCHARGE",
                description=f"Zone surcharges added to internal cost: {zone_surcharges.total:g}€",
                amount=zone_surcharges.total,
                details=surcharge_details,
            )
        )

    # 6. round trip
    round_trip = apply_round_trip_multiplier(price, internal_cost, trip.is_round_trip)
    price = round_trip.adjusted_price
    internal_cost = round_trip.adjusted_internal_cost
    if round_trip.applied_rule is not None:
        applied_rules.append(round_trip.applied_rule)

    # 7. heavy-vehicle staffing
    regulatory_category = category.regulatory_category if category else "LIGHT"
    compliance = ComplianceIntegrationResult(compliance_plan=None)
    if regulatory_category == "HEAVY":
        rules = context.rse_rules
        if rules is None and category is not None:
            # imported here so the repository (and its Supabase client) stays out of light-vehicle pricing
            from ...data.rse_rules_repository import load_rse_rules

            rules = load_rse_rules(category.license_category_id)
        compliance = integrate_compliance_into_pricing(
            trip_analysis,
            regulatory_category,
            trip.pickup_at or datetime.now(timezone.utc),
            estimated_dropoff_at=trip.estimated_dropoff_at,
            license_category_id=category.license_category_id if category else None,
            vehicle_category_id=category.id if category else None,
            rules=rules,
            policy=context.staffing_policy or "CHEAPEST",
            cost_parameters=org.staffing_cost_parameters,
        )
        trip_analysis = replace(trip_analysis, compliance_plan=compliance.compliance_plan)
        if compliance.additional_staffing_cost > 0:
            price = round_currency(price + compliance.additional_staffing_cost)
            internal_cost = round_currency(internal_cost + compliance.additional_staffing_cost)
            if compliance.applied_rule is not None:
                applied_rules.append(compliance.applied_rule)

    # 8. deadhead legs, margin
    if trip_analysis.positioning_costs is not None:
        internal_cost = round_currency(internal_cost + trip_analysis.positioning_costs.total_positioning_cost)

    margin, margin_percent = calculate_margin(price, internal_cost)

    return PricingResult(
        price=round_currency(price),
        internal_cost=internal_cost,
        margin=margin,
        margin_percent=margin_percent,
        profitability=get_profitability_data(margin_percent, org),
        applied_rules=tuple(applied_rules),
        trip_analysis=trip_analysis,
        cost_breakdown=trip_analysis.cost_breakdown,
        pickup_zone=pickup_zone,
        dropoff_zone=dropoff_zone,
        zone_surcharges=zone_surcharges,
        route_segmentation=segmentation,
        fuel_price_source=fuel_price_source,
        compliance_plan=compliance.compliance_plan,
        additional_staffing_cost=compliance.additional_staffing_cost,
        estimated_end_at=(
            calculate_estimated_end_at(trip.pickup_at, trip_analysis, compliance.compliance_plan)
            if trip.pickup_at is not None
            else None
        ),
        pricing_mode="FIXED_GRID" if matched_grid is not None else "DYNAMIC",
        fallback_reason=fallback_reason,
        grid_search=grid_search,
    )
