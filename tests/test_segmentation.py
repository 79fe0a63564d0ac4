import polyline
import pytest

from vtc_engine.models.domain import ZoneData
from vtc_engine.services.zoning.segmentation import (
    build_route_segmentation_rule,
    calculate_weighted_multiplier,
    create_fallback_segmentation,
    segment_route_by_zones,
)

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[2.30, 48.83], [2.40, 48.83], [2.40, 48.88], [2.30, 48.88], [2.30, 48.83]]],
}


def _encode(points: list[tuple[float, float]]) -> str:
    return polyline.encode(points, 5)


def _zone(zone_id: str = "paris", multiplier: float = 1.2, parking: float | None = 5.0) -> ZoneData:
    return ZoneData(
        id=zone_id,
        code=zone_id.upper(),
        name=zone_id.title(),
        zone_type="POLYGON",
        geometry=SQUARE,
        price_multiplier=multiplier,
        fixed_parking_surcharge=parking,
    )


def test_route_entering_a_zone_is_split_at_the_boundary():
    polyline = _encode([(48.855, 2.20), (48.855, 2.25), (48.855, 2.35)])

    result = segment_route_by_zones(polyline, [_zone()], total_duration_minutes=30)

    assert result.segmentation_method == "POLYLINE"
    assert result.zones_traversed == ["OUTSIDE_ZONES", "PARIS"]
    assert len(result.segments) == 2
    outside, paris = result.segments
    # boundary at lng 2.30: two thirds of the route outside, one third inside
    assert outside.distance_km == pytest.approx(2 * paris.distance_km, rel=0.01)
    assert outside.duration_minutes + paris.duration_minutes == pytest.approx(30, abs=0.02)
    assert paris.entry_point.lng == pytest.approx(2.30, abs=0.001)
    assert result.weighted_multiplier == pytest.approx(1.0667, abs=0.002)
    assert result.total_surcharges == 5.0


def test_zone_surcharge_applied_once_when_route_reenters():
    polyline = _encode([(48.855, 2.35), (48.855, 2.45), (48.855, 2.36)])

    result = segment_route_by_zones(polyline, [_zone()], total_duration_minutes=20)

    assert len(result.segments) == 3
    assert result.zones_traversed == ["PARIS", "OUTSIDE_ZONES"]
    assert [seg.surcharges_applied for seg in result.segments] == [5.0, 0.0, 0.0]
    assert result.total_surcharges == 5.0


def test_route_inside_a_single_zone():
    polyline = _encode([(48.85, 2.33), (48.86, 2.36)])

    result = segment_route_by_zones(polyline, [_zone(multiplier=1.5)], total_duration_minutes=10)

    assert result.zones_traversed == ["PARIS"]
    assert result.weighted_multiplier == 1.5
    assert result.segments[0].duration_minutes == 10


def test_empty_polyline_has_neutral_multiplier():
    result = segment_route_by_zones("", [_zone()], total_duration_minutes=10)

    assert result.segments == []
    assert result.weighted_multiplier == 1.0
    assert result.total_surcharges == 0.0


def test_weighted_multiplier_of_nothing_is_one():
    assert calculate_weighted_multiplier([], 0) == 1.0


def test_fallback_segmentation_splits_between_pickup_and_dropoff():
    pickup = _zone("a", multiplier=1.2, parking=None)
    dropoff = _zone("b", multiplier=1.5, parking=None)

    result = create_fallback_segmentation(pickup, dropoff, 20, 30)

    assert result.segmentation_method == "FALLBACK"
    assert [seg.distance_km for seg in result.segments] == [10, 10]
    assert result.weighted_multiplier == pytest.approx(1.35)
    assert result.zones_traversed == ["A", "B"]


def test_fallback_segmentation_same_zone_is_one_segment():
    zone = _zone()

    result = create_fallback_segmentation(zone, zone, 12, 20)

    assert len(result.segments) == 1
    assert result.weighted_multiplier == 1.2
    assert result.total_surcharges == 5.0


def test_fallback_segmentation_without_zones():
    result = create_fallback_segmentation(None, None, 12, 20)

    assert result.segments == []
    assert result.weighted_multiplier == 1.0


def test_segmentation_rule_describes_route():
    result = create_fallback_segmentation(_zone("a", 1.2), _zone("b", 1.5), 20, 30)

    rule = build_route_segmentation_rule(result, 100.0, 135.0)

    assert rule.type == "ROUTE_SEGMENTATION"
    assert rule.description.startswith("Fallback segmentation (no polyline): A → B")
    assert rule.multiplier == pytest.approx(1.35)
    assert rule.details["segment_count"] == 2
