import pytest
from fastapi.testclient import TestClient

from vtc_engine.db import supabase as supabase_module
from vtc_engine.main import create_app
from vtc_engine.services.fuel.service import FuelPriceResult
from vtc_engine.services.pricing import engine
from vtc_engine.services.routing import service as routing_service
from vtc_engine.services.routing.models import OSRMRoute

HEAVY_RULES = {
    "license_category_id": "lic-d",
    "license_category_code": "D",
    "max_daily_driving_hours": 10,
    "max_daily_amplitude_hours": 14,
    "break_minutes_per_driving_block": 45,
    "driving_block_hours_for_break": 4.5,
    "capped_average_speed_kmh": 85,
}


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
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
    monkeypatch.setattr(supabase_module, "get_supabase_client", lambda: None)
    return TestClient(create_app())


def test_root_and_health(api_client: TestClient):
    assert api_client.get("/").json()["status"] == "running"
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_osrm_health_when_not_configured(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from vtc_engine.api.routes import health

    monkeypatch.setattr(health.settings, "osrm_base_url", None)

    assert api_client.get("/api/health/osrm").json() == {"service": "osrm", "configured": False, "healthy": False}


def test_database_health_when_not_configured(api_client: TestClient):
    body = api_client.get("/api/health/database").json()

    assert body["configured"] is False


def test_quote_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={"trip": {"service_distance_km": 50, "service_duration_minutes": 60}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["price"] == 150.0
    assert body["internal_cost"] == 44.7
    assert body["profitability"]["indicator"] == "green"
    assert body["applied_rules"][0]["type"] == "DYNAMIC_BASE_CALCULATION"
    assert body["trip_analysis"]["segments"]["service"]["description"] == "Pickup → Dropoff (client trip)"


def test_quote_endpoint_heavy_vehicle(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={
            "trip": {
                "service_distance_km": 600,
                "service_duration_minutes": 700,
                "pickup_at": "2025-03-12T08:00:00",
                "vehicle_category": {"id": "coach", "code": "COACH", "name": "Coach", "regulatory_category": "HEAVY"},
            },
            "rse_rules": HEAVY_RULES,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["compliance_plan"]["plan_type"] == "RELAY_DRIVER"
    assert body["additional_staffing_cost"] > 0


def test_quote_rejects_negative_distance(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={"trip": {"service_distance_km": -1, "service_duration_minutes": 60}},
    )

    assert response.status_code == 422


def test_quote_routes_trip_without_distance(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    class DummyOSRM:
        def route(self, coordinates):
            return OSRMRoute(distance_km=50, duration_minutes=60, geometry="_p~iF~ps|U")

    monkeypatch.setattr(routing_service, "_default_client", lambda: DummyOSRM())

    response = api_client.post(
        "/api/pricing/quote",
        json={"trip": {"pickup": {"lat": 48.8566, "lng": 2.3522}, "dropoff": {"lat": 48.9466, "lng": 2.3522}}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["price"] == 150.0
    service = body["trip_analysis"]["segments"]["service"]
    assert service["distance_km"] == 50
    assert service["is_estimated"] is False


def test_quote_estimates_distance_without_osrm(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service, "_default_client", lambda: None)

    response = api_client.post(
        "/api/pricing/quote",
        json={
            "trip": {
                "pickup": {"lat": 48.8566, "lng": 2.3522},
                "dropoff": {"lat": 48.9466, "lng": 2.3522},
                "vehicle_base": {"lat": 48.80, "lng": 2.3522},
            }
        },
    )

    assert response.status_code == 200
    segments = response.json()["trip_analysis"]["segments"]
    assert segments["service"]["is_estimated"] is True
    assert segments["approach"] is not None
    assert segments["return_"] is not None


def test_quote_needs_distance_or_both_points(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={"trip": {"pickup": {"lat": 48.8566, "lng": 2.3522}}},
    )

    assert response.status_code == 422


def test_quote_with_partner_contract(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={
            "trip": {
                "service_distance_km": 30,
                "service_duration_minutes": 240,
                "trip_type": "DISPO",
                "vehicle_category": {"id": "sedan", "code": "SEDAN", "name": "Sedan"},
            },
            "is_partner": True,
            "partner_contract": {
                "id": "contract-1",
                "dispo_packages": [
                    {"id": "half-day", "name": "Half day", "vehicle_category_id": "sedan", "base_price": 300}
                ],
            },
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pricing_mode"] == "FIXED_GRID"
    assert body["price"] == 300.0
    assert body["applied_rules"][0]["type"] == "GRID_MATCH"


def test_quote_rejects_malformed_rate_time(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/quote",
        json={
            "trip": {"service_distance_km": 10, "service_duration_minutes": 20},
            "advanced_rates": [
                {
                    "id": "night",
                    "name": "Night",
                    "applies_to": "NIGHT",
                    "adjustment_type": "PERCENTAGE",
                    "value": 20,
                    "start_time": "25:00",
                    "end_time": "06:00",
                }
            ],
        },
    )

    assert response.status_code == 422


def test_segment_route_fallback(api_client: TestClient):
    response = api_client.post(
        "/api/pricing/segment-route",
        json={
            "zones": [
                {
                    "id": "center",
                    "code": "CENTER",
                    "name": "Center",
                    "zone_type": "RADIUS",
                    "center_latitude": 48.855,
                    "center_longitude": 2.35,
                    "radius_km": 3,
                    "price_multiplier": 1.2,
                }
            ],
            "pickup": {"lat": 48.855, "lng": 2.35},
            "dropoff": {"lat": 48.855, "lng": 2.36},
            "distance_km": 2,
            "duration_minutes": 8,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["segmentation_method"] == "FALLBACK"
    assert body["zones_traversed"] == ["CENTER"]
    assert body["weighted_multiplier"] == 1.2


def test_segment_route_rejects_malformed_polyline(api_client: TestClient):
    response = api_client.post("/api/pricing/segment-route", json={"zones": [], "polyline": "_"})

    assert response.status_code == 400


def test_invoice_lines_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/invoices/lines",
        json={
            "final_price": 165,
            "pickup_address": "Paris",
            "dropoff_address": "CDG",
            "applied_rules": {
                "optional_fees": [{"id": "seat", "name": "Child seat", "amount": 15, "vat_rate": 20}],
                "promotions": [{"id": "p1", "code": "WELCOME", "discount_amount": 10}],
            },
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["transport_amount"] == 160.0
    assert [line["line_type"] for line in body["lines"]] == ["SERVICE", "OPTIONAL_FEE", "PROMOTION_ADJUSTMENT"]
    assert body["totals"] == {"total_excl_vat": 165.0, "total_vat": 18.0, "total_incl_vat": 183.0}


def test_compliance_validate_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/compliance/validate",
        json={"pickup_at": "2025-03-12T08:00:00", "service": {"distance_km": 500, "duration_minutes": 601}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["is_compliant"] is False
    assert body["summary"]["status"] == "VIOLATION"
    assert body["result"]["violations"][0]["type"] == "DRIVING_TIME_EXCEEDED"


def test_compliance_alternatives_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/compliance/alternatives",
        json={
            "pickup_at": "2025-03-12T08:00:00",
            "service": {"distance_km": 600, "duration_minutes": 700},
            "rules": HEAVY_RULES,
            "policy": "CHEAPEST",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["alternatives"]["recommended_alternative"] == "RELAY_DRIVER"
    assert body["selection"]["selected_plan"]["type"] == "RELAY_DRIVER"
    assert body["selection"]["is_required"] is True
