import pytest
from fastapi.testclient import TestClient

from src.marketplace.main import create_app
from src.marketplace.models.domain import Shop
from src.marketplace.persistence import registry
from src.marketplace.persistence.memory import InMemoryStore
from src.marketplace.services.checkout import service as checkout_service
from src.marketplace.services.pricing import settings_provider
from src.marketplace.services.routing.models import DistanceMatrix


class DummyMatrixClient:
    def get_matrix(self, points):
        count = len(points)
        distances = [[0 if i == j else 1000 for j in range(count)] for i in range(count)]
        durations = [[0 if i == j else 90 for j in range(count)] for i in range(count)]
        return DistanceMatrix(points=list(points), distances=distances, durations=durations)


def _settings_row() -> dict:
    return {
        "base_fee": 10,
        "km_rate": 2,
        "pickup_stop_fee": 5,
        "min_fee": 15,
        "max_fee": 100,
        "rounding_rule": "nearest_int",
        "fixed_fallback_fee": 20,
        "fallback_mode": "use_fallback_fee",
        "max_shops_per_order": 3,
        "platform_fee_fixed": 0,
        "platform_fee_percent": 0,
    }


def _checkout_payload(**overrides) -> dict:
    payload = {
        "user_id": "user-1",
        "cart_lines": [
            {"product_id": "p1", "shop_id": "shop-a", "quantity": 2, "unit_price": 12.5, "product_name": "Bread"},
            {"product_id": "p2", "shop_id": "shop-b", "quantity": 1, "unit_price": 40, "product_name": "Cheese"},
        ],
        "delivery_latitude": 30.0444,
        "delivery_longitude": 31.2357,
        "delivery_address": "Tahrir Sq, Cairo",
        "customer_name": "Mona",
        "customer_phone": "+201000000000",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> InMemoryStore:
    memory_store = InMemoryStore(
        settings_row=_settings_row(),
        shops=[
            Shop(id="shop-a", name="Bakery", latitude=30.05, longitude=31.24),
            Shop(id="shop-b", name="Dairy", latitude=30.06, longitude=31.25),
        ],
    )
    settings_provider.get_settings_provider.cache_clear()
    monkeypatch.setattr(registry, "get_store", lambda: memory_store)
    monkeypatch.setattr(checkout_service, "MatrixClient", lambda **kwargs: DummyMatrixClient())
    yield memory_store
    settings_provider.get_settings_provider.cache_clear()


@pytest.fixture
def api_client(store: InMemoryStore) -> TestClient:
    return TestClient(create_app())


def _place_order(api_client: TestClient) -> dict:
    response = api_client.post("/api/checkout", json=_checkout_payload())
    assert response.status_code == 201
    return response.json()


def test_health(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}
    database = api_client.get("/api/health/database").json()
    assert "backend" in database


def test_quote_endpoint(api_client: TestClient):
    response = api_client.post("/api/checkout/quote", json=_checkout_payload())

    assert response.status_code == 200
    payload = response.json()
    assert payload["valid"] is True
    assert payload["errors"] == []
    # 3 km round trip: 10 + 6 + 5
    assert payload["parent_order"]["total_delivery_fee"] == 21
    assert payload["parent_order"]["subtotal"] == 65.0
    assert payload["parent_order"]["total"] == 86.0
    assert payload["route"]["route_points"] == [0, 1, 2, 0]
    assert len(payload["suborders"]) == 2


def test_quote_reports_validation_errors(api_client: TestClient):
    response = api_client.post(
        "/api/checkout/quote",
        json=_checkout_payload(delivery_latitude=None, delivery_longitude=None),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["valid"] is False
    assert payload["parent_order"] is None
    assert len(payload["errors"]) == 1


def test_commit_rejection_is_422(api_client: TestClient):
    response = api_client.post("/api/checkout", json=_checkout_payload(cart_lines=[]))

    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == [checkout_service.EMPTY_CART_MESSAGE]


def test_order_lifecycle(api_client: TestClient, store: InMemoryStore):
    placed = _place_order(api_client)
    parent_id = placed["parent_order_id"]
    suborder_id = placed["suborders"][0]["id"]
    assert placed["suborders"][0]["order_number"] == f"{placed['order_number']}-1"

    order = api_client.get(f"/api/orders/{suborder_id}").json()
    assert order["status"] == "PLACED"
    assert order["status_label"]

    rejected = api_client.post(
        f"/api/orders/{suborder_id}/status",
        json={"status": "DELIVERED", "actor_id": "driver-1"},
    )
    assert rejected.status_code == 409

    confirmed = api_client.post(
        f"/api/orders/{suborder_id}/status",
        json={"status": "CONFIRMED", "actor_id": "shop-owner"},
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "CONFIRMED"

    history = api_client.get(f"/api/orders/{suborder_id}/history").json()
    assert [record["status"] for record in history] == ["PLACED", "CONFIRMED"]

    assigned = api_client.post(f"/api/parent-orders/{parent_id}/driver", json={"driver_id": "driver-1"})
    assert assigned.status_code == 200
    assert assigned.json()["delivery_user_id"] == "driver-1"

    conflict = api_client.post(f"/api/parent-orders/{parent_id}/driver", json={"driver_id": "driver-2"})
    assert conflict.status_code == 409

    cancelled = api_client.post(
        f"/api/parent-orders/{parent_id}/status",
        json={"status": "CANCELLED", "actor_id": "admin", "notes": "Out of stock"},
    )
    assert cancelled.status_code == 200
    assert {sub["status"] for sub in cancelled.json()["suborders"]} == {"CANCELLED"}

    driver_orders = api_client.get("/api/drivers/driver-1/orders").json()
    assert driver_orders["active"] == []
    assert [parent["id"] for parent in driver_orders["history"]] == [parent_id]

    stats = api_client.get("/api/drivers/driver-1/stats").json()
    assert stats["monthly_count"] == 0


def test_unknown_orders_are_404(api_client: TestClient):
    assert api_client.get("/api/orders/missing").status_code == 404
    assert api_client.get("/api/parent-orders/missing").status_code == 404
    response = api_client.post("/api/orders/missing/status", json={"status": "CONFIRMED", "actor_id": "x"})
    assert response.status_code == 404


def test_delivery_settings_endpoints(api_client: TestClient):
    current = api_client.get("/api/delivery-settings")
    assert current.status_code == 200
    assert current.json()["km_rate"] == 2.0

    updated = api_client.patch("/api/delivery-settings", json={"actor_id": "admin-1", "km_rate": 3})
    assert updated.status_code == 200
    assert updated.json()["km_rate"] == 3.0
    assert updated.json()["updated_by"] == "admin-1"

    invalid = api_client.patch("/api/delivery-settings", json={"actor_id": "admin-1", "min_fee": 500})
    assert invalid.status_code == 422

    cleared = api_client.post("/api/delivery-settings/cache/clear")
    assert cleared.json()["success"] is True


def test_missing_settings_are_503(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    empty_store = InMemoryStore()
    monkeypatch.setattr(registry, "get_store", lambda: empty_store)
    settings_provider.get_settings_provider.cache_clear()

    response = api_client.post("/api/checkout/quote", json=_checkout_payload())

    assert response.status_code == 503


def test_admin_endpoints(api_client: TestClient):
    first = _place_order(api_client)
    second = _place_order(api_client)

    page = api_client.get("/api/admin/parent-orders", params={"limit": 1}).json()
    assert page["total"] == 2
    assert len(page["orders"]) == 1
    assert page["orders"][0]["id"] in {first["parent_order_id"], second["parent_order_id"]}
    assert page["orders"][0]["status_label"]

    bad_page = api_client.get("/api/admin/parent-orders", params={"page": 0})
    assert bad_page.status_code == 422

    parent_id = first["parent_order_id"]
    api_client.post(f"/api/parent-orders/{parent_id}/driver", json={"driver_id": "driver-1"})
    reassigned = api_client.put(
        f"/api/admin/parent-orders/{parent_id}/driver",
        json={"driver_id": "driver-2", "actor_id": "admin-1"},
    )
    assert reassigned.status_code == 200
    assert reassigned.json()["delivery_user_id"] == "driver-2"

    unassigned = api_client.put(
        f"/api/admin/parent-orders/{parent_id}/driver",
        json={"driver_id": None, "actor_id": "admin-1"},
    )
    assert unassigned.json()["delivery_user_id"] is None

    missing = api_client.put("/api/admin/parent-orders/missing/driver", json={"driver_id": "d", "actor_id": "a"})
    assert missing.status_code == 404

    api_client.post(f"/api/parent-orders/{parent_id}/driver", json={"driver_id": "driver-1"})
    for step in ("CONFIRMED", "PREPARING", "OUT_FOR_DELIVERY", "DELIVERED"):
        response = api_client.post(
            f"/api/parent-orders/{parent_id}/status",
            json={"status": step, "actor_id": "driver-1"},
        )
        assert response.status_code == 200

    period = {"start": "2000-01-01T00:00:00Z", "end": "2100-01-01T00:00:00Z"}
    summary = api_client.get("/api/admin/couriers/summary", params=period).json()
    assert [row["driver_id"] for row in summary] == ["driver-1"]
    assert summary[0]["delivered_count_period"] == 1
    assert summary[0]["earnings_period"] == 21.0

    analytics = api_client.get("/api/admin/couriers/driver-1/analytics", params=period).json()
    assert len(analytics) == 1
    assert analytics[0]["delivered_count"] == 1

    inverted = api_client.get(
        "/api/admin/couriers/summary",
        params={"start": period["end"], "end": period["start"]},
    )
    assert inverted.status_code == 422
