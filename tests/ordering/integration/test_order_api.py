"""Integration tests for Order API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import order_router
from ordering.order.order import Order, OrderStatus
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers

ADDRESS = {
    "first_name": "Mei",
    "last_name": "Lin",
    "address_line1": "88 Canal St",
    "city": "New York",
    "state": "NY",
    "postal_code": "10013",
    "country": "US",
}


@pytest.fixture()
def client(catalogue, inventory, monkeypatch):
    monkeypatch.delenv("DEFAULT_STOCK_LOCATION", raising=False)
    app = FastAPI()
    app.include_router(order_router)
    register_exception_handlers(app)
    return TestClient(app)


def _create_order(client, **overrides):
    """Helper: POST /orders and return the order_id."""
    body = {
        "user_id": "user-api-1",
        "items": [{"variant_id": "var-tee-m", "quantity": 2}],
        "shipping": 5.0,
    }
    body.update(overrides)
    response = client.post("/orders", json=body)
    assert response.status_code == 201
    return response.json()["order_id"]


def _pay(client, order_id):
    client.put(f"/orders/{order_id}/address", json={"billing_address": ADDRESS, "shipping_address": ADDRESS})
    return client.put(f"/orders/{order_id}/pay", json={"changed_by": "payments"})


class TestCreateOrderEndpoint:
    def test_create_order(self, client):
        order_id = _create_order(client)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.user_id == "user-api-1"
        assert order.totals.total == 55.0

    def test_create_guest_order(self, client):
        order_id = _create_order(client, user_id=None, guest_token="guest-api")
        assert current_domain.repository_for(Order).get(order_id).guest_token == "guest-api"

    def test_unknown_variant_returns_error(self, client):
        response = client.post("/orders", json={"user_id": "u", "items": [{"variant_id": "ghost", "quantity": 1}]})
        assert response.status_code == 404

    def test_insufficient_stock_returns_error(self, client):
        response = client.post("/orders", json={"user_id": "u", "items": [{"variant_id": "var-jeans", "quantity": 11}]})
        assert response.status_code == 400

    def test_missing_identity_returns_error(self, client):
        response = client.post("/orders", json={"items": [{"variant_id": "var-jeans", "quantity": 1}]})
        assert response.status_code == 400

    def test_create_reports_inventory_failures(self, client, inventory):
        inventory.fail_for("var-tee-m", "ledger offline")

        response = client.post("/orders", json={"user_id": "u", "items": [{"variant_id": "var-tee-m", "quantity": 2}]})

        assert response.status_code == 201
        failures = response.json()["inventory_failures"]
        assert failures == [
            {"variant_id": "var-tee-m", "location_id": "wh-main", "quantity": 2, "error": "ledger offline"}
        ]
        assert client.get(f"/orders/{response.json()['order_id']}").status_code == 200

    def test_clean_create_reports_no_failures(self, client):
        response = client.post("/orders", json={"user_id": "u", "items": [{"variant_id": "var-jeans", "quantity": 1}]})
        assert response.json()["inventory_failures"] == []

    def test_zero_quantity_rejected_by_schema(self, client):
        response = client.post("/orders", json={"user_id": "u", "items": [{"variant_id": "var-jeans", "quantity": 0}]})
        assert response.status_code == 422


class TestReadEndpoints:
    def test_get_order(self, client):
        order_id = _create_order(client)

        response = client.get(f"/orders/{order_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "created"
        assert data["items"][0]["sku"] == "TEE-M"
        assert data["items"][0]["name"] == "Linen Tee"
        assert data["totals"]["subtotal"] == 50.0
        assert data["address"] is None

    def test_get_order_by_number(self, client):
        order_id = _create_order(client)
        number = client.get(f"/orders/{order_id}").json()["order_number"]

        response = client.get(f"/orders/by-number/{number}")
        assert response.status_code == 200
        assert response.json()["order_id"] == order_id

    def test_unknown_order_returns_404(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404

    def test_list_orders(self, client):
        _create_order(client)
        _create_order(client, user_id="user-api-2")

        response = client.get("/orders", params={"user_id": "user-api-2"})
        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["items"][0]["user_id"] == "user-api-2"

    def test_list_orders_rejects_unknown_sort_field(self, client):
        assert client.get("/orders", params={"sort_by": "password"}).status_code == 400

    def test_history_and_events(self, client):
        order_id = _create_order(client)
        _pay(client, order_id)

        history = client.get(f"/orders/{order_id}/history").json()
        assert [h["to_status"] for h in history] == ["created", "paid"]
        assert history[1]["changed_by"] == "payments"

        events = client.get(f"/orders/{order_id}/events").json()
        assert events[0]["event_type"] == "order.created"

        paid = client.get(f"/orders/{order_id}/events", params={"event_type": "order.paid"}).json()
        assert len(paid) == 1


class TestModificationEndpoints:
    def test_item_lifecycle(self, client):
        order_id = _create_order(client)

        response = client.post(f"/orders/{order_id}/items", json={"variant_id": "var-jeans", "quantity": 1})
        assert response.status_code == 201
        item_id = response.json()["item_id"]

        assert client.put(f"/orders/{order_id}/items/{item_id}/quantity", json={"quantity": 3}).status_code == 200
        assert (
            client.put(
                f"/orders/{order_id}/items/{item_id}/gift", json={"is_gift": True, "gift_message": "Enjoy"}
            ).status_code
            == 200
        )

        data = client.get(f"/orders/{order_id}").json()
        jeans = next(i for i in data["items"] if i["item_id"] == item_id)
        assert jeans["quantity"] == 3
        assert jeans["is_gift"] is True
        assert data["totals"]["subtotal"] == 290.0

        assert client.delete(f"/orders/{order_id}/items/{item_id}").status_code == 200
        assert len(client.get(f"/orders/{order_id}").json()["items"]) == 1

    def test_cannot_remove_last_item(self, client):
        order_id = _create_order(client)
        item_id = client.get(f"/orders/{order_id}").json()["items"][0]["item_id"]
        assert client.delete(f"/orders/{order_id}/items/{item_id}").status_code == 400

    def test_update_totals(self, client):
        order_id = _create_order(client)
        response = client.put(f"/orders/{order_id}/totals", json={"tax": 4.0, "shipping": 0.0, "discount": 10.0})
        assert response.status_code == 200
        assert client.get(f"/orders/{order_id}").json()["totals"]["total"] == 44.0


class TestLifecycleEndpoints:
    def test_pay_reports_reservation_failures(self, client, inventory):
        order_id = _create_order(client)
        inventory.fail_for("var-tee-m", "reservations paused")

        response = _pay(client, order_id)

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert [f["error"] for f in response.json()["inventory_failures"]] == ["reservations paused"]
        assert client.get(f"/orders/{order_id}").json()["status"] == "paid"

    def test_cancel_created_order_reports_no_failures(self, client):
        order_id = _create_order(client)
        response = client.put(f"/orders/{order_id}/cancel")
        assert response.json() == {"status": "ok", "inventory_failures": []}

    def test_pay_requires_address(self, client):
        order_id = _create_order(client)
        assert client.put(f"/orders/{order_id}/pay").status_code == 400

    def test_full_lifecycle(self, client):
        order_id = _create_order(client)
        assert _pay(client, order_id).status_code == 200

        response = client.post(f"/orders/{order_id}/shipments", json={"gift_receipt": True})
        assert response.status_code == 201
        shipment_id = response.json()["shipment_id"]

        ship = client.put(
            f"/orders/{order_id}/shipments/{shipment_id}/ship",
            json={"carrier": "UPS", "service": "Ground", "tracking_number": "1Z1"},
        )
        assert ship.status_code == 200
        assert (
            client.put(
                f"/orders/{order_id}/shipments/{shipment_id}/tracking", json={"tracking_number": "1Z2"}
            ).status_code
            == 200
        )
        assert client.put(f"/orders/{order_id}/shipments/{shipment_id}/deliver").status_code == 200
        assert client.put(f"/orders/{order_id}/fulfil").status_code == 200

        data = client.get(f"/orders/{order_id}").json()
        assert data["status"] == "fulfilled"
        assert data["shipments"][0]["tracking_number"] == "1Z2"
        assert data["shipments"][0]["delivered_at"] is not None

        assert client.put(f"/orders/{order_id}/refund", json={"reason": "Damaged"}).status_code == 200
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.REFUNDED.value

    def test_cancel(self, client):
        order_id = _create_order(client)
        response = client.put(f"/orders/{order_id}/cancel", json={"reason": "Changed mind"})
        assert response.status_code == 200
        assert client.get(f"/orders/{order_id}").json()["status"] == "cancelled"

    def test_invalid_transition_returns_error(self, client):
        order_id = _create_order(client)
        assert client.put(f"/orders/{order_id}/fulfil").status_code == 400

    def test_change_status(self, client):
        order_id = _create_order(client)
        response = client.put(f"/orders/{order_id}/status", json={"status": "cancelled", "changed_by": "ops"})
        assert response.status_code == 200
        assert client.get(f"/orders/{order_id}").json()["status"] == "cancelled"

    def test_change_status_to_unreachable_state(self, client):
        order_id = _create_order(client)
        assert client.put(f"/orders/{order_id}/status", json={"status": "refunded"}).status_code == 400

    def test_delete_order(self, client):
        order_id = _create_order(client)
        assert client.delete(f"/orders/{order_id}").status_code == 200
        assert client.get(f"/orders/{order_id}").status_code == 404
