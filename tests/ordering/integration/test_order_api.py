"""Integration tests for the cart and order endpoints via TestClient."""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from protean import current_domain

from ordering.api import cart_router, order_router, register_error_handlers
from ordering.domain import ordering
from ordering.order.order import Order

ALICE = {"X-User-Id": "cust-alice"}
BOB = {"X-User-Id": "cust-bob"}
ADMIN = {"X-User-Id": "admin-001", "X-User-Role": "admin"}


@pytest.fixture()
def client():
    app = FastAPI()

    @app.middleware("http")
    async def domain_context(request: Request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    app.include_router(order_router)
    app.include_router(cart_router)
    register_error_handlers(app)
    return TestClient(app)


def _fill_cart(client, headers=ALICE, lines=(("p-mug", 2), ("p-poster", 1))):
    for product_id, quantity in lines:
        response = client.post("/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)
        assert response.status_code == 201


def _place_order(client, address, headers=ALICE, lines=(("p-mug", 2), ("p-poster", 1))):
    _fill_cart(client, headers, lines)
    response = client.post("/orders", json={"shipping_address": address}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestCartEndpoints:
    def test_add_and_view(self, client, stocked):
        _fill_cart(client)

        response = client.get("/cart", headers=ALICE)

        assert response.status_code == 200
        assert response.json()["total"] == 25.0
        assert len(response.json()["items"]) == 2

    def test_remove_item(self, client, stocked):
        _fill_cart(client)
        response = client.delete("/cart/items/p-mug", headers=ALICE)
        assert response.status_code == 200
        assert [item["product_id"] for item in response.json()["items"]] == ["p-poster"]

    def test_update_item_quantity(self, client, stocked):
        _fill_cart(client)
        response = client.put("/cart/items/p-mug", json={"quantity": 5}, headers=ALICE)
        assert response.status_code == 200
        assert {item["product_id"]: item["quantity"] for item in response.json()["items"]} == {
            "p-mug": 5,
            "p-poster": 1,
        }

    def test_update_item_out_of_range(self, client, stocked):
        _fill_cart(client)
        response = client.put("/cart/items/p-mug", json={"quantity": 0}, headers=ALICE)
        assert response.status_code == 400

    def test_clear_cart(self, client, stocked):
        _fill_cart(client)
        response = client.delete("/cart", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["total"] == 0

    def test_unknown_product(self, client, stocked):
        response = client.post("/cart/items", json={"product_id": "p-ghost", "quantity": 1}, headers=ALICE)
        assert response.status_code == 404

    def test_identity_required(self, client, stocked):
        assert client.get("/cart").status_code == 401


class TestCreateOrderEndpoint:
    def test_checkout(self, client, stocked, address):
        body = _place_order(client, address)

        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["subtotal"] == 25.0
        assert body["tax"] == 2.0
        assert body["shipping_cost"] == 10.0
        assert body["total_amount"] == 37.0
        assert body["total_items"] == 3
        assert body["order_number"].startswith("ORD-")
        assert body["status_history"][0]["note"] == "Order placed"

        assert client.get("/cart", headers=ALICE).json()["items"] == []
        assert stocked.get_product("p-mug").available_quantity == 48

    def test_empty_cart(self, client, stocked, address):
        response = client.post("/orders", json={"shipping_address": address}, headers=ALICE)
        assert response.status_code == 400

    def test_incomplete_address(self, client, stocked, address):
        _fill_cart(client)
        del address["zip_code"]

        response = client.post("/orders", json={"shipping_address": address}, headers=ALICE)

        assert response.status_code == 400
        assert "zip_code" in str(response.json())
        assert stocked.get_product("p-mug").available_quantity == 50

    def test_stock_ran_out_after_adding_to_cart(self, client, stocked, address):
        _fill_cart(client, lines=(("p-mug", 2),))
        stocked.stock_product("p-mug", "Mug", 10.00, 1)

        response = client.post("/orders", json={"shipping_address": address}, headers=ALICE)

        assert response.status_code == 400
        assert "Insufficient stock" in str(response.json())

    def test_identity_required(self, client, stocked, address):
        assert client.post("/orders", json={"shipping_address": address}).status_code == 401


class TestReadEndpoints:
    def test_get_own_order(self, client, stocked, address):
        order = _place_order(client, address)
        response = client.get(f"/orders/{order['id']}", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["order_number"] == order["order_number"]

    def test_other_customers_order_is_not_found(self, client, stocked, address):
        order = _place_order(client, address)
        assert client.get(f"/orders/{order['id']}", headers=BOB).status_code == 404

    def test_list_with_pagination(self, client, stocked, address):
        for _ in range(3):
            _place_order(client, address, lines=(("p-poster", 1),))

        response = client.get("/orders", params={"page": 1, "limit": 2}, headers=ALICE)

        body = response.json()
        assert len(body["orders"]) == 2
        assert body["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 3,
            "total_pages": 2,
            "has_next": True,
            "has_prev": False,
        }
        assert body["summary"] is None


class TestCancelEndpoint:
    def test_cancel_then_cancel_again(self, client, stocked, address):
        order = _place_order(client, address)

        first = client.put(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=ALICE)
        second = client.put(f"/orders/{order['id']}/cancel", headers=ALICE)

        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"
        assert second.status_code == 409
        assert stocked.get_product("p-mug").available_quantity == 50

    def test_cannot_cancel_shipped_order(self, client, stocked, address):
        order = _place_order(client, address)
        for status in ("confirmed", "processing", "shipped"):
            client.put(f"/orders/admin/{order['id']}/status", json={"status": status}, headers=ADMIN)

        response = client.put(f"/orders/{order['id']}/cancel", headers=ALICE)

        assert response.status_code == 409
        assert current_domain.repository_for(Order).get(order["id"]).status == "shipped"


class TestAdminEndpoints:
    def test_update_requires_admin(self, client, stocked, address):
        order = _place_order(client, address)
        response = client.put(f"/orders/admin/{order['id']}/status", json={"status": "confirmed"}, headers=ALICE)
        assert response.status_code == 403

    def test_update_status_and_tracking(self, client, stocked, address):
        order = _place_order(client, address)
        client.put(f"/orders/admin/{order['id']}/status", json={"status": "confirmed"}, headers=ADMIN)
        client.put(f"/orders/admin/{order['id']}/status", json={"status": "processing"}, headers=ADMIN)

        response = client.put(
            f"/orders/admin/{order['id']}/status",
            json={"status": "shipped", "tracking_number": "1Z999AA10123456784", "note": "Left the dock"},
            headers=ADMIN,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "shipped"
        assert body["tracking_number"] == "1Z999AA10123456784"
        assert body["shipped_at"] is not None
        assert body["status_history"][-1]["actor_id"] == "admin-001"

    def test_illegal_transition(self, client, stocked, address):
        order = _place_order(client, address)
        response = client.put(f"/orders/admin/{order['id']}/status", json={"status": "delivered"}, headers=ADMIN)
        assert response.status_code == 409

    def test_unknown_order(self, client, stocked):
        response = client.put("/orders/admin/no-such-order/status", json={"status": "confirmed"}, headers=ADMIN)
        assert response.status_code == 404

    def test_list_all_with_summary(self, client, stocked, address):
        _place_order(client, address)
        _place_order(client, address, headers=BOB, lines=(("p-poster", 1),))

        response = client.get("/orders/admin/all", headers=ADMIN)

        body = response.json()
        assert response.status_code == 200
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["limit"] == 20
        assert body["summary"]["total_orders"] == 2
        assert body["summary"]["total_revenue"] == pytest.approx(37.0 + 15.4)

    def test_list_all_requires_admin(self, client, stocked):
        assert client.get("/orders/admin/all", headers=ALICE).status_code == 403
