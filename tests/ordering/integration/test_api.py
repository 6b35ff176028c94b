"""Integration tests for the ordering HTTP API."""

import inspect
import json

import pytest
from fastapi.testclient import TestClient
from ordering.api.application import create_app
from ordering.order.repository import OrderRepository

CART = [
    {"product_id": "prod-001", "product_name": "Linen Shirt", "quantity": 2, "unit_price": 10.0},
    {"product_id": "prod-002", "product_name": "Canvas Tote", "quantity": 1, "unit_price": 25.0},
]
CUSTOMER = {"X-Customer-Id": "cust-001"}


@pytest.fixture()
def client(services):
    return TestClient(create_app(services), raise_server_exceptions=False)


@pytest.fixture()
def checkout(client, address):
    def _checkout(items=None, headers=None):
        return client.post(
            "/checkout",
            json={"items": items or CART, "shipping_address": address},
            headers=headers or CUSTOMER,
        )

    return _checkout


@pytest.fixture()
def notify(client):
    def _notify(order_number, outcome="success", txn="txn-001", amount=64.5, signature="test-signature"):
        body = {
            "external_transaction_id": txn,
            "order_reference": order_number,
            "outcome": outcome,
            "amount": amount,
        }
        return client.post(
            "/webhooks/payments",
            content=json.dumps(body),
            headers={"X-Gateway-Signature": signature, "Content-Type": "application/json"},
        )

    return _notify


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestCheckoutEndpoint:
    def test_checkout_returns_payment_page(self, checkout, fetch_order):
        response = checkout()

        assert response.status_code == 201
        data = response.json()
        assert data["total"] == 64.5
        assert data["session_url"].startswith("https://pay.example.test/")
        assert fetch_order(data["order_number"]).status == "pending"

    def test_requires_customer(self, client, address):
        response = client.post("/checkout", json={"items": CART, "shipping_address": address})
        assert response.status_code == 401

    def test_missing_address_field(self, checkout, address, orders):
        del address["city"]

        response = checkout()

        assert response.status_code == 400
        assert "city" in response.json()["detail"]
        assert orders() == []

    def test_malformed_cart(self, checkout):
        response = checkout(items=[{"product_id": "prod-001", "quantity": 0, "unit_price": 10.0}])
        assert response.status_code == 400

    def test_insufficient_stock(self, checkout, ledger):
        response = checkout(items=[{"product_id": "prod-003", "quantity": 2, "unit_price": 40.0}])

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "error": "insufficient_stock",
            "product_id": "prod-003",
            "requested": 2,
            "available": 1,
        }
        assert ledger.available("prod-003") == 1

    def test_gateway_timeout(self, checkout, gateway, orders):
        gateway.configure(should_time_out=True)

        response = checkout()

        assert response.status_code == 503
        (order,) = orders()
        assert order.status == "pending"

    def test_idempotency_key_reuses_order(self, client, address, orders):
        headers = {**CUSTOMER, "Idempotency-Key": "cart-42"}
        body = {"items": CART, "shipping_address": address}

        first = client.post("/checkout", json=body, headers=headers)
        second = client.post("/checkout", json=body, headers=headers)

        assert first.status_code == second.status_code == 201
        assert first.json()["order_number"] == second.json()["order_number"]
        assert len(orders()) == 1

    def test_discount_lowers_the_session_total(self, client, address, gateway):
        body = {"items": CART, "shipping_address": address, "discount": 5}

        response = client.post("/checkout", json=body, headers=CUSTOMER)

        assert response.status_code == 201
        assert response.json()["total"] == 59.5
        assert gateway.calls[0]["discount"] == 5.0

    def test_negative_discount_rejected(self, client, address, orders):
        body = {"items": CART, "shipping_address": address, "discount": -5}

        response = client.post("/checkout", json=body, headers=CUSTOMER)

        assert response.status_code == 400
        assert orders() == []

    def test_transaction_failure(self, checkout, ledger, orders, monkeypatch):
        def broken_add(self, aggregate):
            raise OSError("disk full")

        monkeypatch.setattr(OrderRepository, "add", broken_add)

        response = checkout()

        assert response.status_code == 500
        assert orders() == []
        assert ledger.available("prod-001") == 10


class TestWebhookEndpoint:
    def test_success_marks_order_paid(self, checkout, notify, fetch_order):
        order_number = checkout().json()["order_number"]

        response = notify(order_number)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        assert fetch_order(order_number).status == "paid"

    def test_duplicate_is_acknowledged(self, checkout, notify, events):
        order_number = checkout().json()["order_number"]
        notify(order_number)

        response = notify(order_number)

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate"
        assert len(events("OrderPaid")) == 1

    def test_unknown_order_is_acknowledged(self, notify):
        response = notify("ORD-NOPE-0001")

        assert response.status_code == 200
        assert response.json()["outcome"] == "order_not_found"

    def test_bad_signature_rejected(self, checkout, notify, fetch_order):
        order_number = checkout().json()["order_number"]

        response = notify(order_number, signature="forged")

        assert response.status_code == 400
        assert fetch_order(order_number).status == "pending"

    def test_unhandled_outcome_is_ignored(self, checkout, notify):
        order_number = checkout().json()["order_number"]
        response = notify(order_number, outcome="refund")

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"


class TestOrderEndpoints:
    def test_confirmation_reads_stored_state(self, client, checkout, notify):
        order_number = checkout().json()["order_number"]
        notify(order_number)

        response = client.get("/orders/confirmation", params={"order_number": order_number}, headers=CUSTOMER)

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "paid"
        assert data["payment"]["status"] == "completed"
        assert len(data["order_items"]) == 2

    def test_confirmation_of_another_customer(self, client, checkout):
        order_number = checkout().json()["order_number"]

        response = client.get(f"/orders/by-number/{order_number}", headers={"X-Customer-Id": "cust-999"})

        assert response.status_code == 403

    def test_confirmation_unknown_order(self, client):
        response = client.get("/orders/by-number/ORD-NOPE-0001", headers=CUSTOMER)
        assert response.status_code == 404

    def test_my_orders(self, client, checkout):
        order_number = checkout().json()["order_number"]

        response = client.get("/orders", headers=CUSTOMER)

        assert response.status_code == 200
        assert [o["order_number"] for o in response.json()] == [order_number]

    def test_retry_payment_after_failure(self, client, checkout, notify, fetch_order):
        order_number = checkout().json()["order_number"]
        notify(order_number, outcome="failure")

        response = client.post(f"/orders/{order_number}/retry-payment", headers=CUSTOMER)

        assert response.status_code == 200
        assert response.json()["order_number"] == order_number
        assert fetch_order(order_number).status == "pending"


class TestAdminEndpoint:
    def test_status_change(self, client, checkout, notify):
        order_number = checkout().json()["order_number"]
        notify(order_number)

        response = client.post(f"/admin/orders/{order_number}/status", json={"status": "processing"})

        assert response.status_code == 200
        assert response.json() == {"order_number": order_number, "outcome": "applied", "status": "processing"}

    def test_illegal_change_is_reported(self, client, checkout):
        order_number = checkout().json()["order_number"]

        response = client.post(f"/admin/orders/{order_number}/status", json={"status": "delivered"})

        assert response.status_code == 200
        assert response.json()["outcome"] == "illegal_transition"
        assert response.json()["status"] == "pending"

    def test_unknown_status(self, client, checkout):
        order_number = checkout().json()["order_number"]

        response = client.post(f"/admin/orders/{order_number}/status", json={"status": "teleported"})

        assert response.status_code == 400

    def test_unknown_order(self, client):
        response = client.post("/admin/orders/ORD-NOPE-0001/status", json={"status": "processing"})
        assert response.status_code == 404


class TestRouteExecution:
    @pytest.mark.parametrize("path", ["/checkout", "/orders/{order_number}/retry-payment"])
    def test_gateway_routes_run_off_the_event_loop(self, client, path):
        (route,) = [r for r in client.app.routes if getattr(r, "path", None) == path]

        # Plain functions are dispatched to the threadpool by FastAPI
        assert not inspect.iscoroutinefunction(route.endpoint)
