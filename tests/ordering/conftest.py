"""Shared fixtures for the ordering tests."""

import pytest
from ordering.checkout.placement import (
    OrderLine,
    OrderPlacement,
    PaymentIntent,
    PlacementRequest,
    ShippingSelection,
)
from ordering.config import CheckoutSettings
from ordering.order.order import Order
from ordering.payment.gateway import FakeGateway
from ordering.services import build_services
from ordering.stock.memory_adapter import InMemoryStockLedger
from protean import current_domain

ADDRESS = {
    "full_name": "Dana Reyes",
    "email": "dana@example.com",
    "phone": "+1 555 0100",
    "address": "12 Harbour Road",
    "city": "Halifax",
    "province": "NS",
    "postal_code": "B3H 1A1",
}


def stored_events(event_name):
    """Events of one type written for Order aggregates."""
    messages = current_domain.event_store.store.read("ordering::order")
    return [
        m
        for m in messages
        if m.metadata and m.metadata.headers and m.metadata.headers.type == f"Ordering.{event_name}.v1"
    ]


def all_orders():
    return current_domain.repository_for(Order)._dao.query.all().items


def load_order(order_number):
    return current_domain.repository_for(Order).find_by_order_number(order_number)


def placement_request(lines=None, customer_id="cust-001", shipping_cost=15.0, tax=None, discount=0.0, **kwargs):
    """A valid placement request; the payment amount is derived from the lines."""
    lines = lines or (
        OrderLine(product_id="prod-001", product_name="Linen Shirt", quantity=2, unit_price=10.0),
        OrderLine(product_id="prod-002", product_name="Canvas Tote", quantity=1, unit_price=25.0),
    )
    subtotal = sum(line.quantity * line.unit_price for line in lines)
    tax = round(subtotal * 0.10, 2) if tax is None else tax
    total = round(subtotal + tax + shipping_cost - discount, 2)
    return PlacementRequest(
        customer_id=customer_id,
        lines=tuple(lines),
        shipping=ShippingSelection(method="Standard Shipping", cost=shipping_cost),
        payment=PaymentIntent(amount=kwargs.pop("payment_amount", total), method="Stripe"),
        tax=tax,
        discount=discount,
        shipping_address=kwargs.pop("shipping_address", ADDRESS),
        **kwargs,
    )


@pytest.fixture()
def ledger():
    return InMemoryStockLedger({"prod-001": 10, "prod-002": 5, "prod-003": 1})


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def settings():
    return CheckoutSettings()


@pytest.fixture()
def placement(ledger):
    return OrderPlacement(ledger)


@pytest.fixture()
def services(ledger, gateway, settings):
    return build_services(ledger=ledger, gateway=gateway, settings=settings)


@pytest.fixture()
def placed_order(placement):
    """A pending order for 2 × prod-001 and 1 × prod-002 (total 64.50)."""
    result = placement.place(placement_request())
    return load_order(result.order_number)


# ---------------------------------------------------------------------------
# Helper fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_request():
    return placement_request


@pytest.fixture()
def events():
    return stored_events


@pytest.fixture()
def orders():
    return all_orders


@pytest.fixture()
def fetch_order():
    return load_order


@pytest.fixture()
def address():
    return dict(ADDRESS)
