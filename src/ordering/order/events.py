"""Domain events for the Order aggregate.

All events are versioned, immutable facts. Orders are stored as current
state; the events land in the event store alongside the aggregate write and
drive downstream consumers (receipts, fulfilment, analytics).
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A pending order was created together with its items, shipping and payment records."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    tax = Float()
    shipping_cost = Float()
    discount = Float()
    total = Float(required=True)
    currency = String(default="USD")
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentSessionOpened:
    """The customer was handed a gateway session to pay for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    session_id = String(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """The gateway confirmed payment; the order moved pending → paid."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    external_transaction_id = String(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    """The gateway reported a failed payment; the order moved pending → failed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    external_transaction_id = String(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentReopened:
    """A failed order was reopened so the customer can pay again."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reopened_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderProcessing:
    """Warehouse started working on a paid order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    started_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    """The order left the warehouse."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    carrier = String()
    tracking_number = String()
    estimated_delivery = String()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    """The shipment reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled; reserved stock goes back to the ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    reason = String()
    items = Text(required=True)  # JSON: [{"product_id", "quantity"}]
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    """A paid order was refunded."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    reason = String()
    items = Text(required=True)  # JSON: [{"product_id", "quantity"}]
    refunded_at = DateTime(required=True)
