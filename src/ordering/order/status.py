"""Lifecycle enums and transition tables for Order, Payment and Shipping.

Each lifecycle owns exactly one table. Aggregates never assign a status
without going through ``assert_transition``.

Order:
    pending → paid | failed | cancelled
    paid → processing | refunded | cancelled
    processing → shipped | cancelled
    shipped → delivered
    failed → pending (payment retry)
    delivered, cancelled, refunded are terminal

Payment:
    pending → completed | failed

Shipping:
    processing → shipped → delivered
"""

from enum import Enum

from protean.exceptions import ValidationError

from ordering.errors import IllegalTransition


class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ShippingStatus(Enum):
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


_ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.FAILED: {OrderStatus.PENDING},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
}

_SHIPPING_TRANSITIONS = {
    ShippingStatus.PROCESSING: {ShippingStatus.SHIPPED},
    ShippingStatus.SHIPPED: {ShippingStatus.DELIVERED},
    ShippingStatus.DELIVERED: set(),
}

_TABLES = {
    OrderStatus: ("order", _ORDER_TRANSITIONS),
    PaymentStatus: ("payment", _PAYMENT_TRANSITIONS),
    ShippingStatus: ("shipping", _SHIPPING_TRANSITIONS),
}


def can_transition(current, target) -> bool:
    """Return True when ``current → target`` is listed in its lifecycle table."""
    _, table = _TABLES[type(target)]
    current = type(target)(current)
    return target in table.get(current, set())


def assert_transition(current, target) -> None:
    """Raise ``IllegalTransition`` unless ``current → target`` is allowed.

    ``current`` may be the enum member or its wire value.
    """
    lifecycle, _ = _TABLES[type(target)]
    current = type(target)(current)
    if not can_transition(current, target):
        raise IllegalTransition(lifecycle, current.value, target.value)


def allowed_targets(current: OrderStatus) -> set[OrderStatus]:
    return set(_ORDER_TRANSITIONS[OrderStatus(current)])


def parse_order_status(value: str) -> OrderStatus:
    """Translate a wire value into ``OrderStatus``, rejecting unknown strings."""
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value!r}"]}) from None
