"""Order aggregate: one order, its items, shipping record and payment record.

The aggregate is stored as current state (not event sourced). Creating it
writes Order, OrderItems, ShippingInfo and Payment as a single unit; no
caller ever sees a partially built order.

Every status change goes through the lifecycle tables in
``ordering.order.status``. A disallowed change raises ``IllegalTransition``
before anything on the aggregate is touched.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    HasOne,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
    PaymentFailed,
    PaymentReopened,
    PaymentSessionOpened,
)
from ordering.order.status import (
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    assert_transition,
)
from ordering.utils.money import money_equal, to_money


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address captured at checkout. Never updated afterwards."""

    full_name = String(required=True, max_length=255)
    email = String(required=True, max_length=254)
    phone = String(max_length=50)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    province = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A purchased line. Price and name are frozen at order time."""

    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    subtotal = Float(required=True, min_value=0.0)


@ordering.entity(part_of="Order")
class ShippingInfo:
    method = String(required=True, max_length=100)
    cost = Float(default=0.0, min_value=0.0)
    status = String(choices=ShippingStatus, default=ShippingStatus.PROCESSING.value)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    estimated_delivery = String(max_length=10)  # ISO date string
    shipped_at = DateTime()
    delivered_at = DateTime()


@ordering.entity(part_of="Order")
class Payment:
    """Payment record of an order.

    ``external_transaction_id`` is set by the first notification that
    settles the payment and is the reconciliation idempotency key.
    """

    amount = Float(required=True, min_value=0.0)
    method = String(required=True, max_length=50)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    external_transaction_id = String(max_length=255)
    session_id = String(max_length=255)
    paid_at = DateTime()
    failed_at = DateTime()
    failure_reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    shipping = HasOne(ShippingInfo)
    payment = HasOne(Payment)
    shipping_address = ValueObject(ShippingAddress)
    subtotal = Float(required=True, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    checkout_key = String(max_length=255)
    settled_transactions = Text()  # JSON: {external_transaction_id: payment status}
    released_items = Text()  # JSON: ids of items whose units went back to stock
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        shipping_method,
        shipping_cost,
        payment_amount,
        payment_method,
        tax=0.0,
        discount=0.0,
        currency="USD",
        shipping_address=None,
        checkout_key=None,
    ):
        """Build a pending order with all of its parts.

        Args:
            lines: List of dicts with product_id, quantity, unit_price and
                optionally product_name.
            payment_amount: Amount the payment intent was created for. Must
                equal the computed total to the cent.
            shipping_address: Optional dict with ShippingAddress fields.

        Raises:
            ValidationError: when any line or the payment amount is invalid.
        """
        if not lines:
            raise ValidationError({"items": ["An order needs at least one item"]})

        items = []
        subtotal = to_money(0)
        for line in lines:
            quantity = line.get("quantity")
            unit_price = line.get("unit_price")
            if quantity is None or int(quantity) <= 0:
                raise ValidationError({"quantity": [f"Quantity for {line.get('product_id')} must be greater than 0"]})
            if unit_price is None or to_money(unit_price) < 0:
                raise ValidationError({"unit_price": [f"Price for {line.get('product_id')} cannot be negative"]})

            line_total = to_money(unit_price) * int(quantity)
            subtotal += line_total
            items.append(
                OrderItem(
                    product_id=line["product_id"],
                    product_name=line.get("product_name"),
                    quantity=int(quantity),
                    unit_price=float(to_money(unit_price)),
                    subtotal=float(line_total),
                )
            )

        total = subtotal + to_money(tax) + to_money(shipping_cost) - to_money(discount)
        if total < 0:
            raise ValidationError({"discount": ["Discount cannot exceed the order value"]})
        if to_money(payment_amount) != total:
            raise ValidationError({"payment": [f"Payment amount {to_money(payment_amount)} does not match order total {total}"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            items=items,
            shipping=ShippingInfo(
                method=shipping_method,
                cost=float(to_money(shipping_cost)),
                status=ShippingStatus.PROCESSING.value,
            ),
            payment=Payment(
                amount=float(total),
                method=payment_method,
                status=PaymentStatus.PENDING.value,
            ),
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            subtotal=float(subtotal),
            tax=float(to_money(tax)),
            shipping_cost=float(to_money(shipping_cost)),
            discount=float(to_money(discount)),
            total=float(total),
            currency=currency,
            checkout_key=checkout_key,
            settled_transactions=json.dumps({}),
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(item.product_id),
                            "product_name": item.product_name,
                            "quantity": item.quantity,
                            "unit_price": item.unit_price,
                        }
                        for item in items
                    ]
                ),
                subtotal=order.subtotal,
                tax=order.tax,
                shipping_cost=order.shipping_cost,
                discount=order.discount,
                total=order.total,
                currency=order.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _settled(self) -> dict:
        return json.loads(self.settled_transactions) if self.settled_transactions else {}

    def _record_settlement(self, external_transaction_id, payment_status):
        settled = self._settled()
        settled[external_transaction_id] = payment_status.value
        self.settled_transactions = json.dumps(settled)

    def reserved_lines(self) -> list[dict]:
        """Product quantities this order holds in the stock ledger."""
        return [
            {"item_id": str(item.id), "product_id": str(item.product_id), "quantity": item.quantity}
            for item in self.items
        ]

    def _returned_items(self) -> str:
        lines = self.reserved_lines()
        return json.dumps([{"product_id": line["product_id"], "quantity": line["quantity"]} for line in lines])

    def _released(self) -> list:
        return json.loads(self.released_items) if self.released_items else []

    def unreleased_lines(self) -> list[dict]:
        """Lines of a cancelled or refunded order still held in the stock ledger."""
        if OrderStatus(self.status) not in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            return []
        released = set(self._released())
        return [line for line in self.reserved_lines() if line["item_id"] not in released]

    def mark_stock_released(self, item_id):
        released = self._released()
        if item_id not in released:
            released.append(item_id)
            self.released_items = json.dumps(released)

    def payment_reflects(self, external_transaction_id, succeeded: bool) -> bool:
        """True when this transaction was already applied with the same outcome."""
        expected = PaymentStatus.COMPLETED if succeeded else PaymentStatus.FAILED
        return self._settled().get(external_transaction_id) == expected.value

    def payment_amount_matches(self, amount) -> bool:
        if amount is None:
            return True
        return money_equal(amount, self.payment.amount)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def attach_payment_session(self, session_id):
        """Record the gateway session the customer was sent to."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payment sessions can only be opened for pending orders"]})

        self.payment.session_id = session_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentSessionOpened(
                order_id=str(self.id),
                order_number=self.order_number,
                session_id=session_id,
            )
        )

    def record_payment_success(self, external_transaction_id):
        assert_transition(self.status, OrderStatus.PAID)
        assert_transition(self.payment.status, PaymentStatus.COMPLETED)

        now = datetime.now(UTC)
        self.payment.status = PaymentStatus.COMPLETED.value
        self.payment.external_transaction_id = external_transaction_id
        self.payment.paid_at = now
        self._record_settlement(external_transaction_id, PaymentStatus.COMPLETED)
        self.status = OrderStatus.PAID.value
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                external_transaction_id=external_transaction_id,
                amount=self.payment.amount,
                paid_at=now,
            )
        )

    def record_payment_failure(self, external_transaction_id, reason=None):
        assert_transition(self.status, OrderStatus.FAILED)
        assert_transition(self.payment.status, PaymentStatus.FAILED)

        now = datetime.now(UTC)
        self.payment.status = PaymentStatus.FAILED.value
        self.payment.external_transaction_id = external_transaction_id
        self.payment.failed_at = now
        self.payment.failure_reason = reason
        self._record_settlement(external_transaction_id, PaymentStatus.FAILED)
        self.status = OrderStatus.FAILED.value
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                external_transaction_id=external_transaction_id,
                reason=reason,
                failed_at=now,
            )
        )

    def reopen_for_payment(self):
        """Move a failed order back to pending with a fresh payment record."""
        assert_transition(self.status, OrderStatus.PENDING)

        now = datetime.now(UTC)
        self.payment = Payment(
            amount=self.total,
            method=self.payment.method,
            status=PaymentStatus.PENDING.value,
        )
        self.status = OrderStatus.PENDING.value
        self.updated_at = now

        self.raise_(
            PaymentReopened(
                order_id=str(self.id),
                order_number=self.order_number,
                reopened_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def mark_processing(self):
        assert_transition(self.status, OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = now

        self.raise_(
            OrderProcessing(
                order_id=str(self.id),
                order_number=self.order_number,
                started_at=now,
            )
        )

    def ship(self, carrier=None, tracking_number=None, estimated_delivery=None):
        assert_transition(self.status, OrderStatus.SHIPPED)
        assert_transition(self.shipping.status, ShippingStatus.SHIPPED)

        now = datetime.now(UTC)
        self.shipping.status = ShippingStatus.SHIPPED.value
        self.shipping.carrier = carrier
        self.shipping.tracking_number = tracking_number
        self.shipping.estimated_delivery = estimated_delivery
        self.shipping.shipped_at = now
        self.status = OrderStatus.SHIPPED.value
        self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                carrier=carrier,
                tracking_number=tracking_number,
                estimated_delivery=estimated_delivery,
                shipped_at=now,
            )
        )

    def deliver(self):
        assert_transition(self.status, OrderStatus.DELIVERED)
        assert_transition(self.shipping.status, ShippingStatus.DELIVERED)

        now = datetime.now(UTC)
        self.shipping.status = ShippingStatus.DELIVERED.value
        self.shipping.delivered_at = now
        self.status = OrderStatus.DELIVERED.value
        self.updated_at = now

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                order_number=self.order_number,
                delivered_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation & refund
    # -------------------------------------------------------------------
    def cancel(self, reason=None):
        assert_transition(self.status, OrderStatus.CANCELLED)

        now = datetime.now(UTC)
        previous_status = self.status
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous_status,
                reason=reason,
                items=self._returned_items(),
                cancelled_at=now,
            )
        )

    def refund(self, reason=None):
        assert_transition(self.status, OrderStatus.REFUNDED)

        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=self.total,
                reason=reason,
                items=self._returned_items(),
                refunded_at=now,
            )
        )
