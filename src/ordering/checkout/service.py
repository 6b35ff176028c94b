"""Checkout orchestration.

Validates the cart and address, prices the order, places it (stock plus
pending order), then opens a payment session at the gateway for the exact
order total. Nothing here ever marks an order paid; that only happens when a
payment notification is reconciled.

A submission may carry an idempotency key. Resubmitting the same key reuses
the pending order it created (a fresh session, no new reservation); once
that order has left ``pending`` the key is spent.
"""

import time
from collections.abc import Callable

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.checkout.placement import (
    OrderLine,
    OrderPlacement,
    PaymentIntent,
    PlacementRequest,
    ShippingSelection,
)
from ordering.checkout.pricing import price_cart
from ordering.config import CheckoutSettings
from ordering.errors import GatewayError, GatewayTimeout, OrderAccessDenied
from ordering.order.order import Order
from ordering.order.payment import AttachPaymentSession, ReopenOrderForPayment
from ordering.order.status import OrderStatus
from ordering.outcomes import CheckoutStarted, InsufficientStock, TransitionOutcome
from ordering.payment.gateway.port import CheckoutLine, CheckoutSessionRequest, PaymentGateway
from ordering.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)

# Stripe accepts session expiries between 30 minutes and 24 hours out
SESSION_WINDOW_SECONDS = 300
MIN_SESSION_SECONDS = 1800 + SESSION_WINDOW_SECONDS
MAX_SESSION_SECONDS = 86400

REQUIRED_ADDRESS_FIELDS = ("full_name", "email", "address", "city", "province", "postal_code")
ADDRESS_FIELDS = (*REQUIRED_ADDRESS_FIELDS, "phone")


class CheckoutService:
    def __init__(
        self,
        placement: OrderPlacement,
        gateway: PaymentGateway,
        settings: CheckoutSettings,
        locks: KeyedLock | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.placement = placement
        self.gateway = gateway
        self.settings = settings
        self._locks = locks or KeyedLock()
        self._clock = clock

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _validate(self, customer_id, lines, shipping_address) -> dict:
        if not customer_id:
            raise ValidationError({"customer_id": ["Sign in to check out"]})
        if not lines:
            raise ValidationError({"items": ["Your cart is empty"]})
        for line in lines:
            if int(line.quantity) <= 0:
                raise ValidationError({"quantity": [f"Quantity for {line.product_id} must be greater than 0"]})
            if line.unit_price < 0:
                raise ValidationError({"unit_price": [f"Price for {line.product_id} cannot be negative"]})

        shipping_address = shipping_address or {}
        missing = [name for name in REQUIRED_ADDRESS_FIELDS if not (shipping_address.get(name) or "").strip()]
        if missing:
            raise ValidationError({name: ["This field is required"] for name in missing})
        return {name: shipping_address.get(name) for name in ADDRESS_FIELDS}

    # -------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------
    def _session_request(self, order: Order) -> CheckoutSessionRequest:
        """Session parameters for the order as currently stored.

        The expiry counts from the start of the current five-minute window and
        the window is part of the idempotency key, along with the stored
        revision. A retry within the window replays the same request; a later
        one gets a fresh session that still expires within Stripe's limits.
        """
        now = int(self._clock())
        window = now - now % SESSION_WINDOW_SECONDS
        expiry = min(max(self.settings.session_expiry_seconds, MIN_SESSION_SECONDS), MAX_SESSION_SECONDS)

        lines = [
            CheckoutLine(name=item.product_name or str(item.product_id), unit_amount=item.unit_price, quantity=item.quantity)
            for item in order.items
        ]
        if order.shipping_cost:
            lines.append(CheckoutLine(name=order.shipping.method, unit_amount=order.shipping_cost))
        if order.tax:
            lines.append(CheckoutLine(name="Tax", unit_amount=order.tax))

        return CheckoutSessionRequest(
            order_number=order.order_number,
            total=order.total,
            currency=order.currency,
            lines=tuple(lines),
            success_url=self.settings.success_url.format(order_number=order.order_number),
            cancel_url=self.settings.cancel_url,
            customer_email=order.shipping_address.email if order.shipping_address else None,
            discount=order.discount or 0.0,
            expires_at=window + expiry,
            idempotency_key=f"{order.order_number}-{order.payment.id}-{order._version}-{window}",
            metadata={"customer_id": str(order.customer_id)},
        )

    def _open_session(self, order: Order) -> CheckoutStarted:
        try:
            session = self.gateway.open_session(self._session_request(order))
        except GatewayTimeout:
            logger.warning("payment_session_timeout", order_number=order.order_number)
            raise
        except GatewayError:
            logger.error("payment_session_failed", order_number=order.order_number)
            raise

        current_domain.process(
            AttachPaymentSession(order_number=order.order_number, session_id=session.session_id),
            asynchronous=False,
        )
        logger.info("payment_session_opened", order_number=order.order_number, session_id=session.session_id)
        return CheckoutStarted(
            order_number=order.order_number,
            session_id=session.session_id,
            session_url=session.url,
            total=order.total,
        )

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def start(
        self,
        customer_id: str,
        lines: list[OrderLine],
        shipping_address: dict,
        checkout_key: str | None = None,
        discount=0,
    ) -> CheckoutStarted | InsufficientStock:
        """Place a pending order for the cart and open its payment session.

        Raises:
            ValidationError: bad cart, address or a spent checkout key.
            TransactionFailure: the order could not be written.
            GatewayTimeout / GatewayError: the order exists and stays pending.
        """
        address = self._validate(customer_id, lines, shipping_address)
        if checkout_key is None:
            return self._start(customer_id, lines, address, None, discount)

        with self._locks.hold(f"{customer_id}:{checkout_key}"):
            return self._start(customer_id, lines, address, checkout_key, discount)

    def _start(self, customer_id, lines, address, checkout_key, discount):
        repo = current_domain.repository_for(Order)
        if checkout_key is not None:
            existing = repo.find_by_checkout_key(customer_id, checkout_key)
            if existing is not None:
                if OrderStatus(existing.status) != OrderStatus.PENDING:
                    raise ValidationError({"checkout_key": ["This checkout has already been completed"]})
                logger.info("checkout_resubmitted", order_number=existing.order_number)
                return self._open_session(existing)

        totals = price_cart(lines, self.settings, discount)
        result = self.placement.place(
            PlacementRequest(
                customer_id=customer_id,
                lines=tuple(lines),
                shipping=ShippingSelection(method=self.settings.shipping_method, cost=float(totals.shipping_cost)),
                payment=PaymentIntent(amount=float(totals.total), method=self.settings.payment_method),
                tax=float(totals.tax),
                discount=float(totals.discount),
                currency=self.settings.currency,
                shipping_address=address,
                checkout_key=checkout_key,
            )
        )
        if isinstance(result, InsufficientStock):
            return result

        return self._open_session(repo.find_by_order_number(result.order_number))

    def retry_payment(self, order_number: str, customer_id: str) -> CheckoutStarted:
        """Reopen a failed order and hand the customer a new payment session."""
        repo = current_domain.repository_for(Order)
        order = repo.find_by_order_number(order_number)
        if order is None:
            raise ObjectNotFoundError({"_entity": f"Order {order_number} does not exist"})
        if str(order.customer_id) != str(customer_id):
            raise OrderAccessDenied(order_number)

        outcome = current_domain.process(ReopenOrderForPayment(order_number=order_number), asynchronous=False)
        if outcome is not TransitionOutcome.APPLIED:
            raise ValidationError({"status": [f"Order {order_number} cannot be paid again while {order.status}"]})

        return self._open_session(repo.find_by_order_number(order_number))
