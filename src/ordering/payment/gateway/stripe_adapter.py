"""Stripe payment gateway adapter.

Opens Stripe Checkout sessions and translates Stripe webhook events into
``PaymentNotification``. The order number travels as
``client_reference_id`` and in the session and payment-intent metadata, so
every event can be correlated back to its order.

Handled events:
    checkout.session.completed (only when payment_status is "paid")
    checkout.session.async_payment_succeeded
    checkout.session.async_payment_failed

A declined card (``payment_intent.payment_failed``) is not terminal: the
customer can try another card in the same session, so it is only logged.
"""

import json
from decimal import Decimal

import stripe
import structlog
from protean.exceptions import ValidationError

from ordering.errors import GatewayError, GatewayTimeout, InvalidSignature
from ordering.payment.gateway.port import CheckoutSession, CheckoutSessionRequest, PaymentGateway
from ordering.payment.notification import PaymentNotification, PaymentOutcome
from ordering.utils.money import to_money

logger = structlog.get_logger(__name__)


def _to_cents(amount) -> int:
    return int(to_money(amount) * 100)


def _from_cents(cents) -> float | None:
    if cents is None:
        return None
    return float(Decimal(cents) / 100)


def _order_reference(obj) -> str | None:
    metadata = obj.get("metadata") or {}
    return obj.get("client_reference_id") or metadata.get("order_number")


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str, timeout: float = 10) -> None:
        self.webhook_secret = webhook_secret
        self.client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def _options(self, request: CheckoutSessionRequest, suffix: str = "") -> dict:
        if not request.idempotency_key:
            return {}
        return {"idempotency_key": f"{request.idempotency_key}{suffix}"}

    def _coupon_for(self, request: CheckoutSessionRequest) -> str:
        coupon = self.client.coupons.create(
            params={
                "amount_off": _to_cents(request.discount),
                "currency": request.currency.lower(),
                "duration": "once",
                "name": f"Discount {request.order_number}",
            },
            options=self._options(request, "-coupon"),
        )
        return coupon.id

    def open_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        metadata = {**request.metadata, "order_number": request.order_number}
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency.lower(),
                        "product_data": {"name": line.name},
                        "unit_amount": _to_cents(line.unit_amount),
                    },
                    "quantity": line.quantity,
                }
                for line in request.lines
            ],
            "client_reference_id": request.order_number,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        if request.expires_at:
            params["expires_at"] = request.expires_at

        try:
            if request.discount:
                params["discounts"] = [{"coupon": self._coupon_for(request)}]
            session = self.client.checkout.sessions.create(params=params, options=self._options(request))
        except stripe.APIConnectionError as exc:
            logger.warning("stripe_unreachable", order_number=request.order_number, error=str(exc))
            raise GatewayTimeout(f"Stripe did not answer for {request.order_number}") from exc
        except stripe.StripeError as exc:
            logger.error("stripe_session_failed", order_number=request.order_number, error=str(exc))
            raise GatewayError(str(exc)) from exc

        return CheckoutSession(session_id=session.id, url=session.url)

    def parse_notification(self, payload: bytes, signature: str) -> PaymentNotification | None:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(str(exc)) from exc
        except ValueError as exc:
            raise ValidationError({"payload": ["Malformed payment notification"]}) from exc

        # Signature verified; work on the plain JSON body
        event = json.loads(payload)
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type in ("checkout.session.completed", "checkout.session.async_payment_succeeded"):
            if obj.get("payment_status") != "paid":
                # Delayed payment methods settle later via async_payment_succeeded
                return None
            return PaymentNotification(
                external_transaction_id=obj.get("payment_intent") or obj["id"],
                order_reference=_order_reference(obj),
                outcome=PaymentOutcome.SUCCESS,
                amount=_from_cents(obj.get("amount_total")),
            )

        if event_type == "checkout.session.async_payment_failed":
            return PaymentNotification(
                external_transaction_id=obj.get("payment_intent") or obj["id"],
                order_reference=_order_reference(obj),
                outcome=PaymentOutcome.FAILURE,
                amount=_from_cents(obj.get("amount_total")),
                reason="Asynchronous payment failed",
            )

        if event_type == "payment_intent.payment_failed":
            error = obj.get("last_payment_error") or {}
            logger.info(
                "stripe_payment_attempt_declined",
                order_number=_order_reference(obj),
                payment_intent=obj.get("id"),
                reason=error.get("message"),
            )
            return None

        logger.debug("stripe_event_ignored", event_type=event_type, event_id=event.get("id"))
        return None
