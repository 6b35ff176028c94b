"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to time out or fail, and it accepts
notifications in the gateway-neutral JSON contract:

    {"external_transaction_id": "...", "order_reference": "ORD-...",
     "outcome": "success" | "failure", "amount": 59.5, "reason": null}

signed with the fixed signature ``test-signature``.
"""

import json
from uuid import uuid4

from protean.exceptions import ValidationError

from ordering.errors import GatewayError, GatewayTimeout, InvalidSignature
from ordering.payment.gateway.port import CheckoutSession, CheckoutSessionRequest, PaymentGateway
from ordering.payment.notification import PaymentNotification, PaymentOutcome

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_time_out: bool = False
        self.should_fail: bool = False
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.sessions: dict[str, CheckoutSessionRequest] = {}

    def configure(
        self,
        should_time_out: bool = False,
        should_fail: bool = False,
        failure_reason: str = "Gateway unavailable",
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_time_out = should_time_out
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def open_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        self.calls.append(
            {
                "method": "open_session",
                "order_number": request.order_number,
                "total": request.total,
                "currency": request.currency,
                "discount": request.discount,
                "success_url": request.success_url,
                "idempotency_key": request.idempotency_key,
                "expires_at": request.expires_at,
            }
        )

        if self.should_time_out:
            raise GatewayTimeout(f"Timed out opening a session for {request.order_number}")
        if self.should_fail:
            raise GatewayError(self.failure_reason)

        session_id = f"fake_cs_{uuid4().hex[:16]}"
        self.sessions[session_id] = request
        return CheckoutSession(session_id=session_id, url=f"https://pay.example.test/{session_id}")

    def parse_notification(self, payload: bytes, signature: str) -> PaymentNotification | None:
        if signature != TEST_SIGNATURE:
            raise InvalidSignature("Notification signature does not match")

        try:
            body = json.loads(payload)
            outcome = body["outcome"]
            external_transaction_id = body["external_transaction_id"]
            order_reference = body["order_reference"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ValidationError({"payload": ["Malformed payment notification"]}) from exc

        if outcome not in {o.value for o in PaymentOutcome}:
            return None

        return PaymentNotification(
            external_transaction_id=external_transaction_id,
            order_reference=order_reference,
            outcome=PaymentOutcome(outcome),
            amount=body.get("amount"),
            reason=body.get("reason"),
        )
