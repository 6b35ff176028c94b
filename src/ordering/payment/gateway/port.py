"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ordering.payment.notification import PaymentNotification


@dataclass(frozen=True)
class CheckoutLine:
    name: str
    unit_amount: float
    quantity: int = 1


@dataclass(frozen=True)
class CheckoutSessionRequest:
    """Everything the gateway needs to collect payment for one order.

    ``order_number`` is the correlation key: it must come back on every
    notification about this session.
    """

    order_number: str
    total: float
    currency: str
    lines: tuple[CheckoutLine, ...]
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    discount: float = 0.0
    expires_at: int | None = None
    idempotency_key: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted payment page the customer is redirected to."""

    session_id: str
    url: str


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def open_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        """Create a hosted checkout session.

        Raises:
            GatewayTimeout: no answer within the configured timeout.
            GatewayError: the gateway refused the request.
        """
        ...

    @abstractmethod
    def parse_notification(self, payload: bytes, signature: str) -> PaymentNotification | None:
        """Verify and translate a webhook payload.

        Returns None for event types that carry no payment outcome.

        Raises:
            InvalidSignature: the payload was not signed by the gateway.
        """
        ...
