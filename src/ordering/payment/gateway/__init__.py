"""Payment gateway adapters.

- FakeGateway for development and testing
- StripeGateway for production (Stripe Checkout + webhooks)
"""

from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import CheckoutLine, CheckoutSession, CheckoutSessionRequest, PaymentGateway
from ordering.payment.gateway.stripe_adapter import StripeGateway

__all__ = [
    "CheckoutLine",
    "CheckoutSession",
    "CheckoutSessionRequest",
    "FakeGateway",
    "PaymentGateway",
    "StripeGateway",
]
