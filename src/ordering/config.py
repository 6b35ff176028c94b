"""Checkout settings.

Business constants come from the ``[custom]`` section of ``domain.toml``;
secrets and deployment URLs come from the environment.
"""

import os
from dataclasses import dataclass
from decimal import Decimal

from ordering.utils.money import to_money


@dataclass(frozen=True)
class CheckoutSettings:
    tax_rate: Decimal = Decimal("0.10")
    free_shipping_threshold: Decimal = Decimal("100.00")
    flat_shipping_fee: Decimal = Decimal("15.00")
    currency: str = "USD"
    shipping_method: str = "Standard Shipping"
    payment_method: str = "Stripe"
    gateway_timeout_seconds: float = 10
    session_expiry_seconds: int = 86400
    app_url: str = "http://localhost:3000"
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    @property
    def success_url(self) -> str:
        return f"{self.app_url}/order-confirmation?order_number={{order_number}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.app_url}/cart"

    @classmethod
    def from_domain(cls, domain) -> "CheckoutSettings":
        custom = domain.config.get("custom", {}) or {}
        return cls(
            tax_rate=Decimal(str(custom.get("TAX_RATE", "0.10"))),
            free_shipping_threshold=to_money(custom.get("FREE_SHIPPING_THRESHOLD", "100.00")),
            flat_shipping_fee=to_money(custom.get("FLAT_SHIPPING_FEE", "15.00")),
            currency=custom.get("CURRENCY", "USD"),
            shipping_method=custom.get("SHIPPING_METHOD", "Standard Shipping"),
            payment_method=custom.get("PAYMENT_METHOD", "Stripe"),
            gateway_timeout_seconds=float(custom.get("GATEWAY_TIMEOUT_SECONDS", 10)),
            session_expiry_seconds=int(custom.get("SESSION_EXPIRY_SECONDS", 86400)),
            app_url=os.getenv("APP_URL", custom.get("APP_URL", "http://localhost:3000")).rstrip("/"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
        )
