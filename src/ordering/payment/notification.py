"""Gateway-neutral payment notification.

Every gateway adapter translates its webhook payload into this shape before
it reaches reconciliation. Delivery is at-least-once and unordered.
"""

from dataclasses import dataclass
from enum import Enum


class PaymentOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class PaymentNotification:
    external_transaction_id: str
    order_reference: str
    outcome: PaymentOutcome
    amount: float | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is PaymentOutcome.SUCCESS
