"""Error types raised by the ordering context.

Input problems use protean's ``ValidationError`` directly. The types below
cover the failures that are never the customer's fault: lifecycle
violations, aborted order transactions and payment gateway trouble.
"""

from protean.exceptions import ValidationError


class IllegalTransition(ValidationError):
    """A status change that the lifecycle table does not allow."""

    def __init__(self, lifecycle: str, source: str, target: str) -> None:
        self.lifecycle = lifecycle
        self.source = source
        self.target = target
        super().__init__({"status": [f"Cannot transition {lifecycle} from {source} to {target}"]})


class TransactionFailure(Exception):
    """The order transaction was aborted; no order or reservation survives."""

    def __init__(self, message: str = "Order could not be placed, please try again", order_number: str | None = None):
        self.order_number = order_number
        super().__init__(message)


class GatewayError(Exception):
    """The payment gateway rejected or failed a request."""


class GatewayTimeout(GatewayError):
    """The payment gateway did not answer within the configured timeout.

    The outcome at the gateway is unknown, so the order stays pending.
    """


class InvalidSignature(GatewayError):
    """A payment notification failed signature verification."""


class OrderAccessDenied(Exception):
    """The requesting customer does not own the order."""

    def __init__(self, order_number: str) -> None:
        self.order_number = order_number
        super().__init__(f"Order {order_number} belongs to another customer")
