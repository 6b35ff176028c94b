"""Order cancellation and refund: commands and handler."""

from protean import handle
from protean.fields import String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.transitions import apply_transition


@ordering.command(part_of="Order")
class CancelOrder:
    order_number = String(required=True, max_length=50)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class RefundOrder:
    order_number = String(required=True, max_length=50)
    reason = String(max_length=500)


@ordering.command_handler(part_of=Order)
class CancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        return apply_transition(command.order_number, lambda order: order.cancel(reason=command.reason))

    @handle(RefundOrder)
    def refund_order(self, command):
        return apply_transition(command.order_number, lambda order: order.refund(reason=command.reason))
