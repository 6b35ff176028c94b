"""Order fulfilment: processing, shipment and delivery commands."""

from protean import handle
from protean.fields import String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.transitions import apply_transition


@ordering.command(part_of="Order")
class MarkOrderProcessing:
    order_number = String(required=True, max_length=50)


@ordering.command(part_of="Order")
class ShipOrder:
    order_number = String(required=True, max_length=50)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    estimated_delivery = String(max_length=10)


@ordering.command(part_of="Order")
class DeliverOrder:
    order_number = String(required=True, max_length=50)


@ordering.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(MarkOrderProcessing)
    def mark_processing(self, command):
        return apply_transition(command.order_number, lambda order: order.mark_processing())

    @handle(ShipOrder)
    def ship(self, command):
        return apply_transition(
            command.order_number,
            lambda order: order.ship(
                carrier=command.carrier,
                tracking_number=command.tracking_number,
                estimated_delivery=command.estimated_delivery,
            ),
        )

    @handle(DeliverOrder)
    def deliver(self, command):
        return apply_transition(command.order_number, lambda order: order.deliver())
