"""Back-office status changes.

Maps a requested status onto the command that performs it. ``paid`` and
``failed`` are reserved to payment reconciliation and are refused here.
Cancelling or refunding an order returns its units to the stock ledger;
both are only reachable before shipment. Each item is released in its own
unit of work together with the marker that records it, so an interrupted
release is finished by repeating the request or by
``release_outstanding_stock``, and no item is released twice.
"""

import structlog
from protean import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.cancellation import CancelOrder, RefundOrder
from ordering.order.fulfillment import DeliverOrder, MarkOrderProcessing, ShipOrder
from ordering.order.order import Order
from ordering.order.payment import ReopenOrderForPayment
from ordering.order.status import OrderStatus, parse_order_status
from ordering.outcomes import TransitionOutcome
from ordering.stock.port import StockLedger
from ordering.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)

_RESERVED_TARGETS = {OrderStatus.PAID, OrderStatus.FAILED}
_RESTOCKING_TARGETS = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


class OrderAdministration:
    def __init__(self, ledger: StockLedger, locks: KeyedLock | None = None) -> None:
        self.ledger = ledger
        self._locks = locks or KeyedLock()

    def _command(self, target, order_number, reason, carrier, tracking_number, estimated_delivery):
        if target == OrderStatus.PROCESSING:
            return MarkOrderProcessing(order_number=order_number)
        if target == OrderStatus.SHIPPED:
            return ShipOrder(
                order_number=order_number,
                carrier=carrier,
                tracking_number=tracking_number,
                estimated_delivery=estimated_delivery,
            )
        if target == OrderStatus.DELIVERED:
            return DeliverOrder(order_number=order_number)
        if target == OrderStatus.CANCELLED:
            return CancelOrder(order_number=order_number, reason=reason)
        if target == OrderStatus.REFUNDED:
            return RefundOrder(order_number=order_number, reason=reason)
        return ReopenOrderForPayment(order_number=order_number)

    def change_status(
        self,
        order_number: str,
        status: str,
        reason: str | None = None,
        carrier: str | None = None,
        tracking_number: str | None = None,
        estimated_delivery: str | None = None,
    ) -> TransitionOutcome:
        target = parse_order_status(status)
        if target in _RESERVED_TARGETS:
            raise ValidationError({"status": [f"Orders become {target.value} only through payment notifications"]})

        command = self._command(target, order_number, reason, carrier, tracking_number, estimated_delivery)
        outcome = current_domain.process(command, asynchronous=False)
        logger.info("order_status_change", order_number=order_number, target=target.value, outcome=outcome.value)

        if target in _RESTOCKING_TARGETS and outcome is not TransitionOutcome.ORDER_NOT_FOUND:
            self.release_stock(order_number)

        return outcome

    def release_stock(self, order_number: str) -> int:
        """Return the units a cancelled or refunded order still holds.

        Returns the number of lines released by this call.
        """
        repo = current_domain.repository_for(Order)
        released = 0
        with self._locks.hold(order_number):
            order = repo.find_by_order_number(order_number)
            if order is None:
                return 0

            for line in order.unreleased_lines():
                with UnitOfWork():
                    current = repo.find_by_order_number(order_number)
                    current.mark_stock_released(line["item_id"])
                    repo.add(current)
                    self.ledger.release(line["product_id"], line["quantity"])
                released += 1

        if released:
            logger.info("order_stock_released", order_number=order_number, lines=released)
        return released

    def release_outstanding_stock(self) -> list[str]:
        """Finish the stock release of every cancelled or refunded order."""
        repo = current_domain.repository_for(Order)
        finished = []
        for order in repo.awaiting_stock_release():
            if self.release_stock(order.order_number):
                finished.append(order.order_number)
        return finished
