"""Order payment: commands and handler.

Applies gateway outcomes to the order. The handler never raises for business
conditions; it answers with a ``TransitionOutcome`` so that notification
senders can always be acknowledged.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import IllegalTransition
from ordering.order.order import Order
from ordering.outcomes import TransitionOutcome

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ApplyPaymentOutcome:
    order_number = String(required=True, max_length=50)
    external_transaction_id = String(required=True, max_length=255)
    succeeded = Boolean(required=True)
    amount = Float()
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class AttachPaymentSession:
    order_number = String(required=True, max_length=50)
    session_id = String(required=True, max_length=255)


@ordering.command(part_of="Order")
class ReopenOrderForPayment:
    order_number = String(required=True, max_length=50)


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(ApplyPaymentOutcome)
    def apply_payment_outcome(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.find_by_order_number(command.order_number)
        if order is None:
            return TransitionOutcome.ORDER_NOT_FOUND

        if order.payment_reflects(command.external_transaction_id, command.succeeded):
            return TransitionOutcome.DUPLICATE

        try:
            if command.succeeded:
                if not order.payment_amount_matches(command.amount):
                    return TransitionOutcome.AMOUNT_MISMATCH
                order.record_payment_success(command.external_transaction_id)
            else:
                order.record_payment_failure(command.external_transaction_id, reason=command.reason)
        except IllegalTransition as exc:
            logger.info(
                "payment_outcome_not_applicable",
                order_number=order.order_number,
                external_transaction_id=command.external_transaction_id,
                source=exc.source,
                target=exc.target,
            )
            return TransitionOutcome.ILLEGAL_TRANSITION

        repo.add(order)
        return TransitionOutcome.APPLIED

    @handle(AttachPaymentSession)
    def attach_payment_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.find_by_order_number(command.order_number)
        if order is None:
            return TransitionOutcome.ORDER_NOT_FOUND

        order.attach_payment_session(command.session_id)
        repo.add(order)
        return TransitionOutcome.APPLIED

    @handle(ReopenOrderForPayment)
    def reopen_order_for_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.find_by_order_number(command.order_number)
        if order is None:
            return TransitionOutcome.ORDER_NOT_FOUND

        try:
            order.reopen_for_payment()
        except IllegalTransition:
            return TransitionOutcome.ILLEGAL_TRANSITION

        repo.add(order)
        return TransitionOutcome.APPLIED
