"""Payment reconciliation: applies gateway notifications to orders.

Notifications arrive at least once and in any order. Each is resolved by
order number only; all notifications for one order run one at a time under
a per-order lock, and an optimistic version conflict from the store is
retried so the second writer re-reads and sees the duplicate.

Business conditions never raise: the caller gets a ``TransitionOutcome`` and
acknowledges the sender. Only infrastructure failures propagate, so the
gateway retries delivery.
"""

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from ordering.order.numbering import ORDER_NUMBER_PATTERN
from ordering.order.payment import ApplyPaymentOutcome
from ordering.outcomes import TransitionOutcome
from ordering.payment.notification import PaymentNotification
from ordering.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)


class PaymentReconciler:
    def __init__(self, locks: KeyedLock | None = None, max_attempts: int = 3) -> None:
        self._locks = locks or KeyedLock()
        self._max_attempts = max_attempts

    def _apply(self, notification: PaymentNotification, log) -> TransitionOutcome:
        command = ApplyPaymentOutcome(
            order_number=notification.order_reference,
            external_transaction_id=notification.external_transaction_id,
            succeeded=notification.succeeded,
            amount=notification.amount,
            reason=notification.reason,
        )
        for attempt in range(1, self._max_attempts + 1):
            try:
                return current_domain.process(command, asynchronous=False)
            except ExpectedVersionError:
                log.warning("payment_notification_version_conflict", attempt=attempt)
                if attempt == self._max_attempts:
                    raise

    def reconcile(self, notification: PaymentNotification) -> TransitionOutcome:
        log = logger.bind(
            order_number=notification.order_reference,
            external_transaction_id=notification.external_transaction_id,
            outcome=notification.outcome.value,
        )

        reference = notification.order_reference
        if not reference or not ORDER_NUMBER_PATTERN.match(reference):
            log.error("payment_notification_unmatched", reason="malformed order reference")
            return TransitionOutcome.ORDER_NOT_FOUND

        with self._locks.hold(reference):
            outcome = self._apply(notification, log)

        if outcome is TransitionOutcome.ORDER_NOT_FOUND:
            log.error("payment_notification_unmatched", reason="no order with this number")
        elif outcome is TransitionOutcome.AMOUNT_MISMATCH:
            log.error("payment_amount_mismatch", amount=notification.amount)
        elif outcome is TransitionOutcome.ILLEGAL_TRANSITION:
            log.warning("payment_notification_out_of_order")
        elif outcome is TransitionOutcome.DUPLICATE:
            log.info("payment_notification_duplicate")
        else:
            log.info("payment_reconciled")
        return outcome
