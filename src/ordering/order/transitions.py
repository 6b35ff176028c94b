"""Shared load-change-save step for status commands."""

import structlog
from protean.utils.globals import current_domain

from ordering.errors import IllegalTransition
from ordering.order.order import Order
from ordering.outcomes import TransitionOutcome

logger = structlog.get_logger(__name__)


def apply_transition(order_number, change):
    """Load the order, apply ``change(order)`` and save it.

    Returns ``ORDER_NOT_FOUND`` or ``ILLEGAL_TRANSITION`` instead of raising;
    an illegal request leaves the stored order untouched.
    """
    repo = current_domain.repository_for(Order)
    order = repo.find_by_order_number(order_number)
    if order is None:
        return TransitionOutcome.ORDER_NOT_FOUND

    try:
        change(order)
    except IllegalTransition as exc:
        logger.info(
            "status_change_rejected",
            order_number=order_number,
            lifecycle=exc.lifecycle,
            source=exc.source,
            target=exc.target,
        )
        return TransitionOutcome.ILLEGAL_TRANSITION

    repo.add(order)
    return TransitionOutcome.APPLIED
