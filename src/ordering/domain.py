"""Ordering bounded context: checkout, order records and payment reconciliation.

Turns a cart snapshot into a durable order (items, shipping, payment) while
coordinating stock reservations, hands the customer off to the payment
gateway, and reconciles gateway notifications back into order state.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
