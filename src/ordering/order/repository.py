"""Repository for the Order aggregate.

Orders are addressed by their business key (``order_number``) everywhere
outside the store; the surrogate id never leaves the ordering context.
"""

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.status import OrderStatus


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        """Return the order with this number, or None."""
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def order_number_exists(self, order_number: str) -> bool:
        return self.find_by_order_number(order_number) is not None

    def find_by_checkout_key(self, customer_id: str, checkout_key: str) -> Order | None:
        """Return the order an earlier checkout submission created, if any."""
        orders = self._dao.query.filter(customer_id=customer_id, checkout_key=checkout_key).all().items
        return orders[0] if orders else None

    def for_customer(self, customer_id: str) -> list[Order]:
        """All orders of a customer, newest first."""
        return self._dao.query.filter(customer_id=customer_id).order_by("-created_at").all().items

    def awaiting_stock_release(self) -> list[Order]:
        """Cancelled or refunded orders whose units are not all back in stock."""
        restocking = [OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value]
        orders = self._dao.query.filter(status__in=restocking).all().items
        return [order for order in orders if order.unreleased_lines()]
