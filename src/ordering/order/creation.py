"""Order creation.

Builds the complete aggregate and adds it to the repository. It runs inside
the caller's unit of work (see ``ordering.checkout.placement``), which also
holds the stock reservations for the order, so Order, items, shipping,
payment and a transactional ledger's stock rows commit together or not at
all.
"""

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.order import Order


def create_order(
    order_number,
    customer_id,
    lines,
    shipping_method,
    shipping_cost,
    payment_amount,
    payment_method,
    tax=0.0,
    discount=0.0,
    currency="USD",
    shipping_address=None,
    checkout_key=None,
) -> Order:
    """Place a pending order under ``order_number``.

    Raises:
        ValidationError: the number is taken, or a line or the payment amount
            is invalid.
    """
    repo = current_domain.repository_for(Order)
    if repo.order_number_exists(order_number):
        raise ValidationError({"order_number": [f"Order number {order_number} is already taken"]})

    order = Order.place(
        order_number=order_number,
        customer_id=customer_id,
        lines=lines,
        shipping_method=shipping_method,
        shipping_cost=shipping_cost,
        payment_amount=payment_amount,
        payment_method=payment_method,
        tax=tax,
        discount=discount,
        currency=currency,
        shipping_address=shipping_address,
        checkout_key=checkout_key,
    )
    repo.add(order)
    return order
