"""Order confirmation view.

Always reads the current stored state by order number. Redirect parameters
coming back from the payment gateway are never trusted for status.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import OrderAccessDenied
from ordering.order.order import Order


def _iso(value):
    return value.isoformat() if value else None


def _order_view(order: Order) -> dict:
    address = order.shipping_address
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id),
        "status": order.status,
        "subtotal": order.subtotal,
        "tax": order.tax,
        "shipping_cost": order.shipping_cost,
        "discount": order.discount,
        "total": order.total,
        "currency": order.currency,
        "shipping_address": (
            {
                "full_name": address.full_name,
                "email": address.email,
                "phone": address.phone,
                "address": address.address,
                "city": address.city,
                "province": address.province,
                "postal_code": address.postal_code,
            }
            if address
            else None
        ),
        "cancellation_reason": order.cancellation_reason,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def _items_view(order: Order) -> list[dict]:
    return [
        {
            "product_id": str(item.product_id),
            "product_name": item.product_name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "subtotal": item.subtotal,
        }
        for item in order.items
    ]


def _payment_view(order: Order) -> dict | None:
    payment = order.payment
    if payment is None:
        return None
    return {
        "amount": payment.amount,
        "method": payment.method,
        "status": payment.status,
        "external_transaction_id": payment.external_transaction_id,
        "paid_at": _iso(payment.paid_at),
        "failure_reason": payment.failure_reason,
    }


def _shipping_view(order: Order) -> dict | None:
    shipping = order.shipping
    if shipping is None:
        return None
    return {
        "method": shipping.method,
        "cost": shipping.cost,
        "status": shipping.status,
        "carrier": shipping.carrier,
        "tracking_number": shipping.tracking_number,
        "estimated_delivery": shipping.estimated_delivery,
    }


def build_confirmation(order_number: str, customer_id: str | None = None) -> dict:
    """Return ``{order, order_items, payment, shipping}`` for an order number.

    Raises:
        ObjectNotFoundError: no order carries this number.
        OrderAccessDenied: ``customer_id`` was given and does not own the order.
    """
    order = current_domain.repository_for(Order).find_by_order_number(order_number)
    if order is None:
        raise ObjectNotFoundError({"_entity": f"Order {order_number} does not exist"})
    if customer_id is not None and str(order.customer_id) != str(customer_id):
        raise OrderAccessDenied(order_number)

    return {
        "order": _order_view(order),
        "order_items": _items_view(order),
        "payment": _payment_view(order),
        "shipping": _shipping_view(order),
    }


def list_customer_orders(customer_id: str) -> list[dict]:
    """Order summaries of a customer, newest first."""
    orders = current_domain.repository_for(Order).for_customer(customer_id)
    return [
        {
            "order_number": order.order_number,
            "status": order.status,
            "total": order.total,
            "currency": order.currency,
            "item_count": sum(item.quantity for item in order.items),
            "created_at": _iso(order.created_at),
        }
        for order in orders
    ]
