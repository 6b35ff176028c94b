"""Checkout totals.

    subtotal = Σ quantity × unit_price
    shipping = 0 when subtotal ≥ free-shipping threshold, else the flat fee
    tax      = tax_rate × subtotal
    total    = subtotal + tax + shipping − discount

Computed in Decimal and rounded half up to cents at each step.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError

from ordering.config import CheckoutSettings
from ordering.utils.money import to_money


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal


def shipping_for(subtotal: Decimal, settings: CheckoutSettings) -> Decimal:
    if subtotal >= settings.free_shipping_threshold:
        return to_money(0)
    return to_money(settings.flat_shipping_fee)


def price_cart(lines, settings: CheckoutSettings, discount=0) -> OrderTotals:
    """Price cart lines (anything with ``quantity`` and ``unit_price``)."""
    subtotal = to_money(sum((to_money(line.unit_price) * int(line.quantity) for line in lines), Decimal(0)))
    shipping_cost = shipping_for(subtotal, settings)
    tax = to_money(subtotal * settings.tax_rate)
    discount = to_money(discount)
    total = subtotal + tax + shipping_cost - discount
    if total < 0:
        raise ValidationError({"discount": ["Discount cannot exceed the order value"]})

    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping_cost,
        discount=discount,
        total=total,
    )
