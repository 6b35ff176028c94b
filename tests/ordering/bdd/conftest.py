"""Shared BDD fixtures and step definitions for the ordering features."""

import pytest
from ordering.payment.notification import PaymentNotification, PaymentOutcome
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def context():
    """Outcomes recorded by When steps for the Then steps to inspect."""
    return {}


def _set_level(ledger, product_id, quantity):
    current = ledger.available(product_id)
    if quantity > current:
        ledger.restock(product_id, quantity - current)
    elif quantity < current:
        ledger.reserve(product_id, current - quantity)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the store holds {first:d} units of "{first_id}" and {second:d} unit of "{second_id}"'))
def _(ledger, first, first_id, second, second_id):
    _set_level(ledger, first_id, first)
    _set_level(ledger, second_id, second)


@given(parsers.cfparse("a pending order totalling {total:f}"), target_fixture="order_number")
def _(placement, make_request, total):
    result = placement.place(make_request())
    assert result.total == pytest.approx(total)
    return result.order_number


@given("the order has been paid")
def _(services, order_number, fetch_order):
    services.reconciler.reconcile(
        PaymentNotification(
            external_transaction_id="txn-paid",
            order_reference=order_number,
            outcome=PaymentOutcome.SUCCESS,
            amount=fetch_order(order_number).total,
        )
    )


# ---------------------------------------------------------------------------
# Shared When steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('staff set the status to "{status}"'))
@when(parsers.cfparse('staff set the status to "{status}"'))
def _(services, order_number, status, context):
    context["status_outcome"] = services.administration.change_status(order_number, status)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order_number, fetch_order, status):
    assert fetch_order(order_number).status == status


@then(parsers.cfparse('the store holds {quantity:d} units of "{product_id}"'))
def _(ledger, quantity, product_id):
    assert ledger.available(product_id) == quantity


@then(parsers.cfparse('exactly {count:d} "{event_name}" event is recorded'))
def _(events, count, event_name):
    assert len(events(event_name)) == count


@then(parsers.cfparse('the status change outcome is "{outcome}"'))
def _(context, outcome):
    assert context["status_outcome"].value == outcome
