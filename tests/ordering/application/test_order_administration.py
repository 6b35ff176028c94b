import pytest
from ordering.outcomes import TransitionOutcome
from ordering.payment.notification import PaymentNotification, PaymentOutcome
from protean.exceptions import ValidationError


@pytest.fixture()
def admin(services):
    return services.administration


@pytest.fixture()
def paid_order(services, placed_order, fetch_order):
    services.reconciler.reconcile(
        PaymentNotification(
            external_transaction_id="txn-001",
            order_reference=placed_order.order_number,
            outcome=PaymentOutcome.SUCCESS,
            amount=64.5,
        )
    )
    return fetch_order(placed_order.order_number)


class TestFulfilment:
    def test_full_happy_path(self, admin, paid_order, fetch_order, events):
        number = paid_order.order_number

        assert admin.change_status(number, "processing") is TransitionOutcome.APPLIED
        assert (
            admin.change_status(
                number,
                "shipped",
                carrier="Canada Post",
                tracking_number="CP123456789CA",
                estimated_delivery="2026-10-25",
            )
            is TransitionOutcome.APPLIED
        )
        assert admin.change_status(number, "delivered") is TransitionOutcome.APPLIED

        order = fetch_order(number)
        assert order.status == "delivered"
        assert order.shipping.status == "delivered"
        assert order.shipping.carrier == "Canada Post"
        assert order.shipping.tracking_number == "CP123456789CA"
        assert order.shipping.shipped_at is not None
        assert order.shipping.delivered_at is not None
        assert len(events("OrderShipped")) == 1
        assert len(events("OrderDelivered")) == 1

    def test_status_is_case_and_space_insensitive(self, admin, paid_order, fetch_order):
        assert admin.change_status(paid_order.order_number, "  Processing ") is TransitionOutcome.APPLIED
        assert fetch_order(paid_order.order_number).status == "processing"

    def test_cannot_ship_unpaid_order(self, admin, placed_order, fetch_order):
        outcome = admin.change_status(placed_order.order_number, "shipped")

        assert outcome is TransitionOutcome.ILLEGAL_TRANSITION
        assert fetch_order(placed_order.order_number).status == "pending"

    def test_delivered_is_terminal(self, admin, paid_order):
        number = paid_order.order_number
        for status in ("processing", "shipped", "delivered"):
            admin.change_status(number, status)

        assert admin.change_status(number, "cancelled") is TransitionOutcome.ILLEGAL_TRANSITION
        assert admin.change_status(number, "processing") is TransitionOutcome.ILLEGAL_TRANSITION


class TestRejectedRequests:
    def test_unknown_status(self, admin, placed_order):
        with pytest.raises(ValidationError) as exc:
            admin.change_status(placed_order.order_number, "teleported")
        assert "status" in exc.value.messages

    @pytest.mark.parametrize("status", ["paid", "failed"])
    def test_payment_statuses_are_reserved(self, admin, placed_order, status, fetch_order):
        with pytest.raises(ValidationError):
            admin.change_status(placed_order.order_number, status)
        assert fetch_order(placed_order.order_number).status == "pending"

    def test_unknown_order(self, admin):
        assert admin.change_status("ORD-NOPE-0001", "processing") is TransitionOutcome.ORDER_NOT_FOUND


class TestCancellation:
    def test_cancelling_pending_order_returns_stock(self, admin, ledger, placed_order, fetch_order):
        assert ledger.available("prod-001") == 8

        outcome = admin.change_status(placed_order.order_number, "cancelled", reason="Customer changed their mind")

        assert outcome is TransitionOutcome.APPLIED
        order = fetch_order(placed_order.order_number)
        assert order.status == "cancelled"
        assert order.cancellation_reason == "Customer changed their mind"
        assert ledger.available("prod-001") == 10
        assert ledger.available("prod-002") == 5

    def test_refunding_paid_order_returns_stock(self, admin, ledger, paid_order, fetch_order, events):
        outcome = admin.change_status(paid_order.order_number, "refunded", reason="Damaged in transit")

        assert outcome is TransitionOutcome.APPLIED
        assert fetch_order(paid_order.order_number).status == "refunded"
        assert ledger.available("prod-001") == 10
        assert events("OrderRefunded")[0].data["amount"] == 64.5

    def test_rejected_cancel_keeps_stock(self, admin, ledger, paid_order):
        number = paid_order.order_number
        for status in ("processing", "shipped"):
            admin.change_status(number, status)

        assert admin.change_status(number, "cancelled") is TransitionOutcome.ILLEGAL_TRANSITION
        assert ledger.available("prod-001") == 8

    def test_second_cancel_does_not_release_twice(self, admin, ledger, placed_order):
        admin.change_status(placed_order.order_number, "cancelled")

        assert admin.change_status(placed_order.order_number, "cancelled") is TransitionOutcome.ILLEGAL_TRANSITION
        assert ledger.available("prod-001") == 10


class TestReopen:
    def test_failed_order_can_return_to_pending(self, admin, services, placed_order, fetch_order):
        services.reconciler.reconcile(
            PaymentNotification(
                external_transaction_id="txn-001",
                order_reference=placed_order.order_number,
                outcome=PaymentOutcome.FAILURE,
            )
        )

        assert admin.change_status(placed_order.order_number, "pending") is TransitionOutcome.APPLIED

        order = fetch_order(placed_order.order_number)
        assert order.status == "pending"
        assert order.payment.status == "pending"
        assert order.payment.external_transaction_id is None


HELD = {"prod-001": (8, 10), "prod-002": (4, 5)}


class TestInterruptedRelease:
    @pytest.fixture()
    def failing_second_release(self, ledger):
        """The ledger refuses the second release it is asked for, once."""
        original = ledger.release
        calls = []

        def release(product_id, quantity):
            calls.append(product_id)
            if len(calls) == 2:
                raise ConnectionError("stock service unavailable")
            original(product_id, quantity)

        ledger.release = release
        return calls

    def _interrupted_cancel(self, admin, order_number):
        with pytest.raises(ConnectionError):
            admin.change_status(order_number, "cancelled")

    def test_failure_keeps_lines_released_so_far(self, admin, ledger, placed_order, failing_second_release, fetch_order):
        self._interrupted_cancel(admin, placed_order.order_number)

        order = fetch_order(placed_order.order_number)
        assert order.status == "cancelled"
        assert len(order.unreleased_lines()) == 1

        returned = failing_second_release[0]
        for product_id, (held, restored) in HELD.items():
            assert ledger.available(product_id) == (restored if product_id == returned else held)

    def test_repeated_cancel_finishes_release(self, admin, ledger, placed_order, failing_second_release, fetch_order):
        self._interrupted_cancel(admin, placed_order.order_number)

        outcome = admin.change_status(placed_order.order_number, "cancelled")

        assert outcome is TransitionOutcome.ILLEGAL_TRANSITION
        assert ledger.available("prod-001") == 10
        assert ledger.available("prod-002") == 5
        assert fetch_order(placed_order.order_number).unreleased_lines() == []

    def test_sweep_finishes_release(self, admin, ledger, placed_order, failing_second_release):
        self._interrupted_cancel(admin, placed_order.order_number)

        assert admin.release_outstanding_stock() == [placed_order.order_number]
        assert ledger.available("prod-001") == 10
        assert ledger.available("prod-002") == 5
        assert admin.release_outstanding_stock() == []

    def test_completed_release_is_not_repeated(self, admin, ledger, placed_order):
        admin.change_status(placed_order.order_number, "cancelled")

        assert admin.release_stock(placed_order.order_number) == 0
        assert admin.release_outstanding_stock() == []
        assert ledger.available("prod-001") == 10

    def test_live_order_holds_its_stock(self, admin, ledger, placed_order):
        assert admin.release_stock(placed_order.order_number) == 0
        assert ledger.available("prod-001") == 8
