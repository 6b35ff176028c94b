"""Order placement: stock reservation plus order creation as one unit.

The request is validated first; nothing is touched when it is invalid. Each
attempt then runs in a single protean unit of work:
    1. stage the complete aggregate; a taken order number picks a new
       number and starts a fresh attempt
    2. reserve every line in the stock ledger; the first refusal abandons
       the attempt and returns ``InsufficientStock``
    3. commit

A transactional ledger reserves on the unit of work's session, so its
reservations commit with the order or are rolled back with it. The
reservations of any other ledger are released when an attempt is abandoned.
An attempt therefore ends either with a complete pending order and its stock
held, or with no order and the stock levels it started with.
"""

from dataclasses import dataclass

import structlog
from protean import UnitOfWork
from protean.exceptions import ValidationError

from ordering.errors import TransactionFailure
from ordering.order.creation import create_order
from ordering.order.numbering import OrderNumberGenerator, validate_order_number
from ordering.outcomes import InsufficientStock, PlacementSucceeded
from ordering.stock.port import StockLedger
from ordering.utils.money import to_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    unit_price: float
    product_name: str | None = None


@dataclass(frozen=True)
class ShippingSelection:
    method: str
    cost: float


@dataclass(frozen=True)
class PaymentIntent:
    amount: float
    method: str


@dataclass(frozen=True)
class PlacementRequest:
    customer_id: str
    lines: tuple[OrderLine, ...]
    shipping: ShippingSelection
    payment: PaymentIntent
    tax: float = 0.0
    discount: float = 0.0
    currency: str = "USD"
    shipping_address: dict | None = None
    checkout_key: str | None = None
    order_number: str | None = None

    def expected_total(self):
        subtotal = sum((to_money(line.unit_price) * int(line.quantity) for line in self.lines), to_money(0))
        return subtotal + to_money(self.tax) + to_money(self.shipping.cost) - to_money(self.discount)


class StockShortage(Exception):
    """Abandons a placement attempt; carries the ``InsufficientStock`` answer."""

    def __init__(self, result: InsufficientStock) -> None:
        super().__init__(result.product_id)
        self.result = result


class OrderPlacement:
    def __init__(
        self,
        ledger: StockLedger,
        numbers: OrderNumberGenerator | None = None,
        max_attempts: int = 3,
    ) -> None:
        self.ledger = ledger
        self._numbers = numbers or OrderNumberGenerator()
        self._max_attempts = max_attempts

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _validate(self, request: PlacementRequest) -> None:
        if not request.customer_id:
            raise ValidationError({"customer_id": ["A customer is required to place an order"]})
        if not request.lines:
            raise ValidationError({"items": ["An order needs at least one item"]})
        for line in request.lines:
            if not line.product_id:
                raise ValidationError({"product_id": ["Every line needs a product"]})
            if line.quantity is None or int(line.quantity) <= 0:
                raise ValidationError({"quantity": [f"Quantity for {line.product_id} must be greater than 0"]})
            if line.unit_price is None or to_money(line.unit_price) < 0:
                raise ValidationError({"unit_price": [f"Price for {line.product_id} cannot be negative"]})
        if to_money(request.payment.amount) != request.expected_total():
            raise ValidationError(
                {
                    "payment": [
                        f"Payment amount {to_money(request.payment.amount)} does not match "
                        f"order total {request.expected_total()}"
                    ]
                }
            )
        if request.order_number is not None:
            validate_order_number(request.order_number)

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def _reserve_all(self, lines, reserved: list) -> None:
        """Reserve each line, recording successes in ``reserved``."""
        for line in lines:
            result = self.ledger.reserve(line.product_id, int(line.quantity))
            if not result.ok:
                raise StockShortage(
                    InsufficientStock(
                        product_id=line.product_id,
                        requested=int(line.quantity),
                        available=result.available,
                    )
                )
            reserved.append((line.product_id, int(line.quantity)))

    def _release(self, reserved: list) -> None:
        """Undo the reservations of an abandoned attempt."""
        if not self.ledger.transactional:
            for product_id, quantity in reversed(reserved):
                try:
                    self.ledger.release(product_id, quantity)
                except Exception:
                    logger.exception("stock_release_failed", product_id=product_id, quantity=quantity)
        reserved.clear()

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def _attempt(self, request: PlacementRequest, order_number: str, reserved: list) -> str:
        with UnitOfWork():
            order = create_order(
                order_number=order_number,
                customer_id=request.customer_id,
                lines=[
                    {
                        "product_id": line.product_id,
                        "product_name": line.product_name,
                        "quantity": int(line.quantity),
                        "unit_price": float(to_money(line.unit_price)),
                    }
                    for line in request.lines
                ],
                shipping_method=request.shipping.method,
                shipping_cost=float(to_money(request.shipping.cost)),
                payment_amount=float(to_money(request.payment.amount)),
                payment_method=request.payment.method,
                tax=float(to_money(request.tax)),
                discount=float(to_money(request.discount)),
                currency=request.currency,
                shipping_address=request.shipping_address,
                checkout_key=request.checkout_key,
            )
            self._reserve_all(request.lines, reserved)
        return str(order.id)

    def _persist(self, request: PlacementRequest, reserved: list) -> tuple[str, str]:
        explicit = request.order_number
        for attempt in range(1, self._max_attempts + 1):
            order_number = explicit or self._numbers.generate()
            try:
                return self._attempt(request, order_number, reserved), order_number
            except ValidationError as exc:
                self._release(reserved)
                collided = "order_number" in (exc.messages or {})
                if collided and not explicit and attempt < self._max_attempts:
                    logger.warning("order_number_collision", order_number=order_number, attempt=attempt)
                    continue
                raise
        raise TransactionFailure("Could not allocate an order number, please try again")

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def place(self, request: PlacementRequest) -> PlacementSucceeded | InsufficientStock:
        """Reserve stock and create the order, or leave no trace.

        Raises:
            ValidationError: invalid request (before or after reservations).
            TransactionFailure: anything else went wrong; stock was released.
        """
        self._validate(request)

        reserved: list[tuple[str, int]] = []
        try:
            order_id, order_number = self._persist(request, reserved)
        except StockShortage as shortage:
            self._release(reserved)
            logger.info(
                "insufficient_stock",
                product_id=shortage.result.product_id,
                requested=shortage.result.requested,
                available=shortage.result.available,
            )
            return shortage.result
        except ValidationError:
            self._release(reserved)
            raise
        except TransactionFailure:
            self._release(reserved)
            logger.error("order_transaction_failed", customer_id=request.customer_id)
            raise
        except Exception as exc:
            self._release(reserved)
            logger.exception("order_transaction_failed", customer_id=request.customer_id)
            raise TransactionFailure() from exc

        logger.info("order_placed", order_number=order_number, customer_id=request.customer_id)
        return PlacementSucceeded(
            order_id=order_id,
            order_number=order_number,
            total=float(request.expected_total()),
        )
