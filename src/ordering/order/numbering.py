"""Order number generation.

Format: ``ORD-<time>-<random>`` where ``<time>`` is the last 10 digits of the
millisecond clock and ``<random>`` a zero-padded 6-digit number from
``secrets``. Numbers already issued by this process are remembered (bounded)
so concurrent callers never receive the same value, and every candidate is
checked against the order store before it is handed out.
"""

import re
import secrets
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.errors import TransactionFailure

logger = structlog.get_logger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r"^ORD-[A-Z0-9]{4,12}-\d{4,}$")


def validate_order_number(order_number: str) -> str:
    if not order_number or not ORDER_NUMBER_PATTERN.match(order_number):
        raise ValidationError({"order_number": [f"Malformed order number: {order_number!r}"]})
    return order_number


def number_in_store(order_number: str) -> bool:
    from ordering.order.order import Order

    return current_domain.repository_for(Order).order_number_exists(order_number)


class OrderNumberGenerator:
    def __init__(
        self,
        exists: Callable[[str], bool] | None = number_in_store,
        clock: Callable[[], float] = time.time,
        randbelow: Callable[[int], int] = secrets.randbelow,
        random_digits: int = 6,
        max_attempts: int = 25,
        remember: int = 100_000,
    ) -> None:
        self._exists = exists
        self._clock = clock
        self._randbelow = randbelow
        self._random_digits = random_digits
        self._max_attempts = max_attempts
        self._remember = remember
        self._issued: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def _candidate(self) -> str:
        millis = int(self._clock() * 1000) % 10**10
        suffix = self._randbelow(10**self._random_digits)
        return f"ORD-{millis:010d}-{suffix:0{self._random_digits}d}"

    def _claim(self, candidate: str) -> bool:
        with self._lock:
            if candidate in self._issued:
                return False
            self._issued[candidate] = None
            while len(self._issued) > self._remember:
                self._issued.popitem(last=False)
            return True

    def generate(self) -> str:
        """Return an order number not issued before and not present in the store."""
        for attempt in range(1, self._max_attempts + 1):
            candidate = self._candidate()
            if not self._claim(candidate):
                continue
            if self._exists is not None and self._exists(candidate):
                logger.warning("order_number_collision", order_number=candidate, attempt=attempt)
                continue
            return candidate

        logger.error("order_number_exhausted", attempts=self._max_attempts)
        raise TransactionFailure("Could not allocate an order number, please try again")
