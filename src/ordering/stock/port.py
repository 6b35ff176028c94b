"""Stock ledger port (abstract interface).

The catalog owns stock; ordering only reserves and releases through this
contract. ``reserve`` must be a single atomic check-and-decrement: two
callers racing for the last unit can never both succeed.

A ledger is ``transactional`` when its writes join the current protean unit
of work and commit or roll back with it. Callers compensate the writes of
other ledgers themselves.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ReserveResult:
    """Result of a reservation attempt.

    ``available`` is the stock level after a successful reservation, or the
    level that was too low for a refused one.
    """

    ok: bool
    available: int


class StockLedger(ABC):
    """Abstract stock ledger interface."""

    @property
    def transactional(self) -> bool:
        return False

    @abstractmethod
    def reserve(self, product_id: str, quantity: int) -> ReserveResult:
        """Atomically take ``quantity`` units if that many are available."""
        ...

    @abstractmethod
    def release(self, product_id: str, quantity: int) -> None:
        """Return previously reserved units."""
        ...

    @abstractmethod
    def available(self, product_id: str) -> int:
        """Current stock level; 0 for unknown products."""
        ...

    @abstractmethod
    def restock(self, product_id: str, quantity: int) -> None:
        """Add stock (used by catalog sync and test setup)."""
        ...
