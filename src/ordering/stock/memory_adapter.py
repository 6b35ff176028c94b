"""In-process stock ledger for development and testing."""

import threading

from ordering.stock.port import ReserveResult, StockLedger


class InMemoryStockLedger(StockLedger):
    def __init__(self, levels: dict[str, int] | None = None) -> None:
        self._levels: dict[str, int] = dict(levels or {})
        self._lock = threading.Lock()

    def reserve(self, product_id: str, quantity: int) -> ReserveResult:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        with self._lock:
            current = self._levels.get(product_id, 0)
            if current < quantity:
                return ReserveResult(ok=False, available=current)
            self._levels[product_id] = current - quantity
            return ReserveResult(ok=True, available=current - quantity)

    def release(self, product_id: str, quantity: int) -> None:
        with self._lock:
            self._levels[product_id] = self._levels.get(product_id, 0) + quantity

    def available(self, product_id: str) -> int:
        with self._lock:
            return self._levels.get(product_id, 0)

    def restock(self, product_id: str, quantity: int) -> None:
        self.release(product_id, quantity)
