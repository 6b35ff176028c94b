"""Relational stock ledger (SQLAlchemy Core).

A reservation is one conditional UPDATE; the database decides the race:

    UPDATE stock_levels SET available = available - :q
    WHERE product_id = :p AND available >= :q

One affected row means the units were taken, zero means there were not
enough.

When the ledger is bound to a protean provider that shares its database,
reservations and releases made inside a unit of work run on that unit of
work's session. They commit with the order rows written alongside them, or
not at all.
"""

from contextlib import contextmanager

import structlog
from protean.utils.globals import current_uow
from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, insert, select, update
from sqlalchemy.engine import Engine

from ordering.stock.port import ReserveResult, StockLedger

logger = structlog.get_logger(__name__)

metadata = MetaData()

stock_levels = Table(
    "stock_levels",
    metadata,
    Column("product_id", String(255), primary_key=True),
    Column("available", Integer, nullable=False, default=0),
)


class SqlStockLedger(StockLedger):
    def __init__(self, engine: Engine | str, provider: str | None = None) -> None:
        self.engine = create_engine(engine) if isinstance(engine, str) else engine
        self.provider = provider

    @property
    def transactional(self) -> bool:
        return self.provider is not None

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        metadata.drop_all(self.engine)

    @contextmanager
    def _connection(self):
        """The unit of work's session when bound and one is open, else an own transaction."""
        if self.provider is not None and current_uow and current_uow.in_progress:
            yield current_uow.get_session(self.provider)
        else:
            with self.engine.begin() as conn:
                yield conn

    def _level(self, conn, product_id: str) -> int | None:
        return conn.execute(
            select(stock_levels.c.available).where(stock_levels.c.product_id == product_id)
        ).scalar_one_or_none()

    def reserve(self, product_id: str, quantity: int) -> ReserveResult:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        with self._connection() as conn:
            result = conn.execute(
                update(stock_levels)
                .where(stock_levels.c.product_id == product_id, stock_levels.c.available >= quantity)
                .values(available=stock_levels.c.available - quantity)
            )
            level = self._level(conn, product_id) or 0

        if result.rowcount == 1:
            return ReserveResult(ok=True, available=level)

        logger.info("stock_reservation_refused", product_id=product_id, requested=quantity, available=level)
        return ReserveResult(ok=False, available=level)

    def release(self, product_id: str, quantity: int) -> None:
        with self._connection() as conn:
            result = conn.execute(
                update(stock_levels)
                .where(stock_levels.c.product_id == product_id)
                .values(available=stock_levels.c.available + quantity)
            )
            if result.rowcount == 0:
                conn.execute(insert(stock_levels).values(product_id=product_id, available=quantity))

    def available(self, product_id: str) -> int:
        with self.engine.connect() as conn:
            return self._level(conn, product_id) or 0

    def restock(self, product_id: str, quantity: int) -> None:
        self.release(product_id, quantity)
