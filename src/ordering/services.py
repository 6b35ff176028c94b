"""Wiring of the ordering services.

Collaborators are chosen once at startup and passed in; nothing in the
ordering code reaches for a process-wide client.
"""

import os
from dataclasses import dataclass

import structlog

from ordering.checkout.placement import OrderPlacement
from ordering.checkout.service import CheckoutService
from ordering.config import CheckoutSettings
from ordering.order.administration import OrderAdministration
from ordering.order.numbering import OrderNumberGenerator
from ordering.payment.gateway import FakeGateway, PaymentGateway, StripeGateway
from ordering.payment.reconciliation import PaymentReconciler
from ordering.stock.memory_adapter import InMemoryStockLedger
from ordering.stock.port import StockLedger
from ordering.stock.sql_adapter import SqlStockLedger
from ordering.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: CheckoutSettings
    ledger: StockLedger
    gateway: PaymentGateway
    placement: OrderPlacement
    checkout: CheckoutService
    reconciler: PaymentReconciler
    administration: OrderAdministration


def build_services(ledger: StockLedger, gateway: PaymentGateway, settings: CheckoutSettings) -> Services:
    placement = OrderPlacement(ledger, numbers=OrderNumberGenerator())
    return Services(
        settings=settings,
        ledger=ledger,
        gateway=gateway,
        placement=placement,
        checkout=CheckoutService(placement, gateway, settings, locks=KeyedLock()),
        reconciler=PaymentReconciler(locks=KeyedLock()),
        administration=OrderAdministration(ledger, locks=KeyedLock()),
    )


SQL_PROVIDERS = ("sqlite", "postgresql")


def ledger_from_environment(domain=None) -> StockLedger:
    """Pick the stock ledger.

    ``STOCK_DATABASE_URL`` selects a standalone relational ledger. Otherwise,
    when the domain's default provider is relational, the ledger lives in
    the same database and joins its units of work.
    """
    database_url = os.getenv("STOCK_DATABASE_URL")
    if database_url:
        ledger = SqlStockLedger(database_url)
        ledger.create_schema()
        logger.info("stock_ledger_selected", ledger="sql")
        return ledger

    provider = domain.providers["default"] if domain is not None else None
    if provider is not None and provider.conn_info["provider"] in SQL_PROVIDERS:
        ledger = SqlStockLedger(provider.conn_info["database_uri"], provider=provider.name)
        ledger.create_schema()
        logger.info("stock_ledger_selected", ledger="sql", provider=provider.name)
        return ledger

    logger.info("stock_ledger_selected", ledger="memory")
    return InMemoryStockLedger()


def gateway_from_settings(settings: CheckoutSettings) -> PaymentGateway:
    if settings.stripe_secret_key:
        logger.info("payment_gateway_selected", gateway="stripe")
        return StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret or "",
            timeout=settings.gateway_timeout_seconds,
        )
    logger.info("payment_gateway_selected", gateway="fake")
    return FakeGateway()
