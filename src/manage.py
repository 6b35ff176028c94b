"""Ordering database management CLI.

Creates and drops the order tables of the configured provider and the stock
ledger table, restocks products and finishes interrupted stock releases.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
    python src/manage.py restock prod-001 25
    python src/manage.py release-stock  # Finish releases of cancelled/refunded orders
"""

import argparse
import sys


def setup_databases():
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating ordering database schema...")
    setup_db(ordering)
    print("Done.")


def drop_databases():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping ordering database schema...")
    drop_db(ordering)
    print("Done.")


def _relational_ledger(domain):
    from ordering.services import ledger_from_environment
    from ordering.stock.sql_adapter import SqlStockLedger

    ledger = ledger_from_environment(domain)
    if not isinstance(ledger, SqlStockLedger):
        print("No relational stock ledger: set STOCK_DATABASE_URL or use a SQL provider.")
        sys.exit(1)
    return ledger


def restock(product_id, quantity):
    from ordering.domain import ordering

    ordering.init()
    with ordering.domain_context():
        ledger = _relational_ledger(ordering)
        ledger.restock(product_id, quantity)
        print(f"{product_id}: {ledger.available(product_id)} available.")


def release_stock():
    from ordering.domain import ordering
    from ordering.order.administration import OrderAdministration

    ordering.init()
    with ordering.domain_context():
        ledger = _relational_ledger(ordering)
        released = OrderAdministration(ledger).release_outstanding_stock()
    print(f"Released stock for {len(released)} order(s).")
    for order_number in released:
        print(f"  {order_number}")


def main():
    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    restock_parser = subparsers.add_parser("restock", help="Add units to the stock ledger")
    restock_parser.add_argument("product_id")
    restock_parser.add_argument("quantity", type=int)

    subparsers.add_parser("release-stock", help="Return the stock of cancelled and refunded orders")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "restock":
        restock(args.product_id, args.quantity)
    elif args.command == "release-stock":
        release_stock()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
