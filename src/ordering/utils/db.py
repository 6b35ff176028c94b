import os

from protean.domain import Domain
from sqlalchemy import create_engine

from ordering.stock.sql_adapter import SqlStockLedger


def setup_db(domain: Domain):
    """Setup database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                # Ensure live entities are loaded and registered with SQLAlchemy
                #   by touching the repository's _dao for each aggregate and entity.
                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.entities.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                provider._metadata.create_all(engine)
                SqlStockLedger(engine).create_schema()

    stock_url = os.getenv("STOCK_DATABASE_URL")
    if stock_url:
        SqlStockLedger(stock_url).create_schema()


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])
                provider._metadata.drop_all(engine)
                SqlStockLedger(engine).drop_schema()

    stock_url = os.getenv("STOCK_DATABASE_URL")
    if stock_url:
        SqlStockLedger(stock_url).drop_schema()
