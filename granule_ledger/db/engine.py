# =============================================================================
# Engine Factory
# =============================================================================
# Builds SQLAlchemy engines for the granule ledger. PostgreSQL in production,
# SQLite (in-memory) for tests and local experiments.
# =============================================================================

import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .schema import metadata

__all__ = ["create_ledger_engine", "create_all_tables"]

logger = logging.getLogger(__name__)


def create_ledger_engine(url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """
    Create a SQLAlchemy engine for the ledger database.

    PostgreSQL engines use connection pooling with pre-ping validation.
    SQLite engines get foreign key enforcement switched on for every
    connection, and in-memory databases share a single connection so that
    all callers see the same data.

    Args:
        url: Database URL (postgresql://... or sqlite://...)
        echo: Log all SQL statements
        **kwargs: Extra arguments forwarded to sqlalchemy.create_engine

    Returns:
        Configured SQLAlchemy Engine instance
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs.setdefault("poolclass", StaticPool)

        engine = create_engine(url, echo=echo, **kwargs)

        # SQLite leaves foreign keys off unless asked per connection
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)


def create_all_tables(engine: Engine) -> None:
    """Create every ledger table that does not exist yet."""
    metadata.create_all(engine)
    logger.info(f"Ensured ledger tables: {', '.join(sorted(metadata.tables))}")
