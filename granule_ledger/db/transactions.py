# =============================================================================
# Transaction Helpers
# =============================================================================
# Units of work that either commit in full or roll back and surface their
# failure to the caller.
# =============================================================================

from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy.engine import Connection, Engine

__all__ = ["create_rejectable_transaction", "ensure_transaction"]

T = TypeVar("T")


def create_rejectable_transaction(engine: Engine, work: Callable[[Connection], T]) -> T:
    """
    Run ``work`` inside a single database transaction.

    If ``work`` raises, the transaction is rolled back and the exception
    propagates unchanged. Nothing ``work`` wrote is ever committed in part.

    Args:
        engine: Ledger database engine
        work: Callable receiving the transaction's Connection

    Returns:
        Whatever ``work`` returned, after the commit succeeded

    Example:
        >>> ids = create_rejectable_transaction(
        ...     engine, lambda conn: replace_granule_files(conn, 7, rows)
        ... )
    """
    with engine.begin() as connection:
        return work(connection)


@contextmanager
def ensure_transaction(connection: Connection) -> Generator[Connection, None, None]:
    """
    Join the caller's open transaction, or begin one for the block.

    Writer functions use this so that they are atomic on their own and
    still compose into a larger transaction opened by the caller.

    Args:
        connection: SQLAlchemy Connection

    Yields:
        The same connection, inside a transaction
    """
    if connection.in_transaction():
        yield connection
        return

    with connection.begin():
        yield connection
