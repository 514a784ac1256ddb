# =============================================================================
# Transactional Writer
# =============================================================================
# Insert and upsert operations for the granule ledger. Multi-row writes run
# in a single transaction (see transactions.ensure_transaction) so readers
# never observe half of one.
# =============================================================================

"""
Transactional writer for the granule ledger.

Upserts use the dialect's native ``INSERT ... ON CONFLICT`` primitive
(PostgreSQL in production, SQLite in tests) so that concurrent writes for
the same business key serialize in the database rather than in Python.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import delete, func, insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from ..errors import LedgerError, LedgerValidationError, RecordDoesNotExist, UniqueViolation
from ..models import deconstruct_collection_id
from .resolver import (
    get_collection_cumulus_id,
    get_execution_cumulus_id,
    get_granule_cumulus_id,
)
from .schema import (
    GRANULE_MUTABLE_COLUMNS,
    collections,
    executions,
    files,
    granules,
    granules_executions,
)
from .transactions import ensure_transaction

__all__ = [
    "create_collection",
    "create_execution",
    "upsert_granule_with_execution_join",
    "create_file",
    "replace_granule_files",
    "associate_execution_with_granule",
]

logger = logging.getLogger(__name__)

_GRANULE_REQUIRED = ("granule_id", "collection_cumulus_id", "status")
_FILE_REQUIRED = ("granule_cumulus_id", "bucket", "key")


def _dialect_insert(connection: Connection, table):
    """Return the dialect-specific insert construct supporting ON CONFLICT."""
    dialect = connection.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise LedgerError(f"Unsupported ledger database dialect: {dialect}")


def _require(row: Mapping[str, Any], fields: Sequence[str], kind: str) -> None:
    missing = [field for field in fields if row.get(field) is None]
    if missing:
        raise LedgerValidationError(f"{kind} row is missing required field(s): {', '.join(missing)}")


def _is_unique_violation(error: IntegrityError) -> bool:
    # psycopg2 exposes the SQLSTATE; SQLite only has the message
    pgcode = getattr(error.orig, "pgcode", None)
    if pgcode is not None:
        return pgcode == "23505"
    return "UNIQUE constraint failed" in str(error.orig)


# =============================================================================
# Collections and Executions
# =============================================================================


def create_collection(connection: Connection, collection_row: Mapping[str, Any]) -> int:
    """
    Insert a collection row.

    Returns:
        The new collection's cumulus_id

    Raises:
        UniqueViolation: If (name, version) already exists
    """
    _require(collection_row, ("name", "version"), "Collection")
    try:
        with ensure_transaction(connection):
            cumulus_id = connection.execute(
                insert(collections).values(**collection_row).returning(collections.c.cumulus_id)
            ).scalar_one()
    except IntegrityError as e:
        if _is_unique_violation(e):
            raise UniqueViolation(
                f"Collection {collection_row['name']}___{collection_row['version']} already exists"
            ) from e
        raise
    logger.debug(f"Created collection {collection_row['name']}___{collection_row['version']} ({cumulus_id})")
    return cumulus_id


def create_execution(connection: Connection, execution_row: Mapping[str, Any]) -> int:
    """
    Insert an execution row.

    The arn is the execution's business key and is never rewritten, so a
    second create for the same arn is an error rather than an update.

    Args:
        connection: SQLAlchemy Connection
        execution_row: Row dict for the executions table

    Returns:
        The new execution's cumulus_id

    Raises:
        UniqueViolation: If the arn already exists
        LedgerValidationError: If the arn is missing
    """
    _require(execution_row, ("arn",), "Execution")
    try:
        with ensure_transaction(connection):
            cumulus_id = connection.execute(
                insert(executions).values(**execution_row).returning(executions.c.cumulus_id)
            ).scalar_one()
    except IntegrityError as e:
        if _is_unique_violation(e):
            raise UniqueViolation(f"Execution {execution_row['arn']} already exists") from e
        raise
    logger.debug(f"Created execution {execution_row['arn']} ({cumulus_id})")
    return cumulus_id


# =============================================================================
# Granules
# =============================================================================


def upsert_granule_with_execution_join(
    connection: Connection,
    granule_row: Mapping[str, Any],
    execution_cumulus_id: Optional[int] = None,
) -> int:
    """
    Insert or update a granule and link it to an execution, atomically.

    The granule is keyed on (granule_id, collection_cumulus_id). An existing
    row has its mutable fields (status, timestamp, error, published,
    cmr_link, updated_at and any supplied measurements) overwritten with the
    incoming values. The granule/execution link is then inserted; linking
    an already linked pair is a no-op.

    An incoming "queued" status never overwrites a "completed" granule; the
    existing row is kept and still linked to the execution.

    Args:
        connection: SQLAlchemy Connection
        granule_row: Row dict for the granules table
        execution_cumulus_id: Execution to link, or None to skip the link

    Returns:
        The granule's cumulus_id

    Raises:
        LedgerValidationError: If a required field is missing
        sqlalchemy.exc.IntegrityError: If the collection or execution row
            does not exist (the transaction is rolled back)
    """
    _require(granule_row, _GRANULE_REQUIRED, "Granule")

    row = dict(granule_row)
    with ensure_transaction(connection):
        stmt = _dialect_insert(connection, granules).values(**row)

        set_ = {
            column: stmt.excluded[column]
            for column in GRANULE_MUTABLE_COLUMNS
            if column in row
        }
        set_["updated_at"] = stmt.excluded.updated_at if "updated_at" in row else func.now()

        where = None
        if row["status"] == "queued":
            where = granules.c.status != "completed"

        stmt = stmt.on_conflict_do_update(
            index_elements=[granules.c.granule_id, granules.c.collection_cumulus_id],
            set_=set_,
            where=where,
        ).returning(granules.c.cumulus_id)

        granule_cumulus_id = connection.execute(stmt).scalar_one_or_none()
        if granule_cumulus_id is None:
            # Update suppressed by the queued/completed guard
            granule_cumulus_id = get_granule_cumulus_id(
                connection, row["granule_id"], row["collection_cumulus_id"]
            )
            logger.info(
                f"Granule {row['granule_id']} is completed; not overwriting with status queued"
            )

        if execution_cumulus_id is not None:
            join_stmt = (
                _dialect_insert(connection, granules_executions)
                .values(
                    granule_cumulus_id=granule_cumulus_id,
                    execution_cumulus_id=execution_cumulus_id,
                )
                .on_conflict_do_nothing()
            )
            connection.execute(join_stmt)

    return granule_cumulus_id


def associate_execution_with_granule(
    connection: Connection,
    granule_id: str,
    collection_id: str,
    execution_arn: str,
) -> None:
    """
    Link an existing execution to an existing granule.

    Args:
        connection: SQLAlchemy Connection
        granule_id: Granule business id
        collection_id: "<name>___<version>" of the granule's collection
        execution_arn: Arn of the execution to link

    Raises:
        RecordDoesNotExist: If the granule or execution does not exist
    """
    name, version = deconstruct_collection_id(collection_id)
    with ensure_transaction(connection):
        try:
            collection_cumulus_id = get_collection_cumulus_id(connection, name, version)
            granule_cumulus_id = get_granule_cumulus_id(connection, granule_id, collection_cumulus_id)
        except RecordDoesNotExist as e:
            raise RecordDoesNotExist(
                f"No granule found to associate execution with for granuleId {granule_id} "
                f"collectionId {collection_id}"
            ) from e

        execution_cumulus_id = get_execution_cumulus_id(connection, execution_arn)

        connection.execute(
            _dialect_insert(connection, granules_executions)
            .values(
                granule_cumulus_id=granule_cumulus_id,
                execution_cumulus_id=execution_cumulus_id,
            )
            .on_conflict_do_nothing()
        )
    logger.info(f"Associated execution {execution_arn} with granule {granule_id}")


# =============================================================================
# Files
# =============================================================================


def create_file(connection: Connection, file_row: Mapping[str, Any]) -> int:
    """
    Insert a file row.

    Returns:
        The new file's cumulus_id

    Raises:
        UniqueViolation: If (bucket, key) already belongs to a file
        sqlalchemy.exc.IntegrityError: If the granule does not exist
    """
    _require(file_row, _FILE_REQUIRED, "File")
    try:
        with ensure_transaction(connection):
            cumulus_id = connection.execute(
                insert(files).values(**file_row).returning(files.c.cumulus_id)
            ).scalar_one()
    except IntegrityError as e:
        if _is_unique_violation(e):
            raise UniqueViolation(
                f"File s3://{file_row['bucket']}/{file_row['key']} already exists"
            ) from e
        raise
    return cumulus_id


def replace_granule_files(
    connection: Connection,
    granule_cumulus_id: int,
    file_rows: Sequence[Mapping[str, Any]],
) -> list[int]:
    """
    Replace a granule's file rows with a new set.

    Old rows are deleted and the new set inserted in one transaction, so
    readers see either the old file set or the new one, never a mix.

    Args:
        connection: SQLAlchemy Connection
        granule_cumulus_id: Granule whose files are replaced
        file_rows: Complete new set of file rows

    Returns:
        cumulus_ids of the inserted rows, in input order

    Raises:
        UniqueViolation: If a new (bucket, key) belongs to another granule
    """
    rows = [dict(row, granule_cumulus_id=granule_cumulus_id) for row in file_rows]
    for row in rows:
        _require(row, _FILE_REQUIRED, "File")

    with ensure_transaction(connection):
        deleted = connection.execute(
            delete(files).where(files.c.granule_cumulus_id == granule_cumulus_id)
        ).rowcount
        cumulus_ids = [create_file(connection, row) for row in rows]

    logger.info(
        f"Replaced {deleted} file row(s) with {len(cumulus_ids)} for granule {granule_cumulus_id}"
    )
    return cumulus_ids
