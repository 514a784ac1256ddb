# =============================================================================
# Association Resolver
# =============================================================================
# Read-only lineage queries over the ledger schema:
# - Execution arns for granules/workflows (newest first)
# - Workflow names common to a set of granules
# - Surrogate key lookups for API records
#
# Ordering is part of the contract: timestamp descending, then surrogate key
# descending so equal timestamps always resolve the same way.
# =============================================================================

"""
Association resolver for the granule ledger.

Every function takes a SQLAlchemy Connection and never writes.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from sqlalchemy import and_, or_, select
from sqlalchemy.engine import Connection, RowMapping

from ..errors import RecordDoesNotExist
from ..models import Execution
from .schema import collections, executions, files, granules, granules_executions

__all__ = [
    "execution_arns_from_granule_ids_and_workflow_names",
    "newest_execution_arn_from_granule_id_workflow_name",
    "get_workflow_name_intersect_from_granule_ids",
    "order_workflow_intersection",
    "get_api_execution_cumulus_ids",
    "get_api_granule_execution_cumulus_ids_by_execution",
    "get_execution_arns_by_granule_cumulus_id",
    "get_collection_cumulus_id",
    "get_granule_cumulus_id",
    "get_execution_cumulus_id",
    "get_granule_files",
    "get_file_owners",
]


ExecutionLike = Union[Execution, Mapping[str, Any]]


def _newest_first():
    return (
        executions.c.timestamp.desc().nulls_last(),
        executions.c.cumulus_id.desc(),
    )


def _arn_of(record: ExecutionLike) -> str:
    if isinstance(record, Mapping):
        return record["arn"]
    return record.arn


# =============================================================================
# Execution Arn Queries
# =============================================================================


def execution_arns_from_granule_ids_and_workflow_names(
    connection: Connection,
    granule_ids: Sequence[str],
    workflow_names: Sequence[str],
) -> list[str]:
    """
    Find execution arns linked to any of the granules and workflows.

    Returns one arn per matching granule/execution link, newest execution
    first. An arn linked to two of the granules appears twice.

    Args:
        connection: SQLAlchemy Connection
        granule_ids: Granule business ids (any collection)
        workflow_names: Workflow names to include

    Returns:
        Arns ordered by execution timestamp descending (empty if no match)
    """
    if not granule_ids or not workflow_names:
        return []

    stmt = (
        select(executions.c.arn)
        .select_from(
            granules.join(
                granules_executions,
                granules.c.cumulus_id == granules_executions.c.granule_cumulus_id,
            ).join(
                executions,
                executions.c.cumulus_id == granules_executions.c.execution_cumulus_id,
            )
        )
        .where(granules.c.granule_id.in_(list(granule_ids)))
        .where(executions.c.workflow_name.in_(list(workflow_names)))
        .order_by(*_newest_first())
    )
    return list(connection.execute(stmt).scalars())


def newest_execution_arn_from_granule_id_workflow_name(
    connection: Connection,
    granule_ids: Sequence[str],
    workflow_names: Sequence[str],
) -> str:
    """
    Return the most recent execution arn for the granules and workflows.

    Raises:
        RecordDoesNotExist: If no execution matches
    """
    arns = execution_arns_from_granule_ids_and_workflow_names(
        connection, granule_ids, workflow_names
    )
    if not arns:
        raise RecordDoesNotExist(
            f"No executionArns found for granuleId:{list(granule_ids)} "
            f"running workflow:{list(workflow_names)}"
        )
    return arns[0]


def get_execution_arns_by_granule_cumulus_id(
    connection: Connection,
    granule_cumulus_id: int,
    limit: Optional[int] = None,
) -> list[str]:
    """
    Return every execution arn linked to one granule, newest first.

    Args:
        connection: SQLAlchemy Connection
        granule_cumulus_id: Granule surrogate key
        limit: Maximum number of arns to return (None for all)
    """
    stmt = (
        select(executions.c.arn)
        .join(
            granules_executions,
            executions.c.cumulus_id == granules_executions.c.execution_cumulus_id,
        )
        .where(granules_executions.c.granule_cumulus_id == granule_cumulus_id)
        .order_by(*_newest_first())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(connection.execute(stmt).scalars())


# =============================================================================
# Workflow Intersection
# =============================================================================


def order_workflow_intersection(
    rows: Iterable[tuple[int, str]],
    granule_cumulus_ids: Sequence[int],
) -> list[str]:
    """
    Intersect workflow names across granules, keeping recency order.

    ``rows`` are (granule_cumulus_id, workflow_name) pairs already sorted
    newest first. A name's position is the position of its most recent
    association with any of the granules.

    Args:
        rows: Newest-first (granule_cumulus_id, workflow_name) pairs
        granule_cumulus_ids: Granules that must all share a workflow

    Returns:
        Workflow names common to every granule, most recent first

    Examples:
        >>> order_workflow_intersection([(1, "B"), (2, "A"), (1, "A")], [1, 2])
        ['A']
        >>> order_workflow_intersection([(1, "B"), (1, "A"), (1, "B")], [1])
        ['B', 'A']
    """
    wanted = set(granule_cumulus_ids)
    if not wanted:
        return []

    per_granule: dict[int, set[str]] = {granule: set() for granule in wanted}
    ordered: list[str] = []
    for granule_cumulus_id, workflow_name in rows:
        if granule_cumulus_id not in per_granule:
            continue
        per_granule[granule_cumulus_id].add(workflow_name)
        if workflow_name not in ordered:
            ordered.append(workflow_name)

    common = set.intersection(*per_granule.values())
    return [name for name in ordered if name in common]


def get_workflow_name_intersect_from_granule_ids(
    connection: Connection,
    granule_cumulus_ids: Sequence[int],
) -> list[str]:
    """
    Return workflow names common to every given granule.

    For a single granule this is its distinct workflow names ordered by
    most recent association, not alphabetically.

    Args:
        connection: SQLAlchemy Connection
        granule_cumulus_ids: Granule surrogate keys

    Returns:
        Shared workflow names, most recent first (empty if none shared)
    """
    if not granule_cumulus_ids:
        return []

    stmt = (
        select(granules_executions.c.granule_cumulus_id, executions.c.workflow_name)
        .join(
            executions,
            executions.c.cumulus_id == granules_executions.c.execution_cumulus_id,
        )
        .where(granules_executions.c.granule_cumulus_id.in_(list(granule_cumulus_ids)))
        .order_by(*_newest_first())
    )
    rows = [(row.granule_cumulus_id, row.workflow_name) for row in connection.execute(stmt)]
    return order_workflow_intersection(rows, granule_cumulus_ids)


# =============================================================================
# API Record Lookups
# =============================================================================


def get_api_execution_cumulus_ids(
    connection: Connection,
    execution_records: Sequence[ExecutionLike],
) -> list[int]:
    """
    Resolve API executions to surrogate keys, preserving input order.

    Args:
        connection: SQLAlchemy Connection
        execution_records: Execution models or mappings with an "arn" key

    Returns:
        Execution cumulus ids in the same order as the input

    Raises:
        RecordDoesNotExist: If any arn has no execution row
    """
    arns = [_arn_of(record) for record in execution_records]
    if not arns:
        return []

    stmt = select(executions.c.arn, executions.c.cumulus_id).where(
        executions.c.arn.in_(arns)
    )
    by_arn = {row.arn: row.cumulus_id for row in connection.execute(stmt)}

    missing = [arn for arn in arns if arn not in by_arn]
    if missing:
        raise RecordDoesNotExist(f"Execution(s) not found: {', '.join(missing)}")
    return [by_arn[arn] for arn in arns]


def get_api_granule_execution_cumulus_ids_by_execution(
    connection: Connection,
    execution_records: Sequence[ExecutionLike],
) -> list[int]:
    """
    Return every granule surrogate key ever linked to the given executions.

    Duplicates are removed; the result is sorted ascending.
    """
    arns = [_arn_of(record) for record in execution_records]
    if not arns:
        return []

    stmt = (
        select(granules_executions.c.granule_cumulus_id)
        .distinct()
        .join(
            executions,
            executions.c.cumulus_id == granules_executions.c.execution_cumulus_id,
        )
        .where(executions.c.arn.in_(arns))
        .order_by(granules_executions.c.granule_cumulus_id)
    )
    return list(connection.execute(stmt).scalars())


def get_collection_cumulus_id(connection: Connection, name: str, version: str) -> int:
    cumulus_id = connection.execute(
        select(collections.c.cumulus_id).where(
            collections.c.name == name,
            collections.c.version == version,
        )
    ).scalar_one_or_none()
    if cumulus_id is None:
        raise RecordDoesNotExist(f"Collection {name}___{version} not found")
    return cumulus_id


def get_granule_cumulus_id(
    connection: Connection,
    granule_id: str,
    collection_cumulus_id: int,
) -> int:
    cumulus_id = connection.execute(
        select(granules.c.cumulus_id).where(
            granules.c.granule_id == granule_id,
            granules.c.collection_cumulus_id == collection_cumulus_id,
        )
    ).scalar_one_or_none()
    if cumulus_id is None:
        raise RecordDoesNotExist(
            f"Granule {granule_id} not found in collection {collection_cumulus_id}"
        )
    return cumulus_id


def get_execution_cumulus_id(connection: Connection, arn: str) -> int:
    cumulus_id = connection.execute(
        select(executions.c.cumulus_id).where(executions.c.arn == arn)
    ).scalar_one_or_none()
    if cumulus_id is None:
        raise RecordDoesNotExist(f"Execution {arn} not found")
    return cumulus_id


def get_granule_files(connection: Connection, granule_cumulus_id: int) -> list[RowMapping]:
    """Return the granule's file rows ordered by surrogate key."""
    stmt = (
        select(files)
        .where(files.c.granule_cumulus_id == granule_cumulus_id)
        .order_by(files.c.cumulus_id)
    )
    return list(connection.execute(stmt).mappings())


def get_file_owners(
    connection: Connection,
    locations: Iterable[tuple[str, str]],
) -> dict[tuple[str, str], int]:
    """
    Map (bucket, key) locations to the granule whose file row claims them.

    Locations no file row claims are absent from the result.
    """
    locations = list(dict.fromkeys(locations))
    if not locations:
        return {}
    stmt = select(files.c.bucket, files.c.key, files.c.granule_cumulus_id).where(
        or_(*(and_(files.c.bucket == bucket, files.c.key == key) for bucket, key in locations))
    )
    return {
        (row["bucket"], row["key"]): row["granule_cumulus_id"]
        for row in connection.execute(stmt).mappings()
    }
