# =============================================================================
# Record Op - Granule/Execution Registration
# =============================================================================
# Registers a granule and the execution that touched it. The relational
# ledger is written first in one transaction, then the legacy document
# store is updated.
# =============================================================================

from typing import Any, Dict, Optional

from dagster import In, OpExecutionContext, Out, op
from sqlalchemy.engine import Connection

from granule_ledger.db import (
    create_collection,
    create_execution,
    create_rejectable_transaction,
    get_collection_cumulus_id,
    get_execution_cumulus_id,
    replace_granule_files,
    translate_api_collection_to_row,
    translate_api_execution_to_row,
    translate_api_file_to_row,
    translate_api_granule_to_row,
    upsert_granule_with_execution_join,
)
from granule_ledger.errors import RecordDoesNotExist
from granule_ledger.models import Collection, Execution, Granule, GranuleStatus


def _resolve_collection(connection: Connection, granule: Granule, collection: Optional[Collection]) -> int:
    name, version = granule.collection_name_version
    try:
        return get_collection_cumulus_id(connection, name, version)
    except RecordDoesNotExist:
        if collection is None or collection.collection_id != granule.collection_id:
            raise
        return create_collection(connection, translate_api_collection_to_row(collection))


def _resolve_execution(connection: Connection, execution: Execution) -> int:
    try:
        return get_execution_cumulus_id(connection, execution.arn)
    except RecordDoesNotExist:
        return create_execution(connection, translate_api_execution_to_row(execution))


def _record_granule_execution(
    ledger_db,
    mongodb,
    payload: Dict[str, Any],
    log,
) -> Dict[str, Any]:
    """
    Core logic for registering a granule/execution pair.

    This function is extracted for easier unit testing without Dagster context.

    Relational writes (collection if new, execution if new, granule upsert
    with its execution link, granule files) happen in one rejectable
    transaction. The legacy store is written only after that commit.

    Args:
        ledger_db: LedgerDatabaseResource instance
        mongodb: MongoDBResource instance
        payload: Dict with "granule", "execution" and optional "collection"
        log: Logger instance (context.log)

    Returns:
        Dict with granule_id, granule_cumulus_id and execution_cumulus_id

    Raises:
        pydantic.ValidationError: If the payload records are malformed
        RecordDoesNotExist: If the collection is unknown and not supplied
    """
    granule = Granule.model_validate(payload["granule"])
    execution = Execution.model_validate(payload["execution"])
    collection = (
        Collection.model_validate(payload["collection"]) if payload.get("collection") else None
    )
    if granule.execution is None and execution.url:
        granule = granule.model_copy(update={"execution": execution.url})

    log.info(f"Recording granule {granule.granule_id} for execution {execution.arn}")

    def work(connection: Connection) -> Dict[str, int]:
        collection_cumulus_id = _resolve_collection(connection, granule, collection)
        execution_cumulus_id = _resolve_execution(connection, execution)
        granule_cumulus_id = upsert_granule_with_execution_join(
            connection,
            translate_api_granule_to_row(granule, collection_cumulus_id),
            execution_cumulus_id,
        )
        if granule.files:
            replace_granule_files(
                connection,
                granule_cumulus_id,
                [translate_api_file_to_row(f, granule_cumulus_id) for f in granule.files],
            )
        return {
            "granule_cumulus_id": granule_cumulus_id,
            "execution_cumulus_id": execution_cumulus_id,
        }

    ids = create_rejectable_transaction(ledger_db.get_engine(), work)
    log.info(
        f"Ledger updated: granule {ids['granule_cumulus_id']}, execution {ids['execution_cumulus_id']}"
    )

    existing = mongodb.get_granule(granule.granule_id)
    if (
        existing is not None
        and existing.status == GranuleStatus.COMPLETED
        and granule.status == GranuleStatus.QUEUED
    ):
        log.info(f"Legacy granule {granule.granule_id} is completed; not setting status queued")
    else:
        mongodb.insert_granule(granule)

    return {"granule_id": granule.granule_id, **ids}


@op(
    ins={"payload": In(dagster_type=dict)},
    out=Out(dagster_type=dict),
    required_resource_keys={"ledger_db", "mongodb"},
)
def record_granule_execution(context: OpExecutionContext, payload: dict) -> dict:
    """
    Register a granule and the execution that produced or modified it.

    Args:
        context: Dagster op execution context
        payload: Dict with "granule", "execution" and optional "collection"
            records in API shape

    Returns:
        Dict with granule_id, granule_cumulus_id and execution_cumulus_id
    """
    return _record_granule_execution(
        ledger_db=context.resources.ledger_db,
        mongodb=context.resources.mongodb,
        payload=payload,
        log=context.log,
    )
