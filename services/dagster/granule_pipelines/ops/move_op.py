# =============================================================================
# Move Op - Granule File Relocation
# =============================================================================
# Moves a granule's files to rule-based destinations through the relocation
# engine and reports the authoritative final file list.
# =============================================================================

from typing import Any, Dict

from dagster import In, OpExecutionContext, Out, op

from granule_ledger.errors import RecordDoesNotExist
from granule_ledger.models import Granule
from granule_ledger.relocation import GranuleRelocator


def _load_granule(mongodb, request: Dict[str, Any]) -> Granule:
    if request.get("granule"):
        return Granule.model_validate(request["granule"])

    granule_id = request["granule_id"]
    granule = mongodb.get_granule(granule_id)
    if granule is None:
        raise RecordDoesNotExist(f"Granule {granule_id} not found")
    return granule


def _move_granule(
    minio,
    mongodb,
    ledger_db,
    request: Dict[str, Any],
    log,
) -> Dict[str, Any]:
    """
    Core logic for relocating a granule's files.

    This function is extracted for easier unit testing without Dagster context.

    Args:
        minio: MinIOResource instance (object storage, distribution endpoint)
        mongodb: MongoDBResource instance (legacy store)
        ledger_db: LedgerDatabaseResource instance (relational store)
        request: Dict with "destinations" and either "granule" (API record)
            or "granule_id" (loaded from the legacy store)
        log: Logger instance (context.log)

    Returns:
        Dict with status, granule_id and files (final file list)

    Raises:
        DestinationConflict: If any destination object already exists
        PartialFailure: If some files could not be moved; its ``result``
            holds the final file list both stores were updated to
    """
    granule = _load_granule(mongodb, request)
    destinations = request.get("destinations", [])
    log.info(
        f"Moving granule {granule.granule_id} ({len(granule.files)} file(s), "
        f"{len(destinations)} destination rule(s))"
    )

    relocator = GranuleRelocator(
        object_store=minio,
        legacy_store=mongodb,
        engine=ledger_db.get_engine(),
        distribution_endpoint=minio.distribution_endpoint,
    )
    result = relocator.move_granule(granule, destinations)

    if not result.succeeded:
        log.error(f"Granule {granule.granule_id} partially moved: {result.to_failure_payload()}")
        result.raise_for_failure()

    log.info(f"Granule {granule.granule_id} moved successfully")
    return {
        "status": result.status.value,
        "granule_id": granule.granule_id,
        "files": [f.model_dump(mode="json") for f in result.files],
    }


@op(
    ins={"request": In(dagster_type=dict)},
    out=Out(dagster_type=dict),
    required_resource_keys={"minio", "mongodb", "ledger_db"},
)
def move_granule(context: OpExecutionContext, request: dict) -> dict:
    """
    Move a granule's files to new locations and reconcile both stores.

    Args:
        context: Dagster op execution context
        request: Dict with "destinations" ({regex, bucket, filepath} rules)
            and either "granule" or "granule_id"

    Returns:
        Dict with status, granule_id and the final file list
    """
    return _move_granule(
        minio=context.resources.minio,
        mongodb=context.resources.mongodb,
        ledger_db=context.resources.ledger_db,
        request=request,
        log=context.log,
    )
