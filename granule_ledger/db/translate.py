# =============================================================================
# Record Translation
# =============================================================================
# Converts API-shaped pydantic records into relational rows and back.
# =============================================================================

"""
Translation between API-shaped records and ledger rows.

API records refer to related entities by business key (collection_id,
execution url/arn). Rows refer to them by surrogate key, so callers resolve
the cumulus_id first and pass it in.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..models import Collection, Execution, Granule, GranuleFile

__all__ = [
    "translate_api_collection_to_row",
    "translate_api_granule_to_row",
    "translate_api_execution_to_row",
    "translate_api_file_to_row",
    "translate_row_to_api_file",
]

_GRANULE_MEASUREMENT_FIELDS = (
    "duration",
    "product_volume",
    "time_to_process",
    "time_to_archive",
    "beginning_date_time",
    "ending_date_time",
    "production_date_time",
    "last_update_date_time",
    "processing_start_date_time",
    "processing_end_date_time",
    "query_fields",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def translate_api_collection_to_row(collection: Collection) -> dict[str, Any]:
    return {
        "name": collection.name,
        "version": collection.version,
        "process": collection.process,
        "url_path": collection.url_path,
        "duplicate_handling": collection.duplicate_handling,
    }


def translate_api_granule_to_row(
    granule: Granule,
    collection_cumulus_id: int,
) -> dict[str, Any]:
    """
    Build a granules row from an API granule.

    Measurement fields the record leaves unset are omitted so that an upsert
    never clears values recorded by an earlier write.

    Args:
        granule: API-shaped granule
        collection_cumulus_id: Surrogate key of the owning collection

    Returns:
        Row dict for the granules table
    """
    now = _utcnow()
    row: dict[str, Any] = {
        "granule_id": granule.granule_id,
        "collection_cumulus_id": collection_cumulus_id,
        "status": granule.status.value,
        "timestamp": granule.timestamp or now,
        "published": granule.published,
        "cmr_link": granule.cmr_link,
        "error": granule.error,
        "created_at": granule.created_at or now,
        "updated_at": granule.updated_at or now,
    }
    for field in _GRANULE_MEASUREMENT_FIELDS:
        value = getattr(granule, field)
        if value is not None:
            row[field] = value
    return row


def translate_api_execution_to_row(execution: Execution) -> dict[str, Any]:
    now = _utcnow()
    return {
        "arn": execution.arn,
        "workflow_name": execution.workflow_name,
        "url": execution.url,
        "status": execution.status.value,
        "timestamp": execution.timestamp or now,
        "original_payload": execution.original_payload,
        "final_payload": execution.final_payload,
        "error": execution.error,
        "duration": execution.duration,
        "created_at": execution.created_at or now,
        "updated_at": now,
    }


def translate_api_file_to_row(
    file: GranuleFile,
    granule_cumulus_id: Optional[int],
) -> dict[str, Any]:
    now = _utcnow()
    return {
        "granule_cumulus_id": granule_cumulus_id,
        "bucket": file.bucket,
        "key": file.key,
        "file_name": file.file_name,
        "size": file.size,
        "checksum_type": file.checksum_type,
        "checksum_value": file.checksum,
        "source": file.source,
        "type": file.type,
        "created_at": now,
        "updated_at": now,
    }


def translate_row_to_api_file(row: Mapping[str, Any]) -> GranuleFile:
    return GranuleFile(
        bucket=row["bucket"],
        key=row["key"],
        file_name=row["file_name"],
        size=row["size"],
        checksum_type=row["checksum_type"],
        checksum=row["checksum_value"],
        source=row["source"],
        type=row["type"],
    )
