# =============================================================================
# Granule Ledger Relational Layer
# =============================================================================
# SQLAlchemy Core schema, engine factory, association resolver and
# transactional writer.
# =============================================================================

"""Relational store for collections, granules, executions and files."""

from .engine import create_all_tables, create_ledger_engine
from .resolver import (
    execution_arns_from_granule_ids_and_workflow_names,
    get_api_execution_cumulus_ids,
    get_api_granule_execution_cumulus_ids_by_execution,
    get_collection_cumulus_id,
    get_execution_arns_by_granule_cumulus_id,
    get_execution_cumulus_id,
    get_file_owners,
    get_granule_cumulus_id,
    get_granule_files,
    get_workflow_name_intersect_from_granule_ids,
    newest_execution_arn_from_granule_id_workflow_name,
    order_workflow_intersection,
)
from .schema import (
    collections,
    executions,
    files,
    granules,
    granules_executions,
    metadata,
)
from .transactions import create_rejectable_transaction, ensure_transaction
from .translate import (
    translate_api_collection_to_row,
    translate_api_execution_to_row,
    translate_api_file_to_row,
    translate_api_granule_to_row,
    translate_row_to_api_file,
)
from .writer import (
    associate_execution_with_granule,
    create_collection,
    create_execution,
    create_file,
    replace_granule_files,
    upsert_granule_with_execution_join,
)

__all__ = [
    # Engine
    "create_ledger_engine",
    "create_all_tables",
    # Schema
    "metadata",
    "collections",
    "granules",
    "executions",
    "files",
    "granules_executions",
    # Resolver
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
    # Transactions
    "create_rejectable_transaction",
    "ensure_transaction",
    # Translation
    "translate_api_collection_to_row",
    "translate_api_granule_to_row",
    "translate_api_execution_to_row",
    "translate_api_file_to_row",
    "translate_row_to_api_file",
    # Writer
    "create_collection",
    "create_execution",
    "upsert_granule_with_execution_join",
    "create_file",
    "replace_granule_files",
    "associate_execution_with_granule",
]
