# =============================================================================
# Data Models Library
# =============================================================================
# Pydantic models and settings for the granule ledger.
# =============================================================================

"""
Data models for the granule ledger.

This library provides:
- Collection, Granule, GranuleFile, Execution: API-shaped records
- MoveDestination, MoveGranuleResult: Relocation inputs and results
- Configuration models
"""

# Collection models
from .collection import (
    Collection,
    construct_collection_id,
    deconstruct_collection_id,
)

# Granule models
from .granule import (
    ObjectKey,
    GranuleStatus,
    GranuleFile,
    Granule,
)

# Execution models
from .execution import (
    Execution,
    ExecutionStatus,
)

# Relocation models
from .relocation import (
    MoveDestination,
    FileMoveState,
    FileMoveOutcome,
    MoveStatus,
    MoveGranuleResult,
)

# Configuration models
from .config import (
    MinIOSettings,
    MongoSettings,
    LedgerDatabaseSettings,
    DistributionSettings,
)

__all__ = [
    # Collection models
    "Collection",
    "construct_collection_id",
    "deconstruct_collection_id",
    # Granule models
    "ObjectKey",
    "GranuleStatus",
    "GranuleFile",
    "Granule",
    # Execution models
    "Execution",
    "ExecutionStatus",
    # Relocation models
    "MoveDestination",
    "FileMoveState",
    "FileMoveOutcome",
    "MoveStatus",
    "MoveGranuleResult",
    # Configuration models
    "MinIOSettings",
    "MongoSettings",
    "LedgerDatabaseSettings",
    "DistributionSettings",
]
