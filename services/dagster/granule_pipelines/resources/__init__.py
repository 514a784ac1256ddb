"""Dagster Resources - External Service Connections."""

from .ledger_db_resource import LedgerDatabaseResource
from .minio_resource import MinIOResource
from .mongodb_resource import MongoDBResource

__all__ = [
    "LedgerDatabaseResource",
    "MinIOResource",
    "MongoDBResource",
]
