# =============================================================================
# Relational Schema
# =============================================================================
# SQLAlchemy Core table definitions for the granule ledger:
# - collections: (name, version) business key
# - granules: (granule_id, collection_cumulus_id) business key
# - executions: arn business key
# - files: (bucket, key) unique system-wide
# - granules_executions: append-only many-to-many join
#
# Every table carries an integer surrogate key named cumulus_id. Business
# identifiers never act as foreign keys.
# =============================================================================

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

__all__ = [
    "metadata",
    "collections",
    "granules",
    "executions",
    "files",
    "granules_executions",
    "GRANULE_STATUSES",
    "EXECUTION_STATUSES",
    "GRANULE_MUTABLE_COLUMNS",
]

GRANULE_STATUSES = ("running", "completed", "failed", "queued")
EXECUTION_STATUSES = ("running", "completed", "failed", "unknown")

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")

metadata = MetaData()


def _status_check(column: str, values: tuple) -> CheckConstraint:
    allowed = ", ".join(f"'{v}'" for v in values)
    return CheckConstraint(f"{column} IN ({allowed})")


def _timestamps() -> list:
    return [
        Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
        Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    ]


collections = Table(
    "collections",
    metadata,
    Column("cumulus_id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("version", Text, nullable=False),
    Column("process", Text),
    Column("url_path", Text),
    Column("duplicate_handling", Text),
    *_timestamps(),
    UniqueConstraint("name", "version", name="collections_name_version_unique"),
)


granules = Table(
    "granules",
    metadata,
    Column("cumulus_id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("granule_id", Text, nullable=False),
    Column(
        "collection_cumulus_id",
        Integer,
        ForeignKey("collections.cumulus_id"),
        nullable=False,
    ),
    Column("status", Text, nullable=False),
    Column("timestamp", DateTime(timezone=True)),
    Column("published", Boolean, nullable=False, server_default=false()),
    Column("cmr_link", Text),
    Column("error", JsonType),
    Column("duration", Float),
    Column("product_volume", BigInteger),
    Column("time_to_process", Float),
    Column("time_to_archive", Float),
    Column("beginning_date_time", DateTime(timezone=True)),
    Column("ending_date_time", DateTime(timezone=True)),
    Column("production_date_time", DateTime(timezone=True)),
    Column("last_update_date_time", DateTime(timezone=True)),
    Column("processing_start_date_time", DateTime(timezone=True)),
    Column("processing_end_date_time", DateTime(timezone=True)),
    Column("query_fields", JsonType),
    *_timestamps(),
    UniqueConstraint("granule_id", "collection_cumulus_id", name="granules_granule_id_collection_cumulus_id_unique"),
    _status_check("status", GRANULE_STATUSES),
)


executions = Table(
    "executions",
    metadata,
    Column("cumulus_id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("arn", Text, nullable=False, unique=True),
    Column("workflow_name", Text),
    Column("url", Text),
    Column("status", Text, nullable=False, server_default="unknown"),
    Column("timestamp", DateTime(timezone=True)),
    Column("original_payload", JsonType),
    Column("final_payload", JsonType),
    Column("error", JsonType),
    Column("duration", Float),
    *_timestamps(),
    _status_check("status", EXECUTION_STATUSES),
)


files = Table(
    "files",
    metadata,
    Column("cumulus_id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column(
        "granule_cumulus_id",
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("granules.cumulus_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("bucket", Text, nullable=False),
    Column("key", Text, nullable=False),
    Column("file_name", Text),
    Column("size", BigInteger),
    Column("checksum_type", Text),
    Column("checksum_value", Text),
    Column("source", Text),
    Column("type", Text),
    *_timestamps(),
    UniqueConstraint("bucket", "key", name="files_bucket_key_unique"),
)


granules_executions = Table(
    "granules_executions",
    metadata,
    Column(
        "granule_cumulus_id",
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("granules.cumulus_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "execution_cumulus_id",
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("executions.cumulus_id", ondelete="CASCADE"),
        nullable=False,
    ),
    PrimaryKeyConstraint("granule_cumulus_id", "execution_cumulus_id"),
)


# Fields updated in place when an existing granule row is upserted
GRANULE_MUTABLE_COLUMNS = (
    "status",
    "timestamp",
    "error",
    "published",
    "cmr_link",
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
