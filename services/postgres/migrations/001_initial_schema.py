"""
Migration 001: Initial Ledger Schema

Creates the relational granule ledger: collections, granules, executions,
files and the granules_executions join, each keyed by an integer
cumulus_id surrogate key.

Schema DDL is FROZEN - do not modify. Create a new migration for changes.
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection

VERSION = "001"

# =============================================================================
# FROZEN SCHEMA DDL - DO NOT MODIFY
# =============================================================================

STATEMENTS_V001 = [
    """
    CREATE TABLE collections (
        cumulus_id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        version TEXT NOT NULL,
        process TEXT,
        url_path TEXT,
        duplicate_handling TEXT,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        CONSTRAINT collections_name_version_unique UNIQUE (name, version)
    )
    """,
    """
    CREATE TABLE granules (
        cumulus_id BIGSERIAL PRIMARY KEY,
        granule_id TEXT NOT NULL,
        collection_cumulus_id INTEGER NOT NULL REFERENCES collections (cumulus_id),
        status TEXT NOT NULL CHECK (status IN ('running', 'completed', 'failed', 'queued')),
        timestamp TIMESTAMP WITH TIME ZONE,
        published BOOLEAN NOT NULL DEFAULT false,
        cmr_link TEXT,
        error JSONB,
        duration DOUBLE PRECISION,
        product_volume BIGINT,
        time_to_process DOUBLE PRECISION,
        time_to_archive DOUBLE PRECISION,
        beginning_date_time TIMESTAMP WITH TIME ZONE,
        ending_date_time TIMESTAMP WITH TIME ZONE,
        production_date_time TIMESTAMP WITH TIME ZONE,
        last_update_date_time TIMESTAMP WITH TIME ZONE,
        processing_start_date_time TIMESTAMP WITH TIME ZONE,
        processing_end_date_time TIMESTAMP WITH TIME ZONE,
        query_fields JSONB,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        CONSTRAINT granules_granule_id_collection_cumulus_id_unique
            UNIQUE (granule_id, collection_cumulus_id)
    )
    """,
    """
    CREATE TABLE executions (
        cumulus_id BIGSERIAL PRIMARY KEY,
        arn TEXT NOT NULL UNIQUE,
        workflow_name TEXT,
        url TEXT,
        status TEXT NOT NULL DEFAULT 'unknown'
            CHECK (status IN ('running', 'completed', 'failed', 'unknown')),
        timestamp TIMESTAMP WITH TIME ZONE,
        original_payload JSONB,
        final_payload JSONB,
        error JSONB,
        duration DOUBLE PRECISION,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE files (
        cumulus_id BIGSERIAL PRIMARY KEY,
        granule_cumulus_id BIGINT NOT NULL REFERENCES granules (cumulus_id) ON DELETE CASCADE,
        bucket TEXT NOT NULL,
        key TEXT NOT NULL,
        file_name TEXT,
        size BIGINT,
        checksum_type TEXT,
        checksum_value TEXT,
        source TEXT,
        type TEXT,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
        CONSTRAINT files_bucket_key_unique UNIQUE (bucket, key)
    )
    """,
    """
    CREATE TABLE granules_executions (
        granule_cumulus_id BIGINT NOT NULL REFERENCES granules (cumulus_id) ON DELETE CASCADE,
        execution_cumulus_id BIGINT NOT NULL REFERENCES executions (cumulus_id) ON DELETE CASCADE,
        PRIMARY KEY (granule_cumulus_id, execution_cumulus_id)
    )
    """,
    # Lineage lookups walk the join from the execution side too
    "CREATE INDEX granules_executions_execution_cumulus_id_index "
    "ON granules_executions (execution_cumulus_id)",
    "CREATE INDEX executions_workflow_name_index ON executions (workflow_name)",
    "CREATE INDEX files_granule_cumulus_id_index ON files (granule_cumulus_id)",
]


def up(connection: Connection) -> None:
    """
    Create the ledger tables and indexes.

    Args:
        connection: SQLAlchemy Connection inside the migration transaction
    """
    for statement in STATEMENTS_V001:
        connection.execute(text(statement))
    print("  Created tables: collections, granules, executions, files, granules_executions")
