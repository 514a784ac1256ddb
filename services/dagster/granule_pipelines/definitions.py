"""Dagster Definitions - Repository Configuration.

Defines jobs and resources for the granule ledger.
"""

from dagster import Definitions, EnvVar

from .jobs import move_granule_job, record_granule_job
from .resources import LedgerDatabaseResource, MinIOResource, MongoDBResource


# =============================================================================
# Definitions
# =============================================================================

defs = Definitions(
    jobs=[
        record_granule_job,
        move_granule_job,
    ],
    resources={
        "minio": MinIOResource(
            endpoint=EnvVar("MINIO_ENDPOINT"),
            access_key=EnvVar("MINIO_ROOT_USER"),
            secret_key=EnvVar("MINIO_ROOT_PASSWORD"),
            use_ssl=False,
            distribution_endpoint=EnvVar("DISTRIBUTION_ENDPOINT"),
        ),
        "mongodb": MongoDBResource(
            connection_string=EnvVar("MONGO_CONNECTION_STRING"),
            database="granule_ledger",
        ),
        "ledger_db": LedgerDatabaseResource(
            host=EnvVar("POSTGRES_HOST"),
            user=EnvVar("POSTGRES_USER"),
            password=EnvVar("POSTGRES_PASSWORD"),
            port=5432,
            database="granule_ledger",
        ),
    },
)
