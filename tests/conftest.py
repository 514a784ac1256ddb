"""
Shared pytest fixtures for granule ledger tests.

Provides an in-memory SQLite ledger, record factories, a mongomock-backed
legacy store and an in-memory object store.
"""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import mongomock
import pytest
from minio.error import S3Error

from granule_ledger.db import (
    create_all_tables,
    create_collection,
    create_ledger_engine,
)
from granule_ledger.models import Granule, GranuleFile, GranuleStatus

from services.dagster.granule_pipelines.resources import MongoDBResource


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Relational Store Fixtures
# =============================================================================

@pytest.fixture
def ledger_engine():
    """In-memory SQLite ledger with every table created."""
    engine = create_ledger_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def connection(ledger_engine):
    """Connection to the in-memory ledger."""
    with ledger_engine.connect() as conn:
        yield conn


@pytest.fixture
def collection_cumulus_id(ledger_engine):
    """Surrogate key of the MOD09GQ___006 collection."""
    with ledger_engine.connect() as conn:
        return create_collection(conn, {"name": "MOD09GQ", "version": "006"})


# =============================================================================
# Row Factories
# =============================================================================

@pytest.fixture
def execution_row_factory():
    """Build executions rows; timestamps are offsets in seconds from BASE_TIME."""

    def factory(workflow_name="fakeWorkflow", offset=0, **overrides):
        row = {
            "arn": f"arn:aws:states:us-east-1:000000000000:execution:{workflow_name}:{uuid.uuid4()}",
            "workflow_name": workflow_name,
            "status": "completed",
            "timestamp": BASE_TIME + timedelta(seconds=offset),
        }
        row.update(overrides)
        return row

    return factory


@pytest.fixture
def granule_row_factory(collection_cumulus_id):
    """Build granules rows in the MOD09GQ___006 collection."""

    def factory(granule_id=None, status="completed", **overrides):
        row = {
            "granule_id": granule_id or f"MOD09GQ.A{uuid.uuid4().hex[:12]}",
            "collection_cumulus_id": collection_cumulus_id,
            "status": status,
            "timestamp": BASE_TIME,
            "published": False,
        }
        row.update(overrides)
        return row

    return factory


# =============================================================================
# API Record Fixtures
# =============================================================================

@pytest.fixture
def granule_files():
    """Three files of one granule in the staging location."""
    return [
        GranuleFile(bucket="protected", key="stack/original_filepath/granule.hdf", size=1024),
        GranuleFile(bucket="public", key="stack/original_filepath/granule.jpg", size=256),
        GranuleFile(bucket="protected", key="stack/original_filepath/granule.cmr.xml", size=64),
    ]


@pytest.fixture
def granule(granule_files):
    """Completed granule in the MOD09GQ___006 collection."""
    return Granule(
        granule_id="MOD09GQ.A2017025.h21v00.006.2017034065109",
        collection_id="MOD09GQ___006",
        status=GranuleStatus.COMPLETED,
        files=granule_files,
    )


# =============================================================================
# Legacy Store Fixtures
# =============================================================================

@pytest.fixture
def mongomock_client():
    """In-memory MongoDB client for tests."""
    return mongomock.MongoClient()


@pytest.fixture
def mongo_resource(monkeypatch, mongomock_client):
    """MongoDBResource configured to use the mongomock client."""
    monkeypatch.setattr(
        "services.dagster.granule_pipelines.resources.mongodb_resource.MongoClient",
        lambda *args, **kwargs: mongomock_client,
    )
    return MongoDBResource(connection_string="mongodb://localhost:27017")


# =============================================================================
# Object Store Fixtures
# =============================================================================

def _s3_error(code, message, resource):
    return S3Error(
        code=code,
        message=message,
        resource=resource,
        request_id="test",
        host_id="test",
        response=Mock(status=404),
    )


class InMemoryObjectStore:
    """
    Object store double with the MinIOResource interface.

    Only buckets passed to the constructor exist; copying into any other
    bucket raises NoSuchBucket like MinIO does. Keys listed in
    ``fail_delete`` raise AccessDenied on delete.
    """

    def __init__(self, buckets, distribution_endpoint="https://data.example.com/"):
        self.buckets = set(buckets)
        self.objects = {}
        self.fail_delete = set()
        self.distribution_endpoint = distribution_endpoint
        self._lock = threading.Lock()

    def put(self, bucket, key, body=""):
        self.objects[(bucket, key)] = body

    def object_exists(self, bucket, key):
        return (bucket, key) in self.objects

    def copy_object(self, src_bucket, src_key, dst_bucket, dst_key):
        with self._lock:
            if dst_bucket not in self.buckets:
                raise _s3_error("NoSuchBucket", "The specified bucket does not exist", dst_bucket)
            if (src_bucket, src_key) not in self.objects:
                raise _s3_error("NoSuchKey", "The specified key does not exist", src_key)
            self.objects[(dst_bucket, dst_key)] = self.objects[(src_bucket, src_key)]

    def delete_object(self, bucket, key):
        with self._lock:
            if (bucket, key) in self.fail_delete:
                raise _s3_error("AccessDenied", "Access Denied", key)
            self.objects.pop((bucket, key), None)

    def list_objects(self, bucket, prefix=""):
        return sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))

    def get_text(self, bucket, key):
        if (bucket, key) not in self.objects:
            raise _s3_error("NoSuchKey", "The specified key does not exist", key)
        return self.objects[(bucket, key)]

    def put_text(self, bucket, key, text):
        with self._lock:
            self.objects[(bucket, key)] = text


@pytest.fixture
def object_store(granule_files):
    """Object store holding the granule's files in protected/public buckets."""
    store = InMemoryObjectStore(buckets={"protected", "public", "archive"})
    for f in granule_files:
        body = "<Granule />" if f.file_name.endswith(".cmr.xml") else f"contents of {f.file_name}"
        store.put(f.bucket, f.key, body)
    return store
