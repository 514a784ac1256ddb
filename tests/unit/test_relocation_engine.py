"""
Unit tests for the granule relocation engine.

Uses the in-memory object store, a mongomock legacy store and an in-memory
SQLite ledger so that every system of record can be inspected after a move.
"""

import json
import logging
import xml.etree.ElementTree as ET

import pytest

from granule_ledger.db import (
    get_collection_cumulus_id,
    get_granule_cumulus_id,
    get_granule_files,
    replace_granule_files,
    translate_api_file_to_row,
    upsert_granule_with_execution_join,
)
from granule_ledger.errors import (
    DestinationConflict,
    LedgerValidationError,
    PartialFailure,
)
from granule_ledger.models import FileMoveState, GranuleFile, MoveStatus
from granule_ledger.relocation import MOVE_FAILURE_REASON, GranuleRelocator

HDF_TO_MOVED = {"regex": r".*\.hdf$", "bucket": "protected", "filepath": "stack/granules_moved"}
JPG_TO_EXAMPLE = {"regex": r".*\.jpg$", "bucket": "public", "filepath": "jpg/example2/"}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def migrated_granule(ledger_engine, collection_cumulus_id, granule):
    """Write the granule and its files to the relational store."""
    with ledger_engine.begin() as conn:
        granule_cumulus_id = upsert_granule_with_execution_join(
            conn,
            {
                "granule_id": granule.granule_id,
                "collection_cumulus_id": collection_cumulus_id,
                "status": granule.status.value,
            },
        )
        replace_granule_files(
            conn,
            granule_cumulus_id,
            [translate_api_file_to_row(f, granule_cumulus_id) for f in granule.files],
        )
    return granule


@pytest.fixture
def legacy_granule(mongo_resource, granule):
    mongo_resource.insert_granule(granule)
    return granule


@pytest.fixture
def relocator(object_store, mongo_resource, ledger_engine):
    return GranuleRelocator(
        object_store, mongo_resource, ledger_engine, object_store.distribution_endpoint
    )


def _relational_locations(engine, granule):
    with engine.connect() as conn:
        name, version = granule.collection_name_version
        collection_cumulus_id = get_collection_cumulus_id(conn, name, version)
        granule_cumulus_id = get_granule_cumulus_id(conn, granule.granule_id, collection_cumulus_id)
        return [(row["bucket"], row["key"]) for row in get_granule_files(conn, granule_cumulus_id)]


def _legacy_locations(mongo_resource, granule):
    return [f.location for f in mongo_resource.get_granule(granule.granule_id).files]


# =============================================================================
# Test: successful moves
# =============================================================================


class TestMoveGranule:

    def test_moves_matching_files_and_updates_both_stores(
        self, relocator, object_store, ledger_engine, mongo_resource, migrated_granule, legacy_granule
    ):
        result = relocator.move_granule(migrated_granule, [HDF_TO_MOVED, JPG_TO_EXAMPLE])

        expected = [
            ("protected", "stack/granules_moved/granule.hdf"),
            ("public", "jpg/example2/granule.jpg"),
            ("protected", "stack/original_filepath/granule.cmr.xml"),
        ]
        assert result.status == MoveStatus.SUCCESS
        assert result.errors == []
        assert result.reason is None
        assert [f.location for f in result.files] == expected
        assert [o.state for o in result.outcomes] == [
            FileMoveState.MOVED, FileMoveState.MOVED, FileMoveState.UNMOVED,
        ]

        # Object storage matches the result
        assert object_store.object_exists("protected", "stack/granules_moved/granule.hdf")
        assert not object_store.object_exists("protected", "stack/original_filepath/granule.hdf")
        assert object_store.object_exists("public", "jpg/example2/granule.jpg")
        assert not object_store.object_exists("public", "stack/original_filepath/granule.jpg")

        # Both stores agree with the result
        assert _relational_locations(ledger_engine, migrated_granule) == expected
        assert _legacy_locations(mongo_resource, migrated_granule) == expected

        result.raise_for_failure()

    def test_no_matching_rule_moves_nothing(
        self, relocator, object_store, ledger_engine, migrated_granule, legacy_granule
    ):
        before = dict(object_store.objects)

        result = relocator.move_granule(migrated_granule, [{"regex": r".*\.txt$", "bucket": "archive"}])

        assert result.succeeded
        assert all(o.state == FileMoveState.UNMOVED for o in result.outcomes)
        assert object_store.objects == before
        assert _relational_locations(ledger_engine, migrated_granule) == [
            f.location for f in migrated_granule.files
        ]

    def test_file_metadata_preserved(
        self, relocator, ledger_engine, mongo_resource, migrated_granule, legacy_granule
    ):
        relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        legacy = mongo_resource.get_granule(migrated_granule.granule_id)
        assert legacy.files[0].size == 1024
        assert legacy.files[0].file_name == "granule.hdf"

    def test_invalid_rule_rejected_before_anything_moves(self, relocator, object_store, migrated_granule):
        before = dict(object_store.objects)

        with pytest.raises(LedgerValidationError):
            relocator.move_granule(migrated_granule, [{"regex": "([", "bucket": "archive"}])

        assert object_store.objects == before


# =============================================================================
# Test: collision guard
# =============================================================================


class TestDestinationConflict:

    def test_existing_target_rejects_whole_request(
        self, relocator, object_store, ledger_engine, mongo_resource, migrated_granule, legacy_granule
    ):
        object_store.put("public", "jpg/example2/granule.jpg", "someone else's file")
        before = dict(object_store.objects)

        with pytest.raises(DestinationConflict) as exc_info:
            relocator.move_granule(migrated_granule, [HDF_TO_MOVED, JPG_TO_EXAMPLE])

        assert exc_info.value.file_names == ["granule.jpg"]
        assert "would be overwritten" in str(exc_info.value)
        # Nothing moved and nothing written
        assert object_store.objects == before
        original = [f.location for f in migrated_granule.files]
        assert _relational_locations(ledger_engine, migrated_granule) == original
        assert _legacy_locations(mongo_resource, migrated_granule) == original


# =============================================================================
# Test: partial failure
# =============================================================================


class TestPartialFailure:

    def test_failed_copy_keeps_original_location_in_both_stores(
        self, relocator, object_store, ledger_engine, mongo_resource, migrated_granule, legacy_granule
    ):
        destinations = [
            HDF_TO_MOVED,
            {"regex": r".*\.jpg$", "bucket": "fake-bucket", "filepath": "jpg"},
        ]

        result = relocator.move_granule(migrated_granule, destinations)

        expected = [
            ("protected", "stack/granules_moved/granule.hdf"),
            ("public", "stack/original_filepath/granule.jpg"),
            ("protected", "stack/original_filepath/granule.cmr.xml"),
        ]
        assert result.status == MoveStatus.PARTIAL_FAILURE
        assert result.reason == MOVE_FAILURE_REASON
        assert [f.location for f in result.files] == expected
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error["code"] == "NoSuchBucket"
        assert error["file_name"] == "granule.jpg"
        assert error["destination"] == "s3://fake-bucket/jpg/granule.jpg"

        assert _relational_locations(ledger_engine, migrated_granule) == expected
        assert _legacy_locations(mongo_resource, migrated_granule) == expected
        assert object_store.object_exists("public", "stack/original_filepath/granule.jpg")

    def test_raise_for_failure_carries_final_files(self, relocator, migrated_granule, legacy_granule):
        result = relocator.move_granule(
            migrated_granule, [{"regex": r".*\.jpg$", "bucket": "fake-bucket", "filepath": "jpg"}]
        )

        with pytest.raises(PartialFailure) as exc_info:
            result.raise_for_failure()

        payload = exc_info.value.result.to_failure_payload()
        assert payload["reason"] == MOVE_FAILURE_REASON
        assert [f["bucket"] for f in payload["granuleFilesRecords"]] == ["protected", "public", "protected"]

    def test_failed_delete_removes_partial_copy(
        self, relocator, object_store, ledger_engine, migrated_granule, legacy_granule
    ):
        object_store.fail_delete.add(("public", "stack/original_filepath/granule.jpg"))

        result = relocator.move_granule(migrated_granule, [JPG_TO_EXAMPLE])

        assert result.status == MoveStatus.PARTIAL_FAILURE
        assert result.errors[0]["code"] == "AccessDenied"
        assert result.outcomes[1].state == FileMoveState.FAILED
        assert object_store.object_exists("public", "stack/original_filepath/granule.jpg")
        assert not object_store.object_exists("public", "jpg/example2/granule.jpg")
        assert ("public", "stack/original_filepath/granule.jpg") in _relational_locations(
            ledger_engine, migrated_granule
        )


# =============================================================================
# Test: store presence
# =============================================================================


class TestStorePresence:

    def test_unmigrated_granule_updates_legacy_store_only(
        self, relocator, ledger_engine, mongo_resource, legacy_granule, collection_cumulus_id, caplog
    ):
        with caplog.at_level(logging.INFO):
            result = relocator.move_granule(legacy_granule, [HDF_TO_MOVED])

        assert result.succeeded
        assert _legacy_locations(mongo_resource, legacy_granule)[0] == (
            "protected", "stack/granules_moved/granule.hdf"
        )
        assert "not in the relational store" in caplog.text

    def test_granule_missing_from_legacy_store_logs_warning(
        self, relocator, ledger_engine, mongo_resource, migrated_granule, caplog
    ):
        with caplog.at_level(logging.WARNING):
            result = relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        assert result.succeeded
        assert mongo_resource.get_granule(migrated_granule.granule_id) is None
        assert "not found in the legacy store" in caplog.text
        assert _relational_locations(ledger_engine, migrated_granule)[0] == (
            "protected", "stack/granules_moved/granule.hdf"
        )


# =============================================================================
# Test: targets recorded for other granules
# =============================================================================


class TestTargetOwnedByAnotherGranule:

    @pytest.fixture
    def other_granule_owns_hdf_target(self, ledger_engine, granule_row_factory):
        with ledger_engine.begin() as conn:
            other = upsert_granule_with_execution_join(conn, granule_row_factory("other-granule"))
            replace_granule_files(
                conn, other, [{"bucket": "protected", "key": "stack/granules_moved/granule.hdf"}]
            )

    def test_rejected_before_anything_moves(
        self,
        relocator,
        object_store,
        ledger_engine,
        mongo_resource,
        migrated_granule,
        legacy_granule,
        other_granule_owns_hdf_target,
    ):
        before = dict(object_store.objects)

        with pytest.raises(DestinationConflict) as exc_info:
            relocator.move_granule(migrated_granule, [HDF_TO_MOVED, JPG_TO_EXAMPLE])

        assert exc_info.value.file_names == ["granule.hdf"]
        assert object_store.objects == before
        # Every recorded location still holds its file
        original = [f.location for f in migrated_granule.files]
        assert _relational_locations(ledger_engine, migrated_granule) == original
        assert _legacy_locations(mongo_resource, migrated_granule) == original
        for location in original:
            assert object_store.object_exists(*location)

    def test_unmigrated_granule_also_rejected(
        self, relocator, object_store, legacy_granule, collection_cumulus_id, other_granule_owns_hdf_target
    ):
        with pytest.raises(DestinationConflict):
            relocator.move_granule(legacy_granule, [HDF_TO_MOVED])

        assert object_store.object_exists("protected", "stack/original_filepath/granule.hdf")

    def test_own_file_rows_do_not_conflict(
        self, relocator, object_store, ledger_engine, migrated_granule, legacy_granule
    ):
        # The granule's own file rows already claim the target
        with ledger_engine.begin() as conn:
            name, version = migrated_granule.collection_name_version
            granule_cumulus_id = get_granule_cumulus_id(
                conn, migrated_granule.granule_id, get_collection_cumulus_id(conn, name, version)
            )
            replace_granule_files(
                conn,
                granule_cumulus_id,
                [translate_api_file_to_row(f, granule_cumulus_id) for f in migrated_granule.files]
                + [{"bucket": "protected", "key": "stack/granules_moved/granule.hdf"}],
            )

        result = relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        assert result.outcomes[0].state == FileMoveState.MOVED


# =============================================================================
# Test: metadata rewriting
# =============================================================================


class TestMetadataRewrite:

    @pytest.fixture
    def echo10(self, object_store):
        xml_text = (
            "<Granule>"
            "<OnlineAccessURLs>"
            "<OnlineAccessURL><URL>https://data.example.com/protected/stack/original_filepath/granule.hdf</URL></OnlineAccessURL>"
            "<OnlineAccessURL><URL>https://data.example.com/public/stack/original_filepath/granule.jpg</URL></OnlineAccessURL>"
            "</OnlineAccessURLs>"
            "</Granule>"
        )
        object_store.put("protected", "stack/original_filepath/granule.cmr.xml", xml_text)
        return xml_text

    def test_metadata_urls_point_at_new_locations(
        self, relocator, object_store, migrated_granule, legacy_granule, echo10
    ):
        destinations = [
            HDF_TO_MOVED,
            JPG_TO_EXAMPLE,
            {"regex": r".*\.cmr\.xml$", "bucket": "protected", "filepath": "stack/granules_moved"},
        ]

        result = relocator.move_granule(migrated_granule, destinations)

        assert result.succeeded
        text = object_store.get_text("protected", "stack/granules_moved/granule.cmr.xml")
        assert "https://data.example.com/protected/stack/granules_moved/granule.hdf" in text
        assert "https://data.example.com/public/jpg/example2/granule.jpg" in text
        assert "original_filepath" not in text

    def test_unmoved_metadata_document_is_still_rewritten(
        self, relocator, object_store, migrated_granule, legacy_granule, echo10
    ):
        relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        text = object_store.get_text("protected", "stack/original_filepath/granule.cmr.xml")
        assert "stack/granules_moved/granule.hdf" in text
        assert "public/stack/original_filepath/granule.jpg" in text

    def test_unreadable_metadata_reported_as_partial_failure(
        self, relocator, object_store, ledger_engine, migrated_granule, legacy_granule
    ):
        object_store.put("protected", "stack/original_filepath/granule.cmr.xml", "<Granule>")

        result = relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        assert result.status == MoveStatus.PARTIAL_FAILURE
        assert result.errors[0]["file_name"] == "granule.cmr.xml"
        assert result.errors[0]["code"] == "ParseError"
        # The file moves themselves stuck
        assert _relational_locations(ledger_engine, migrated_granule)[0] == (
            "protected", "stack/granules_moved/granule.hdf"
        )

    def test_umm_g_document_rewritten(self, relocator, object_store, ledger_engine, mongo_resource, granule):
        umm_g = GranuleFile(bucket="protected", key="stack/original_filepath/granule.cmr.json")
        granule = granule.model_copy(update={"files": [granule.files[0], umm_g]})
        object_store.put(
            "protected",
            umm_g.key,
            json.dumps({"RelatedUrls": [
                {"URL": "s3://protected/stack/original_filepath/granule.hdf"},
            ]}),
        )
        mongo_resource.insert_granule(granule)

        result = relocator.move_granule(granule, [HDF_TO_MOVED])

        assert result.succeeded
        document = json.loads(object_store.get_text("protected", umm_g.key))
        assert document["RelatedUrls"][0]["URL"] == "s3://protected/stack/granules_moved/granule.hdf"

    def test_unreferenced_moved_file_added_to_echo10(
        self, relocator, object_store, mongo_resource, granule
    ):
        data = GranuleFile(bucket="protected", key=f"stack/original_filepath/{granule.granule_id}.txt")
        echo10 = GranuleFile(bucket="public", key=f"stack/original_filepath/{granule.granule_id}.cmr.xml")
        granule = granule.model_copy(update={"files": [data, echo10]})
        original_url = "https://example.com/other/thing.hdf"
        object_store.put(data.bucket, data.key, "test data")
        object_store.put(
            echo10.bucket,
            echo10.key,
            "<Granule><OnlineAccessURLs><OnlineAccessURL>"
            f"<URL>{original_url}</URL>"
            "</OnlineAccessURL></OnlineAccessURLs></Granule>",
        )
        mongo_resource.insert_granule(granule)

        result = relocator.move_granule(
            granule, [{"regex": r".*\.txt$", "bucket": "protected", "filepath": "stack/moved_granules"}]
        )

        assert result.succeeded
        assert object_store.list_objects("public", "stack/original_filepath") == [echo10.key]
        root = ET.fromstring(object_store.get_text(echo10.bucket, echo10.key))
        urls = [element.text for element in root.iterfind("OnlineAccessURLs/OnlineAccessURL/URL")]
        assert urls == [
            original_url,
            f"https://data.example.com/protected/stack/moved_granules/{granule.granule_id}.txt",
        ]

    def test_unreferenced_moved_file_added_to_umm_g(
        self, relocator, object_store, mongo_resource, granule
    ):
        data = GranuleFile(bucket="protected", key=f"stack/original_filepath/{granule.granule_id}.txt")
        umm_g = GranuleFile(bucket="public", key=f"stack/original_filepath/{granule.granule_id}.cmr.json")
        granule = granule.model_copy(update={"files": [data, umm_g]})
        original_urls = ["https://example.com/docs", "https://example.com/browse.jpg"]
        object_store.put(data.bucket, data.key, "test data")
        object_store.put(
            umm_g.bucket,
            umm_g.key,
            json.dumps({"RelatedUrls": [{"URL": url, "Type": "VIEW RELATED INFORMATION"} for url in original_urls]}),
        )
        mongo_resource.insert_granule(granule)

        relocator.move_granule(
            granule, [{"regex": r".*\.txt$", "bucket": "protected", "filepath": "stack/moved_granules/x1"}]
        )

        document = json.loads(object_store.get_text(umm_g.bucket, umm_g.key))
        urls = [related["URL"] for related in document["RelatedUrls"]]
        assert urls == original_urls + [
            f"https://data.example.com/protected/stack/moved_granules/x1/{granule.granule_id}.txt"
        ]
        assert document["RelatedUrls"][-1]["Type"] == "GET DATA"

    def test_rewritten_document_size_recorded_in_both_stores(
        self, relocator, object_store, ledger_engine, mongo_resource, migrated_granule, legacy_granule, echo10
    ):
        result = relocator.move_granule(migrated_granule, [HDF_TO_MOVED])

        location = ("protected", "stack/original_filepath/granule.cmr.xml")
        size = len(object_store.get_text(*location).encode("utf-8"))
        assert size != 64
        assert [f.size for f in result.files if f.location == location] == [size]
        legacy = mongo_resource.get_granule(migrated_granule.granule_id)
        assert [f.size for f in legacy.files if f.location == location] == [size]
        # Moved data files keep their recorded size
        assert legacy.files[0].size == 1024
        with ledger_engine.connect() as conn:
            name, version = migrated_granule.collection_name_version
            granule_cumulus_id = get_granule_cumulus_id(
                conn, migrated_granule.granule_id, get_collection_cumulus_id(conn, name, version)
            )
            sizes = {(row["bucket"], row["key"]): row["size"] for row in get_granule_files(conn, granule_cumulus_id)}
        assert sizes[location] == size
