"""
Unit tests for MinIOResource.

Tests all methods with mocked minio.Minio client to avoid network calls.
"""

from unittest.mock import Mock, patch

import pytest
from minio.error import S3Error

from services.dagster.granule_pipelines.resources import MinIOResource

MINIO_PATH = "services.dagster.granule_pipelines.resources.minio_resource.Minio"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def minio_resource():
    """Create a MinIOResource instance with test configuration."""
    return MinIOResource(
        endpoint="localhost:9000",
        access_key="test_access",
        secret_key="test_secret",
        use_ssl=False,
        distribution_endpoint="https://data.example.com/",
    )


@pytest.fixture
def mock_client():
    """Patch Minio so every get_client() returns the same mock."""
    with patch(MINIO_PATH) as mock_minio:
        client = Mock()
        mock_minio.return_value = client
        yield client


def _s3_error(code):
    return S3Error(
        code=code,
        message=f"{code} message",
        resource="/bucket/key",
        request_id="req",
        host_id="host",
        response=Mock(status=404),
    )


# =============================================================================
# Test: get_client
# =============================================================================


def test_get_client(minio_resource):
    """Test that get_client creates a properly configured Minio client."""
    with patch(MINIO_PATH) as mock_minio:
        minio_resource.get_client()

        mock_minio.assert_called_once_with(
            "localhost:9000",
            access_key="test_access",
            secret_key="test_secret",
            secure=False,
        )


# =============================================================================
# Test: object_exists
# =============================================================================


def test_object_exists_true(minio_resource, mock_client):
    assert minio_resource.object_exists("protected", "a/granule.hdf") is True
    mock_client.stat_object.assert_called_once_with("protected", "a/granule.hdf")


@pytest.mark.parametrize("code", ["NoSuchKey", "NoSuchObject", "NoSuchBucket"])
def test_object_exists_false_when_missing(minio_resource, mock_client, code):
    mock_client.stat_object.side_effect = _s3_error(code)
    assert minio_resource.object_exists("protected", "a/granule.hdf") is False


def test_object_exists_reraises_other_errors(minio_resource, mock_client):
    """Access errors must not be mistaken for a free destination."""
    mock_client.stat_object.side_effect = _s3_error("AccessDenied")

    with pytest.raises(S3Error):
        minio_resource.object_exists("protected", "a/granule.hdf")


# =============================================================================
# Test: copy / delete / move
# =============================================================================


def test_copy_object_uses_copy_source(minio_resource, mock_client):
    minio_resource.copy_object("protected", "a/granule.hdf", "archive", "b/granule.hdf")

    args = mock_client.copy_object.call_args[0]
    assert args[0] == "archive"
    assert args[1] == "b/granule.hdf"
    assert args[2].bucket_name == "protected"
    assert args[2].object_name == "a/granule.hdf"


def test_copy_object_propagates_errors(minio_resource, mock_client):
    mock_client.copy_object.side_effect = _s3_error("NoSuchBucket")

    with pytest.raises(S3Error) as exc_info:
        minio_resource.copy_object("protected", "a", "fake-bucket", "b")

    assert exc_info.value.code == "NoSuchBucket"


def test_delete_object_tolerates_missing(minio_resource, mock_client):
    mock_client.remove_object.side_effect = _s3_error("NoSuchKey")

    minio_resource.delete_object("protected", "gone.hdf")

    mock_client.remove_object.assert_called_once_with("protected", "gone.hdf")


def test_delete_object_reraises_other_errors(minio_resource, mock_client):
    mock_client.remove_object.side_effect = _s3_error("AccessDenied")

    with pytest.raises(S3Error):
        minio_resource.delete_object("protected", "a.hdf")


def test_move_object_copies_then_deletes(minio_resource, mock_client):
    minio_resource.move_object("protected", "a.hdf", "archive", "b.hdf")

    mock_client.copy_object.assert_called_once()
    mock_client.remove_object.assert_called_once_with("protected", "a.hdf")


def test_move_object_skips_delete_when_copy_fails(minio_resource, mock_client):
    mock_client.copy_object.side_effect = _s3_error("NoSuchKey")

    with pytest.raises(S3Error):
        minio_resource.move_object("protected", "a.hdf", "archive", "b.hdf")

    mock_client.remove_object.assert_not_called()


# =============================================================================
# Test: list_objects
# =============================================================================


def test_list_objects(minio_resource, mock_client):
    obj1, obj2 = Mock(), Mock()
    obj1.object_name = "stack/granule.hdf"
    obj2.object_name = "stack/granule.jpg"
    mock_client.list_objects.return_value = [obj1, obj2]

    result = minio_resource.list_objects("protected", prefix="stack/")

    assert result == ["stack/granule.hdf", "stack/granule.jpg"]
    mock_client.list_objects.assert_called_once_with("protected", prefix="stack/", recursive=True)


def test_list_objects_missing_bucket(minio_resource, mock_client):
    mock_client.list_objects.side_effect = _s3_error("NoSuchBucket")

    with pytest.raises(RuntimeError, match="Bucket 'nope' does not exist"):
        minio_resource.list_objects("nope")


# =============================================================================
# Test: text documents
# =============================================================================


def test_get_text_reads_and_releases(minio_resource, mock_client):
    response = Mock()
    response.read.return_value = b"<Granule />"
    mock_client.get_object.return_value = response

    assert minio_resource.get_text("protected", "g.cmr.xml") == "<Granule />"
    response.close.assert_called_once()
    response.release_conn.assert_called_once()


def test_put_text_infers_content_type(minio_resource, mock_client):
    minio_resource.put_text("protected", "g.cmr.json", '{"a": 1}')

    args, kwargs = mock_client.put_object.call_args
    assert args[0] == "protected"
    assert args[1] == "g.cmr.json"
    assert args[2].read() == b'{"a": 1}'
    assert kwargs["length"] == 8
    assert kwargs["content_type"] == "application/json"


def test_put_text_explicit_content_type(minio_resource, mock_client):
    minio_resource.put_text("protected", "g.cmr.xml", "<Granule />", content_type="text/xml")

    assert mock_client.put_object.call_args[1]["content_type"] == "text/xml"
