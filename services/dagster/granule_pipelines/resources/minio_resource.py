# =============================================================================
# MinIO Resource - S3-Compatible Object Storage Operations
# =============================================================================
# Object storage collaborator for the relocation engine: existence checks,
# copy/delete moves and small text documents (CMR metadata).
# =============================================================================

import io
from typing import Optional
import logging

from dagster import ConfigurableResource
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import S3Error
from pydantic import Field

__all__ = ["MinIOResource"]

logger = logging.getLogger(__name__)

# Error codes meaning "the object is not there"
_MISSING_CODES = ("NoSuchKey", "NoSuchObject")


class MinIOResource(ConfigurableResource):
    """
    Dagster resource for MinIO (S3-compatible object storage) operations.

    Provides methods for:
    - Checking whether an object exists
    - Copying, deleting and moving objects between buckets
    - Listing objects under a prefix
    - Reading and writing small text documents

    Copy and delete are the fallible primitives the relocation engine uses
    per file. Delete tolerates a missing object so that retries are safe.

    Configuration matches MinIOSettings from granule_ledger.models.config.

    Attributes:
        endpoint: MinIO server endpoint (host:port)
        access_key: Access key for authentication
        secret_key: Secret key for authentication
        use_ssl: Whether to use SSL/TLS (default: False)
        distribution_endpoint: Public base URL for objects, used in CMR metadata
    """

    endpoint: str = Field(..., description="MinIO server endpoint (host:port)")
    access_key: str = Field(..., description="Access key for authentication")
    secret_key: str = Field(..., description="Secret key for authentication")
    use_ssl: bool = Field(False, description="Whether to use SSL/TLS")
    distribution_endpoint: str = Field("", description="Public base URL for objects")

    def get_client(self) -> Minio:
        """
        Create a MinIO client instance.

        Returns:
            Configured Minio client
        """
        return Minio(
            self.endpoint,
            access_key=self.access_key,
            secret_key=self.secret_key,
            secure=self.use_ssl,
        )

    def object_exists(self, bucket: str, key: str) -> bool:
        """
        Check whether an object exists.

        Args:
            bucket: Bucket name
            key: Object key

        Returns:
            True if the object exists, False if it (or its bucket) does not

        Raises:
            S3Error: For any other storage error (e.g. access denied)
        """
        client = self.get_client()
        try:
            client.stat_object(bucket, key)
            return True
        except S3Error as exc:
            if exc.code in _MISSING_CODES or exc.code == "NoSuchBucket":
                return False
            raise

    def copy_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        """
        Server-side copy of an object.

        Raises:
            S3Error: If the source is missing, a bucket does not exist or
                access is denied
        """
        client = self.get_client()
        client.copy_object(dst_bucket, dst_key, CopySource(src_bucket, src_key))
        logger.debug(f"Copied s3://{src_bucket}/{src_key} to s3://{dst_bucket}/{dst_key}")

    def delete_object(self, bucket: str, key: str) -> None:
        """
        Delete an object, tolerating one that is already gone.

        Raises:
            S3Error: For errors other than a missing object
        """
        client = self.get_client()
        try:
            client.remove_object(bucket, key)
        except S3Error as exc:
            if exc.code not in _MISSING_CODES:
                raise

    def move_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        """
        Move an object with copy-then-delete semantics.

        Raises:
            S3Error: If the copy fails or the source cannot be deleted
        """
        self.copy_object(src_bucket, src_key, dst_bucket, dst_key)
        self.delete_object(src_bucket, src_key)

    def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        """
        List object keys under a prefix.

        Args:
            bucket: Bucket name
            prefix: Key prefix (default: whole bucket)

        Returns:
            Object keys, recursively

        Raises:
            RuntimeError: If the bucket does not exist
            S3Error: For other storage errors
        """
        client = self.get_client()
        try:
            objects = client.list_objects(bucket, prefix=prefix, recursive=True)
            return [obj.object_name for obj in objects]
        except S3Error as exc:
            if exc.code == "NoSuchBucket":
                raise RuntimeError(f"Bucket '{bucket}' does not exist") from exc
            raise

    def get_text(self, bucket: str, key: str) -> str:
        """
        Download an object and decode it as UTF-8.

        Raises:
            S3Error: If the object does not exist or access is denied
        """
        client = self.get_client()
        response = client.get_object(bucket, key)
        try:
            data = response.read()
        finally:
            response.close()
            response.release_conn()
        return data.decode("utf-8")

    def put_text(self, bucket: str, key: str, text: str, content_type: Optional[str] = None) -> None:
        """
        Upload a text document, replacing any existing object.

        Args:
            bucket: Bucket name
            key: Object key
            text: Document body
            content_type: MIME type (default: inferred from the key)
        """
        if content_type is None:
            content_type = self._infer_content_type(key)
        data = text.encode("utf-8")
        client = self.get_client()
        client.put_object(
            bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    @staticmethod
    def _infer_content_type(key: str) -> str:
        if key.endswith(".xml"):
            return "application/xml"
        if key.endswith(".json"):
            return "application/json"
        return "text/plain"
