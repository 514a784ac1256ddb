# =============================================================================
# Granule Models Module
# =============================================================================
# Defines models for granules as exchanged with callers and stored in the
# legacy document store:
# - ObjectKey: Validated S3 object key type
# - GranuleStatus: Granule lifecycle status
# - GranuleFile: One file (S3 object) belonging to a granule
# - Granule: API-shaped granule record
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from ..s3_utils import file_name_from_key
from .collection import deconstruct_collection_id

__all__ = [
    "ObjectKey",
    "GranuleStatus",
    "GranuleFile",
    "Granule",
]


# =============================================================================
# Object Key Validation
# =============================================================================


def validate_object_key(value: str) -> str:
    """
    Validate S3 object key format.

    Object keys should:
    - Not be empty
    - Not start or end with '/'

    Args:
        value: Object key string to validate

    Returns:
        Normalized object key (trimmed)

    Raises:
        TypeError: If the value is not a string
        ValueError: If the key format is invalid
    """
    if not isinstance(value, str):
        raise TypeError(f"Object key must be a string, got {type(value).__name__}")

    value = value.strip()

    if not value:
        raise ValueError("Object key cannot be empty or whitespace only")

    if value.startswith("/"):
        raise ValueError("Object key cannot start with '/'")

    if value.endswith("/"):
        raise ValueError("Object key cannot end with '/'")

    return value


ObjectKey = Annotated[
    str,
    Field(..., description="S3 object key (e.g., 'MOD09GQ/006/granule.hdf')"),
    BeforeValidator(validate_object_key),
]
"""S3 object key type with validation. Ensures non-empty and no leading/trailing slashes."""


# =============================================================================
# Granule Status
# =============================================================================


class GranuleStatus(str, Enum):
    """Lifecycle status of a granule."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    QUEUED = "queued"


# =============================================================================
# Granule File
# =============================================================================


class GranuleFile(BaseModel):
    """
    A single S3 object belonging to a granule.

    ``file_name`` defaults to the last segment of ``key`` when not supplied.

    Attributes:
        bucket: Bucket holding the object
        key: Object key
        file_name: File name (last key segment by default)
        size: Object size in bytes (optional)
        checksum_type: Checksum algorithm (optional)
        checksum: Checksum value (optional)
        source: Original source URL the file was ingested from (optional)
        type: File role, e.g. "data", "metadata", "browse" (optional)
    """

    bucket: str = Field(..., min_length=1, description="Bucket holding the object")
    key: ObjectKey
    file_name: Optional[str] = Field(None, description="File name")
    size: Optional[int] = Field(None, ge=0, description="Object size in bytes")
    checksum_type: Optional[str] = Field(None, description="Checksum algorithm")
    checksum: Optional[str] = Field(None, description="Checksum value")
    source: Optional[str] = Field(None, description="Source URL")
    type: Optional[str] = Field(None, description="File role")

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def default_file_name(self) -> "GranuleFile":
        if not self.file_name:
            self.file_name = file_name_from_key(self.key)
        return self

    @property
    def location(self) -> tuple[str, str]:
        return (self.bucket, self.key)

    def relocated(self, bucket: str, key: str) -> "GranuleFile":
        """Return a copy of this file at a new bucket/key."""
        return self.model_copy(update={"bucket": bucket, "key": key})


# =============================================================================
# Granule
# =============================================================================


class Granule(BaseModel):
    """
    API-shaped granule record.

    This is the shape held by the legacy document store and accepted from
    callers. The relational ledger stores the same facts split across the
    granules and files tables (see granule_ledger.db.translate).

    Attributes:
        granule_id: Granule identifier, unique within its collection
        collection_id: "<name>___<version>" of the owning collection
        status: Lifecycle status
        execution: URL of the execution that last touched the granule
        published: Whether the granule is published to CMR
        cmr_link: CMR concept link (optional)
        error: Structured error payload (optional)
        files: Files belonging to the granule
        timestamp: Time of the last status update
        created_at: Creation time
        updated_at: Last modification time
    """

    granule_id: str = Field(..., min_length=1, description="Granule identifier")
    collection_id: str = Field(..., description="Owning collection id")
    status: GranuleStatus = Field(..., description="Lifecycle status")
    execution: Optional[str] = Field(None, description="Execution URL")
    published: bool = Field(False, description="Published to CMR")
    cmr_link: Optional[str] = Field(None, description="CMR concept link")
    error: Optional[dict[str, Any]] = Field(None, description="Structured error payload")
    files: list[GranuleFile] = Field(default_factory=list, description="Granule files")
    timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    duration: Optional[float] = None
    product_volume: Optional[int] = None
    time_to_process: Optional[float] = None
    time_to_archive: Optional[float] = None
    beginning_date_time: Optional[datetime] = None
    ending_date_time: Optional[datetime] = None
    production_date_time: Optional[datetime] = None
    last_update_date_time: Optional[datetime] = None
    processing_start_date_time: Optional[datetime] = None
    processing_end_date_time: Optional[datetime] = None
    query_fields: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("collection_id")
    @classmethod
    def validate_collection_id(cls, v: str) -> str:
        deconstruct_collection_id(v)
        return v

    @property
    def collection_name_version(self) -> tuple[str, str]:
        return deconstruct_collection_id(self.collection_id)
