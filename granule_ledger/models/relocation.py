# =============================================================================
# Relocation Models Module
# =============================================================================
# Defines the models exchanged with the granule relocation engine:
# - MoveDestination: One {regex, bucket, filepath} destination rule
# - FileMoveState: Per-file state reached during a relocation
# - FileMoveOutcome: Per-file result (final location plus any error)
# - MoveStatus / MoveGranuleResult: Overall relocation result
# =============================================================================

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .granule import Granule, GranuleFile

__all__ = [
    "MoveDestination",
    "FileMoveState",
    "FileMoveOutcome",
    "MoveStatus",
    "MoveGranuleResult",
]


class MoveDestination(BaseModel):
    """
    A destination rule for relocating granule files.

    A file whose name matches ``regex`` (``re.match`` semantics) is moved to
    ``bucket`` under ``filepath``.

    Attributes:
        regex: Pattern tested against the file name
        bucket: Destination bucket
        filepath: Destination key prefix (may be empty for the bucket root)
    """

    regex: str = Field(..., min_length=1, description="Pattern tested against the file name")
    bucket: str = Field(..., description="Destination bucket")
    filepath: str = Field("", description="Destination key prefix")

    model_config = ConfigDict(frozen=True)

    @field_validator("regex")
    @classmethod
    def validate_regex(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid destination regex '{v}': {e}") from e
        return v

    @field_validator("bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Destination bucket cannot be empty")
        return v

    def matches(self, file_name: str) -> bool:
        return re.match(self.regex, file_name) is not None


class FileMoveState(str, Enum):
    """State a file ends in after a relocation request."""

    UNMOVED = "unmoved"
    MOVED = "moved"
    FAILED = "failed"


class FileMoveOutcome(BaseModel):
    """
    Result of relocating a single file.

    ``final`` is where the file actually lives after the request: the new
    location when moved, the original location otherwise.
    """

    original: GranuleFile
    final: GranuleFile
    state: FileMoveState
    error: Optional[dict[str, Any]] = None

    @property
    def moved(self) -> bool:
        return self.state == FileMoveState.MOVED


class MoveStatus(str, Enum):
    """Overall relocation status."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


class MoveGranuleResult(BaseModel):
    """
    Outcome of a granule relocation.

    ``files`` is the authoritative final file list. Both stores were updated
    to match it, so callers must read file state from here and never infer it
    from ``errors``.

    Attributes:
        status: SUCCESS or PARTIAL_FAILURE
        granule: Granule snapshot taken before the relocation
        files: Authoritative final file list
        errors: Per-file and follow-up errors
        reason: Failure reason (None on success)
        outcomes: Per-file outcomes in input order
    """

    status: MoveStatus
    granule: Granule
    files: list[GranuleFile]
    errors: list[dict[str, Any]] = Field(default_factory=list)
    reason: Optional[str] = None
    outcomes: list[FileMoveOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == MoveStatus.SUCCESS

    def to_failure_payload(self) -> dict[str, Any]:
        """
        Build the structured failure payload returned to callers.

        Returns:
            Dict with reason, granule, errors and granuleFilesRecords keys
        """
        return {
            "reason": self.reason,
            "granule": self.granule.model_dump(mode="json"),
            "errors": self.errors,
            "granuleFilesRecords": [f.model_dump(mode="json") for f in self.files],
        }

    def raise_for_failure(self) -> None:
        """
        Raise PartialFailure when any file could not be moved.

        Raises:
            PartialFailure: If status is PARTIAL_FAILURE
        """
        from ..errors import PartialFailure

        if self.status == MoveStatus.PARTIAL_FAILURE:
            raise PartialFailure(self)
