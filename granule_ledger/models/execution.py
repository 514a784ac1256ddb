# =============================================================================
# Execution Model
# =============================================================================
# Defines the Execution model for workflow runs that produced or modified
# granules.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


__all__ = ["Execution", "ExecutionStatus"]


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


class Execution(BaseModel):
    """
    One run of a processing workflow.

    The arn is the globally unique business key and never changes once the
    execution has been recorded.

    Attributes:
        arn: Globally unique run identifier
        workflow_name: Name of the workflow that ran
        status: Current execution status
        url: Console URL for the execution (optional)
        timestamp: Time of the last status update
        created_at: Creation time
        original_payload: Input message of the run (optional)
        final_payload: Output message of the run (optional)
        error: Structured error payload (optional)
        duration: Run duration in seconds (optional)
    """

    arn: str = Field(..., min_length=1, description="Globally unique run identifier")
    workflow_name: str = Field(..., min_length=1, description="Workflow name")
    status: ExecutionStatus = Field(ExecutionStatus.UNKNOWN, description="Execution status")
    url: Optional[str] = Field(None, description="Execution console URL")
    timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    original_payload: Optional[dict[str, Any]] = None
    final_payload: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None
    duration: Optional[float] = None

    model_config = ConfigDict(extra="ignore")
