"""Dagster Jobs - Executable Workflows."""

from .move_granule_job import move_granule_job
from .record_granule_job import record_granule_job

__all__ = ["move_granule_job", "record_granule_job"]
