"""Granule registration job (op-based)."""

from dagster import job

from ..ops import record_granule_execution


@job(
    name="record_granule_job",
    description="Registers a granule and its execution in the relational ledger, then the legacy store",
)
def record_granule_job():
    """
    Record a granule/execution pair reported by a workflow run.

    The payload is passed as an op input to record_granule_execution via
    run config.
    """
    record_granule_execution()
