"""Granule relocation job (op-based)."""

from dagster import job

from ..ops import move_granule


@job(
    name="move_granule_job",
    description="Moves a granule's files to rule-based destinations and updates both stores and CMR metadata",
)
def move_granule_job():
    """
    Relocate one granule.

    The request (granule or granule_id plus destination rules) is passed as
    an op input to move_granule via run config.
    """
    move_granule()
