"""Dagster Ops - Reusable Computation Units."""

from .move_op import move_granule
from .record_op import record_granule_execution

__all__ = [
    "move_granule",
    "record_granule_execution",
]
