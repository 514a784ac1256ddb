# =============================================================================
# Granule Relocation
# =============================================================================
# Rule-based file relocation with reconciliation of the relational store,
# the legacy document store and CMR metadata documents.
# =============================================================================

"""Granule relocation engine."""

from .engine import MOVE_FAILURE_REASON, GranuleRelocator
from .metadata import (
    build_moved_file_urls,
    build_url_map,
    is_cmr_file,
    rewrite_echo10_urls,
    rewrite_metadata_urls,
    rewrite_umm_g_urls,
)
from .rules import (
    PlannedMove,
    build_move_plan,
    find_destination_conflicts,
    parse_destinations,
    select_destination,
)

__all__ = [
    "GranuleRelocator",
    "MOVE_FAILURE_REASON",
    "PlannedMove",
    "parse_destinations",
    "select_destination",
    "build_move_plan",
    "find_destination_conflicts",
    "build_url_map",
    "build_moved_file_urls",
    "is_cmr_file",
    "rewrite_echo10_urls",
    "rewrite_umm_g_urls",
    "rewrite_metadata_urls",
]
