# =============================================================================
# Ledger Errors
# =============================================================================
# Exception taxonomy shared by the resolver, writer and relocation engine.
# =============================================================================

"""Exceptions raised by the granule ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models.relocation import MoveGranuleResult

__all__ = [
    "LedgerError",
    "RecordDoesNotExist",
    "UniqueViolation",
    "DestinationConflict",
    "PartialFailure",
    "LedgerValidationError",
]


class LedgerError(Exception):
    """Base class for all granule ledger errors."""


class RecordDoesNotExist(LedgerError):
    """A lookup that requires exactly one record found none."""


class UniqueViolation(LedgerError):
    """An insert collided with an existing business key."""


class LedgerValidationError(LedgerError, ValueError):
    """Caller supplied malformed input (bad destination rule, missing field)."""


class DestinationConflict(LedgerError):
    """
    A relocation would overwrite objects that already exist.

    Raised before any file is moved; the whole request is rejected.
    """

    def __init__(self, file_names: Iterable[str]):
        self.file_names = list(file_names)
        super().__init__(
            "Cannot move granule because the following files would be overwritten "
            f"at the destination location: {', '.join(self.file_names)}. "
            "Delete the existing files or reingest the source files."
        )


class PartialFailure(LedgerError):
    """
    A relocation finished but some files could not be moved.

    ``result`` holds the authoritative final file list; callers must read file
    state from it rather than from the error message.
    """

    def __init__(self, result: "MoveGranuleResult"):
        self.result = result
        super().__init__(
            f"{result.reason}: {len(result.errors)} error(s) moving granule "
            f"{result.granule.granule_id}"
        )
