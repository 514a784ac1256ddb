# =============================================================================
# Granule Relocation Engine
# =============================================================================
# Moves a granule's files to rule-based destinations and reconciles every
# system of record with where the files actually ended up:
# 1. Plan targets (first matching rule wins)
# 2. Reject the request if any target would be overwritten, on disk or in
#    another granule's file rows
# 3. Copy-then-delete each moved file concurrently, recording failures
# 4. Replace the granule's file rows (relational store, one transaction)
# 5. Update the granule's file list in the legacy document store
# 6. Rewrite URLs in CMR metadata documents, then record their new sizes
# =============================================================================

"""
Granule relocation engine.

The final file list computed from the per-file outcomes is the only source
used to update the relational store, the legacy store and the returned
result. Both stores therefore always agree with the real object locations,
including when some moves failed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Mapping, Optional, Union

from minio.error import S3Error
from sqlalchemy.engine import Connection, Engine

from ..db.resolver import get_collection_cumulus_id, get_file_owners, get_granule_cumulus_id
from ..db.transactions import create_rejectable_transaction
from ..db.translate import translate_api_file_to_row
from ..db.writer import replace_granule_files
from ..errors import DestinationConflict, RecordDoesNotExist
from ..models import (
    FileMoveOutcome,
    FileMoveState,
    Granule,
    GranuleFile,
    MoveDestination,
    MoveGranuleResult,
    MoveStatus,
)
from ..s3_utils import build_s3_uri
from .metadata import build_moved_file_urls, build_url_map, is_cmr_file, rewrite_metadata_urls
from .rules import PlannedMove, build_move_plan, find_destination_conflicts, parse_destinations

__all__ = ["GranuleRelocator", "MOVE_FAILURE_REASON"]

logger = logging.getLogger(__name__)

MOVE_FAILURE_REASON = "Failed to move granule"


def _error_entry(error: Exception, file_name: str, **extra: Any) -> dict[str, Any]:
    if isinstance(error, S3Error):
        code, message = error.code, error.message
    else:
        code, message = type(error).__name__, str(error)
    return {"file_name": file_name, "code": code, "message": message, **extra}


class GranuleRelocator:
    """
    Relocates granule files and reconciles both stores.

    Collaborators are duck-typed:

    - object_store: ``object_exists(bucket, key)``,
      ``copy_object(src_bucket, src_key, dst_bucket, dst_key)``,
      ``delete_object(bucket, key)``, ``get_text(bucket, key)``,
      ``put_text(bucket, key, text)`` (see MinIOResource)
    - legacy_store: ``granule_exists(granule_id)``,
      ``update_granule(granule_id, patch)`` (see MongoDBResource)

    Args:
        object_store: Object storage collaborator
        legacy_store: Legacy document store collaborator
        engine: Ledger database engine
        distribution_endpoint: Public distribution base URL used in metadata

    Example:
        >>> relocator = GranuleRelocator(minio, mongodb, engine, "https://data.example.com/")
        >>> result = relocator.move_granule(granule, [
        ...     {"regex": ".*\\.hdf$", "bucket": "protected", "filepath": "MOD09GQ/006"},
        ... ])
        >>> result.raise_for_failure()
    """

    def __init__(
        self,
        object_store,
        legacy_store,
        engine: Engine,
        distribution_endpoint: str,
    ):
        self.object_store = object_store
        self.legacy_store = legacy_store
        self.engine = engine
        self.distribution_endpoint = distribution_endpoint

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def move_granule(
        self,
        granule: Granule,
        destinations: Iterable[Union[MoveDestination, Mapping[str, Any]]],
    ) -> MoveGranuleResult:
        """
        Move a granule's files and update every record of their location.

        Args:
            granule: Granule snapshot, including its current files
            destinations: Ordered {regex, bucket, filepath} rules

        Returns:
            MoveGranuleResult with the authoritative final file list. Status
            is PARTIAL_FAILURE when any file or metadata step failed.

        Raises:
            LedgerValidationError: If a destination rule is malformed
            DestinationConflict: If a move would overwrite an existing
                object or a location another granule's file row claims
                (nothing is moved or written)
            Exception: Relational write failures propagate; the legacy store
                is not updated in that case
        """
        rules = parse_destinations(destinations)
        plan = build_move_plan(granule.files, rules)

        conflicts = find_destination_conflicts(
            plan,
            self.object_store.object_exists,
            self._targets_recorded_elsewhere(granule, plan),
        )
        if conflicts:
            logger.warning(
                f"Rejecting move of granule {granule.granule_id}: "
                f"{len(conflicts)} destination(s) already exist"
            )
            raise DestinationConflict(conflicts)

        outcomes = self._execute_moves(plan)
        final_files = [outcome.final for outcome in outcomes]
        errors = [outcome.error for outcome in outcomes if outcome.error]

        self._update_relational_store(granule, final_files)
        self._update_legacy_store(granule, final_files)

        metadata_errors, rewritten_sizes = self._rewrite_metadata(outcomes)
        errors.extend(metadata_errors)
        if rewritten_sizes:
            final_files = [
                f.model_copy(update={"size": rewritten_sizes[f.location]})
                if f.location in rewritten_sizes else f
                for f in final_files
            ]
            self._update_relational_store(granule, final_files)
            self._update_legacy_store(granule, final_files)

        status = MoveStatus.PARTIAL_FAILURE if errors else MoveStatus.SUCCESS
        moved = sum(1 for outcome in outcomes if outcome.moved)
        logger.info(
            f"Moved {moved}/{len(outcomes)} file(s) for granule {granule.granule_id} "
            f"({status.value}, {len(errors)} error(s))"
        )
        return MoveGranuleResult(
            status=status,
            granule=granule,
            files=final_files,
            errors=errors,
            reason=MOVE_FAILURE_REASON if errors else None,
            outcomes=outcomes,
        )

    # -------------------------------------------------------------------------
    # File moves
    # -------------------------------------------------------------------------

    def _execute_moves(self, plan: list[PlannedMove]) -> list[FileMoveOutcome]:
        """Run every true move concurrently; outcomes follow plan order."""
        outcomes: list[Optional[FileMoveOutcome]] = [None] * len(plan)
        pending = [index for index, planned in enumerate(plan) if planned.is_move]

        for index, planned in enumerate(plan):
            if not planned.is_move:
                outcomes[index] = FileMoveOutcome(
                    original=planned.source,
                    final=planned.source,
                    state=FileMoveState.UNMOVED,
                )

        if pending:
            with ThreadPoolExecutor(max_workers=len(pending)) as executor:
                futures = {index: executor.submit(self._move_file, plan[index]) for index in pending}
                for index, future in futures.items():
                    outcomes[index] = future.result()

        return outcomes

    def _move_file(self, planned: PlannedMove) -> FileMoveOutcome:
        """
        Copy then delete one file, capturing any failure.

        A failed delete leaves the file at its source, so the copy made at
        the target is removed again on a best-effort basis.
        """
        source, target = planned.source, planned.target
        source_uri = build_s3_uri(*source.location)
        target_uri = build_s3_uri(*target.location)

        try:
            self.object_store.copy_object(source.bucket, source.key, target.bucket, target.key)
        except Exception as e:
            logger.error(f"Failed to copy {source_uri} to {target_uri}: {e}")
            return FileMoveOutcome(
                original=source,
                final=source,
                state=FileMoveState.FAILED,
                error=_error_entry(e, source.file_name, source=source_uri, destination=target_uri),
            )

        try:
            self.object_store.delete_object(source.bucket, source.key)
        except Exception as e:
            logger.error(f"Copied {source_uri} but failed to delete source: {e}")
            try:
                self.object_store.delete_object(target.bucket, target.key)
            except Exception as cleanup_error:
                logger.warning(f"Could not remove partial copy {target_uri}: {cleanup_error}")
            return FileMoveOutcome(
                original=source,
                final=source,
                state=FileMoveState.FAILED,
                error=_error_entry(e, source.file_name, source=source_uri, destination=target_uri),
            )

        logger.debug(f"Moved {source_uri} to {target_uri}")
        return FileMoveOutcome(original=source, final=target, state=FileMoveState.MOVED)

    # -------------------------------------------------------------------------
    # Store reconciliation
    # -------------------------------------------------------------------------

    @staticmethod
    def _find_granule_cumulus_id(connection: Connection, granule: Granule) -> Optional[int]:
        """The granule's surrogate key, or None when it was never migrated."""
        name, version = granule.collection_name_version
        try:
            collection_cumulus_id = get_collection_cumulus_id(connection, name, version)
            return get_granule_cumulus_id(connection, granule.granule_id, collection_cumulus_id)
        except RecordDoesNotExist:
            return None

    def _targets_recorded_elsewhere(
        self, granule: Granule, plan: list[PlannedMove]
    ) -> set[tuple[str, str]]:
        """Move targets already claimed by another granule's file rows."""
        targets = [planned.target.location for planned in plan if planned.is_move]
        if not targets:
            return set()
        with self.engine.connect() as connection:
            granule_cumulus_id = self._find_granule_cumulus_id(connection, granule)
            owners = get_file_owners(connection, targets)
        return {
            location for location, owner in owners.items() if owner != granule_cumulus_id
        }

    def _update_relational_store(self, granule: Granule, final_files: list[GranuleFile]) -> None:
        def work(connection: Connection) -> Optional[list[int]]:
            granule_cumulus_id = self._find_granule_cumulus_id(connection, granule)
            if granule_cumulus_id is None:
                return None
            rows = [translate_api_file_to_row(f, granule_cumulus_id) for f in final_files]
            return replace_granule_files(connection, granule_cumulus_id, rows)

        file_ids = create_rejectable_transaction(self.engine, work)
        if file_ids is None:
            logger.info(
                f"Granule {granule.granule_id} is not in the relational store; "
                "updating the legacy store only"
            )

    def _update_legacy_store(self, granule: Granule, final_files: list[GranuleFile]) -> None:
        if not self.legacy_store.granule_exists(granule.granule_id):
            logger.warning(f"Granule {granule.granule_id} not found in the legacy store")
            return
        self.legacy_store.update_granule(
            granule.granule_id,
            {"files": [f.model_dump(mode="json") for f in final_files]},
        )

    # -------------------------------------------------------------------------
    # Metadata cross-references
    # -------------------------------------------------------------------------

    def _rewrite_metadata(
        self, outcomes: list[FileMoveOutcome]
    ) -> tuple[list[dict[str, Any]], dict[tuple[str, str], int]]:
        """
        Point metadata document URLs at the new file locations.

        Runs after both stores are updated. Each document is read and
        written at its final location; failures are returned as error
        entries rather than raised.

        Returns:
            (error entries, new byte size of each rewritten document by
            location)
        """
        moves = [(outcome.original, outcome.final) for outcome in outcomes if outcome.moved]
        if not moves:
            return [], {}

        url_map = build_url_map(moves, self.distribution_endpoint)
        moved_file_urls = build_moved_file_urls(moves, self.distribution_endpoint)
        errors = []
        sizes = {}
        for outcome in outcomes:
            document = outcome.final
            if not is_cmr_file(document.file_name):
                continue
            try:
                text = self.object_store.get_text(document.bucket, document.key)
                updated, changed = rewrite_metadata_urls(
                    document.file_name, text, url_map, moved_file_urls
                )
                if changed:
                    self.object_store.put_text(document.bucket, document.key, updated)
                    sizes[document.location] = len(updated.encode("utf-8"))
                logger.info(f"Rewrote {changed} URL(s) in {build_s3_uri(*document.location)}")
            except Exception as e:
                logger.error(f"Failed to update metadata {build_s3_uri(*document.location)}: {e}")
                errors.append(
                    _error_entry(e, document.file_name, source=build_s3_uri(*document.location))
                )
        return errors, sizes
