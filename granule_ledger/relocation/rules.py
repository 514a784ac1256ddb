# =============================================================================
# Relocation Rules
# =============================================================================
# Destination rule selection and move planning:
# - parse_destinations: validate raw {regex, bucket, filepath} rules
# - select_destination: first matching rule wins
# - build_move_plan: source -> target for every granule file
# - find_destination_conflicts: collision check before anything moves
# =============================================================================

from typing import Any, Callable, Collection, Iterable, Mapping, NamedTuple, Optional, Sequence, Union

from pydantic import ValidationError

from ..errors import LedgerValidationError
from ..models import GranuleFile, MoveDestination
from ..s3_utils import build_destination_key

__all__ = [
    "PlannedMove",
    "parse_destinations",
    "select_destination",
    "build_move_plan",
    "find_destination_conflicts",
]


class PlannedMove(NamedTuple):
    """A granule file and where it should end up."""

    source: GranuleFile
    target: GranuleFile

    @property
    def is_move(self) -> bool:
        return self.source.location != self.target.location


def parse_destinations(
    destinations: Iterable[Union[MoveDestination, Mapping[str, Any]]],
) -> list[MoveDestination]:
    """
    Validate destination rules, keeping their order.

    Args:
        destinations: MoveDestination instances or raw dicts

    Returns:
        Validated destination rules

    Raises:
        LedgerValidationError: If any rule is malformed
    """
    parsed = []
    for index, destination in enumerate(destinations):
        if isinstance(destination, MoveDestination):
            parsed.append(destination)
            continue
        try:
            parsed.append(MoveDestination.model_validate(destination))
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid destination rule at index {index}: {e}") from e
    return parsed


def select_destination(
    file_name: str,
    destinations: Sequence[MoveDestination],
) -> Optional[MoveDestination]:
    """
    Return the first destination whose regex matches the file name.

    Examples:
        >>> rules = [
        ...     MoveDestination(regex=r".*\\.hdf$", bucket="protected", filepath="a"),
        ...     MoveDestination(regex=r".*", bucket="public", filepath="b"),
        ... ]
        >>> select_destination("granule.hdf", rules).bucket
        'protected'
        >>> select_destination("granule.jpg", rules).bucket
        'public'
    """
    for destination in destinations:
        if destination.matches(file_name):
            return destination
    return None


def build_move_plan(
    granule_files: Sequence[GranuleFile],
    destinations: Sequence[MoveDestination],
) -> list[PlannedMove]:
    """
    Decide a target location for every granule file.

    Files matching no rule keep their current location.

    Args:
        granule_files: Current granule files
        destinations: Ordered destination rules

    Returns:
        One PlannedMove per file, in input order
    """
    plan = []
    for granule_file in granule_files:
        destination = select_destination(granule_file.file_name, destinations)
        if destination is None:
            plan.append(PlannedMove(granule_file, granule_file))
            continue
        key = build_destination_key(destination.filepath, granule_file.file_name)
        plan.append(PlannedMove(granule_file, granule_file.relocated(destination.bucket, key)))
    return plan


def find_destination_conflicts(
    plan: Sequence[PlannedMove],
    object_exists: Callable[[str, str], bool],
    recorded_elsewhere: Collection[tuple[str, str]] = frozenset(),
) -> list[str]:
    """
    List files whose move would overwrite something.

    A move conflicts when its target object already exists, when two
    files in the plan would land on the same target, or when the target
    is recorded as a file of another granule. Files that stay in place
    never conflict.

    Args:
        plan: Planned moves
        object_exists: Callable (bucket, key) -> bool against object storage
        recorded_elsewhere: (bucket, key) locations owned by other granules'
            file rows

    Returns:
        File names of conflicting files, in plan order
    """
    conflicts = []
    claimed: set[tuple[str, str]] = {p.target.location for p in plan if not p.is_move}

    for planned in plan:
        if not planned.is_move:
            continue
        target = planned.target.location
        if target in claimed or target in recorded_elsewhere or object_exists(*target):
            conflicts.append(planned.source.file_name)
        claimed.add(target)
    return conflicts
