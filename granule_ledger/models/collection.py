# =============================================================================
# Collection Model
# =============================================================================
# Defines the Collection model and the collection_id helpers used to refer
# to a (name, version) pair from API-shaped records.
# =============================================================================

from typing import Optional, Tuple

from pydantic import BaseModel, Field


__all__ = [
    "Collection",
    "construct_collection_id",
    "deconstruct_collection_id",
]

COLLECTION_ID_SEPARATOR = "___"


def construct_collection_id(name: str, version: str) -> str:
    """
    Build the collection_id for a collection name and version.

    Examples:
        >>> construct_collection_id("MOD09GQ", "006")
        'MOD09GQ___006'
    """
    return f"{name}{COLLECTION_ID_SEPARATOR}{version}"


def deconstruct_collection_id(collection_id: str) -> Tuple[str, str]:
    """
    Split a collection_id into (name, version).

    Raises:
        ValueError: If the id does not contain exactly one separator

    Examples:
        >>> deconstruct_collection_id("MOD09GQ___006")
        ('MOD09GQ', '006')
    """
    parts = collection_id.split(COLLECTION_ID_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid collection_id '{collection_id}'. "
            f"Expected '<name>{COLLECTION_ID_SEPARATOR}<version>'"
        )
    return parts[0], parts[1]


class Collection(BaseModel):
    """
    A named, versioned grouping of granules.

    Attributes:
        name: Collection short name
        version: Collection version
        process: Processing step name (optional)
        url_path: Default url path template for files (optional)
        duplicate_handling: Duplicate file policy (optional)
    """

    name: str = Field(..., min_length=1, description="Collection short name")
    version: str = Field(..., min_length=1, description="Collection version")
    process: Optional[str] = Field(None, description="Processing step name")
    url_path: Optional[str] = Field(None, description="Default url path template")
    duplicate_handling: Optional[str] = Field(None, description="Duplicate file policy")

    @property
    def collection_id(self) -> str:
        return construct_collection_id(self.name, self.version)
