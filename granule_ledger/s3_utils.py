# =============================================================================
# S3 Path Utilities
# =============================================================================
# Shared utilities for parsing and building S3 locations.
# Used by the relocation engine and the MinIO resource.
# =============================================================================

"""
S3 path utilities for the granule ledger.

This module provides functions for:
- Parsing S3 URIs into bucket and key components
- Building S3 URIs and distribution URLs from bucket/key pairs
- Building destination keys for relocated files
"""

from typing import Tuple

__all__ = [
    "parse_s3_path",
    "build_s3_uri",
    "build_destination_key",
    "build_distribution_url",
    "file_name_from_key",
]


def parse_s3_path(s3_path: str) -> Tuple[str, str]:
    """
    Parse S3 path into bucket and key components.

    Args:
        s3_path: Full S3 path (e.g., "s3://protected/MOD09GQ/granule.hdf")

    Returns:
        Tuple of (bucket, key) e.g., ("protected", "MOD09GQ/granule.hdf")

    Raises:
        ValueError: If path is not valid s3:// format or missing key

    Examples:
        >>> parse_s3_path("s3://protected/MOD09GQ/granule.hdf")
        ('protected', 'MOD09GQ/granule.hdf')
    """
    if not s3_path.startswith("s3://"):
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Must start with 's3://'"
        )

    path_without_prefix = s3_path[5:]  # Remove "s3://"
    parts = path_without_prefix.split("/", 1)

    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid S3 path format: '{s3_path}'. Expected 's3://bucket/key'"
        )

    return parts[0], parts[1]


def build_s3_uri(bucket: str, key: str) -> str:
    """
    Build an S3 URI from bucket and key.

    Examples:
        >>> build_s3_uri("protected", "MOD09GQ/granule.hdf")
        's3://protected/MOD09GQ/granule.hdf'
    """
    return f"s3://{bucket}/{key}"


def build_destination_key(filepath: str, file_name: str) -> str:
    """
    Join a destination filepath and a file name into an object key.

    Leading and trailing slashes on the filepath are dropped so that an
    empty filepath places the file at the bucket root.

    Examples:
        >>> build_destination_key("stack/granules_moved/", "granule.hdf")
        'stack/granules_moved/granule.hdf'
        >>> build_destination_key("", "granule.hdf")
        'granule.hdf'
    """
    prefix = filepath.strip("/")
    if not prefix:
        return file_name
    return f"{prefix}/{file_name}"


def build_distribution_url(endpoint: str, bucket: str, key: str) -> str:
    """
    Build the public distribution URL for an object.

    Examples:
        >>> build_distribution_url("http://example.com/", "public", "a/b.jpg")
        'http://example.com/public/a/b.jpg'
    """
    return f"{endpoint.rstrip('/')}/{bucket}/{key}"


def file_name_from_key(key: str) -> str:
    """
    Return the last path segment of an object key.

    Examples:
        >>> file_name_from_key("stack/original_filepath/granule.cmr.xml")
        'granule.cmr.xml'
    """
    return key.rsplit("/", 1)[-1]
