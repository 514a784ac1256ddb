# =============================================================================
# CMR Metadata Cross-Reference Rewriting
# =============================================================================
# Rewrites file URLs inside a granule's metadata documents after its files
# have moved. Two formats are supported:
# - ECHO10 XML (*.cmr.xml)
# - UMM-G JSON (*.cmr.json)
# =============================================================================

"""
Metadata URL rewriting for relocated granules.

URLs that pointed at a file which actually moved are changed; every other
URL is kept as it was. The mapping from old to new URL covers both the
public distribution URL and the s3:// URI of each moved file.

A moved data file the document does not reference in either form gets a
new entry holding its distribution URL, so the document always lists the
new location of every moved file.
"""

import json
import xml.etree.ElementTree as ET
from typing import Iterable, Mapping, Optional, Sequence

from ..models import GranuleFile
from ..s3_utils import build_distribution_url, build_s3_uri

__all__ = [
    "ECHO10_URL_PATHS",
    "is_cmr_file",
    "is_echo10_file",
    "is_umm_g_file",
    "build_url_map",
    "build_moved_file_urls",
    "rewrite_echo10_urls",
    "rewrite_umm_g_urls",
    "rewrite_metadata_urls",
]


# Paths (relative to the Granule root element) of URL elements in ECHO10
ECHO10_URL_PATHS = (
    "OnlineAccessURLs/OnlineAccessURL/URL",
    "OnlineResources/OnlineResource/URL",
    "AssociatedBrowseImageUrls/ProviderBrowseUrl/URL",
)

# Documents are written back as UTF-8 (see MinIOResource.put_text)
_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

UMM_G_DATA_URL_TYPE = "GET DATA"


def is_echo10_file(file_name: str) -> bool:
    return file_name.endswith(".cmr.xml")


def is_umm_g_file(file_name: str) -> bool:
    return file_name.endswith(".cmr.json")


def is_cmr_file(file_name: str) -> bool:
    """Whether a file is a supported CMR metadata document."""
    return is_echo10_file(file_name) or is_umm_g_file(file_name)


def build_url_map(
    moves: Iterable[tuple[GranuleFile, GranuleFile]],
    distribution_endpoint: str,
) -> dict[str, str]:
    """
    Map every old URL form of each moved file to its new form.

    Args:
        moves: (original, final) pairs for files that actually moved
        distribution_endpoint: Public distribution base URL

    Returns:
        Dict of old URL -> new URL (distribution and s3:// forms)
    """
    url_map = {}
    for original, final in moves:
        url_map[build_distribution_url(distribution_endpoint, original.bucket, original.key)] = (
            build_distribution_url(distribution_endpoint, final.bucket, final.key)
        )
        url_map[build_s3_uri(original.bucket, original.key)] = build_s3_uri(final.bucket, final.key)
    return url_map


def build_moved_file_urls(
    moves: Iterable[tuple[GranuleFile, GranuleFile]],
    distribution_endpoint: str,
) -> list[tuple[str, str]]:
    """
    New (distribution URL, s3:// URI) of each moved data file.

    Metadata documents do not reference themselves and are left out.
    """
    return [
        (
            build_distribution_url(distribution_endpoint, final.bucket, final.key),
            build_s3_uri(final.bucket, final.key),
        )
        for _, final in moves
        if not is_cmr_file(final.file_name)
    ]


def _missing_urls(present: set, moved_file_urls: Iterable[Sequence[str]]) -> list[str]:
    """Preferred URL of every moved file referenced in none of its forms."""
    return [urls[0] for urls in moved_file_urls if present.isdisjoint(urls)]


# =============================================================================
# ECHO10
# =============================================================================


def _namespace_of(element: ET.Element) -> Optional[str]:
    if element.tag.startswith("{"):
        return element.tag[1:].partition("}")[0]
    return None


def _qualified(namespace: Optional[str], tag: str) -> str:
    return f"{{{namespace}}}{tag}" if namespace else tag


def _serialize_echo10(root: ET.Element, namespace: Optional[str]) -> str:
    default_namespace = None
    if namespace:
        # default_namespace cannot express unqualified names
        qualified = all(
            element.tag.startswith("{") and all(key.startswith("{") for key in element.attrib)
            for element in root.iter()
            if isinstance(element.tag, str)
        )
        if qualified:
            default_namespace = namespace
    return _XML_DECLARATION + ET.tostring(
        root, encoding="unicode", default_namespace=default_namespace
    )


def rewrite_echo10_urls(
    xml_text: str,
    url_map: Mapping[str, str],
    moved_file_urls: Iterable[Sequence[str]] = (),
) -> tuple[str, int]:
    """
    Rewrite file URLs in an ECHO10 granule document.

    Moved files not referenced anywhere in the document are appended as
    ``OnlineAccessURLs/OnlineAccessURL/URL`` entries.

    Comments inside the Granule element are kept, and a document in a
    default namespace is written back in that namespace without prefixes.
    The document is re-encoded as UTF-8 with a matching XML declaration;
    a DOCTYPE, comments or processing instructions outside the root
    element are not carried over.

    Args:
        xml_text: ECHO10 XML document
        url_map: Old URL -> new URL
        moved_file_urls: URL forms of each moved file, preferred form first

    Returns:
        (rewritten document, number of URLs changed or added)

    Raises:
        xml.etree.ElementTree.ParseError: If the document is not valid XML
    """
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    root = ET.fromstring(xml_text, parser=parser)
    namespace = _namespace_of(root)
    namespaces = {"": namespace} if namespace else None

    changed = 0
    present = set()
    for path in ECHO10_URL_PATHS:
        for element in root.iterfind(path, namespaces):
            url = (element.text or "").strip()
            if url in url_map:
                url = element.text = url_map[url]
                changed += 1
            present.add(url)

    missing = _missing_urls(present, moved_file_urls)
    if missing:
        container = root.find("OnlineAccessURLs", namespaces)
        if container is None:
            container = ET.SubElement(root, _qualified(namespace, "OnlineAccessURLs"))
        for url in missing:
            access_url = ET.SubElement(container, _qualified(namespace, "OnlineAccessURL"))
            ET.SubElement(access_url, _qualified(namespace, "URL")).text = url
        changed += len(missing)

    return _serialize_echo10(root, namespace), changed


# =============================================================================
# UMM-G
# =============================================================================


def rewrite_umm_g_urls(
    json_text: str,
    url_map: Mapping[str, str],
    moved_file_urls: Iterable[Sequence[str]] = (),
) -> tuple[str, int]:
    """
    Rewrite file URLs in a UMM-G granule document.

    Moved files not referenced anywhere in ``RelatedUrls`` are appended as
    ``GET DATA`` items.

    Args:
        json_text: UMM-G JSON document
        url_map: Old URL -> new URL
        moved_file_urls: URL forms of each moved file, preferred form first

    Returns:
        (rewritten document, number of URLs changed or added)

    Raises:
        ValueError: If the document is not valid JSON
    """
    document = json.loads(json_text)
    changed = 0
    present = set()
    for related_url in document.get("RelatedUrls", []):
        url = related_url.get("URL")
        if url in url_map:
            url = related_url["URL"] = url_map[url]
            changed += 1
        present.add(url)

    missing = _missing_urls(present, moved_file_urls)
    if missing:
        document.setdefault("RelatedUrls", []).extend(
            {"URL": url, "Type": UMM_G_DATA_URL_TYPE} for url in missing
        )
        changed += len(missing)

    return json.dumps(document, indent=2), changed


def rewrite_metadata_urls(
    file_name: str,
    text: str,
    url_map: Mapping[str, str],
    moved_file_urls: Iterable[Sequence[str]] = (),
) -> tuple[str, int]:
    """
    Rewrite a metadata document according to its format.

    Raises:
        ValueError: If the file is not a supported metadata document
    """
    if is_echo10_file(file_name):
        return rewrite_echo10_urls(text, url_map, moved_file_urls)
    if is_umm_g_file(file_name):
        return rewrite_umm_g_urls(text, url_map, moved_file_urls)
    raise ValueError(f"Unsupported metadata document: {file_name}")
