"""
MakerBench Backend — Store Utilities
======================================

What:  Small pure helpers shared by the services: record IDs, tag-name and
       URL normalization, and the JSON metadata column codec.
Who:   Submission workflow, search layer, tag queries and their tests.

URL normalization exists for duplicate detection. Two submissions are the
same bookmark when their normalized URLs are equal:

    HTTPS://Example.COM:443/tools/?b=2&a=1#top  →  https://example.com/tools?a=1&b=2
"""

import json
import re
import uuid
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from makerbench.exceptions import (
    MetadataParseError,
    MetadataStringifyError,
    TagValidationError,
)

_WHITESPACE_RE = re.compile(r"\s+")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def generate_id() -> str:
    """Returns a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


# ── Tag Names ─────────────────────────────────────────────────────────────

def normalize_tag_name_safe(name: Any) -> Optional[str]:
    """Lowercases, trims and hyphenates a tag name; None when nothing is left."""
    if not name or not isinstance(name, str):
        return None
    normalized = _WHITESPACE_RE.sub("-", name.lower().strip())
    return normalized or None


def normalize_tag_name(name: Any) -> str:
    """
    Normalizes a tag name for storage and lookup.

    "  Developer   Tools " → "developer-tools"

    Raises:
        TagValidationError: when the input is not a string or is empty
            after normalization.
    """
    if not name or not isinstance(name, str):
        raise TagValidationError("Tag name must be a non-empty string")
    normalized = normalize_tag_name_safe(name)
    if normalized is None:
        raise TagValidationError("Tag name cannot be empty after normalization")
    return normalized


# ── URLs ──────────────────────────────────────────────────────────────────

def normalize_url(url: str) -> str:
    """
    Canonical form of a URL for duplicate checking.

    - hostname lowercased
    - default port (80 for http, 443 for https) dropped
    - trailing slash removed from any path except the root
    - query parameters sorted by key; repeated keys keep their order
    - fragment removed

    Returns the input unchanged when it cannot be parsed as an absolute URL.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    if not parts.scheme or not parts.hostname:
        return url

    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"

    userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""
    netloc = f"{userinfo}@{host}" if userinfo else host

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    query = urlencode(
        sorted(parse_qsl(parts.query, keep_blank_values=True), key=lambda kv: kv[0])
    )

    return urlunsplit((scheme, netloc, path, query, ""))


def parse_and_normalize_url(url: Any) -> Optional[str]:
    """Normalized URL, or None unless `url` is an absolute http(s) URL."""
    if not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in _DEFAULT_PORTS or not parts.hostname:
        return None
    return normalize_url(url.strip())


# ── Metadata Column ───────────────────────────────────────────────────────

def parse_metadata(metadata: Optional[str]) -> Dict[str, Any]:
    """Decodes the metadata column; raises MetadataParseError on bad input."""
    if not metadata:
        raise MetadataParseError("Metadata is null or empty")
    try:
        value = json.loads(metadata)
    except (TypeError, ValueError) as e:
        raise MetadataParseError("Failed to parse metadata JSON", e) from e
    if not isinstance(value, dict):
        raise MetadataParseError("Metadata JSON must be an object")
    return value


def parse_metadata_safe(metadata: Optional[str]) -> Optional[Dict[str, Any]]:
    try:
        return parse_metadata(metadata)
    except MetadataParseError:
        return None


def stringify_metadata(metadata: Optional[Dict[str, Any]]) -> str:
    """Encodes a metadata mapping; raises MetadataStringifyError on bad input."""
    if not metadata:
        raise MetadataStringifyError("Metadata object is null or empty")
    try:
        return json.dumps(metadata)
    except (TypeError, ValueError) as e:
        raise MetadataStringifyError("Failed to stringify metadata", e) from e


def stringify_metadata_safe(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    try:
        return stringify_metadata(metadata)
    except MetadataStringifyError:
        return None
