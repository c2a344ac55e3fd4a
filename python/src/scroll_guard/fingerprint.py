"""
Request fingerprinting for the result cache.

Two requests whose first 500 normalized characters and domain match get the
same fingerprint. This is similarity caching: a feed that changes only past
its first screenful reuses the earlier analysis.
"""

import hashlib
import re

FINGERPRINT_PREFIX_CHARS = 500
_WHITESPACE = re.compile(r"\s+")


def normalize_content(content: str) -> str:
    """Lowercase, collapse whitespace runs, trim and truncate to the prefix length."""
    normalized = _WHITESPACE.sub(" ", content.lower()).strip()
    return normalized[:FINGERPRINT_PREFIX_CHARS]


def fingerprint(content: str, domain: str) -> str:
    """
    Compute the cache key for a (content, domain) pair.

    Returns:
        64-character SHA-256 hex digest
    """
    material = f"{normalize_content(content)}:{domain}"
    return hashlib.sha256(material.encode("utf-8", errors="replace")).hexdigest()
