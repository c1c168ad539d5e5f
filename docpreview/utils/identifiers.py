"""Shared validation for document ids and tenancy namespaces.

Document ids double as filesystem path segments and blob key segments, so
every id is checked here before it reaches storage.
"""

import re
from typing import Optional

MAX_ID_LENGTH = 128
MAX_NAMESPACE_LENGTH = 64
UNCLAIMED_USER_ID = "unclaimed"

_SAFE_ID_RE = re.compile(r"^[a-zA-Z0-9._-]{1,%d}$" % MAX_ID_LENGTH)
_NAMESPACE_STRIP_RE = re.compile(r"[^a-zA-Z0-9._-]")


def is_safe_id(value: object) -> bool:
    """Check that a value is usable as a single path segment.

    Args:
        value: Candidate id (any type; non-strings are rejected)

    Returns:
        bool: True when the value matches the safe pattern and cannot
        address a parent directory
    """
    if not isinstance(value, str):
        return False
    if not _SAFE_ID_RE.match(value):
        return False
    return value not in (".", "..") and ".." not in value


def normalize_document_id(raw: Optional[str]) -> Optional[str]:
    """Trim and lower-case a requested document id.

    Returns:
        The normalized id, or None when it fails validation.
    """
    candidate = (raw or "").strip().lower()
    return candidate if is_safe_id(candidate) else None


def normalize_namespace(raw: Optional[str]) -> Optional[str]:
    """Reduce a namespace header value to a safe path segment.

    Unsafe characters are dropped; values that collapse to nothing or
    could traverse directories disable namespacing.
    """
    if not raw:
        return None
    safe = _NAMESPACE_STRIP_RE.sub("", raw.strip())[:MAX_NAMESPACE_LENGTH]
    if not safe or safe in (".", "..") or ".." in safe:
        return None
    return safe


def unclaimed_user_id_for_namespace(namespace: Optional[str]) -> str:
    """Deterministic placeholder owner for documents created without a session."""
    if not namespace:
        return UNCLAIMED_USER_ID
    return f"{UNCLAIMED_USER_ID}-{namespace}"
