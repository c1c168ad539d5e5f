"""Blob key layout.

Keys are relative to the store's configured prefix::

    [ns/<namespace>/]documents/<id>
    [ns/<namespace>/]previews/<id>/<version>

A preview key embeds the document version, so a new upload never overwrites
or reuses an older preview blob.
"""

from typing import Optional


def namespace_prefix(namespace: Optional[str]) -> str:
    return f"ns/{namespace}/" if namespace else ""


def document_key(document_id: str, namespace: Optional[str] = None) -> str:
    return f"{namespace_prefix(namespace)}documents/{document_id}"


def preview_prefix(document_id: str, namespace: Optional[str] = None) -> str:
    return f"{namespace_prefix(namespace)}previews/{document_id}/"


def preview_key(document_id: str, version: int, namespace: Optional[str] = None) -> str:
    return f"{preview_prefix(document_id, namespace)}{int(version)}"
