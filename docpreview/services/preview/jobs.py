"""Preview generation job payloads."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from docpreview.services.storage.keys import document_key, preview_key


@dataclass(frozen=True)
class PreviewJob:
    """One conversion of a document version into its preview blob.

    Jobs are idempotent on ``(namespace, document_id, version)``: running the
    same job twice writes the same key.
    """

    document_id: str
    document_type: str
    version: int
    namespace: Optional[str] = None

    @property
    def blob_key(self) -> str:
        return preview_key(self.document_id, self.version, self.namespace)

    @property
    def source_key(self) -> str:
        return document_key(self.document_id, self.namespace)

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PreviewJob":
        return cls(
            document_id=payload["document_id"],
            document_type=payload["document_type"],
            version=int(payload["version"]),
            namespace=payload.get("namespace"),
        )
