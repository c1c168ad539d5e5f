"""Document management payloads."""

from typing import Optional

from docpreview.schemas.base import CamelModel


class DocumentDeleteResponse(CamelModel):
    success: bool = True
    id: str
    rows_deleted: int
    blobs_deleted: int


class NamespacePurgeResponse(CamelModel):
    success: bool = True
    namespace: Optional[str]
    blobs_deleted: int


class ErrorResponse(CamelModel):
    error: str
    code: str
