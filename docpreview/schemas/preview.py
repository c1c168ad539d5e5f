"""Preview endpoint payloads."""

from typing import Literal, Optional

from pydantic import Field

from docpreview.schemas.base import CamelModel


class PreviewPendingResponse(CamelModel):
    status: Literal["missing", "queued", "error"] = Field(..., description="Current preview state")
    retry_after_ms: int = Field(..., description="Suggested polling interval in milliseconds")
    presign_url: str = Field(..., description="Endpoint that redirects to the preview once ready")
    fallback_url: str = Field(..., description="Endpoint that streams the preview once ready")


class PreviewReadyResponse(CamelModel):
    status: Literal["ready"] = "ready"
    presign_url: str
    fallback_url: str
    direct_url: Optional[str] = Field(default=None, description="Short-lived direct download URL")
