"""Preview delivery: presigned redirect or streamed bytes."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from docpreview.core.exceptions import StorageError
from docpreview.services.identity_service import DocumentIdentity
from docpreview.services.preview.coordinator import PreviewContent, PreviewCoordinator, PreviewRecord
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DeliveryKind(str, Enum):
    PENDING = "pending"
    REDIRECT = "redirect"
    STREAM = "stream"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DeliveryResult:
    kind: DeliveryKind
    record: Optional[PreviewRecord] = None
    url: Optional[str] = None
    content: Optional[PreviewContent] = None


class PresignedDelivery:
    """Chooses how a ready preview reaches the client."""

    def __init__(self, coordinator: PreviewCoordinator, store: BlobStore, ttl_seconds: int = 300):
        self.coordinator = coordinator
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def direct_url(self, identity: DocumentIdentity) -> Optional[str]:
        """Presigned URL for the preview blob, or None when signing is unavailable."""
        key = self.coordinator.blob_key_for(identity)
        try:
            return await self.store.presign_get(key, self.ttl_seconds)
        except StorageError as e:
            LOGGER.warning(f"Presign failed for {key}: {e.message}")
            return None

    async def deliver(self, identity: DocumentIdentity, stream_fallback: bool = True) -> DeliveryResult:
        record = await self.coordinator.ensure(identity)
        if not record.is_ready:
            return DeliveryResult(DeliveryKind.PENDING, record=record)

        url = await self.direct_url(identity)
        if url:
            return DeliveryResult(DeliveryKind.REDIRECT, record=record, url=url)

        if not stream_fallback:
            return DeliveryResult(DeliveryKind.FALLBACK, record=record)
        return await self.stream(identity)

    async def stream(self, identity: DocumentIdentity) -> DeliveryResult:
        """Proxy the preview bytes; pending when the blob is not readable yet."""
        fetched = await self.coordinator.fetch(identity)
        if isinstance(fetched, PreviewRecord):
            return DeliveryResult(DeliveryKind.PENDING, record=fetched)
        return DeliveryResult(DeliveryKind.STREAM, content=fetched)
