"""Service wiring.

The container is built once by the application lifespan (or by a test) and
handed to request handlers through FastAPI dependencies; nothing in the
package holds module-level clients.
"""

from dataclasses import dataclass
from typing import Optional

from docpreview.core.auth import AuthContextResolver
from docpreview.core.config import Settings
from docpreview.core.database import DatabaseClient
from docpreview.core.temporal_client import TemporalClientManager
from docpreview.services.preview.converter import PreviewConverter, PyMuPDFConverter
from docpreview.services.preview.coordinator import PreviewCoordinator
from docpreview.services.preview.delivery import PresignedDelivery
from docpreview.services.preview.generator import PreviewGenerator
from docpreview.services.preview.queue import LocalPreviewQueue, PreviewQueue, TemporalPreviewQueue
from docpreview.services.storage import create_blob_store
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    database: DatabaseClient
    auth: AuthContextResolver
    blob_store: Optional[BlobStore] = None
    queue: Optional[PreviewQueue] = None
    coordinator: Optional[PreviewCoordinator] = None
    delivery: Optional[PresignedDelivery] = None

    @property
    def storage_configured(self) -> bool:
        return self.blob_store is not None

    async def close(self) -> None:
        if self.queue is not None:
            await self.queue.close()
        if self.blob_store is not None:
            await self.blob_store.close()
        await self.database.disconnect()


def build_queue(settings: Settings, store: BlobStore, converter: PreviewConverter) -> PreviewQueue:
    if settings.preview.queue_backend == "temporal":
        return TemporalPreviewQueue(TemporalClientManager(settings.temporal), settings.temporal.task_queue)
    return LocalPreviewQueue(PreviewGenerator(store, converter))


def build_container(
    settings: Settings,
    database: Optional[DatabaseClient] = None,
    blob_store: Optional[BlobStore] = None,
    queue: Optional[PreviewQueue] = None,
    converter: Optional[PreviewConverter] = None,
) -> ServiceContainer:
    """Wire every service from settings; explicit arguments replace the defaults."""
    database = database or DatabaseClient.from_settings(settings.db)
    store = blob_store or create_blob_store(settings.storage)
    container = ServiceContainer(
        settings=settings,
        database=database,
        auth=AuthContextResolver(settings.auth),
        blob_store=store,
    )
    if store is None:
        return container

    converter = converter or PyMuPDFConverter(settings.preview.render_width)
    container.queue = queue or build_queue(settings, store, converter)
    container.coordinator = PreviewCoordinator(
        store,
        container.queue,
        content_type=converter.content_type,
        retry_after_ms=settings.preview.retry_after_ms,
        claim_ttl_seconds=settings.preview.claim_ttl_seconds,
    )
    container.delivery = PresignedDelivery(
        container.coordinator,
        store,
        ttl_seconds=settings.storage.presign_ttl_seconds,
    )
    LOGGER.info(
        f"Preview pipeline ready (storage={settings.storage.backend}, queue={type(container.queue).__name__})"
    )
    return container
