"""Document deletion and namespace teardown."""

from dataclasses import dataclass
from typing import Any, Optional

from docpreview.core.context import RequestContext
from docpreview.core.exceptions import (
    DocumentNotFoundError,
    InvalidIdError,
    StorageNotConfiguredError,
    ValidationError,
)
from docpreview.repositories.document_repository import DocumentRepository
from docpreview.services.base_service import BaseService
from docpreview.services.preview.coordinator import PreviewCoordinator
from docpreview.services.storage.base import BlobStore
from docpreview.services.storage.keys import document_key, namespace_prefix, preview_prefix
from docpreview.utils.identifiers import normalize_document_id


@dataclass
class DeletionResult:
    document_id: str
    rows_deleted: int
    blobs_deleted: int


class DocumentService(BaseService):
    """Removes documents and reclaims their blobs.

    Blobs are content-addressed and may be shared by several owners, so they
    are only removed once no row references the id anymore.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        store: Optional[BlobStore],
        coordinator: Optional[PreviewCoordinator] = None,
    ):
        super().__init__()
        self.repository = repository
        self.store = store
        self.coordinator = coordinator

    def validate(self, *args, **kwargs):
        if self.store is None:
            raise StorageNotConfiguredError("Blob storage is not configured")

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.get("action")
        ctx: RequestContext = kwargs["ctx"]

        if action == "delete":
            return await self._delete_document(kwargs.get("document_id"), ctx)
        elif action == "purge_namespace":
            return await self._purge_namespace(ctx)
        else:
            raise ValidationError(f"Unknown document action: {action}")

    async def _delete_document(self, raw_id: Optional[str], ctx: RequestContext) -> DeletionResult:
        ctx.require_authenticated()
        document_id = normalize_document_id(raw_id)
        if document_id is None:
            raise InvalidIdError("Invalid document id")

        rows_deleted = await self.repository.delete_for_owners(document_id, ctx.allowed_owner_ids)
        if rows_deleted == 0:
            raise DocumentNotFoundError("Not found")

        blobs_deleted = 0
        remaining = await self.repository.count(filters={"id": document_id})
        if remaining == 0:
            if await self.store.delete(document_key(document_id, ctx.namespace)):
                blobs_deleted += 1
            blobs_deleted += await self.store.delete_by_prefix(preview_prefix(document_id, ctx.namespace))
            if self.coordinator is not None:
                await self.coordinator.forget(document_id, ctx.namespace)

        self.logger.info(
            f"Deleted document {document_id}",
            extra={"rows_deleted": rows_deleted, "blobs_deleted": blobs_deleted, "namespace": ctx.namespace},
        )
        return DeletionResult(document_id, rows_deleted, blobs_deleted)

    async def _purge_namespace(self, ctx: RequestContext) -> int:
        if not ctx.namespace:
            raise ValidationError("A namespace header is required")
        deleted = await self.store.delete_by_prefix(namespace_prefix(ctx.namespace))
        self.logger.info(f"Purged namespace {ctx.namespace}", extra={"blobs_deleted": deleted})
        return deleted
