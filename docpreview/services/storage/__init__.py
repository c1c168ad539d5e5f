"""Blob storage backends."""

from typing import Optional

from docpreview.core.config import StorageSettings
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


def create_blob_store(settings: StorageSettings) -> Optional[BlobStore]:
    """Build the configured blob store, or None when storage is not configured."""
    if not settings.is_configured:
        LOGGER.warning(f"Blob storage not configured (backend={settings.backend or 'none'})")
        return None

    if settings.backend == "supabase":
        from docpreview.services.storage.supabase import SupabaseBlobStore

        return SupabaseBlobStore(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            bucket=settings.supabase_bucket,
            prefix=settings.prefix,
            presign_max_ttl_seconds=settings.presign_max_ttl_seconds,
            http_timeout=settings.http_timeout,
        )

    if settings.backend == "s3":
        from docpreview.services.storage.s3 import S3BlobStore

        return S3BlobStore(
            bucket=settings.s3_bucket,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            prefix=settings.prefix,
            presign_max_ttl_seconds=settings.presign_max_ttl_seconds,
        )

    from docpreview.services.storage.filesystem import FilesystemBlobStore

    return FilesystemBlobStore(
        root=settings.root,
        prefix=settings.prefix,
        presign_max_ttl_seconds=settings.presign_max_ttl_seconds,
    )


__all__ = ["BlobStore", "create_blob_store"]
