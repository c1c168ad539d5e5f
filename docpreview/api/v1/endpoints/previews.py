"""Preview ensure / presign / fallback endpoints."""

from typing import Iterator, Optional, Tuple
from urllib.parse import urlencode

from fastapi import APIRouter, Query, status
from fastapi.responses import RedirectResponse, StreamingResponse

from docpreview.api.dependencies import ContainerDep, RequestContextDep, ResolverDep, require_storage
from docpreview.core.config import Settings
from docpreview.schemas.preview import PreviewPendingResponse, PreviewReadyResponse
from docpreview.services.identity_service import DocumentIdentity
from docpreview.services.preview.coordinator import PreviewRecord
from docpreview.services.preview.delivery import DeliveryKind
from docpreview.utils.logging import get_logger
from docpreview.utils.responses import json_response, no_store_headers

LOGGER = get_logger(__name__)

router = APIRouter()

STREAM_CHUNK_SIZE = 64 * 1024


def preview_urls(settings: Settings, document_id: str) -> Tuple[str, str]:
    """Relative presign and fallback endpoint URLs for a document."""
    base = f"{settings.api_v1_prefix}/documents/blob/preview"
    query = urlencode({"id": document_id})
    return f"{base}/presign?{query}", f"{base}/fallback?{query}"


def pending_response(settings: Settings, identity: DocumentIdentity, record: PreviewRecord):
    presign_url, fallback_url = preview_urls(settings, identity.id)
    body = PreviewPendingResponse(
        status=record.status.value,
        retry_after_ms=record.retry_after_ms or settings.preview.retry_after_ms,
        presign_url=presign_url,
        fallback_url=fallback_url,
    )
    return json_response(body, status_code=status.HTTP_202_ACCEPTED)


def _chunks(data: bytes) -> Iterator[bytes]:
    for start in range(0, len(data), STREAM_CHUNK_SIZE):
        yield data[start:start + STREAM_CHUNK_SIZE]


@router.get(
    "/ensure",
    summary="Ensure a document preview exists",
    description="Report whether the preview is ready, enqueueing generation when it is not.",
    operation_id="ensure_document_preview",
)
async def ensure_preview(
    container: ContainerDep,
    ctx: RequestContextDep,
    resolver: ResolverDep,
    document_id: Optional[str] = Query(None, alias="id"),
):
    require_storage(container)
    identity = await resolver.resolve(document_id, ctx)

    record = await container.coordinator.ensure(identity)
    if not record.is_ready:
        return pending_response(container.settings, identity, record)

    presign_url, fallback_url = preview_urls(container.settings, identity.id)
    direct_url = await container.delivery.direct_url(identity)
    return json_response(
        PreviewReadyResponse(presign_url=presign_url, fallback_url=fallback_url, direct_url=direct_url)
    )


@router.get(
    "/presign",
    summary="Redirect to the preview",
    description="307 to a short-lived direct URL, or to the streaming fallback when signing is unavailable.",
    operation_id="presign_document_preview",
)
async def presign_preview(
    container: ContainerDep,
    ctx: RequestContextDep,
    resolver: ResolverDep,
    document_id: Optional[str] = Query(None, alias="id"),
):
    require_storage(container)
    identity = await resolver.resolve(document_id, ctx)

    result = await container.delivery.deliver(identity, stream_fallback=False)
    if result.kind is DeliveryKind.PENDING:
        return pending_response(container.settings, identity, result.record)

    if result.kind is DeliveryKind.REDIRECT:
        target = result.url
    else:
        _, target = preview_urls(container.settings, identity.id)
    return RedirectResponse(target, status_code=status.HTTP_307_TEMPORARY_REDIRECT, headers=no_store_headers())


@router.get(
    "/fallback",
    summary="Stream the preview",
    description="Proxy the preview bytes through the API.",
    operation_id="stream_document_preview",
)
async def fallback_preview(
    container: ContainerDep,
    ctx: RequestContextDep,
    resolver: ResolverDep,
    document_id: Optional[str] = Query(None, alias="id"),
):
    require_storage(container)
    identity = await resolver.resolve(document_id, ctx)

    result = await container.delivery.stream(identity)
    if result.kind is DeliveryKind.PENDING:
        return pending_response(container.settings, identity, result.record)

    content = result.content
    return StreamingResponse(
        _chunks(content.data),
        media_type=content.content_type,
        headers=no_store_headers({"Content-Length": str(len(content.data))}),
    )
