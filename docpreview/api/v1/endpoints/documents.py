"""Document deletion endpoints."""

from typing import Optional

from fastapi import APIRouter, Query

from docpreview.api.dependencies import ContainerDep, RepositoryDep, RequestContextDep, require_storage
from docpreview.schemas.documents import DocumentDeleteResponse, NamespacePurgeResponse
from docpreview.services.document_service import DocumentService
from docpreview.utils.responses import json_response

router = APIRouter()


@router.delete(
    "",
    response_model=DocumentDeleteResponse,
    summary="Delete a document",
    description="Remove the caller's rows; blobs are reclaimed once no row references the id.",
    operation_id="delete_document",
)
async def delete_document(
    container: ContainerDep,
    ctx: RequestContextDep,
    repository: RepositoryDep,
    document_id: Optional[str] = Query(None, alias="id"),
):
    store = require_storage(container)
    service = DocumentService(repository, store, container.coordinator)
    result = await service.execute(action="delete", ctx=ctx, document_id=document_id)
    return json_response(
        DocumentDeleteResponse(
            id=result.document_id,
            rows_deleted=result.rows_deleted,
            blobs_deleted=result.blobs_deleted,
        )
    )


@router.delete(
    "/namespace",
    response_model=NamespacePurgeResponse,
    summary="Delete every blob in the request namespace",
    operation_id="purge_namespace",
)
async def purge_namespace(
    container: ContainerDep,
    ctx: RequestContextDep,
    repository: RepositoryDep,
):
    store = require_storage(container)
    service = DocumentService(repository, store, container.coordinator)
    deleted = await service.execute(action="purge_namespace", ctx=ctx)
    return json_response(NamespacePurgeResponse(namespace=ctx.namespace, blobs_deleted=deleted))
