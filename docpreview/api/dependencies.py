"""FastAPI dependencies.

Everything a handler needs comes from the :class:`ServiceContainer` stored on
``app.state`` at startup, so tests can swap any piece with
``app.dependency_overrides``.
"""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from docpreview.container import ServiceContainer
from docpreview.core.context import RequestContext
from docpreview.core.exceptions import StorageNotConfiguredError
from docpreview.repositories.document_repository import DocumentRepository
from docpreview.services.identity_service import DocumentIdentityResolver, DocumentLookup
from docpreview.services.storage.base import BlobStore
from docpreview.utils.identifiers import normalize_namespace

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_request_context(
    request: Request,
    container: Annotated[ServiceContainer, Depends(get_container)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)] = None,
) -> RequestContext:
    """Parse the session token and tenancy namespace once per request."""
    token = credentials.credentials if credentials else None
    namespace = normalize_namespace(request.headers.get(container.settings.namespace_header))
    return RequestContext(auth=container.auth.resolve(token), namespace=namespace)


def require_storage(container: ServiceContainer) -> BlobStore:
    """Fail fast with 503 when no blob store is configured."""
    if container.blob_store is None:
        raise StorageNotConfiguredError("Blob storage is not configured")
    return container.blob_store


async def get_db_session(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> AsyncGenerator[AsyncSession, None]:
    async with container.database.session() as session:
        yield session


def get_document_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> DocumentRepository:
    return DocumentRepository(session)


def get_document_lookup(
    repository: Annotated[DocumentRepository, Depends(get_document_repository)],
) -> DocumentLookup:
    return repository


def get_identity_resolver(
    container: Annotated[ServiceContainer, Depends(get_container)],
    lookup: Annotated[DocumentLookup, Depends(get_document_lookup)],
) -> DocumentIdentityResolver:
    return DocumentIdentityResolver(lookup, container.settings.preview.previewable_types)


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
RequestContextDep = Annotated[RequestContext, Depends(get_request_context)]
ResolverDep = Annotated[DocumentIdentityResolver, Depends(get_identity_resolver)]
RepositoryDep = Annotated[DocumentRepository, Depends(get_document_repository)]
