"""Document identity resolution.

Turns a raw ``?id=`` query value plus the request context into a
:class:`DocumentIdentity` the preview pipeline can act on, enforcing
ownership on the way.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence

from docpreview.core.context import RequestContext
from docpreview.core.exceptions import DocumentNotFoundError, InvalidIdError, UnsupportedTypeError
from docpreview.utils.identifiers import normalize_document_id
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class DocumentIdentity:
    """Authorized reference to one version of a document."""

    id: str
    owner_user_id: str
    document_type: str
    version: int
    namespace: Optional[str] = None
    name: str = ""


class DocumentRow(Protocol):
    id: str
    user_id: str
    name: str
    type: str
    last_modified: int


class DocumentLookup(Protocol):
    """Read access to document metadata rows."""

    async def find_for_owners(self, document_id: str, owner_ids: Sequence[str]) -> List[DocumentRow]:
        ...


class DocumentIdentityResolver:
    """Authorizes a document id against the documents lookup."""

    def __init__(self, lookup: DocumentLookup, previewable_types: Iterable[str]):
        self.lookup = lookup
        self.previewable_types = {t.lower() for t in previewable_types}

    async def resolve(
        self,
        raw_id: Optional[str],
        ctx: RequestContext,
        require_previewable: bool = True,
    ) -> DocumentIdentity:
        """Resolve a requested id for the calling user.

        Args:
            raw_id: Id as received from the client
            ctx: Caller identity and namespace
            require_previewable: Reject types without a preview converter

        Returns:
            DocumentIdentity for the best matching row

        Raises:
            UnauthorizedError: Auth is enabled and the caller has no session
            InvalidIdError: The id is not a safe identifier
            DocumentNotFoundError: No row is visible to the caller
            UnsupportedTypeError: The document type cannot be previewed
        """
        ctx.require_authenticated()

        document_id = normalize_document_id(raw_id)
        if document_id is None:
            raise InvalidIdError("Invalid document id")

        owner_ids = ctx.allowed_owner_ids
        rows = await self.lookup.find_for_owners(document_id, owner_ids)
        if not rows:
            LOGGER.info(f"Document {document_id} not visible to caller", extra={"namespace": ctx.namespace})
            raise DocumentNotFoundError("Not found")

        # A row owned by the caller wins over an unclaimed placeholder row
        row = next((r for r in rows if r.user_id == ctx.storage_user_id), rows[0])

        document_type = (row.type or "").lower()
        if require_previewable and document_type not in self.previewable_types:
            raise UnsupportedTypeError(f"Preview not supported for document type: {document_type or 'unknown'}")

        return DocumentIdentity(
            id=document_id,
            owner_user_id=row.user_id,
            document_type=document_type,
            version=int(row.last_modified or 0),
            namespace=ctx.namespace,
            name=row.name or "",
        )
