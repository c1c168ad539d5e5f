"""Per-request context threaded from the HTTP boundary inward."""

from dataclasses import dataclass
from typing import Optional, Tuple

from docpreview.core.auth import AuthContext
from docpreview.core.exceptions import UnauthorizedError
from docpreview.utils.identifiers import unclaimed_user_id_for_namespace


@dataclass(frozen=True)
class RequestContext:
    """Caller identity plus tenancy namespace for a single request.

    Built once by the API dependency layer; services never re-read headers.
    """

    auth: AuthContext
    namespace: Optional[str] = None

    @property
    def unclaimed_user_id(self) -> str:
        return unclaimed_user_id_for_namespace(self.namespace)

    @property
    def storage_user_id(self) -> str:
        """Owner id used for rows created on behalf of this caller."""
        return self.auth.user_id or self.unclaimed_user_id

    @property
    def allowed_owner_ids(self) -> Tuple[str, ...]:
        """Owner ids whose documents this caller may read."""
        if not self.auth.auth_enabled:
            return (self.unclaimed_user_id,)
        if self.storage_user_id == self.unclaimed_user_id:
            return (self.unclaimed_user_id,)
        return (self.storage_user_id, self.unclaimed_user_id)

    def require_authenticated(self) -> None:
        """Raise when auth is enabled and the caller has no session."""
        if self.auth.auth_enabled and not self.auth.is_authenticated:
            raise UnauthorizedError("Unauthorized")
