"""Session token verification.

Tokens are HS256 JWTs issued by the web application's auth service and
signed with the shared ``AUTH_SECRET``. This module only turns a bearer token
into an :class:`AuthContext`; it never issues tokens.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel

from docpreview.core.config import AuthSettings
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class JWTClaims(BaseModel):
    """Decoded session token claims."""

    sub: str  # User ID
    exp: int
    iat: int
    iss: str
    aud: str = ""
    email: Optional[str] = None
    is_anonymous: bool = False
    user_metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AuthContext:
    """Opaque view of the caller's session."""

    auth_enabled: bool
    user_id: Optional[str] = None
    is_anonymous: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class JWTVerifier:
    """JWT verifier for session access tokens.

    This class handles:
    - JWT decoding with signature verification
    - Claims validation (exp, iat, iss, aud)
    """

    def __init__(self, secret: str, issuer: str, audience: str = "authenticated"):
        """Initialize JWT verifier.

        Args:
            secret: Shared HS256 signing secret
            issuer: Expected ``iss`` claim (the auth service base URL)
            audience: Expected ``aud`` claim
        """
        self.secret = secret
        self.expected_issuer = issuer.rstrip("/")
        self.audience = audience

    def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode a session token.

        Args:
            token: JWT access token from the Authorization header

        Returns:
            Decoded and validated JWT claims

        Raises:
            jwt.InvalidTokenError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "require": ["sub", "exp", "iat", "iss"],
                },
            )
        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            LOGGER.warning(f"Invalid signature: {e}")
            raise jwt.InvalidTokenError("Invalid token signature") from e

        if str(payload.get("iss", "")).rstrip("/") != self.expected_issuer:
            LOGGER.warning(f"Invalid issuer: {payload.get('iss')}")
            raise jwt.InvalidIssuerError("Invalid token issuer")

        claims = JWTClaims(**payload)
        LOGGER.debug(f"Successfully verified token for user: {claims.sub}")
        return claims


class AuthContextResolver:
    """Builds an :class:`AuthContext` from an optional bearer token."""

    def __init__(self, settings: AuthSettings):
        self.enabled = settings.enabled
        self.verifier: Optional[JWTVerifier] = None
        if self.enabled:
            self.verifier = JWTVerifier(settings.secret, settings.base_url, settings.audience)

    def resolve(self, token: Optional[str]) -> AuthContext:
        """Resolve the caller's session.

        Missing or invalid tokens yield an unauthenticated context; routes
        decide whether that is acceptable.
        """
        if not self.enabled or self.verifier is None:
            return AuthContext(auth_enabled=False)

        if not token:
            return AuthContext(auth_enabled=True)

        try:
            claims = self.verifier.verify_token(token)
        except jwt.InvalidTokenError as e:
            LOGGER.info(f"Rejected session token: {e}")
            return AuthContext(auth_enabled=True)

        return AuthContext(auth_enabled=True, user_id=claims.sub, is_anonymous=claims.is_anonymous)
