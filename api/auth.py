"""
Authorization gate and authentication dependencies for the FastAPI API.

Every request passes through ``AuthorizationGate``. Public routes go through
untouched; protected routes need a valid, unexpired token whose session is
still recorded in the session registry.
"""

from typing import FrozenSet, Optional, Tuple

import structlog
from fastapi import Depends, Request

from catalog.errors import UnauthorizedError, UnknownUserError
from catalog.models import Identity
from catalog.store import CatalogStore
from catalog.tokens import TokenStatus
from utilities.logger import AuthLogger

from .models import error_response

logger = structlog.get_logger(__name__)

PUBLIC_ROUTES: FrozenSet[Tuple[str, str]] = frozenset({
    ("POST", "/user"),
    ("POST", "/user/login"),
    ("GET", "/health"),
    ("GET", "/docs"),
    ("GET", "/docs/oauth2-redirect"),
    ("GET", "/redoc"),
    ("GET", "/openapi.json"),
})


def normalize_path(path: str) -> str:
    """Strip a trailing slash so '/book/' and '/book' classify the same."""
    if len(path) > 1 and path.endswith("/"):
        return path.rstrip("/") or "/"
    return path


class AuthorizationGate:
    """
    Request middleware enforcing token authentication.

    Args:
        store: Catalog state holding the token codec and session registry
        token_header: Name of the request header carrying the token
    """

    def __init__(self, store: CatalogStore, token_header: str = "auth-token"):
        self.store = store
        self.token_header = token_header
        self.audit = AuthLogger("gate")

    @staticmethod
    def is_public(method: str, path: str) -> bool:
        return (method.upper(), normalize_path(path)) in PUBLIC_ROUTES

    def authorize(self, token: Optional[str], audit: Optional[AuthLogger] = None) -> Identity:
        """
        Resolve the identity behind ``token``.

        An expired token also has its session revoked before rejection.

        Raises:
            UnauthorizedError: If the token is missing, invalid, expired or revoked
        """
        audit = audit or self.audit
        if not token:
            audit.log_rejected("missing_token")
            raise UnauthorizedError("Missing token")

        result = self.store.codec.verify(token, ignore_expiration=False)

        if result.status is TokenStatus.OK:
            claims = result.claims
            if self.store.sessions.is_live(claims.username, token):
                return claims.identity
            audit.log_rejected("revoked_session", token=token, username=claims.username)
            raise UnauthorizedError("Session has been revoked")

        if result.status is TokenStatus.EXPIRED:
            self._revoke_expired(token, audit)
            raise UnauthorizedError("Token has expired")

        audit.log_rejected(result.status.value, token=token)
        raise UnauthorizedError("Invalid token")

    def _revoke_expired(self, token: str, audit: AuthLogger) -> None:
        recovered = self.store.codec.verify(token, ignore_expiration=True)
        if not recovered.ok:
            audit.log_rejected("expired_unrecoverable", token=token)
            return

        username = recovered.claims.username
        audit.log_rejected("expired", token=token, username=username)
        try:
            self.store.sessions.revoke(username, token)
        except UnknownUserError as e:
            audit.log_cleanup_skipped(username, str(e))

    async def __call__(self, request: Request, call_next):
        if self.is_public(request.method, request.url.path):
            return await call_next(request)

        audit = self.audit.bind(method=request.method, path=request.url.path)
        try:
            identity = self.authorize(request.headers.get(self.token_header), audit)
        except UnauthorizedError as e:
            return error_response(e.status_code, e.message, e.detail)

        request.state.identity = identity
        return await call_next(request)


def get_store(request: Request) -> CatalogStore:
    """Catalog state of the running application."""
    return request.app.state.store


def get_identity(request: Request) -> Identity:
    """
    Identity attached by the authorization gate.

    Raises:
        UnauthorizedError: If the gate did not attach one
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise UnauthorizedError("No identity attached to request")
    return identity


def reverify_identity(request: Request, store: CatalogStore = Depends(get_store)) -> Identity:
    """
    Verify the raw request token again and return its identity.

    Used by handlers that scope their work by the token's own claims.

    Raises:
        UnauthorizedError: If the token does not verify
    """
    token = request.headers.get(request.app.state.config.token_header)
    result = store.codec.verify(token, ignore_expiration=False)
    if not result.ok:
        logger.warning("Token re-verification failed", status=result.status.value,
                       path=request.url.path)
        raise UnauthorizedError("Invalid token")
    return result.claims.identity
