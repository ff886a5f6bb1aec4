"""
FastAPI application for the Tenant Book Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.auth import AuthorizationGate, get_identity, get_store, reverify_identity
from api.config import APIConfig, get_config
from api.models import (
    HealthResponse, LoginRequest, RegisterRequest, TokenResponse, UserResponse,
    error_response,
)
from catalog.errors import CatalogError, UnauthenticatedError
from catalog.models import Book, BookCreate, BookPatch, Identity, SessionInfo
from catalog.store import CatalogStore
from catalog.tokens import TokenCodec
from catalog.users import hash_password
from utilities.logger import AuthLogger, setup_logging, short_token

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Tenant Book Catalog API", version=app.state.config.api_version)
    yield
    logger.info("Shutting down Tenant Book Catalog API")


def build_store(config: APIConfig) -> CatalogStore:
    """Create the in-memory catalog state for one application instance."""
    codec = TokenCodec(
        secret=config.secret_key,
        algorithm=config.algorithm,
        lifetime_seconds=config.token_lifetime_seconds,
    )
    return CatalogStore(codec)


def register_exception_handlers(app: FastAPI, config: APIConfig) -> None:
    """Translate errors to ErrorResponse bodies."""

    @app.exception_handler(CatalogError)
    async def catalog_exception_handler(request: Request, exc: CatalogError):
        return error_response(exc.status_code, exc.message, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(part) for part in err["loc"][1:]) for err in exc.errors()})
        logger.debug("Request validation failed", path=request.url.path, fields=fields)
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request data",
            ", ".join(field for field in fields if field) or None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc) if config.debug else None,
        )


def register_routes(app: FastAPI) -> None:
    """Attach user, session and book endpoints."""
    audit = AuthLogger("users")

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check(store: CatalogStore = Depends(get_store)):
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc),
            version=app.state.config.api_version,
            users=len(store.users.list_users()),
            tenants=len(store.books.tenants()),
        )

    # User endpoints
    @app.get("/user", response_model=List[UserResponse], tags=["Users"])
    def list_users(
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """List every registered user."""
        return [UserResponse(username=u.username, customer=u.customer) for u in store.users.list_users()]

    @app.post("/user", tags=["Users"])
    def register_user(payload: RegisterRequest, store: CatalogStore = Depends(get_store)):
        """
        Register a user under a tenant.

        - **409** if the username is taken
        """
        store.users.register(payload.username, hash_password(payload.password), payload.customer)
        return Response(status_code=status.HTTP_200_OK)

    @app.post("/user/login", response_model=TokenResponse, tags=["Users"])
    def login(payload: LoginRequest, request: Request, store: CatalogStore = Depends(get_store)):
        """Check credentials and open a session for the calling user agent."""
        try:
            issued = store.login(payload.username, payload.password, request.headers.get("user-agent"))
        except UnauthenticatedError:
            audit.log_login(payload.username, success=False)
            raise
        audit.log_login(payload.username, success=True)
        return TokenResponse(username=issued.username, customer=issued.customer, token=issued.token)

    @app.post("/user/renew", response_model=TokenResponse, tags=["Sessions"])
    def renew(
        request: Request,
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Issue a new token for the current identity and record its session."""
        issued = store.renew(identity, request.headers.get("user-agent"))
        return TokenResponse(username=issued.username, customer=issued.customer, token=issued.token)

    @app.get("/user/session", response_model=Dict[str, SessionInfo], tags=["Sessions"])
    def list_sessions(
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Live sessions of the current user, keyed by token."""
        return store.live_sessions(identity.username)

    @app.delete("/user/session/{session_id}", tags=["Sessions"])
    def revoke_session(
        session_id: str,
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Revoke one of the current user's sessions. Unknown ids are ignored."""
        if store.sessions.revoke(identity.username, session_id):
            audit.log_session_revoked(identity.username, session_id)
        else:
            logger.debug("Session already gone", username=identity.username,
                         token=short_token(session_id))
        return Response(status_code=status.HTTP_200_OK)

    # Book endpoints
    @app.get("/book", response_model=List[Book], tags=["Books"])
    def list_books(
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Books of the caller's tenant."""
        return store.books.list_books(identity.customer)

    @app.post("/book", response_model=Book, tags=["Books"])
    def add_book(
        payload: BookCreate,
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """
        Add a book to the caller's tenant.

        - **name**: Book title (required)
        - **author**: Book author (required)
        """
        return store.books.add_book(identity.customer, payload)

    @app.get("/book/{book_id}", response_model=Book, tags=["Books"])
    def get_book(
        book_id: str,
        identity: Identity = Depends(get_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Get a single book by ID."""
        return store.books.get_book(identity.customer, book_id)

    @app.put("/book/{book_id}", response_model=Book, tags=["Books"])
    def update_book(
        book_id: str,
        patch: BookPatch,
        identity: Identity = Depends(reverify_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Merge the given fields into a book."""
        return store.books.update_book(identity.customer, book_id, patch)

    @app.delete("/book/{book_id}", tags=["Books"])
    def delete_book(
        book_id: str,
        identity: Identity = Depends(reverify_identity),
        store: CatalogStore = Depends(get_store),
    ):
        """Delete a book by ID."""
        customer = store.users.get_customer(identity.username)
        store.books.delete_book(customer, book_id)
        return Response(status_code=status.HTTP_200_OK)


def create_app(config: Optional[APIConfig] = None, store: Optional[CatalogStore] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use; loaded from the environment when omitted
        store: Catalog state; a fresh one is built when omitted
    """
    config = config or get_config()
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store or build_store(config)

    register_exception_handlers(app, config)
    register_routes(app)

    gate = AuthorizationGate(app.state.store, token_header=config.token_header)
    app.add_middleware(BaseHTTPMiddleware, dispatch=gate)

    # CORS wraps the gate so preflight requests are answered before authorization
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    return app
