"""
Error taxonomy for catalog operations.

Each error carries the HTTP status code it is translated to at the API
boundary.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog errors."""

    status_code: int = 500
    message: str = "Catalog error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.message)


class ValidationError(CatalogError):
    """A required field is missing or empty."""

    status_code = 400
    message = "Invalid request data"


class ConflictError(CatalogError):
    """The username is already taken."""

    status_code = 409
    message = "Resource already exists"


class UnauthenticatedError(CatalogError):
    """Username and password do not match."""

    status_code = 401
    message = "Invalid credentials"


class UnauthorizedError(CatalogError):
    """Token is missing, invalid, expired or revoked."""

    status_code = 401
    message = "Unauthorized"


class NotFoundError(CatalogError):
    """Unknown book or session."""

    status_code = 404
    message = "Not found"


class UnknownUserError(NotFoundError):
    """No session bucket or record exists for the username."""

    message = "Unknown user"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Unknown user '{username}'")
