"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Registration request body."""
    username: str = Field(..., min_length=1, description="Unique username")
    password: str = Field(..., min_length=1, description="Plain text password")
    customer: str = Field(..., min_length=1, description="Tenant the user joins")


class LoginRequest(BaseModel):
    """Login request body."""
    username: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1, description="Plain text password")


class TokenResponse(BaseModel):
    """Token issued on login or renewal."""
    username: str = Field(..., description="Authenticated username")
    customer: str = Field(..., description="Tenant of the user")
    token: str = Field(..., description="Signed session token")


class UserResponse(BaseModel):
    """Public user fields."""
    username: str = Field(..., description="Username")
    customer: str = Field(..., description="Tenant of the user")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    users: int = Field(..., description="Number of registered users")
    tenants: int = Field(..., description="Number of tenants with a book collection")


def error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    """Build the JSON error body shared by every failure path."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers,
    )
