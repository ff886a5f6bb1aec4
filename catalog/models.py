"""
Pydantic models for users, sessions and books.
Implements the catalog records and the book merge-patch overlay.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class User(BaseModel):
    """User record as held by the user store."""
    username: str = Field(..., description="Unique username")
    password_digest: str = Field(..., description="Salted one-way password digest")
    customer: str = Field(..., description="Tenant the user belongs to")

    model_config = {"frozen": True}


class Identity(BaseModel):
    """Identity resolved from a verified token."""
    username: str
    customer: str

    model_config = {"frozen": True}


class SessionInfo(BaseModel):
    """Metadata recorded for an issued token."""
    browser: Optional[str] = Field(None, description="Browser family")
    os: Optional[str] = Field(None, description="Operating system family")
    device: Optional[str] = Field(None, description="Device brand")
    issued_at: datetime = Field(default_factory=utc_now, description="When the session was recorded")


class Book(BaseModel):
    """
    Book stored in a tenant's collection.
    Fields beyond ``name`` and ``author`` are kept as given.
    """
    id: str = Field(..., description="Book identifier, unique within the tenant")
    name: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")

    model_config = {"extra": "allow"}


class BookCreate(BaseModel):
    """Data required to add a book."""
    name: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "example": {"name": "Dune", "author": "Frank Herbert"}
        },
    }


class BookPatch(BaseModel):
    """
    Partial book update.
    Only the fields present in the request are applied; unknown fields are
    merged into the book as-is.
    """
    name: Optional[str] = Field(None, description="New title")
    author: Optional[str] = Field(None, description="New author")

    model_config = {"extra": "allow"}

    @field_validator("name", "author")
    @classmethod
    def validate_not_empty(cls, v):
        """Reject explicit nulls and empty strings for required book fields."""
        if v is None or v == "":
            raise ValueError("must be a non-empty string")
        return v

    def changes(self) -> Dict[str, Any]:
        """Return the fields explicitly set in this patch."""
        data = self.model_dump()
        extra = self.model_extra or {}
        return {
            key: value for key, value in data.items()
            if key in self.model_fields_set or key in extra
        }


def apply_patch(book: Book, patch: BookPatch) -> Book:
    """
    Overlay the fields set in ``patch`` onto ``book``.

    The book id is never overwritten. Returns a new Book; the original is
    left untouched.
    """
    changes = patch.changes()
    changes.pop("id", None)
    merged = {**book.model_dump(), **changes}
    return Book(**merged)
