"""
Per-tenant book collections.
"""

import uuid
from typing import Dict, List

import structlog

from .errors import NotFoundError
from .locking import KeyedLock
from .models import Book, BookCreate, BookPatch, apply_patch

logger = structlog.get_logger(__name__)


class BookStore:
    """Books keyed by tenant, then by book id."""

    def __init__(self):
        self._books: Dict[str, Dict[str, Book]] = {}
        self._locks = KeyedLock()

    def create_collection(self, customer: str) -> bool:
        """
        Create an empty collection for ``customer`` if it has none.

        Returns:
            True if a collection was created
        """
        with self._locks.hold(customer):
            if customer in self._books:
                return False
            self._books[customer] = {}
        logger.info("Tenant collection created", customer=customer)
        return True

    def has_collection(self, customer: str) -> bool:
        with self._locks.hold(customer):
            return customer in self._books

    def tenants(self) -> List[str]:
        return list(self._books)

    def list_books(self, customer: str) -> List[Book]:
        """All books of a tenant in insertion order."""
        with self._locks.hold(customer):
            return list(self._books.get(customer, {}).values())

    def add_book(self, customer: str, data: BookCreate) -> Book:
        """Add a book to the tenant's collection under a new id."""
        book = Book(id=str(uuid.uuid4()), **data.model_dump())
        with self._locks.hold(customer):
            self._books.setdefault(customer, {})[book.id] = book
        logger.info("Book added", customer=customer, book_id=book.id)
        return book

    def get_book(self, customer: str, book_id: str) -> Book:
        """
        Raises:
            NotFoundError: If the tenant has no book with ``book_id``
        """
        with self._locks.hold(customer):
            book = self._books.get(customer, {}).get(book_id)
        if book is None:
            raise NotFoundError(f"Book '{book_id}' not found")
        return book

    def update_book(self, customer: str, book_id: str, patch: BookPatch) -> Book:
        """
        Shallow merge ``patch`` into an existing book.

        Raises:
            NotFoundError: If the tenant has no book with ``book_id``
        """
        with self._locks.hold(customer):
            collection = self._books.get(customer, {})
            book = collection.get(book_id)
            if book is None:
                raise NotFoundError(f"Book '{book_id}' not found")
            updated = apply_patch(book, patch)
            collection[book_id] = updated
        logger.info("Book updated", customer=customer, book_id=book_id)
        return updated

    def delete_book(self, customer: str, book_id: str) -> None:
        """
        Raises:
            NotFoundError: If the tenant has no book with ``book_id``
        """
        with self._locks.hold(customer):
            collection = self._books.get(customer, {})
            if collection.pop(book_id, None) is None:
                raise NotFoundError(f"Book '{book_id}' not found")
        logger.info("Book deleted", customer=customer, book_id=book_id)
