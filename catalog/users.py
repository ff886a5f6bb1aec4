"""
User and tenant records.

Handles registration, credential checks and the per-user lookups the
authorization gate and handlers rely on.
"""

import hashlib
import secrets
import threading
from typing import Dict, List, Optional

import structlog

from .books import BookStore
from .errors import ConflictError, UnknownUserError
from .models import User
from .sessions import SessionRegistry

logger = structlog.get_logger(__name__)

PBKDF2_ITERATIONS = 100_000


def hash_password(password: str) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Returns: salt:hash format string
    """
    salt = secrets.token_hex(16)
    hash_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations=PBKDF2_ITERATIONS,
    )
    return f"{salt}:{hash_bytes.hex()}"


def verify_password(password: str, password_digest: str) -> bool:
    """Verify a password against its digest."""
    try:
        salt, stored_hash = password_digest.split(":")
    except (ValueError, AttributeError):
        return False
    hash_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations=PBKDF2_ITERATIONS,
    )
    return secrets.compare_digest(hash_bytes.hex(), stored_hash)


class UserStore:
    """
    Holds user records keyed by username.

    Registering a user also bootstraps the tenant's book collection and the
    user's session bucket.
    """

    def __init__(self, books: BookStore, sessions: SessionRegistry):
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()
        self._books = books
        self._sessions = sessions

    def exists(self, username: str) -> bool:
        """Check if a username is already taken."""
        with self._lock:
            return username in self._users

    def register(self, username: str, password_digest: str, customer: str) -> User:
        """
        Add a new user.

        Args:
            username: Unique username
            password_digest: Output of ``hash_password``
            customer: Tenant id

        Returns:
            The created user

        Raises:
            ConflictError: If the username is taken
        """
        with self._lock:
            if username in self._users:
                raise ConflictError(f"Username '{username}' is already taken")
            user = User(username=username, password_digest=password_digest, customer=customer)
            self._users[username] = user

        self._books.create_collection(customer)
        self._sessions.create_bucket(username)
        logger.info("User registered", username=username, customer=customer)
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user if ``password`` matches, otherwise None."""
        user = self.get(username)
        if user is None or not verify_password(password, user.password_digest):
            return None
        return user

    def get(self, username: str) -> Optional[User]:
        with self._lock:
            return self._users.get(username)

    def get_customer(self, username: str) -> str:
        """Tenant of ``username``; raises UnknownUserError if absent."""
        user = self.get(username)
        if user is None:
            raise UnknownUserError(username)
        return user.customer

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())
