"""
Application state container.

``CatalogStore`` owns the token codec, session registry, user store and book
store. One instance is built at application startup and passed to the
authorization gate and the request handlers.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from .books import BookStore
from .errors import UnauthenticatedError
from .models import Identity, SessionInfo
from .sessions import SessionRegistry
from .tokens import TokenCodec
from .users import UserStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    """A token handed to a client together with its identity."""
    token: str
    username: str
    customer: str


class CatalogStore:
    """Owner of all in-memory catalog state."""

    def __init__(self, codec: TokenCodec):
        self.codec = codec
        self.books = BookStore()
        self.sessions = SessionRegistry(codec)
        self.users = UserStore(self.books, self.sessions)

    def start_session(self, username: str, customer: str, user_agent: Optional[str] = None) -> IssuedSession:
        """Issue a token and record it as a live session."""
        token = self.codec.issue(username, customer)
        self.sessions.record(username, token, user_agent)
        return IssuedSession(token=token, username=username, customer=customer)

    def login(self, username: str, password: str, user_agent: Optional[str] = None) -> IssuedSession:
        """
        Check credentials and open a session.

        Raises:
            UnauthenticatedError: If username and password do not match
        """
        user = self.users.authenticate(username, password)
        if user is None:
            raise UnauthenticatedError("Username or password is incorrect")
        issued = self.start_session(user.username, user.customer, user_agent)
        logger.info("User logged in", username=username, customer=user.customer)
        return issued

    def renew(self, identity: Identity, user_agent: Optional[str] = None) -> IssuedSession:
        """Issue a fresh token for an already verified identity."""
        issued = self.start_session(identity.username, identity.customer, user_agent)
        logger.info("Token renewed", username=identity.username)
        return issued

    def live_sessions(self, username: str) -> Dict[str, SessionInfo]:
        """Sweep expired sessions, then list what remains."""
        self.sessions.sweep_expired(username)
        return self.sessions.list_sessions(username)
