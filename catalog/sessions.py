"""
Per-user session registry.

Maps each user's issued tokens to session metadata so that otherwise
stateless tokens can be revoked. Expired entries are not removed in the
background; ``sweep_expired`` removes them when sessions are listed.
"""

from typing import Dict, Optional

import structlog
from user_agents import parse as parse_user_agent

from utilities.logger import short_token

from .errors import UnknownUserError
from .locking import KeyedLock
from .models import SessionInfo, utc_now
from .tokens import TokenCodec

logger = structlog.get_logger(__name__)

UNKNOWN_UA_FAMILY = "Other"


def describe_user_agent(user_agent: Optional[str]) -> SessionInfo:
    """Parse a raw User-Agent header into session metadata."""
    if not user_agent:
        return SessionInfo(issued_at=utc_now())

    ua = parse_user_agent(user_agent)

    def known(family):
        return None if not family or family == UNKNOWN_UA_FAMILY else family

    return SessionInfo(
        browser=known(ua.browser.family),
        os=known(ua.os.family),
        device=ua.device.brand or None,
        issued_at=utc_now(),
    )


class SessionRegistry:
    """Tracks live sessions per username."""

    def __init__(self, codec: TokenCodec):
        self.codec = codec
        self._sessions: Dict[str, Dict[str, SessionInfo]] = {}
        self._locks = KeyedLock()

    def create_bucket(self, username: str) -> None:
        """Ensure ``username`` has a (possibly empty) session bucket."""
        with self._locks.hold(username):
            self._sessions.setdefault(username, {})

    def _bucket(self, username: str) -> Dict[str, SessionInfo]:
        bucket = self._sessions.get(username)
        if bucket is None:
            raise UnknownUserError(username)
        return bucket

    def record(self, username: str, token: str, user_agent: Optional[str] = None) -> SessionInfo:
        """
        Record a session for a freshly issued token.

        Args:
            username: Owner of the token
            token: Token string, used as the session id
            user_agent: Raw User-Agent header of the issuing request

        Returns:
            The stored session metadata
        """
        info = describe_user_agent(user_agent)
        with self._locks.hold(username):
            self._sessions.setdefault(username, {})[token] = info
        logger.debug("Session recorded", username=username, token=short_token(token),
                     browser=info.browser, os=info.os)
        return info

    def is_live(self, username: str, token: str) -> bool:
        """True if the session exists and has not been revoked."""
        with self._locks.hold(username):
            bucket = self._sessions.get(username)
            return bucket is not None and token in bucket

    def revoke(self, username: str, token: str) -> bool:
        """
        Remove a session. Revoking an unknown token is a no-op.

        Returns:
            True if an entry was removed

        Raises:
            UnknownUserError: If ``username`` has no session bucket
        """
        with self._locks.hold(username):
            removed = self._bucket(username).pop(token, None) is not None
        if removed:
            logger.info("Session revoked", username=username, token=short_token(token))
        return removed

    def list_sessions(self, username: str) -> Dict[str, SessionInfo]:
        """Snapshot of the user's sessions keyed by token."""
        with self._locks.hold(username):
            return dict(self._bucket(username))

    def sweep_expired(self, username: str) -> int:
        """
        Revoke every session whose token no longer verifies.

        Returns:
            Number of sessions removed
        """
        with self._locks.hold(username):
            bucket = self._bucket(username)
            stale = [token for token in bucket if not self.codec.verify(token).ok]
            for token in stale:
                del bucket[token]

        if stale:
            logger.info("Expired sessions swept", username=username, removed=len(stale))
        return len(stale)

