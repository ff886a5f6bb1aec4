"""
Signed session tokens.

Tokens are HS256 JWTs carrying ``username`` and ``customer`` with a fixed
lifetime. Verification never raises: it returns a ``TokenVerification``
whose status tells the caller which branch to take.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import jwt
import structlog

from .models import Identity, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 60 * 5


class TokenStatus(str, Enum):
    """Outcome of a token verification."""
    OK = "ok"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenClaims:
    """Claims recovered from a verified token."""
    username: str
    customer: str
    issued_at: datetime
    expires_at: datetime

    @property
    def identity(self) -> Identity:
        return Identity(username=self.username, customer=self.customer)


@dataclass(frozen=True)
class TokenVerification:
    """Result of ``TokenCodec.verify``; ``claims`` is set only when OK."""
    status: TokenStatus
    claims: Optional[TokenClaims] = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.OK


class TokenCodec:
    """
    Issues and verifies signed tokens.

    Args:
        secret: Shared signing secret
        algorithm: JWT signing algorithm
        lifetime_seconds: Seconds between issuance and expiration
        clock: Returns the current aware datetime; used at issuance
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        lifetime_seconds: int = DEFAULT_TOKEN_LIFETIME_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def issue(self, username: str, customer: str) -> str:
        """Create a signed token for ``username`` in tenant ``customer``."""
        now = self._clock()
        payload = {
            "username": username,
            "customer": customer,
            "iat": now,
            "exp": now + timedelta(seconds=self.lifetime_seconds),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: Any, ignore_expiration: bool = False) -> TokenVerification:
        """
        Verify a token's signature and, unless ``ignore_expiration`` is set,
        its expiration.
        """
        if not isinstance(token, str) or not token:
            return TokenVerification(TokenStatus.MALFORMED)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": not ignore_expiration,
                    "require": ["exp", "iat"],
                },
            )
        except jwt.ExpiredSignatureError:
            return TokenVerification(TokenStatus.EXPIRED)
        except jwt.InvalidSignatureError:
            return TokenVerification(TokenStatus.INVALID_SIGNATURE)
        except jwt.InvalidTokenError as e:
            logger.debug("Malformed token", error=str(e))
            return TokenVerification(TokenStatus.MALFORMED)

        claims = self._claims_from_payload(payload)
        if claims is None:
            return TokenVerification(TokenStatus.MALFORMED)
        return TokenVerification(TokenStatus.OK, claims)

    @staticmethod
    def _claims_from_payload(payload: dict) -> Optional[TokenClaims]:
        username = payload.get("username")
        customer = payload.get("customer")
        if not isinstance(username, str) or not username:
            return None
        if not isinstance(customer, str) or not customer:
            return None
        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None
        return TokenClaims(
            username=username,
            customer=customer,
            issued_at=issued_at,
            expires_at=expires_at,
        )
