"""
Bearer token resolution for the userinfo endpoint.

This module turns the ``Authorization`` header of a request into the
identifier of the user the token was issued to. Token issuance and
storage belong to the OAuth2 server; the resolver only reads.
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

from .errors import ExpiredTokenError, InvalidTokenError, MissingTokenError

logger = logging.getLogger(__name__)

BEARER_PATTERN = re.compile(r"^\s*Bearer\s+(.+)$", re.IGNORECASE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Token:
    """An issued access token as seen by the resolver."""

    value: str
    user_id: str
    expires_at: datetime

    def __post_init__(self):
        # Naive expiry times are taken to be UTC.
        if self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class TokenStore(Protocol):
    """Lookup interface of the token store owned by the OAuth2 server."""

    def find_by_value(self, value: str) -> Optional[Token]:
        ...


class InMemoryTokenStore:
    """Dict-backed token store, keyed by token value."""

    def __init__(self, tokens=None):
        self._tokens: Dict[str, Token] = {}
        self._lock = threading.Lock()
        for token in tokens or []:
            self.add(token)

    def add(self, token: Token) -> None:
        with self._lock:
            if token.value in self._tokens:
                raise ValueError("Token value already issued")
            self._tokens[token.value] = token

    def find_by_value(self, value: str) -> Optional[Token]:
        return self._tokens.get(value)

    def __len__(self):
        return len(self._tokens)


def extract_bearer_token(header: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Args:
        header: Raw Authorization header value, or None if absent

    Returns:
        The presented token

    Raises:
        MissingTokenError: header absent, not a Bearer header, or blank token
    """
    if not header:
        raise MissingTokenError()

    match = BEARER_PATTERN.match(header)
    if not match:
        raise MissingTokenError()

    token = match.group(1).strip()
    if not token:
        raise MissingTokenError()
    return token


def mask(token: str) -> str:
    """Shorten a token for log output."""
    return f"{token[:6]}..." if len(token) > 6 else "***"


class TokenResolver:
    """Validate presented bearer tokens against a token store."""

    def __init__(self, store: TokenStore, clock: Callable[[], datetime] = utcnow):
        """
        Initialize the resolver.

        Args:
            store: Token store providing ``find_by_value``
            clock: Returns the current time (timezone-aware)
        """
        self.store = store
        self.clock = clock

    def resolve(self, presented_token: str) -> str:
        """
        Resolve a presented token to the user identifier it was issued to.

        Raises:
            InvalidTokenError: no token with this value exists
            ExpiredTokenError: the token exists but has expired
        """
        token = self.store.find_by_value(presented_token)
        if token is None:
            logger.warning(f"Rejected unknown access token {mask(presented_token)}")
            raise InvalidTokenError()

        if token.is_expired(self.clock()):
            logger.warning(
                f"Rejected access token {mask(presented_token)} expired at "
                f"{token.expires_at.isoformat()}"
            )
            raise ExpiredTokenError()

        return token.user_id

    def resolve_header(self, header: Optional[str]) -> str:
        """Extract the bearer token from a header and resolve it."""
        return self.resolve(extract_bearer_token(header))
