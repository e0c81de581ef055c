"""
User identities and their projection to OAuth2 userinfo claims.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """A user record as exposed by the OpenSocial user system."""

    user_id: str
    display_name: str
    account_name: str
    email: str
    email_verified: bool = True
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture_url: Optional[str] = None


class IdentitySystem(Protocol):
    """Lookup interface of the user record system."""

    def load(self, user_id: str) -> Optional[Identity]:
        ...


class InMemoryIdentitySystem:
    """Dict-backed identity system, keyed by user identifier."""

    def __init__(self, identities=None):
        self._identities: Dict[str, Identity] = {}
        self._lock = threading.Lock()
        for identity in identities or []:
            self.add(identity)

    def add(self, identity: Identity) -> None:
        with self._lock:
            self._identities[str(identity.user_id)] = identity

    def load(self, user_id: str) -> Optional[Identity]:
        return self._identities.get(str(user_id))


class IdentityProjector:
    """
    Map identities to the standard userinfo claim set.

    OpenSocial does not verify email addresses itself, so by default the
    projector trusts the upstream account and always reports
    ``email_verified: true``. Set ``trust_email_verified`` to False to pass
    the identity's own flag through instead.
    """

    def __init__(self, trust_email_verified: bool = True):
        self.trust_email_verified = trust_email_verified

    def project(self, identity: Identity) -> dict:
        """
        Build userinfo claims for an identity.

        Args:
            identity: The user record to describe

        Returns:
            Dictionary of claims; ``picture`` only when the user has one
        """
        claims = {
            "sub": str(identity.user_id),
            "name": identity.display_name,
            "preferred_username": identity.account_name,
            "email": identity.email,
            "email_verified": True if self.trust_email_verified else bool(identity.email_verified),
            "given_name": identity.given_name or "",
            "family_name": identity.family_name or "",
        }

        if identity.picture_url:
            claims["picture"] = identity.picture_url

        return claims
