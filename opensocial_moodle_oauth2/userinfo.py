"""
OAuth2 userinfo endpoint logic.

Composes token resolution, identity lookup and claim projection into a
single ``(status_code, body)`` contract that the Flask view serializes.
"""

import logging
from typing import Optional

from .errors import AuthError, IdentityNotFoundError
from .identity import IdentityProjector, IdentitySystem
from .tokens import TokenResolver

logger = logging.getLogger(__name__)


class UserinfoEndpoint:
    """Answer userinfo requests for bearer tokens."""

    def __init__(
        self,
        resolver: TokenResolver,
        identities: IdentitySystem,
        projector: Optional[IdentityProjector] = None,
    ):
        self.resolver = resolver
        self.identities = identities
        self.projector = projector or IdentityProjector()

    def claims_for(self, authorization: Optional[str]) -> dict:
        """
        Return the claims for the user behind an Authorization header.

        Raises:
            AuthError: any resolution failure, including unknown users
        """
        user_id = self.resolver.resolve_header(authorization)

        identity = self.identities.load(user_id)
        if identity is None:
            # The token store and the user system disagree; reported as 404.
            logger.warning(f"Access token references missing user {user_id}")
            raise IdentityNotFoundError()

        return self.projector.project(identity)

    def handle(self, authorization: Optional[str]) -> tuple:
        """
        Handle a userinfo request.

        Args:
            authorization: Value of the request's Authorization header

        Returns:
            Tuple of (status_code, JSON-serializable body)
        """
        try:
            claims = self.claims_for(authorization)
        except AuthError as e:
            logger.debug(f"Userinfo request rejected: {e.message}")
            return e.to_response()

        logger.info(f"Served userinfo for user {claims['sub']}")
        return 200, claims
