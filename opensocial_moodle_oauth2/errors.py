"""
Errors raised while resolving a bearer token to a user identity.

Each error carries the HTTP status and message the userinfo endpoint
answers with, so callers can turn any of them into a response without
a lookup table.
"""


class AuthError(Exception):
    """Base class for userinfo resolution failures."""

    status_code = 401
    message = "Unauthorized"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_response(self) -> tuple:
        """Return ``(status_code, body)`` for this error."""
        return self.status_code, {"error": self.message}


class MissingTokenError(AuthError):
    """No usable ``Authorization: Bearer`` header was presented."""

    message = "No access token provided"


class InvalidTokenError(AuthError):
    """The presented token matches nothing in the token store."""

    message = "Invalid access token"


class ExpiredTokenError(AuthError):
    """The presented token exists but its expiry has passed."""

    message = "Access token expired"


class IdentityNotFoundError(AuthError):
    """The token references a user the identity system does not know."""

    status_code = 404
    message = "User not found"
