"""
opensocial-moodle-oauth2

Single sign-on between OpenSocial (Drupal) and Moodle over OAuth2.

This package provides:
- An OAuth2 userinfo endpoint resolving bearer tokens to user claims
- Admin settings for the OpenSocial OAuth2 provider
- A Moodle authentication plugin redirecting login and logout to OpenSocial
"""

__version__ = "1.0.0"

from .plugin import OpenSocialBridgePlugin, create_app
from .blueprint import auth_bp, oauth_bp

__all__ = ["OpenSocialBridgePlugin", "create_app", "oauth_bp", "auth_bp", "__version__"]
