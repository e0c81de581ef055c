"""
Configuration management for the OpenSocial / Moodle OAuth2 bridge.

This module loads the settings of both halves of the bridge from the
environment: the OpenSocial side that serves the userinfo endpoint, and
the Moodle side whose authentication plugin redirects to OpenSocial.
"""

import os
from dataclasses import dataclass, field

# Paths served by the OpenSocial OAuth2 provider (Simple OAuth).
AUTHORIZATION_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"
USERINFO_PATH = "/oauth/userinfo"


def env_flag(name: str, default: str) -> bool:
    """Read a boolean flag from the environment."""
    return os.environ.get(name, default).strip().lower() in ("true", "1", "yes")


def endpoint_urls(base_url: str) -> dict:
    """
    Build the OAuth2 endpoint URLs exposed by an OpenSocial installation.

    Args:
        base_url: Base URL of the OpenSocial site, e.g. https://opensocial.example.com

    Returns:
        Dictionary with authorization, token and userinfo endpoint URLs
    """
    base = base_url.strip().rstrip("/")
    return {
        "authorization_endpoint": f"{base}{AUTHORIZATION_PATH}",
        "token_endpoint": f"{base}{TOKEN_PATH}",
        "userinfo_endpoint": f"{base}{USERINFO_PATH}",
    }


@dataclass
class ProviderConfig:
    """OpenSocial (OAuth2 provider) side configuration."""

    # Public base URL of the OpenSocial installation
    base_url: str = "http://localhost:5000"

    # Defaults for the admin settings form
    moodle_url: str = ""
    enable_auto_provisioning: bool = True

    # Assert email_verified=true without asking the identity system
    trust_email_verified: bool = True

    # Where saved settings are kept; empty means in memory only
    settings_file: str = ""

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Create configuration from environment variables."""
        return cls(
            base_url=os.environ.get("OPENSOCIAL_BASE_URL", "http://localhost:5000"),
            moodle_url=os.environ.get("OPENSOCIAL_MOODLE_URL", ""),
            enable_auto_provisioning=env_flag("OPENSOCIAL_AUTO_PROVISIONING", "true"),
            trust_email_verified=env_flag("OPENSOCIAL_TRUST_EMAIL_VERIFIED", "true"),
            settings_file=os.environ.get("OPENSOCIAL_SETTINGS_FILE", ""),
        )


@dataclass(frozen=True)
class AuthPluginConfig:
    """
    Moodle authentication plugin configuration.

    Instances are immutable snapshots handed to the lifecycle hooks.
    """

    opensocial_url: str = ""
    autoredirect: bool = False
    issuerid: int = 0

    # Moodle wwwroot, used to build the auth/oauth2 login URL
    site_url: str = "http://localhost"

    # Where to send users after logout when no OpenSocial URL is set
    frontend_url: str = "/"

    @classmethod
    def from_env(cls) -> "AuthPluginConfig":
        """Create configuration from environment variables."""
        return cls(
            opensocial_url=os.environ.get("MOODLE_OPENSOCIAL_URL", "").strip(),
            autoredirect=env_flag("MOODLE_AUTOREDIRECT", "false"),
            issuerid=int(os.environ.get("MOODLE_ISSUER_ID", "0") or 0),
            site_url=os.environ.get("MOODLE_WWWROOT", "http://localhost"),
            frontend_url=os.environ.get("MOODLE_FRONTEND_URL", "/"),
        )


@dataclass
class IssuerConfig:
    """OAuth2 issuer registered in Moodle for the OpenSocial site."""

    name: str = "OpenSocial"
    enabled: bool = True
    client_id: str = ""
    client_secret: str = ""
    scope: str = "openid email profile"

    @classmethod
    def from_env(cls) -> "IssuerConfig":
        """Create configuration from environment variables."""
        return cls(
            name=os.environ.get("MOODLE_ISSUER_NAME", "OpenSocial"),
            enabled=env_flag("MOODLE_ISSUER_ENABLED", "true"),
            client_id=os.environ.get("OAUTH2_CLIENT_ID", ""),
            client_secret=os.environ.get("OAUTH2_CLIENT_SECRET", ""),
            scope=os.environ.get("OAUTH2_SCOPE", "openid email profile"),
        )


@dataclass
class BridgeConfig:
    """Overall bridge configuration."""

    provider: ProviderConfig = field(default_factory=ProviderConfig.from_env)
    auth: AuthPluginConfig = field(default_factory=AuthPluginConfig.from_env)
    issuer: IssuerConfig = field(default_factory=IssuerConfig.from_env)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Create configuration from environment variables."""
        return cls(
            provider=ProviderConfig.from_env(),
            auth=AuthPluginConfig.from_env(),
            issuer=IssuerConfig.from_env(),
        )

    def issuer_base_url(self) -> str:
        """Return the OpenSocial base URL the Moodle issuer points at."""
        return self.auth.opensocial_url or self.provider.base_url
