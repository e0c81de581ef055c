"""
Pytest configuration and fixtures for the OpenSocial / Moodle bridge tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from opensocial_moodle_oauth2 import create_app
from opensocial_moodle_oauth2.auth_plugin import InMemoryIssuerRegistry, Issuer
from opensocial_moodle_oauth2.config import (
    AuthPluginConfig,
    BridgeConfig,
    IssuerConfig,
    ProviderConfig,
)
from opensocial_moodle_oauth2.identity import Identity, InMemoryIdentitySystem
from opensocial_moodle_oauth2.tokens import InMemoryTokenStore, Token

NOW = datetime(2025, 11, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def identity():
    return Identity(
        user_id="42",
        display_name="Ada Lovelace",
        account_name="ada",
        email="ada@example.com",
        given_name="Ada",
        family_name="Lovelace",
        picture_url="https://opensocial.example.com/files/ada.png",
    )


@pytest.fixture
def identities(identity):
    return InMemoryIdentitySystem([identity])


@pytest.fixture
def token_store():
    """Tokens: one valid, one expired, one pointing at a deleted user."""
    return InMemoryTokenStore([
        Token(value="valid-token", user_id="42", expires_at=NOW + timedelta(hours=1)),
        Token(value="abc123", user_id="42", expires_at=NOW - timedelta(seconds=10)),
        Token(value="orphan-token", user_id="999", expires_at=NOW + timedelta(hours=1)),
    ])


@pytest.fixture
def issuers():
    return InMemoryIssuerRegistry([
        Issuer(id=3, name="OpenSocial", base_url="https://opensocial.example.com"),
        Issuer(id=4, name="Retired", base_url="https://old.example.com", enabled=False),
    ])


@pytest.fixture
def config(tmp_path):
    """Create a test configuration."""
    return BridgeConfig(
        provider=ProviderConfig(
            base_url="https://opensocial.example.com",
            settings_file=str(tmp_path / "settings.json"),
        ),
        auth=AuthPluginConfig(
            opensocial_url="https://opensocial.example.com/",
            autoredirect=True,
            issuerid=3,
            site_url="https://moodle.example.com",
        ),
        issuer=IssuerConfig(client_id="moodle-client", client_secret="s3cret"),
    )


@pytest.fixture
def app(config, token_store, identities, issuers, clock):
    """Create test app."""
    app = create_app(
        config,
        token_store=token_store,
        identities=identities,
        issuers=issuers,
        clock=clock,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
