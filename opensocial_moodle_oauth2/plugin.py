"""
Flask extension wiring the OpenSocial / Moodle OAuth2 bridge together.

The token store, identity system and issuer registry are handed in by the
host; when omitted, empty in-memory implementations are used.
"""

import logging
import os
import secrets

from flask import Flask
from flask_smorest import Api

from .auth_plugin import InMemoryIssuerRegistry, IssuerRegistry, OpenSocialAuthPlugin
from .blueprint import auth_bp, oauth_bp
from .cli import opensocial_cli
from .config import BridgeConfig
from .identity import IdentityProjector, IdentitySystem, InMemoryIdentitySystem
from .settings import SettingsStore
from .tokens import InMemoryTokenStore, TokenResolver, TokenStore, utcnow
from .userinfo import UserinfoEndpoint

logger = logging.getLogger(__name__)


class OpenSocialBridgePlugin:
    """
    OpenSocial / Moodle OAuth2 bridge extension.

    Serves the OpenSocial userinfo endpoint and the provider settings,
    and runs the Moodle authentication plugin hooks.
    """

    def __init__(self, app: Flask = None, **kwargs):
        """
        Initialize the plugin.

        Args:
            app: Flask application instance (optional, can call init_app later)
            **kwargs: Collaborators passed on to init_app
        """
        self.app = app
        self.config: BridgeConfig = None
        self.userinfo: UserinfoEndpoint = None
        self.settings: SettingsStore = None
        self.auth_plugin: OpenSocialAuthPlugin = None

        if app is not None:
            self.init_app(app, **kwargs)

    def init_app(
        self,
        app: Flask,
        config: BridgeConfig = None,
        token_store: TokenStore = None,
        identities: IdentitySystem = None,
        issuers: IssuerRegistry = None,
        clock=utcnow,
    ):
        """
        Initialize the plugin with a Flask application.

        Args:
            app: Flask application instance
            config: Bridge configuration (read from the environment if None)
            token_store: Store of issued access tokens
            identities: User record system
            issuers: Moodle OAuth2 issuer records
            clock: Current time source for token expiry checks
        """
        self.app = app
        self.config = config or BridgeConfig.from_env()

        if token_store is None:
            logger.warning("No token store given, every access token will be rejected")
            token_store = InMemoryTokenStore()
        if identities is None:
            identities = InMemoryIdentitySystem()
        if issuers is None:
            issuers = InMemoryIssuerRegistry.from_config(self.config.auth, self.config.issuer)

        resolver = TokenResolver(token_store, clock=clock)
        self.userinfo = UserinfoEndpoint(
            resolver,
            identities,
            IdentityProjector(trust_email_verified=self.config.provider.trust_email_verified),
        )
        self.settings = SettingsStore.from_config(self.config.provider)
        self.auth_plugin = OpenSocialAuthPlugin(self.config.auth, issuers)

        app.extensions["opensocial_bridge"] = self
        app.cli.add_command(opensocial_cli)

        logger.info("OpenSocial OAuth2 bridge initialized")
        logger.info(f"OpenSocial base URL: {self.config.provider.base_url}")
        for problem in self.auth_plugin.validate():
            logger.warning(f"Moodle auth plugin: {problem}")

    def get_blueprints(self):
        """Return the Flask blueprints of this extension."""
        return [oauth_bp, auth_bp]

    def get_config(self):
        """
        Return Flask configuration defaults needed by the blueprints.
        """
        return {
            "API_TITLE": self.get_name(),
            "API_VERSION": self.get_version(),
            "OPENAPI_VERSION": "3.0.3",
            "API_SPEC_OPTIONS": {"info": {"description": self.get_description()}},
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
        }

    @staticmethod
    def get_name() -> str:
        """Return the plugin name."""
        return "opensocial-moodle-oauth2"

    @staticmethod
    def get_version() -> str:
        """Return the plugin version."""
        from . import __version__
        return __version__

    @staticmethod
    def get_description() -> str:
        """Return the plugin description."""
        return "OAuth2 single sign-on between OpenSocial and Moodle"


def create_app(config: BridgeConfig = None, **kwargs) -> Flask:
    """
    Create a Flask application serving the bridge.

    Args:
        config: Bridge configuration (read from the environment if None)
        **kwargs: Collaborators passed to OpenSocialBridgePlugin.init_app
    """
    app = Flask(__name__)
    plugin = OpenSocialBridgePlugin()

    app.config.update(plugin.get_config())

    secret_key = os.environ.get("SECRET_KEY")
    if not secret_key:
        logger.warning("SECRET_KEY not set. Sessions will not persist across restarts.")
        secret_key = secrets.token_hex(32)
    app.config["SECRET_KEY"] = secret_key

    plugin.init_app(app, config=config, **kwargs)

    api = Api(app)
    for bp in plugin.get_blueprints():
        api.register_blueprint(bp)

    return app
