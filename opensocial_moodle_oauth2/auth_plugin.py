"""
OpenSocial OAuth2 authentication plugin for Moodle.

The plugin never checks passwords itself. Login is delegated to the OAuth2
issuer registered for the OpenSocial site, and logout is forwarded to
OpenSocial so both sites end the session together.

Lifecycle hooks are plain functions of an immutable configuration snapshot
and a request context. They return an :class:`Action` for the host's
request pipeline to carry out.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from authlib.common.urls import add_params_to_uri

from .config import AuthPluginConfig, IssuerConfig

logger = logging.getLogger(__name__)

AUTH_TYPE = "opensocial"

# Path of Moodle's core OAuth2 login handler
OAUTH2_LOGIN_PATH = "/auth/oauth2/login.php"

# Path of the Drupal logout route on the OpenSocial site
OPENSOCIAL_LOGOUT_PATH = "/user/logout"

ERROR_NO_ISSUER = (
    "OAuth2 issuer not configured. Please configure an issuer in "
    "Site administration > Server > OAuth2 services"
)
ERROR_ISSUER_DISABLED = "OAuth2 issuer is disabled"
ERROR_OPENSOCIAL_URL = "OpenSocial URL is not configured"


@dataclass(frozen=True)
class Action:
    """What the host should do after a hook ran: nothing, or redirect."""

    redirect_url: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_url is not None


NOOP = Action()


def redirect_to(url: str) -> Action:
    return Action(redirect_url=url)


@dataclass(frozen=True)
class Issuer:
    """An OAuth2 service registered in Moodle."""

    id: int
    name: str
    base_url: str
    enabled: bool = True


class IssuerRegistry(Protocol):
    """Lookup interface of Moodle's OAuth2 issuer records."""

    def get_issuer(self, issuer_id: int) -> Optional[Issuer]:
        ...


class InMemoryIssuerRegistry:
    """Issuer records kept in a dict."""

    def __init__(self, issuers=None):
        self._issuers: Dict[int, Issuer] = {}
        for issuer in issuers or []:
            self.add(issuer)

    @classmethod
    def from_config(cls, auth: AuthPluginConfig, issuer: IssuerConfig) -> "InMemoryIssuerRegistry":
        """Register the configured OpenSocial issuer, if it has an id."""
        registry = cls()
        if auth.issuerid:
            registry.add(Issuer(
                id=auth.issuerid,
                name=issuer.name,
                base_url=auth.opensocial_url,
                enabled=issuer.enabled,
            ))
        return registry

    def add(self, issuer: Issuer) -> None:
        self._issuers[int(issuer.id)] = issuer

    def get_issuer(self, issuer_id: int) -> Optional[Issuer]:
        return self._issuers.get(int(issuer_id))


@dataclass(frozen=True)
class HookContext:
    """Request data a lifecycle hook may look at."""

    issuers: IssuerRegistry
    wantsurl: str = ""
    user: Optional[Mapping] = None


Hook = Callable[[AuthPluginConfig, HookContext], Action]


def loginpage_hook(config: AuthPluginConfig, context: HookContext) -> Action:
    """Send users straight to the OpenSocial issuer when auto-redirect is on."""
    if not config.autoredirect:
        return NOOP

    issuer = context.issuers.get_issuer(config.issuerid)
    if issuer is None:
        logger.warning(f"Auto-redirect enabled but issuer {config.issuerid} does not exist")
        return NOOP
    if not issuer.enabled:
        logger.warning(f"Auto-redirect enabled but issuer {issuer.id} is disabled")
        return NOOP

    url = add_params_to_uri(
        config.site_url.rstrip("/") + OAUTH2_LOGIN_PATH,
        [("id", str(issuer.id)), ("wantsurl", context.wantsurl or "")],
    )
    logger.info(f"Redirecting login to OAuth2 issuer {issuer.name}")
    return redirect_to(url)


def postlogout_hook(config: AuthPluginConfig, context: HookContext) -> Action:
    """Forward the logout to OpenSocial when its URL is configured."""
    if not config.opensocial_url:
        return NOOP

    logout_url = config.opensocial_url.rstrip("/") + OPENSOCIAL_LOGOUT_PATH
    logger.info("Redirecting logout to OpenSocial")
    return redirect_to(logout_url)


LIFECYCLE_HOOKS: List[Tuple[str, Hook]] = [
    ("loginpage", loginpage_hook),
    ("postlogout", postlogout_hook),
]


def as_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def process_config(raw: Mapping, base: Optional[AuthPluginConfig] = None) -> AuthPluginConfig:
    """
    Turn submitted settings into a configuration snapshot.

    Missing values fall back to an empty OpenSocial URL, auto-redirect off
    and issuer 0. The URL is trimmed.

    Args:
        raw: Submitted settings (opensocial_url, autoredirect, issuerid)
        base: Snapshot providing the remaining fields

    Returns:
        New immutable configuration
    """
    base = base or AuthPluginConfig()
    issuerid = raw.get("issuerid")
    return replace(
        base,
        opensocial_url=str(raw.get("opensocial_url") or "").strip(),
        autoredirect=as_flag(raw.get("autoredirect", 0)),
        issuerid=int(issuerid) if issuerid not in (None, "") else 0,
    )


class OpenSocialAuthPlugin:
    """
    Moodle authentication plugin delegating to OpenSocial.

    Args:
        config: Configuration snapshot
        issuers: Registry of Moodle OAuth2 issuers
    """

    authtype = AUTH_TYPE

    def __init__(self, config: AuthPluginConfig, issuers: IssuerRegistry):
        self.config = config
        self.issuers = issuers
        self.hooks: List[Tuple[str, Hook]] = list(LIFECYCLE_HOOKS)

    def user_login(self, username: str, password: str) -> bool:
        # Authentication happens at the OAuth2 issuer, never by password.
        return False

    def can_change_password(self) -> bool:
        return False

    def change_password_url(self) -> Optional[str]:
        return None

    def can_edit_profile(self) -> bool:
        return False

    def user_update(self, olduser, newuser) -> bool:
        return True

    def sync_roles(self, user) -> bool:
        return True

    def process_config(self, raw: Mapping) -> AuthPluginConfig:
        """Apply submitted settings and keep the new snapshot."""
        self.config = process_config(raw, base=self.config)
        logger.info(
            f"Saved auth_{AUTH_TYPE} settings: opensocial_url={self.config.opensocial_url!r}, "
            f"autoredirect={self.config.autoredirect}, issuerid={self.config.issuerid}"
        )
        return self.config

    def run_hook(self, name: str, wantsurl: str = "", user: Optional[Mapping] = None) -> Action:
        """
        Run a named lifecycle hook.

        Raises:
            KeyError: no hook is registered under this name
        """
        hook = dict(self.hooks)[name]
        context = HookContext(issuers=self.issuers, wantsurl=wantsurl, user=user)
        action = hook(self.config, context)
        logger.debug(f"Hook {name} returned {action}")
        return action

    def loginpage_hook(self, wantsurl: str = "") -> Action:
        return self.run_hook("loginpage", wantsurl=wantsurl)

    def postlogout_hook(self, user: Optional[Mapping] = None) -> Action:
        return self.run_hook("postlogout", user=user)

    def validate(self) -> List[str]:
        """Return configuration problems, empty when the plugin is usable."""
        errors = []
        if not self.config.opensocial_url:
            errors.append(ERROR_OPENSOCIAL_URL)

        issuer = self.issuers.get_issuer(self.config.issuerid)
        if issuer is None:
            errors.append(ERROR_NO_ISSUER)
        elif not issuer.enabled:
            errors.append(ERROR_ISSUER_DISABLED)
        return errors
