"""
Tests for the Moodle authentication plugin and its lifecycle hooks.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from opensocial_moodle_oauth2.auth_plugin import (
    ERROR_ISSUER_DISABLED,
    ERROR_NO_ISSUER,
    ERROR_OPENSOCIAL_URL,
    NOOP,
    InMemoryIssuerRegistry,
    OpenSocialAuthPlugin,
    process_config,
)
from opensocial_moodle_oauth2.config import AuthPluginConfig, IssuerConfig


@pytest.fixture
def plugin(config, issuers):
    return OpenSocialAuthPlugin(config.auth, issuers)


def test_capabilities(plugin):
    assert plugin.authtype == "opensocial"
    assert plugin.user_login("ada", "secret") is False
    assert plugin.can_change_password() is False
    assert plugin.change_password_url() is None
    assert plugin.can_edit_profile() is False
    assert plugin.user_update({}, {}) is True
    assert plugin.sync_roles({}) is True


def test_hooks_are_ordered(plugin):
    assert [name for name, _ in plugin.hooks] == ["loginpage", "postlogout"]


def test_loginpage_redirects_to_issuer(plugin):
    action = plugin.loginpage_hook(wantsurl="https://moodle.example.com/course/view.php?id=2")

    assert action.is_redirect
    url = urlparse(action.redirect_url)
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://moodle.example.com/auth/oauth2/login.php"
    assert parse_qs(url.query) == {
        "id": ["3"],
        "wantsurl": ["https://moodle.example.com/course/view.php?id=2"],
    }


def test_loginpage_without_wantsurl(plugin):
    action = plugin.loginpage_hook()
    assert action.redirect_url == "https://moodle.example.com/auth/oauth2/login.php?id=3&wantsurl="


def test_loginpage_noop_without_autoredirect(config, issuers):
    plugin = OpenSocialAuthPlugin(process_config({"issuerid": 3}, base=config.auth), issuers)
    assert plugin.loginpage_hook() == NOOP


@pytest.mark.parametrize("issuerid", [4, 99])
def test_loginpage_noop_for_disabled_or_unknown_issuer(config, issuers, issuerid):
    auth = process_config({"autoredirect": 1, "issuerid": issuerid}, base=config.auth)
    assert OpenSocialAuthPlugin(auth, issuers).loginpage_hook() == NOOP


def test_postlogout_redirects_to_opensocial(plugin):
    action = plugin.postlogout_hook(user={"id": 42})
    assert action.redirect_url == "https://opensocial.example.com/user/logout"


def test_postlogout_noop_without_url(issuers):
    plugin = OpenSocialAuthPlugin(AuthPluginConfig(), issuers)
    assert plugin.postlogout_hook() == NOOP


def test_unknown_hook(plugin):
    with pytest.raises(KeyError):
        plugin.run_hook("prelogin")


def test_process_config_defaults():
    config = process_config({})

    assert config.opensocial_url == ""
    assert config.autoredirect is False
    assert config.issuerid == 0


def test_process_config_trims_and_coerces(plugin):
    config = plugin.process_config({
        "opensocial_url": "  https://social.example.com  ",
        "autoredirect": "1",
        "issuerid": "4",
    })

    assert config.opensocial_url == "https://social.example.com"
    assert config.autoredirect is True
    assert config.issuerid == 4
    assert config.site_url == "https://moodle.example.com"
    assert plugin.config is config


def test_validate(plugin, issuers):
    assert plugin.validate() == []

    plugin.process_config({"issuerid": 4})
    assert plugin.validate() == [ERROR_OPENSOCIAL_URL, ERROR_ISSUER_DISABLED]

    plugin.process_config({"opensocial_url": "https://social.example.com", "issuerid": 99})
    assert plugin.validate() == [ERROR_NO_ISSUER]


def test_registry_from_config():
    auth = AuthPluginConfig(opensocial_url="https://social.example.com", issuerid=5)
    registry = InMemoryIssuerRegistry.from_config(auth, IssuerConfig(name="Social", enabled=False))

    issuer = registry.get_issuer(5)
    assert issuer.name == "Social"
    assert issuer.base_url == "https://social.example.com"
    assert issuer.enabled is False
    assert InMemoryIssuerRegistry.from_config(AuthPluginConfig(), IssuerConfig()).get_issuer(0) is None


def test_login_route_redirects(client):
    response = client.get("/auth/login?wantsurl=/my/")

    assert response.status_code == 302
    assert response.headers["Location"].startswith("https://moodle.example.com/auth/oauth2/login.php?id=3")


def test_login_route_without_autoredirect(app, client):
    plugin = app.extensions["opensocial_bridge"].auth_plugin
    plugin.process_config({"opensocial_url": "https://opensocial.example.com", "issuerid": 3})

    response = client.get("/auth/login")

    assert response.status_code == 200
    assert response.get_json()["redirect"] is False


def test_logout_route(client):
    with client.session_transaction() as session:
        session["user"] = {"id": 42}

    response = client.get("/auth/logout")

    assert response.status_code == 302
    assert response.headers["Location"] == "https://opensocial.example.com/user/logout"
    with client.session_transaction() as session:
        assert "user" not in session


def test_logout_route_falls_back_to_frontend(app, client):
    app.extensions["opensocial_bridge"].auth_plugin.process_config({"issuerid": 3})

    response = client.get("/auth/logout")

    assert response.status_code == 302
    assert response.headers["Location"] == "/"


def test_auth_info(client):
    data = client.get("/auth/info").get_json()

    assert data == {
        "auth": "opensocial",
        "opensocial_url": "https://opensocial.example.com/",
        "issuer": "OpenSocial",
        "issuer_url": "https://opensocial.example.com",
        "autoredirect": True,
        "configured": True,
    }
