"""
Flask CLI commands for the OpenSocial / Moodle OAuth2 bridge.

These commands help with setup, debugging, and maintenance of the
OAuth2 integration between both sites.
"""

import click
from flask import current_app
from flask.cli import with_appcontext

from .config import BridgeConfig, ProviderConfig, endpoint_urls

# Moodle's redirect URI for every OAuth2 issuer
MOODLE_CALLBACK_PATH = "/admin/oauth2callback.php"


def get_plugin():
    return current_app.extensions["opensocial_bridge"]


@click.group("opensocial")
def opensocial_cli():
    """OpenSocial / Moodle OAuth2 bridge management commands."""
    pass


@opensocial_cli.command("show-config")
@with_appcontext
def show_config():
    """Display current bridge configuration."""
    plugin = get_plugin()
    config: BridgeConfig = plugin.config
    settings = plugin.settings.load()

    click.echo("=== OpenSocial Provider ===")
    click.echo(f"Base URL: {config.provider.base_url}")
    click.echo(f"Moodle URL: {settings.moodle_url or 'Not configured'}")
    click.echo(f"Auto Provisioning: {settings.enable_auto_provisioning}")
    click.echo(f"Trust Email Verified: {config.provider.trust_email_verified}")
    click.echo(f"Settings File: {config.provider.settings_file or 'In memory'}")

    click.echo("\n=== Moodle Auth Plugin ===")
    click.echo(f"OpenSocial URL: {config.auth.opensocial_url or 'Not configured'}")
    click.echo(f"Auto Redirect: {config.auth.autoredirect}")
    click.echo(f"Issuer ID: {config.auth.issuerid}")
    click.echo(f"Moodle wwwroot: {config.auth.site_url}")

    click.echo("\n=== OAuth2 Issuer ===")
    click.echo(f"Name: {config.issuer.name}")
    click.echo(f"Enabled: {config.issuer.enabled}")
    click.echo(f"Scope: {config.issuer.scope}")
    click.echo(f"Client ID: {config.issuer.client_id[:8] + '...' if config.issuer.client_id else 'Not configured'}")
    click.echo(f"Client Secret: {'Configured' if config.issuer.client_secret else 'Not configured'}")


@opensocial_cli.command("show-endpoints")
@click.option("--base-url", default=None, help="OpenSocial base URL")
def show_endpoints(base_url):
    """Show the OAuth2 endpoints to enter in Moodle's issuer settings."""
    base_url = base_url or ProviderConfig.from_env().base_url

    click.echo(f"=== OAuth2 Endpoints for {base_url} ===\n")
    for name, url in endpoint_urls(base_url).items():
        click.echo(f"{name}: {url}")

    click.echo("\n=== Field Mappings ===")
    click.echo("  sub -> idnumber")
    click.echo("  email -> email")
    click.echo("  preferred_username -> username")
    click.echo("  given_name -> firstname")
    click.echo("  family_name -> lastname")


@opensocial_cli.command("validate-config")
@with_appcontext
def validate_config():
    """Validate the current configuration."""
    plugin = get_plugin()
    config: BridgeConfig = plugin.config
    errors = list(plugin.auth_plugin.validate())
    warnings = []

    if not config.issuer.client_id:
        errors.append("OAUTH2_CLIENT_ID not configured")
    if not config.issuer.client_secret:
        errors.append("OAUTH2_CLIENT_SECRET not configured")

    if not plugin.settings.load().moodle_url:
        warnings.append("Moodle URL not set in provider settings")
    if not config.auth.autoredirect:
        warnings.append("Auto-redirect is off; users must pick OpenSocial on the login page")

    if warnings:
        click.echo("=== Warnings ===")
        for warning in warnings:
            click.echo(f"  ! {warning}")

    if errors:
        click.echo("\n=== Errors ===")
        for error in errors:
            click.echo(f"  x {error}")
        click.echo(f"\nConfiguration validation failed with {len(errors)} error(s)")
        return

    click.echo("\n[OK] Configuration is valid!")


@opensocial_cli.command("authorize-url")
@with_appcontext
def authorize_url():
    """Print the authorization URL Moodle sends users to."""
    from authlib.integrations.httpx_client import OAuth2Client

    config: BridgeConfig = get_plugin().config
    base_url = config.issuer_base_url()
    endpoints = endpoint_urls(base_url)

    with OAuth2Client(
        client_id=config.issuer.client_id,
        client_secret=config.issuer.client_secret,
        scope=config.issuer.scope,
        redirect_uri=config.auth.site_url.rstrip("/") + MOODLE_CALLBACK_PATH,
    ) as client:
        url, _ = client.create_authorization_url(endpoints["authorization_endpoint"])

    click.echo(url)


@opensocial_cli.command("userinfo")
@click.option("--token", required=True, help="Access token to look up")
@with_appcontext
def userinfo(token):
    """Fetch userinfo claims from OpenSocial for an access token."""
    import httpx

    url = endpoint_urls(get_plugin().config.issuer_base_url())["userinfo_endpoint"]

    try:
        with httpx.Client() as client:
            resp = client.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=10)
    except httpx.HTTPError as e:
        click.echo(f"[FAIL] Userinfo request failed: {e}", err=True)
        return

    try:
        data = resp.json()
    except ValueError:
        click.echo(f"[FAIL] {resp.status_code}: {resp.text[:200]}", err=True)
        return

    if resp.status_code != 200:
        error = data.get("error", "Unknown error") if isinstance(data, dict) else data
        click.echo(f"[FAIL] {resp.status_code}: {error}", err=True)
        return

    click.echo("=== Userinfo Claims ===")
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


@opensocial_cli.command("test-connection")
@with_appcontext
def test_connection():
    """Test connectivity to the OpenSocial OAuth2 endpoints."""
    import httpx

    base_url = get_plugin().config.issuer_base_url()
    endpoints = endpoint_urls(base_url)

    click.echo(f"=== Testing OpenSocial OAuth2 Endpoints at {base_url} ===\n")

    with httpx.Client() as client:
        try:
            client.head(endpoints["authorization_endpoint"], follow_redirects=True, timeout=10)
            click.echo(f"[OK] Authorization URL reachable: {endpoints['authorization_endpoint']}")
        except httpx.HTTPError as e:
            click.echo(f"[FAIL] Authorization URL: {e}")

        # Without a token the userinfo endpoint must refuse the request
        try:
            resp = client.get(endpoints["userinfo_endpoint"], timeout=10)
            if resp.status_code == 401:
                click.echo(f"[OK] Userinfo URL reachable: {endpoints['userinfo_endpoint']}")
            else:
                click.echo(f"[FAIL] Userinfo URL answered {resp.status_code} without a token")
        except httpx.HTTPError as e:
            click.echo(f"[FAIL] Userinfo URL: {e}")
