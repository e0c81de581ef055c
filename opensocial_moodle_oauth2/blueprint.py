"""
Flask blueprints for the OpenSocial / Moodle OAuth2 bridge.

OpenSocial (provider) side, under /oauth:
- GET /oauth/userinfo - Claims for the user behind a bearer token
- GET /oauth/endpoints - OAuth2 endpoint URLs to configure in Moodle
- GET /oauth/settings - Current provider settings
- POST /oauth/settings - Update provider settings

Moodle (client) side, under /auth:
- GET /auth/login - Run the login page hook
- GET /auth/logout - Clear session and run the post-logout hook
- GET /auth/info - Describe the configured issuer
"""

import logging

from flask import current_app, jsonify, redirect, request, session
from flask_smorest import Blueprint
from marshmallow import ValidationError

from .config import endpoint_urls

logger = logging.getLogger(__name__)

oauth_bp = Blueprint(
    "opensocial_oauth",
    __name__,
    url_prefix="/oauth",
    description="OpenSocial OAuth2 provider endpoints"
)

auth_bp = Blueprint(
    "opensocial_auth",
    __name__,
    url_prefix="/auth",
    description="Moodle authentication plugin endpoints"
)


def get_plugin():
    """Return the bridge plugin registered on the current app."""
    return current_app.extensions["opensocial_bridge"]


@oauth_bp.route("/userinfo", methods=["GET"])
def userinfo():
    """
    Return OAuth2 userinfo claims for the presented access token.

    Headers:
        Authorization: Bearer <access token>
    """
    status, body = get_plugin().userinfo.handle(request.headers.get("Authorization"))
    return jsonify(body), status


@oauth_bp.route("/endpoints", methods=["GET"])
def endpoints():
    """List the OAuth2 endpoints Moodle must be configured with."""
    return jsonify(endpoint_urls(get_plugin().config.provider.base_url))


@oauth_bp.route("/settings", methods=["GET"])
def get_settings():
    settings = get_plugin().settings.load()
    return jsonify({
        "moodle_url": settings.moodle_url,
        "enable_auto_provisioning": settings.enable_auto_provisioning,
    })


@oauth_bp.route("/settings", methods=["POST"])
def update_settings():
    """
    Update provider settings.

    Request body:
        {
            "moodle_url": "https://moodle.example.com",
            "enable_auto_provisioning": true
        }
    """
    data = request.get_json(silent=True)

    if not isinstance(data, dict):
        return jsonify({"error": "Missing request body"}), 400

    try:
        settings = get_plugin().settings.update(data)
    except ValidationError as e:
        logger.warning(f"Rejected provider settings: {e.messages}")
        return jsonify({"error": "Invalid settings", "messages": e.messages}), 400

    return jsonify({
        "moodle_url": settings.moodle_url,
        "enable_auto_provisioning": settings.enable_auto_provisioning,
    })


@auth_bp.route("/login")
def login():
    """
    Run the login page hook.

    Query Parameters:
        wantsurl: URL to return to after login (optional)
    """
    wantsurl = request.args.get("wantsurl", session.get("wantsurl", ""))
    action = get_plugin().auth_plugin.loginpage_hook(wantsurl=wantsurl)

    if action.is_redirect:
        return redirect(action.redirect_url)

    return jsonify({
        "redirect": False,
        "message": "Auto-redirect is off; use the Moodle login form",
    })


@auth_bp.route("/logout")
def logout():
    """
    Logout, clear session and forward the logout to OpenSocial.
    """
    plugin = get_plugin()
    user = session.get("user")

    if session:
        session.clear()

    action = plugin.auth_plugin.postlogout_hook(user=user)

    logger.info("User logged out")
    return redirect(action.redirect_url or plugin.auth_plugin.config.frontend_url)


@auth_bp.route("/info")
def auth_info():
    """
    Return information about the configured OpenSocial issuer.

    This endpoint can be used by the frontend to display login options.
    """
    auth_plugin = get_plugin().auth_plugin
    config = auth_plugin.config
    issuer = auth_plugin.issuers.get_issuer(config.issuerid)

    return jsonify({
        "auth": auth_plugin.authtype,
        "opensocial_url": config.opensocial_url,
        "issuer": issuer.name if issuer else None,
        "issuer_url": issuer.base_url if issuer else None,
        "autoredirect": config.autoredirect,
        "configured": not auth_plugin.validate(),
    })
