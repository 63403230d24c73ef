"""
Flask blueprint for bearer token validation.

This blueprint provides the following endpoints:
- POST /auth/verify - Validate a bearer token and return user and roles
- GET /auth/info - Describe the configured verification modes
"""

import logging

from flask import current_app, jsonify, request
from flask_smorest import Blueprint

from .errors import AuthenticationDenied

logger = logging.getLogger(__name__)

# Create the blueprint using flask_smorest Blueprint
introspection_bp = Blueprint(
    "introspection_auth",
    __name__,
    url_prefix="/auth",
    description="OAuth2 token introspection endpoints"
)


def get_plugin():
    """Get the plugin attached to the current application."""
    return current_app.extensions["introspection_auth"]


def get_bearer_token():
    """
    Read the token from the Authorization header or the JSON body.

    Returns:
        Token string or None
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    data = request.get_json(silent=True)
    if isinstance(data, dict) and isinstance(data.get("token"), str) and data["token"]:
        return data["token"]
    return None


@introspection_bp.route("/verify", methods=["POST"])
def verify():
    """
    Validate a bearer token.

    Request:
        Authorization: Bearer <token>
        or body {"token": "<token>"}

    Returns:
        JSON with username and roles, or error
    """
    token = get_bearer_token()
    if not token:
        return jsonify({"error": "Missing token"}), 400

    try:
        auth_info = get_plugin().authenticate_and_authorize(token)
    except AuthenticationDenied as e:
        response = jsonify({
            "error": "Authentication failed",
            "message": e.message,
            "kind": e.kind.value,
        })
        response.headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
        return response, 401

    return jsonify({
        "username": auth_info.username,
        "roles": sorted(auth_info.roles),
    })


@introspection_bp.route("/info")
def auth_info():
    """
    Return information about the configured verification modes.

    The client secret is never included.
    """
    config = get_plugin().config

    return jsonify({
        "validate_introspection": config.validate_introspection,
        "introspection_uri": config.introspection_uri,
        "get_groups_from_user_info": config.get_groups_from_user_info,
        "user_info_uri": config.user_info_uri,
        "claims": {
            "username": config.username_claim,
            "groups": config.groups_claim,
        },
        "mapped_groups": sorted(config.group_to_role_mapping),
        "configured": config.is_functional,
    })
