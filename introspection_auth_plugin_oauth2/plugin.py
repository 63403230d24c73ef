"""
Host plugin registration for OAuth2 introspection authentication.

This module provides the plugin class the host authentication framework
talks to: ``initialize`` once at startup, then
``authenticate_and_authorize`` for every connection attempt. It can also
be attached to a Flask application to serve the same checks over HTTP.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, NamedTuple, Optional, Union

from flask import Flask

from .blueprint import introspection_bp
from .cli import introspection_cli
from .config import HOME_ENV_VAR, IntrospectionConfig
from .errors import AuthenticationDenied, AuthenticationFailed, ErrorKind
from .role_mapper import map_groups
from .verifier import CredentialVerifier

logger = logging.getLogger(__name__)

EXTENSION_KEY = "introspection_auth"


@dataclass(frozen=True)
class HostOperations:
    """Facilities the host hands to the plugin at startup."""

    log: logging.Logger = field(default_factory=lambda: logger)
    home: Optional[Path] = None


class AuthInfo(NamedTuple):
    """Authenticated user and the local roles granted to them."""

    username: str
    roles: FrozenSet[str]


class IntrospectionAuthPlugin:
    """
    OAuth2 introspection authentication plugin.

    Validates bearer tokens with an OAuth2 authorization server and maps
    the groups it asserts onto local roles.
    """

    def __init__(self, app: Flask = None):
        """
        Initialize the plugin.

        Args:
            app: Flask application instance (optional, can call init_app later)
        """
        self.app = app
        self.log = logger
        self.config: Optional[IntrospectionConfig] = None
        self.verifier: Optional[CredentialVerifier] = None

        if app is not None:
            self.init_app(app)

    def initialize(self, host_operations: HostOperations):
        """
        Load configuration once and build the verifier around it.

        Called by the host authentication framework at startup. This is the
        only place ``log``, ``config`` and ``verifier`` are assigned; the
        configuration it loads is immutable and shared read-only by every
        later authentication attempt.

        Args:
            host_operations: Host logger and base directory
        """
        self.log = host_operations.log or logger
        self.log.info(f"{self.get_name()} initialized!")

        self.config = IntrospectionConfig.load(host_operations.home, self.log)
        self.verifier = CredentialVerifier(self.config, self.log)

    def authenticate_and_authorize(self, credential: Union[str, bytes]) -> AuthInfo:
        """
        Authenticate a bearer credential and resolve the user's roles.

        Args:
            credential: Bearer token supplied by the connecting client

        Returns:
            Username and mapped roles

        Raises:
            AuthenticationDenied: For any failed attempt
        """
        if self.verifier is None:
            raise AuthenticationDenied(
                "Plugin has not been initialized", ErrorKind.CONFIGURATION
            )

        try:
            verified = self.verifier.verify(credential)
        except AuthenticationFailed as e:
            self.log.error(f"Invalid token! {type(e).__name__}: {e.message}")
            raise AuthenticationDenied(e.message, e.kind) from e
        except Exception as e:
            self.log.error(f"Exception!  {e!r}")
            raise AuthenticationDenied(
                "Authentication failed", ErrorKind.TRANSPORT
            ) from e

        roles = map_groups(verified.groups, self.config.group_to_role_mapping)
        self.log.debug(f"Roles for {verified.username} are : {sorted(roles)}")
        return AuthInfo(verified.username, roles)

    def init_app(self, app: Flask, *args, **kwargs):
        """
        Initialize the plugin with a Flask application.

        Initializes against ``INTROSPECTION_AUTH_HOME`` unless ``initialize``
        has already been called.

        Args:
            app: Flask application instance
        """
        self.app = app

        if self.verifier is None:
            self.initialize(
                HostOperations(
                    log=app.logger,
                    home=Path(os.environ.get(HOME_ENV_VAR, os.getcwd())),
                )
            )

        app.extensions[EXTENSION_KEY] = self
        app.cli.add_command(introspection_cli)

        if self.config.validate_introspection:
            self.log.info(f"Introspection URL: {self.config.introspection_uri}")
        if self.config.get_groups_from_user_info:
            self.log.info(f"User info URL: {self.config.user_info_uri}")
        if not self.config.is_functional:
            self.log.warning("OAuth2 introspection not configured - all logins will fail")

    def get_blueprint(self):
        """Return the Flask blueprint for this extension."""
        return introspection_bp

    def get_config_secrets_to_obfuscate(self):
        """Return config keys that should not be exposed."""
        return ["auth.oauth.client_secret"]

    @staticmethod
    def get_name() -> str:
        """Return the plugin name."""
        return "introspection-auth-plugin-oauth2"

    @staticmethod
    def get_version() -> str:
        """Return the plugin version."""
        from . import __version__
        return __version__

    @staticmethod
    def get_description() -> str:
        """Return the plugin description."""
        return "OAuth2 token introspection authentication and authorization"
