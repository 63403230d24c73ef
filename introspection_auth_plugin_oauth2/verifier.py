"""
Bearer credential verification against an OAuth2 authorization server.

The verifier runs the configured sequence of remote calls for one
authentication attempt:

1. token introspection (RFC 7662), if ``validate_introspection`` is set
2. user-info lookup, if ``get_groups_from_user_info`` is set

and extracts the username and group list from the last response
received. When both are enabled, user-info claims win.
"""

import logging
from typing import List, NamedTuple, Optional, Union

import httpx

from .config import IntrospectionConfig
from .errors import (
    AuthenticationFailed,
    ErrorKind,
    ExtractionError,
    IntrospectionFailed,
    NoResultSetError,
    UserInfoFailed,
)

logger = logging.getLogger(__name__)


class VerifiedCredential(NamedTuple):
    """Identity asserted by the authorization server."""

    username: str
    groups: List[str]


def _status_kind(status_code: int) -> ErrorKind:
    """Classify a non-success HTTP status."""
    if status_code >= 500:
        return ErrorKind.TRANSPORT
    # Wrong endpoint URL rather than a rejected token
    if status_code in (404, 405):
        return ErrorKind.CONFIGURATION
    return ErrorKind.DENIED


class CredentialVerifier:
    """Verify bearer credentials via introspection and/or user-info."""

    def __init__(self, config: IntrospectionConfig, log: logging.Logger = None):
        """
        Initialize the verifier.

        Args:
            config: Resolved plugin configuration (never mutated)
            log: Logger to report to (defaults to the module logger)
        """
        self.config = config
        self.log = log or logger

    def verify(self, credential: Union[str, bytes]) -> VerifiedCredential:
        """
        Verify a bearer credential and extract the user's identity.

        Args:
            credential: Opaque bearer token supplied by the client

        Returns:
            Username and group identifiers from the authoritative response

        Raises:
            AuthenticationFailed: Subclass describing why verification failed
        """
        if credential is None:
            raise AuthenticationFailed("No credentials supplied")
        if isinstance(credential, (bytes, bytearray)):
            credential = credential.decode("utf-8")

        results = None
        with httpx.Client() as client:
            if self.config.validate_introspection:
                results = self.introspect(client, credential)
                if results.get("active") is not True:
                    raise IntrospectionFailed("Introspection failed")

            if self.config.get_groups_from_user_info:
                results = self.fetch_user_info(client, credential)

        if results is None:
            raise NoResultSetError(
                "No Token Details Retrieved.  Configuration may not be valid"
            )

        username = self.extract_username(results)
        groups = self.extract_groups(results)
        self.log.info(f"Log in by {username}")
        return VerifiedCredential(username, groups)

    def introspect(self, client: httpx.Client, credential: str) -> dict:
        """POST the token to the introspection endpoint."""
        uri = self.config.introspection_uri
        if not uri:
            raise IntrospectionFailed(
                "Introspection endpoint not configured", ErrorKind.CONFIGURATION
            )

        data = {"token": credential}
        if self.config.client_id is not None:
            data["client_id"] = self.config.client_id
        if self.config.client_secret is not None:
            data["client_secret"] = self.config.client_secret

        try:
            resp = client.post(uri, data=data)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.log.error(f"Introspection request to {uri} failed: {e}")
            raise IntrospectionFailed(
                "Introspection request failed", ErrorKind.TRANSPORT
            ) from e

        self._log_response(resp)
        if not resp.is_success:
            raise IntrospectionFailed(
                f"Introspection endpoint returned HTTP {resp.status_code}",
                _status_kind(resp.status_code),
            )

        results = self._json_object(resp)
        if results is None:
            raise ExtractionError("Introspection response is not a JSON object")
        return results

    def fetch_user_info(self, client: httpx.Client, credential: str) -> dict:
        """GET the user-info endpoint with the token as bearer credential."""
        uri = self.config.user_info_uri
        if not uri:
            raise UserInfoFailed(
                "User info endpoint not configured", ErrorKind.CONFIGURATION
            )

        try:
            resp = client.get(uri, headers={"Authorization": f"Bearer {credential}"})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.log.error(f"User info request to {uri} failed: {e}")
            raise UserInfoFailed(
                "User Info Lookup failed", ErrorKind.TRANSPORT
            ) from e

        self._log_response(resp)
        if not resp.is_success:
            raise UserInfoFailed(
                f"User Info Lookup failed: HTTP {resp.status_code}",
                _status_kind(resp.status_code),
            )

        results = self._json_object(resp)
        if results is None:
            raise UserInfoFailed(
                "User Info Lookup failed: response is not a JSON object",
                ErrorKind.CONFIGURATION,
            )
        return results

    def extract_username(self, results: dict) -> str:
        claim = self.config.username_claim
        username = results.get(claim)
        if not isinstance(username, str) or not username:
            raise ExtractionError(f"Claim '{claim}' is missing or not a string")
        return username

    def extract_groups(self, results: dict) -> List[str]:
        claim = self.config.groups_claim
        groups = results.get(claim)
        if not isinstance(groups, list):
            raise ExtractionError(f"Claim '{claim}' is missing or not a list")
        if not all(isinstance(group, str) for group in groups):
            raise ExtractionError(f"Claim '{claim}' must contain only strings")
        return list(groups)

    def _log_response(self, resp: httpx.Response):
        self.log.debug(f"Response Code: {resp.status_code}")
        self.log.debug(f"Response Body: {resp.text}")

    @staticmethod
    def _json_object(resp: httpx.Response) -> Optional[dict]:
        """Decode a JSON object body, None if it is anything else."""
        try:
            body = resp.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
