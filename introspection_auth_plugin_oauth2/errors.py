"""
Error types for OAuth2 introspection authentication.

Every failure carries an ErrorKind so callers can tell a terminal
authorization denial apart from a broken configuration or an
unreachable authorization server.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Why an authentication attempt did not succeed."""

    DENIED = "denied"
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"


class IntrospectionAuthError(Exception):
    """Base class for all plugin errors."""

    default_kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, kind: ErrorKind = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind


class ConfigLoadError(IntrospectionAuthError):
    """The configuration file could not be read."""


class ConfigMappingError(IntrospectionAuthError):
    """A group-to-role mapping entry is malformed."""


class AuthenticationFailed(IntrospectionAuthError):
    """Base class for failures on the verification path."""

    default_kind = ErrorKind.DENIED


class IntrospectionFailed(AuthenticationFailed):
    """Token is inactive or the introspection endpoint failed."""


class UserInfoFailed(AuthenticationFailed):
    """The user-info endpoint did not return usable claims."""


class ExtractionError(AuthenticationFailed):
    """An expected claim is missing or has the wrong shape."""

    default_kind = ErrorKind.CONFIGURATION


class NoResultSetError(AuthenticationFailed):
    """Neither verification path produced a result set."""

    default_kind = ErrorKind.CONFIGURATION


class AuthenticationDenied(IntrospectionAuthError):
    """Opaque failure handed back to the host for any denied attempt."""

    default_kind = ErrorKind.DENIED
