"""
introspection-auth-plugin-oauth2

An authentication plugin that delegates bearer token validation to an
OAuth 2.0 authorization server and maps the groups it asserts onto
local roles.

Supported verification modes:
- Token introspection (RFC 7662)
- OpenID Connect user-info lookup
- Both, with user-info claims taking precedence

This plugin provides:
- Host plugin lifecycle (initialize / authenticate_and_authorize)
- Group to role mapping from a properties file
- A Flask blueprint serving token validation over HTTP
"""

__version__ = "0.1.0"

from .plugin import AuthInfo, HostOperations, IntrospectionAuthPlugin
from .blueprint import introspection_bp

__all__ = [
    "AuthInfo",
    "HostOperations",
    "IntrospectionAuthPlugin",
    "introspection_bp",
    "__version__",
]
