"""
Configuration management for OAuth2 introspection authentication.

This module handles loading the ``introspection.conf`` properties file
and turning it into an immutable configuration object. Loading never
raises: problems are logged and defaults are used, so that a broken
setup surfaces on the first authentication attempt instead.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .errors import ConfigLoadError, ConfigMappingError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "introspection.conf"
CONFIG_RELATIVE_PATH = Path("conf") / CONFIG_FILE_NAME
HOME_ENV_VAR = "INTROSPECTION_AUTH_HOME"

# Recognized property keys
VALIDATE_INTROSPECTION = "auth.oauth.validate_introspection"
INTROSPECTION_URI = "auth.oauth.introspection_uri"
USER_INFO_URI = "auth.oauth.user_info_uri"
GET_GROUPS_FROM_USER_INFO = "auth.oauth.get_groups_from_user_info"
CLIENT_ID = "auth.oauth.client_id"
CLIENT_SECRET = "auth.oauth.client_secret"
USERNAME_CLAIM = "auth.oauth.claims.username"
GROUPS_CLAIM = "auth.oauth.claims.groups"
GROUP_TO_ROLE_MAPPING = "auth.oauth.group_to_role_mapping"

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_KEY_TERMINATOR = re.compile(r"(?<!\\)(?:\\\\)*[=:\s]")


def _unescape(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != "\\" or i + 1 == len(text):
            out.append(char)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u" and re.fullmatch(r"[0-9a-fA-F]{4}", text[i + 2:i + 6]):
            out.append(chr(int(text[i + 2:i + 6], 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _logical_lines(text: str):
    """Yield lines with backslash continuations joined."""
    pending = None
    for raw in text.splitlines():
        line = raw.lstrip() if pending is not None else raw
        if pending is None and line.strip()[:1] in ("#", "!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        continued = trailing % 2 == 1
        if continued:
            line = line[:-1]
        pending = line if pending is None else pending + line
        if not continued:
            yield pending
            pending = None
    if pending is not None:
        yield pending


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse Java-style properties text.

    Supports comment lines starting with ``#`` or ``!``, ``=``, ``:`` or
    whitespace as key separator and backslash line continuations.

    Args:
        text: Properties file contents

    Returns:
        Dictionary of property key -> value
    """
    properties = {}
    for line in _logical_lines(text):
        line = line.lstrip()
        if not line:
            continue
        match = _KEY_TERMINATOR.search(line)
        if match is None:
            key, value = line, ""
        else:
            key = line[:match.end() - 1]
            rest = line[match.end() - 1:].lstrip(" \t\f")
            if rest[:1] in ("=", ":"):
                rest = rest[1:]
            value = rest.lstrip(" \t\f")
        properties[_unescape(key)] = _unescape(value).strip()
    return properties


def load_properties(path) -> Dict[str, str]:
    """
    Load a properties file from disk.

    Raises:
        ConfigLoadError: If the file cannot be read
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Failed to load conf file '{path}': {e}") from e
    return parse_properties(text)


def load_default_properties() -> Dict[str, str]:
    """Load the configuration bundled with the package."""
    try:
        text = resources.files(__package__).joinpath(CONFIG_FILE_NAME).read_text(
            encoding="utf-8"
        )
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Failed to load bundled {CONFIG_FILE_NAME}: {e}") from e
    return parse_properties(text)


def parse_group_mapping(value: Optional[str], log: logging.Logger = None) -> Dict[str, str]:
    """
    Parse a group-to-role mapping.

    Format: ``"group"=role;"other group"=other_role``. Quotes are removed
    from keys and whitespace is trimmed. Malformed entries are logged and
    skipped; the rest of the mapping still loads.

    Args:
        value: Raw property value
        log: Logger to report problems to

    Returns:
        Dictionary of group identifier -> role name
    """
    log = log or logger
    mapping = {}
    if value is None:
        log.error("No groups found in conf file!")
        return mapping

    for entry in value.split(";"):
        if not entry.strip():
            continue
        try:
            group, role = _parse_mapping_entry(entry)
        except ConfigMappingError as e:
            log.error(e.message)
            continue
        mapping[group] = role
    return mapping


def _parse_mapping_entry(entry: str):
    parts = entry.split("=")
    if len(parts) < 2:
        raise ConfigMappingError(f"Error parsing group mapping: {entry}")
    group = parts[0].replace('"', "").strip()
    if not group:
        raise ConfigMappingError(f"Error parsing group mapping: {entry}")
    return group, parts[1].strip()


def parse_bool(value: Optional[str], default: bool) -> bool:
    """Parse a boolean property; only "true" (any case) is true."""
    if value is None:
        return default
    return value.strip().lower() == "true"


def resolve_config_path(home) -> Optional[Path]:
    """
    Locate ``conf/introspection.conf`` below the host home directory.

    Returns:
        The path if the file exists, None otherwise
    """
    if home is None:
        return None
    path = Path(home) / CONFIG_RELATIVE_PATH
    return path if path.is_file() else None


@dataclass(frozen=True)
class IntrospectionConfig:
    """OAuth2 introspection / user-info configuration."""

    # OAuth2 endpoints
    introspection_uri: Optional[str] = None
    user_info_uri: Optional[str] = None

    # Client credentials, sent to the introspection endpoint when set
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    # Claim names in the introspection / user-info responses
    username_claim: str = "username"
    groups_claim: str = "groups"

    # Verification modes
    validate_introspection: bool = True
    get_groups_from_user_info: bool = False

    # Identity provider group -> local role
    group_to_role_mapping: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        if not isinstance(self.group_to_role_mapping, MappingProxyType):
            object.__setattr__(
                self,
                "group_to_role_mapping",
                MappingProxyType(dict(self.group_to_role_mapping)),
            )

    @property
    def is_functional(self) -> bool:
        """At least one verification mode must be enabled."""
        return self.validate_introspection or self.get_groups_from_user_info

    @classmethod
    def from_properties(
        cls, properties: Mapping[str, str], log: logging.Logger = None
    ) -> "IntrospectionConfig":
        """Create configuration from parsed properties."""
        log = log or logger

        config = cls(
            introspection_uri=properties.get(INTROSPECTION_URI),
            user_info_uri=properties.get(USER_INFO_URI),
            client_id=properties.get(CLIENT_ID),
            client_secret=properties.get(CLIENT_SECRET),
            username_claim=properties.get(USERNAME_CLAIM, "username"),
            groups_claim=properties.get(GROUPS_CLAIM, "groups"),
            validate_introspection=parse_bool(
                properties.get(VALIDATE_INTROSPECTION), True
            ),
            get_groups_from_user_info=parse_bool(
                properties.get(GET_GROUPS_FROM_USER_INFO), False
            ),
            group_to_role_mapping=parse_group_mapping(
                properties.get(GROUP_TO_ROLE_MAPPING), log
            ),
        )

        if not config.is_functional:
            log.error(
                "Invalid configuration.  Either validate_introspection or "
                "get_groups_from_user_info should be true."
            )
        return config

    @classmethod
    def load(cls, home=None, log: logging.Logger = None) -> "IntrospectionConfig":
        """
        Load configuration for a host home directory.

        Reads ``<home>/conf/introspection.conf`` when present, otherwise the
        configuration bundled with the package.

        Args:
            home: Host base directory
            log: Logger to report problems to

        Returns:
            The resolved configuration (defaults if nothing could be read)
        """
        log = log or logger
        path = resolve_config_path(home)

        try:
            if path is not None:
                properties = load_properties(path)
            else:
                log.warning(
                    f"{CONFIG_RELATIVE_PATH.as_posix()} not found.  "
                    "Loading configuration from the package resource"
                )
                properties = load_default_properties()
        except ConfigLoadError as e:
            log.error(e.message)
            properties = {}

        return cls.from_properties(properties, log)

    @classmethod
    def from_env(cls, log: logging.Logger = None) -> "IntrospectionConfig":
        """Load configuration from the home directory named in the environment."""
        return cls.load(os.environ.get(HOME_ENV_VAR, os.getcwd()), log)
