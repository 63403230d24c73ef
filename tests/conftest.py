"""Shared fixtures for introspection auth tests."""

import logging
from urllib.parse import parse_qs

import pytest

from introspection_auth_plugin_oauth2.config import IntrospectionConfig
from introspection_auth_plugin_oauth2.plugin import HostOperations

INTROSPECTION_URI = "https://idp.example.com/oauth2/introspect"
USER_INFO_URI = "https://idp.example.com/oauth2/userinfo"

CONF_TEMPLATE = """\
auth.oauth.validate_introspection={validate_introspection}
auth.oauth.introspection_uri={introspection_uri}
auth.oauth.get_groups_from_user_info={get_groups_from_user_info}
auth.oauth.user_info_uri={user_info_uri}
auth.oauth.group_to_role_mapping="/Admin"=admin;"/Reader"=reader
"""


def form_params(request):
    """Decode the form-encoded body of a captured request."""
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


@pytest.fixture
def make_config():
    """Build a configuration with test endpoints and a small mapping."""

    def _make(**overrides):
        values = {
            "introspection_uri": INTROSPECTION_URI,
            "user_info_uri": USER_INFO_URI,
            "group_to_role_mapping": {"/Admin": "admin", "/Reader": "reader"},
        }
        values.update(overrides)
        return IntrospectionConfig(**values)

    return _make


@pytest.fixture
def write_conf(tmp_path):
    """Write conf/introspection.conf below a temporary home directory."""

    def _write(text=None, **modes):
        values = {
            "validate_introspection": "true",
            "get_groups_from_user_info": "false",
            "introspection_uri": INTROSPECTION_URI,
            "user_info_uri": USER_INFO_URI,
        }
        values.update(modes)
        conf_dir = tmp_path / "conf"
        conf_dir.mkdir(exist_ok=True)
        path = conf_dir / "introspection.conf"
        path.write_text(text if text is not None else CONF_TEMPLATE.format(**values))
        return tmp_path

    return _write


@pytest.fixture
def host_operations(write_conf):
    """Host facilities pointing at a home with the default test config."""
    return HostOperations(log=logging.getLogger("tests.host"), home=write_conf())
