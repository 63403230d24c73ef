"""Tests for the token validation HTTP endpoints."""

import httpx
import pytest
import respx

from conftest import INTROSPECTION_URI
from introspection_auth_plugin_oauth2.app import create_app
from introspection_auth_plugin_oauth2.plugin import HostOperations, IntrospectionAuthPlugin

ACTIVE = {"active": True, "username": "test", "groups": ["/Admin", "/Reader"]}


@pytest.fixture
def client(host_operations):
    app = create_app(host_operations)
    app.config["TESTING"] = True
    return app.test_client()


def test_verify_with_bearer_header(client):
    with respx.mock(assert_all_called=True) as router:
        router.post(INTROSPECTION_URI).mock(return_value=httpx.Response(200, json=ACTIVE))
        resp = client.post("/auth/verify", headers={"Authorization": "Bearer token-123"})

    assert resp.status_code == 200
    assert resp.get_json() == {"username": "test", "roles": ["admin", "reader"]}


def test_verify_with_json_body(client):
    with respx.mock(assert_all_called=True) as router:
        route = router.post(INTROSPECTION_URI).mock(return_value=httpx.Response(200, json=ACTIVE))
        resp = client.post("/auth/verify", json={"token": "token-456"})

    assert resp.status_code == 200
    assert b"token=token-456" in route.calls.last.request.content


def test_verify_missing_token(client):
    resp = client.post("/auth/verify")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing token"}


def test_verify_denied(client):
    with respx.mock(assert_all_called=True) as router:
        router.post(INTROSPECTION_URI).mock(return_value=httpx.Response(200, json={"active": False}))
        resp = client.post("/auth/verify", headers={"Authorization": "Bearer token-123"})

    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"].startswith("Bearer")
    assert resp.get_json() == {
        "error": "Authentication failed",
        "message": "Introspection failed",
        "kind": "denied",
    }


def test_info_hides_client_secret(write_conf):
    home = write_conf(
        text=(
            "auth.oauth.introspection_uri=https://idp.example.com/introspect\n"
            "auth.oauth.client_id=neo4j\n"
            "auth.oauth.client_secret=s3cret\n"
            'auth.oauth.group_to_role_mapping="/Admin"=admin\n'
        )
    )

    client = create_app(HostOperations(home=home)).test_client()
    resp = client.get("/auth/info")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["validate_introspection"] is True
    assert body["introspection_uri"] == "https://idp.example.com/introspect"
    assert body["mapped_groups"] == ["/Admin"]
    assert body["configured"] is True
    assert b"s3cret" not in resp.data


def test_init_app_reads_home_from_environment(write_conf, monkeypatch):
    from flask import Flask

    home = write_conf(get_groups_from_user_info="true")
    monkeypatch.setenv("INTROSPECTION_AUTH_HOME", str(home))

    app = Flask(__name__)
    plugin = IntrospectionAuthPlugin(app)

    assert app.extensions["introspection_auth"] is plugin
    assert plugin.config.get_groups_from_user_info is True
    assert "introspection" in app.cli.commands


def test_verify_hides_transport_details(client, caplog):
    with respx.mock(assert_all_called=True) as router:
        router.post(INTROSPECTION_URI).mock(
            side_effect=httpx.ConnectError("[Errno 111] connect to 10.0.0.7:8443 refused")
        )
        resp = client.post("/auth/verify", headers={"Authorization": "Bearer token-123"})

    assert resp.status_code == 401
    assert resp.get_json() == {
        "error": "Authentication failed",
        "message": "Introspection request failed",
        "kind": "transport",
    }
    assert b"10.0.0.7" not in resp.data
    assert "10.0.0.7:8443 refused" in caplog.text
