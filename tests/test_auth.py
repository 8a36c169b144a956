from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from dropbox_storybook.asgi import create_app
from dropbox_storybook.settings import Settings

USERS = {"monica": {"access_code": "sunflower", "dropbox_token": "good", "dropbox_refresh_token": "refresh-1"}}


@pytest.fixture()
def app(dropbox_client):
    return create_app(Settings(STORYBOOK_USERS=USERS), dropbox=dropbox_client)


def test_health_is_public(app) -> None:
    with TestClient(app) as client:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"ok": True}


def test_login_validates_access_code(app) -> None:
    with TestClient(app) as client:
        assert client.post("/api/auth/login", json={"username": "monica"}).status_code == 400
        assert client.post("/api/auth/login", json={"username": "bob", "token": "x"}).status_code == 401

        r = client.post("/api/auth/login", json={"username": "monica", "token": "wrong"})
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid access code"}

        r = client.post("/api/auth/login", json={"username": "monica", "token": "sunflower"})
        assert r.status_code == 200
        assert r.json() == {"success": True, "redirectUrl": "/monica/viewer"}


def test_api_requires_session(app) -> None:
    with TestClient(app) as client:
        assert client.get("/api/dropbox/photos").status_code == 401
        assert client.get("/api/collections").status_code == 401

        client.post("/api/auth/login", json={"username": "monica", "token": "sunflower"})
        assert client.get("/api/collections").status_code == 200

        client.post("/api/auth/logout")
        client.cookies.clear()
        assert client.get("/api/collections").status_code == 401


def test_mcp_requires_api_key(dropbox_client) -> None:
    settings = Settings(STORYBOOK_USERS=USERS, MCP_API_KEY="k", MCP_USER="monica")
    app = create_app(settings, dropbox=dropbox_client)
    with TestClient(app) as client:
        # Health checks are intentionally unauthenticated.
        assert client.get("/health").status_code == 200

        # MCP endpoint is protected by X-API-Key.
        r2 = client.get("/mcp")
        assert r2.status_code == 401

        r3 = client.get("/mcp", headers={"x-api-key": "k"})
        assert r3.status_code != 401
