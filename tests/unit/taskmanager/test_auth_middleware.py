"""Unit tests for AuthMiddleware."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from taskmanager.auth_middleware import AuthMiddleware
from taskmanager.core.exceptions import AuthenticationError, UpstreamError


@pytest.fixture
def credentials():
    mock = MagicMock()
    mock.authenticate = AsyncMock()
    return mock


@pytest.fixture
def app(credentials):
    app = FastAPI()

    @app.get("/users/me")
    async def me(request: Request):
        return {"id": request.state.user.id, "token": request.state.token}

    @app.post("/users")
    async def register():
        return {"public": True}

    @app.get("/users/{user_id}/avatar")
    async def avatar(user_id: str):
        return {"user_id": user_id}

    @app.post("/users/{user_id}/avatar")
    async def upload(user_id: str):
        return {"user_id": user_id}

    app.add_middleware(AuthMiddleware, credentials=credentials)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


class TestAuthMiddleware:
    """Tests for bearer token enforcement."""

    def test_valid_token_attaches_user(self, client, credentials, sample_user):
        credentials.authenticate.return_value = sample_user

        response = client.get("/users/me", headers={"Authorization": "Bearer token-one"})

        assert response.status_code == 200
        assert response.json() == {"id": sample_user.id, "token": "token-one"}
        credentials.authenticate.assert_awaited_once_with("token-one")

    def test_missing_header_rejected(self, client, credentials):
        """Test that a protected route without a token is a 401 and the handler never runs."""
        response = client.get("/users/me")

        assert response.status_code == 401
        assert response.json() == {"detail": "Token is not correct."}
        assert response.headers["WWW-Authenticate"] == "Bearer"
        credentials.authenticate.assert_not_awaited()

    @pytest.mark.parametrize("header", ["token-one", "Basic token-one", "Bearer", "Bearer a b"])
    def test_malformed_header_rejected(self, client, credentials, header):
        assert client.get("/users/me", headers={"Authorization": header}).status_code == 401
        credentials.authenticate.assert_not_awaited()

    def test_invalid_token_rejected(self, client, credentials):
        credentials.authenticate.side_effect = AuthenticationError("Token has expired")

        response = client.get("/users/me", headers={"Authorization": "Bearer stale"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Token is not correct."}

    def test_store_failure_is_500(self, client, credentials):
        credentials.authenticate.side_effect = UpstreamError("database down")

        response = client.get("/users/me", headers={"Authorization": "Bearer token-one"})

        assert response.status_code == 500

    def test_public_routes_skip_authentication(self, client, credentials):
        assert client.post("/users").status_code == 200
        assert client.get("/users/abc/avatar").status_code == 200
        credentials.authenticate.assert_not_awaited()

    def test_public_match_is_method_specific(self, client, credentials):
        """Test that only GET on the avatar path is public."""
        assert client.post("/users/abc/avatar").status_code == 401

    def test_options_bypass(self, client, credentials):
        response = client.options("/users/me")

        assert response.status_code != 401
        credentials.authenticate.assert_not_awaited()

    def test_custom_public_routes(self, credentials):
        app = FastAPI()

        @app.get("/open")
        async def open_route():
            return {}

        app.add_middleware(AuthMiddleware, credentials=credentials, public_routes=[("GET", r"/open")])

        assert TestClient(app).get("/open").status_code == 200

    def test_rejection_is_logged(self, credentials):
        logger = MagicMock()
        app = FastAPI()
        app.add_middleware(AuthMiddleware, credentials=credentials, logger=logger)

        TestClient(app).get("/users/me")

        logger.info.assert_called_once()
        assert logger.info.call_args.kwargs["reason"] == "missing bearer token"
