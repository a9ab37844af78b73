from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlmodel import Session

import config
import providers
from session_tokens import decode_state, encode_state
from token_utils import get_stored_token, save_access_token

GITHUB_USER = {
    "id": 1,
    "login": "octocat",
    "name": "The Octocat",
    "email": "octo@example.com",
    "avatar_url": "https://avatars.example.com/u/1",
}


def github_handler(request):
    if request.url.path == "/login/oauth/access_token":
        return httpx.Response(200, json={"access_token": "gho_fresh", "token_type": "bearer", "scope": "repo"})
    if request.url.path == "/user":
        if request.headers["Authorization"] == "Bearer gho_revoked":
            return httpx.Response(401, json={"message": "Bad credentials"})
        return httpx.Response(200, json=GITHUB_USER)
    return httpx.Response(404)


@pytest.fixture
def mock_github(monkeypatch):
    real_get_provider = providers.get_provider

    def get_provider(name, transport=None):
        return real_get_provider(name, transport=httpx.MockTransport(github_handler))

    monkeypatch.setattr(providers, "get_provider", get_provider)


class TestGithubAuth:
    def test_requires_email(self, client):
        response = client.post("/api/github-auth", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Email is required"}

    def test_no_stored_token_is_401(self, client, mock_github):
        response = client.post("/api/github-auth", json={"email": "nobody@example.com"})

        assert response.status_code == 401
        assert "Access token may be invalid or missing" in response.json()["error"]

    def test_revoked_token_is_401(self, client, mock_github, engine):
        with Session(engine) as db:
            save_access_token(db, "octo@example.com", "gho_revoked")

        response = client.post("/api/github-auth", json={"email": "octo@example.com"})

        assert response.status_code == 401

    def test_valid_token(self, client, mock_github, engine):
        with Session(engine) as db:
            save_access_token(db, "octo@example.com", "gho_valid")

        response = client.post("/api/github-auth", json={"email": "octo@example.com"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["username"] == "octocat"
        assert body["user"]["avatarUrl"] == "https://avatars.example.com/u/1"


class TestOAuthFlow:
    def test_signin_redirects_to_github(self, client):
        response = client.get(
            "/api/auth/signin/github", params={"callbackUrl": "/repositories"}, follow_redirects=False
        )

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert location.netloc == "github.com"
        query = parse_qs(location.query)
        assert query["client_id"] == ["gh-client"]
        assert query["scope"] == ["read:user user:email repo"]
        assert decode_state(query["state"][0], "github") == "/repositories"

    def test_signin_with_unconfigured_provider(self, client):
        response = client.get("/api/auth/signin/gitlab", follow_redirects=False)

        assert response.status_code == 500
        assert response.json() == {"error": "gitlab OAuth is not configured"}

    def test_signin_with_unknown_provider(self, client):
        response = client.get("/api/auth/signin/bitbucket", follow_redirects=False)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid provider"}

    def test_callback_stores_token_and_issues_session(self, client, mock_github, engine):
        state = encode_state("github", "/repositories")

        response = client.get(
            "/api/auth/callback/github", params={"code": "abc123", "state": state}, follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/repositories"
        assert config.SESSION_COOKIE_NAME in response.cookies
        with Session(engine) as db:
            record = get_stored_token(db, "octo@example.com", "github")
        assert record.access_token == "gho_fresh"
        assert record.provider_username == "octocat"

        token = response.cookies[config.SESSION_COOKIE_NAME]
        session = client.get("/api/auth/session", headers={"Cookie": f"{config.SESSION_COOKIE_NAME}={token}"})
        assert session.status_code == 200
        assert session.json()["providerUsername"] == "octocat"
        assert session.json()["user"]["email"] == "octo@example.com"

    def test_callback_rejects_foreign_state(self, client, mock_github):
        state = encode_state("gitlab", "/repositories")

        response = client.get(
            "/api/auth/callback/github", params={"code": "abc123", "state": state}, follow_redirects=False
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid OAuth state"}

    def test_callback_with_bad_code(self, client, monkeypatch):
        def handler(request):
            return httpx.Response(200, json={"error": "bad_verification_code"})

        real_get_provider = providers.get_provider
        monkeypatch.setattr(
            providers, "get_provider",
            lambda name, transport=None: real_get_provider(name, transport=httpx.MockTransport(handler)),
        )

        response = client.get(
            "/api/auth/callback/github",
            params={"code": "expired", "state": encode_state("github", "/")},
            follow_redirects=False,
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication with github failed"}

    def test_session_without_cookie(self, client):
        response = client.get("/api/auth/session")

        assert response.status_code == 401

    def test_signout_clears_cookie(self, client, session_cookie):
        response = client.post("/api/auth/signout", headers=session_cookie)

        assert response.status_code == 200
        assert config.SESSION_COOKIE_NAME in response.headers["set-cookie"]


class TestStoredTokens:
    def test_save_access_token(self, client, engine):
        response = client.post(
            "/api/save-access-token",
            json={"email": "a@b.com", "accessToken": "gho_abc", "name": "Ana", "username": "ana"},
        )

        assert response.status_code == 200
        with Session(engine) as db:
            assert get_stored_token(db, "a@b.com").access_token == "gho_abc"

    def test_save_access_token_requires_token(self, client):
        response = client.post("/api/save-access-token", json={"email": "a@b.com"})

        assert response.status_code == 400
        assert response.json() == {"error": "Email and accessToken are required"}

    def test_revoke_requires_session(self, client):
        response = client.delete("/api/auth/tokens", params={"provider": "github"})

        assert response.status_code == 401

    def test_revoke_removes_token(self, client, engine, session_cookie):
        with Session(engine) as db:
            save_access_token(db, "octo@example.com", "gho_abc")

        response = client.delete("/api/auth/tokens", params={"provider": "github"}, headers=session_cookie)

        assert response.status_code == 200
        with Session(engine) as db:
            assert get_stored_token(db, "octo@example.com") is None

    def test_refresh_unknown_record(self, client):
        response = client.post("/api/auth/token/refresh", json={"email": "a@b.com", "provider": "gitlab"})

        assert response.status_code == 404


class TestVerifyToken:
    def test_always_valid(self, client):
        response = client.post("/api/verify-token", json={"email": "a@b.com", "token": "anything"})

        assert response.status_code == 200
        assert response.json() == {"valid": True, "message": "Token verification successful"}

    def test_malformed_body(self, client):
        response = client.post(
            "/api/verify-token", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"valid": False, "message": "Token verification failed"}
