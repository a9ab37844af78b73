# providers.py
import logging
from typing import List, Optional
from urllib.parse import urlencode

import httpx

import config
from errors import ValidationError
from schemas import GitHubProfile, GitLabProfile

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class OAuthProvider:
    """OAuth client for one Git provider"""

    name = ""
    scope = ""
    authorize_endpoint = ""
    token_endpoint = ""

    def __init__(self, client_id: Optional[str], client_secret: Optional[str],
                 redirect_uri: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=DEFAULT_TIMEOUT)

    def auth_headers(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def _token_request(self, data: dict) -> dict:
        async with self.client() as client:
            resp = await client.post(self.token_endpoint, data=data, headers={"Accept": "application/json"})
            resp.raise_for_status()
            token_data = resp.json()

        # GitHub answers 200 with an error body for bad codes
        if "error" in token_data or "access_token" not in token_data:
            raise httpx.HTTPStatusError(
                token_data.get("error_description") or token_data.get("error") or "No access token returned",
                request=resp.request,
                response=resp,
            )
        return token_data

    async def exchange_code(self, code: str) -> dict:
        return await self._token_request({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        })

    async def refresh(self, refresh_token: str) -> dict:
        return await self._token_request({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    async def _get_json(self, url: str, access_token: str, params: Optional[dict] = None):
        async with self.client() as client:
            resp = await client.get(url, params=params, headers=self.auth_headers(access_token))
            resp.raise_for_status()
            return resp.json()

    async def fetch_profile(self, access_token: str):
        raise NotImplementedError

    async def list_repositories(self, access_token: str) -> List[dict]:
        raise NotImplementedError


class GitHubProvider(OAuthProvider):
    name = "github"
    scope = "read:user user:email repo"
    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    api_base = "https://api.github.com"

    def auth_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

    async def fetch_profile(self, access_token: str) -> GitHubProfile:
        user = await self._get_json(f"{self.api_base}/user", access_token)

        email = user.get("email")
        if not email:
            try:
                emails = await self._get_json(f"{self.api_base}/user/emails", access_token)
                primary = next((e for e in emails if e.get("primary")), emails[0] if emails else None)
                email = primary.get("email") if primary else None
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Could not read GitHub emails for {user.get('login')}: {e}")

        return GitHubProfile(
            id=user["id"],
            login=user["login"],
            name=user.get("name") or user["login"],
            email=email,
            avatar_url=user.get("avatar_url"),
        )

    async def list_repositories(self, access_token: str) -> List[dict]:
        repos = await self._get_json(
            f"{self.api_base}/user/repos",
            access_token,
            params={"sort": "updated", "per_page": 100},
        )
        return [
            {
                "name": r["name"],
                "fullName": r["full_name"],
                "owner": r["owner"]["login"],
                "description": r.get("description"),
                "private": r.get("private", False),
                "url": r.get("html_url"),
                "updatedAt": r.get("updated_at"),
            }
            for r in repos
        ]


class GitLabProvider(OAuthProvider):
    name = "gitlab"
    scope = "read_user read_api"

    def __init__(self, *args, base_url: str = "https://gitlab.com", **kwargs):
        super().__init__(*args, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.authorize_endpoint = f"{self.base_url}/oauth/authorize"
        self.token_endpoint = f"{self.base_url}/oauth/token"

    async def refresh(self, refresh_token: str) -> dict:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "redirect_uri": self.redirect_uri,
        }
        return await self._token_request(data)

    async def fetch_profile(self, access_token: str) -> GitLabProfile:
        user = await self._get_json(f"{self.base_url}/api/v4/user", access_token)
        return GitLabProfile(
            id=user["id"],
            username=user["username"],
            name=user.get("name") or user["username"],
            email=user.get("email") or user.get("public_email"),
            avatar_url=user.get("avatar_url"),
        )

    async def list_repositories(self, access_token: str) -> List[dict]:
        projects = await self._get_json(
            f"{self.base_url}/api/v4/projects",
            access_token,
            params={"membership": "true", "order_by": "last_activity_at", "per_page": 100},
        )
        return [
            {
                "name": p["path"],
                "fullName": p["path_with_namespace"],
                "owner": p["namespace"]["full_path"],
                "description": p.get("description"),
                "private": p.get("visibility") != "public",
                "url": p.get("web_url"),
                "updatedAt": p.get("last_activity_at"),
            }
            for p in projects
        ]


def redirect_uri(provider: str) -> str:
    return f"{config.OAUTH_REDIRECT_BASE.rstrip('/')}/api/auth/callback/{provider}"


def get_provider(name: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> OAuthProvider:
    if name == "github":
        return GitHubProvider(config.GITHUB_ID, config.GITHUB_SECRET, redirect_uri("github"), transport=transport)
    if name == "gitlab":
        return GitLabProvider(
            config.GITLAB_CLIENT_ID,
            config.GITLAB_CLIENT_SECRET,
            redirect_uri("gitlab"),
            transport=transport,
            base_url=config.GITLAB_URL,
        )
    raise ValidationError("Invalid provider")
