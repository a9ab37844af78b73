# page_routes.py
import logging
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request

import providers
from errors import AppError, UpstreamAuthError
from session_tokens import get_session_from_request, safe_callback

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/login")
async def login_page(callbackUrl: str = "/"):
    """Sign-in options; callbackUrl is carried through the OAuth flow"""
    callback = safe_callback(callbackUrl)
    signin = {}
    for name in ("github", "gitlab"):
        if providers.get_provider(name).is_configured():
            signin[name] = f"/api/auth/signin/{name}?{urlencode({'callbackUrl': callback})}"
    return {"callbackUrl": callback, "providers": signin}


@router.get("/repositories")
async def repositories(request: Request):
    # The auth gate has already resolved the session for this path
    session = get_session_from_request(request)
    if session is None:
        raise UpstreamAuthError("Not authenticated")

    oauth = providers.get_provider(session.provider)
    try:
        repos = await oauth.list_repositories(session.access_token)
    except httpx.HTTPStatusError as e:
        logger.warning(f"{session.provider} rejected session token for {session.email}: {e.response.status_code}")
        if e.response.status_code in (401, 403):
            raise UpstreamAuthError(f"{session.provider} rejected the session token") from e
        raise AppError("Failed to load repositories") from e
    except httpx.HTTPError as e:
        logger.error(f"Error listing repositories from {session.provider}: {e}")
        raise AppError("Failed to load repositories") from e

    return {
        "provider": session.provider,
        "username": session.provider_username,
        "repositories": repos,
    }
