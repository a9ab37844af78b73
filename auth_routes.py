# auth_routes.py
import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlmodel import Session

import providers
from database import get_session
from errors import ConfigurationError, NotFoundError, UpstreamAuthError, ValidationError
from schemas import EmailRequest, SaveTokenRequest, SessionData, TokenRefreshRequest
from session_tokens import (
    clear_session_cookie,
    decode_state,
    encode_session,
    encode_state,
    get_session_from_request,
    set_session_cookie,
)
from token_utils import authenticate, delete_token, refresh_provider_token, save_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


def configured_provider(name: str) -> providers.OAuthProvider:
    oauth = providers.get_provider(name)
    if not oauth.is_configured():
        raise ConfigurationError(f"{name} OAuth is not configured")
    return oauth


# ---------------------------
# Sign in (GitHub / GitLab)
# ---------------------------
@router.get("/api/auth/signin/{provider}")
async def signin(provider: str, callbackUrl: str = "/"):
    """Starts the OAuth flow for the given provider"""
    oauth = configured_provider(provider)
    state = encode_state(provider, callbackUrl)
    return RedirectResponse(oauth.authorize_url(state), status_code=302)


@router.get("/api/auth/callback/{provider}")
async def auth_callback(provider: str, code: str, state: str, db: Session = Depends(get_session)):
    """
    OAuth callback for GitHub and GitLab.
    Exchanges the code, stores the provider token and issues the session cookie.
    """
    logger.info(f"Callback received - Provider: {provider}, Code: {code[:6]}...")
    oauth = configured_provider(provider)

    callback_url = decode_state(state, provider)
    if callback_url is None:
        raise ValidationError("Invalid OAuth state")

    try:
        token_data = await oauth.exchange_code(code)
        profile = await oauth.fetch_profile(token_data["access_token"])
    except httpx.HTTPError as e:
        logger.error(f"OAuth error {provider}: {e}")
        raise UpstreamAuthError(f"Authentication with {provider} failed") from e

    session_data = SessionData(access_token=token_data["access_token"], profile=profile, email=profile.email)
    if not session_data.email:
        raise UpstreamAuthError(f"{provider} did not return an email address")

    save_access_token(
        db,
        email=session_data.email,
        access_token=token_data["access_token"],
        provider=provider,
        name=profile.name or "",
        username=session_data.provider_username,
        refresh_token=token_data.get("refresh_token"),
        expires_in=token_data.get("expires_in"),
    )
    logger.info(f"Signed in {session_data.email} with {provider} as {session_data.provider_username}")

    response = RedirectResponse(callback_url, status_code=302)
    set_session_cookie(response, encode_session(session_data))
    return response


@router.get("/api/auth/session")
async def current_session(request: Request):
    session = get_session_from_request(request)
    if session is None:
        return JSONResponse({"error": "Not authenticated"}, status_code=401)
    return {
        "user": {
            "email": session.email,
            "name": session.profile.name,
            "image": session.profile.avatar_url,
        },
        "provider": session.provider,
        "providerUsername": session.provider_username,
        "accessToken": session.access_token,
    }


@router.post("/api/auth/signout")
async def signout():
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


@router.delete("/api/auth/tokens")
async def revoke_token(request: Request, provider: str, db: Session = Depends(get_session)):
    """Removes the stored provider token of the signed-in user"""
    session = get_session_from_request(request)
    if session is None or not session.email:
        raise UpstreamAuthError("Not authenticated")
    if not delete_token(db, session.email, provider):
        raise NotFoundError("Token not found")
    return {"success": True, "message": f"Removed {provider} token"}


# ---------------------------
# Stored-token routes
# ---------------------------
@router.post("/api/github-auth")
async def github_auth(body: EmailRequest, db: Session = Depends(get_session)):
    email = body.email.strip()
    if not email:
        raise ValidationError("Email is required")

    user = await authenticate(email, db)
    if not user:
        raise UpstreamAuthError("Failed to authenticate with GitHub. Access token may be invalid or missing.")
    return {"success": True, "user": user}


@router.post("/api/save-access-token")
async def save_token(body: SaveTokenRequest, db: Session = Depends(get_session)):
    if not body.email.strip() or not body.access_token:
        raise ValidationError("Email and accessToken are required")

    save_access_token(
        db,
        email=body.email.strip(),
        access_token=body.access_token,
        provider=body.provider,
        name=body.name,
        username=body.username,
    )
    return {"success": True}


@router.post("/api/auth/token/refresh")
async def refresh_token(body: TokenRefreshRequest, db: Session = Depends(get_session)):
    if not body.email.strip() or not body.provider:
        raise ValidationError("Email and provider are required")

    token = await refresh_provider_token(db, body.email.strip(), body.provider)
    return {
        "provider": token.provider,
        "username": token.provider_username,
        "expiresAt": token.expires_at,
        "isValid": True,
    }


@router.post("/api/verify-token")
async def verify_token(request: Request):
    # Verification is not defined yet; any well-formed request is accepted
    try:
        body = await request.json()
        logger.info(f"Token verification requested for {body.get('email')}")
        return {"valid": True, "message": "Token verification successful"}
    except Exception as e:
        logger.error(f"Error verifying token: {e}")
        return JSONResponse({"valid": False, "message": "Token verification failed"}, status_code=400)
