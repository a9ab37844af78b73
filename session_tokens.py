# session_tokens.py
import logging
import secrets
import time
from typing import Optional

import jwt
from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

import config
from errors import ConfigurationError
from schemas import SessionData

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
STATE_MAX_AGE = 600


def _secret() -> str:
    if not config.SESSION_SECRET:
        raise ConfigurationError("Session secret is not configured")
    return config.SESSION_SECRET


def encode_session(session: SessionData, max_age: Optional[int] = None) -> str:
    now = int(time.time())
    payload = {
        "sub": session.email or session.provider_username,
        "iat": now,
        "exp": now + (max_age or config.SESSION_MAX_AGE),
        "session": session.model_dump(mode="json"),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_session(token: Optional[str]) -> Optional[SessionData]:
    """Resolve a session from a signed token. Any failure yields None."""
    if not token or not config.SESSION_SECRET:
        return None
    try:
        payload = jwt.decode(token, config.SESSION_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Session token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        return None

    try:
        return SessionData.model_validate(payload.get("session") or {})
    except PydanticValidationError as e:
        logger.warning(f"Malformed session payload: {e.error_count()} errors")
        return None


def token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def get_session_from_request(request: Request) -> Optional[SessionData]:
    session = getattr(request.state, "session", None)
    if session is not None:
        return session
    return decode_session(token_from_request(request))


def set_session_cookie(response, token: str):
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=config.SESSION_MAX_AGE,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response):
    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")


def safe_callback(url: Optional[str]) -> str:
    """Only same-site relative paths are followed after sign-in"""
    if not url or not url.startswith("/") or url.startswith("//"):
        return "/"
    # browsers read a backslash as a slash, so /\host is protocol-relative too
    if "\\" in url or any(ord(c) < 32 or ord(c) == 127 for c in url):
        return "/"
    return url


# ---------------------------
# OAuth state
# ---------------------------
def encode_state(provider: str, callback_url: str) -> str:
    payload = {
        "provider": provider,
        "callbackUrl": safe_callback(callback_url),
        "nonce": secrets.token_urlsafe(8),
        "exp": int(time.time()) + STATE_MAX_AGE,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_state(state: str, provider: str) -> Optional[str]:
    """Returns the callback URL carried by state, or None if state is not ours"""
    try:
        payload = jwt.decode(state, _secret(), algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid OAuth state: {e}")
        return None
    if payload.get("provider") != provider:
        return None
    return safe_callback(payload.get("callbackUrl"))
