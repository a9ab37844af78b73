# token_utils.py
import logging
import time
from typing import Optional

import httpx
from sqlmodel import Session, select

import providers
from errors import (
    MissingCredential,
    NotFoundError,
    ReauthError,
    TransportError,
    UpstreamAuthError,
    UpstreamAuthFailure,
    ValidationError,
)
from models import UserTokens, utcnow
from schemas import NormalizedUser

logger = logging.getLogger(__name__)


def get_stored_token(db: Session, email: str, provider: str = "github") -> Optional[UserTokens]:
    return db.exec(
        select(UserTokens).where(UserTokens.email == email, UserTokens.provider == provider)
    ).first()


def save_access_token(db: Session, email: str, access_token: str, provider: str = "github",
                      name: str = "", username: str = "", refresh_token: Optional[str] = None,
                      expires_in: Optional[int] = None) -> UserTokens:
    """Create or update the stored credential for (email, provider)"""
    token = get_stored_token(db, email, provider)
    expires_at = time.time() + expires_in if expires_in else None

    if token:
        token.access_token = access_token
        token.name = name or token.name
        token.provider_username = username or token.provider_username
        token.refresh_token = refresh_token or token.refresh_token
        token.expires_at = expires_at if expires_in else token.expires_at
        token.updated_at = utcnow()
        logger.info(f"Updated {provider} token for {email}")
    else:
        token = UserTokens(
            email=email,
            provider=provider,
            name=name,
            provider_username=username,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        logger.info(f"Stored new {provider} token for {email}")

    db.add(token)
    db.commit()
    db.refresh(token)
    return token


async def authenticate(email: str, db: Session,
                       github: Optional[providers.OAuthProvider] = None) -> Optional[dict]:
    """Re-authenticate a user against GitHub with their stored token.

    Returns the normalized user, or None when there is no stored token, GitHub
    rejects it, or GitHub cannot be reached. The stored token is not modified.
    """
    github = github or providers.get_provider("github")
    try:
        record = get_stored_token(db, email, "github")
        if not record:
            raise MissingCredential(f"no stored GitHub token for {email}")

        try:
            profile = await github.fetch_profile(record.access_token)
        except httpx.HTTPStatusError as e:
            raise UpstreamAuthFailure(f"GitHub rejected stored token ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e
        except (ValueError, KeyError, TypeError) as e:
            # non-JSON body or a profile missing required fields
            raise UpstreamAuthFailure(f"GitHub returned an unusable profile: {e.__class__.__name__}") from e
    except ReauthError as e:
        logger.warning(f"GitHub re-authentication failed for {email}: {e.__class__.__name__}: {e}")
        return None

    user = NormalizedUser(
        email=profile.email or email,
        name=profile.name or profile.login,
        username=profile.login,
        avatar_url=profile.avatar_url,
        provider="github",
    )
    logger.info(f"GitHub re-authentication succeeded for {email} ({profile.login})")
    return user.model_dump(by_alias=True)


async def refresh_provider_token(db: Session, email: str, provider_name: str,
                                 oauth: Optional[providers.OAuthProvider] = None) -> UserTokens:
    """Returns a valid stored token, refreshing it when it has expired"""
    oauth = oauth or providers.get_provider(provider_name)
    token = get_stored_token(db, email, provider_name)
    if not token:
        raise NotFoundError(f"No token found for {provider_name}")
    if not token.expires_at or token.expires_at > time.time():
        return token
    if not token.refresh_token:
        raise ValidationError(f"No refresh token stored for {provider_name}")

    try:
        new_data = await oauth.refresh(token.refresh_token)
    except httpx.HTTPStatusError as e:
        logger.error(f"{provider_name} refused token refresh for {email}: {e}")
        raise UpstreamAuthError(f"Failed to refresh {provider_name} token") from e

    token.access_token = new_data["access_token"]
    token.refresh_token = new_data.get("refresh_token", token.refresh_token)
    token.expires_at = time.time() + new_data.get("expires_in", 3600)
    token.updated_at = utcnow()
    db.add(token)
    db.commit()
    db.refresh(token)
    logger.info(f"Refreshed {provider_name} token for {email}")
    return token


def delete_token(db: Session, email: str, provider: str) -> bool:
    token = get_stored_token(db, email, provider)
    if not token:
        return False
    db.delete(token)
    db.commit()
    return True
