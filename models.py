from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, UniqueConstraint
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserTokens(SQLModel, table=True):
    __tablename__ = "user_tokens"
    __table_args__ = (UniqueConstraint("email", "provider"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    provider: str  # "github" or "gitlab"
    name: str = ""
    provider_username: str = ""
    access_token: str
    refresh_token: Optional[str] = Field(default=None)
    expires_at: Optional[float] = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class SignupUser(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    username: str = ""
    organization: str = ""
    purpose: str = ""
    signup_date: str
    signup_time: str
