# schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Dict, Literal, Optional, Union


# ---------------------------
# Provider profiles
# ---------------------------
class GitHubProfile(BaseModel):
    provider: Literal["github"] = "github"
    id: int
    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class GitLabProfile(BaseModel):
    provider: Literal["gitlab"] = "gitlab"
    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


Profile = Annotated[Union[GitHubProfile, GitLabProfile], Field(discriminator="provider")]


class SessionData(BaseModel):
    """What the signed session token carries"""
    access_token: str
    profile: Profile
    email: Optional[str] = None

    @property
    def provider(self) -> str:
        return self.profile.provider

    @property
    def provider_username(self) -> str:
        if isinstance(self.profile, GitHubProfile):
            return self.profile.login
        return self.profile.username


class NormalizedUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    name: str
    username: str
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    provider: str


# ---------------------------
# Request bodies
# ---------------------------
class EmailRequest(BaseModel):
    email: str = ""


class LoginLogRequest(BaseModel):
    email: str = ""
    name: str = ""


class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    email: str = ""
    username: str = ""
    organization: str = ""
    purpose: str = ""


class SaveTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    access_token: str = Field(default="", alias="accessToken")
    provider: Literal["github", "gitlab"] = "github"
    name: str = ""
    username: str = ""


class TokenRefreshRequest(BaseModel):
    email: str = ""
    provider: str = ""


class RepoContext(BaseModel):
    structure: str = ""
    readme: str = ""
    taggedFiles: Dict[str, str] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    question: str = ""
    message: str = ""
    email: Optional[str] = None
    owner: Optional[str] = None
    repo: Optional[str] = None
    repoContext: Optional[RepoContext] = None
