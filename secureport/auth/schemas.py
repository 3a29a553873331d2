"""Request/response contracts for /api/auth."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from secureport.auth.identity import Identity
from secureport.policy import View
from secureport.profiles.schemas import UserProfile


class Credentials(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Identity


class Capabilities(BaseModel):
    submit_report: bool
    view_reports: bool
    manage_users: bool


class MeResponse(BaseModel):
    """What the front end needs to decide what to render."""
    user: Identity
    profile: Optional[UserProfile] = None
    capabilities: Capabilities
    views: List[View]
    default_view: View
