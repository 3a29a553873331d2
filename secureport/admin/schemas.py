"""Request contracts for the admin panel (executive-only user management)."""
from typing import Optional

from pydantic import BaseModel, ConfigDict

from secureport.schemas import UserRole


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    password: str
    role: UserRole = UserRole.staff
    region: Optional[str] = None


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: UserRole
    region: Optional[str] = None
