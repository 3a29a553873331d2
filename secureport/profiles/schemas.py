"""
schemas.py — profile data contracts.

UserProfile is the read model every access decision is computed from.
ProfileSetupRequest is what a freshly signed-up identity submits once.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from secureport.schemas import Region, UserRole


class UserProfile(BaseModel):
    """
    One profile per identity. `id` equals the identity id.

    Invariant: executives carry no region; every other role carries one.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    role: UserRole
    region: Optional[Region] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def region_matches_role(self) -> "UserProfile":
        if self.role == UserRole.executive and self.region is not None:
            raise ValueError("Executives are not assigned to a region")
        if self.role != UserRole.executive and self.region is None:
            raise ValueError(f"Role '{self.role.value}' requires a region")
        return self


class ProfileSetupRequest(BaseModel):
    """Body of POST /api/profile. Region is ignored for executives."""
    model_config = ConfigDict(extra="forbid")

    role: UserRole = UserRole.staff
    region: Optional[str] = Field(
        default=None,
        description="One of TWU, LD, SDK, BFT, KDT. Required unless role is executive.",
    )
