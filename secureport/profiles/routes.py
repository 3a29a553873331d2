"""
Profile HTTP routes — POST /api/profile (one-time setup), GET /api/profile
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from secureport import store
from secureport.auth.dependencies import get_current_identity, require_profile
from secureport.auth.identity import Identity
from secureport.database import get_db
from secureport.profiles.schemas import ProfileSetupRequest, UserProfile

router = APIRouter(prefix="/api", tags=["profiles"])


@router.post("/profile", status_code=status.HTTP_201_CREATED, response_model=UserProfile)
async def setup_profile(
    body: ProfileSetupRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    """
    Complete profile setup for the signed-in identity.

    Returns:
        201: the new profile
        409: CONFLICT if the identity already has one
        422: VALIDATION_ERROR if a non-executive role has no valid region
    """
    return await store.create_profile(db, identity, body.role, body.region)


@router.get("/profile", response_model=UserProfile)
async def read_profile(profile: UserProfile = Depends(require_profile)) -> UserProfile:
    return profile
