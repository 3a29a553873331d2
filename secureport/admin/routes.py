"""
Admin HTTP routes — GET    /api/admin/users
                    POST   /api/admin/users
                    PATCH  /api/admin/users/{user_id}
                    DELETE /api/admin/users/{user_id}

All routes require MANAGE_USERS (executives). The store re-checks the
permission, and the privileged procedures re-check the caller once more in
the database.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from secureport import store
from secureport.admin.schemas import CreateUserRequest, UpdateUserRequest
from secureport.auth.dependencies import require_profile
from secureport.database import get_db
from secureport.policy import Permission, check_permission
from secureport.profiles.schemas import UserProfile

router = APIRouter(prefix="/api/admin", tags=["admin"])


def require_manager(profile: UserProfile = Depends(require_profile)) -> UserProfile:
    check_permission(profile, Permission.MANAGE_USERS)
    return profile


@router.get("/users", response_model=List[UserProfile])
async def list_users(
    actor: UserProfile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
) -> List[UserProfile]:
    return await store.list_profiles(db, actor)


@router.post("/users", status_code=status.HTTP_201_CREATED, response_model=UserProfile)
async def create_user(
    body: CreateUserRequest,
    actor: UserProfile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    return await store.create_user(db, body.email, body.password, body.role, body.region, actor)


@router.patch("/users/{user_id}", response_model=UserProfile)
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    actor: UserProfile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    return await store.update_profile(db, user_id, body.role, body.region, actor)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    actor: UserProfile = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Deletes the profile only. The account can still sign in and will be
    asked to set up a profile again.
    """
    await store.delete_profile(db, user_id, actor)
    return {"success": True}
