"""
rpc.py — privileged procedures for administrative user management.

These run with elevated rights inside the backend (the only code allowed to
create an identity on someone else's behalf or to change another user's
role). Each procedure re-checks the caller's own profile in the database and
answers with an envelope:

    {"success": True, "user_id": "..."}
    {"success": False, "error": "..."}

Business failures are reported in the envelope, never raised; only transport
failures (SQLAlchemyError) escape. The store unwraps envelopes with
errors.unwrap_envelope().
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from secureport.auth.identity import create_identity
from secureport.errors import AppError
from secureport.models.profile import ProfileORM
from secureport.policy import validate_role_region
from secureport.schemas import UserRole

logger = logging.getLogger(__name__)


async def _caller_is_executive(db: AsyncSession, caller_id: str) -> bool:
    result = await db.execute(select(ProfileORM.role).where(ProfileORM.id == caller_id))
    return result.scalar_one_or_none() == UserRole.executive.value


async def create_user_with_profile(
    db: AsyncSession,
    caller_id: str,
    user_email: str,
    user_password: str,
    user_role: str,
    user_region: Optional[str],
) -> dict[str, Any]:
    """Create an identity plus its profile in one transaction."""
    if not await _caller_is_executive(db, caller_id):
        logger.warning("create_user_with_profile denied caller_id=%s", caller_id)
        return {"success": False, "error": "Only executives can create users"}

    try:
        role, region = validate_role_region(user_role, user_region)
        identity = await create_identity(db, user_email, user_password)
    except AppError as exc:
        return {"success": False, "error": exc.message}

    db.add(ProfileORM(
        id=identity.id,
        email=identity.email,
        role=role.value,
        region=region.value if region else None,
    ))
    await db.flush()
    logger.info("User created by caller_id=%s user_id=%s role=%s", caller_id, identity.id, role.value)
    return {"success": True, "user_id": identity.id}


async def update_user_role_and_region(
    db: AsyncSession,
    caller_id: str,
    target_user_id: str,
    new_role: str,
    new_region: Optional[str],
) -> dict[str, Any]:
    """Reassign another user's role and region."""
    if not await _caller_is_executive(db, caller_id):
        logger.warning("update_user_role_and_region denied caller_id=%s", caller_id)
        return {"success": False, "error": "Only executives can update users"}

    try:
        role, region = validate_role_region(new_role, new_region)
    except AppError as exc:
        return {"success": False, "error": exc.message}

    result = await db.execute(select(ProfileORM).where(ProfileORM.id == target_user_id))
    orm = result.scalar_one_or_none()
    if orm is None:
        return {"success": False, "error": "User profile not found"}

    orm.role = role.value
    orm.region = region.value if region else None
    orm.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info(
        "User updated by caller_id=%s user_id=%s role=%s", caller_id, target_user_id, role.value,
    )
    return {"success": True, "user_id": target_user_id}
