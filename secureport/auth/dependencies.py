"""
FastAPI dependencies that turn a bearer token into a SessionContext.

The context is rebuilt on every request from the database, so a role change
made by an executive applies to the affected user's very next request.
"""
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from secureport import store
from secureport.auth.context import SessionContext
from secureport.auth.identity import Identity, identity_for_token
from secureport.database import get_db
from secureport.errors import AuthenticationError, NotFoundError
from secureport.evidence import ObjectStore
from secureport.profiles.schemas import UserProfile

_bearer = HTTPBearer(auto_error=False)


def get_redis(request: Request) -> aioredis.Redis:
    return request.app.state.redis


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not signed in")
    return credentials.credentials


async def get_current_identity(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Identity:
    identity = await identity_for_token(db, redis, token)
    if identity is None:
        raise AuthenticationError("Session expired. Please sign in again.")
    return identity


async def get_session_context(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    profile = await store.get_profile_or_none(db, identity.id)
    return SessionContext(identity=identity, profile=profile)


async def require_profile(ctx: SessionContext = Depends(get_session_context)) -> UserProfile:
    """Every route except profile setup needs a finished profile."""
    if ctx.profile is None:
        raise NotFoundError("Profile setup required")
    return ctx.profile
