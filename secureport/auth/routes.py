"""
Auth HTTP routes — POST /api/auth/signup, POST /api/auth/signin,
                   POST /api/auth/signout, GET /api/auth/me

Tokens are opaque bearer strings stored in Redis (see cache.py).
"""
from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from secureport.auth.context import SessionContext
from secureport.auth.dependencies import get_bearer_token, get_redis, get_session_context
from secureport.auth.identity import create_identity, issue_session, verify_credentials
from secureport.auth.schemas import Capabilities, Credentials, MeResponse, TokenResponse
from secureport.cache import drop_session
from secureport.database import get_db
from secureport.policy import (
    available_views,
    can_manage_users,
    can_submit_report,
    can_view_aggregate_reports,
    default_view,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=TokenResponse)
async def sign_up(
    body: Credentials,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> TokenResponse:
    """Register and sign in. The new identity has no profile until POST /api/profile."""
    identity = await create_identity(db, body.email, body.password)
    await db.commit()
    session = await issue_session(redis, identity)
    return TokenResponse(access_token=session.token, expires_in=session.expires_in, user=identity)


@router.post("/signin", response_model=TokenResponse)
async def sign_in(
    body: Credentials,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> TokenResponse:
    identity = await verify_credentials(db, body.email, body.password)
    session = await issue_session(redis, identity)
    logger.info("Signed in identity_id=%s", identity.id)
    return TokenResponse(access_token=session.token, expires_in=session.expires_in, user=identity)


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    token: str = Depends(get_bearer_token),
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    await drop_session(redis, token)


@router.get("/me", response_model=MeResponse)
async def me(ctx: SessionContext = Depends(get_session_context)) -> MeResponse:
    """
    Identity, profile and capability set of the caller.
    A null profile means the client must show profile setup and nothing else.
    """
    profile = ctx.profile
    return MeResponse(
        user=ctx.identity,
        profile=profile,
        capabilities=Capabilities(
            submit_report=can_submit_report(profile),
            view_reports=can_view_aggregate_reports(profile),
            manage_users=can_manage_users(profile),
        ),
        views=available_views(profile),
        default_view=default_view(profile),
    )
