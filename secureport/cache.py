"""
cache.py — Redis session-token store for secureport.

Namespace conventions:
  session:{token}   → identity id     TTL settings.session_ttl_seconds (sliding)

Design:
  - Uses redis.asyncio (async client, part of redis-py 5.x — do NOT use aioredis separately)
  - Pool created once in lifespan, stored on app.state.redis
  - Helper functions take the client as a param — no module-level global state
  - Every successful lookup renews the TTL, so active sessions never expire mid-use
  - Logs only identity ids and token prefixes — never full tokens
"""
import logging
import secrets
from typing import Optional

import redis.asyncio as aioredis

from secureport.config import settings

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session"


def make_session_key(token: str) -> str:
    """Build Redis key for a session token: session:{token}"""
    return f"{SESSION_PREFIX}:{token}"


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


async def create_redis_pool() -> aioredis.Redis:
    """
    Create and return an async Redis connection pool.
    Called once in FastAPI lifespan startup — stored on app.state.redis.
    Verifies connectivity with PING before returning.
    """
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await client.ping()
    logger.info("Redis connection pool established at %s", settings.redis_url)
    return client


async def store_session(client: aioredis.Redis, token: str, identity_id: str) -> None:
    await client.setex(make_session_key(token), settings.session_ttl_seconds, identity_id)
    logger.info("Session issued identity_id=%s token=%s…", identity_id, token[:6])


async def resolve_session(client: aioredis.Redis, token: str) -> Optional[str]:
    """
    Return the identity id for a token and renew its TTL.
    Returns None if the token expired or never existed.
    """
    key = make_session_key(token)
    identity_id = await client.get(key)
    if identity_id is None:
        return None
    await client.expire(key, settings.session_ttl_seconds)
    return identity_id


async def drop_session(client: aioredis.Redis, token: str) -> None:
    await client.delete(make_session_key(token))
    logger.info("Session revoked token=%s…", token[:6])
