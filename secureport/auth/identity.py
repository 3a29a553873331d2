"""
identity.py — identity and session provider.

Layers:
  - Module functions (create_identity, verify_credentials, issue_session,
    identity_for_token) work inside the caller's AsyncSession. HTTP routes
    and the privileged user-creation procedure use these directly.
  - IdentityService: the same operations, each in its own session scope.
  - IdentityProvider: client side. Holds the one current session of an
    application instance and pushes SignedIn / SignedOut events to its
    subscribers' queues, the way a hosted auth SDK notifies its app.

Emails are normalized to lower case. Logs carry identity ids, never emails
or passwords.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

import redis.asyncio as aioredis
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secureport.auth.passwords import check_password_policy, hash_password, verify_password
from secureport.cache import drop_session, new_session_token, resolve_session, store_session
from secureport.config import settings
from secureport.errors import AuthenticationError, ConflictError, TransportError, ValidationError
from secureport.models.identity import IdentityORM

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """Authenticated principal. `id` doubles as the profile key."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    token: str
    identity: Identity
    expires_in: int


@dataclass(frozen=True)
class SignedIn:
    session: AuthSession


@dataclass(frozen=True)
class SignedOut:
    pass


AuthEvent = Union[SignedIn, SignedOut]


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError(
            "A valid email address is required",
            details=[{"field": "email", "issue": "Invalid email address"}],
        )
    return email


# ---------------------------------------------------------------------------
# Identity rows (shared by sign-up and the privileged user-creation procedure)
# ---------------------------------------------------------------------------

async def create_identity(db: AsyncSession, email: str, password: str) -> Identity:
    """
    Insert a new identity inside the caller's transaction.
    Uses flush() (not commit()) — caller handles commit.

    Raises:
        ValidationError: bad email or password too short.
        ConflictError: email already registered.
    """
    email = normalize_email(email)
    check_password_policy(password)

    existing = await db.execute(select(IdentityORM.id).where(IdentityORM.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User already registered")

    orm = IdentityORM(email=email, password_hash=hash_password(password))
    db.add(orm)
    await db.flush()
    logger.info("Identity created identity_id=%s", orm.id)
    return Identity.model_validate(orm)


async def get_identity(db: AsyncSession, identity_id: str) -> Optional[Identity]:
    result = await db.execute(select(IdentityORM).where(IdentityORM.id == identity_id))
    orm = result.scalar_one_or_none()
    return Identity.model_validate(orm) if orm is not None else None


async def verify_credentials(db: AsyncSession, email: str, password: str) -> Identity:
    """
    Raises:
        AuthenticationError: unknown email or wrong password (indistinguishable).
    """
    email = (email or "").strip().lower()
    result = await db.execute(select(IdentityORM).where(IdentityORM.email == email))
    orm = result.scalar_one_or_none()
    if orm is None or not verify_password(orm.password_hash, password):
        logger.info("Sign-in rejected")
        raise AuthenticationError("Invalid login credentials")
    return Identity.model_validate(orm)


async def issue_session(redis: aioredis.Redis, identity: Identity) -> AuthSession:
    token = new_session_token()
    await store_session(redis, token, identity.id)
    return AuthSession(token=token, identity=identity, expires_in=settings.session_ttl_seconds)


async def identity_for_token(db: AsyncSession, redis: aioredis.Redis, token: str) -> Optional[Identity]:
    """Identity behind a live token (renewing it), or None."""
    identity_id = await resolve_session(redis, token)
    if identity_id is None:
        return None
    return await get_identity(db, identity_id)


# ---------------------------------------------------------------------------
# Server side
# ---------------------------------------------------------------------------

class IdentityService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], redis: aioredis.Redis):
        self.session_factory = session_factory
        self.redis = redis

    async def register(self, email: str, password: str) -> AuthSession:
        try:
            async with self.session_factory() as db:
                identity = await create_identity(db, email, password)
                await db.commit()
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to sign up: {exc}") from exc
        return await issue_session(self.redis, identity)

    async def authenticate(self, email: str, password: str) -> AuthSession:
        try:
            async with self.session_factory() as db:
                identity = await verify_credentials(db, email, password)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to sign in: {exc}") from exc
        return await issue_session(self.redis, identity)

    async def resolve(self, token: str) -> Optional[Identity]:
        try:
            async with self.session_factory() as db:
                return await identity_for_token(db, self.redis, token)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to load identity: {exc}") from exc

    async def revoke(self, token: str) -> None:
        await drop_session(self.redis, token)


# ---------------------------------------------------------------------------
# Client side
# ---------------------------------------------------------------------------

class IdentityProvider:
    """
    One application instance's view of authentication.

    At most one current session. Every transition is published to each
    subscriber queue; consumers process the queue one event at a time.
    """

    def __init__(self, service: IdentityService):
        self.service = service
        self._session: Optional[AuthSession] = None
        self._subscribers: list[asyncio.Queue] = []

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _publish(self, event: AuthEvent) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        self._session = await self.service.register(email, password)
        self._publish(SignedIn(self._session))
        return self._session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._session = await self.service.authenticate(email, password)
        self._publish(SignedIn(self._session))
        return self._session

    async def sign_out(self) -> None:
        if self._session is not None:
            await self.service.revoke(self._session.token)
        self._session = None
        self._publish(SignedOut())

    async def get_current_identity(self) -> Optional[Identity]:
        if self._session is None:
            return None
        identity = await self.service.resolve(self._session.token)
        if identity is None:
            logger.info("Session expired identity_id=%s", self._session.identity.id)
            self._session = None
            self._publish(SignedOut())
        return identity
