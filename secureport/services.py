"""
services.py — in-process backend client used by the application shell.

Bundles the identity provider, the store facade and the object store behind
one object. Each call opens its own session scope and commits on success or
rolls back on failure, mirroring what get_db() does for HTTP requests.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secureport import store
from secureport.auth.identity import Identity, IdentityProvider
from secureport.evidence import ObjectStore
from secureport.profiles.schemas import UserProfile
from secureport.reports.schemas import ReportFilter, ReportFormData, SecurityReport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IncidentBackend:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity: IdentityProvider,
        object_store: ObjectStore,
    ):
        self.session_factory = session_factory
        self.identity = identity
        self.object_store = object_store

    async def _run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self.session_factory() as db:
            try:
                result = await fn(db, *args, **kwargs)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return result

    # --- profiles ---------------------------------------------------------

    async def load_profile(self, identity_id: str) -> Optional[UserProfile]:
        return await self._run(store.get_profile_or_none, identity_id)

    async def setup_profile(self, identity: Identity, role: Any, region: Any) -> UserProfile:
        return await self._run(store.create_profile, identity, role, region)

    # --- reports ----------------------------------------------------------

    async def submit_report(self, form: ReportFormData, submitter: UserProfile) -> SecurityReport:
        return await self._run(store.submit_report, form, self.object_store, submitter)

    async def fetch_reports(
        self, viewer: UserProfile, flt: Optional[ReportFilter] = None,
    ) -> list[SecurityReport]:
        return await self._run(store.list_reports, viewer, flt)

    # --- administration ---------------------------------------------------

    async def list_users(self, actor: UserProfile) -> list[UserProfile]:
        return await self._run(store.list_profiles, actor)

    async def create_user(
        self, actor: UserProfile, email: str, password: str, role: Any, region: Any,
    ) -> UserProfile:
        return await self._run(store.create_user, email, password, role, region, actor)

    async def update_user(self, actor: UserProfile, target_id: str, role: Any, region: Any) -> UserProfile:
        return await self._run(store.update_profile, target_id, role, region, actor)

    async def delete_user(self, actor: UserProfile, target_id: str) -> None:
        await self._run(store.delete_profile, target_id, actor)
