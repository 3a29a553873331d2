"""
store.py — Data access facade for secureport.

Provides a consistent, high-level API for persisting and retrieving profiles
and reports. Routes and the application shell use these functions — nothing
else touches SQLAlchemy for these tables.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - Uses flush() (not commit()) — caller / get_db() dependency handles commit
  - Every call that needs a capability takes the acting profile and checks it
    here, independently of whatever the caller already checked
  - SQLAlchemy failures are wrapped into one TransportError per operation
  - Returns domain Pydantic objects (not ORM instances) so callers are persistence-agnostic
  - Logs ids, roles and regions only — never emails, phone numbers or summaries
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from secureport.admin import rpc
from secureport.auth.identity import Identity, normalize_email
from secureport.auth.passwords import check_password_policy
from secureport.config import settings
from secureport.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransportError,
    unwrap_envelope,
)
from secureport.evidence import ObjectStore, upload_evidence
from secureport.models.profile import ProfileORM
from secureport.models.report import ReportORM
from secureport.policy import Permission, check_permission, report_scope, validate_role_region
from secureport.profiles.schemas import UserProfile
from secureport.reports.filters import filter_reports
from secureport.reports.schemas import ReportFilter, ReportFormData, SecurityReport
from secureport.reports.validator import validate_report_form

logger = logging.getLogger(__name__)


@contextmanager
def _backend_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Backend failure while trying to %s: %s", action, type(exc).__name__)
        raise TransportError(f"Failed to {action}: {exc}") from exc


# ---------------------------------------------------------------------------
# Profile operations
# ---------------------------------------------------------------------------

async def get_profile_or_none(db: AsyncSession, identity_id: str) -> Optional[UserProfile]:
    """
    Retrieve the profile of an identity.
    Returns None if the identity has not completed profile setup yet.
    """
    with _backend_errors("fetch profile"):
        result = await db.execute(select(ProfileORM).where(ProfileORM.id == identity_id))
        orm = result.scalar_one_or_none()
    return UserProfile.model_validate(orm) if orm is not None else None


async def get_profile(db: AsyncSession, identity_id: str) -> UserProfile:
    """
    Raises:
        NotFoundError: the identity has no profile — route it to profile setup.
    """
    profile = await get_profile_or_none(db, identity_id)
    if profile is None:
        raise NotFoundError("Profile setup required")
    return profile


async def create_profile(
    db: AsyncSession,
    identity: Identity,
    role: object,
    region: object,
) -> UserProfile:
    """
    Self-service profile setup. Succeeds at most once per identity.

    Raises:
        ValidationError: role/region combination invalid.
        AuthorizationError: role not offered for self-service setup.
        ConflictError: the identity already has a profile.
    """
    role, region = validate_role_region(role, region)
    if role.value not in settings.self_setup_roles_list:
        raise AuthorizationError(f"Role '{role.value}' must be assigned by an executive")

    if await get_profile_or_none(db, identity.id) is not None:
        raise ConflictError("Profile already exists")

    orm = ProfileORM(
        id=identity.id,
        email=identity.email,
        role=role.value,
        region=region.value if region else None,
    )
    db.add(orm)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent setup for the same identity
        raise ConflictError("Profile already exists") from exc
    except SQLAlchemyError as exc:
        raise TransportError(f"Failed to create profile: {exc}") from exc

    logger.info(
        "Profile created identity_id=%s role=%s region=%s",
        identity.id, role.value, region.value if region else None,
    )
    return UserProfile.model_validate(orm)


async def update_profile(
    db: AsyncSession,
    target_id: str,
    role: object,
    region: object,
    actor: UserProfile,
) -> UserProfile:
    """Administrative role/region change, executed through the privileged procedure."""
    check_permission(actor, Permission.MANAGE_USERS)
    role, region = validate_role_region(role, region)

    with _backend_errors("update user"):
        envelope = await rpc.update_user_role_and_region(
            db,
            caller_id=actor.id,
            target_user_id=target_id,
            new_role=role.value,
            new_region=region.value if region else None,
        )
    unwrap_envelope(envelope, "update user")
    return await get_profile(db, target_id)


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: object,
    region: object,
    actor: UserProfile,
) -> UserProfile:
    """Administrative account creation (identity + profile in one step)."""
    check_permission(actor, Permission.MANAGE_USERS)
    role, region = validate_role_region(role, region)
    email = normalize_email(email)
    check_password_policy(password)

    with _backend_errors("create user"):
        envelope = await rpc.create_user_with_profile(
            db,
            caller_id=actor.id,
            user_email=email,
            user_password=password,
            user_role=role.value,
            user_region=region.value if region else None,
        )
    unwrap_envelope(envelope, "create user")
    return await get_profile(db, envelope["user_id"])


async def list_profiles(db: AsyncSession, actor: UserProfile) -> list[UserProfile]:
    """All profiles, newest-created first. Executive only."""
    check_permission(actor, Permission.MANAGE_USERS)
    with _backend_errors("fetch users"):
        result = await db.execute(select(ProfileORM).order_by(ProfileORM.created_at.desc()))
        rows = result.scalars().all()
    return [UserProfile.model_validate(orm) for orm in rows]


async def delete_profile(db: AsyncSession, target_id: str, actor: UserProfile) -> None:
    """
    Remove a profile row. Executive only.

    The identity itself is kept: it can still sign in and will be sent back
    to profile setup. Revoking credentials is outside this operation.
    """
    check_permission(actor, Permission.MANAGE_USERS)
    with _backend_errors("delete user profile"):
        result = await db.execute(delete(ProfileORM).where(ProfileORM.id == target_id))
    if result.rowcount == 0:
        raise NotFoundError("User profile not found")
    logger.info("Profile deleted by actor_id=%s target_id=%s", actor.id, target_id)


# ---------------------------------------------------------------------------
# Report operations
# ---------------------------------------------------------------------------

async def submit_report(
    db: AsyncSession,
    form: ReportFormData,
    object_store: ObjectStore,
    submitter: UserProfile,
) -> SecurityReport:
    """
    Validate, upload evidence, then insert the report row.

    Evidence goes first: if any photo fails, TransportError propagates and no
    row is written. Photo URLs are stored in attachment order.
    """
    check_permission(submitter, Permission.SUBMIT_REPORT)
    validate_report_form(form)

    photo_urls = await upload_evidence(object_store, form.photos)

    orm = ReportORM(
        unit=form.unit,
        region=form.region,
        category=form.category,
        incident_date=form.incident_date,
        incident_time=form.incident_time,
        loss_estimation_kg=form.loss_estimation_kg,
        supervisor_phone=form.supervisor_phone.strip(),
        summary=form.summary.strip(),
        latitude=form.latitude,
        longitude=form.longitude,
        photos=photo_urls,
    )
    with _backend_errors("submit report"):
        db.add(orm)
        await db.flush()

    logger.info(
        "Report submitted report_id=%s submitter_id=%s region=%s photos=%d",
        orm.id, submitter.id, orm.region, len(photo_urls),
    )
    return SecurityReport.model_validate(orm)


async def list_reports(
    db: AsyncSession,
    viewer: UserProfile,
    flt: Optional[ReportFilter] = None,
) -> list[SecurityReport]:
    """
    Reports visible to `viewer`, newest-created first.

    Region managers are limited to their own region in the query itself;
    executives are unscoped.
    """
    scope = report_scope(viewer)
    query = select(ReportORM).order_by(ReportORM.created_at.desc())
    if scope is not None:
        query = query.where(ReportORM.region == scope.value)

    with _backend_errors("fetch reports"):
        result = await db.execute(query)
        rows = result.scalars().all()

    reports = [SecurityReport.model_validate(orm) for orm in rows]
    logger.info(
        "Reports listed viewer_id=%s scope=%s count=%d",
        viewer.id, scope.value if scope else "all", len(reports),
    )
    return filter_reports(reports, flt)
