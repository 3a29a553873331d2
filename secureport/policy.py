"""
Access policy for secureport.

Pure decision logic: given the current identity's profile, which views are
reachable and which report rows are visible. Nothing here touches the
database, the network or the clock.

Role model:
- staff:           submit reports
- region_manager:  submit, view and export reports of its own region
- executive:       everything, across all regions, plus user management

A missing profile (identity that has not finished setup) has no permissions
at all; the only reachable view is profile setup.
"""

from enum import Enum
from typing import Iterable, Optional

from secureport.errors import AuthorizationError, ValidationError
from secureport.profiles.schemas import UserProfile
from secureport.reports.schemas import SecurityReport
from secureport.schemas import REGIONS, Region, UserRole


class Permission(str, Enum):
    """Available permissions in the system."""
    SUBMIT_REPORT = "submit_report"
    VIEW_REPORTS = "view_reports"
    VIEW_ALL_REGIONS = "view_all_regions"
    EXPORT_REPORTS = "export_reports"
    MANAGE_USERS = "manage_users"


class View(str, Enum):
    """Top-level screens of the application shell."""
    SIGN_IN = "sign_in"
    PROFILE_SETUP = "profile_setup"
    REPORT = "report"
    DASHBOARD = "dashboard"
    ADMIN = "admin"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[UserRole, set[Permission]] = {
    UserRole.executive: {
        Permission.SUBMIT_REPORT,
        Permission.VIEW_REPORTS,
        Permission.VIEW_ALL_REGIONS,
        Permission.EXPORT_REPORTS,
        Permission.MANAGE_USERS,
    },
    UserRole.region_manager: {
        Permission.SUBMIT_REPORT,
        Permission.VIEW_REPORTS,
        Permission.EXPORT_REPORTS,
    },
    UserRole.staff: {
        Permission.SUBMIT_REPORT,
    },
}

# View -> permission needed to show it
VIEW_PERMISSIONS: dict[View, Permission] = {
    View.REPORT: Permission.SUBMIT_REPORT,
    View.DASHBOARD: Permission.VIEW_REPORTS,
    View.ADMIN: Permission.MANAGE_USERS,
}


def has_permission(profile: Optional[UserProfile], permission: Permission) -> bool:
    if profile is None:
        return False
    return permission in ROLE_PERMISSIONS.get(profile.role, set())


def check_permission(profile: Optional[UserProfile], permission: Permission) -> None:
    """
    Raise AuthorizationError unless the profile holds the permission.

    Raises:
        AuthorizationError: naming the role and the missing permission.
    """
    if not has_permission(profile, permission):
        role = profile.role.value if profile is not None else "none"
        raise AuthorizationError(
            f"Access denied. Role '{role}' does not have permission '{permission.value}'."
        )


def can_submit_report(profile: Optional[UserProfile]) -> bool:
    return has_permission(profile, Permission.SUBMIT_REPORT)


def can_view_aggregate_reports(profile: Optional[UserProfile]) -> bool:
    return has_permission(profile, Permission.VIEW_REPORTS)


def can_manage_users(profile: Optional[UserProfile]) -> bool:
    return has_permission(profile, Permission.MANAGE_USERS)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def available_views(profile: Optional[UserProfile]) -> list[View]:
    """Views the navigation may offer, in display order."""
    if profile is None:
        return [View.PROFILE_SETUP]
    return [view for view, perm in VIEW_PERMISSIONS.items() if has_permission(profile, perm)]


def resolve_view(profile: Optional[UserProfile], selected: Optional[View]) -> View:
    """
    Re-validate a selected view against the current capability set.

    Called on every render, so a role change made by an executive takes
    effect on the next render: a demoted executive sitting on ADMIN falls
    back to REPORT, while a promoted staff member stays where they are.
    """
    if profile is None:
        return View.PROFILE_SETUP
    if selected in available_views(profile):
        return selected
    return View.REPORT


def default_view(profile: Optional[UserProfile], last_selected: Optional[View] = None) -> View:
    """REPORT on first login, otherwise the last explicit choice if still allowed."""
    return resolve_view(profile, last_selected or View.REPORT)


# ---------------------------------------------------------------------------
# Report visibility
# ---------------------------------------------------------------------------

def report_scope(profile: Optional[UserProfile]) -> Optional[Region]:
    """
    Region a viewer is restricted to, or None for an unscoped viewer.

    Region managers only see their own region; executives see all regions.

    Raises:
        AuthorizationError: if the profile cannot view reports at all.
    """
    check_permission(profile, Permission.VIEW_REPORTS)
    if has_permission(profile, Permission.VIEW_ALL_REGIONS):
        return None
    return profile.region


def can_view_report(profile: Optional[UserProfile], report: SecurityReport) -> bool:
    if not can_view_aggregate_reports(profile):
        return False
    scope = report_scope(profile)
    return scope is None or report.region == scope


def visible_reports(
    profile: Optional[UserProfile],
    reports: Iterable[SecurityReport],
) -> list[SecurityReport]:
    """Filter `reports` down to what `profile` may see, keeping order."""
    scope = report_scope(profile)
    if scope is None:
        return list(reports)
    return [r for r in reports if r.region == scope]


# ---------------------------------------------------------------------------
# Profile invariants
# ---------------------------------------------------------------------------

def validate_role_region(role: object, region: object) -> tuple[UserRole, Optional[Region]]:
    """
    Normalize a (role, region) pair or raise ValidationError.

    Executives never carry a region (any supplied value is dropped, matching
    the setup form which hides the region picker for executives). Every other
    role must name one of the fixed regions.
    """
    try:
        role = UserRole(role)
    except ValueError:
        raise ValidationError(
            f"Invalid role '{role}'",
            details=[{"field": "role", "issue": f"Role must be one of {[r.value for r in UserRole]}"}],
        )

    if role == UserRole.executive:
        return role, None

    if region in (None, ""):
        raise ValidationError(
            f"Role '{role.value}' requires a region",
            details=[{"field": "region", "issue": "Region is required for staff and region managers"}],
        )
    try:
        return role, Region(region)
    except ValueError:
        raise ValidationError(
            f"Invalid region '{region}'",
            details=[{"field": "region", "issue": f"Region must be one of {REGIONS}"}],
        )
