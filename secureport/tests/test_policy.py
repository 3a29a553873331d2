"""
Access policy tests — no database, no network.

Groups:
  1. Capability matrix per role (and for a missing profile)
  2. Navigation: available views, default view, re-validation after role change
  3. Report visibility / region scoping
  4. Role-region invariant
"""
from __future__ import annotations

import pytest

from secureport.errors import AuthorizationError, ValidationError
from secureport.policy import (
    Permission,
    View,
    available_views,
    can_manage_users,
    can_submit_report,
    can_view_aggregate_reports,
    can_view_report,
    check_permission,
    default_view,
    report_scope,
    resolve_view,
    validate_role_region,
    visible_reports,
)
from secureport.schemas import Region, UserRole
from secureport.tests.factories import make_report, make_user_profile


# ===========================================================================
# TEST GROUP 1: Capability matrix
# ===========================================================================

@pytest.mark.parametrize(
    "role, submit, view, manage",
    [
        (UserRole.staff, True, False, False),
        (UserRole.region_manager, True, True, False),
        (UserRole.executive, True, True, True),
    ],
)
def test_capabilities_per_role(role: UserRole, submit: bool, view: bool, manage: bool) -> None:
    profile = make_user_profile(role)
    assert can_submit_report(profile) is submit
    assert can_view_aggregate_reports(profile) is view
    assert can_manage_users(profile) is manage


def test_missing_profile_has_no_capabilities() -> None:
    assert not can_submit_report(None)
    assert not can_view_aggregate_reports(None)
    assert not can_manage_users(None)


def test_check_permission_names_role_and_permission() -> None:
    staff = make_user_profile(UserRole.staff)
    with pytest.raises(AuthorizationError) as exc_info:
        check_permission(staff, Permission.MANAGE_USERS)
    assert "staff" in exc_info.value.message
    assert "manage_users" in exc_info.value.message


def test_only_executives_see_all_regions() -> None:
    from secureport.policy import has_permission

    assert has_permission(make_user_profile(UserRole.executive), Permission.VIEW_ALL_REGIONS)
    assert not has_permission(make_user_profile(UserRole.region_manager), Permission.VIEW_ALL_REGIONS)


# ===========================================================================
# TEST GROUP 2: Navigation
# ===========================================================================

def test_available_views_per_role() -> None:
    assert available_views(None) == [View.PROFILE_SETUP]
    assert available_views(make_user_profile(UserRole.staff)) == [View.REPORT]
    assert available_views(make_user_profile(UserRole.region_manager)) == [View.REPORT, View.DASHBOARD]
    assert available_views(make_user_profile(UserRole.executive)) == [View.REPORT, View.DASHBOARD, View.ADMIN]


def test_default_view_is_report_on_first_login() -> None:
    for role in UserRole:
        assert default_view(make_user_profile(role)) == View.REPORT


def test_default_view_keeps_last_allowed_choice() -> None:
    manager = make_user_profile(UserRole.region_manager)
    assert default_view(manager, View.DASHBOARD) == View.DASHBOARD
    assert default_view(manager, View.ADMIN) == View.REPORT


def test_missing_profile_routes_to_setup_whatever_was_selected() -> None:
    for view in View:
        assert resolve_view(None, view) == View.PROFILE_SETUP


def test_demoted_executive_falls_back_from_admin() -> None:
    """The selected view is re-validated against the new capability set."""
    executive = make_user_profile(UserRole.executive)
    assert resolve_view(executive, View.ADMIN) == View.ADMIN

    demoted = executive.model_copy(update={"role": UserRole.staff, "region": Region.LD})
    assert resolve_view(demoted, View.ADMIN) == View.REPORT
    assert resolve_view(demoted, View.DASHBOARD) == View.REPORT


# ===========================================================================
# TEST GROUP 3: Report visibility
# ===========================================================================

def test_report_scope() -> None:
    assert report_scope(make_user_profile(UserRole.executive)) is None
    assert report_scope(make_user_profile(UserRole.region_manager, Region.SDK)) == Region.SDK
    with pytest.raises(AuthorizationError):
        report_scope(make_user_profile(UserRole.staff))


def test_region_manager_only_sees_own_region() -> None:
    manager = make_user_profile(UserRole.region_manager, Region.TWU)
    twu = make_report(region=Region.TWU)
    ld = make_report(region=Region.LD)

    assert can_view_report(manager, twu)
    assert not can_view_report(manager, ld)
    assert visible_reports(manager, [ld, twu, ld]) == [twu]


def test_executive_sees_every_region_in_order() -> None:
    executive = make_user_profile(UserRole.executive)
    reports = [make_report(region=r) for r in Region]
    assert visible_reports(executive, reports) == reports


def test_staff_cannot_view_any_report() -> None:
    staff = make_user_profile(UserRole.staff, Region.TWU)
    assert not can_view_report(staff, make_report(region=Region.TWU))


# ===========================================================================
# TEST GROUP 4: Role-region invariant
# ===========================================================================

def test_executive_region_is_dropped() -> None:
    assert validate_role_region("executive", "TWU") == (UserRole.executive, None)


@pytest.mark.parametrize("role", ["staff", "region_manager"])
@pytest.mark.parametrize("region", [None, ""])
def test_non_executive_requires_region(role: str, region) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_role_region(role, region)
    assert exc_info.value.details[0]["field"] == "region"


def test_unknown_region_and_role_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_role_region("staff", "KL")
    with pytest.raises(ValidationError):
        validate_role_region("admin", "TWU")


def test_profile_model_rejects_invalid_pairing() -> None:
    from pydantic import ValidationError as PydanticValidationError

    staff = make_user_profile(UserRole.staff, Region.TWU)
    with pytest.raises(PydanticValidationError):
        type(staff).model_validate({**staff.model_dump(), "region": None})
