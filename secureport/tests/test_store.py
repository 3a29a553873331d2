"""
Store facade tests — SQLite (aiosqlite) + filesystem object store.

Groups:
  1. Profile setup, listing and deletion
  2. Administrative procedures (envelopes)
  3. Report submission (validation, evidence ordering, fail-closed uploads)
  4. Report listing and region scoping
"""
from __future__ import annotations

import math
from pathlib import Path
from types import SimpleNamespace

import pytest

from secureport import evidence, store
from secureport.auth.identity import create_identity
from secureport.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from secureport.evidence import LocalObjectStore
from secureport.reports.schemas import ReportFilter
from secureport.schemas import Category, Region, Unit, UserRole
from secureport.tests.factories import PASSWORD, PUBLIC_BASE_URL, jpeg, make_form, png


class FlakyObjectStore(LocalObjectStore):
    """Fails every attempt for keys at the given attachment indexes."""

    def __init__(self, root: str, failing_indexes: set[int]):
        super().__init__(root, PUBLIC_BASE_URL)
        self.failing_indexes = failing_indexes
        self.attempts: list[str] = []

    async def upload(self, bucket, key, blob, content_type):
        self.attempts.append(key)
        index = int(key.rsplit(".", 1)[0].rsplit("-", 1)[1])
        if index in self.failing_indexes:
            raise OSError("storage unavailable")
        await super().upload(bucket, key, blob, content_type)


class OccupiedObjectStore(LocalObjectStore):
    """Every key already exists."""

    def __init__(self, root: str):
        super().__init__(root, PUBLIC_BASE_URL)
        self.attempts = 0

    async def upload(self, bucket, key, blob, content_type):
        self.attempts += 1
        raise FileExistsError(f"Object already exists: {bucket}/{key}")


def _stored_files(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*") if p.is_file()) if root.exists() else []


# ===========================================================================
# TEST GROUP 1: Profiles
# ===========================================================================

@pytest.mark.asyncio
async def test_create_profile_and_read_back(db) -> None:
    identity = await create_identity(db, "Guard@Estate.test", PASSWORD)
    profile = await store.create_profile(db, identity, "region_manager", "LD")

    assert profile.id == identity.id
    assert profile.email == "guard@estate.test"
    assert profile.role == UserRole.region_manager
    assert profile.region == Region.LD
    assert await store.get_profile(db, identity.id) == profile


@pytest.mark.asyncio
async def test_missing_profile_is_not_found(db) -> None:
    identity = await create_identity(db, "new@estate.test", PASSWORD)
    assert await store.get_profile_or_none(db, identity.id) is None
    with pytest.raises(NotFoundError):
        await store.get_profile(db, identity.id)


@pytest.mark.asyncio
async def test_executive_profile_never_stores_region(db) -> None:
    identity = await create_identity(db, "boss@estate.test", PASSWORD)
    profile = await store.create_profile(db, identity, "executive", "TWU")
    assert profile.region is None


@pytest.mark.asyncio
async def test_staff_profile_without_region_rejected(db) -> None:
    identity = await create_identity(db, "guard@estate.test", PASSWORD)
    with pytest.raises(ValidationError):
        await store.create_profile(db, identity, "staff", None)
    assert await store.get_profile_or_none(db, identity.id) is None


@pytest.mark.asyncio
async def test_profile_setup_succeeds_only_once(db) -> None:
    identity = await create_identity(db, "guard@estate.test", PASSWORD)
    await store.create_profile(db, identity, "staff", "TWU")
    with pytest.raises(ConflictError):
        await store.create_profile(db, identity, "executive", None)


@pytest.mark.asyncio
async def test_self_setup_roles_are_configurable(db, monkeypatch) -> None:
    from secureport.config import settings

    monkeypatch.setattr(settings, "self_setup_roles", "staff")
    identity = await create_identity(db, "climber@estate.test", PASSWORD)
    with pytest.raises(AuthorizationError):
        await store.create_profile(db, identity, "executive", None)


@pytest.mark.asyncio
async def test_list_profiles_newest_first(db, make_profile) -> None:
    executive = await make_profile("executive", None)
    first = await make_profile("staff", "TWU")
    second = await make_profile("region_manager", "BFT")

    ids = [p.id for p in await store.list_profiles(db, executive)]
    assert ids == [second.id, first.id, executive.id]


@pytest.mark.asyncio
async def test_list_profiles_requires_executive(db, make_profile) -> None:
    manager = await make_profile("region_manager", "TWU")
    with pytest.raises(AuthorizationError):
        await store.list_profiles(db, manager)


@pytest.mark.asyncio
async def test_delete_profile(db, make_profile) -> None:
    executive = await make_profile("executive", None)
    staff = await make_profile("staff", "KDT")

    await store.delete_profile(db, staff.id, executive)
    assert await store.get_profile_or_none(db, staff.id) is None

    with pytest.raises(NotFoundError):
        await store.delete_profile(db, staff.id, executive)


# ===========================================================================
# TEST GROUP 2: Administrative procedures
# ===========================================================================

@pytest.mark.asyncio
async def test_executive_updates_role_and_region(db, make_profile) -> None:
    executive = await make_profile("executive", None)
    staff = await make_profile("staff", "TWU")

    promoted = await store.update_profile(db, staff.id, "region_manager", "SDK", executive)
    assert promoted.role == UserRole.region_manager
    assert promoted.region == Region.SDK


@pytest.mark.asyncio
async def test_procedure_rechecks_caller_in_database(db, make_profile) -> None:
    """A caller claiming to be an executive is still refused by the procedure."""
    impostor = await make_profile("staff", "TWU")
    target = await make_profile("staff", "LD")
    forged = impostor.model_copy(update={"role": UserRole.executive, "region": None})

    with pytest.raises(AuthorizationError) as exc_info:
        await store.update_profile(db, target.id, "executive", None, forged)
    assert exc_info.value.message == "Only executives can update users"
    assert (await store.get_profile(db, target.id)).role == UserRole.staff


@pytest.mark.asyncio
async def test_create_user_with_profile(db, make_profile) -> None:
    executive = await make_profile("executive", None)
    created = await store.create_user(db, "new.guard@estate.test", PASSWORD, "staff", "BFT", executive)

    assert created.email == "new.guard@estate.test"
    assert created.role == UserRole.staff
    assert created.region == Region.BFT


@pytest.mark.asyncio
async def test_create_user_duplicate_email_surfaces_envelope_error(db, make_profile) -> None:
    executive = await make_profile("executive", None, email="boss@estate.test")
    with pytest.raises(AuthorizationError) as exc_info:
        await store.create_user(db, "boss@estate.test", PASSWORD, "staff", "TWU", executive)
    assert exc_info.value.message == "User already registered"


@pytest.mark.asyncio
async def test_create_user_rejects_malformed_input_before_procedure(db, make_profile) -> None:
    executive = await make_profile("executive", None)

    for email, password, field in (
        ("not-an-email", PASSWORD, "email"),
        ("new.guard@estate.test", "short", "password"),
        ("new.guard@estate.test", " " * 12, "password"),
    ):
        with pytest.raises(ValidationError) as exc_info:
            await store.create_user(db, email, password, "staff", "TWU", executive)
        assert exc_info.value.details[0]["field"] == field

    assert [p.id for p in await store.list_profiles(db, executive)] == [executive.id]


@pytest.mark.asyncio
async def test_update_unknown_user(db, make_profile) -> None:
    executive = await make_profile("executive", None)
    with pytest.raises(AuthorizationError) as exc_info:
        await store.update_profile(db, "no-such-user", "staff", "TWU", executive)
    assert exc_info.value.message == "User profile not found"


# ===========================================================================
# TEST GROUP 3: Submission
# ===========================================================================

@pytest.mark.asyncio
async def test_staff_submits_reference_report(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")

    report = await store.submit_report(db, make_form(), object_store, staff)

    assert report.id
    assert report.created_at is not None
    assert report.unit == Unit.ABM
    assert report.region == Region.TWU
    assert report.category == Category.kecurian
    assert report.loss_estimation_kg == 12.5
    assert report.supervisor_phone == "+60123456789"
    assert report.summary == "Fence cut overnight"
    assert report.latitude is None and report.longitude is None
    assert report.photos == []


@pytest.mark.asyncio
async def test_photo_urls_keep_attachment_order(db, make_profile, object_store, tmp_path) -> None:
    staff = await make_profile("staff", "TWU")
    form = make_form(photos=[png("gate.png"), jpeg("fence.jpg"), jpeg("tracks.JPG")])

    report = await store.submit_report(db, form, object_store, staff)

    assert len(report.photos) == 3
    assert all(url.startswith(f"{PUBLIC_BASE_URL}/report-photos/") for url in report.photos)
    assert [url.rsplit("-", 1)[1] for url in report.photos] == ["0.png", "1.jpg", "2.jpg"]
    assert len(_stored_files(tmp_path / "storage")) == 3


@pytest.mark.asyncio
async def test_submitted_report_lists_first_with_photos_in_order(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    manager = await make_profile("region_manager", "TWU")
    await store.submit_report(db, make_form(summary="Earlier incident"), object_store, staff)

    submitted = await store.submit_report(
        db, make_form(photos=[jpeg("1.jpg"), png("2.png")], latitude=4.2448, longitude=117.8912), object_store, staff,
    )
    listed = await store.list_reports(db, manager)

    assert listed[0] == submitted
    assert listed[0].photos == submitted.photos
    assert [url.rsplit("-", 1)[1] for url in listed[0].photos] == ["0.jpg", "1.png"]
    assert (listed[0].latitude, listed[0].longitude) == (4.2448, 117.8912)
    assert len(listed) == 2


@pytest.mark.asyncio
async def test_coordinates_must_be_paired(db, make_profile, object_store, tmp_path) -> None:
    staff = await make_profile("staff", "TWU")
    form = make_form(latitude=4.25, photos=[jpeg()])

    with pytest.raises(ValidationError) as exc_info:
        await store.submit_report(db, form, object_store, staff)

    assert exc_info.value.details[0]["field"] == "longitude"
    # Rejected before any upload
    assert _stored_files(tmp_path / "storage") == []


@pytest.mark.asyncio
async def test_all_violations_reported_together(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    form = make_form(unit="XYZ", loss_estimation_kg=-1, summary="   ", supervisor_phone="")

    with pytest.raises(ValidationError) as exc_info:
        await store.submit_report(db, form, object_store, staff)

    fields = {d["field"] for d in exc_info.value.details}
    assert fields == {"unit", "loss_estimation_kg", "summary", "supervisor_phone"}


@pytest.mark.asyncio
async def test_non_finite_loss_rejected(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    with pytest.raises(ValidationError):
        await store.submit_report(db, make_form(loss_estimation_kg=math.inf), object_store, staff)


@pytest.mark.asyncio
async def test_non_image_evidence_rejected(db, make_profile, object_store) -> None:
    from secureport.reports.schemas import EvidenceFile

    staff = await make_profile("staff", "TWU")
    pdf = EvidenceFile(filename="notes.pdf", content_type="application/pdf", data=b"%PDF")
    with pytest.raises(ValidationError) as exc_info:
        await store.submit_report(db, make_form(photos=[pdf]), object_store, staff)
    assert exc_info.value.details[0]["field"] == "photos.0"


@pytest.mark.asyncio
async def test_phone_with_csv_delimiters_rejected(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    for phone in ("+6012,3456789", '"+60123456789"', "+6012\n3456789"):
        with pytest.raises(ValidationError) as exc_info:
            await store.submit_report(db, make_form(supervisor_phone=phone), object_store, staff)
        assert exc_info.value.details[0]["field"] == "supervisor_phone"


@pytest.mark.asyncio
async def test_same_millisecond_submissions_get_distinct_photo_urls(
    db, make_profile, object_store, tmp_path, monkeypatch,
) -> None:
    staff = await make_profile("staff", "TWU")
    monkeypatch.setattr(evidence, "time", SimpleNamespace(time=lambda: 1_700_000_000.0))

    first = await store.submit_report(db, make_form(photos=[jpeg()]), object_store, staff)
    second = await store.submit_report(db, make_form(photos=[jpeg()]), object_store, staff)

    assert first.photos[0] != second.photos[0]
    assert all("/1700000000000-" in url for url in first.photos + second.photos)
    assert len(_stored_files(tmp_path / "storage")) == 2


@pytest.mark.asyncio
async def test_existing_key_is_not_retried(db, make_profile, tmp_path) -> None:
    staff = await make_profile("staff", "TWU")
    occupied = OccupiedObjectStore(str(tmp_path / "storage"))

    with pytest.raises(TransportError):
        await store.submit_report(db, make_form(photos=[jpeg()]), occupied, staff)

    assert occupied.attempts == 1


@pytest.mark.asyncio
async def test_local_store_leaves_nothing_after_failed_write(tmp_path, monkeypatch) -> None:
    local = LocalObjectStore(str(tmp_path / "storage"), PUBLIC_BASE_URL)

    def _fail_rename(src, dst):
        raise OSError("disk full")

    with monkeypatch.context() as patched:
        patched.setattr(evidence.os, "replace", _fail_rename)
        with pytest.raises(OSError):
            await local.upload("report-photos", "1-a-0.jpg", b"\xff\xd8", "image/jpeg")
    assert _stored_files(tmp_path / "storage") == []

    await local.upload("report-photos", "1-a-0.jpg", b"\xff\xd8", "image/jpeg")
    with pytest.raises(FileExistsError):
        await local.upload("report-photos", "1-a-0.jpg", b"other", "image/jpeg")
    stored = _stored_files(tmp_path / "storage")
    assert [p.name for p in stored] == ["1-a-0.jpg"]
    assert stored[0].read_bytes() == b"\xff\xd8"


@pytest.mark.asyncio
async def test_failed_photo_aborts_submission(db, make_profile, tmp_path) -> None:
    """Photo 2 of 3 keeps failing: nothing is persisted and photo 3 is never tried."""
    staff = await make_profile("staff", "TWU")
    executive = await make_profile("executive", None)
    flaky = FlakyObjectStore(str(tmp_path / "storage"), failing_indexes={1})
    form = make_form(photos=[jpeg("a.jpg"), jpeg("b.jpg"), jpeg("c.jpg")])

    with pytest.raises(TransportError) as exc_info:
        await store.submit_report(db, form, flaky, staff)

    assert exc_info.value.message.startswith("Failed to upload photo:")
    assert [k.rsplit("-", 1)[1] for k in flaky.attempts] == ["0.jpg", "1.jpg", "1.jpg", "1.jpg"]
    assert await store.list_reports(db, executive) == []


@pytest.mark.asyncio
async def test_submission_without_profile_permission(db, object_store) -> None:
    with pytest.raises(AuthorizationError):
        await store.submit_report(db, make_form(), object_store, None)


# ===========================================================================
# TEST GROUP 4: Listing and scoping
# ===========================================================================

@pytest.mark.asyncio
async def test_region_scoping(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    manager = await make_profile("region_manager", "TWU")
    executive = await make_profile("executive", None)

    twu = await store.submit_report(db, make_form(region="TWU"), object_store, staff)
    ld = await store.submit_report(db, make_form(region="LD"), object_store, staff)

    assert [r.id for r in await store.list_reports(db, manager)] == [twu.id]
    assert [r.id for r in await store.list_reports(db, executive)] == [ld.id, twu.id]


@pytest.mark.asyncio
async def test_staff_cannot_list_reports(db, make_profile) -> None:
    staff = await make_profile("staff", "TWU")
    with pytest.raises(AuthorizationError):
        await store.list_reports(db, staff)


@pytest.mark.asyncio
async def test_list_reports_applies_dashboard_filters(db, make_profile, object_store) -> None:
    staff = await make_profile("staff", "TWU")
    executive = await make_profile("executive", None)
    fence = await store.submit_report(db, make_form(), object_store, staff)
    fire = await store.submit_report(
        db,
        make_form(category="Kebakaran", unit="LMD", summary="Small fire near block 7", supervisor_phone="+60111111111"),
        object_store,
        staff,
    )

    by_text = await store.list_reports(db, executive, ReportFilter(search="FENCE"))
    by_phone = await store.list_reports(db, executive, ReportFilter(search="+6011111"))
    by_id = await store.list_reports(db, executive, ReportFilter(search=fence.id[:8].upper()))
    by_unit = await store.list_reports(db, executive, ReportFilter(unit=Unit.LMD))
    combined = await store.list_reports(
        db, executive, ReportFilter(search="fire", category=Category.kecurian),
    )

    assert [r.id for r in by_text] == [fence.id]
    assert [r.id for r in by_phone] == [fire.id]
    assert [r.id for r in by_id] == [fence.id]
    assert [r.id for r in by_unit] == [fire.id]
    assert combined == []
