"""
Report HTTP routes — POST /api/reports         (multipart: fields + photos)
                     GET  /api/reports         (dashboard list, scoped + filtered)
                     GET  /api/reports/export  (CSV attachment)

Reports are append-only: there is no PUT, PATCH or DELETE.
"""
from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from secureport import store
from secureport.auth.dependencies import get_object_store, require_profile
from secureport.config import settings
from secureport.database import get_db
from secureport.errors import ValidationError
from secureport.evidence import ObjectStore
from secureport.policy import Permission, check_permission
from secureport.profiles.schemas import UserProfile
from secureport.reports.csv_export import export_filename, export_reports_csv
from secureport.reports.schemas import EvidenceFile, ReportFilter, ReportFormData, SecurityReport
from secureport.schemas import Category, Region, Unit

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = logging.getLogger(__name__)


def _report_filter(
    search: str = Query(default="", description="Matches summary, supervisor phone or report id"),
    unit: Optional[Unit] = Query(default=None),
    region: Optional[Region] = Query(default=None),
    category: Optional[Category] = Query(default=None),
) -> ReportFilter:
    return ReportFilter(search=search, unit=unit, region=region, category=category)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SecurityReport)
async def submit_report(
    unit: str = Form(""),
    region: str = Form(""),
    category: str = Form(""),
    incident_date: date = Form(...),
    incident_time: time = Form(...),
    loss_estimation_kg: float = Form(0),
    supervisor_phone: str = Form(""),
    summary: str = Form(""),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    photos: Optional[List[UploadFile]] = File(None),
    profile: UserProfile = Depends(require_profile),
    object_store: ObjectStore = Depends(get_object_store),
    db: AsyncSession = Depends(get_db),
) -> SecurityReport:
    """
    Submit an incident report. Photos are stored first, in the order given;
    if any photo fails to store, nothing is saved and 502 is returned.
    Oversized photos are rejected from their declared size before being read.
    """
    oversized = [
        {
            "field": f"photos.{index}",
            "issue": f"'{photo.filename}' exceeds {settings.max_photo_bytes // (1024 * 1024)} MB",
        }
        for index, photo in enumerate(photos or [])
        if photo.size is not None and photo.size > settings.max_photo_bytes
    ]
    if oversized:
        raise ValidationError.from_violations(oversized, message="Report validation failed")

    evidence = [
        EvidenceFile(
            filename=photo.filename or "photo",
            content_type=photo.content_type or "application/octet-stream",
            data=await photo.read(),
        )
        for photo in photos or []
    ]
    form = ReportFormData(
        unit=unit,
        region=region,
        category=category,
        incident_date=incident_date,
        incident_time=incident_time,
        loss_estimation_kg=loss_estimation_kg,
        supervisor_phone=supervisor_phone,
        summary=summary,
        latitude=latitude,
        longitude=longitude,
        photos=evidence,
    )
    return await store.submit_report(db, form, object_store, profile)


@router.get("", response_model=List[SecurityReport])
async def list_reports(
    flt: ReportFilter = Depends(_report_filter),
    profile: UserProfile = Depends(require_profile),
    db: AsyncSession = Depends(get_db),
) -> List[SecurityReport]:
    """Newest first. Region managers only receive their own region."""
    return await store.list_reports(db, profile, flt)


@router.get("/export")
async def export_reports(
    flt: ReportFilter = Depends(_report_filter),
    profile: UserProfile = Depends(require_profile),
    db: AsyncSession = Depends(get_db),
) -> Response:
    check_permission(profile, Permission.EXPORT_REPORTS)
    reports = await store.list_reports(db, profile, flt)
    filename = export_filename(date.today())
    logger.info("Reports exported viewer_id=%s count=%d", profile.id, len(reports))
    return Response(
        content=export_reports_csv(reports),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
