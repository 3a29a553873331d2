"""
Report submission validator.

Validates ReportFormData AFTER Pydantic structural validation has passed.
Collects all violations in a single pass and raises ValidationError with a
list of {field, issue} dicts so the route can build the standard error
envelope, and so nothing is uploaded for a form that would be rejected.

Rules enforced:
  1. unit / region / category   must be members of the fixed enumerations
  2. loss_estimation_kg          >= 0 (and finite)
  3. supervisor_phone            non-empty, no comma, double quote or line break
  4. summary                     non-empty
  5. latitude / longitude        both present or both absent, within range
  6. photos                      image/* content types, each <= max_photo_bytes
"""
from __future__ import annotations

import logging
import math
from typing import Any

from secureport.config import settings
from secureport.errors import ValidationError
from secureport.reports.schemas import ReportFormData
from secureport.schemas import CATEGORIES, REGIONS, UNITS

logger = logging.getLogger(__name__)

# Phone numbers go into CSV exports unquoted
PHONE_FORBIDDEN_CHARS = frozenset(",\"\r\n")


def validate_report_form(form: ReportFormData) -> None:
    """
    Validate a report form against every submission rule.

    Raises:
        ValidationError: If any rule is violated; `details` lists them all.
    """
    violations: list[dict[str, Any]] = []

    # ---- 1. Enumerated fields ----------------------------------------------
    for field, value, allowed in (
        ("unit", form.unit, UNITS),
        ("region", form.region, REGIONS),
        ("category", form.category, CATEGORIES),
    ):
        if not value:
            violations.append({"field": field, "issue": f"{field.capitalize()} is required"})
        elif value not in allowed:
            violations.append({"field": field, "issue": f"'{value}' is not a valid {field}"})

    # ---- 2. Loss estimation ------------------------------------------------
    loss = form.loss_estimation_kg
    if loss is None or math.isnan(loss) or math.isinf(loss):
        violations.append({"field": "loss_estimation_kg", "issue": "Loss estimation must be a number"})
    elif loss < 0:
        violations.append({"field": "loss_estimation_kg", "issue": "Loss estimation cannot be negative"})

    # ---- 3/4. Required text ------------------------------------------------
    if not form.supervisor_phone.strip():
        violations.append({"field": "supervisor_phone", "issue": "Supervisor phone is required"})
    elif any(ch in form.supervisor_phone for ch in PHONE_FORBIDDEN_CHARS):
        violations.append({
            "field": "supervisor_phone",
            "issue": "Supervisor phone cannot contain commas, quotes or line breaks",
        })
    if not form.summary.strip():
        violations.append({"field": "summary", "issue": "Summary is required"})

    # ---- 5. Coordinates ----------------------------------------------------
    if (form.latitude is None) != (form.longitude is None):
        violations.append({
            "field": "latitude" if form.latitude is None else "longitude",
            "issue": "Latitude and longitude must be provided together",
        })
    else:
        if form.latitude is not None and not -90 <= form.latitude <= 90:
            violations.append({"field": "latitude", "issue": "Latitude must be between -90 and 90"})
        if form.longitude is not None and not -180 <= form.longitude <= 180:
            violations.append({"field": "longitude", "issue": "Longitude must be between -180 and 180"})

    # ---- 6. Evidence -------------------------------------------------------
    for index, photo in enumerate(form.photos):
        if not photo.content_type.startswith("image/"):
            violations.append({
                "field": f"photos.{index}",
                "issue": f"'{photo.filename}' is not an image ({photo.content_type})",
            })
        if len(photo.data) > settings.max_photo_bytes:
            violations.append({
                "field": f"photos.{index}",
                "issue": f"'{photo.filename}' exceeds {settings.max_photo_bytes // (1024 * 1024)} MB",
            })

    if violations:
        logger.info("Report form rejected violations=%d", len(violations))
        raise ValidationError.from_violations(violations, message="Report validation failed")
