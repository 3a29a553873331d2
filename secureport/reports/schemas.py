"""
schemas.py — report data contracts.

Defines:
  - EvidenceFile     (one attached photo, in attachment order)
  - ReportFormData   (what a reporter submits; validated by validator.py)
  - SecurityReport   (persisted, immutable report row)
  - ReportFilter     (dashboard search / filter controls)

ReportFormData keeps unit/region/category as plain strings; membership is
checked by validator.py together with every other field.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from secureport.schemas import Category, Region, Unit


@dataclass(frozen=True)
class EvidenceFile:
    """A photo attached to a submission."""
    filename: str
    content_type: str
    data: bytes


class ReportFormData(BaseModel):
    unit: str = ""
    region: str = ""
    category: str = ""
    incident_date: date
    incident_time: time
    loss_estimation_kg: float = 0
    supervisor_phone: str = ""
    summary: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photos: List[EvidenceFile] = Field(default_factory=list)


class SecurityReport(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    unit: Unit
    region: Region
    category: Category
    incident_date: date
    incident_time: time
    loss_estimation_kg: float
    supervisor_phone: str
    summary: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photos: List[str] = Field(default_factory=list)   # Public URLs, attachment order
    created_at: datetime
    updated_at: datetime


class ReportFilter(BaseModel):
    """Dashboard controls. Empty values mean "no filter"."""
    model_config = ConfigDict(extra="forbid")

    search: str = ""
    unit: Optional[Unit] = None
    region: Optional[Region] = None
    category: Optional[Category] = None
