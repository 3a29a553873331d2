"""
schemas.py — shared Pydantic v2 data contracts.

Defines:
  - Unit, Region, Category, UserRole enums (closed sets, fixed at build time)
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

Enum values are the literal strings stored in the database and shown in the
UI — do not rename them.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Unit(str, Enum):
    ABM = "ABM"
    KNR = "KNR"
    SDM = "SDM"
    SPGM = "SPGM"
    LKM = "LKM"
    LMD = "LMD"


class Region(str, Enum):
    TWU = "TWU"
    LD = "LD"
    SDK = "SDK"
    BFT = "BFT"
    KDT = "KDT"


class Category(str, Enum):
    pencerobohan = "Pencerobohan"   # trespass
    kecurian = "Kecurian"           # theft
    kerosakan = "Kerosakan"         # damage
    kebakaran = "Kebakaran"         # fire
    sabotaj = "Sabotaj"
    gangguan = "Gangguan"           # disturbance
    lain_lain = "Lain-lain"         # other


class UserRole(str, Enum):
    staff = "staff"
    region_manager = "region_manager"
    executive = "executive"


UNITS = [u.value for u in Unit]
REGIONS = [r.value for r in Region]
CATEGORIES = [c.value for c in Category]
ROLES = [r.value for r in UserRole]


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation or business-rule error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "summary"
    issue: str                     # Human-readable description of the problem


class ErrorBody(BaseModel):
    """Error envelope body."""
    model_config = ConfigDict(extra="forbid")

    code: str                                      # VALIDATION_ERROR, NOT_FOUND, etc.
    message: str                                   # High-level error description
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error response format for all secureport endpoints.

    Structure: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody
