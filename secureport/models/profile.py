"""
models/profile.py — SQLAlchemy ORM model for user profiles.

Table: user_profiles
One row per identity (primary key = identity id). The role/region pairing is
guarded by a CHECK constraint so an invalid combination can never be stored,
whichever code path writes it.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from secureport.database import Base
from secureport.schemas import REGIONS, ROLES

_REGION_LIST = ", ".join(f"'{r}'" for r in REGIONS)
_ROLE_LIST = ", ".join(f"'{r}'" for r in ROLES)


class ProfileORM(Base):
    __tablename__ = "user_profiles"
    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_LIST})", name="ck_user_profiles_role"),
        CheckConstraint(
            f"(role = 'executive' AND region IS NULL) OR "
            f"(role <> 'executive' AND region IN ({_REGION_LIST}))",
            name="ck_user_profiles_role_region",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Equals identities.id — one profile per identity",
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
