"""
models/report.py — SQLAlchemy ORM model for security incident reports.

Table: security_reports
Append-only: the application exposes no update or delete path for this table.
photos: ordered list of public evidence URLs (gallery order = attachment order).
"""
import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, Float, String, Text, Time
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from secureport.database import Base


class ReportORM(Base):
    __tablename__ = "security_reports"
    __table_args__ = (
        CheckConstraint("loss_estimation_kg >= 0", name="ck_security_reports_loss"),
        CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL)",
            name="ck_security_reports_coordinates",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    unit: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    region: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        index=True,
        comment="Compared against the viewer's profile region for scoping",
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    incident_date: Mapped[date] = mapped_column(Date, nullable=False)
    incident_time: Mapped[time] = mapped_column(Time, nullable=False)
    loss_estimation_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    supervisor_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    photos: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
