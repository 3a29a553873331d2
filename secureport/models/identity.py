"""
models/identity.py — SQLAlchemy ORM model for authenticated principals.

Table: identities
Holds credentials only. Role and region live in user_profiles so that an
identity can exist (and sign in) before completing profile setup.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from secureport.database import Base


class IdentityORM(Base):
    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        comment="Lower-cased login email",
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="werkzeug scrypt hash — never logged or serialized",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
