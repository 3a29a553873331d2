"""initial_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000 UTC

Creates the three core tables:
  - identities        (login credentials)
  - user_profiles     (role + region per identity, CHECK-guarded pairing)
  - security_reports  (append-only incident reports, photo URLs as JSONB)
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REGIONS = "'TWU', 'LD', 'SDK', 'BFT', 'KDT'"
ROLES = "'staff', 'region_manager', 'executive'"


def upgrade() -> None:
    # --- identities table ---
    op.create_table(
        "identities",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, comment="Lower-cased login email"),
        sa.Column("password_hash", sa.String(length=255), nullable=False, comment="werkzeug scrypt hash — never logged or serialized"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # --- user_profiles table ---
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=36), nullable=False, comment="Equals identities.id — one profile per identity"),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("region", sa.String(length=8), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["id"], ["identities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(f"role IN ({ROLES})", name="ck_user_profiles_role"),
        sa.CheckConstraint(
            f"(role = 'executive' AND region IS NULL) OR "
            f"(role <> 'executive' AND region IN ({REGIONS}))",
            name="ck_user_profiles_role_region",
        ),
    )
    op.create_index(op.f("ix_user_profiles_created_at"), "user_profiles", ["created_at"], unique=False)

    # --- security_reports table ---
    op.create_table(
        "security_reports",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("unit", sa.String(length=8), nullable=False),
        sa.Column("region", sa.String(length=8), nullable=False, comment="Compared against the viewer's profile region for scoping"),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("incident_date", sa.Date(), nullable=False),
        sa.Column("incident_time", sa.Time(), nullable=False),
        sa.Column("loss_estimation_kg", sa.Float(), nullable=False),
        sa.Column("supervisor_phone", sa.String(length=32), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("photos", sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("loss_estimation_kg >= 0", name="ck_security_reports_loss"),
        sa.CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL)",
            name="ck_security_reports_coordinates",
        ),
    )
    op.create_index(op.f("ix_security_reports_unit"), "security_reports", ["unit"], unique=False)
    op.create_index(op.f("ix_security_reports_region"), "security_reports", ["region"], unique=False)
    op.create_index(op.f("ix_security_reports_created_at"), "security_reports", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_security_reports_created_at"), table_name="security_reports")
    op.drop_index(op.f("ix_security_reports_region"), table_name="security_reports")
    op.drop_index(op.f("ix_security_reports_unit"), table_name="security_reports")
    op.drop_table("security_reports")
    op.drop_index(op.f("ix_user_profiles_created_at"), table_name="user_profiles")
    op.drop_table("user_profiles")
    op.drop_table("identities")
