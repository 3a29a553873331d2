"""
models/__init__.py — imports all ORM models so Alembic's env.py
sees them via Base.metadata when generating migrations.

Import order matters: user_profiles references identities.
"""
from secureport.models.identity import IdentityORM
from secureport.models.profile import ProfileORM
from secureport.models.report import ReportORM

__all__ = ["IdentityORM", "ProfileORM", "ReportORM"]
