# backend/certtrack/__init__.py
"""
Import ORM models from each app so that Alembic and
Base.metadata.create_all() see all tables.

The actual model classes are kept in certtrack/apps/*/models.py.
"""

from .apps.compliance import models as compliance_models  # courses / positions / completions / external ledger

__all__ = [
    "compliance_models",
]
