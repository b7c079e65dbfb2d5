# backend/certtrack/apps/compliance/__init__.py
"""
Compliance app

Responsible for:
- Deciding whether an employee's required courses are satisfied
- Reconciling the external training ledger against internal completions
- Dashboard rollups per employee, position and course
- Duplicate course review buckets and data-quality reporting

The engine modules (taxonomy, snapshot, classifier, matcher, rollups) are
pure; only services.py reads the database.
"""

from . import models  # noqa: F401
from .classifier import classify, classify_employee
from .matcher import ExternalRecord, match_external, match_external_batch
from .snapshot import Snapshot, build_snapshot

__all__ = [
    "ExternalRecord",
    "Snapshot",
    "build_snapshot",
    "classify",
    "classify_employee",
    "match_external",
    "match_external_batch",
    "models",
]
