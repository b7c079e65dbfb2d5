# backend/certtrack/apps/compliance/enums.py
from __future__ import annotations

import enum


class CleanupAction(str, enum.Enum):
    PENDING = "pending"
    KEEP = "keep"
    MERGE = "merge"
    DELETE = "delete"


class RequirementStatus(str, enum.Enum):
    """
    Compliance status of one (employee, required course) pair.

    `priority` is the most-urgent-first ranking shared by detail views,
    reports and dashboards: NEVER_COMPLETED < EXPIRED < VALID < NO_EXPIRATION.
    """

    NEVER_COMPLETED = "NEVER_COMPLETED"
    EXPIRED = "EXPIRED"
    VALID = "VALID"
    NO_EXPIRATION = "NO_EXPIRATION"

    @property
    def priority(self) -> int:
        return _STATUS_PRIORITY[self]


_STATUS_PRIORITY = {
    RequirementStatus.NEVER_COMPLETED: 1,
    RequirementStatus.EXPIRED: 2,
    RequirementStatus.VALID: 3,
    RequirementStatus.NO_EXPIRATION: 4,
}


class MatchType(str, enum.Enum):
    EXACT = "EXACT"
    GROUP = "GROUP"
    NONE = "NONE"


class ReconciliationOutcome(str, enum.Enum):
    EMPLOYEE_NOT_IN_DB = "EMPLOYEE_NOT_IN_DB"
    NOT_FOUND = "NOT_FOUND"
    COURSE_NOT_IN_DB = "COURSE_NOT_IN_DB"
    EXACT_MATCH = "EXACT_MATCH"
    GROUP_MATCH = "GROUP_MATCH"
    TCODE_MATCH = "TCODE_MATCH"


class DataQualityKind(str, enum.Enum):
    AMBIGUOUS_GROUPING = "AMBIGUOUS_GROUPING"
    CHAINED_MERGE = "CHAINED_MERGE"
    SELF_MERGE = "SELF_MERGE"
    MERGE_TARGET_MISSING = "MERGE_TARGET_MISSING"
    UNKNOWN_GROUP_MEMBER = "UNKNOWN_GROUP_MEMBER"
    DUPLICATE_EMPLOYEE_NAME = "DUPLICATE_EMPLOYEE_NAME"
