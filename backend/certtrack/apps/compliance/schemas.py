# backend/certtrack/apps/compliance/schemas.py

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .enums import DataQualityKind, MatchType, ReconciliationOutcome, RequirementStatus


# ---------------------------------------------------------------------------
# REQUIREMENT STATUS
# ---------------------------------------------------------------------------


class RequirementStatusItem(BaseModel):
    """
    One required course of an employee, as shown on the detail page.

    matched_course_id differs from required_course_id only when the
    requirement was satisfied through the course's grouping.
    """

    required_course_id: str
    course_name: Optional[str] = None
    status: RequirementStatus
    priority: int = Field(..., description="1 = most urgent (NEVER_COMPLETED) ... 4 = NO_EXPIRATION.")
    match_type: MatchType
    matched_course_id: Optional[str] = None
    matched_expiration: Optional[date] = None
    completion_date: Optional[date] = None
    group_code: Optional[str] = None


class EmployeeRequirementsRead(BaseModel):
    employee_id: int
    employee_name: str
    is_active: bool
    as_of: date
    items: List[RequirementStatusItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# ROLLUPS
# ---------------------------------------------------------------------------


class StatusCountsRead(BaseModel):
    total: int
    counts: Dict[RequirementStatus, int]
    percentages: Dict[RequirementStatus, float]


class EmployeeRollupRead(BaseModel):
    employee_id: int
    employee_name: str
    as_of: date
    statuses: StatusCountsRead


class PositionRollupRead(BaseModel):
    position_id: int
    position_name: str
    assignees: int
    expired_assignees: int
    missing_assignees: int
    at_risk_assignees: int
    at_risk_percent: float
    flagged: bool
    statuses: StatusCountsRead


class CourseRollupRead(BaseModel):
    course_id: str
    course_name: str
    duration_months: Optional[int] = None
    required_by: int
    completed: int
    expired: int
    expired_percent: float
    flagged: bool
    statuses: StatusCountsRead


class ExpiringRequirementRead(BaseModel):
    """A currently valid requirement whose covering completion runs out inside the window."""

    employee_id: int
    employee_name: str
    required_course_id: str
    course_name: str
    match_type: MatchType
    matched_course_id: str
    completion_date: Optional[date] = None
    expiration_date: date
    days_remaining: int
    positions: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# RECONCILIATION
# ---------------------------------------------------------------------------


class ExternalRecordIn(BaseModel):
    """One row of the external training export."""

    associate_name: str = Field(..., description="Associate name exactly as exported.")
    raw_label: str = Field(
        ...,
        description="Requirement label, e.g. 'SPPIVT T717 Machines and Machine Guarding - PARENT (OL)(13458)'.",
    )
    reported_status: Optional[str] = None
    reported_expiration: Optional[str] = Field(
        None,
        description="Free text as exported: 'M/D/YYYY', 'YYYY-MM-DD' or 'n/a'.",
    )

    class Config:
        from_attributes = True


class ClassificationRead(BaseModel):
    associate_name: str
    raw_label: str
    reported_status: Optional[str] = None
    reported_expiration: Optional[date] = None
    reported_expiration_raw: Optional[str] = Field(None, description="Expiration text as exported, before parsing.")

    outcome: ReconciliationOutcome
    label: str = Field(..., description="Display bucket, e.g. 'Exact', 'Merged (Group)', 'Not Found'.")
    reason: Optional[str] = None

    employee_id: Optional[int] = None
    employee_active: Optional[bool] = None
    extracted_course_id: Optional[str] = None
    course_id: Optional[str] = None
    was_merged: bool = False
    original_course_id: Optional[str] = None
    matched_course_id: Optional[str] = None
    matched_expiration: Optional[date] = None
    group_code: Optional[str] = None
    tcode: Optional[str] = None
    is_required: bool = False


class ReconciliationSummaryRead(BaseModel):
    total: int
    matched: int
    merged: int
    required_matched: int
    required_missing: int
    counts: Dict[ReconciliationOutcome, int]


class ReconciliationRead(BaseModel):
    summary: ReconciliationSummaryRead
    items: List[ClassificationRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# DUPLICATE REVIEW / DATA QUALITY
# ---------------------------------------------------------------------------


class BucketEntryRead(BaseModel):
    course_id: str
    label: str
    variant: str
    usage_count: int
    action: str
    merge_into: Optional[str] = None
    rename_to: Optional[str] = None

    class Config:
        from_attributes = True


class CourseBucketRead(BaseModel):
    code: str
    total_usage: int
    entries: List[BucketEntryRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class DataQualityIssueRead(BaseModel):
    kind: DataQualityKind
    subject: str
    detail: str

    class Config:
        from_attributes = True
