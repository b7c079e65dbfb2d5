# backend/certtrack/apps/compliance/router.py

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...database import get_read_db
from . import schemas, services
from .classifier import RequirementResult, classify_employee
from .matcher import Classification, ExternalRecord, match_external_batch
from .rollups import (
    StatusRollup,
    expiring_requirements,
    rollup_courses,
    rollup_employee,
    rollup_positions,
    summarize_reconciliation,
)
from .snapshot import Employee, Snapshot
from .taxonomy import bucket_duplicate_courses

router = APIRouter(
    prefix="/compliance",
    tags=["compliance"],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snapshot(db: Session) -> Snapshot:
    try:
        return services.load_snapshot(db)
    except services.SnapshotBuildError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Compliance data is temporarily unavailable.",
        ) from exc


def _employee_or_404(snapshot: Snapshot, employee_id: int) -> Employee:
    employee = snapshot.employees.get(employee_id)
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return employee


def _status_counts(rollup: StatusRollup) -> schemas.StatusCountsRead:
    return schemas.StatusCountsRead(
        total=rollup.total,
        counts=dict(rollup.counts),
        percentages=rollup.percentages,
    )


def _requirement_item(snapshot: Snapshot, result: RequirementResult) -> schemas.RequirementStatusItem:
    course = snapshot.courses.get(result.required_course_id)
    return schemas.RequirementStatusItem(
        required_course_id=result.required_course_id,
        course_name=course.name if course else None,
        status=result.status,
        priority=result.priority,
        match_type=result.match_type,
        matched_course_id=result.matched_course_id,
        matched_expiration=result.matched_expiration,
        completion_date=result.completion.completion_date if result.completion else None,
        group_code=result.group_code,
    )


def _classification_read(item: Classification) -> schemas.ClassificationRead:
    return schemas.ClassificationRead(
        associate_name=item.record.associate_name,
        raw_label=item.record.raw_label,
        reported_status=item.record.reported_status,
        reported_expiration=item.reported_expiration_date,
        reported_expiration_raw=item.record.reported_expiration,
        outcome=item.outcome,
        label=item.label,
        reason=item.reason,
        employee_id=item.employee_id,
        employee_active=item.employee_active,
        extracted_course_id=item.extracted_course_id,
        course_id=item.course_id,
        was_merged=item.was_merged,
        original_course_id=item.original_course_id,
        matched_course_id=item.matched_course_id,
        matched_expiration=item.matched_expiration,
        group_code=item.group_code,
        tcode=item.tcode,
        is_required=item.is_required,
    )


def _reconciliation_read(classifications: List[Classification]) -> schemas.ReconciliationRead:
    summary = summarize_reconciliation(classifications)
    return schemas.ReconciliationRead(
        summary=schemas.ReconciliationSummaryRead(
            total=summary.total,
            matched=summary.matched,
            merged=summary.merged,
            required_matched=summary.required_matched,
            required_missing=summary.required_missing,
            counts=dict(summary.counts),
        ),
        items=[_classification_read(item) for item in classifications],
    )


# ---------------------------------------------------------------------------
# EMPLOYEES
# ---------------------------------------------------------------------------


@router.get(
    "/employees/{employee_id}/requirements",
    response_model=schemas.EmployeeRequirementsRead,
)
def get_employee_requirements(
    employee_id: int,
    as_of: Optional[date] = None,
    db: Session = Depends(get_read_db),
):
    """Every required course of the employee, most urgent first."""
    snapshot = _snapshot(db)
    employee = _employee_or_404(snapshot, employee_id)
    today = as_of or date.today()
    results = classify_employee(snapshot, employee_id, today=today)
    return schemas.EmployeeRequirementsRead(
        employee_id=employee.employee_id,
        employee_name=employee.name,
        is_active=employee.is_active,
        as_of=today,
        items=[_requirement_item(snapshot, result) for result in results],
    )


@router.get(
    "/employees/{employee_id}/rollup",
    response_model=schemas.EmployeeRollupRead,
)
def get_employee_rollup(
    employee_id: int,
    as_of: Optional[date] = None,
    db: Session = Depends(get_read_db),
):
    snapshot = _snapshot(db)
    employee = _employee_or_404(snapshot, employee_id)
    today = as_of or date.today()
    return schemas.EmployeeRollupRead(
        employee_id=employee.employee_id,
        employee_name=employee.name,
        as_of=today,
        statuses=_status_counts(rollup_employee(snapshot, employee_id, today=today)),
    )


# ---------------------------------------------------------------------------
# DASHBOARD ROLLUPS
# ---------------------------------------------------------------------------


@router.get(
    "/rollups/positions",
    response_model=List[schemas.PositionRollupRead],
)
def list_position_rollups(
    as_of: Optional[date] = None,
    flag_percent: Optional[float] = None,
    min_assignees: Optional[int] = None,
    db: Session = Depends(get_read_db),
):
    """Positions whose assignees are most often out of compliance come first."""
    snapshot = _snapshot(db)
    rows = rollup_positions(
        snapshot,
        today=as_of,
        flag_percent=flag_percent,
        min_assignees=min_assignees,
    )
    return [
        schemas.PositionRollupRead(
            position_id=row.position_id,
            position_name=row.position_name,
            assignees=row.assignees,
            expired_assignees=row.expired_assignees,
            missing_assignees=row.missing_assignees,
            at_risk_assignees=row.at_risk_assignees,
            at_risk_percent=row.at_risk_percent,
            flagged=row.flagged,
            statuses=_status_counts(row.statuses),
        )
        for row in rows
    ]


@router.get(
    "/rollups/courses",
    response_model=List[schemas.CourseRollupRead],
)
def list_course_rollups(
    as_of: Optional[date] = None,
    flag_percent: Optional[float] = None,
    min_expired: Optional[int] = None,
    db: Session = Depends(get_read_db),
):
    """Courses with the highest expired share first; flagged rows suggest a wrong duration."""
    snapshot = _snapshot(db)
    rows = rollup_courses(
        snapshot,
        today=as_of,
        flag_percent=flag_percent,
        min_expired=min_expired,
    )
    return [
        schemas.CourseRollupRead(
            course_id=row.course_id,
            course_name=row.course_name,
            duration_months=row.duration_months,
            required_by=row.required_by,
            completed=row.completed,
            expired=row.expired,
            expired_percent=row.expired_percent,
            flagged=row.flagged,
            statuses=_status_counts(row.statuses),
        )
        for row in rows
    ]


@router.get(
    "/expiring",
    response_model=List[schemas.ExpiringRequirementRead],
)
def list_expiring_requirements(
    within_days: Optional[int] = None,
    as_of: Optional[date] = None,
    db: Session = Depends(get_read_db),
):
    """Valid requirements running out within the window (7, 30 and 90 days on the dashboard)."""
    if within_days is not None and within_days < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="within_days must not be negative.",
        )
    snapshot = _snapshot(db)
    rows = expiring_requirements(snapshot, within_days=within_days, today=as_of)
    return [schemas.ExpiringRequirementRead.model_validate(row) for row in rows]


# ---------------------------------------------------------------------------
# RECONCILIATION
# ---------------------------------------------------------------------------


@router.post(
    "/reconcile",
    response_model=schemas.ReconciliationRead,
)
def reconcile_records(
    payload: List[schemas.ExternalRecordIn],
    db: Session = Depends(get_read_db),
):
    """Classify externally reported rows against the internal record set."""
    snapshot = _snapshot(db)
    records = [
        ExternalRecord(
            associate_name=row.associate_name,
            raw_label=row.raw_label,
            reported_status=row.reported_status,
            reported_expiration=row.reported_expiration,
        )
        for row in payload
    ]
    return _reconciliation_read(match_external_batch(snapshot, records))


@router.get(
    "/reconcile/external",
    response_model=schemas.ReconciliationRead,
)
def reconcile_external_ledger(
    associate_name: Optional[str] = None,
    db: Session = Depends(get_read_db),
):
    """Classify the imported external ledger, optionally for a single associate."""
    snapshot = _snapshot(db)
    try:
        records = services.list_external_records(db, associate_name=associate_name)
    except services.SnapshotBuildError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="External training ledger is temporarily unavailable.",
        ) from exc
    return _reconciliation_read(match_external_batch(snapshot, records))


# ---------------------------------------------------------------------------
# DUPLICATE REVIEW / DATA QUALITY
# ---------------------------------------------------------------------------


@router.get(
    "/course-buckets",
    response_model=List[schemas.CourseBucketRead],
)
def list_course_buckets(db: Session = Depends(get_read_db)):
    """Courses sharing a T-code, for the duplicate review screen."""
    snapshot = _snapshot(db)
    buckets = bucket_duplicate_courses(
        ((course_id, course.name) for course_id, course in sorted(snapshot.courses.items())),
        usage_counts=snapshot.usage_counts,
        decisions=snapshot.decisions,
    )
    return [schemas.CourseBucketRead.model_validate(bucket) for bucket in buckets]


@router.get(
    "/data-quality",
    response_model=List[schemas.DataQualityIssueRead],
)
def list_data_quality_issues(db: Session = Depends(get_read_db)):
    snapshot = _snapshot(db)
    return [schemas.DataQualityIssueRead.model_validate(issue) for issue in snapshot.data_quality]
