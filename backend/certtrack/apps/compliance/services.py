# backend/certtrack/apps/compliance/services.py

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .enums import CleanupAction
from .matcher import ExternalRecord
from .snapshot import (
    CleanupDecision,
    Completion,
    Course,
    CourseGrouping,
    Employee,
    GroupingMember,
    Position,
    PositionAssignment,
    Requirement,
    Snapshot,
    build_snapshot,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SnapshotBuildError(Exception):
    """Raised when the backing store cannot be read; nothing can be classified."""


# ---------------------------------------------------------------------------
# Snapshot loading
# ---------------------------------------------------------------------------


def _begin_consistent_read(db: Session) -> None:
    """
    Pin every snapshot query to one database snapshot where the backend
    supports it. SQLite already serialises a single transaction.
    """
    if db.in_transaction():
        return
    bind = db.get_bind()
    if bind.dialect.name == "postgresql":
        db.connection(execution_options={"isolation_level": "REPEATABLE READ"})


def _cleanup_action(value) -> CleanupAction:
    if isinstance(value, CleanupAction):
        return value
    try:
        return CleanupAction(str(value).lower())
    except ValueError:
        return CleanupAction.PENDING


def load_snapshot(db: Session) -> Snapshot:
    """
    Read all compliance tables in one transaction and freeze them.

    This is the engine's only I/O and its only hard failure:
    any SQLAlchemyError surfaces as SnapshotBuildError.
    """
    try:
        _begin_consistent_read(db)

        courses = [
            Course(
                course_id=row.course_id,
                name=row.course_name,
                duration_months=row.duration_months,
                is_active=bool(row.is_active),
            )
            for row in db.query(models.Course).all()
        ]
        groupings = [
            CourseGrouping(group_id=row.group_id, group_code=row.group_code, is_enabled=bool(row.is_enabled))
            for row in db.query(models.CourseGroup).filter(models.CourseGroup.is_enabled.is_(True)).all()
        ]
        memberships = [
            GroupingMember(group_id=group_id, course_id=course_id)
            for group_id, course_id in db.query(
                models.CourseGroupMember.group_id,
                models.CourseGroupMember.course_id,
            )
            .join(models.CourseGroup, models.CourseGroup.group_id == models.CourseGroupMember.group_id)
            .filter(models.CourseGroup.is_enabled.is_(True))
            .all()
        ]
        decisions = [
            CleanupDecision(
                course_id=row.course_id,
                action=_cleanup_action(row.action),
                merge_into_course_id=row.merge_into,
                rename_to=row.rename_to,
                is_one_time=row.is_one_time,
                recert_months=row.recert_months,
                notes=row.notes,
            )
            for row in db.query(models.CourseCleanup).all()
        ]
        positions = [
            Position(position_id=row.position_id, name=row.position_name, is_active=bool(row.is_active))
            for row in db.query(models.Position).all()
        ]
        requirements = [
            Requirement(position_id=position_id, course_id=course_id)
            for position_id, course_id in db.query(
                models.PositionCourse.position_id,
                models.PositionCourse.course_id,
            ).all()
        ]
        assignments = [
            PositionAssignment(employee_id=employee_id, position_id=position_id)
            for employee_id, position_id in db.query(
                models.EmployeePosition.employee_id,
                models.EmployeePosition.position_id,
            ).all()
        ]
        employees = [
            Employee(employee_id=row.employee_id, name=row.employee_name, is_active=bool(row.is_active))
            for row in db.query(models.Employee).all()
        ]
        completions = [
            Completion(
                training_id=row.training_id,
                employee_id=row.employee_id,
                course_id=row.course_id,
                completion_date=row.completion_date,
                expiration_date=row.expiration_date,
                notes=row.notes,
            )
            for row in db.query(models.EmployeeTraining).all()
        ]
    except SQLAlchemyError as exc:
        logger.error("Compliance snapshot load failed", extra={"error": str(exc)})
        raise SnapshotBuildError("Unable to read compliance tables") from exc

    snapshot = build_snapshot(
        courses=courses,
        groupings=groupings,
        memberships=memberships,
        decisions=decisions,
        positions=positions,
        requirements=requirements,
        assignments=assignments,
        employees=employees,
        completions=completions,
    )
    logger.info(
        "Compliance snapshot loaded",
        extra={
            "courses": len(courses),
            "enabled_groupings": len(groupings),
            "merge_redirects": len(snapshot.merge_redirect),
            "employees": len(employees),
            "completions": len(completions),
            "data_quality_issues": len(snapshot.data_quality),
        },
    )
    return snapshot


# ---------------------------------------------------------------------------
# External ledger
# ---------------------------------------------------------------------------


def list_external_records(
    db: Session,
    *,
    associate_name: Optional[str] = None,
) -> List[ExternalRecord]:
    """Rows of the imported external ledger, optionally for one associate (case-insensitive)."""
    try:
        q = db.query(models.ExternalTraining)
        if associate_name:
            q = q.filter(func.lower(models.ExternalTraining.associate_name) == associate_name.strip().lower())
        rows = q.order_by(
            models.ExternalTraining.associate_name.asc(),
            models.ExternalTraining.requirement.asc(),
            models.ExternalTraining.id.asc(),
        ).all()
    except SQLAlchemyError as exc:
        logger.error("External ledger read failed", extra={"error": str(exc)})
        raise SnapshotBuildError("Unable to read external training ledger") from exc

    return [
        ExternalRecord(
            associate_name=row.associate_name,
            raw_label=row.requirement,
            reported_status=row.status,
            reported_expiration=row.expire_date,
        )
        for row in rows
    ]
