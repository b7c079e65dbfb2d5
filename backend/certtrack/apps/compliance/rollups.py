# backend/certtrack/apps/compliance/rollups.py
"""
Dashboard aggregation over classifier / matcher output.

Pure counting: no matching policy lives here. Position and course rollups
use their own explicit "needs attention" ordering (documented on each
function) rather than the per-requirement status priority.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .classifier import RequirementResult, classify, classify_employee
from .enums import MatchType, ReconciliationOutcome, RequirementStatus
from .matcher import Classification
from .snapshot import Snapshot

# -------------------------------------------------------------------
# CONFIG FROM ENV
# -------------------------------------------------------------------

POSITION_FLAG_PERCENT = float(os.getenv("COMPLIANCE_POSITION_FLAG_PERCENT", "50"))
POSITION_MIN_ASSIGNEES = int(os.getenv("COMPLIANCE_POSITION_MIN_ASSIGNEES", "1"))
COURSE_FLAG_PERCENT = float(os.getenv("COMPLIANCE_COURSE_FLAG_PERCENT", "50"))
COURSE_MIN_EXPIRED = int(os.getenv("COMPLIANCE_COURSE_MIN_EXPIRED", "5"))
EXPIRING_WITHIN_DAYS = int(os.getenv("COMPLIANCE_EXPIRING_WITHIN_DAYS", "30"))


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(100.0 * part / whole, 1)


# ---------------------------------------------------------------------------
# STATUS COUNTS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatusRollup:
    counts: Mapping[RequirementStatus, int]
    total: int

    def count(self, status: RequirementStatus) -> int:
        return self.counts.get(status, 0)

    def percent(self, status: RequirementStatus) -> float:
        return _percent(self.count(status), self.total)

    @property
    def percentages(self) -> Dict[RequirementStatus, float]:
        return {status: self.percent(status) for status in RequirementStatus}


def summarize(results: Iterable[RequirementResult]) -> StatusRollup:
    counts: Dict[RequirementStatus, int] = {status: 0 for status in RequirementStatus}
    total = 0
    for result in results:
        counts[result.status] += 1
        total += 1
    return StatusRollup(counts=counts, total=total)


def rollup_employee(
    snapshot: Snapshot,
    employee_id: int,
    *,
    today: Optional[date] = None,
) -> StatusRollup:
    return summarize(classify_employee(snapshot, employee_id, today=today))


# ---------------------------------------------------------------------------
# POSITIONS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PositionRollup:
    position_id: int
    position_name: str
    assignees: int
    expired_assignees: int
    missing_assignees: int
    at_risk_assignees: int
    at_risk_percent: float
    statuses: StatusRollup
    flagged: bool


def rollup_positions(
    snapshot: Snapshot,
    *,
    today: Optional[date] = None,
    flag_percent: Optional[float] = None,
    min_assignees: Optional[int] = None,
) -> List[PositionRollup]:
    """
    One row per active position with at least one active assignee.

    An assignee is at risk when any of the position's own required courses
    is EXPIRED or NEVER_COMPLETED. A high at-risk share usually means the
    position was assigned to people who do not actually do that job.

    Ordering: at_risk_percent desc, expired_assignees desc, position name.
    """
    today = today or date.today()
    flag_percent = POSITION_FLAG_PERCENT if flag_percent is None else flag_percent
    min_assignees = POSITION_MIN_ASSIGNEES if min_assignees is None else min_assignees

    rows: List[PositionRollup] = []
    for position_id, assignees in snapshot.position_assignees.items():
        position = snapshot.positions[position_id]
        required = sorted(snapshot.position_requirements.get(position_id, frozenset()))

        results: List[RequirementResult] = []
        expired = missing = at_risk = 0
        for employee_id in sorted(assignees):
            mine = [classify(snapshot, employee_id, course_id, today=today) for course_id in required]
            results.extend(mine)
            statuses = {r.status for r in mine}
            has_expired = RequirementStatus.EXPIRED in statuses
            has_missing = RequirementStatus.NEVER_COMPLETED in statuses
            expired += has_expired
            missing += has_missing
            at_risk += has_expired or has_missing

        at_risk_percent = _percent(at_risk, len(assignees))
        rows.append(
            PositionRollup(
                position_id=position_id,
                position_name=position.name,
                assignees=len(assignees),
                expired_assignees=expired,
                missing_assignees=missing,
                at_risk_assignees=at_risk,
                at_risk_percent=at_risk_percent,
                statuses=summarize(results),
                flagged=len(assignees) >= min_assignees and at_risk > 0 and at_risk_percent >= flag_percent,
            )
        )

    rows.sort(key=lambda r: (-r.at_risk_percent, -r.expired_assignees, r.position_name.lower(), r.position_id))
    return rows


# ---------------------------------------------------------------------------
# COURSES
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CourseRollup:
    course_id: str
    course_name: str
    duration_months: Optional[int]
    required_by: int
    completed: int
    expired: int
    expired_percent: float
    statuses: StatusRollup
    flagged: bool


def rollup_courses(
    snapshot: Snapshot,
    *,
    today: Optional[date] = None,
    flag_percent: Optional[float] = None,
    min_expired: Optional[int] = None,
) -> List[CourseRollup]:
    """
    One row per required course, over every employee who requires it.

    expired_percent is EXPIRED over completed (EXPIRED + VALID +
    NO_EXPIRATION); employees who never completed the course do not dilute
    it. A high share usually means duration_months is misconfigured.

    Ordering: expired_percent desc, expired desc, course id.
    """
    today = today or date.today()
    flag_percent = COURSE_FLAG_PERCENT if flag_percent is None else flag_percent
    min_expired = COURSE_MIN_EXPIRED if min_expired is None else min_expired

    requiring: Dict[str, List[int]] = {}
    for employee_id, course_ids in snapshot.required_courses_by_employee.items():
        for course_id in course_ids:
            requiring.setdefault(course_id, []).append(employee_id)

    rows: List[CourseRollup] = []
    for course_id, employee_ids in requiring.items():
        course = snapshot.courses[course_id]
        statuses = summarize(
            classify(snapshot, employee_id, course_id, today=today) for employee_id in sorted(employee_ids)
        )
        expired = statuses.count(RequirementStatus.EXPIRED)
        completed = statuses.total - statuses.count(RequirementStatus.NEVER_COMPLETED)
        expired_percent = _percent(expired, completed)
        rows.append(
            CourseRollup(
                course_id=course_id,
                course_name=course.name,
                duration_months=course.duration_months,
                required_by=statuses.total,
                completed=completed,
                expired=expired,
                expired_percent=expired_percent,
                statuses=statuses,
                flagged=expired > min_expired and expired_percent >= flag_percent,
            )
        )

    rows.sort(key=lambda r: (-r.expired_percent, -r.expired, r.course_id))
    return rows


# ---------------------------------------------------------------------------
# EXPIRING SOON
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpiringRequirement:
    employee_id: int
    employee_name: str
    required_course_id: str
    course_name: str
    match_type: MatchType
    matched_course_id: str
    completion_date: Optional[date]
    expiration_date: date
    days_remaining: int
    positions: Tuple[str, ...] = ()


def _covered_past(snapshot: Snapshot, employee_id: int, course_id: str, horizon: date) -> bool:
    for member in snapshot.group_members(course_id) or (course_id,):
        completion = snapshot.completion_for(employee_id, member)
        if completion is None:
            continue
        if completion.expiration_date is None or completion.expiration_date > horizon:
            return True
    return False


def expiring_requirements(
    snapshot: Snapshot,
    *,
    within_days: Optional[int] = None,
    today: Optional[date] = None,
) -> List[ExpiringRequirement]:
    """
    VALID requirements whose matched completion expires between today and
    today + within_days, both inclusive.

    A requirement is left out when any completion in the course's enabled
    grouping keeps it covered past the window, so an expiring edition
    backed by a current sibling edition does not show up.

    Ordering: expiration date, employee name, course id.
    """
    today = today or date.today()
    within_days = EXPIRING_WITHIN_DAYS if within_days is None else within_days
    if within_days < 0:
        raise ValueError("within_days must not be negative")
    horizon = today + timedelta(days=within_days)

    positions_by_employee: Dict[int, List[str]] = {}
    for position_id, assignees in snapshot.position_assignees.items():
        for employee_id in assignees:
            positions_by_employee.setdefault(employee_id, []).append(snapshot.positions[position_id].name)

    rows: List[ExpiringRequirement] = []
    for employee_id, course_ids in snapshot.required_courses_by_employee.items():
        employee = snapshot.employees[employee_id]
        for course_id in course_ids:
            result = classify(snapshot, employee_id, course_id, today=today)
            if result.status != RequirementStatus.VALID or result.matched_expiration > horizon:
                continue
            if _covered_past(snapshot, employee_id, course_id, horizon):
                continue
            rows.append(
                ExpiringRequirement(
                    employee_id=employee_id,
                    employee_name=employee.name,
                    required_course_id=course_id,
                    course_name=snapshot.courses[course_id].name,
                    match_type=result.match_type,
                    matched_course_id=result.matched_course_id,
                    completion_date=result.completion.completion_date,
                    expiration_date=result.matched_expiration,
                    days_remaining=(result.matched_expiration - today).days,
                    positions=tuple(sorted(positions_by_employee.get(employee_id, ()))),
                )
            )

    rows.sort(key=lambda r: (r.expiration_date, r.employee_name.lower(), r.required_course_id))
    return rows


# ---------------------------------------------------------------------------
# RECONCILIATION
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationSummary:
    counts: Mapping[ReconciliationOutcome, int] = field(default_factory=dict)
    total: int = 0
    merged: int = 0
    required_matched: int = 0
    required_missing: int = 0

    @property
    def matched(self) -> int:
        return (
            self.counts.get(ReconciliationOutcome.EXACT_MATCH, 0)
            + self.counts.get(ReconciliationOutcome.GROUP_MATCH, 0)
            + self.counts.get(ReconciliationOutcome.TCODE_MATCH, 0)
        )


def summarize_reconciliation(classifications: Iterable[Classification]) -> ReconciliationSummary:
    counts: Dict[ReconciliationOutcome, int] = {outcome: 0 for outcome in ReconciliationOutcome}
    total = merged = required_matched = required_missing = 0
    for item in classifications:
        counts[item.outcome] += 1
        total += 1
        merged += item.was_merged
        if item.is_required:
            if item.is_match:
                required_matched += 1
            elif item.outcome == ReconciliationOutcome.NOT_FOUND:
                required_missing += 1
    return ReconciliationSummary(
        counts=counts,
        total=total,
        merged=merged,
        required_matched=required_matched,
        required_missing=required_missing,
    )
