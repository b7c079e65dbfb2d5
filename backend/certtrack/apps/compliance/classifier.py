"""
Requirement status classification.

Resolution order for one (employee, required course) pair:
exact completion, then the best completion across the course's enabled
grouping, then nothing. Exact strictly dominates group, even when the exact
completion is expired and a group sibling is still valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from .enums import MatchType, RequirementStatus
from .snapshot import Completion, Snapshot, best_of


@dataclass(frozen=True)
class RequirementResult:
    employee_id: int
    required_course_id: str
    status: RequirementStatus
    match_type: MatchType
    matched_course_id: Optional[str] = None
    matched_expiration: Optional[date] = None
    completion: Optional[Completion] = None
    group_code: Optional[str] = None

    @property
    def priority(self) -> int:
        return self.status.priority


def resolve_completion(
    snapshot: Snapshot,
    employee_id: int,
    course_id: str,
) -> Tuple[MatchType, Optional[Completion]]:
    """Exact, then group. Shared with the external record matcher."""
    exact = snapshot.completion_for(employee_id, course_id)
    if exact is not None:
        return MatchType.EXACT, exact

    members = snapshot.group_members(course_id)
    if members:
        candidates = (
            snapshot.completion_for(employee_id, member)
            for member in sorted(members)
            if member != course_id
        )
        grouped = best_of(c for c in candidates if c is not None)
        if grouped is not None:
            return MatchType.GROUP, grouped

    return MatchType.NONE, None


def status_for(completion: Optional[Completion], today: date) -> RequirementStatus:
    if completion is None:
        return RequirementStatus.NEVER_COMPLETED
    if completion.expiration_date is None:
        return RequirementStatus.NO_EXPIRATION
    if completion.expiration_date < today:
        return RequirementStatus.EXPIRED
    return RequirementStatus.VALID


def classify(
    snapshot: Snapshot,
    employee_id: int,
    required_course_id: str,
    *,
    today: Optional[date] = None,
) -> RequirementResult:
    today = today or date.today()
    match_type, completion = resolve_completion(snapshot, employee_id, required_course_id)
    return RequirementResult(
        employee_id=employee_id,
        required_course_id=required_course_id,
        status=status_for(completion, today),
        match_type=match_type,
        matched_course_id=completion.course_id if completion else None,
        matched_expiration=completion.expiration_date if completion else None,
        completion=completion,
        group_code=(
            snapshot.course_to_group.get(required_course_id)
            if match_type == MatchType.GROUP
            else None
        ),
    )


def classify_employee(
    snapshot: Snapshot,
    employee_id: int,
    *,
    today: Optional[date] = None,
) -> List[RequirementResult]:
    """
    Every required course of an employee, most urgent first
    (status priority, then course name, then course id).
    """
    today = today or date.today()
    results = [
        classify(snapshot, employee_id, course_id, today=today)
        for course_id in snapshot.required_courses(employee_id)
    ]

    def _order(result: RequirementResult) -> tuple:
        course = snapshot.courses.get(result.required_course_id)
        name = course.name.lower() if course else ""
        return (result.priority, name, result.required_course_id)

    results.sort(key=_order)
    return results
