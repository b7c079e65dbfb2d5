# backend/certtrack/apps/compliance/snapshot.py
"""
Immutable, read-optimised view of the compliance tables.

A Snapshot is built once per unit of work (a report run, a detail page, a
reconciliation batch) from one consistent read of the store, then passed
explicitly to the classifier, matcher and rollups. Nothing in this module
touches the database; see `services.load_snapshot` for the read side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from .enums import CleanupAction, DataQualityKind
from .taxonomy import extract_tcode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ROW TYPES
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Course:
    course_id: str
    name: str
    duration_months: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class CourseGrouping:
    group_id: int
    group_code: str
    is_enabled: bool = True


@dataclass(frozen=True)
class GroupingMember:
    group_id: int
    course_id: str


@dataclass(frozen=True)
class CleanupDecision:
    course_id: str
    action: CleanupAction = CleanupAction.PENDING
    merge_into_course_id: Optional[str] = None
    rename_to: Optional[str] = None
    is_one_time: Optional[bool] = None
    recert_months: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Position:
    position_id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Requirement:
    position_id: int
    course_id: str


@dataclass(frozen=True)
class PositionAssignment:
    employee_id: int
    position_id: int


@dataclass(frozen=True)
class Employee:
    employee_id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Completion:
    training_id: int
    employee_id: int
    course_id: str
    completion_date: Optional[date] = None
    expiration_date: Optional[date] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DataQualityIssue:
    kind: DataQualityKind
    subject: str
    detail: str


@dataclass(frozen=True)
class GroupMembership:
    """
    Enabled groupings a course belongs to, in ascending group_id order.

    `group_code` is the deterministic pick (lowest group_id); callers that
    care can check `is_ambiguous` and surface `group_codes`.
    """

    course_id: str
    group_codes: Tuple[str, ...] = ()

    @property
    def is_member(self) -> bool:
        return bool(self.group_codes)

    @property
    def is_ambiguous(self) -> bool:
        return len(self.group_codes) > 1

    @property
    def group_code(self) -> Optional[str]:
        return self.group_codes[0] if self.group_codes else None


# ---------------------------------------------------------------------------
# COMPLETION ORDERING
# ---------------------------------------------------------------------------


def completion_rank(completion: Completion) -> tuple:
    """
    Sort key where the larger value is the better completion:
    latest expiration wins, a NULL expiration ranks after every real date,
    then the later completion date, then the later training id.
    """
    return (
        completion.expiration_date is not None,
        completion.expiration_date or date.min,
        completion.completion_date is not None,
        completion.completion_date or date.min,
        completion.training_id,
    )


def best_of(completions: Iterable[Completion]) -> Optional[Completion]:
    best: Optional[Completion] = None
    for completion in completions:
        if best is None or completion_rank(completion) > completion_rank(best):
            best = completion
    return best


# ---------------------------------------------------------------------------
# SNAPSHOT
# ---------------------------------------------------------------------------


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class Snapshot:
    courses: Mapping[str, Course]
    course_exists: FrozenSet[str]
    course_tcodes: Mapping[str, Optional[str]]
    course_to_group: Mapping[str, str]
    group_to_courses: Mapping[str, FrozenSet[str]]
    course_group_codes: Mapping[str, Tuple[str, ...]]
    decisions: Mapping[str, CleanupDecision]
    merge_redirect: Mapping[str, str]
    employees: Mapping[int, Employee]
    employee_by_name: Mapping[str, int]
    positions: Mapping[int, Position]
    position_requirements: Mapping[int, FrozenSet[str]]
    position_assignees: Mapping[int, FrozenSet[int]]
    required_courses_by_employee: Mapping[int, FrozenSet[str]]
    best_completion: Mapping[Tuple[int, str], Completion]
    completions_by_employee: Mapping[int, Tuple[Completion, ...]]
    usage_counts: Mapping[str, int]
    data_quality: Tuple[DataQualityIssue, ...] = field(default_factory=tuple)

    def group_membership(self, course_id: str) -> GroupMembership:
        return GroupMembership(course_id=course_id, group_codes=self.course_group_codes.get(course_id, ()))

    def group_members(self, course_id: str) -> FrozenSet[str]:
        code = self.course_to_group.get(course_id)
        if code is None:
            return frozenset()
        return self.group_to_courses.get(code, frozenset())

    def required_courses(self, employee_id: int) -> FrozenSet[str]:
        return self.required_courses_by_employee.get(employee_id, frozenset())

    def completion_for(self, employee_id: int, course_id: str) -> Optional[Completion]:
        return self.best_completion.get((employee_id, course_id))

    def find_employee(self, name: Optional[str]) -> Optional[Employee]:
        if not isinstance(name, str):
            return None
        employee_id = self.employee_by_name.get(normalize_name(name))
        return self.employees.get(employee_id) if employee_id is not None else None

    def resolve_course(self, course_id: str) -> Tuple[str, bool]:
        """One-hop merge redirect: (resolved id, whether a redirect applied)."""
        target = self.merge_redirect.get(course_id)
        if target is None:
            return course_id, False
        return target, True


def normalize_name(name: str) -> str:
    return name.strip().lower()


# ---------------------------------------------------------------------------
# BUILDER
# ---------------------------------------------------------------------------


def _build_groupings(
    groupings: Iterable[CourseGrouping],
    memberships: Iterable[GroupingMember],
    course_exists: FrozenSet[str],
    issues: List[DataQualityIssue],
) -> Tuple[Dict[str, str], Dict[str, FrozenSet[str]], Dict[str, Tuple[str, ...]]]:
    enabled = {g.group_id: g for g in groupings if g.is_enabled}

    codes_by_course: Dict[str, List[Tuple[int, str]]] = {}
    members_by_code: Dict[str, Set[str]] = {}
    unknown: Set[Tuple[int, str]] = set()
    for member in memberships:
        grouping = enabled.get(member.group_id)
        if grouping is None:
            continue
        if member.course_id not in course_exists:
            unknown.add((grouping.group_id, member.course_id))
            continue
        # Every enabled member belongs to its grouping's set, ambiguous or not.
        members_by_code.setdefault(grouping.group_code, set()).add(member.course_id)
        entries = codes_by_course.setdefault(member.course_id, [])
        if any(group_id == grouping.group_id for group_id, _ in entries):
            continue
        entries.append((grouping.group_id, grouping.group_code))

    for group_id, course_id in sorted(unknown):
        issues.append(
            DataQualityIssue(
                kind=DataQualityKind.UNKNOWN_GROUP_MEMBER,
                subject=course_id,
                detail=(
                    f"grouping {enabled[group_id].group_code} (id {group_id}) lists unknown "
                    f"course {course_id}; the membership is ignored"
                ),
            )
        )

    course_group_codes: Dict[str, Tuple[str, ...]] = {}
    course_to_group: Dict[str, str] = {}
    for course_id in sorted(codes_by_course):
        entries = sorted(codes_by_course[course_id])
        codes = tuple(code for _, code in entries)
        course_group_codes[course_id] = codes
        course_to_group[course_id] = codes[0]
        if len(entries) > 1:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.AMBIGUOUS_GROUPING,
                    subject=course_id,
                    detail=(
                        f"course {course_id} is in {len(entries)} enabled groupings "
                        f"({', '.join(codes)}); using {codes[0]} (lowest group id)"
                    ),
                )
            )

    group_to_courses = {code: frozenset(ids) for code, ids in members_by_code.items()}
    return course_to_group, group_to_courses, course_group_codes


def _build_merge_redirect(
    decisions: Mapping[str, CleanupDecision],
    course_exists: FrozenSet[str],
    issues: List[DataQualityIssue],
) -> Dict[str, str]:
    redirect: Dict[str, str] = {}
    for course_id in sorted(decisions):
        decision = decisions[course_id]
        if decision.action != CleanupAction.MERGE:
            continue
        target = decision.merge_into_course_id
        if not target:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.MERGE_TARGET_MISSING,
                    subject=course_id,
                    detail=f"course {course_id} is marked merge without a target",
                )
            )
            continue
        if target == course_id:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.SELF_MERGE,
                    subject=course_id,
                    detail=f"course {course_id} is marked to merge into itself",
                )
            )
            continue
        if target not in course_exists:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.MERGE_TARGET_MISSING,
                    subject=course_id,
                    detail=f"course {course_id} merges into unknown course {target}",
                )
            )
            continue
        redirect[course_id] = target

    # Single hop only: a target that redirects again is reported, never followed.
    for source in sorted(redirect):
        target = redirect[source]
        if target in redirect:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.CHAINED_MERGE,
                    subject=source,
                    detail=(
                        f"course {source} merges into {target}, which itself merges into "
                        f"{redirect[target]}; only the first hop is applied"
                    ),
                )
            )
    return redirect


def _build_employee_names(
    employees: Mapping[int, Employee],
    issues: List[DataQualityIssue],
) -> Dict[str, int]:
    by_name: Dict[str, int] = {}
    for employee_id in sorted(employees):
        key = normalize_name(employees[employee_id].name)
        if not key:
            continue
        if key in by_name:
            issues.append(
                DataQualityIssue(
                    kind=DataQualityKind.DUPLICATE_EMPLOYEE_NAME,
                    subject=str(employee_id),
                    detail=(
                        f"employee {employee_id} shares the name {employees[employee_id].name!r} "
                        f"with employee {by_name[key]}; name lookups resolve to {by_name[key]}"
                    ),
                )
            )
            continue
        by_name[key] = employee_id
    return by_name


def build_snapshot(
    *,
    courses: Iterable[Course] = (),
    groupings: Iterable[CourseGrouping] = (),
    memberships: Iterable[GroupingMember] = (),
    decisions: Iterable[CleanupDecision] = (),
    positions: Iterable[Position] = (),
    requirements: Iterable[Requirement] = (),
    assignments: Iterable[PositionAssignment] = (),
    employees: Iterable[Employee] = (),
    completions: Iterable[Completion] = (),
) -> Snapshot:
    """
    Freeze plain rows into lookup structures. Pure and deterministic: the
    same rows always produce an equal snapshot.
    """
    issues: List[DataQualityIssue] = []

    course_map = {c.course_id: c for c in courses}
    course_exists = frozenset(course_map)
    course_tcodes = {course_id: extract_tcode(c.name) for course_id, c in course_map.items()}

    course_to_group, group_to_courses, course_group_codes = _build_groupings(
        groupings, memberships, course_exists, issues
    )

    decision_map = {d.course_id: d for d in decisions}
    merge_redirect = _build_merge_redirect(decision_map, course_exists, issues)

    employee_map = {e.employee_id: e for e in employees}
    employee_by_name = _build_employee_names(employee_map, issues)

    position_map = {p.position_id: p for p in positions}
    active_positions = {pid for pid, p in position_map.items() if p.is_active}
    active_courses = {cid for cid, c in course_map.items() if c.is_active}
    active_employees = {eid for eid, e in employee_map.items() if e.is_active}

    requirements_by_position: Dict[int, Set[str]] = {}
    for requirement in requirements:
        if requirement.position_id in active_positions and requirement.course_id in active_courses:
            requirements_by_position.setdefault(requirement.position_id, set()).add(requirement.course_id)

    assignees_by_position: Dict[int, Set[int]] = {}
    required_by_employee: Dict[int, Set[str]] = {}
    for assignment in assignments:
        if assignment.position_id not in active_positions or assignment.employee_id not in active_employees:
            continue
        assignees_by_position.setdefault(assignment.position_id, set()).add(assignment.employee_id)
        required = requirements_by_position.get(assignment.position_id)
        if required:
            required_by_employee.setdefault(assignment.employee_id, set()).update(required)

    best: Dict[Tuple[int, str], Completion] = {}
    for completion in completions:
        key = (completion.employee_id, completion.course_id)
        current = best.get(key)
        if current is None or completion_rank(completion) > completion_rank(current):
            best[key] = completion

    per_employee: Dict[int, List[Completion]] = {}
    usage: Dict[str, int] = {}
    for (employee_id, course_id), completion in best.items():
        per_employee.setdefault(employee_id, []).append(completion)
        usage[course_id] = usage.get(course_id, 0) + 1

    for issue in issues:
        logger.warning(
            "Compliance data quality issue",
            extra={"kind": issue.kind.value, "subject": issue.subject, "detail": issue.detail},
        )

    return Snapshot(
        courses=_frozen(course_map),
        course_exists=course_exists,
        course_tcodes=_frozen(course_tcodes),
        course_to_group=_frozen(course_to_group),
        group_to_courses=_frozen(group_to_courses),
        course_group_codes=_frozen(course_group_codes),
        decisions=_frozen(decision_map),
        merge_redirect=_frozen(merge_redirect),
        employees=_frozen(employee_map),
        employee_by_name=_frozen(employee_by_name),
        positions=_frozen(position_map),
        position_requirements=_frozen(
            {pid: frozenset(ids) for pid, ids in requirements_by_position.items()}
        ),
        position_assignees=_frozen(
            {pid: frozenset(ids) for pid, ids in assignees_by_position.items()}
        ),
        required_courses_by_employee=_frozen(
            {eid: frozenset(ids) for eid, ids in required_by_employee.items()}
        ),
        best_completion=_frozen(best),
        completions_by_employee=_frozen(
            {
                eid: tuple(sorted(items, key=lambda c: c.course_id))
                for eid, items in per_employee.items()
            }
        ),
        usage_counts=_frozen(usage),
        data_quality=tuple(issues),
    )
