# backend/certtrack/apps/compliance/matcher.py
"""
External ledger reconciliation.

Each row of the external training export is classified against the internal
record set. Evidence gets weaker at every step and the first hit wins:

1. employee lookup (exact, case-insensitive name)
2. course id from the label's trailing parenthetical
3. one-hop merge redirect
4. exact completion
5. completion of a sibling in the course's enabled grouping
6. completion of any course sharing the label's T-code
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional

from .classifier import resolve_completion
from .enums import MatchType, ReconciliationOutcome
from .snapshot import Completion, Employee, Snapshot, best_of
from .taxonomy import extract_course_id, extract_tcode

REASON_NO_ID = "no id"
REASON_NO_COMPLETION = "no completion record"
REASON_COURSE_NOT_IN_DB = "course not in db"
REASON_EMPLOYEE_NOT_IN_DB = "employee not in db"

_EXPIRATION_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")

_OUTCOME_LABELS = {
    ReconciliationOutcome.EMPLOYEE_NOT_IN_DB: "Employee Not in DB",
    ReconciliationOutcome.NOT_FOUND: "Not Found",
    ReconciliationOutcome.COURSE_NOT_IN_DB: "Course Not in DB",
    ReconciliationOutcome.EXACT_MATCH: "Exact",
    ReconciliationOutcome.GROUP_MATCH: "Group",
    ReconciliationOutcome.TCODE_MATCH: "T-Code",
}


@dataclass(frozen=True)
class ExternalRecord:
    associate_name: str
    raw_label: str
    reported_status: Optional[str] = None
    reported_expiration: Optional[str] = None


@dataclass(frozen=True)
class Classification:
    record: ExternalRecord
    outcome: ReconciliationOutcome
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
    reason: Optional[str] = None

    @property
    def is_match(self) -> bool:
        return self.outcome in (
            ReconciliationOutcome.EXACT_MATCH,
            ReconciliationOutcome.GROUP_MATCH,
            ReconciliationOutcome.TCODE_MATCH,
        )

    @property
    def reported_expiration_date(self) -> Optional[date]:
        return parse_reported_expiration(self.record.reported_expiration)

    @property
    def label(self) -> str:
        """Human-readable bucket; a merge is rendered on top of the match kind."""
        base = _OUTCOME_LABELS[self.outcome]
        if not self.was_merged or not self.is_match:
            return base
        if self.outcome == ReconciliationOutcome.EXACT_MATCH:
            return "Merged"
        return f"Merged ({base})"


def parse_reported_expiration(value: Optional[str]) -> Optional[date]:
    """`M/D/YYYY` or ISO dates; 'n/a', blanks and junk yield None."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text or text.lower() == "n/a":
        return None
    for fmt in _EXPIRATION_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _tcode_fallback(snapshot: Snapshot, employee_id: int, tcode: Optional[str]) -> Optional[Completion]:
    if tcode is None:
        return None
    candidates = (
        completion
        for completion in snapshot.completions_by_employee.get(employee_id, ())
        if snapshot.course_tcodes.get(completion.course_id) == tcode
    )
    return best_of(candidates)


def match_external(snapshot: Snapshot, record: ExternalRecord) -> Classification:
    """Classify one external row. Never raises; every anomaly is an outcome."""
    tcode = extract_tcode(record.raw_label)
    employee: Optional[Employee] = snapshot.find_employee(record.associate_name)
    if employee is None:
        return Classification(
            record=record,
            outcome=ReconciliationOutcome.EMPLOYEE_NOT_IN_DB,
            extracted_course_id=extract_course_id(record.raw_label),
            tcode=tcode,
            reason=REASON_EMPLOYEE_NOT_IN_DB,
        )

    base = dict(
        record=record,
        employee_id=employee.employee_id,
        employee_active=employee.is_active,
        tcode=tcode,
    )

    extracted = extract_course_id(record.raw_label)
    if extracted is None:
        return Classification(outcome=ReconciliationOutcome.NOT_FOUND, reason=REASON_NO_ID, **base)

    course_id, was_merged = snapshot.resolve_course(extracted)
    base.update(
        extracted_course_id=extracted,
        course_id=course_id,
        was_merged=was_merged,
        original_course_id=extracted if was_merged else None,
        is_required=course_id in snapshot.required_courses(employee.employee_id),
    )

    if course_id not in snapshot.course_exists:
        fallback = _tcode_fallback(snapshot, employee.employee_id, tcode)
        if fallback is not None:
            return Classification(
                outcome=ReconciliationOutcome.TCODE_MATCH,
                matched_course_id=fallback.course_id,
                matched_expiration=fallback.expiration_date,
                **base,
            )
        return Classification(
            outcome=ReconciliationOutcome.COURSE_NOT_IN_DB,
            reason=REASON_COURSE_NOT_IN_DB,
            **base,
        )

    match_type, completion = resolve_completion(snapshot, employee.employee_id, course_id)
    if match_type == MatchType.EXACT:
        return Classification(
            outcome=ReconciliationOutcome.EXACT_MATCH,
            matched_course_id=completion.course_id,
            matched_expiration=completion.expiration_date,
            **base,
        )
    if match_type == MatchType.GROUP:
        return Classification(
            outcome=ReconciliationOutcome.GROUP_MATCH,
            matched_course_id=completion.course_id,
            matched_expiration=completion.expiration_date,
            group_code=snapshot.course_to_group.get(course_id),
            **base,
        )

    fallback = _tcode_fallback(snapshot, employee.employee_id, tcode)
    if fallback is not None:
        return Classification(
            outcome=ReconciliationOutcome.TCODE_MATCH,
            matched_course_id=fallback.course_id,
            matched_expiration=fallback.expiration_date,
            **base,
        )

    return Classification(
        outcome=ReconciliationOutcome.NOT_FOUND,
        reason=REASON_NO_COMPLETION,
        group_code=snapshot.course_to_group.get(course_id),
        **base,
    )


def match_external_batch(snapshot: Snapshot, records: Iterable[ExternalRecord]) -> List[Classification]:
    return [match_external(snapshot, record) for record in records]
