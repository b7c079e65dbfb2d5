from __future__ import annotations

from datetime import date

import pytest

from certtrack.apps.compliance.classifier import classify_employee
from certtrack.apps.compliance.enums import MatchType, ReconciliationOutcome, RequirementStatus
from certtrack.apps.compliance.matcher import ExternalRecord, match_external_batch
from certtrack.apps.compliance.rollups import (
    expiring_requirements,
    rollup_courses,
    rollup_employee,
    rollup_positions,
    summarize,
    summarize_reconciliation,
)
from certtrack.apps.compliance.snapshot import (
    Completion,
    Course,
    CourseGrouping,
    Employee,
    GroupingMember,
    Position,
    PositionAssignment,
    Requirement,
    build_snapshot,
)

TODAY = date(2025, 6, 1)


def test_end_to_end_employee_rollup():
    snapshot = build_snapshot(
        courses=[Course("100", "T100 Forklift (100)", 24), Course("200", "T200 Ladders (200)", None)],
        positions=[Position(10, "Operator")],
        requirements=[Requirement(10, "100"), Requirement(10, "200")],
        employees=[Employee(1, "Ada Lovelace")],
        assignments=[PositionAssignment(1, 10)],
        completions=[Completion(1, 1, "100", date(2028, 1, 1), date(2030, 1, 1))],
    )

    rollup = rollup_employee(snapshot, 1, today=TODAY)

    assert rollup.total == 2
    assert rollup.count(RequirementStatus.VALID) == 1
    assert rollup.count(RequirementStatus.NEVER_COMPLETED) == 1
    assert rollup.count(RequirementStatus.EXPIRED) == 0
    assert rollup.percent(RequirementStatus.VALID) == 50.0
    assert set(rollup.percentages) == set(RequirementStatus)


def test_summarize_empty_is_zero_filled():
    rollup = summarize([])

    assert rollup.total == 0
    assert all(rollup.count(status) == 0 for status in RequirementStatus)
    assert rollup.percent(RequirementStatus.EXPIRED) == 0.0


def _workforce():
    """
    Two positions:
    - Welder: 3 assignees, 2 expired on the weld course
    - Clerk: 2 assignees, all valid
    """
    employees = [Employee(i, f"Employee {i}") for i in range(1, 6)]
    completions = [
        Completion(1, 1, "W", date(2022, 1, 1), date(2023, 1, 1)),
        Completion(2, 2, "W", date(2022, 1, 1), date(2023, 1, 1)),
        Completion(3, 3, "W", date(2025, 1, 1), date(2026, 1, 1)),
        Completion(4, 4, "C", date(2025, 1, 1), date(2026, 1, 1)),
        Completion(5, 5, "C", date(2025, 1, 1), None),
    ]
    return build_snapshot(
        courses=[Course("W", "T400 Welding (W)", 12), Course("C", "T401 Filing (C)", 12)],
        positions=[Position(1, "Welder"), Position(2, "Clerk"), Position(3, "Vacant")],
        requirements=[Requirement(1, "W"), Requirement(2, "C"), Requirement(3, "C")],
        employees=employees,
        assignments=[
            PositionAssignment(1, 1),
            PositionAssignment(2, 1),
            PositionAssignment(3, 1),
            PositionAssignment(4, 2),
            PositionAssignment(5, 2),
        ],
        completions=completions,
    )


def test_position_rollup_orders_and_flags():
    rows = rollup_positions(_workforce(), today=TODAY, flag_percent=50, min_assignees=2)

    assert [r.position_name for r in rows] == ["Welder", "Clerk"]
    welder, clerk = rows
    assert welder.assignees == 3
    assert welder.expired_assignees == 2
    assert welder.at_risk_percent == 66.7
    assert welder.flagged
    assert clerk.at_risk_percent == 0.0
    assert not clerk.flagged
    assert clerk.statuses.count(RequirementStatus.NO_EXPIRATION) == 1


def test_position_rollup_respects_min_assignees():
    rows = rollup_positions(_workforce(), today=TODAY, flag_percent=50, min_assignees=5)

    assert not any(r.flagged for r in rows)


def test_course_rollup_expired_share_ignores_never_completed():
    rows = rollup_courses(_workforce(), today=TODAY, flag_percent=50, min_expired=1)

    assert [r.course_id for r in rows] == ["W", "C"]
    weld = rows[0]
    assert weld.required_by == 3
    assert weld.completed == 3
    assert weld.expired == 2
    assert weld.expired_percent == 66.7
    assert weld.flagged


def test_course_rollup_needs_more_than_min_expired():
    rows = rollup_courses(_workforce(), today=TODAY, flag_percent=50, min_expired=2)

    assert not rows[0].flagged


def test_reconciliation_summary_counts():
    snapshot = build_snapshot(
        courses=[Course("100", "T100 Forklift (100)")],
        positions=[Position(10, "Operator")],
        requirements=[Requirement(10, "100")],
        employees=[Employee(1, "Ada Lovelace")],
        assignments=[PositionAssignment(1, 10)],
    )
    classifications = match_external_batch(
        snapshot,
        [
            ExternalRecord("Ada Lovelace", "T100 Forklift (100)"),
            ExternalRecord("Ada Lovelace", "Orientation (555)"),
            ExternalRecord("Ghost", "T100 Forklift (100)"),
        ],
    )

    summary = summarize_reconciliation(classifications)

    assert summary.total == 3
    assert summary.matched == 0
    assert summary.required_missing == 1
    assert summary.counts[ReconciliationOutcome.COURSE_NOT_IN_DB] == 1
    assert summary.counts[ReconciliationOutcome.EMPLOYEE_NOT_IN_DB] == 1
    assert summary.counts[ReconciliationOutcome.TCODE_MATCH] == 0


def test_rollup_matches_detail_view():
    snapshot = _workforce()

    details = classify_employee(snapshot, 1, today=TODAY)

    assert summarize(details) == rollup_employee(snapshot, 1, today=TODAY)


# ---------------------------------------------------------------------------
# Expiring soon
# ---------------------------------------------------------------------------


def _expiring_workforce():
    """
    Operator requires F (forklift) and L (ladders, grouped with L2).
    - Ada: F expires in 10 days, L in 60
    - Bob: F expires in 30 days, L expired, L2 sibling valid for years
    - Cy: L expires in 5 days but L2 sibling has no expiration
    - Dee (inactive): F expires tomorrow
    """
    return build_snapshot(
        courses=[
            Course("F", "T100 Forklift (F)", 12),
            Course("L", "T200 Ladders (L)", 12),
            Course("L2", "T200 Ladders OL (L2)", 12),
        ],
        groupings=[CourseGrouping(1, "T200")],
        memberships=[GroupingMember(1, "L"), GroupingMember(1, "L2")],
        positions=[Position(1, "Operator")],
        requirements=[Requirement(1, "F"), Requirement(1, "L")],
        employees=[
            Employee(1, "Ada"),
            Employee(2, "Bob"),
            Employee(3, "Cy"),
            Employee(4, "Dee", is_active=False),
        ],
        assignments=[PositionAssignment(i, 1) for i in range(1, 5)],
        completions=[
            Completion(1, 1, "F", date(2024, 6, 11), date(2025, 6, 11)),
            Completion(2, 1, "L", date(2024, 7, 31), date(2025, 7, 31)),
            Completion(3, 2, "F", date(2024, 7, 1), date(2025, 7, 1)),
            Completion(4, 2, "L", date(2023, 1, 1), date(2024, 1, 1)),
            Completion(5, 2, "L2", date(2025, 1, 1), date(2028, 1, 1)),
            Completion(6, 3, "L", date(2024, 6, 6), date(2025, 6, 6)),
            Completion(7, 3, "L2", date(2020, 1, 1), None),
            Completion(8, 4, "F", date(2024, 6, 2), date(2025, 6, 2)),
        ],
    )


def test_expiring_requirements_window_is_inclusive():
    rows = expiring_requirements(_expiring_workforce(), within_days=30, today=TODAY)

    assert [(r.employee_name, r.required_course_id, r.days_remaining) for r in rows] == [
        ("Ada", "F", 10),
        ("Bob", "F", 30),
    ]
    assert rows[0].match_type == MatchType.EXACT
    assert rows[0].positions == ("Operator",)
    assert rows[0].completion_date == date(2024, 6, 11)


def test_expiring_requirements_wider_window_orders_by_expiration():
    rows = expiring_requirements(_expiring_workforce(), within_days=90, today=TODAY)

    assert [(r.employee_name, r.required_course_id, r.expiration_date) for r in rows] == [
        ("Ada", "F", date(2025, 6, 11)),
        ("Bob", "F", date(2025, 7, 1)),
        ("Ada", "L", date(2025, 7, 31)),
    ]


def test_expiring_requirements_skip_when_group_sibling_covers():
    rows = expiring_requirements(_expiring_workforce(), within_days=7, today=TODAY)

    # Cy's L runs out in 5 days, but the undated L2 sibling still covers it.
    assert [(r.employee_name, r.required_course_id) for r in rows] == []


def test_expiring_requirements_report_group_matches():
    snapshot = build_snapshot(
        courses=[Course("L", "T200 Ladders (L)"), Course("L2", "T200 Ladders OL (L2)")],
        groupings=[CourseGrouping(1, "T200")],
        memberships=[GroupingMember(1, "L"), GroupingMember(1, "L2")],
        positions=[Position(1, "Operator")],
        requirements=[Requirement(1, "L")],
        employees=[Employee(1, "Ada")],
        assignments=[PositionAssignment(1, 1)],
        completions=[Completion(1, 1, "L2", date(2024, 6, 15), date(2025, 6, 15))],
    )

    rows = expiring_requirements(snapshot, within_days=30, today=TODAY)

    assert len(rows) == 1
    assert rows[0].match_type == MatchType.GROUP
    assert rows[0].matched_course_id == "L2"
    assert rows[0].days_remaining == 14


def test_expiring_requirements_reject_negative_window():
    with pytest.raises(ValueError):
        expiring_requirements(_expiring_workforce(), within_days=-1, today=TODAY)
