from __future__ import annotations

from datetime import date

from certtrack.apps.compliance.classifier import classify, classify_employee
from certtrack.apps.compliance.enums import MatchType, RequirementStatus
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


def _snapshot(completions=(), groupings=(), memberships=(), courses=None, requirements=None):
    courses = courses or [
        Course("100", "T100 Forklift IL (100)", duration_months=12),
        Course("101", "T100 Forklift OL (101)", duration_months=12),
        Course("200", "T200 Ladder Safety (200)"),
    ]
    requirements = requirements or [Requirement(10, "100")]
    return build_snapshot(
        courses=courses,
        groupings=groupings,
        memberships=memberships,
        positions=[Position(10, "Warehouse Operator")],
        requirements=requirements,
        employees=[Employee(1, "Ada Lovelace")],
        assignments=[PositionAssignment(1, 10)],
        completions=completions,
    )


def _forklift_group():
    return dict(
        groupings=[CourseGrouping(1, "T100")],
        memberships=[GroupingMember(1, "100"), GroupingMember(1, "101")],
    )


def test_no_completions_is_never_completed():
    result = classify(_snapshot(), 1, "100", today=TODAY)

    assert result.status == RequirementStatus.NEVER_COMPLETED
    assert result.match_type == MatchType.NONE
    assert result.matched_course_id is None
    assert result.priority == 1


def test_exact_expired_dominates_valid_group_sibling():
    snapshot = _snapshot(
        completions=[
            Completion(1, 1, "100", date(2023, 1, 1), date(2024, 1, 1)),
            Completion(2, 1, "101", date(2025, 1, 1), date(2026, 1, 1)),
        ],
        **_forklift_group(),
    )

    result = classify(snapshot, 1, "100", today=TODAY)

    assert result.status == RequirementStatus.EXPIRED
    assert result.match_type == MatchType.EXACT
    assert result.matched_course_id == "100"
    assert result.group_code is None


def test_group_sibling_satisfies_requirement():
    snapshot = _snapshot(
        completions=[Completion(2, 1, "101", date(2025, 1, 1), date(2026, 1, 1))],
        **_forklift_group(),
    )

    result = classify(snapshot, 1, "100", today=TODAY)

    assert result.status == RequirementStatus.VALID
    assert result.match_type == MatchType.GROUP
    assert result.matched_course_id == "101"
    assert result.matched_expiration == date(2026, 1, 1)
    assert result.group_code == "T100"


def test_sibling_outside_enabled_grouping_does_not_count():
    snapshot = _snapshot(
        completions=[Completion(2, 1, "101", date(2025, 1, 1), date(2026, 1, 1))],
        groupings=[CourseGrouping(1, "T100", is_enabled=False)],
        memberships=[GroupingMember(1, "100"), GroupingMember(1, "101")],
    )

    assert classify(snapshot, 1, "100", today=TODAY).status == RequirementStatus.NEVER_COMPLETED


def test_latest_expiration_selected_among_exact_completions():
    snapshot = _snapshot(
        completions=[
            Completion(1, 1, "100", date(2023, 1, 1), date(2024, 1, 1)),
            Completion(2, 1, "100", date(2024, 1, 1), date(2025, 1, 1)),
            Completion(3, 1, "100", date(2024, 6, 1), None),
        ]
    )

    result = classify(snapshot, 1, "100", today=date(2024, 6, 1))

    assert result.matched_expiration == date(2025, 1, 1)
    assert result.status == RequirementStatus.VALID


def test_expiration_boundaries():
    snapshot = _snapshot(completions=[Completion(1, 1, "100", date(2024, 6, 1), TODAY)])

    assert classify(snapshot, 1, "100", today=TODAY).status == RequirementStatus.VALID
    assert classify(snapshot, 1, "100", today=date(2025, 6, 2)).status == RequirementStatus.EXPIRED


def test_null_expiration_is_no_expiration():
    snapshot = _snapshot(completions=[Completion(1, 1, "200", date(2020, 1, 1), None)])

    result = classify(snapshot, 1, "200", today=TODAY)

    assert result.status == RequirementStatus.NO_EXPIRATION
    assert result.priority == 4


def test_classify_employee_orders_most_urgent_first():
    snapshot = _snapshot(
        completions=[
            Completion(1, 1, "100", date(2024, 1, 1), date(2024, 12, 31)),
            Completion(2, 1, "200", date(2020, 1, 1), None),
        ],
        courses=[
            Course("100", "T100 Forklift (100)"),
            Course("200", "T200 Ladder Safety (200)"),
            Course("300", "T300 Confined Space (300)"),
            Course("050", "T050 Air Monitoring (050)"),
        ],
        requirements=[
            Requirement(10, "100"),
            Requirement(10, "200"),
            Requirement(10, "300"),
            Requirement(10, "050"),
        ],
    )

    results = classify_employee(snapshot, 1, today=TODAY)

    assert [(r.required_course_id, r.status) for r in results] == [
        ("050", RequirementStatus.NEVER_COMPLETED),
        ("300", RequirementStatus.NEVER_COMPLETED),
        ("100", RequirementStatus.EXPIRED),
        ("200", RequirementStatus.NO_EXPIRATION),
    ]


def test_employee_without_positions_has_no_requirements():
    assert classify_employee(_snapshot(), 99, today=TODAY) == []


def test_classification_is_idempotent_across_snapshots():
    completions = [
        Completion(1, 1, "100", date(2023, 1, 1), date(2024, 1, 1)),
        Completion(2, 1, "101", date(2025, 1, 1), date(2026, 1, 1)),
    ]
    first = classify_employee(_snapshot(completions=completions, **_forklift_group()), 1, today=TODAY)
    second = classify_employee(
        _snapshot(completions=list(reversed(completions)), **_forklift_group()), 1, today=TODAY
    )

    assert first == second


def test_best_sibling_chosen_across_group_members():
    snapshot = _snapshot(
        completions=[
            Completion(1, 1, "101", date(2024, 1, 1), date(2025, 9, 1)),
            Completion(2, 1, "102", date(2025, 1, 1), date(2026, 1, 1)),
            Completion(3, 1, "103", date(2025, 5, 1), None),
        ],
        courses=[
            Course("100", "T100 Forklift (100)"),
            Course("101", "T100 Forklift IL (101)"),
            Course("102", "T100 Forklift OL (102)"),
            Course("103", "T100 Forklift OJT (103)"),
        ],
        groupings=[CourseGrouping(1, "T100")],
        memberships=[
            GroupingMember(1, "100"),
            GroupingMember(1, "101"),
            GroupingMember(1, "102"),
            GroupingMember(1, "103"),
        ],
    )

    result = classify(snapshot, 1, "100", today=TODAY)

    assert result.match_type == MatchType.GROUP
    assert result.matched_course_id == "102"
    assert result.matched_expiration == date(2026, 1, 1)
    assert result.status == RequirementStatus.VALID


def test_shared_member_counts_for_every_grouping_it_belongs_to():
    snapshot = _snapshot(
        completions=[Completion(1, 1, "101", date(2025, 1, 1), date(2027, 1, 1))],
        courses=[
            Course("100", "T100 Forklift (100)"),
            Course("101", "T100 Forklift OL (101)"),
            Course("102", "T101 Reach Truck (102)"),
        ],
        requirements=[Requirement(10, "102")],
        groupings=[CourseGrouping(3, "T100"), CourseGrouping(7, "T101")],
        memberships=[
            GroupingMember(3, "100"),
            GroupingMember(3, "101"),
            GroupingMember(7, "101"),
            GroupingMember(7, "102"),
        ],
    )

    result = classify(snapshot, 1, "102", today=TODAY)

    assert result.status == RequirementStatus.VALID
    assert result.match_type == MatchType.GROUP
    assert result.matched_course_id == "101"
    assert result.group_code == "T101"
