from __future__ import annotations

from todolens.cleanup import CleanupPlanner
from todolens.schema import (
    CleanupAction,
    DuplicateGroup,
    Priority,
    TodoRecord,
    ValidationResult,
    ValidationStatus,
)


def make_result(record_id: str, status: ValidationStatus, confidence: float) -> ValidationResult:
    record = TodoRecord(id=record_id, content=f"work item {record_id}", source="codebase")
    return ValidationResult(todo=record, status=status, confidence=confidence)


def make_group(*ids: str) -> DuplicateGroup:
    members = [TodoRecord(id=item, content="fix login redirect", source="codebase") for item in ids]
    return DuplicateGroup(normalized_key="fix login redirect", members=members, similarity=1.0)


def test_results_are_bucketed_by_status() -> None:
    validations = [
        make_result("a", ValidationStatus.COMPLETED, 0.9),
        make_result("b", ValidationStatus.SUPERSEDED, 0.9),
        make_result("c", ValidationStatus.STALE, 0.8),
        make_result("d", ValidationStatus.BROKEN_REFERENCE, 0.9),
        make_result("e", ValidationStatus.UNKNOWN, 0.2),
        make_result("f", ValidationStatus.ACTIVE, 0.5),
    ]

    report = CleanupPlanner().plan(validations)

    assert report.total_analyzed == 6
    assert [item.todo.id for item in report.completed] == ["a"]
    assert [item.todo.id for item in report.superseded] == ["b"]
    assert [item.todo.id for item in report.stale] == ["c"]
    assert [item.todo.id for item in report.broken_references] == ["d"]
    assert [item.todo.id for item in report.unknown] == ["e"]


def test_recommendations_and_summary() -> None:
    validations = [
        make_result("a", ValidationStatus.COMPLETED, 0.9),
        make_result("b", ValidationStatus.SUPERSEDED, 0.85),
        make_result("c", ValidationStatus.STALE, 0.8),
        make_result("d", ValidationStatus.STALE, 0.6),
        make_result("e", ValidationStatus.UNKNOWN, 0.2),
    ]
    groups = [make_group("x1", "x2", "x3"), make_group("y1", "y2")]

    report = CleanupPlanner().plan(validations, groups)

    actions = {item.action: item for item in report.recommendations}
    deletion = actions[CleanupAction.SAFE_DELETION]
    assert deletion.target_ids == ["a"]
    assert deletion.impact is Priority.HIGH
    assert deletion.estimated_minutes_saved == 2.0

    consolidation = actions[CleanupAction.CONSOLIDATION]
    assert consolidation.target_ids == ["x2", "x3"]
    assert consolidation.estimated_minutes_saved == 3.0

    update = actions[CleanupAction.UPDATE_REFERENCES]
    assert update.target_ids == ["c"]
    assert update.estimated_minutes_saved == 3.0

    investigate = actions[CleanupAction.INVESTIGATE]
    assert investigate.target_ids == ["e"]
    assert investigate.impact is Priority.LOW

    assert report.summary.safe_deletions == 1
    assert report.summary.update_suggestions == 2
    assert report.summary.consolidation_opportunities == 1
    assert report.summary.total_potential_reduction == 8
    assert len(report.duplicate_groups) == 2


def test_empty_input_has_no_recommendations() -> None:
    report = CleanupPlanner().plan([])

    assert report.recommendations == []
    assert report.summary.total_potential_reduction == 0


def test_half_minute_totals_round_up() -> None:
    report = CleanupPlanner().plan([], [make_group("x1", "x2", "x3", "x4")])

    assert report.recommendations[0].estimated_minutes_saved == 4.5
    assert report.summary.total_potential_reduction == 5
