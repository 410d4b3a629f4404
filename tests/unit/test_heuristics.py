from __future__ import annotations

import pytest

from todolens.heuristics import (
    PRIORITY_RANK,
    apply_priority_override,
    determine_category,
    determine_priority,
    document_priority,
    highest_priority,
    is_critical_business_logic,
    is_nice_to_have,
    is_security_related,
    score,
)
from todolens.schema import Priority, TodoRecord


def make_record(content: str, *, priority: Priority = Priority.MEDIUM, category: str = "general", source: str = "context") -> TodoRecord:
    return TodoRecord(id="r-1", content=content, priority=priority, category=category, source=source)


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("This is URGENT, ship it", Priority.HIGH),
        ("We should tidy the helpers", Priority.MEDIUM),
        ("Maybe rename the module", Priority.LOW),
        ("Rename the module", Priority.MEDIUM),
    ],
)
def test_determine_priority_uses_first_matching_table(content: str, expected: Priority) -> None:
    assert determine_priority(content) is expected


def test_determine_priority_checks_high_before_low() -> None:
    assert determine_priority("critical but optional") is Priority.HIGH


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("write unit test for parser", "testing"),
        ("fix crash on startup", "bug-fix"),
        ("implement export", "feature"),
        ("optimize the query planner", "refactoring"),
        ("update doc strings", "documentation"),
        ("rename variables", "general"),
    ],
)
def test_determine_category_tables(content: str, expected: str) -> None:
    assert determine_category(content) == expected


def test_vocabulary_predicates() -> None:
    assert is_security_related("Sanitize HTML to prevent XSS")
    assert is_critical_business_logic("Checkout total is wrong")
    assert is_nice_to_have("Some UI polish would be good")
    assert not is_security_related("rename the helper")


def test_security_override_raises_to_high() -> None:
    record = make_record("validate input properly for auth", priority=Priority.LOW)
    assert apply_priority_override(record) is Priority.HIGH


def test_bug_fix_from_codebase_is_high() -> None:
    record = make_record("fix the flaky bug", category="bug-fix", source="context+codebase")
    assert apply_priority_override(record) is Priority.HIGH

    context_only = make_record("fix the flaky bug", category="bug-fix", source="context")
    assert apply_priority_override(context_only) is Priority.MEDIUM


def test_nice_to_have_lowers_and_neutral_content_is_unchanged() -> None:
    assert apply_priority_override(make_record("cosmetic spacing tweak")) is Priority.LOW
    assert apply_priority_override(make_record("rename helper", priority=Priority.HIGH)) is Priority.HIGH


def test_override_never_lowers_high_priority_when_it_fires() -> None:
    for priority in Priority:
        record = make_record("encrypt the token store", priority=priority)
        overridden = apply_priority_override(record)
        assert PRIORITY_RANK[overridden] >= PRIORITY_RANK[priority]


def test_score_applies_base_and_override() -> None:
    assert score("Security issue: validate input properly", "context") == (Priority.HIGH, "general")
    assert score("Fix auth bug", "context") == (Priority.HIGH, "bug-fix")


def test_highest_priority() -> None:
    assert highest_priority([Priority.LOW, Priority.HIGH, Priority.MEDIUM]) is Priority.HIGH
    assert highest_priority([]) is Priority.LOW


@pytest.mark.parametrize(
    ("content", "base", "expected"),
    [
        ("Ship the production hotfix", Priority.LOW, Priority.HIGH),
        ("Eventually add dark mode", Priority.HIGH, Priority.LOW),
        ("Write the migration guide", Priority.MEDIUM, Priority.MEDIUM),
    ],
)
def test_document_priority_overrides_section_baseline(content: str, base: Priority, expected: Priority) -> None:
    assert document_priority(content, base) is expected
