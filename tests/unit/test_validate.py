from __future__ import annotations

import threading
from typing import Dict, List

import pytest

from todolens.schema import EvidenceKind, TodoLocation, TodoRecord, ValidationStatus
from todolens.validate import (
    RelevanceValidator,
    extract_keywords,
    extract_references,
    stem,
)


class FakeSearch:
    """Return canned hits for any pattern containing one of the keys."""

    def __init__(self, hits: Dict[str, List[dict]] | None = None) -> None:
        self.hits = hits or {}
        self.patterns: List[str] = []

    def grep(self, output_id: str, pattern: str, context_lines: int = 0) -> List[dict]:
        self.patterns.append(pattern)
        for needle, hits in self.hits.items():
            if needle in pattern:
                return hits
        return []


class FailingSearch:
    def grep(self, output_id: str, pattern: str, context_lines: int = 0) -> List[dict]:
        raise ConnectionError("search backend unavailable")


class BlockingSearch:
    def __init__(self) -> None:
        self.release = threading.Event()

    def grep(self, output_id: str, pattern: str, context_lines: int = 0) -> List[dict]:
        self.release.wait(timeout=5)
        return []


def make_record(content: str, **metadata: object) -> TodoRecord:
    return TodoRecord(id="todo-1", content=content, source="context", metadata=dict(metadata))


def hit(file: str, line: int, content: str, context: List[str] | None = None) -> dict:
    return {"file": file, "line": line, "match": content.strip(), "content": content, "context": context or []}


def test_stem_keeps_four_letters() -> None:
    assert stem("creation") == "creat"
    assert stem("functionality") == "function"
    assert stem("caching") == "cach"
    assert stem("uses") == "uses"


def test_extract_references() -> None:
    references = extract_references("Call refreshTokens() in src/auth/session.ts and load_config")

    assert references.files == ["src/auth/session.ts"]
    assert [(item.name, item.call) for item in references.identifiers] == [
        ("refreshTokens", True),
        ("load_config", False),
    ]
    assert extract_keywords("We should maybe migrate billing tables later") == ["migrate", "billing", "tables"]


def test_implemented_feature_is_superseded() -> None:
    search = FakeSearch({"creat": [hit("src/users.ts", 10, "function createUser(name) {")]})
    validator = RelevanceValidator(search, "snapshot-1")

    result = validator.validate(make_record("Add user creation functionality"))

    assert result.status is ValidationStatus.SUPERSEDED
    assert result.confidence == pytest.approx(0.9)
    assert result.evidence[-1].kind is EvidenceKind.IMPLEMENTATION_FOUND
    assert result.evidence[-1].location == TodoLocation(file="src/users.ts", line=10)


def test_keyword_without_implementation_stays_unknown() -> None:
    search = FakeSearch({"creat": [hit("README.md", 3, "User creation is documented here")]})

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("Add user creation functionality"))

    assert result.status is ValidationStatus.UNKNOWN
    assert result.confidence == pytest.approx(0.2)
    assert [item.kind for item in result.evidence] == [EvidenceKind.SEMANTIC_MATCH]


def test_prose_mention_of_a_research_task_stays_unknown() -> None:
    search = FakeSearch({"": [hit("README.md", 12, "Research notes live in the team wiki")]})

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("research best practices"))

    assert result.status is ValidationStatus.UNKNOWN
    assert result.confidence == pytest.approx(0.2)
    assert all(item.kind is EvidenceKind.SEMANTIC_MATCH for item in result.evidence)


def test_path_header_hits_never_supersede() -> None:
    header = {"file": "src/export/report-export.ts", "line": 1, "content": 'path="src/export/report-export.ts"'}
    search = FakeSearch({"report": [header]})

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("Build report exporter"))

    assert result.status is ValidationStatus.UNKNOWN
    assert result.evidence == []


def test_missing_file_is_broken_reference() -> None:
    result = RelevanceValidator(FakeSearch(), "snapshot-1").validate(
        make_record("Update src/legacy/auth.ts handler")
    )

    assert result.status is ValidationStatus.BROKEN_REFERENCE
    assert result.confidence == pytest.approx(0.9)
    assert result.evidence[0].kind is EvidenceKind.FILE_MISSING


def test_missing_identifier_is_stale() -> None:
    result = RelevanceValidator(FakeSearch(), "snapshot-1").validate(
        make_record("Call refreshTokens() before retrying")
    )

    assert result.status is ValidationStatus.STALE
    assert result.confidence == pytest.approx(0.8)


def test_existing_identifier_is_active() -> None:
    search = FakeSearch({"fetchOrders": [hit("src/orders.ts", 4, "export function fetchOrders() {")]})

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("Cache fetchOrders results"))

    assert result.status is ValidationStatus.ACTIVE
    assert result.confidence == pytest.approx(0.5)


def test_completion_word_near_identifier_is_completed() -> None:
    search = FakeSearch(
        {"fetchOrders": [hit("src/orders.ts", 4, "function fetchOrders() {", ["// paging done in v2"])]}
    )

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("Cache fetchOrders results"))

    assert result.status is ValidationStatus.COMPLETED
    assert result.confidence == pytest.approx(0.8)


def test_todo_lines_are_not_evidence() -> None:
    search = FakeSearch(
        {"fetchOrders": [hit("src/orders.ts", 7, "// TODO: Cache fetchOrders() results")]}
    )

    result = RelevanceValidator(search, "snapshot-1").validate(make_record("Cache fetchOrders results"))

    assert result.status is ValidationStatus.STALE


def test_checked_off_item_is_completed() -> None:
    record = make_record("Set up database connection", completed=True)

    result = RelevanceValidator(FakeSearch(), "snapshot-1").validate(record)

    assert result.status is ValidationStatus.COMPLETED
    assert result.confidence == pytest.approx(0.9)


def test_record_without_references_is_unknown_and_serializes_plainly() -> None:
    result = RelevanceValidator(FakeSearch(), "snapshot-1").validate(make_record("tidy it up"))

    assert result.status is ValidationStatus.UNKNOWN
    assert result.confidence == pytest.approx(0.2)
    assert set(result.model_dump()) == {"todo", "status", "confidence", "evidence", "reason"}


def test_search_failures_degrade_to_unknown() -> None:
    validator = RelevanceValidator(FailingSearch(), "snapshot-1")

    result = validator.validate(make_record("Call refreshTokens() in src/auth.ts"))

    assert result.status is ValidationStatus.UNKNOWN
    assert result.evidence == []


def test_disabled_validator_marks_everything_unknown() -> None:
    records = [make_record("Call refreshTokens() now"), make_record("Add user creation functionality")]

    results = RelevanceValidator.disabled().validate_all(records)

    assert [result.status for result in results] == [ValidationStatus.UNKNOWN] * 2
    assert [result.todo for result in results] == records


def test_validate_all_keeps_input_order() -> None:
    search = FakeSearch({"fetchOrders": [hit("src/orders.ts", 4, "function fetchOrders() {")]})
    records = [
        make_record("Update src/legacy/auth.ts handler"),
        make_record("Cache fetchOrders results"),
        make_record("tidy it up"),
    ]

    results = RelevanceValidator(search, "snapshot-1", max_workers=3).validate_all(records)

    assert [result.status for result in results] == [
        ValidationStatus.BROKEN_REFERENCE,
        ValidationStatus.ACTIVE,
        ValidationStatus.UNKNOWN,
    ]


def test_validate_all_times_out_to_unknown() -> None:
    search = BlockingSearch()
    validator = RelevanceValidator(search, "snapshot-1", max_workers=2, timeout_seconds=0.05)
    try:
        results = validator.validate_all(
            [make_record("Call refreshTokens() now"), make_record("Call rotateKeys() now")]
        )
    finally:
        search.release.set()

    assert [result.status for result in results] == [ValidationStatus.UNKNOWN] * 2
    assert all(result.reason == "Validation timed out" for result in results)


def test_from_config_reads_validation_section() -> None:
    validator = RelevanceValidator.from_config(
        {"validation": {"max_workers": 3, "timeout_seconds": 1.5}}, FakeSearch(), "snapshot-1"
    )

    assert validator.enabled
    assert validator.max_workers == 3
    assert validator.timeout_seconds == 1.5
    assert not RelevanceValidator.from_config({}, FakeSearch(), None).enabled
