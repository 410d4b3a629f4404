from __future__ import annotations

from todolens.extract.text import TextTodoExtractor, iter_captures
from todolens.schema import Priority


def test_mixed_markers_yield_three_records_with_security_override() -> None:
    text = "TODO: Fix auth bug\nFIXME: Optimize database queries\nSecurity issue: validate input properly"

    records = TextTodoExtractor().extract(text)

    contents = [record.content for record in records]
    assert contents == [
        "Fix auth bug",
        "Optimize database queries",
        "Security issue: validate input properly",
    ]
    security = records[2]
    assert security.priority is Priority.HIGH
    assert all(record.source == "context" for record in records)
    assert [record.id for record in records] == ["context-1", "context-2", "context-3"]


def test_short_captures_are_dropped() -> None:
    records = TextTodoExtractor().extract("TODO: a\nFIXME: ok\nNOTE:")

    assert records == []


def test_no_record_is_shorter_than_four_characters() -> None:
    text = "\n".join(
        [
            "TODO: x",
            "we need to do it",
            "then go",
            "Implement caching layer",
            "// HACK - tidy",
            "next: ship v2",
        ]
    )

    records = TextTodoExtractor().extract(text)

    assert records
    assert all(len(record.content.strip()) > 3 for record in records)


def test_duplicates_are_case_insensitive_within_one_pass() -> None:
    text = "TODO: Add login page\ntodo: add LOGIN page"

    records = TextTodoExtractor().extract(text)

    assert len(records) == 1
    assert records[0].content == "Add login page"


def test_action_phrase_and_imperative_families() -> None:
    captures = list(iter_captures("We need to migrate the billing tables"))
    assert ("action-phrase", "migrate the billing tables") in captures

    captures = list(iter_captures("- Refactor the session cache"))
    assert ("imperative", "Refactor the session cache") in captures


def test_marker_after_comment_prefix_and_block_terminator() -> None:
    captures = list(iter_captures("/* TODO: remove legacy flag */"))

    assert ("marker", "remove legacy flag") in captures


def test_file_path_sets_location() -> None:
    extractor = TextTodoExtractor(id_prefix="todo", source="codebase")

    records = extractor.extract("x = 1\n# TODO: drop the shim", file_path="src/app.py")

    assert len(records) == 1
    record = records[0]
    assert record.source == "codebase"
    assert record.location is not None
    assert record.location.describe() == "src/app.py:2"


def test_analyze_summary_is_additive() -> None:
    analysis = TextTodoExtractor().analyze(
        "TODO: urgent payment fix\nTODO: maybe tweak colours\nTODO: rename the helper"
    )

    summary = analysis.summary
    assert summary.total == len(analysis.todos) == 3
    assert summary.total == summary.high_priority + summary.medium_priority + summary.low_priority
    assert summary.high_priority == 1
    assert summary.low_priority == 1


def test_extract_never_raises_on_empty_input() -> None:
    assert TextTodoExtractor().extract("") == []
