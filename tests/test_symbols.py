from __future__ import annotations

from pathlib import Path

import pytest

from todolens.errors import ServiceError
from todolens.extract.codebase import SemanticTodoExtractor
from todolens.schema import TodoLocation, TodoRecord
from todolens.services.symbols import LocalSymbolService, pattern_declarations, python_declarations


@pytest.fixture()
def service(sample_project) -> LocalSymbolService:
    symbols = LocalSymbolService()
    symbols.register_project(str(sample_project.root), "")
    return symbols


def test_register_project_defaults_name_to_directory(sample_project) -> None:
    handle = LocalSymbolService().register_project(str(sample_project.root), "")

    assert handle.name == "sample-app"
    assert handle.root_path == str(sample_project.root)


def test_register_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(ServiceError):
        LocalSymbolService().register_project(str(tmp_path / "missing"), "missing")


def test_python_symbols_come_from_libcst(service: LocalSymbolService) -> None:
    symbols = service.get_symbols("sample-app", "src/users.py")

    assert [(item.name, item.line) for item in symbols.classes] == [("UserService", 4)]
    assert [(item.name, item.line) for item in symbols.functions] == [
        ("UserService.__init__", 5),
        ("UserService.create_user", 8),
        ("delete_user", 15),
    ]


def test_typescript_symbols_come_from_declaration_patterns(service: LocalSymbolService) -> None:
    symbols = service.get_symbols("sample-app", "src/payments.ts")

    assert [(item.name, item.line, item.column) for item in symbols.functions] == [("chargeCard", 1, 16)]
    assert symbols.classes == []


def test_declaration_helpers() -> None:
    assert python_declarations("def broken(:\n") == []
    names = [item.name for item in pattern_declarations("export class Cart {}\nconst total = (items) => 0\n")]
    assert names == ["Cart", "total"]


def test_find_text_reports_columns_and_neighbours(service: LocalSymbolService) -> None:
    matches = service.find_text("sample-app", "TODO")

    assert [(match.file, match.line) for match in matches] == [("src/payments.ts", 2), ("src/users.py", 9)]
    assert matches[0].column == 5
    assert matches[1].context == [
        "    def create_user(self, name: str) -> dict:",
        '        user = {"name": name}',
    ]


def test_find_text_filters_and_limits(service: LocalSymbolService) -> None:
    assert [match.file for match in service.find_text("sample-app", "TODO", "*.py")] == ["src/users.py"]
    assert len(service.find_text("sample-app", "TODO|FIXME", max_results=1)) == 1

    with pytest.raises(ServiceError):
        service.find_text("unregistered", "TODO")


def test_semantic_extractor_finds_markers_and_placeholders(service: LocalSymbolService) -> None:
    records = SemanticTodoExtractor().find(service, "sample-app")

    assert [(record.id, record.source) for record in records] == [
        ("semantic-todo-1", "semantic"),
        ("semantic-todo-2", "semantic"),
        ("semantic-todo-3", "semantic"),
        ("structural-todo-1", "structural"),
        ("structural-todo-2", "structural"),
    ]
    placeholder = records[3]
    assert placeholder.content == "Complete implementation (currently returns placeholder false)"
    assert placeholder.location == TodoLocation(file="src/payments.ts", line=3)
    assert records[0].location is not None and records[0].location.column == 5


def test_structural_failures_are_swallowed() -> None:
    class FailingSymbols:
        def find_text(self, project, pattern, file_pattern=None, max_results=100):
            raise ServiceError("symbol server offline")

    assert SemanticTodoExtractor().find_structural(FailingSymbols(), "demo") == []


def test_describe_context_names_enclosing_declarations(service: LocalSymbolService) -> None:
    extractor = SemanticTodoExtractor()
    record = TodoRecord(
        id="semantic-todo-1",
        content="validate the user name before saving",
        source="semantic",
        location=TodoLocation(file="src/users.py", line=9),
    )

    context = extractor.describe_context(service, "sample-app", record)

    assert context.context == "in class UserService, in function UserService.create_user"
    assert (context.file, context.line) == ("src/users.py", 9)

    unplaced = record.model_copy(update={"location": TodoLocation(file="src/users.py")})
    assert extractor.describe_context(service, "sample-app", unplaced).context == "global scope"

    with pytest.raises(ValueError):
        extractor.describe_context(service, "sample-app", record.model_copy(update={"location": None}))
