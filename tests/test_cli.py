from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from todolens.cli import app

runner = CliRunner()


def test_todos_command_prints_analysis() -> None:
    result = runner.invoke(app, ["todos", "--context", "TODO: Fix auth bug"], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["summary"]["total"] == 1
    assert payload["todos"][0]["priority"] == "high"
    assert payload["todos"][0]["category"] == "bug-fix"


def test_todos_command_reads_context_file(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("FIXME: Optimize database queries\n", encoding="utf-8")

    result = runner.invoke(app, ["todos", "--context-file", str(notes)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["todos"][0]["content"] == "Optimize database queries"


def test_missing_context_is_an_error() -> None:
    result = runner.invoke(app, ["todos"])

    assert result.exit_code == 1
    assert "Error: context is required" in result.output


def test_missing_config_file_is_reported(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["todos", "--context", "TODO: write docs", "--config", str(tmp_path / "absent.yaml")]
    )

    assert result.exit_code == 1
    assert "Failed to load config" in result.output


def test_analyze_command(sample_project) -> None:
    result = runner.invoke(
        app,
        ["analyze", "--project", str(sample_project.root), "--context", "TODO: validate the user name before saving"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert len(payload["codebase_todos"]) == 3
    assert payload["context_todos"][0]["content"] == "validate the user name before saving"


def test_cleanup_command(sample_project) -> None:
    result = runner.invoke(
        app,
        ["cleanup", "-p", str(sample_project.root), "--context", "TODO: validate the user name before saving"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["report"]["total_analyzed"] == len(payload["analysis"]["validations"])
    assert payload["report"]["summary"]["safe_deletions"] >= 1


def test_markdown_command(sample_project) -> None:
    result = runner.invoke(
        app, ["markdown", str(sample_project.root / "docs" / "ROADMAP.md")], catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["file"] == "ROADMAP.md"
    assert payload["metadata"]["completion_rate"] == 50.0
    assert [todo["content"] for todo in payload["todos"]] == [
        "Implement password reset flow",
        "Set up CI pipeline",
        "Docs: write the deployment guide",
    ]


def test_context_command(sample_project) -> None:
    result = runner.invoke(
        app,
        ["context", "--project", str(sample_project.root), "--file", "src/users.py", "--line", "16"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["context"] == "in class UserService, in function delete_user"
    assert payload["text"] == "# FIXME: handle missing users"


def test_default_config_file_in_working_directory_is_loaded(tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("todolens.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")

        result = runner.invoke(app, ["todos", "--context", "TODO: write docs"])

    assert result.exit_code == 1
    assert "Failed to load config" in result.output
