"""CLI commands for TODO extraction, validation and cleanup planning."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import BaseModel

from .config import DEFAULT_CONFIG_NAME, load_config
from .errors import TodoLensError
from .extract.markdown import MarkdownTodoParser
from .pipeline import TodoPipeline

APP_HELP = "Find, validate and clean up TODOs across conversations and codebases."

app = typer.Typer(help=APP_HELP)


def _echo_json(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_pipeline(config: Optional[Path]) -> TodoPipeline:
    if config is None and Path(DEFAULT_CONFIG_NAME).is_file():
        config = Path(DEFAULT_CONFIG_NAME)
    try:
        config_data = load_config(config)
    except TodoLensError as error:
        typer.echo(f"Failed to load config: {error}")
        raise typer.Exit(code=1) from error
    return TodoPipeline.from_config(config_data)


def _read_context(context: Optional[str], context_file: Optional[Path]) -> Optional[str]:
    if context_file is None:
        return context
    try:
        return context_file.read_text(encoding="utf-8")
    except OSError as error:
        typer.echo(f"Failed to read context file {context_file}: {error}")
        raise typer.Exit(code=1) from error


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help=f"Path to a todolens YAML configuration file (default: ./{DEFAULT_CONFIG_NAME} when present).",
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")
ContextOption = typer.Option(None, "--context", help="Conversation or notes text to scan.")
ContextFileOption = typer.Option(None, "--context-file", help="Read the context text from a file.")
ProjectOption = typer.Option(None, "--project", "-p", help="Path to the project to analyse.")


@app.command()
def todos(
    context: Optional[str] = ContextOption,
    context_file: Optional[Path] = ContextFileOption,
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Extract TODOs from context text only."""
    _configure_logging(verbose)
    pipeline = _build_pipeline(config)
    try:
        result = pipeline.analyze_context(_read_context(context, context_file))
    except TodoLensError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error
    _echo_json(result)


@app.command()
def analyze(
    project: Optional[str] = ProjectOption,
    context: Optional[str] = ContextOption,
    context_file: Optional[Path] = ContextFileOption,
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Combine context TODOs with project TODOs and validate them against the code."""
    _configure_logging(verbose)
    pipeline = _build_pipeline(config)
    try:
        result = pipeline.analyze_complete(_read_context(context, context_file), project)
    except TodoLensError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error
    _echo_json(result)


@app.command()
def cleanup(
    project: Optional[str] = ProjectOption,
    context: Optional[str] = ContextOption,
    context_file: Optional[Path] = ContextFileOption,
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Produce a cleanup report with ranked recommendations."""
    _configure_logging(verbose)
    pipeline = _build_pipeline(config)
    try:
        result = pipeline.analyze_cleanup(_read_context(context, context_file), project)
    except TodoLensError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error
    _echo_json(result)


@app.command()
def markdown(
    path: Path = typer.Argument(..., help="Markdown file to parse."),
    verbose: bool = VerboseOption,
) -> None:
    """Parse one markdown planning document."""
    _configure_logging(verbose)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as error:
        typer.echo(f"Failed to read {path}: {error}")
        raise typer.Exit(code=1) from error

    parser = MarkdownTodoParser()
    records = parser.parse(content, path.name)
    payload: Dict[str, Any] = {
        "file": path.name,
        "metadata": asdict(parser.extract_metadata(content)),
        "todos": [record.model_dump(mode="json") for record in records],
    }
    _echo_json(payload)


@app.command()
def context(
    project: Optional[str] = ProjectOption,
    file: str = typer.Option(..., "--file", "-f", help="Project-relative file containing the TODO."),
    line: int = typer.Option(..., "--line", "-l", min=1, help="Line number of the TODO."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Name the class and function enclosing a line of code."""
    _configure_logging(verbose)
    pipeline = _build_pipeline(config)
    try:
        result = pipeline.code_context(project, file, line)
    except TodoLensError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error
    _echo_json(asdict(result))


if __name__ == "__main__":
    app()
