"""Markdown TODO parser for project-management documents.

Handles the patterns that show up in real planning documents:

* GitHub-style checkboxes (``- [ ]`` / ``- [x]``)
* bullets with a bolded task type (``- **Backend**: wire the API``)
* tables whose header names a description/task column
* inline ``TODO:``/``FIXME:``/``XXX:``/``NOTE:`` markers
* status-emoji lines
* ``todo:``/``tasks:`` lists inside YAML frontmatter

Headings set a baseline priority and category for the lines beneath them.
"""

from __future__ import annotations

import itertools
import logging
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..heuristics import document_priority
from ..schema import MIN_CONTENT_LENGTH, Priority, TodoLocation, TodoRecord

LOGGER = logging.getLogger(__name__)

RED_CIRCLE = "\U0001F534"
YELLOW_CIRCLE = "\U0001F7E1"
GREEN_CIRCLE = "\U0001F7E2"
DIRECT_HIT = "\U0001F3AF"
CROSS_MARK = "\u274c"
STOP_SIGN = "\U0001F6D1"
HOURGLASS = "\u23f3"
ARROWS = "\U0001F504"
CHECK_MARK = "\u2705"

STATUS_PRIORITY: Dict[str, Priority] = {
    RED_CIRCLE: Priority.HIGH,
    DIRECT_HIT: Priority.HIGH,
    CROSS_MARK: Priority.HIGH,
    STOP_SIGN: Priority.HIGH,
    YELLOW_CIRCLE: Priority.MEDIUM,
    HOURGLASS: Priority.MEDIUM,
    ARROWS: Priority.MEDIUM,
    GREEN_CIRCLE: Priority.LOW,
}

STATUS_CATEGORY: Dict[str, str] = {
    DIRECT_HIT: "priority-task",
    ARROWS: "in-progress",
    HOURGLASS: "waiting",
    CROSS_MARK: "blocked",
    STOP_SIGN: "blocked",
}

DEFAULT_SKIP_DIRS = ("node_modules", ".git", "dist", "build", ".next", "coverage")

_HEADING = re.compile(r"^#{1,6}\s+(.*)$")
_CHECKBOX = re.compile(r"^(\s*)[-*+]\s*\[\s*([xX ]?)\s*\]\s*(.+)")
_BULLET = re.compile(r"^(\s*)[-*+]\s*\*\*([^*]+)\*\*:\s*(.+)")
_INLINE = re.compile(r"(?:^|\s)(TODO|FIXME|XXX|NOTE):\s*(.+)", re.IGNORECASE)
_STATUS = re.compile(
    r"^(\s*)([" + "".join(STATUS_PRIORITY) + r"])\ufe0f?\s*(.+)"
)
_TABLE_ROW = re.compile(r"^\s*\|(.+)\|\s*$")
_TABLE_SEPARATOR = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")


@dataclass(slots=True)
class MarkdownMetadata:
    """Document-level planning signals."""

    has_timeline: bool
    has_phases: bool
    has_priorities: bool
    has_progress: bool
    estimated_effort: Optional[str] = None
    completion_rate: Optional[float] = None


@dataclass(slots=True)
class _SectionState:
    name: str = ""
    priority: Priority = Priority.MEDIUM


@dataclass(slots=True)
class _TableState:
    headers: List[str]
    description_index: int
    priority_index: Optional[int]
    file_index: Optional[int]
    line_index: Optional[int]


def section_priority(section: str) -> Priority:
    """Map a heading to the baseline priority of the lines beneath it."""
    lower = section.lower()
    if "priority 1" in lower or RED_CIRCLE in section or DIRECT_HIT in section:
        return Priority.HIGH
    if "priority 2" in lower or YELLOW_CIRCLE in section:
        return Priority.MEDIUM
    if "priority 3" in lower or GREEN_CIRCLE in section or "completed" in lower:
        return Priority.LOW
    if "urgent" in lower or "critical" in lower or "blocking" in lower:
        return Priority.HIGH
    if "low priority" in lower or re.search(r"\blow\b", lower):
        return Priority.LOW
    return Priority.MEDIUM


def section_category(section: str) -> str:
    lower = section.lower()
    if "deploy" in lower or "production" in lower:
        return "deployment"
    if "test" in lower or "qa" in lower:
        return "testing"
    if "doc" in lower or "readme" in lower:
        return "documentation"
    if "refactor" in lower or "architect" in lower:
        return "refactoring"
    if "bug" in lower or "fix" in lower:
        return "bug-fix"
    if "feature" in lower or "implement" in lower:
        return "feature"
    if "config" in lower or "setup" in lower:
        return "configuration"
    if "monitor" in lower or "observ" in lower:
        return "monitoring"
    return "general"


def task_type_category(task_type: str) -> str:
    lower = task_type.lower()
    if "test" in lower:
        return "testing"
    if "doc" in lower:
        return "documentation"
    if "config" in lower or "setup" in lower:
        return "configuration"
    if "deploy" in lower:
        return "deployment"
    if "monitor" in lower:
        return "monitoring"
    return "implementation"


def table_priority(cell: str) -> Priority:
    lower = cell.lower().strip()
    if "p1" in lower or "high" in lower or RED_CIRCLE in cell:
        return Priority.HIGH
    if "p3" in lower or "low" in lower or GREEN_CIRCLE in cell:
        return Priority.LOW
    return Priority.MEDIUM


def table_category(section: str) -> str:
    lower = section.lower()
    if "cli" in lower:
        return "cli"
    if "api" in lower:
        return "api"
    if "backend" in lower:
        return "backend"
    return "implementation"


_MARKER_RULES: Dict[str, tuple[Optional[Priority], str]] = {
    "FIXME": (Priority.HIGH, "bug-fix"),
    "XXX": (Priority.HIGH, "bug-fix"),
    "TODO": (None, "feature"),
    "NOTE": (Priority.LOW, "documentation"),
}


class MarkdownTodoParser:
    """Stateful line scanner turning a markdown document into TODO records."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def parse(self, content: str, file_path: str) -> List[TodoRecord]:
        """Return every TODO found in ``content``; malformed lines are skipped."""
        lines = (content or "").splitlines()
        todos: List[TodoRecord] = []
        section = _SectionState()
        table: Optional[_TableState] = None

        body_start = self._consume_frontmatter(lines, file_path, todos)

        for index in range(body_start, len(lines)):
            line = lines[index]
            line_number = index + 1

            heading = _HEADING.match(line)
            if heading:
                section = _SectionState(
                    name=heading.group(1).strip(),
                    priority=section_priority(heading.group(1)),
                )
                table = None
                continue

            if _TABLE_ROW.match(line):
                table = self._handle_table_line(lines, index, table, section, file_path, todos)
                continue
            table = None

            for record in (
                self._checkbox(line, file_path, line_number, section),
                self._bullet(line, file_path, line_number, section),
                self._inline(line, file_path, line_number, section),
                self._status(line, file_path, line_number, section),
            ):
                if record is not None:
                    todos.append(record)

        return todos

    def extract_metadata(self, content: str) -> MarkdownMetadata:
        """Summarise planning signals (phases, priorities, progress) in a document."""
        has_timeline = bool(re.search(r"week\s+\d+|phase\s+\d+|day\s+\d+", content, re.IGNORECASE))
        has_phases = bool(re.search(r"phase\s+\d+|step\s+\d+|stage\s+\d+", content, re.IGNORECASE))
        has_priorities = bool(
            re.search(
                rf"priority\s+\d+|{RED_CIRCLE}|{YELLOW_CIRCLE}|{GREEN_CIRCLE}|\bhigh\b|\bmedium\b|\blow\b",
                content,
                re.IGNORECASE,
            )
        )
        has_progress = bool(
            re.search(rf"{CHECK_MARK}|{CROSS_MARK}|{ARROWS}|{HOURGLASS}|\[\s*[xX]?\s*\]", content)
        )

        effort_match = re.search(r"effort[:\s]*([^.\n]+)", content, re.IGNORECASE)
        estimated_effort = effort_match.group(1).strip() if effort_match else None

        boxes = re.findall(r"\[\s*([xX]?)\s*\]", content)
        completion_rate: Optional[float] = None
        if boxes:
            completed = sum(1 for mark in boxes if mark)
            completion_rate = completed / len(boxes) * 100

        return MarkdownMetadata(
            has_timeline=has_timeline,
            has_phases=has_phases,
            has_priorities=has_priorities,
            has_progress=has_progress,
            estimated_effort=estimated_effort,
            completion_rate=completion_rate,
        )

    # -- frontmatter -------------------------------------------------

    def _consume_frontmatter(self, lines: Sequence[str], file_path: str, todos: List[TodoRecord]) -> int:
        """Parse a leading ``---`` block and return the index of the first body line."""
        start = 0
        while start < len(lines) and not lines[start].strip():
            start += 1
        if start >= len(lines) or lines[start].strip() != "---":
            return 0
        for end in range(start + 1, len(lines)):
            if lines[end].strip() == "---":
                block = lines[start + 1 : end]
                todos.extend(self._yaml_todos(block, start + 2, file_path))
                return end + 1
        return 0

    def _yaml_todos(self, block: Sequence[str], first_line: int, file_path: str) -> List[TodoRecord]:
        try:
            data = yaml.safe_load("\n".join(block)) or {}
        except yaml.YAMLError as error:
            LOGGER.debug("Ignoring malformed frontmatter in %s: %s", file_path, error)
            return []
        if not isinstance(data, dict):
            return []

        items: List[Any] = []
        for key in ("todo", "todos", "tasks"):
            value = data.get(key)
            if isinstance(value, list):
                items.extend(value)

        records: List[TodoRecord] = []
        for item in items:
            text, priority = self._yaml_item(item)
            if not text:
                continue
            line_number = self._locate(block, text, first_line)
            record = self._make(
                "md-yaml",
                text,
                priority,
                "yaml-metadata",
                "markdown-yaml",
                file_path,
                line_number,
                {"section": "yaml-frontmatter"},
            )
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _yaml_item(item: Any) -> tuple[str, Priority]:
        if isinstance(item, str):
            return item.strip(), Priority.MEDIUM
        if isinstance(item, dict):
            for key in ("task", "title", "content", "description"):
                value = item.get(key)
                if isinstance(value, str) and value.strip():
                    raw_priority = str(item.get("priority", "medium")).lower()
                    try:
                        priority = Priority(raw_priority)
                    except ValueError:
                        priority = Priority.MEDIUM
                    return value.strip(), priority
        return "", Priority.MEDIUM

    @staticmethod
    def _locate(block: Sequence[str], text: str, first_line: int) -> int:
        for offset, line in enumerate(block):
            if text in line:
                return first_line + offset
        return first_line

    # -- line families -----------------------------------------------

    def _checkbox(self, line: str, file_path: str, line_number: int, section: _SectionState) -> Optional[TodoRecord]:
        match = _CHECKBOX.match(line)
        if not match:
            return None
        indent, status, content = match.groups()
        completed = status.lower() == "x"
        priority = Priority.LOW if completed else document_priority(content, section.priority)
        return self._make(
            "md-checkbox",
            content,
            priority,
            section_category(section.name),
            "markdown-checkbox",
            file_path,
            line_number,
            {
                "section": section.name,
                "completed": completed,
                "indent_level": len(indent) // 2,
                "original_line": line.strip(),
            },
        )

    def _bullet(self, line: str, file_path: str, line_number: int, section: _SectionState) -> Optional[TodoRecord]:
        match = _BULLET.match(line)
        if not match:
            return None
        indent, task_type, content = match.groups()
        return self._make(
            "md-bullet",
            f"{task_type.strip()}: {content.strip()}",
            document_priority(content, section.priority),
            task_type_category(task_type),
            "markdown-bullet",
            file_path,
            line_number,
            {
                "section": section.name,
                "task_type": task_type.strip(),
                "indent_level": len(indent) // 2,
                "original_line": line.strip(),
            },
        )

    def _inline(self, line: str, file_path: str, line_number: int, section: _SectionState) -> Optional[TodoRecord]:
        match = _INLINE.search(line)
        if not match:
            return None
        marker = match.group(1).upper()
        forced, category = _MARKER_RULES[marker]
        return self._make(
            "md-inline",
            match.group(2),
            forced or section.priority,
            category,
            "markdown-inline",
            file_path,
            line_number,
            {"section": section.name, "marker": marker, "original_line": line.strip()},
        )

    def _status(self, line: str, file_path: str, line_number: int, section: _SectionState) -> Optional[TodoRecord]:
        match = _STATUS.match(line)
        if not match:
            return None
        indent, emoji, content = match.groups()
        return self._make(
            "md-status",
            content,
            STATUS_PRIORITY.get(emoji, section.priority),
            STATUS_CATEGORY.get(emoji, "general"),
            "markdown-status",
            file_path,
            line_number,
            {
                "section": section.name,
                "status_emoji": emoji,
                "indent_level": len(indent) // 2,
                "original_line": line.strip(),
            },
        )

    def _handle_table_line(
        self,
        lines: Sequence[str],
        index: int,
        table: Optional[_TableState],
        section: _SectionState,
        file_path: str,
        todos: List[TodoRecord],
    ) -> Optional[_TableState]:
        line = lines[index]
        if _TABLE_SEPARATOR.match(line):
            return table
        cells = _split_row(line)
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if _TABLE_SEPARATOR.match(next_line):
            return _table_state(cells)
        if table is None or len(cells) <= table.description_index:
            return table

        priority_cell = ""
        if table.priority_index is not None and table.priority_index < len(cells):
            priority_cell = cells[table.priority_index]
        metadata: Dict[str, Any] = {"section": section.name, "original_line": line.strip()}
        if table.file_index is not None and table.file_index < len(cells):
            metadata["source_file"] = cells[table.file_index]
        if table.line_index is not None and table.line_index < len(cells):
            metadata["source_line"] = cells[table.line_index]
        record = self._make(
            "md-table",
            cells[table.description_index],
            table_priority(priority_cell),
            table_category(section.name),
            "markdown-table",
            file_path,
            index + 1,
            metadata,
        )
        if record is not None:
            todos.append(record)
        return table

    def _make(
        self,
        prefix: str,
        content: str,
        priority: Priority,
        category: str,
        source: str,
        file_path: str,
        line_number: int,
        metadata: Dict[str, Any],
    ) -> Optional[TodoRecord]:
        text = content.strip()
        if len(text) < MIN_CONTENT_LENGTH:
            return None
        try:
            return TodoRecord(
                id=f"{prefix}-{next(self._counter)}",
                content=text,
                priority=priority,
                category=category,
                source=source,
                location=TodoLocation(file=file_path, line=line_number),
                metadata=metadata,
            )
        except ValidationError:
            return None


def _split_row(line: str) -> List[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def _table_state(headers: List[str]) -> Optional[_TableState]:
    lowered = [header.lower() for header in headers]

    def _find(*names: str) -> Optional[int]:
        for position, header in enumerate(lowered):
            if any(name in header for name in names):
                return position
        return None

    description_index = _find("description", "task")
    if description_index is None:
        return None
    return _TableState(
        headers=headers,
        description_index=description_index,
        priority_index=_find("priority"),
        file_index=_find("file"),
        line_index=_find("line"),
    )


def find_markdown_files(root: Path, skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS) -> List[Path]:
    """Return markdown files beneath ``root``, skipping vendored/build directories."""
    skipped = set(skip_dirs)
    found: List[Path] = []

    def _on_error(error: OSError) -> None:
        LOGGER.debug("Skipping unreadable directory: %s", error)

    for current, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(name for name in dirnames if name not in skipped)
        for filename in sorted(filenames):
            if filename.lower().endswith((".md", ".markdown")):
                found.append(Path(current) / filename)
    return found


def parse_markdown_tree(
    root: Path,
    parser: Optional[MarkdownTodoParser] = None,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
) -> List[TodoRecord]:
    """Parse every markdown file under ``root`` with paths relative to it."""
    parser = parser or MarkdownTodoParser()
    todos: List[TodoRecord] = []
    for path in find_markdown_files(root, skip_dirs):
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            LOGGER.warning("Failed to read markdown file %s: %s", path, error)
            continue
        todos.extend(parser.parse(content, path.relative_to(root).as_posix()))
    return todos


__all__ = [
    "DEFAULT_SKIP_DIRS",
    "MarkdownMetadata",
    "MarkdownTodoParser",
    "find_markdown_files",
    "parse_markdown_tree",
    "section_category",
    "section_priority",
]
