"""TODO extraction backed by the packer snapshot and the symbol service."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from pydantic import ValidationError

from ..heuristics import score
from ..schema import MIN_CONTENT_LENGTH, Priority, TodoLocation, TodoRecord
from ..services.contracts import (
    SnapshotSearch,
    SymbolInfo,
    SymbolService,
    coerce_grep_matches,
    coerce_project_symbols,
    coerce_text_matches,
)
from .text import MARKER_PATTERN, clean_capture

LOGGER = logging.getLogger(__name__)

MARKER_SEARCH = r"(?:TODO|FIXME|HACK|XXX|BUG|NOTE)(?:\s*[:\-]?\s*)(.*)"


@dataclass(frozen=True, slots=True)
class StructuralPattern:
    """Code shape that signals unfinished work, with the TODO it implies."""

    pattern: str
    content: str
    category: str


STRUCTURAL_PATTERNS: tuple[StructuralPattern, ...] = (
    StructuralPattern(
        r"return (?:false|False);?\s*$",
        "Complete implementation (currently returns placeholder false)",
        "feature",
    ),
    StructuralPattern(
        r"return (?:null|None);?\s*$",
        "Complete implementation (currently returns placeholder null)",
        "feature",
    ),
    StructuralPattern(
        r"(?:throw new Error|raise NotImplementedError)\(.*not implemented.*\)",
        'Implement method (currently throws "not implemented" error)',
        "feature",
    ),
    StructuralPattern(
        r"(?:console\.log|print)\(.*TODO.*\)",
        "Replace console.log with proper implementation",
        "refactoring",
    ),
)


@dataclass(slots=True)
class CodeContext:
    """Where a TODO sits relative to the surrounding declarations."""

    file: str
    line: int
    column: int
    text: str
    context: str


def _marker_content(text: str) -> Optional[str]:
    match = MARKER_PATTERN.search(text or "")
    if match is None:
        return None
    content = clean_capture(match.group(1))
    if len(content) < MIN_CONTENT_LENGTH:
        return None
    return content


class CodebaseTodoExtractor:
    """Turn marker hits in a packed snapshot into ``codebase`` records."""

    def __init__(self, context_lines: int = 2) -> None:
        self.context_lines = context_lines
        self._counter = itertools.count(1)

    def from_snapshot(self, search: SnapshotSearch, output_id: str) -> List[TodoRecord]:
        """Grep ``output_id`` for markers; raises ``ServiceError`` on failure."""
        matches = coerce_grep_matches(search.grep(output_id, MARKER_SEARCH, self.context_lines))
        records: List[TodoRecord] = []
        for match in matches:
            if match.is_path_header():
                continue
            content = _marker_content(match.content)
            if content is None:
                continue
            priority, category = score(content, "codebase")
            try:
                records.append(
                    TodoRecord(
                        id=f"todo-{next(self._counter)}",
                        content=content,
                        priority=priority,
                        category=category,
                        source="codebase",
                        location=TodoLocation(file=match.file, line=match.line),
                    )
                )
            except ValidationError:
                LOGGER.debug("Skipping unusable codebase TODO %r", content)
        LOGGER.debug("Found %d TODO(s) in snapshot %s", len(records), output_id)
        return records


class SemanticTodoExtractor:
    """Find marker and placeholder TODOs through a registered symbol project."""

    def __init__(self, *, max_results: int = 100, structural_max_results: int = 50) -> None:
        self.max_results = max_results
        self.structural_max_results = structural_max_results
        self._counter = itertools.count(1)
        self._structural_counter = itertools.count(1)

    def find(self, symbols: SymbolService, project: str) -> List[TodoRecord]:
        """Return semantic marker records followed by structural records.

        A failure of the marker search propagates as ``ServiceError``; a failure
        of the structural search only empties the structural part.
        """
        raw = symbols.find_text(project, "(TODO|FIXME|HACK|XXX|BUG|NOTE)", None, self.max_results)
        records: List[TodoRecord] = []
        for match in coerce_text_matches(raw):
            content = _marker_content(match.text)
            if content is None:
                continue
            priority, category = score(content, "semantic")
            try:
                records.append(
                    TodoRecord(
                        id=f"semantic-todo-{next(self._counter)}",
                        content=content,
                        priority=priority,
                        category=category,
                        source="semantic",
                        location=TodoLocation(file=match.file, line=match.line, column=match.column),
                    )
                )
            except ValidationError:
                LOGGER.debug("Skipping unusable semantic TODO %r", content)
        records.extend(self.find_structural(symbols, project))
        return records

    def find_structural(self, symbols: SymbolService, project: str) -> List[TodoRecord]:
        records: List[TodoRecord] = []
        try:
            for shape in STRUCTURAL_PATTERNS:
                raw = symbols.find_text(project, shape.pattern, None, self.structural_max_results)
                for match in coerce_text_matches(raw):
                    records.append(
                        TodoRecord(
                            id=f"structural-todo-{next(self._structural_counter)}",
                            content=shape.content,
                            priority=Priority.MEDIUM,
                            category=shape.category,
                            source="structural",
                            location=TodoLocation(file=match.file, line=match.line),
                        )
                    )
        except Exception as error:
            LOGGER.warning("Structural TODO analysis failed: %s", error)
            return []
        return records

    def describe_context(self, symbols: SymbolService, project: str, record: TodoRecord) -> CodeContext:
        """Name the closest class and function declared before ``record``."""
        location = record.location
        if location is None:
            raise ValueError("TODO record must have a file location for context analysis")
        project_symbols = coerce_project_symbols(symbols.get_symbols(project, location.file))
        line = location.line or 0
        nearest_class = nearest_symbol(project_symbols.classes, line)
        nearest_function = nearest_symbol(project_symbols.functions, line)

        parts = []
        if nearest_class is not None:
            parts.append(f"in class {nearest_class.name}")
        if nearest_function is not None:
            parts.append(f"in function {nearest_function.name}")
        return CodeContext(
            file=location.file,
            line=line,
            column=location.column or 0,
            text=record.content,
            context=", ".join(parts) if parts else "global scope",
        )


def nearest_symbol(candidates: Sequence[SymbolInfo], line: int) -> Optional[SymbolInfo]:
    """Return the symbol declared closest to, but not after, ``line``."""
    if not line:
        return None
    nearest: Optional[SymbolInfo] = None
    for symbol in candidates:
        if symbol.line <= line and (nearest is None or symbol.line > nearest.line):
            nearest = symbol
    return nearest


__all__ = [
    "MARKER_SEARCH",
    "STRUCTURAL_PATTERNS",
    "CodeContext",
    "CodebaseTodoExtractor",
    "SemanticTodoExtractor",
    "StructuralPattern",
    "nearest_symbol",
]
