"""Local symbol service: project registry, text search and declarations.

Python files are parsed with libcst; other languages fall back to a regular
expression scan for common declaration keywords.
"""

from __future__ import annotations

import fnmatch
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import libcst as cst
from libcst import metadata

from ..errors import ServiceError
from .contracts import ProjectHandle, ProjectSymbols, SymbolInfo, TextMatch
from .local import DEFAULT_SKIP_DIRS, iter_project_files, read_text_file

LOGGER = logging.getLogger(__name__)

_FUNCTION_DECLARATIONS = (
    re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)"),
    re.compile(
        r"^\s*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
        r"(?:function\b|\([^)]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)"
    ),
    re.compile(r"^\s*(?:pub\s+)?fn\s+([A-Za-z_]\w*)"),
    re.compile(r"^\s*func\s+(?:\([^)]*\)\s*)?([A-Za-z_]\w*)"),
    re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)"),
)
_CLASS_DECLARATIONS = (
    re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"^\s*(?:pub\s+)?(?:struct|trait|interface)\s+([A-Za-z_]\w*)"),
)


@dataclass(frozen=True, slots=True)
class _Declaration:
    name: str
    kind: str
    line: int
    column: int


class _SymbolCollector(cst.CSTVisitor):
    """Collect class and function definitions with their start positions."""

    METADATA_DEPENDENCIES = (metadata.PositionProvider,)

    def __init__(self) -> None:
        self._class_stack: List[str] = []
        self.declarations: List[_Declaration] = []

    def visit_ClassDef(self, node: cst.ClassDef) -> None:
        self._record(node, node.name.value, "class")
        self._class_stack.append(node.name.value)

    def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
        if self._class_stack:
            self._class_stack.pop()

    def visit_FunctionDef(self, node: cst.FunctionDef) -> None:
        name = node.name.value
        if self._class_stack:
            name = ".".join([*self._class_stack, name])
        self._record(node, name, "function")

    def _record(self, node: cst.CSTNode, name: str, kind: str) -> None:
        position = self.get_metadata(metadata.PositionProvider, node).start
        self.declarations.append(
            _Declaration(name=name, kind=kind, line=position.line, column=position.column)
        )


def python_declarations(source: str) -> List[_Declaration]:
    """Return class/function declarations of a Python module (empty on syntax errors)."""
    try:
        module = cst.parse_module(source)
    except cst.ParserSyntaxError as error:
        LOGGER.debug("Cannot parse Python source: %s", error)
        return []
    collector = _SymbolCollector()
    metadata.MetadataWrapper(module).visit(collector)
    return collector.declarations


def _match_declaration(line: str) -> Optional[tuple[str, re.Match[str]]]:
    for kind, patterns in (("class", _CLASS_DECLARATIONS), ("function", _FUNCTION_DECLARATIONS)):
        for pattern in patterns:
            match = pattern.match(line)
            if match:
                return kind, match
    return None


def pattern_declarations(source: str) -> List[_Declaration]:
    """Scan non-Python source for declaration keywords."""
    declarations: List[_Declaration] = []
    for number, line in enumerate(source.splitlines(), start=1):
        found = _match_declaration(line)
        if found is None:
            continue
        kind, match = found
        declarations.append(
            _Declaration(name=match.group(1), kind=kind, line=number, column=match.start(1))
        )
    return declarations


class LocalSymbolService:
    """Register directories as projects and answer text/symbol queries."""

    def __init__(self, skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS) -> None:
        self.skip_dirs = tuple(skip_dirs)
        self._projects: Dict[str, ProjectHandle] = {}
        self._lock = threading.Lock()

    def register_project(self, path: str, name: str = "", description: str = "") -> ProjectHandle:
        root = Path(path)
        if not root.is_dir():
            raise ServiceError(f"Project directory not found: {path}")
        handle = ProjectHandle(name=name or root.name or "unknown-project", root_path=str(root))
        with self._lock:
            self._projects[handle.name] = handle
        LOGGER.debug("Registered project %s at %s", handle.name, root)
        return handle

    def find_text(
        self,
        project: str,
        pattern: str,
        file_pattern: Optional[str] = None,
        max_results: int = 100,
    ) -> List[TextMatch]:
        root = self._root(project)
        try:
            regex = re.compile(pattern)
        except re.error as error:
            raise ServiceError(f"Invalid search pattern {pattern!r}: {error}") from error

        results: List[TextMatch] = []
        for relative in iter_project_files(root, self.skip_dirs):
            key = relative.as_posix()
            if file_pattern and not (
                fnmatch.fnmatch(key, file_pattern) or fnmatch.fnmatch(relative.name, file_pattern)
            ):
                continue
            text = read_text_file(root / relative)
            if text is None:
                continue
            lines = text.splitlines()
            for number, line in enumerate(lines, start=1):
                match = regex.search(line)
                if match is None:
                    continue
                context = lines[max(0, number - 2) : number - 1] + lines[number : number + 1]
                results.append(
                    TextMatch(file=key, line=number, column=match.start(), text=line, context=context)
                )
                if len(results) >= max_results:
                    return results
        return results

    def get_symbols(self, project: str, file_path: str) -> ProjectSymbols:
        root = self._root(project)
        source = read_text_file(root / file_path)
        if source is None:
            raise ServiceError(f"Cannot read {file_path} in project {project}")
        if file_path.endswith((".py", ".pyi")):
            declarations = python_declarations(source)
        else:
            declarations = pattern_declarations(source)

        symbols = ProjectSymbols()
        for declaration in declarations:
            info = SymbolInfo(
                name=declaration.name,
                line=declaration.line,
                column=declaration.column,
                file=file_path,
            )
            if declaration.kind == "class":
                symbols.classes.append(info)
            else:
                symbols.functions.append(info)
        return symbols

    def _root(self, project: str) -> Path:
        with self._lock:
            handle = self._projects.get(project)
        if handle is None:
            raise ServiceError(f"Project not registered: {project}")
        return Path(handle.root_path)


__all__ = ["LocalSymbolService", "pattern_declarations", "python_declarations"]
