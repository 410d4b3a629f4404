"""Caller-facing TODO analysis operations.

``TodoPipeline`` wires the extractors, the consolidator, the relevance
validator and the cleanup planner around three injected capabilities
(codebase packer, snapshot search, symbol service).  Only the context text is
required; every capability failure degrades the result and is reported in
``CodebaseAnalysis.warnings`` instead of being raised.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, List, Optional, TypeVar

from .cleanup import CleanupPlanner
from .config import default_config, section
from .consolidate import consolidate, find_duplicate_groups, reprioritize, summarize
from .errors import MissingInputError
from .extract.codebase import CodebaseTodoExtractor, CodeContext, SemanticTodoExtractor
from .extract.markdown import DEFAULT_SKIP_DIRS, MarkdownTodoParser, parse_markdown_tree
from .extract.text import TextTodoExtractor
from .schema import (
    CleanupAnalysis,
    CodebaseAnalysis,
    TodoAnalysis,
    TodoLocation,
    TodoRecord,
    ValidationResult,
    ValidationStatus,
)
from .services.contracts import (
    CodebasePacker,
    PackOptions,
    PackResult,
    ProjectHandle,
    SnapshotSearch,
    SymbolService,
    coerce_pack_result,
    coerce_project_handle,
)
from .services.local import LocalCodebasePacker
from .services.symbols import LocalSymbolService
from .validate import RelevanceValidator

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SUPERSEDED_CATEGORY = "superseded"


@dataclass(slots=True)
class Settled(Generic[T]):
    """Outcome of a fallible call: either a value or the error it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def from_future(cls, future: "Future[T]") -> "Settled[T]":
        try:
            return cls(value=future.result())
        except Exception as error:
            return cls(error=error)


@dataclass(slots=True)
class _Run:
    """Everything one full analysis produced, before it is narrowed for callers."""

    analysis: CodebaseAnalysis
    extracted: List[TodoRecord] = field(default_factory=list)


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise MissingInputError(f"{name} is required")
    return str(value)


def project_name(project_path: str) -> str:
    return Path(project_path).name or "unknown-project"


class TodoPipeline:
    """Run context, full-codebase and cleanup analyses."""

    def __init__(
        self,
        packer: Optional[CodebasePacker] = None,
        search: Optional[SnapshotSearch] = None,
        symbols: Optional[SymbolService] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        planner: Optional[CleanupPlanner] = None,
    ) -> None:
        self.packer = packer
        self.search = search
        self.symbols = symbols
        self.config = dict(config) if config is not None else default_config()
        self.planner = planner or CleanupPlanner()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TodoPipeline":
        """Build a pipeline backed by the local packer and symbol service."""
        packer = LocalCodebasePacker()
        return cls(packer, packer, LocalSymbolService(), config=config)

    # -- operations ----------------------------------------------------

    def analyze_context(self, context: Optional[str]) -> TodoAnalysis:
        """Extract and summarise the TODOs mentioned in ``context``."""
        text = _require(context, "context")
        return TextTodoExtractor().analyze(text)

    def analyze_complete(self, context: Optional[str], project_path: Optional[str]) -> CodebaseAnalysis:
        """Combine context TODOs with those found in the project and validate them."""
        return self._run(context, project_path).analysis

    def analyze_cleanup(self, context: Optional[str], project_path: Optional[str]) -> CleanupAnalysis:
        """Run the full analysis and plan cleanup actions for its TODOs."""
        run = self._run(context, project_path)
        report = self.planner.plan(run.analysis.validations, find_duplicate_groups(run.extracted))
        return CleanupAnalysis(analysis=run.analysis, report=report)

    def code_context(self, project_path: Optional[str], file_path: str, line: int) -> CodeContext:
        """Describe the declarations enclosing ``file_path:line`` in a project."""
        root = _require(project_path, "project_path")
        if self.symbols is None:
            raise MissingInputError("A symbol service is required for context analysis")
        handle = coerce_project_handle(
            self.symbols.register_project(root, project_name(root), f"Project at {root}")
        )
        text = f"Line {line} of {file_path}"
        candidate = Path(root) / file_path
        if candidate.is_file():
            lines = candidate.read_text(encoding="utf-8", errors="replace").splitlines()
            if 0 < line <= len(lines) and len(lines[line - 1].strip()) > 3:
                text = lines[line - 1].strip()
        record = TodoRecord(
            id="context-lookup",
            content=text,
            source="codebase",
            location=TodoLocation(file=file_path, line=line),
        )
        return SemanticTodoExtractor().describe_context(self.symbols, handle.name, record)

    # -- internals -----------------------------------------------------

    def _run(self, context: Optional[str], project_path: Optional[str]) -> _Run:
        text = _require(context, "context")
        root = _require(project_path, "project_path")
        context_todos = TextTodoExtractor().extract(text)
        warnings: List[str] = []
        try:
            return self._analyze(context_todos, root, warnings)
        except Exception as error:
            LOGGER.warning("Codebase analysis failed, falling back to context only: %s", error)
            warnings.append(f"Codebase analysis failed: {error}")
            return _Run(analysis=self._context_only(context_todos, warnings), extracted=list(context_todos))

    def _analyze(self, context_todos: List[TodoRecord], root: str, warnings: List[str]) -> _Run:
        packed, registered = self._pack_and_register(root)
        output_id: Optional[str] = None
        if packed.ok and packed.value is not None:
            output_id = packed.value.output_id
        elif packed.error is not None:
            self._warn(warnings, f"Failed to pack project: {packed.error}")
        try:
            return self._analyze_project(context_todos, root, warnings, output_id, registered)
        finally:
            if output_id is not None:
                self._release(output_id)

    def _analyze_project(
        self,
        context_todos: List[TodoRecord],
        root: str,
        warnings: List[str],
        output_id: Optional[str],
        registered: Settled[ProjectHandle],
    ) -> _Run:
        search_cfg = section(self.config, "search")

        codebase_todos: List[TodoRecord] = []
        if output_id is not None:
            if self.search is None:
                self._warn(warnings, "No snapshot search configured; skipping codebase TODOs")
            else:
                try:
                    extractor = CodebaseTodoExtractor(context_lines=int(search_cfg.get("context_lines", 2)))
                    codebase_todos = extractor.from_snapshot(self.search, output_id)
                except Exception as error:
                    self._warn(warnings, f"Failed to find codebase TODOs: {error}")

        markdown_todos = self._markdown_todos(root, warnings)

        semantic_todos: List[TodoRecord] = []
        if registered.ok and registered.value is not None and self.symbols is not None:
            try:
                semantic = SemanticTodoExtractor(
                    max_results=int(search_cfg.get("semantic_max_results", 100)),
                    structural_max_results=int(search_cfg.get("structural_max_results", 50)),
                )
                semantic_todos = semantic.find(self.symbols, registered.value.name)
            except Exception as error:
                self._warn(warnings, f"Failed to find semantic TODOs: {error}")
        elif registered.error is not None:
            self._warn(warnings, f"Failed to register project: {registered.error}")

        extracted = [*context_todos, *codebase_todos, *markdown_todos, *semantic_todos]
        context_only = len(extracted) == len(context_todos)
        if output_id is None and context_only:
            return _Run(analysis=self._context_only(context_todos, warnings), extracted=extracted)

        records = reprioritize(consolidate(extracted))
        validator = RelevanceValidator.from_config(self.config, self.search, output_id)
        validations = validator.validate_all(records)
        if context_only and all(result.status is ValidationStatus.UNKNOWN for result in validations):
            # The project added nothing: report the context TODOs as given.
            return _Run(analysis=self._context_only(context_todos, warnings), extracted=extracted)

        superseded: List[TodoRecord] = []
        validated: List[TodoRecord] = []
        for result in validations:
            if result.status is ValidationStatus.SUPERSEDED:
                superseded.append(result.todo.model_copy(update={"category": SUPERSEDED_CATEGORY}))
            else:
                validated.append(result.todo)

        LOGGER.debug(
            "Analysed %d TODO(s): %d validated, %d superseded",
            len(extracted),
            len(validated),
            len(superseded),
        )
        analysis = CodebaseAnalysis(
            context_todos=context_todos,
            codebase_todos=codebase_todos,
            validated_todos=validated,
            superseded_todos=superseded,
            summary=summarize([*validated, *superseded]),
            validations=validations,
            warnings=warnings,
        )
        return _Run(analysis=analysis, extracted=extracted)

    def _pack_and_register(self, root: str) -> tuple[Settled[PackResult], Settled[ProjectHandle]]:
        """Pack and register concurrently; neither failure cancels the other."""
        with ThreadPoolExecutor(max_workers=2) as executor:
            pack_future = executor.submit(self._call_pack, root)
            register_future = executor.submit(self._call_register, root)
            return Settled.from_future(pack_future), Settled.from_future(register_future)

    def _call_pack(self, root: str) -> Optional[PackResult]:
        if self.packer is None:
            return None
        options = PackOptions.model_validate(dict(section(self.config, "packer")))
        return coerce_pack_result(self.packer.pack(root, options))

    def _call_register(self, root: str) -> Optional[ProjectHandle]:
        if self.symbols is None:
            return None
        name = project_name(root)
        return coerce_project_handle(self.symbols.register_project(root, name, f"Project at {root}"))

    def _release(self, output_id: str) -> None:
        """Drop a packed snapshot once the analysis no longer needs it."""
        release = getattr(self.packer, "release", None)
        if not callable(release):
            return
        try:
            release(output_id)
        except Exception as error:
            LOGGER.warning("Failed to release snapshot %s: %s", output_id, error)

    def _markdown_todos(self, root: str, warnings: List[str]) -> List[TodoRecord]:
        markdown_cfg = section(self.config, "markdown")
        if not markdown_cfg.get("enabled", True):
            return []
        path = Path(root)
        if not path.is_dir():
            return []
        skip_dirs = markdown_cfg.get("skip_dirs") or DEFAULT_SKIP_DIRS
        try:
            return parse_markdown_tree(path, MarkdownTodoParser(), skip_dirs)
        except Exception as error:
            self._warn(warnings, f"Failed to find markdown TODOs: {error}")
            return []

    @staticmethod
    def _context_only(context_todos: List[TodoRecord], warnings: List[str]) -> CodebaseAnalysis:
        validations: List[ValidationResult] = RelevanceValidator.disabled().validate_all(context_todos)
        return CodebaseAnalysis(
            context_todos=context_todos,
            codebase_todos=[],
            validated_todos=list(context_todos),
            superseded_todos=[],
            summary=summarize(context_todos),
            validations=validations,
            warnings=warnings,
        )

    @staticmethod
    def _warn(warnings: List[str], message: str) -> None:
        LOGGER.warning("%s", message)
        warnings.append(message)


__all__ = ["Settled", "TodoPipeline", "project_name"]
