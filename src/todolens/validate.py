"""Classify TODO records against evidence gathered from a packed codebase.

Each record is checked independently:

1. file paths it names must exist in the snapshot,
2. identifiers it names must still be declared or called somewhere,
3. its significant words are searched for an implementation that already
   does the work (supersession).

The gathered :class:`~todolens.schema.Evidence` is folded into exactly one
:class:`~todolens.schema.ValidationResult`.  Search failures never propagate;
a failed query contributes no evidence.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .schema import (
    Evidence,
    EvidenceKind,
    TodoLocation,
    TodoRecord,
    ValidationResult,
    ValidationStatus,
)
from .services.contracts import GrepMatch, SnapshotSearch, coerce_grep_matches

LOGGER = logging.getLogger(__name__)

FILE_EXTENSIONS = (
    "ts",
    "tsx",
    "js",
    "jsx",
    "py",
    "md",
    "json",
    "yaml",
    "yml",
    "toml",
    "go",
    "rs",
    "java",
    "rb",
    "css",
    "html",
)

_FILE_REFERENCE = re.compile(r"(?<![\w/.-])([\w./-]*[\w-]\.(?:" + "|".join(FILE_EXTENSIONS) + r"))\b")
_FUNCTION_CALL = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\(")
_CAMEL_CASE = re.compile(r"\b[a-z][a-z0-9]*[A-Z][A-Za-z0-9]*\b")
_SNAKE_CASE = re.compile(r"\b[a-z][a-z0-9]*_[a-z0-9_]+\b")
_KEYWORD_STRIP = re.compile(r"[^\w]")
_TODO_LINE = re.compile(r"\b(?:TODO|FIXME|HACK|XXX)\b")

KEYWORD_STOPWORDS = frozenset({"should", "could", "would", "might", "maybe", "need", "want"})
COMPLETION_WORDS = ("implemented", "done", "completed", "finished", "resolved")
IMPLEMENTATION_CONTEXT_WORDS = ("function", "class", "const", "let", "var", "export", "def")
MAX_KEYWORDS = 3

# Ordered so the longest matching suffix is tried first.
_STEM_SUFFIXES = ("ization", "ation", "ality", "ments", "ment", "ions", "ion", "ing", "ed", "es", "s")
_MIN_STEM = 4

FILE_MISSING_CONFIDENCE = 0.9
FILE_EXISTS_CONFIDENCE = 0.7
CALL_BROKEN_CONFIDENCE = 0.8
BARE_BROKEN_CONFIDENCE = 0.6
COMPLETION_CONFIDENCE = 0.8
CHECKED_OFF_CONFIDENCE = 0.9
IMPLEMENTATION_CONFIDENCE = 0.5
SUPERSEDED_CONFIDENCE = 0.9
SEMANTIC_MATCH_CONFIDENCE = 0.3
UNKNOWN_CONFIDENCE = 0.2

FILE_CONTEXT_LINES = 1
IDENTIFIER_CONTEXT_LINES = 3
SUPERSESSION_CONTEXT_LINES = 5


@dataclass(slots=True)
class Identifier:
    name: str
    call: bool

    @property
    def broken_confidence(self) -> float:
        return CALL_BROKEN_CONFIDENCE if self.call else BARE_BROKEN_CONFIDENCE


@dataclass(slots=True)
class References:
    """Code references mentioned by a TODO."""

    files: List[str] = field(default_factory=list)
    identifiers: List[Identifier] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.files or self.identifiers or self.keywords)


def _unique(values: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def stem(word: str) -> str:
    """Strip one common English suffix while keeping at least four letters."""
    for suffix in _STEM_SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= _MIN_STEM:
            return word[: -len(suffix)]
    return word


def extract_keywords(content: str) -> List[str]:
    """Return up to three significant lowercased words from ``content``."""
    keywords: List[str] = []
    for raw in content.lower().split():
        word = _KEYWORD_STRIP.sub("", raw)
        if len(word) <= 4 or word in KEYWORD_STOPWORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) == MAX_KEYWORDS:
            break
    return keywords


def extract_references(content: str) -> References:
    """Pull file paths, identifiers and implementation keywords out of ``content``."""
    files = _unique(_FILE_REFERENCE.findall(content))
    file_stems = {part for path in files for part in re.split(r"[/.]", path)}

    identifiers: List[Identifier] = []
    names: List[str] = []
    for name in _FUNCTION_CALL.findall(content):
        if name not in names:
            names.append(name)
            identifiers.append(Identifier(name=name, call=True))
    for name in _CAMEL_CASE.findall(content) + _SNAKE_CASE.findall(content):
        if name not in names and name not in file_stems:
            names.append(name)
            identifiers.append(Identifier(name=name, call=False))

    return References(files=files, identifiers=identifiers, keywords=extract_keywords(content))


def file_pattern(path: str) -> str:
    return f'path="{re.escape(path)}"|{re.escape(path)}'


def identifier_pattern(name: str) -> str:
    escaped = re.escape(name)
    return rf"function {escaped}|def {escaped}|class {escaped}|const {escaped}|{escaped}\("


def _has_word(text: str, words: Sequence[str]) -> Optional[str]:
    for word in words:
        if re.search(rf"\b{re.escape(word)}\b", text):
            return word
    return None


class RelevanceValidator:
    """Gather evidence for TODO records from a snapshot search capability."""

    def __init__(
        self,
        search: Optional[SnapshotSearch],
        output_id: Optional[str],
        *,
        max_workers: int = 8,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._search = search
        self._output_id = output_id
        self.max_workers = max(1, int(max_workers))
        self.timeout_seconds = timeout_seconds

    @classmethod
    def disabled(cls) -> "RelevanceValidator":
        """Return a validator that classifies every record as ``unknown``."""
        return cls(None, None)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, object],
        search: Optional[SnapshotSearch],
        output_id: Optional[str],
    ) -> "RelevanceValidator":
        section = config.get("validation")
        max_workers = 8
        timeout_seconds: Optional[float] = None
        if isinstance(section, Mapping):
            candidate = section.get("max_workers")
            if isinstance(candidate, int) and candidate > 0:
                max_workers = candidate
            timeout = section.get("timeout_seconds")
            if isinstance(timeout, (int, float)) and timeout > 0:
                timeout_seconds = float(timeout)
        return cls(search, output_id, max_workers=max_workers, timeout_seconds=timeout_seconds)

    @property
    def enabled(self) -> bool:
        return self._search is not None and bool(self._output_id)

    def validate_all(self, records: Sequence[TodoRecord]) -> List[ValidationResult]:
        """Validate ``records`` concurrently, returning results in input order.

        Records still running when ``timeout_seconds`` elapses are reported as
        ``unknown``.
        """
        if not records:
            return []
        if not self.enabled:
            return [self._unknown(record, "No codebase snapshot available") for record in records]

        results: Dict[int, ValidationResult] = {}
        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(records)))
        futures: Dict[Future[ValidationResult], int] = {
            executor.submit(self.validate, record): index for index, record in enumerate(records)
        }
        try:
            for future in as_completed(futures, timeout=self.timeout_seconds):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as error:
                    LOGGER.warning("Validation failed for %s: %s", records[index].id, error)
                    results[index] = self._unknown(records[index], f"Validation failed: {error}")
        except FuturesTimeoutError:
            LOGGER.warning(
                "Validation timed out after %ss; %d record(s) left unclassified",
                self.timeout_seconds,
                len(records) - len(results),
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return [
            results.get(index) or self._unknown(record, "Validation timed out")
            for index, record in enumerate(records)
        ]

    def validate(self, record: TodoRecord) -> ValidationResult:
        """Return the single relevance verdict for ``record``."""
        if not self.enabled:
            return self._unknown(record, "No codebase snapshot available")

        if record.is_completed:
            return ValidationResult(
                todo=record,
                status=ValidationStatus.COMPLETED,
                confidence=CHECKED_OFF_CONFIDENCE,
                evidence=[
                    Evidence(
                        kind=EvidenceKind.IMPLEMENTATION_FOUND,
                        description="Checklist item is already checked off",
                        location=record.location,
                        confidence=CHECKED_OFF_CONFIDENCE,
                    )
                ],
                reason="Marked complete in its source document",
            )

        references = extract_references(record.content)
        if not references:
            return self._unknown(record, "No code references to check")

        evidence: List[Evidence] = []
        evidence.extend(self._check_files(record, references.files))
        evidence.extend(self._check_identifiers(record, references.identifiers))
        superseded = self._check_supersession(record, references.keywords, evidence)
        if superseded is None and not (references.files or references.identifiers):
            # Keyword mentions alone never prove a TODO is still open.
            return self._unknown(record, "Only keyword mentions found in the codebase", evidence)
        return self._classify(record, evidence, superseded)

    # -- checks --------------------------------------------------------

    def _check_files(self, record: TodoRecord, files: Sequence[str]) -> List[Evidence]:
        evidence: List[Evidence] = []
        for path in files:
            hits = self._grep(record, file_pattern(path), FILE_CONTEXT_LINES)
            if hits is None:
                continue
            if hits:
                evidence.append(
                    Evidence(
                        kind=EvidenceKind.FILE_EXISTS,
                        description=f"Referenced file exists: {path}",
                        location=_location(hits[0]),
                        confidence=FILE_EXISTS_CONFIDENCE,
                    )
                )
            else:
                evidence.append(
                    Evidence(
                        kind=EvidenceKind.FILE_MISSING,
                        description=f"Referenced file not found: {path}",
                        confidence=FILE_MISSING_CONFIDENCE,
                    )
                )
        return evidence

    def _check_identifiers(self, record: TodoRecord, identifiers: Sequence[Identifier]) -> List[Evidence]:
        evidence: List[Evidence] = []
        for identifier in identifiers:
            hits = self._grep(record, identifier_pattern(identifier.name), IDENTIFIER_CONTEXT_LINES)
            if hits is None:
                continue
            if not hits:
                evidence.append(
                    Evidence(
                        kind=EvidenceKind.REFERENCE_BROKEN,
                        description=f"Referenced code not found: {identifier.name}",
                        confidence=identifier.broken_confidence,
                    )
                )
                continue
            completed_by = None
            for hit in hits:
                completed_by = _has_word(hit.surrounding_text().lower(), COMPLETION_WORDS)
                if completed_by:
                    evidence.append(
                        Evidence(
                            kind=EvidenceKind.IMPLEMENTATION_FOUND,
                            description=f"Found completion indicator '{completed_by}' near {identifier.name}",
                            location=_location(hit),
                            confidence=COMPLETION_CONFIDENCE,
                        )
                    )
                    break
            if not completed_by:
                evidence.append(
                    Evidence(
                        kind=EvidenceKind.IMPLEMENTATION_FOUND,
                        description=f"Referenced code exists: {identifier.name}",
                        location=_location(hits[0]),
                        confidence=IMPLEMENTATION_CONFIDENCE,
                    )
                )
        return evidence

    def _check_supersession(
        self, record: TodoRecord, keywords: Sequence[str], evidence: List[Evidence]
    ) -> Optional[Evidence]:
        for keyword in keywords:
            root = stem(keyword)
            if root in IMPLEMENTATION_CONTEXT_WORDS:
                continue
            hits = self._grep(record, re.escape(root), SUPERSESSION_CONTEXT_LINES)
            hits = [hit for hit in hits or [] if not hit.is_path_header()]
            if not hits:
                continue
            for hit in hits:
                text = hit.surrounding_text().lower()
                if root not in text:
                    continue
                context_word = _has_word(text, IMPLEMENTATION_CONTEXT_WORDS)
                if context_word:
                    return Evidence(
                        kind=EvidenceKind.IMPLEMENTATION_FOUND,
                        description=f"Implementation found: {context_word} {keyword}",
                        location=_location(hit),
                        confidence=SUPERSEDED_CONFIDENCE,
                    )
            evidence.append(
                Evidence(
                    kind=EvidenceKind.SEMANTIC_MATCH,
                    description=f"'{keyword}' mentioned without an implementation",
                    location=_location(hits[0]),
                    confidence=SEMANTIC_MATCH_CONFIDENCE,
                )
            )
        return None

    def _grep(self, record: TodoRecord, pattern: str, context_lines: int) -> Optional[List[GrepMatch]]:
        """Run one search; ``None`` means the query failed and yields no evidence."""
        if self._search is None or not self._output_id:
            return None
        try:
            raw = self._search.grep(self._output_id, pattern, context_lines)
            hits = coerce_grep_matches(raw)
        except Exception as error:
            LOGGER.warning("Search for %r failed: %s", pattern, error)
            return None
        return [hit for hit in hits if not _is_self_reference(record, hit)]

    # -- classification ------------------------------------------------

    def _classify(
        self, record: TodoRecord, evidence: List[Evidence], superseded: Optional[Evidence]
    ) -> ValidationResult:
        if superseded is not None:
            return ValidationResult(
                todo=record,
                status=ValidationStatus.SUPERSEDED,
                confidence=superseded.confidence,
                evidence=[*evidence, superseded],
                reason=superseded.description,
            )

        completed = _strongest(evidence, EvidenceKind.IMPLEMENTATION_FOUND, minimum=COMPLETION_CONFIDENCE)
        if completed is not None:
            return self._result(record, ValidationStatus.COMPLETED, completed, evidence)

        missing = _strongest(evidence, EvidenceKind.FILE_MISSING)
        if missing is not None:
            return self._result(record, ValidationStatus.BROKEN_REFERENCE, missing, evidence)

        broken = _strongest(evidence, EvidenceKind.REFERENCE_BROKEN)
        if broken is not None:
            return self._result(record, ValidationStatus.STALE, broken, evidence)

        if evidence:
            best = max(evidence, key=lambda item: item.confidence)
            return self._result(record, ValidationStatus.ACTIVE, best, evidence)

        return self._unknown(record, "No evidence found in the codebase")

    @staticmethod
    def _result(
        record: TodoRecord,
        status: ValidationStatus,
        deciding: Evidence,
        evidence: List[Evidence],
    ) -> ValidationResult:
        return ValidationResult(
            todo=record,
            status=status,
            confidence=deciding.confidence,
            evidence=list(evidence),
            reason=deciding.description,
        )

    @staticmethod
    def _unknown(record: TodoRecord, reason: str, evidence: Sequence[Evidence] = ()) -> ValidationResult:
        return ValidationResult(
            todo=record,
            status=ValidationStatus.UNKNOWN,
            confidence=UNKNOWN_CONFIDENCE,
            evidence=list(evidence),
            reason=reason,
        )


def _strongest(
    evidence: Sequence[Evidence], kind: EvidenceKind, minimum: float = 0.0
) -> Optional[Evidence]:
    candidates = [item for item in evidence if item.kind is kind and item.confidence >= minimum]
    if not candidates:
        return None
    return max(candidates, key=lambda item: item.confidence)


def _location(hit: GrepMatch) -> TodoLocation:
    return TodoLocation(file=hit.file, line=hit.line)


def _is_self_reference(record: TodoRecord, hit: GrepMatch) -> bool:
    """True for hits on the TODO's own line or on any other TODO marker line."""
    location = record.location
    if location is not None and location.line == hit.line and location.file == hit.file:
        return True
    return bool(_TODO_LINE.search(hit.content))


__all__ = [
    "COMPLETION_WORDS",
    "IMPLEMENTATION_CONTEXT_WORDS",
    "Identifier",
    "References",
    "RelevanceValidator",
    "extract_keywords",
    "extract_references",
    "file_pattern",
    "identifier_pattern",
    "stem",
]
