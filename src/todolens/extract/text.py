"""Extract TODO records from conversational text and comment-bearing source."""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import List, Optional, Pattern

from pydantic import ValidationError

from ..heuristics import score
from ..schema import MIN_CONTENT_LENGTH, TodoAnalysis, TodoLocation, TodoRecord, TodoSummary

LOGGER = logging.getLogger(__name__)

# Start of a sentence: line start (after an optional list bullet) or after
# terminal punctuation.
_SENTENCE_START = r"(?:^\s*(?:[-*+]\s+|\d+[.)]\s+)?|[.!?;]\s+)"

MARKER_PATTERN: Pattern[str] = re.compile(
    r"(?:^|(?<=[\s#/*;(-]))(?:TODO|FIXME|HACK|XXX|BUG|NOTE)\b\s*[:\-]?\s*(.*)",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class PatternFamily:
    """A named regular expression whose first group is the TODO text."""

    name: str
    pattern: Pattern[str]


PATTERN_FAMILIES: tuple[PatternFamily, ...] = (
    PatternFamily("marker", MARKER_PATTERN),
    PatternFamily(
        "action-phrase",
        re.compile(
            _SENTENCE_START
            + r"(?:(?:we|i|you|they|someone)\s+)?(?:need to|should|must|have to|going to)\s+(.+)",
            re.IGNORECASE,
        ),
    ),
    PatternFamily(
        "imperative",
        re.compile(
            _SENTENCE_START + r"((?:implement|add|create|build|fix|update|refactor)\b\s+.+)",
            re.IGNORECASE,
        ),
    ),
    PatternFamily(
        "sequence",
        re.compile(_SENTENCE_START + r"(?:next|then|after|later)\b[\s:,\-]*(.*)", re.IGNORECASE),
    ),
    PatternFamily(
        "issue-label",
        re.compile(
            r"^\s*((?:[A-Za-z][\w-]*\s+){0,3}(?:issue|problem|concern|risk)\s*:\s*\S.*)",
            re.IGNORECASE,
        ),
    ),
)


def clean_capture(value: Optional[str]) -> str:
    if not value:
        return ""
    text = value.strip()
    # Trailing block-comment terminators are never part of the task.
    for suffix in ("*/", "-->"):
        if text.endswith(suffix):
            text = text[: -len(suffix)].rstrip()
    return text


def iter_captures(line: str, families: Iterable[PatternFamily] = PATTERN_FAMILIES) -> Iterator[tuple[str, str]]:
    """Yield ``(family, text)`` for every pattern family that matches ``line``."""
    for family in families:
        for match in family.pattern.finditer(line):
            text = clean_capture(match.group(1))
            if len(text) >= MIN_CONTENT_LENGTH:
                yield family.name, text


class TextTodoExtractor:
    """Line-oriented TODO extractor for plain and source-comment text."""

    def __init__(self, *, id_prefix: str = "context", source: str = "context") -> None:
        self._id_prefix = id_prefix
        self._source = source
        self._counter = itertools.count(1)

    def extract(
        self,
        text: str,
        *,
        source: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> List[TodoRecord]:
        """Return de-duplicated TODO records found in ``text``.

        Unparsable lines are skipped; this method never raises for bad input.
        """
        provenance = source or self._source
        records: List[TodoRecord] = []
        seen: set[str] = set()
        for line_number, line in enumerate((text or "").splitlines(), start=1):
            for family, content in iter_captures(line):
                key = content.lower()
                if key in seen:
                    continue
                record = self._build_record(content, provenance, family, file_path, line_number)
                if record is None:
                    continue
                seen.add(key)
                records.append(record)
        return records

    def analyze(self, text: str) -> TodoAnalysis:
        """Extract context TODOs and attach their priority summary."""
        todos = self.extract(text)
        return TodoAnalysis(todos=todos, summary=TodoSummary.from_records(todos))

    def _build_record(
        self,
        content: str,
        source: str,
        family: str,
        file_path: Optional[str],
        line_number: int,
    ) -> Optional[TodoRecord]:
        priority, category = score(content, source)
        location = TodoLocation(file=file_path, line=line_number) if file_path else None
        try:
            return TodoRecord(
                id=f"{self._id_prefix}-{next(self._counter)}",
                content=content,
                priority=priority,
                category=category,
                source=source,
                location=location,
                metadata={"pattern": family},
            )
        except ValidationError:
            LOGGER.debug("Skipping unusable TODO capture %r", content)
            return None


__all__ = [
    "MARKER_PATTERN",
    "PATTERN_FAMILIES",
    "PatternFamily",
    "TextTodoExtractor",
    "clean_capture",
    "iter_captures",
]
