"""Group, merge and re-score TODO records gathered from several sources."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Dict, List

from .heuristics import apply_priority_override, highest_priority
from .schema import DuplicateGroup, TodoRecord, TodoSummary

LOGGER = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Verbs and abbreviations that name the same piece of work.
CANONICAL_WORDS: Dict[str, str] = {
    "add": "implement",
    "create": "implement",
    "build": "implement",
    "auth": "authentication",
    "authn": "authentication",
    "config": "configuration",
    "db": "database",
}

FILLER_WORDS = frozenset({"a", "an", "the", "feature", "functionality"})

KEEP_CONTEXT_ACTION = "Keep context version, remove file duplicates"
MERGE_ACTION = "Consolidate into single location with highest priority"


def normalize_key(content: str) -> str:
    """Return the order-insensitive bag-of-words key for ``content``.

    The key ignores case, punctuation, word order, filler words and the
    synonyms listed in :data:`CANONICAL_WORDS`.  Negation is not modelled, so
    "remove user" and "user remove" share a key.
    """
    lowered = _PUNCTUATION.sub(" ", content.lower())
    words = _WHITESPACE.sub(" ", lowered).strip().split(" ")
    canonical = [CANONICAL_WORDS.get(word, word) for word in words if word]
    return " ".join(sorted(word for word in canonical if word not in FILLER_WORDS))


def group_by_key(records: Iterable[TodoRecord]) -> Dict[str, List[TodoRecord]]:
    """Bucket records by normalized key, preserving first-seen order."""
    groups: Dict[str, List[TodoRecord]] = {}
    for record in records:
        groups.setdefault(normalize_key(record.content), []).append(record)
    return groups


def merge_sources(records: Iterable[TodoRecord]) -> str:
    """Join the distinct provenance tags of ``records`` in first-seen order."""
    seen: List[str] = []
    for record in records:
        for source in record.sources:
            if source not in seen:
                seen.append(source)
    return "+".join(seen)


def merge_group(members: Sequence[TodoRecord]) -> TodoRecord:
    """Collapse ``members`` into one record keyed on the first member."""
    template = members[0]
    metadata = dict(template.metadata)
    metadata["merged_ids"] = [member.id for member in members]
    return template.model_copy(
        update={
            "id": f"consolidated-{template.id}",
            "priority": highest_priority(member.priority for member in members),
            "source": merge_sources(members),
            "metadata": metadata,
        },
        deep=True,
    )


def consolidate(records: Iterable[TodoRecord]) -> List[TodoRecord]:
    """Merge records sharing a normalized key; singletons pass through."""
    consolidated: List[TodoRecord] = []
    merged = 0
    for members in group_by_key(records).values():
        if len(members) == 1:
            consolidated.append(members[0])
            continue
        consolidated.append(merge_group(members))
        merged += len(members)
    LOGGER.debug("Consolidated %d record(s) into %d", merged, len(consolidated))
    return consolidated


def reprioritize(records: Iterable[TodoRecord]) -> List[TodoRecord]:
    """Re-apply the priority override to every record without lowering any.

    Completed checklist items keep their priority.
    """
    result: List[TodoRecord] = []
    for record in records:
        if record.is_completed:
            result.append(record)
            continue
        priority = highest_priority([record.priority, apply_priority_override(record)])
        if priority == record.priority:
            result.append(record)
        else:
            result.append(record.model_copy(update={"priority": priority}))
    return result


def summarize(records: Iterable[TodoRecord]) -> TodoSummary:
    return TodoSummary.from_records(records)


def _word_set(content: str) -> set[str]:
    return set(_PUNCTUATION.sub(" ", content.lower()).split())


def jaccard(left: str, right: str) -> float:
    """Word-overlap similarity of two TODO descriptions."""
    left_words = _word_set(left)
    right_words = _word_set(right)
    union = left_words | right_words
    if not union:
        return 0.0
    return len(left_words & right_words) / len(union)


def find_duplicate_groups(records: Iterable[TodoRecord]) -> List[DuplicateGroup]:
    """Return every group of two or more records that share a key."""
    groups: List[DuplicateGroup] = []
    for key, members in group_by_key(records).items():
        if len(members) < 2:
            continue
        if any("context" in member.sources for member in members):
            action = KEEP_CONTEXT_ACTION
        else:
            action = MERGE_ACTION
        groups.append(
            DuplicateGroup(
                normalized_key=key,
                members=list(members),
                similarity=jaccard(members[0].content, members[1].content),
                recommended_action=action,
            )
        )
    return groups


__all__ = [
    "CANONICAL_WORDS",
    "FILLER_WORDS",
    "consolidate",
    "find_duplicate_groups",
    "group_by_key",
    "jaccard",
    "merge_group",
    "merge_sources",
    "normalize_key",
    "reprioritize",
    "summarize",
]
