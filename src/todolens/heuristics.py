"""Keyword-table heuristics for TODO priority and category.

Every extractor and the consolidator's re-prioritisation step go through the
functions in this module so the tables only live in one place.

Two layers exist:

``determine_priority`` / ``determine_category``
    Base assignment from plain keyword tables.  Tables are checked in order
    and the first hit wins.

``apply_priority_override``
    A stronger second pass.  Security and critical-business vocabulary force
    ``high``; bug fixes that came from the codebase force ``high``; nice-to-have
    vocabulary forces ``low``.  Anything else keeps its priority.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Dict, Tuple

from .schema import Priority, TodoRecord

PRIORITY_KEYWORDS: Dict[Priority, Tuple[str, ...]] = {
    Priority.HIGH: (
        "urgent",
        "critical",
        "important",
        "asap",
        "immediately",
        "must",
        "required",
        "blocking",
    ),
    Priority.MEDIUM: ("should", "need", "improvement", "enhance", "optimize", "refactor"),
    Priority.LOW: ("nice", "maybe", "consider", "could", "might", "optional", "future"),
}

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("testing", ("test", "spec")),
    ("bug-fix", ("bug", "fix")),
    ("feature", ("implement", "add", "create", "build")),
    ("refactoring", ("refactor", "optimize")),
    ("documentation", ("doc", "comment")),
)

SECURITY_KEYWORDS: Tuple[str, ...] = (
    "security",
    "auth",
    "password",
    "token",
    "encrypt",
    "decrypt",
    "vulnerability",
    "xss",
    "sql injection",
    "csrf",
    "sanitize",
)

CRITICAL_BUSINESS_KEYWORDS: Tuple[str, ...] = (
    "payment",
    "billing",
    "transaction",
    "order",
    "checkout",
    "data loss",
    "corruption",
    "backup",
    "recovery",
)

NICE_TO_HAVE_KEYWORDS: Tuple[str, ...] = (
    "nice to have",
    "optional",
    "maybe",
    "consider",
    "could",
    "ui improvement",
    "polish",
    "cosmetic",
)

# Planning documents: words that override a markdown section's baseline.
DOCUMENT_HIGH_KEYWORDS: Tuple[str, ...] = (
    "urgent",
    "critical",
    "blocking",
    "asap",
    "immediately",
    "production",
    "security",
)

DOCUMENT_LOW_KEYWORDS: Tuple[str, ...] = (
    "nice to have",
    "optional",
    "future",
    "consider",
    "maybe",
    "eventually",
)

PRIORITY_RANK: Dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

DEFAULT_CATEGORY = "general"


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def determine_priority(content: str) -> Priority:
    """Return the base priority for ``content`` (default ``medium``)."""
    lowered = content.lower()
    for priority in (Priority.HIGH, Priority.MEDIUM, Priority.LOW):
        if _contains_any(lowered, PRIORITY_KEYWORDS[priority]):
            return priority
    return Priority.MEDIUM


def determine_category(content: str) -> str:
    """Return the topical category for ``content`` (default ``general``)."""
    lowered = content.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if _contains_any(lowered, keywords):
            return category
    return DEFAULT_CATEGORY


def is_security_related(content: str) -> bool:
    return _contains_any(content.lower(), SECURITY_KEYWORDS)


def is_critical_business_logic(content: str) -> bool:
    return _contains_any(content.lower(), CRITICAL_BUSINESS_KEYWORDS)


def is_nice_to_have(content: str) -> bool:
    return _contains_any(content.lower(), NICE_TO_HAVE_KEYWORDS)


def document_priority(content: str, base: Priority) -> Priority:
    """Let strong keywords in a planning document override the section baseline."""
    lowered = content.lower()
    if _contains_any(lowered, DOCUMENT_HIGH_KEYWORDS):
        return Priority.HIGH
    if _contains_any(lowered, DOCUMENT_LOW_KEYWORDS):
        return Priority.LOW
    return base


def override_priority(content: str, category: str, source: str, priority: Priority) -> Priority:
    """Apply the override table to a priority computed elsewhere.

    Order: security/critical > bug-fix-in-codebase > nice-to-have > original.
    """
    if is_security_related(content) or is_critical_business_logic(content):
        return Priority.HIGH
    if category == "bug-fix" and "codebase" in source.split("+"):
        return Priority.HIGH
    if is_nice_to_have(content):
        return Priority.LOW
    return priority


def apply_priority_override(record: TodoRecord) -> Priority:
    """Return the overridden priority for ``record`` without mutating it."""
    return override_priority(record.content, record.category, record.source, record.priority)


def score(content: str, source: str) -> Tuple[Priority, str]:
    """Return ``(priority, category)`` for freshly extracted text."""
    category = determine_category(content)
    priority = override_priority(content, category, source, determine_priority(content))
    return priority, category


def highest_priority(priorities: Iterable[Priority]) -> Priority:
    """Return the most urgent priority in ``priorities`` (``low`` when empty)."""
    best = Priority.LOW
    for priority in priorities:
        if PRIORITY_RANK[priority] > PRIORITY_RANK[best]:
            best = priority
    return best


__all__ = [
    "CATEGORY_KEYWORDS",
    "CRITICAL_BUSINESS_KEYWORDS",
    "DOCUMENT_HIGH_KEYWORDS",
    "DOCUMENT_LOW_KEYWORDS",
    "NICE_TO_HAVE_KEYWORDS",
    "PRIORITY_KEYWORDS",
    "PRIORITY_RANK",
    "SECURITY_KEYWORDS",
    "apply_priority_override",
    "determine_category",
    "determine_priority",
    "document_priority",
    "highest_priority",
    "is_critical_business_logic",
    "is_nice_to_have",
    "is_security_related",
    "override_priority",
    "score",
]
