"""Typed records produced and consumed by the todolens pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_CONTENT_LENGTH = 4


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class Priority(str, Enum):
    """Urgency tier assigned to a TODO."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ValidationStatus(str, Enum):
    """Relevance classification of a TODO against the live codebase."""

    ACTIVE = "active"
    COMPLETED = "completed"
    SUPERSEDED = "superseded"
    STALE = "stale"
    BROKEN_REFERENCE = "broken-reference"
    UNKNOWN = "unknown"


class EvidenceKind(str, Enum):
    """Kind of fact gathered while validating a TODO."""

    FILE_EXISTS = "file-exists"
    FILE_MISSING = "file-missing"
    IMPLEMENTATION_FOUND = "implementation-found"
    REFERENCE_BROKEN = "reference-broken"
    SEMANTIC_MATCH = "semantic-match"


class CleanupAction(str, Enum):
    """Action proposed by the cleanup planner."""

    SAFE_DELETION = "safe_deletion"
    CONSOLIDATION = "consolidation"
    UPDATE_REFERENCES = "update_references"
    INVESTIGATE = "investigate"


class TodoLocation(RecordModel):
    """Where a marker was found inside the project."""

    file: str
    line: Optional[int] = None
    column: Optional[int] = None

    def describe(self) -> str:
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"


class TodoRecord(RecordModel):
    """Atomic unit of outstanding work extracted from a single source."""

    id: str
    content: str
    priority: Priority = Priority.MEDIUM
    category: str = "general"
    source: str
    location: Optional[TodoLocation] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def _content_has_substance(cls, value: str) -> str:
        trimmed = value.strip()
        if len(trimmed) < MIN_CONTENT_LENGTH:
            raise ValueError(f"TODO content too short: {value!r}")
        return trimmed

    @property
    def sources(self) -> List[str]:
        """Return the individual provenance tags of a possibly merged record."""
        return [part for part in self.source.split("+") if part]

    @property
    def is_completed(self) -> bool:
        return bool(self.metadata.get("completed"))


class TodoSummary(RecordModel):
    """Priority histogram over a set of TODOs."""

    total: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0

    @classmethod
    def from_records(cls, records: Iterable["TodoRecord"]) -> "TodoSummary":
        counts = {priority: 0 for priority in Priority}
        for record in records:
            counts[record.priority] += 1
        return cls(
            total=sum(counts.values()),
            high_priority=counts[Priority.HIGH],
            medium_priority=counts[Priority.MEDIUM],
            low_priority=counts[Priority.LOW],
        )


class TodoAnalysis(RecordModel):
    """Result of the context-only analysis."""

    todos: List[TodoRecord] = Field(default_factory=list)
    summary: TodoSummary = Field(default_factory=TodoSummary)


class Evidence(RecordModel):
    """Discrete, confidence-scored fact supporting a classification."""

    kind: EvidenceKind
    description: str
    location: Optional[TodoLocation] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ValidationResult(RecordModel):
    """Relevance verdict for a single consolidated TODO."""

    todo: TodoRecord
    status: ValidationStatus = ValidationStatus.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: List[Evidence] = Field(default_factory=list)
    reason: str = ""


class DuplicateGroup(RecordModel):
    """Cluster of TODO records judged to describe the same task."""

    normalized_key: str
    members: List[TodoRecord]
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    recommended_action: str = ""

    @property
    def primary(self) -> TodoRecord:
        return self.members[0]


class CleanupRecommendation(RecordModel):
    """Actionable unit of the cleanup report."""

    action: CleanupAction
    target_ids: List[str] = Field(default_factory=list)
    rationale: str
    impact: Priority
    estimated_minutes_saved: float = 0.0


class CleanupSummary(RecordModel):
    """Numeric roll-up of the cleanup recommendations."""

    safe_deletions: int = 0
    update_suggestions: int = 0
    consolidation_opportunities: int = 0
    total_potential_reduction: int = 0


class CleanupReport(RecordModel):
    """Grouped validation verdicts plus ranked recommendations."""

    total_analyzed: int = 0
    completed: List[ValidationResult] = Field(default_factory=list)
    superseded: List[ValidationResult] = Field(default_factory=list)
    stale: List[ValidationResult] = Field(default_factory=list)
    broken_references: List[ValidationResult] = Field(default_factory=list)
    unknown: List[ValidationResult] = Field(default_factory=list)
    duplicate_groups: List[DuplicateGroup] = Field(default_factory=list)
    recommendations: List[CleanupRecommendation] = Field(default_factory=list)
    summary: CleanupSummary = Field(default_factory=CleanupSummary)


class CodebaseAnalysis(RecordModel):
    """Result of the full context + codebase analysis."""

    context_todos: List[TodoRecord] = Field(default_factory=list)
    codebase_todos: List[TodoRecord] = Field(default_factory=list)
    validated_todos: List[TodoRecord] = Field(default_factory=list)
    superseded_todos: List[TodoRecord] = Field(default_factory=list)
    summary: TodoSummary = Field(default_factory=TodoSummary)
    validations: List[ValidationResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class CleanupAnalysis(RecordModel):
    """Full analysis paired with its cleanup report."""

    analysis: CodebaseAnalysis
    report: CleanupReport
