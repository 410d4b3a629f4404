"""Turn validation verdicts and duplicate groups into cleanup recommendations."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import List

from .schema import (
    CleanupAction,
    CleanupRecommendation,
    CleanupReport,
    CleanupSummary,
    DuplicateGroup,
    Priority,
    ValidationResult,
    ValidationStatus,
)

LOGGER = logging.getLogger(__name__)

SAFE_DELETION_THRESHOLD = 0.85
UPDATE_REFERENCES_THRESHOLD = 0.7
MIN_CONSOLIDATION_GROUP = 3

MINUTES_PER_DELETION = 2.0
MINUTES_PER_DUPLICATE = 1.5
MINUTES_PER_UPDATE = 3.0


def _round_half_up(minutes: float) -> int:
    return int(math.floor(minutes + 0.5))


class CleanupPlanner:
    """Rank cleanup actions for one analysis run."""

    def plan(
        self,
        validations: Sequence[ValidationResult],
        duplicate_groups: Sequence[DuplicateGroup] = (),
    ) -> CleanupReport:
        report = CleanupReport(
            total_analyzed=len(validations),
            duplicate_groups=list(duplicate_groups),
        )
        buckets = {
            ValidationStatus.COMPLETED: report.completed,
            ValidationStatus.SUPERSEDED: report.superseded,
            ValidationStatus.STALE: report.stale,
            ValidationStatus.BROKEN_REFERENCE: report.broken_references,
            ValidationStatus.UNKNOWN: report.unknown,
        }
        for result in validations:
            bucket = buckets.get(result.status)
            if bucket is not None:
                bucket.append(result)

        recommendations: List[CleanupRecommendation] = []

        deletions = [
            result
            for result in (*report.completed, *report.superseded)
            if result.confidence > SAFE_DELETION_THRESHOLD
        ]
        if deletions:
            recommendations.append(
                CleanupRecommendation(
                    action=CleanupAction.SAFE_DELETION,
                    target_ids=[result.todo.id for result in deletions],
                    rationale=f"{len(deletions)} TODOs can be safely deleted (completed/superseded)",
                    impact=Priority.HIGH,
                    estimated_minutes_saved=len(deletions) * MINUTES_PER_DELETION,
                )
            )

        significant = [group for group in duplicate_groups if len(group.members) >= MIN_CONSOLIDATION_GROUP]
        if significant:
            extras = [member for group in significant for member in group.members[1:]]
            recommendations.append(
                CleanupRecommendation(
                    action=CleanupAction.CONSOLIDATION,
                    target_ids=[member.id for member in extras],
                    rationale=(
                        f"Consolidate {len(extras)} duplicate TODOs across {len(significant)} groups"
                    ),
                    impact=Priority.MEDIUM,
                    estimated_minutes_saved=len(extras) * MINUTES_PER_DUPLICATE,
                )
            )

        outdated = [*report.stale, *report.broken_references]
        updates = [result for result in outdated if result.confidence > UPDATE_REFERENCES_THRESHOLD]
        if updates:
            recommendations.append(
                CleanupRecommendation(
                    action=CleanupAction.UPDATE_REFERENCES,
                    target_ids=[result.todo.id for result in updates],
                    rationale=f"Update {len(updates)} TODOs with stale code references",
                    impact=Priority.MEDIUM,
                    estimated_minutes_saved=len(updates) * MINUTES_PER_UPDATE,
                )
            )

        if report.unknown:
            recommendations.append(
                CleanupRecommendation(
                    action=CleanupAction.INVESTIGATE,
                    target_ids=[result.todo.id for result in report.unknown],
                    rationale=(
                        f"{len(report.unknown)} TODOs could not be verified against the codebase; "
                        "review them manually"
                    ),
                    impact=Priority.LOW,
                )
            )

        report.recommendations = recommendations
        report.summary = CleanupSummary(
            safe_deletions=len(deletions),
            update_suggestions=len(outdated),
            consolidation_opportunities=len(significant),
            total_potential_reduction=_round_half_up(
                sum(item.estimated_minutes_saved for item in recommendations)
            ),
        )
        LOGGER.debug(
            "Planned %d recommendation(s) for %d TODO(s)", len(recommendations), len(validations)
        )
        return report


__all__ = ["CleanupPlanner"]
