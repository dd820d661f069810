"""Report assembly: composes analysis outputs into immutable results."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping, Sequence

from dephealth_shared.constants.constants import POLICY_FULL
from dephealth_shared.types.enums import Severity, UpdateType
from dephealth_shared.types.models import (
    AnalysisResult,
    OutdatedEntry,
    SecurityResult,
    SeveritySummary,
    UpdateSummary,
    Vulnerability,
)


def summarize_severities(vulnerabilities: Iterable[Vulnerability]) -> SeveritySummary:
    counts = Counter(v.severity for v in vulnerabilities)
    return SeveritySummary(
        critical=counts[Severity.CRITICAL],
        high=counts[Severity.HIGH],
        medium=counts[Severity.MEDIUM],
        low=counts[Severity.LOW],
        unknown=counts[Severity.UNKNOWN],
    )


class ReportAssembler:
    """Builds AnalysisResult and SecurityResult objects.

    Inputs are copied, never mutated; the results share no mutable state
    with the caller.
    """

    def assemble(
        self,
        dependencies: Mapping[str, str],
        dev_dependencies: Mapping[str, str],
        outdated: Sequence[OutdatedEntry],
        vulnerabilities: Sequence[Vulnerability],
        score: int,
        policy: str = POLICY_FULL,
    ) -> AnalysisResult:
        """Compose one AnalysisResult.

        Args:
            dependencies: Runtime manifest.
            dev_dependencies: Development manifest.
            outdated: Classified outdated entries, in display order.
            vulnerabilities: Normalized vulnerabilities (may be empty).
            score: Health score from HealthScorer.
            policy: Name of the scoring policy that produced ``score``.

        Returns:
            A new, frozen AnalysisResult.
        """
        by_type = Counter(entry.update_type for entry in outdated)

        summary = UpdateSummary(
            total_deps=len(dependencies),
            total_dev_deps=len(dev_dependencies),
            outdated=len(outdated),
            major_updates=by_type[UpdateType.MAJOR],
            minor_updates=by_type[UpdateType.MINOR],
            patch_updates=by_type[UpdateType.PATCH],
        )

        return AnalysisResult(
            health_score=score,
            total_dependencies=len(dependencies) + len(dev_dependencies),
            dependencies=dict(dependencies),
            dev_dependencies=dict(dev_dependencies),
            outdated=tuple(outdated),
            summary=summary,
            vulnerability_summary=summarize_severities(vulnerabilities),
            policy=policy,
        )

    def assemble_security(self, vulnerabilities: Sequence[Vulnerability]) -> SecurityResult:
        """Compose one SecurityResult."""
        return SecurityResult(
            total_vulnerabilities=len(vulnerabilities),
            vulnerabilities=tuple(vulnerabilities),
            summary=summarize_severities(vulnerabilities),
        )
