"""Dependency health scorer for DepHealth.

Calculates a single 0-100 health score by deducting weighted penalties
from a perfect baseline:
  - one deduction per outdated package, by update type
  - one deduction per vulnerability, by severity (policy permitting)

The weights live in a named ScoringPolicy. Callers choose the policy
by data availability: the ``full`` table when vulnerability data is
present, the heavier ``outdated-only`` table when it is not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from dephealth_shared.constants.constants import (
    POLICY_AUTO,
    POLICY_FULL,
    POLICY_OUTDATED_ONLY,
)
from dephealth_shared.types.enums import Severity, UpdateType
from dephealth_shared.types.models import OutdatedEntry, Vulnerability

logger = logging.getLogger(__name__)

MAX_SCORE = 100
MIN_SCORE = 0


@dataclass(frozen=True)
class ScoringPolicy:
    """A named table of deductions.

    UNKNOWN severity is informational and costs nothing by default.
    """

    name: str
    update_weights: Mapping[UpdateType, float] = field(default_factory=dict)
    severity_weights: Mapping[Severity, float] = field(default_factory=dict)
    include_vulnerabilities: bool = True

    def __post_init__(self):
        negative = [
            str(k.value) for k, v in {**self.update_weights, **self.severity_weights}.items() if v < 0
        ]
        if negative:
            logger.warning(
                "Scoring policy %r has negative weights for %s; "
                "those entries will raise the score.",
                self.name,
                ", ".join(negative),
            )

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ScoringPolicy":
        """Build a policy from a config table.

        Example:
            {"updates": {"major": 5}, "severities": {"HIGH": 10},
             "include_vulnerabilities": true}
        """
        updates = {
            UpdateType(str(k).lower()): float(v)
            for k, v in (data.get("updates") or {}).items()
        }
        severities = {
            Severity.from_label(k): float(v)
            for k, v in (data.get("severities") or {}).items()
        }
        return cls(
            name=name,
            update_weights=updates,
            severity_weights=severities,
            include_vulnerabilities=bool(data.get("include_vulnerabilities", True)),
        )


FULL_POLICY = ScoringPolicy(
    name=POLICY_FULL,
    update_weights={
        UpdateType.MAJOR: 5,
        UpdateType.MINOR: 2,
        UpdateType.PATCH: 1,
    },
    severity_weights={
        Severity.CRITICAL: 15,
        Severity.HIGH: 10,
        Severity.MEDIUM: 5,
        Severity.LOW: 2,
        Severity.UNKNOWN: 0,
    },
    include_vulnerabilities=True,
)

OUTDATED_ONLY_POLICY = ScoringPolicy(
    name=POLICY_OUTDATED_ONLY,
    update_weights={
        UpdateType.MAJOR: 10,
        UpdateType.MINOR: 5,
        UpdateType.PATCH: 2,
    },
    include_vulnerabilities=False,
)

BUILTIN_POLICIES: dict[str, ScoringPolicy] = {
    FULL_POLICY.name: FULL_POLICY,
    OUTDATED_ONLY_POLICY.name: OUTDATED_ONLY_POLICY,
}


def select_policy(
    vulnerabilities_available: bool,
    policies: Mapping[str, ScoringPolicy] | None = None,
    preferred: str = POLICY_AUTO,
) -> ScoringPolicy:
    """Pick the policy for a run.

    ``preferred`` names a policy explicitly; ``auto`` picks ``full`` when
    vulnerability data is available and ``outdated-only`` otherwise.
    """
    policies = policies or BUILTIN_POLICIES
    if preferred != POLICY_AUTO:
        if preferred not in policies:
            raise ValueError(
                f"Unknown scoring policy: {preferred} "
                f"(available: {', '.join(sorted(policies))})"
            )
        return policies[preferred]

    name = POLICY_FULL if vulnerabilities_available else POLICY_OUTDATED_ONLY
    return policies[name]


class HealthScorer:
    """Pure, order-independent health scorer."""

    def __init__(self, policy: ScoringPolicy | None = None):
        self.policy = policy or FULL_POLICY

    def score(
        self,
        outdated: Iterable[OutdatedEntry],
        vulnerabilities: Iterable[Vulnerability] = (),
    ) -> int:
        """Score a project.

        Args:
            outdated: Classified outdated entries.
            vulnerabilities: Normalized vulnerabilities. Ignored when the
                policy excludes vulnerability data.

        Returns:
            Integer health score clamped to [0, 100].
        """
        deduction = self.outdated_deduction(outdated)
        if self.policy.include_vulnerabilities:
            deduction += self.vulnerability_deduction(vulnerabilities)

        return min(max(round(MAX_SCORE - deduction), MIN_SCORE), MAX_SCORE)

    def outdated_deduction(self, outdated: Iterable[OutdatedEntry]) -> float:
        weights = self.policy.update_weights
        return sum(weights.get(entry.update_type, 0) for entry in outdated)

    def vulnerability_deduction(self, vulnerabilities: Iterable[Vulnerability]) -> float:
        weights = self.policy.severity_weights
        return sum(weights.get(vuln.severity, 0) for vuln in vulnerabilities)
