"""Health scoring module for DepHealth."""

from dephealth.scoring.health_scorer import (
    BUILTIN_POLICIES,
    FULL_POLICY,
    OUTDATED_ONLY_POLICY,
    HealthScorer,
    ScoringPolicy,
    select_policy,
)

__all__ = [
    "BUILTIN_POLICIES",
    "FULL_POLICY",
    "OUTDATED_ONLY_POLICY",
    "HealthScorer",
    "ScoringPolicy",
    "select_policy",
]
