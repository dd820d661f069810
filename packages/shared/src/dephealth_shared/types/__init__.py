"""Shared type definitions for DepHealth."""

from dephealth_shared.types.enums import SEVERITY_ALIASES, Severity, UpdateType
from dephealth_shared.types.models import (
    AnalysisResult,
    DependencyReport,
    Manifest,
    OutdatedEntry,
    OutdatedInfo,
    SecurityResult,
    SeveritySummary,
    UpdateSummary,
    VersionConstraint,
    Vulnerability,
)

__all__ = [
    "SEVERITY_ALIASES",
    "Severity",
    "UpdateType",
    "AnalysisResult",
    "DependencyReport",
    "Manifest",
    "OutdatedEntry",
    "OutdatedInfo",
    "SecurityResult",
    "SeveritySummary",
    "UpdateSummary",
    "VersionConstraint",
    "Vulnerability",
]
