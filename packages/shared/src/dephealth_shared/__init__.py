"""
DepHealth Shared: common types and constants for DepHealth.
"""

from dephealth_shared.types.enums import Severity, UpdateType
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
from dephealth_shared.constants.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_CONFIG,
    EXIT_SUCCESS,
    EXIT_GENERAL_ERROR,
    MANIFEST_FILE_NAME,
)

__version__ = "0.1.0"

__all__ = [
    # Enums
    "Severity",
    "UpdateType",
    # Models
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
    # Constants
    "CONFIG_FILE_NAME",
    "DEFAULT_CONFIG",
    "EXIT_SUCCESS",
    "EXIT_GENERAL_ERROR",
    "MANIFEST_FILE_NAME",
]
