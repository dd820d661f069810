"""Shared enumerations for DepHealth."""

from enum import Enum


class UpdateType(str, Enum):
    """Semantic-versioning impact of an available update."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class Severity(str, Enum):
    """Vulnerability severity levels."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_label(cls, label: object) -> "Severity":
        """Map a free-form severity word to the fixed taxonomy.

        Case-insensitive. Anything not in SEVERITY_ALIASES is UNKNOWN.
        """
        if not isinstance(label, str):
            return cls.UNKNOWN
        return SEVERITY_ALIASES.get(label.strip().lower(), cls.UNKNOWN)

    @classmethod
    def from_cvss(cls, score: float) -> "Severity":
        """Derive severity from a CVSS base score (0-10 scale)."""
        if score >= 9.0:
            return cls.CRITICAL
        elif score >= 7.0:
            return cls.HIGH
        elif score >= 4.0:
            return cls.MEDIUM
        elif score > 0.0:
            return cls.LOW
        return cls.UNKNOWN


# Every upstream severity vocabulary is funnelled through this table.
SEVERITY_ALIASES: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
    "unknown": Severity.UNKNOWN,
}
