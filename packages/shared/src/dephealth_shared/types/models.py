"""Shared Pydantic models for DepHealth.

All models are frozen and serialize with camelCase aliases, so a
``model_dump(by_alias=True)`` / ``model_validate`` pair round-trips.
"""

from __future__ import annotations

import re
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Mapping, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from dephealth_shared.types.enums import Severity, UpdateType

# Read-only name -> version range map; frozen models cannot be changed through it
DependencyMap = Annotated[
    Mapping[str, str],
    AfterValidator(lambda value: MappingProxyType(dict(value))),
    PlainSerializer(dict, return_type=dict[str, str]),
]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class VersionConstraint(_FrozenModel):
    """Parsed version constraint from a manifest file.

    Examples:
        - "^1.2.0" -> operator="^", version="1.2.0"
        - ">=1.0.0 <2.0.0" -> operator=">=", version="1.0.0 <2.0.0"
        - "3.4.5" -> operator="==", version="3.4.5"
    """

    raw: str = Field(description="Original version string from manifest")
    operator: Optional[str] = Field(default=None, description="Version operator (^, ~, >=, ==, etc.)")
    version: Optional[str] = Field(default=None, description="Extracted version number")

    @classmethod
    def parse_version_string(cls, raw: str) -> "VersionConstraint":
        """Parse a version constraint string into components."""
        raw = raw.strip()
        if not raw or raw in ("*", "latest", "x"):
            return cls(raw=raw, operator="*", version=raw)

        for op in (">=", "<=", "!=", "==", "~=", "^", "~", ">", "<", "="):
            if raw.startswith(op):
                version = raw[len(op):].strip()
                return cls(raw=raw, operator="==" if op == "=" else op, version=version)

        # No operator: exact version
        return cls(raw=raw, operator="==", version=raw)

    @property
    def is_registry_range(self) -> bool:
        """False for git/file/url/workspace specifiers, dist-tags and wildcards."""
        if self.operator == "*" or not self.version:
            return False
        if ":" in self.raw or "/" in self.raw:
            return False
        return re.match(r"v?\d", self.version) is not None


class Manifest(_FrozenModel):
    """Runtime and development dependency declarations of one project."""

    name: str = Field(default="", description="Project name from the manifest")
    dependencies: DependencyMap = Field(
        default_factory=dict, validate_default=True, description="Runtime name -> version range"
    )
    dev_dependencies: DependencyMap = Field(
        default_factory=dict, validate_default=True, description="Dev name -> version range"
    )
    manifest_path: str = Field(default="", description="Path to the manifest file")

    @property
    def total_dependencies(self) -> int:
        return len(self.dependencies) + len(self.dev_dependencies)

    def all_dependencies(self) -> dict[str, str]:
        """Runtime first, then dev entries not already declared at runtime."""
        merged = dict(self.dependencies)
        for name, version_range in self.dev_dependencies.items():
            merged.setdefault(name, version_range)
        return merged


class OutdatedInfo(_FrozenModel):
    """Installed/latest/wanted versions reported by an outdated-data provider."""

    current: str = Field(description="Currently installed version")
    latest: str = Field(description="Latest published version")
    wanted: Optional[str] = Field(default=None, description="Highest version satisfying the declared range")


class OutdatedEntry(_FrozenModel):
    """A direct dependency with a newer published version."""

    package: str
    current: str
    latest: str
    wanted: Optional[str] = None
    update_type: UpdateType = Field(alias="type", description="Derived by classify(current, latest)")
    version_range: str = Field(description="Range as declared in the manifest")
    is_dev: bool = False


class Vulnerability(_FrozenModel):
    """A normalized security finding."""

    id: str = Field(description="Advisory identifier (GHSA, CVE, npm advisory number, ...)")
    package: str
    severity: Severity = Severity.UNKNOWN
    summary: str = ""
    fixed_version: Optional[str] = None
    reference: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.package, self.id)

    @property
    def completeness(self) -> int:
        return int(bool(self.fixed_version)) + int(bool(self.reference))


class SeveritySummary(_FrozenModel):
    """Vulnerability counts by severity. ``medium`` is serialized as ``moderate``."""

    critical: int = 0
    high: int = 0
    medium: int = Field(default=0, alias="moderate")
    low: int = 0
    unknown: int = 0

    @property
    def moderate(self) -> int:
        return self.medium

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.unknown


class UpdateSummary(_FrozenModel):
    """Dependency totals and outdated counts by update type."""

    total_deps: int = 0
    total_dev_deps: int = 0
    outdated: int = 0
    major_updates: int = 0
    minor_updates: int = 0
    patch_updates: int = 0


class AnalysisResult(_FrozenModel):
    """Update-health analysis of one manifest. Carries no wall-clock data."""

    health_score: int = Field(ge=0, le=100)
    total_dependencies: int = Field(ge=0)
    dependencies: DependencyMap = Field(default_factory=dict, validate_default=True)
    dev_dependencies: DependencyMap = Field(default_factory=dict, validate_default=True)
    outdated: tuple[OutdatedEntry, ...] = ()
    summary: UpdateSummary = Field(default_factory=UpdateSummary)
    vulnerability_summary: SeveritySummary = Field(default_factory=SeveritySummary)
    policy: str = Field(default="full", description="Name of the scoring policy applied")


class SecurityResult(_FrozenModel):
    """Normalized vulnerabilities of one manifest."""

    total_vulnerabilities: int = 0
    vulnerabilities: tuple[Vulnerability, ...] = ()
    summary: SeveritySummary = Field(default_factory=SeveritySummary)


class DependencyReport(_FrozenModel):
    """Envelope handed to report consumers.

    ``security`` and ``security_error`` are mutually exclusive; a failed
    security scan never invalidates ``analysis``. ``narrative`` is
    additive prose and never authoritative over the numbers.
    """

    project_name: str = ""
    analysis: AnalysisResult
    security: Optional[SecurityResult] = None
    security_error: Optional[str] = None
    narrative: Optional[str] = None
    analyzed_at: datetime = Field(default_factory=datetime.now)
    tools_used: tuple[str, ...] = ()
