"""Shared pytest fixtures for DepHealth tests."""

import json
from pathlib import Path

import pytest

from dephealth_shared.types.enums import Severity, UpdateType
from dephealth_shared.types.models import OutdatedEntry, Vulnerability

# ─── Fixture Paths ─────────────────────────────────────────────────────────────

FIXTURES_DIR = Path(__file__).parent / "fixtures"
MANIFESTS_DIR = FIXTURES_DIR / "manifests"


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def manifests_dir() -> Path:
    """Path to the manifests fixture directory."""
    return MANIFESTS_DIR


@pytest.fixture
def package_json_path(manifests_dir: Path) -> str:
    """Path to the test package.json fixture."""
    return str(manifests_dir / "package.json")


@pytest.fixture
def npm_outdated_path(manifests_dir: Path) -> str:
    """Path to the captured 'npm outdated --json' output."""
    return str(manifests_dir / "npm-outdated.json")


@pytest.fixture
def npm_audit_path(manifests_dir: Path) -> str:
    """Path to the captured 'npm audit --json' output."""
    return str(manifests_dir / "npm-audit.json")


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with a package.json."""
    pkg = {
        "name": "temp-project",
        "version": "1.0.0",
        "dependencies": {"react": "^18.2.0"},
    }
    (tmp_path / "package.json").write_text(json.dumps(pkg))
    return tmp_path


# ─── Model Helpers ─────────────────────────────────────────────────────────────

def make_entry(
    package: str = "pkg",
    update_type: UpdateType = UpdateType.PATCH,
    current: str = "1.0.0",
    latest: str = "1.0.1",
) -> OutdatedEntry:
    """Helper to create an outdated entry."""
    return OutdatedEntry(
        package=package,
        current=current,
        latest=latest,
        update_type=update_type,
        version_range=f"^{current}",
    )


def make_vuln(
    vuln_id: str = "GHSA-test-0001",
    package: str = "pkg",
    severity: Severity = Severity.HIGH,
    **kwargs,
) -> Vulnerability:
    """Helper to create a normalized vulnerability."""
    return Vulnerability(id=vuln_id, package=package, severity=severity, **kwargs)
