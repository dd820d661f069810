"""Loaders for ``npm outdated --json`` and ``npm audit --json`` output.

These are file-based stand-ins for the registry and OSV providers, for
projects where npm has already been run (e.g. in CI).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dephealth.analysis.vulnerabilities import records_from_audit_report
from dephealth.errors import ProviderError

logger = logging.getLogger(__name__)


def load_outdated(file_path: str) -> dict[str, dict[str, Any]]:
    """Load ``npm outdated --json`` output keyed by package name.

    Workspaces make npm emit a list of entries per package; the first
    entry that carries a ``latest`` version is kept.
    """
    data = _load_json("npm-outdated", file_path)
    if not isinstance(data, dict):
        raise ProviderError("npm-outdated", f"{file_path} must contain a JSON object")

    outdated: dict[str, dict[str, Any]] = {}
    for name, info in data.items():
        if isinstance(info, list):
            info = next((i for i in info if isinstance(i, dict) and i.get("latest")), None)
        if isinstance(info, dict):
            outdated[name] = info
        else:
            logger.warning("Ignoring npm outdated entry for %s: unexpected format", name)

    return outdated


def load_audit(file_path: str) -> list[dict[str, Any]]:
    """Load vulnerability records from ``npm audit --json`` output.

    A JSON list is taken as already-flat records.
    """
    data = _load_json("npm-audit", file_path)
    if not isinstance(data, (dict, list)):
        raise ProviderError("npm-audit", f"{file_path} must contain a JSON object or list")
    return records_from_audit_report(data)


def _load_json(provider: str, file_path: str) -> Any:
    path = Path(file_path)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ProviderError(provider, f"cannot read {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ProviderError(provider, f"invalid JSON in {file_path}: {e}") from e
