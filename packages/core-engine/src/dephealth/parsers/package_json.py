"""Parser for package.json (npm/Node.js manifest)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from dephealth_shared.types.models import Manifest

from dephealth.errors import ManifestError


def parse(file_path: str) -> Manifest:
    """Parse a package.json file into a Manifest.

    Args:
        file_path: Path to the package.json file.

    Returns:
        Manifest with runtime and dev dependencies in declaration order.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ManifestError: If the JSON is not a usable manifest.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Manifest file not found: {file_path}")

    content = path.read_text(encoding="utf-8")
    return loads(content, manifest_path=str(path.resolve()))


def loads(content: str, manifest_path: str = "") -> Manifest:
    """Parse package.json content that is already in memory."""
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ManifestError("package.json must contain a JSON object")

    name = data.get("name")
    return Manifest(
        name=name if isinstance(name, str) else "",
        dependencies=_dependency_map(data, "dependencies"),
        dev_dependencies=_dependency_map(data, "devDependencies"),
        manifest_path=manifest_path,
    )


def _dependency_map(data: dict[str, Any], field: str) -> dict[str, str]:
    section = data.get(field)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ManifestError(f"'{field}' must be an object of name -> version range")

    result: dict[str, str] = {}
    for name, version_str in section.items():
        if not isinstance(version_str, str):
            raise ManifestError(
                f"'{field}.{name}' must be a version string, got {type(version_str).__name__}"
            )
        result[name] = version_str
    return result
