"""Manifest discovery and loading for DepHealth.

This module provides:
- find_manifest(): locate package.json for a file or directory target
- load_manifest(): one-call parsing for a project
"""

from __future__ import annotations

from pathlib import Path

from dephealth_shared.constants.constants import MANIFEST_FILE_NAME
from dephealth_shared.types.models import Manifest

from dephealth.parsers import package_json


def find_manifest(target: str, manifest: str | None = None) -> Path:
    """Resolve the manifest path for a project target.

    Args:
        target: A manifest file, or a project directory.
        manifest: Manifest filename inside ``target`` (directory targets only).

    Returns:
        Path to an existing manifest file.

    Raises:
        FileNotFoundError: If no manifest is found.
    """
    path = Path(target)
    if path.is_file():
        return path

    if not path.is_dir():
        raise FileNotFoundError(f"Path not found: {target}")

    manifest_path = path / (manifest or MANIFEST_FILE_NAME)
    if not manifest_path.exists():
        raise FileNotFoundError(
            f"No {manifest or MANIFEST_FILE_NAME} found in: {target}"
        )
    return manifest_path


def load_manifest(target: str, manifest: str | None = None) -> Manifest:
    """Find and parse the manifest for ``target``."""
    return package_json.parse(str(find_manifest(target, manifest)))
