"""DepHealth configuration management.

Handles loading, saving, and managing .dephealth.yaml config files.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from dephealth_shared.constants.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILE_NAME,
    DEFAULT_CONFIG,
)

from dephealth.scoring.health_scorer import BUILTIN_POLICIES, ScoringPolicy


class DepHealthConfig:
    """Application configuration loaded from .dephealth.yaml."""

    def __init__(self, config_data: dict[str, Any] | None = None):
        self._data = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), config_data or {})

    # ─── LLM Settings ──────────────────────────────────────────────────────────
    @property
    def llm_model(self) -> str:
        return self._data["llm"]["model"]

    @property
    def llm_base_url(self) -> str:
        return os.environ.get("OLLAMA_URL", self._data["llm"]["base_url"])

    # ─── Registry Settings ─────────────────────────────────────────────────────
    @property
    def registry_url(self) -> str:
        return os.environ.get("NPM_REGISTRY_URL", self._data["registry"]["url"])

    @property
    def registry_timeout(self) -> float:
        return float(self._data["registry"]["timeout"])

    @property
    def registry_cache_ttl(self) -> int:
        return int(self._data["registry"]["cache_ttl"])

    # ─── OSV Settings ──────────────────────────────────────────────────────────
    @property
    def osv_cache_ttl(self) -> int:
        return int(self._data["osv"]["cache_ttl"])

    @property
    def osv_timeout(self) -> float:
        return float(self._data["osv"]["timeout"])

    # ─── Scoring ───────────────────────────────────────────────────────────────
    @property
    def scoring_policy(self) -> str:
        return self._data["scoring"]["policy"]

    def scoring_policies(self) -> dict[str, ScoringPolicy]:
        """Built-in policies, overridden or extended by the config file."""
        policies = dict(BUILTIN_POLICIES)
        for name, table in (self._data["scoring"].get("policies") or {}).items():
            if isinstance(table, dict):
                policies[name] = ScoringPolicy.from_dict(name, table)
        return policies

    # ─── Report Settings ───────────────────────────────────────────────────────
    @property
    def default_report_format(self) -> str:
        return self._data["reports"]["default_format"]

    # ─── Utility Methods ───────────────────────────────────────────────────────
    def get(self, key: str, default: Any = None) -> Any:
        """Get a nested config value using dot notation."""
        keys = key.split(".")
        value = self._data
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a nested config value using dot notation."""
        keys = key.split(".")
        data = self._data
        for k in keys[:-1]:
            if k not in data or not isinstance(data[k], dict):
                data[k] = {}
            data = data[k]
        data[keys[-1]] = value

    def to_dict(self) -> dict[str, Any]:
        """Return the full config as a dict."""
        return copy.deepcopy(self._data)


def load_config(directory: str | None = None) -> DepHealthConfig:
    """Load configuration from .dephealth.yaml.

    Search order:
    1. DEPHEALTH_CONFIG environment variable
    2. .dephealth.yaml in the specified directory
    3. .dephealth.yaml in current working directory
    4. Default config (if no file found)

    Args:
        directory: Directory to search for config file.

    Returns:
        DepHealthConfig instance.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        config_path = Path(env_path)
        if config_path.exists():
            return _load_from_file(config_path)

    if directory:
        config_path = Path(directory) / CONFIG_FILE_NAME
        if config_path.exists():
            return _load_from_file(config_path)

    config_path = Path.cwd() / CONFIG_FILE_NAME
    if config_path.exists():
        return _load_from_file(config_path)

    return DepHealthConfig()


def save_config(directory: str, config: DepHealthConfig | None = None) -> Path:
    """Save configuration to .dephealth.yaml.

    Args:
        directory: Directory where the config will be saved.
        config: Config to save. Uses defaults if None.

    Returns:
        Path to the saved config file.
    """
    config = config or DepHealthConfig()
    config_path = Path(directory) / CONFIG_FILE_NAME

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(
            config.to_dict(),
            f,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    return config_path


def _load_from_file(path: Path) -> DepHealthConfig:
    """Load config from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return DepHealthConfig(data)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
