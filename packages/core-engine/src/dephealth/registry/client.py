"""npm registry client for outdated-package data.

Fetches package metadata ("packuments") from the npm registry and
derives ``{current, latest, wanted}`` for each declared dependency,
the same triple ``npm outdated`` reports.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional
from urllib.parse import quote

import httpx

from dephealth_shared.constants.constants import NPM_REGISTRY_URL
from dephealth_shared.types.models import Manifest, OutdatedInfo, VersionConstraint

from dephealth.analysis.semver import is_newer, max_satisfying
from dephealth.cache import ResponseCache
from dephealth.errors import ProviderError

logger = logging.getLogger(__name__)

_CACHE_SOURCE = "npm-registry"
# Abbreviated metadata: versions and dist-tags only
_ACCEPT_CORGI = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"


class NpmRegistryClient:
    """Outdated-data provider backed by the npm registry.

    ``current`` is the base version of the declared range (there is no
    lockfile resolution), ``latest`` is the ``latest`` dist-tag and
    ``wanted`` is the highest stable version the range allows.
    """

    def __init__(
        self,
        base_url: str | None = None,
        cache: ResponseCache | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or os.environ.get("NPM_REGISTRY_URL", NPM_REGISTRY_URL)).rstrip("/")
        self.cache = cache
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Accept": _ACCEPT_CORGI},
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ─── Public API ───────────────────────────────────────────────────────

    def fetch_outdated(self, manifest: Manifest) -> dict[str, OutdatedInfo]:
        """Outdated data for every registry dependency of a manifest.

        Packages whose latest version is not newer than the declared
        base version are omitted, as are git/file/tag specifiers.

        Raises:
            ProviderError: If the registry cannot be reached.
        """
        outdated: dict[str, OutdatedInfo] = {}

        for name, version_range in manifest.all_dependencies().items():
            constraint = VersionConstraint.parse_version_string(version_range)
            if not constraint.is_registry_range:
                logger.debug("Skipping %s@%s: not a registry range", name, version_range)
                continue

            packument = self.get_packument(name)
            if packument is None:
                continue

            info = self._outdated_info(constraint, packument)
            if info is not None:
                outdated[name] = info

        logger.info(
            "Registry check complete: %d of %d dependencies outdated",
            len(outdated),
            manifest.total_dependencies,
        )
        return outdated

    def get_packument(self, name: str) -> Optional[dict[str, Any]]:
        """Fetch package metadata, or None if the package does not exist.

        Raises:
            ProviderError: On network failure or a server error.
        """
        if self.cache:
            cached = self.cache.get(_CACHE_SOURCE, name, "*")
            if cached is not None:
                logger.debug("Cache hit: %s", name)
                return cached

        url = f"{self.base_url}/{quote(name, safe='@')}"
        try:
            response = self._client.get(url)
            if response.status_code == 404:
                logger.warning("Package not found on registry: %s", name)
                return None
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError("npm-registry", f"{name}: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ProviderError("npm-registry", f"{name}: {e}") from e
        except ValueError as e:
            raise ProviderError("npm-registry", f"{name}: invalid JSON response") from e

        if not isinstance(data, dict):
            raise ProviderError("npm-registry", f"{name}: response is not a JSON object")

        packument = {
            "dist-tags": data.get("dist-tags", {}),
            "versions": sorted((data.get("versions") or {}).keys()),
        }
        if self.cache:
            self.cache.set(_CACHE_SOURCE, name, "*", packument)
        return packument

    # ─── Internal Methods ─────────────────────────────────────────────────

    @staticmethod
    def _outdated_info(
        constraint: VersionConstraint,
        packument: dict[str, Any],
    ) -> Optional[OutdatedInfo]:
        latest = (packument.get("dist-tags") or {}).get("latest")
        if not latest:
            return None

        current = constraint.version.lstrip("v").split()[0]
        if not is_newer(latest, current):
            return None

        return OutdatedInfo(
            current=current,
            latest=latest,
            wanted=max_satisfying(packument.get("versions") or [], constraint),
        )
