"""OSV.dev API client for vulnerability queries.

Queries the OSV.dev REST API for known vulnerabilities in a manifest's
dependencies. Returns raw OSV records (tagged with the queried package
name) for VulnerabilityNormalizer to consume.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from dephealth_shared.constants.constants import (
    OSV_API_BASE_URL,
    OSV_BATCH_ENDPOINT,
    OSV_NPM_ECOSYSTEM,
)
from dephealth_shared.types.models import Manifest, VersionConstraint

from dephealth.cache import ResponseCache
from dephealth.errors import ProviderError

logger = logging.getLogger(__name__)

_CACHE_SOURCE = "osv"


class OSVClient:
    """Client for querying the OSV.dev vulnerability database.

    Features:
    - Batch queries with per-vulnerability hydration
    - Response cache integration (configurable TTL)
    - Retry with exponential backoff on rate limits and server errors
    """

    def __init__(
        self,
        cache: ResponseCache | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the OSV client.

        Args:
            cache: Optional response cache instance.
            timeout: HTTP request timeout in seconds.
            max_retries: Maximum retry attempts for failed requests.
            transport: Optional httpx transport (e.g. a mock in tests).
        """
        self.cache = cache
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ─── Public API ───────────────────────────────────────────────────────

    def query_manifest(self, manifest: Manifest) -> list[dict[str, Any]]:
        """Query OSV.dev for every queryable dependency in a manifest.

        Dependencies without a concrete registry version (git, file,
        wildcard, dist-tag) are skipped.

        Returns:
            Raw OSV records, each with an added ``package`` key.

        Raises:
            ProviderError: If the batch query fails after retries.
        """
        records: list[dict[str, Any]] = []
        uncached: list[tuple[str, str]] = []

        # Step 1: Serve what we can from cache
        for name, version_range in manifest.all_dependencies().items():
            version = self._extract_version(version_range)
            if not version:
                logger.debug("Skipping %s@%s: no concrete version", name, version_range)
                continue

            if self.cache:
                cached = self.cache.get(_CACHE_SOURCE, name, version)
                if cached is not None:
                    logger.debug("Cache hit: %s@%s", name, version)
                    records.extend(_tag(cached, name))
                    continue

            uncached.append((name, version))

        if not uncached:
            return records

        # Step 2: Batch query the rest
        payload = {
            "queries": [
                {"version": version, "package": {"name": name, "ecosystem": OSV_NPM_ECOSYSTEM}}
                for name, version in uncached
            ]
        }
        response_data = self._request_with_retry(OSV_BATCH_ENDPOINT, payload)
        if response_data is None:
            raise ProviderError("osv", "batch query failed")

        results = response_data.get("results", [])
        if not isinstance(results, list) or not all(isinstance(r, dict) for r in results):
            raise ProviderError("osv", "unexpected batch response layout")

        # Step 3: Hydrate stubs and cache per package
        for (name, version), result in zip(uncached, results):
            vulns_full = self._hydrate_vulns(result.get("vulns") or [])
            if self.cache:
                self.cache.set(_CACHE_SOURCE, name, version, vulns_full)
            records.extend(_tag(vulns_full, name))

        logger.info(
            "OSV scan complete: %d records for %d dependencies",
            len(records),
            len(manifest.all_dependencies()),
        )
        return records

    # ─── Internal Methods ─────────────────────────────────────────────────

    def _hydrate_vulns(
        self,
        vuln_stubs: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Fetch full vulnerability details from OSV.dev.

        The batch endpoint only returns {id, modified} stubs.
        This method fetches full details from /v1/vulns/{id}.
        """
        hydrated: list[dict[str, Any]] = []
        for stub in vuln_stubs:
            if not isinstance(stub, dict):
                continue
            vuln_id = stub.get("id", "")
            if not vuln_id:
                continue

            # Already full data
            if stub.get("summary") or stub.get("affected"):
                hydrated.append(stub)
                continue

            url = f"{OSV_API_BASE_URL}/vulns/{vuln_id}"
            try:
                response = self._client.get(url)
                response.raise_for_status()
                detail = response.json()
            except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as e:
                logger.warning("Failed to fetch details for %s: %s", vuln_id, e)
                hydrated.append(stub)  # Fall back to stub data
                continue

            hydrated.append(detail if isinstance(detail, dict) else stub)

        return hydrated

    def _request_with_retry(
        self,
        url: str,
        payload: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Make an HTTP POST request with exponential backoff retry.

        Raises:
            ProviderError: If a successful response is not a JSON object.
        """
        for attempt in range(self.max_retries):
            try:
                response = self._client.post(url, json=payload)
                response.raise_for_status()
                data = response.json()
            except ValueError as e:
                raise ProviderError("osv", f"invalid JSON response: {e}") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429 or status >= 500:
                    wait = 2 ** attempt
                    logger.warning(
                        "OSV.dev returned %d, retrying in %ds (attempt %d/%d)",
                        status, wait, attempt + 1, self.max_retries,
                    )
                    time.sleep(wait)
                else:
                    logger.error("OSV.dev request failed: %s", e)
                    return None
            except httpx.RequestError as e:
                logger.error("Network error querying OSV.dev: %s", e)
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt)
                else:
                    return None
            else:
                if not isinstance(data, dict):
                    raise ProviderError("osv", "response is not a JSON object")
                return data

        return None

    @staticmethod
    def _extract_version(version_range: str) -> Optional[str]:
        """Concrete version to query for a declared range.

        OSV.dev needs a concrete version; the range's base version is
        used (``^1.2.0`` -> ``1.2.0``, ``>=1.0.0 <2`` -> ``1.0.0``).
        """
        constraint = VersionConstraint.parse_version_string(version_range)
        if not constraint.is_registry_range:
            return None

        cleaned = constraint.version.lstrip("^~>=<!v ")
        cleaned = cleaned.split(",")[0].split()[0] if cleaned.strip() else ""
        return cleaned or None


def _tag(records: list[dict[str, Any]], package: str) -> list[dict[str, Any]]:
    return [{**record, "package": package} for record in records]
