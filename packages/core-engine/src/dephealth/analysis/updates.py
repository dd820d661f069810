"""Outdated-dependency analysis.

Joins declared direct dependencies against provider-supplied
``{current, latest, wanted}`` data and classifies every update.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Union

from dephealth_shared.types.models import (
    Manifest,
    OutdatedEntry,
    OutdatedInfo,
    VersionConstraint,
)

from dephealth.analysis.semver import classify

logger = logging.getLogger(__name__)

OutdatedData = Mapping[str, Union[OutdatedInfo, Mapping[str, Any]]]


class UpdateAnalyzer:
    """Produces one classified OutdatedEntry per outdated direct dependency.

    Packages missing from the outdated data are considered current.
    Packages only present in the outdated data (e.g. transitive ones)
    are ignored.
    """

    def analyze(
        self,
        manifest: Mapping[str, str],
        outdated_data: OutdatedData,
        is_dev: bool = False,
    ) -> list[OutdatedEntry]:
        """Classify outdated packages of a single name -> range mapping.

        Args:
            manifest: Declared dependencies, in declaration order.
            outdated_data: Provider data keyed by package name.
            is_dev: Whether ``manifest`` is the development mapping.

        Returns:
            Entries in manifest order.
        """
        entries: list[OutdatedEntry] = []

        for package, version_range in manifest.items():
            raw = outdated_data.get(package)
            if raw is None:
                continue

            info = self._coerce(package, version_range, raw)
            if info is None:
                continue

            entries.append(
                OutdatedEntry(
                    package=package,
                    current=info.current,
                    latest=info.latest,
                    wanted=info.wanted,
                    update_type=classify(info.current, info.latest),
                    version_range=version_range,
                    is_dev=is_dev,
                )
            )

        return entries

    def analyze_manifest(
        self,
        manifest: Manifest,
        outdated_data: OutdatedData,
    ) -> list[OutdatedEntry]:
        """Analyze runtime dependencies, then dev dependencies.

        A package declared in both mappings is reported once, as runtime.
        """
        runtime = self.analyze(manifest.dependencies, outdated_data)
        dev_only = {
            name: version_range
            for name, version_range in manifest.dev_dependencies.items()
            if name not in manifest.dependencies
        }
        dev = self.analyze(dev_only, outdated_data, is_dev=True)

        logger.debug(
            "Update analysis: %d runtime and %d dev packages outdated",
            len(runtime),
            len(dev),
        )
        return runtime + dev

    def _coerce(
        self,
        package: str,
        version_range: str,
        raw: Union[OutdatedInfo, Mapping[str, Any]],
    ) -> OutdatedInfo | None:
        """Turn a provider record into OutdatedInfo, or None if unusable.

        A missing ``current`` (package not installed) falls back to the
        base version of the declared range.
        """
        if isinstance(raw, OutdatedInfo):
            return raw

        if not isinstance(raw, Mapping):
            logger.warning("Ignoring outdated data for %s: not a mapping", package)
            return None

        latest = raw.get("latest")
        if not latest:
            logger.warning("Ignoring outdated data for %s: no latest version", package)
            return None

        current = raw.get("current")
        if not current:
            current = VersionConstraint.parse_version_string(version_range).version or version_range

        return OutdatedInfo(
            current=str(current),
            latest=str(latest),
            wanted=str(raw["wanted"]) if raw.get("wanted") else None,
        )
