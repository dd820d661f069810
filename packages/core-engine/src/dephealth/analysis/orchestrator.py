"""Analysis orchestrator for DepHealth.

Coordinates the complete workflow:
1. Manifest loading (package.json)
2. Outdated data (npm outdated file or npm registry)
3. Vulnerability data (npm audit file or OSV.dev)
4. Classification, normalization and scoring (pure core)
5. Optional narrative recommendations (Ollama)
6. Report generation (JSON)

The update analysis and the security scan fail independently: a failed
security scan is recorded on the report and the score falls back to
the outdated-only policy.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from dephealth_shared.constants.constants import POLICY_AUTO
from dephealth_shared.types.models import (
    AnalysisResult,
    DependencyReport,
    Manifest,
    SecurityResult,
)

from dephealth.analysis.report import ReportAssembler
from dephealth.analysis.updates import OutdatedData, UpdateAnalyzer
from dephealth.analysis.vulnerabilities import VulnerabilityNormalizer
from dephealth.cache import ResponseCache
from dephealth.config import DepHealthConfig, load_config
from dephealth.errors import ProviderError
from dephealth.llm.ollama_bridge import OllamaBridge
from dephealth.osv.client import OSVClient
from dephealth.parsers import load_manifest
from dephealth.parsers.npm_reports import load_audit, load_outdated
from dephealth.registry.client import NpmRegistryClient
from dephealth.scoring.health_scorer import HealthScorer, ScoringPolicy, select_policy

logger = logging.getLogger(__name__)


def evaluate(
    manifest: Manifest,
    outdated_data: OutdatedData,
    vulnerability_records: Optional[Iterable[Any]] = None,
    policies: Mapping[str, ScoringPolicy] | None = None,
    preferred_policy: str = POLICY_AUTO,
) -> tuple[AnalysisResult, Optional[SecurityResult]]:
    """Run the pure core over already-fetched data.

    Args:
        manifest: Runtime and dev dependency declarations.
        outdated_data: Provider data keyed by package name.
        vulnerability_records: Raw advisory records, or None when no
            vulnerability data is available.
        policies: Named scoring policies (built-ins if omitted).
        preferred_policy: Policy name, or ``auto`` to choose by data availability.

    Returns:
        (AnalysisResult, SecurityResult or None). Identical inputs give
        identical results.
    """
    outdated = UpdateAnalyzer().analyze_manifest(manifest, outdated_data)

    assembler = ReportAssembler()
    security: Optional[SecurityResult] = None
    vulnerabilities = []
    if vulnerability_records is not None:
        vulnerabilities = VulnerabilityNormalizer().normalize(vulnerability_records)
        security = assembler.assemble_security(vulnerabilities)

    policy = select_policy(
        vulnerabilities_available=vulnerability_records is not None,
        policies=policies,
        preferred=preferred_policy,
    )
    score = HealthScorer(policy).score(outdated, vulnerabilities)

    analysis = assembler.assemble(
        manifest.dependencies,
        manifest.dev_dependencies,
        outdated,
        vulnerabilities,
        score,
        policy=policy.name,
    )
    return analysis, security


class AnalysisOrchestrator:
    """Orchestrates the full dependency health workflow."""

    def __init__(
        self,
        config: DepHealthConfig | None = None,
        cache: ResponseCache | None = None,
    ):
        self.config = config or load_config()
        self._cache = cache

    def analyze(
        self,
        target: str,
        manifest: str | None = None,
        outdated_path: str | None = None,
        audit_path: str | None = None,
        enable_registry: bool = True,
        enable_osv: bool = True,
        enable_ai: bool = False,
        policy: str | None = None,
    ) -> DependencyReport:
        """Run full analysis on a project.

        Args:
            target: A package.json file or the project directory.
            manifest: Manifest filename inside a directory target (optional).
            outdated_path: ``npm outdated --json`` output; skips the registry.
            audit_path: ``npm audit --json`` output; skips OSV.dev.
            enable_registry: Query the npm registry when no outdated file is given.
            enable_osv: Query OSV.dev when no audit file is given.
            enable_ai: Add narrative recommendations via Ollama.
            policy: Scoring policy name (defaults to ``scoring.policy``).

        Returns:
            DependencyReport with the update analysis and, if it succeeded,
            the security scan.

        Raises:
            FileNotFoundError, ValueError: Malformed or missing manifest.
            ProviderError: The outdated-data provider failed.
        """
        project = load_manifest(target, manifest)
        tools: list[str] = ["semver"]

        # Step 1: Outdated data (a failure here has no fallback)
        if outdated_path:
            outdated_data: OutdatedData = load_outdated(outdated_path)
            tools.append("npm-outdated")
        elif enable_registry:
            outdated_data = self._fetch_outdated(project)
            tools.append("npm-registry")
        else:
            outdated_data = {}

        # Step 2: Vulnerability data (independently failable)
        records: Optional[list[dict[str, Any]]] = None
        security_error: Optional[str] = None
        try:
            if audit_path:
                records = load_audit(audit_path)
                tools.append("npm-audit")
            elif enable_osv:
                records = self._query_osv(project)
                tools.append("osv")
        except ProviderError as e:
            logger.error("Security scan failed: %s", e)
            security_error = str(e)

        # Step 3: Core
        analysis, security = evaluate(
            project,
            outdated_data,
            records,
            policies=self.config.scoring_policies(),
            preferred_policy=policy or self.config.scoring_policy,
        )
        logger.info(
            "Analysis complete: score=%d (%s), %d outdated, %s",
            analysis.health_score,
            analysis.policy,
            analysis.summary.outdated,
            f"{security.total_vulnerabilities} vulnerabilities" if security else "no security data",
        )

        # Step 4: Narrative
        narrative: Optional[str] = None
        if enable_ai:
            narrative = self._generate_narrative(analysis, security, project.name)
            if narrative:
                tools.append("ollama")

        return DependencyReport(
            project_name=project.name or Path(project.manifest_path).parent.name,
            analysis=analysis,
            security=security,
            security_error=security_error,
            narrative=narrative,
            tools_used=tuple(tools),
        )

    def scan_security(
        self,
        target: str,
        manifest: str | None = None,
        audit_path: str | None = None,
    ) -> SecurityResult:
        """Run only the security scan.

        Raises:
            ProviderError: If the vulnerability provider fails.
        """
        project = load_manifest(target, manifest)
        records = load_audit(audit_path) if audit_path else self._query_osv(project)
        vulnerabilities = VulnerabilityNormalizer().normalize(records)
        return ReportAssembler().assemble_security(vulnerabilities)

    # ─── Providers ────────────────────────────────────────────────────

    def _get_cache(self, ttl: int) -> ResponseCache:
        if self._cache is not None:
            return self._cache
        return ResponseCache(ttl=ttl)

    def _fetch_outdated(self, project: Manifest) -> OutdatedData:
        cache = self._get_cache(self.config.registry_cache_ttl)
        with NpmRegistryClient(
            base_url=self.config.registry_url,
            cache=cache,
            timeout=self.config.registry_timeout,
        ) as client:
            return client.fetch_outdated(project)

    def _query_osv(self, project: Manifest) -> list[dict[str, Any]]:
        cache = self._get_cache(self.config.osv_cache_ttl)
        with OSVClient(cache=cache, timeout=self.config.osv_timeout) as client:
            return client.query_manifest(project)

    def _generate_narrative(
        self,
        analysis: AnalysisResult,
        security: SecurityResult | None,
        project_name: str,
    ) -> Optional[str]:
        try:
            with OllamaBridge(
                base_url=self.config.llm_base_url,
                model=self.config.llm_model,
            ) as llm:
                if not llm.is_available():
                    logger.info(
                        "Ollama not available, skipping recommendations. "
                        "Start Ollama with: ollama serve"
                    )
                    return None
                return llm.generate_recommendations(analysis, security, project_name)
        except Exception as e:
            logger.error("Narrative generation failed: %s", e)
            return None

    # ─── Report Generation ────────────────────────────────────────────

    def generate_report(
        self,
        report: DependencyReport,
        output_path: str | None = None,
    ) -> str:
        """Serialize a report to JSON.

        Args:
            report: The report to serialize.
            output_path: File path to write the report (optional).

        Returns:
            The report content as string.
        """
        content = json.dumps(
            report.model_dump(mode="json", by_alias=True),
            indent=2,
            ensure_ascii=False,
        )

        if output_path:
            Path(output_path).write_text(content, encoding="utf-8")

        return content
