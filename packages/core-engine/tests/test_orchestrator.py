"""Tests for the analysis orchestrator and the pure evaluation core."""

import functools
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from dephealth_shared.types.enums import Severity, UpdateType
from dephealth_shared.types.models import Manifest, OutdatedInfo

from dephealth.analysis.orchestrator import AnalysisOrchestrator, evaluate
from dephealth.cache import ResponseCache
from dephealth.config import DepHealthConfig
from dephealth.errors import ProviderError
from dephealth.osv.client import OSVClient
from dephealth.scoring.health_scorer import ScoringPolicy


REACT_MANIFEST = Manifest(dependencies={"react": "^18.2.0"})
REACT_OUTDATED = {"react": {"current": "18.2.0", "latest": "19.0.0", "wanted": "18.2.0"}}


@pytest.fixture
def config():
    """Default configuration, independent of any .dephealth.yaml on disk."""
    return DepHealthConfig()


@pytest.fixture
def orchestrator(config):
    return AnalysisOrchestrator(config=config)


class TestEvaluate:
    """The pure core over already-fetched data."""

    def test_react_scenario(self):
        analysis, security = evaluate(REACT_MANIFEST, REACT_OUTDATED, [])

        assert analysis.health_score == 95
        assert analysis.summary.major_updates == 1
        assert analysis.policy == "full"
        [entry] = analysis.outdated
        assert entry.model_dump(by_alias=True, exclude={"wanted", "is_dev"}) == {
            "package": "react",
            "current": "18.2.0",
            "latest": "19.0.0",
            "type": UpdateType.MAJOR,
            "versionRange": "^18.2.0",
        }
        assert security is not None
        assert security.total_vulnerabilities == 0

    def test_no_vulnerability_data_uses_outdated_only(self):
        analysis, security = evaluate(REACT_MANIFEST, REACT_OUTDATED, None)
        assert security is None
        assert analysis.policy == "outdated-only"
        assert analysis.health_score == 90

    def test_major_and_critical(self):
        records = [{"id": "GHSA-1", "package": "react", "severity": "critical"}]
        analysis, security = evaluate(REACT_MANIFEST, REACT_OUTDATED, records)
        assert analysis.health_score == 80
        assert analysis.vulnerability_summary.critical == 1
        assert security.vulnerabilities[0].severity == Severity.CRITICAL

    def test_empty_manifest(self):
        analysis, _ = evaluate(Manifest(), {}, [])
        assert analysis.health_score == 100
        assert analysis.total_dependencies == 0
        assert analysis.outdated == ()

    def test_idempotent(self):
        records = [{"id": "GHSA-1", "package": "react", "severity": "moderate"}]
        first = evaluate(REACT_MANIFEST, REACT_OUTDATED, records)
        second = evaluate(REACT_MANIFEST, REACT_OUTDATED, records)

        assert first == second
        assert first[0].model_dump_json(by_alias=True) == second[0].model_dump_json(by_alias=True)

    def test_inputs_not_mutated(self):
        deps = {"react": "^18.2.0"}
        outdated = {"react": {"current": "18.2.0", "latest": "19.0.0"}}
        records = [{"id": "GHSA-1", "package": "react", "severity": "high"}]
        snapshot = json.dumps([deps, outdated, records], sort_keys=True)

        evaluate(Manifest(dependencies=deps), outdated, records)
        assert json.dumps([deps, outdated, records], sort_keys=True) == snapshot

    def test_custom_policies(self):
        strict = ScoringPolicy(name="full", update_weights={UpdateType.MAJOR: 30})
        analysis, _ = evaluate(REACT_MANIFEST, REACT_OUTDATED, [], policies={"full": strict})
        assert analysis.health_score == 70

    def test_explicit_policy(self):
        analysis, _ = evaluate(REACT_MANIFEST, REACT_OUTDATED, [], preferred_policy="outdated-only")
        assert analysis.health_score == 90


class TestOrchestratorAnalyze:
    """Test the analyze workflow."""

    def test_analyze_from_npm_files(self, orchestrator, manifests_dir, npm_outdated_path, npm_audit_path):
        report = orchestrator.analyze(
            target=str(manifests_dir),
            outdated_path=npm_outdated_path,
            audit_path=npm_audit_path,
        )

        assert report.project_name == "fixture-app"
        assert report.tools_used == ("semver", "npm-outdated", "npm-audit")

        analysis = report.analysis
        assert [(e.package, e.update_type, e.is_dev) for e in analysis.outdated] == [
            ("react", UpdateType.MAJOR, False),
            ("express", UpdateType.MINOR, False),
            ("jest", UpdateType.MAJOR, True),
        ]
        assert analysis.total_dependencies == 6
        # 5 + 2 + 5 for updates, 10 + 5 + 10 for vulnerabilities
        assert analysis.health_score == 63
        assert report.security.summary.high == 2
        assert report.security.summary.medium == 1
        assert report.security_error is None

    def test_analyze_offline(self, orchestrator, tmp_project):
        report = orchestrator.analyze(
            target=str(tmp_project),
            enable_registry=False,
            enable_osv=False,
        )
        assert report.analysis.health_score == 100
        assert report.analysis.policy == "outdated-only"
        assert report.security is None
        assert report.tools_used == ("semver",)

    @patch.object(AnalysisOrchestrator, "_query_osv")
    def test_security_failure_keeps_analysis(self, mock_osv, orchestrator, manifests_dir, npm_outdated_path):
        mock_osv.side_effect = ProviderError("osv", "batch query failed")

        report = orchestrator.analyze(target=str(manifests_dir), outdated_path=npm_outdated_path)

        assert report.security is None
        assert report.security_error == "osv: batch query failed"
        assert report.analysis.policy == "outdated-only"
        assert report.analysis.health_score == 100 - 10 - 5 - 10
        assert "osv" not in report.tools_used

    def test_unparseable_osv_response_keeps_analysis(self, config, manifests_dir, npm_outdated_path, tmp_path):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>gateway</html>")
        )
        orchestrator = AnalysisOrchestrator(
            config=config,
            cache=ResponseCache(db_path=tmp_path / "cache.db"),
        )

        with patch(
            "dephealth.analysis.orchestrator.OSVClient",
            functools.partial(OSVClient, transport=transport),
        ):
            report = orchestrator.analyze(target=str(manifests_dir), outdated_path=npm_outdated_path)

        assert report.security is None
        assert report.security_error.startswith("osv: invalid JSON response")
        assert report.analysis.policy == "outdated-only"
        assert report.analysis.health_score == 75

    @patch.object(AnalysisOrchestrator, "_fetch_outdated")
    def test_update_failure_propagates(self, mock_fetch, orchestrator, tmp_project):
        mock_fetch.side_effect = ProviderError("npm-registry", "react: HTTP 503")

        with pytest.raises(ProviderError, match="npm-registry"):
            orchestrator.analyze(target=str(tmp_project), enable_osv=False)

    @patch.object(AnalysisOrchestrator, "_query_osv")
    @patch.object(AnalysisOrchestrator, "_fetch_outdated")
    def test_analyze_with_providers(self, mock_fetch, mock_osv, orchestrator, tmp_project):
        mock_fetch.return_value = {
            "react": OutdatedInfo(current="18.2.0", latest="19.0.0", wanted="18.3.1"),
        }
        mock_osv.return_value = []

        report = orchestrator.analyze(target=str(tmp_project))

        assert report.analysis.health_score == 95
        assert report.analysis.outdated[0].wanted == "18.3.1"
        assert report.tools_used == ("semver", "npm-registry", "osv")

    def test_policy_from_config(self, tmp_project):
        orchestrator = AnalysisOrchestrator(config=DepHealthConfig({"scoring": {"policy": "full"}}))
        report = orchestrator.analyze(
            target=str(tmp_project),
            outdated_path=None,
            enable_registry=False,
            enable_osv=False,
        )
        assert report.analysis.policy == "full"

    def test_policy_argument_overrides_config(self, orchestrator, tmp_project):
        report = orchestrator.analyze(
            target=str(tmp_project),
            enable_registry=False,
            enable_osv=False,
            policy="full",
        )
        assert report.analysis.policy == "full"

    def test_unknown_policy(self, orchestrator, tmp_project):
        with pytest.raises(ValueError):
            orchestrator.analyze(
                target=str(tmp_project),
                enable_registry=False,
                enable_osv=False,
                policy="lenient",
            )

    def test_missing_manifest(self, orchestrator, tmp_path):
        with pytest.raises(FileNotFoundError):
            orchestrator.analyze(target=str(tmp_path), enable_registry=False, enable_osv=False)

    def test_project_name_falls_back_to_directory(self, orchestrator, tmp_path):
        project = tmp_path / "unnamed-app"
        project.mkdir()
        (project / "package.json").write_text('{"dependencies": {}}')

        report = orchestrator.analyze(target=str(project), enable_registry=False, enable_osv=False)
        assert report.project_name == "unnamed-app"


class TestOrchestratorNarrative:
    @patch("dephealth.analysis.orchestrator.OllamaBridge")
    def test_narrative_added(self, mock_bridge_cls, orchestrator, manifests_dir, npm_outdated_path):
        llm = MagicMock()
        llm.is_available.return_value = True
        llm.generate_recommendations.return_value = "Upgrade react first."
        mock_bridge_cls.return_value.__enter__.return_value = llm

        report = orchestrator.analyze(
            target=str(manifests_dir),
            outdated_path=npm_outdated_path,
            enable_osv=False,
            enable_ai=True,
        )

        assert report.narrative == "Upgrade react first."
        assert report.tools_used[-1] == "ollama"

    @patch("dephealth.analysis.orchestrator.OllamaBridge")
    def test_narrative_does_not_change_numbers(self, mock_bridge_cls, orchestrator, manifests_dir, npm_outdated_path):
        llm = MagicMock()
        llm.is_available.return_value = True
        llm.generate_recommendations.return_value = "Everything is fine."
        mock_bridge_cls.return_value.__enter__.return_value = llm

        kwargs = dict(target=str(manifests_dir), outdated_path=npm_outdated_path, enable_osv=False)
        with_ai = orchestrator.analyze(enable_ai=True, **kwargs)
        without_ai = orchestrator.analyze(enable_ai=False, **kwargs)

        assert with_ai.analysis == without_ai.analysis

    @patch("dephealth.analysis.orchestrator.OllamaBridge")
    def test_ollama_unavailable(self, mock_bridge_cls, orchestrator, tmp_project):
        llm = MagicMock()
        llm.is_available.return_value = False
        mock_bridge_cls.return_value.__enter__.return_value = llm

        report = orchestrator.analyze(
            target=str(tmp_project), enable_registry=False, enable_osv=False, enable_ai=True
        )
        assert report.narrative is None
        assert "ollama" not in report.tools_used

    @patch("dephealth.analysis.orchestrator.OllamaBridge")
    def test_narrative_failure_is_logged(self, mock_bridge_cls, orchestrator, tmp_project, caplog):
        mock_bridge_cls.side_effect = RuntimeError("boom")

        report = orchestrator.analyze(
            target=str(tmp_project), enable_registry=False, enable_osv=False, enable_ai=True
        )
        assert report.narrative is None
        assert "Narrative generation failed" in caplog.text


class TestScanSecurity:
    def test_scan_from_audit_file(self, orchestrator, manifests_dir, npm_audit_path):
        result = orchestrator.scan_security(str(manifests_dir), audit_path=npm_audit_path)
        assert result.total_vulnerabilities == 3

    @patch.object(AnalysisOrchestrator, "_query_osv")
    def test_scan_failure_propagates(self, mock_osv, orchestrator, tmp_project):
        mock_osv.side_effect = ProviderError("osv", "batch query failed")
        with pytest.raises(ProviderError):
            orchestrator.scan_security(str(tmp_project))


class TestReportGeneration:
    def test_json_report(self, orchestrator, manifests_dir, npm_outdated_path, npm_audit_path, tmp_path):
        report = orchestrator.analyze(
            target=str(manifests_dir),
            outdated_path=npm_outdated_path,
            audit_path=npm_audit_path,
        )
        output = tmp_path / "report.json"
        content = orchestrator.generate_report(report, output_path=str(output))

        assert output.read_text(encoding="utf-8") == content
        data = json.loads(content)
        assert data["projectName"] == "fixture-app"
        assert data["analysis"]["healthScore"] == 63
        assert data["analysis"]["outdated"][0]["versionRange"] == "^18.2.0"
        assert data["analysis"]["vulnerabilitySummary"]["moderate"] == 1
        assert data["security"]["totalVulnerabilities"] == 3
        assert data["securityError"] is None
        assert data["toolsUsed"] == ["semver", "npm-outdated", "npm-audit"]
        assert "analyzedAt" in data
