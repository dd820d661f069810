"""Ollama LLM bridge for DepHealth.

Provides optional narrative recommendations using locally-hosted LLMs
via the Ollama REST API. Narrative output is additive: it never feeds
back into scores or counts, and an unavailable Ollama only means the
report has no narrative.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from dephealth_shared.types.enums import Severity
from dephealth_shared.types.models import (
    AnalysisResult,
    SecurityResult,
)
from dephealth.llm.prompts import HEALTH_RECOMMENDATION_PROMPT

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.UNKNOWN: 4,
}

_MARKDOWN_PATTERNS = [
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),     # Headers
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),             # Bold
    (re.compile(r"`(.+?)`"), r"\1"),                   # Inline code
]


class OllamaBridge:
    """Bridge to Ollama local LLM for narrative recommendations.

    If Ollama is not available, all generation methods return None.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        timeout: float = 60.0,
    ):
        """Initialize the Ollama bridge.

        Args:
            base_url: Ollama server URL.
            model: Model name to use for generation.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout)
        self._available: Optional[bool] = None

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ─── Health Check ─────────────────────────────────────────────────────

    def is_available(self) -> bool:
        """Check if Ollama server is running and the model is available.

        Caches the result after the first check.
        """
        if self._available is not None:
            return self._available

        try:
            response = self._client.get(
                f"{self.base_url}/api/tags",
                timeout=5.0,
            )
            response.raise_for_status()
            models = response.json().get("models", [])
            model_names = [m.get("name", "") for m in models]

            # Exact match or base name match
            base_model = self.model.split(":")[0]
            self._available = any(
                self.model in name or base_model in name
                for name in model_names
            )

            if not self._available:
                logger.warning(
                    "Ollama is running but model '%s' not found. "
                    "Available models: %s",
                    self.model,
                    ", ".join(model_names) or "(none)",
                )
            else:
                logger.info("Ollama available with model: %s", self.model)

            return self._available

        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            logger.info("Ollama not available: %s", e)
            self._available = False
            return False

    # ─── Generation ───────────────────────────────────────────────────────

    def generate(self, prompt: str, max_tokens: int = 512) -> Optional[str]:
        """Generate text using Ollama.

        Args:
            prompt: The prompt to send to the LLM.
            max_tokens: Upper bound on generated tokens.

        Returns:
            Generated text with markdown stripped, or None if unavailable.
        """
        if not self.is_available():
            return None

        try:
            response = self._client.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {
                        "temperature": 0.3,
                        "num_predict": max_tokens,
                        "top_p": 0.9,
                    },
                },
            )
            response.raise_for_status()
            text = response.json().get("response", "").strip()
            return _strip_markdown(text) or None

        except httpx.HTTPStatusError as e:
            logger.error("Ollama generation failed: %s", e)
            return None
        except httpx.RequestError as e:
            logger.error("Ollama connection error: %s", e)
            self._available = False
            return None

    # ─── Recommendations ──────────────────────────────────────────────────

    def generate_recommendations(
        self,
        analysis: AnalysisResult,
        security: SecurityResult | None = None,
        project_name: str = "",
        max_items: int = 20,
    ) -> Optional[str]:
        """Generate a prioritized action plan for the whole project.

        Args:
            analysis: The computed update analysis.
            security: The security scan, if one succeeded.
            project_name: Display name for the prompt.
            max_items: Cap on listed packages/vulnerabilities (context window).

        Returns:
            Narrative text, or None if unavailable or nothing to say.
        """
        vulnerabilities = list(security.vulnerabilities) if security else []
        if not analysis.outdated and not vulnerabilities:
            return None

        outdated_lines = [
            f"- {e.package}: {e.current} -> {e.latest} ({e.update_type.value}, declared {e.version_range})"
            for e in analysis.outdated[:max_items]
        ]

        ranked = sorted(vulnerabilities, key=lambda v: _SEVERITY_ORDER[v.severity])
        vuln_lines = [
            f"- [{v.severity.value}] {v.id} in {v.package}: {v.summary or 'no summary'}"
            f" (fix: {v.fixed_version or 'none'})"
            for v in ranked[:max_items]
        ]

        prompt = HEALTH_RECOMMENDATION_PROMPT.format(
            project_name=project_name or "unnamed",
            health_score=analysis.health_score,
            total_deps=analysis.summary.total_deps,
            total_dev_deps=analysis.summary.total_dev_deps,
            major_updates=analysis.summary.major_updates,
            minor_updates=analysis.summary.minor_updates,
            patch_updates=analysis.summary.patch_updates,
            outdated_list="\n".join(outdated_lines) or "- none",
            total_vulns=len(vulnerabilities),
            vulnerability_list="\n".join(vuln_lines) or "- none",
        )
        return self.generate(prompt)


def _strip_markdown(text: str) -> str:
    for pattern, replacement in _MARKDOWN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()
