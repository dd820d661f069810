"""Prompt templates for DepHealth LLM interactions.

These prompts are designed for local LLMs (Ollama) with limited context
windows. They are concise and structured to produce consistent output.
"""

# ─── Project Recommendation Prompt ───────────────────────────────────────────

HEALTH_RECOMMENDATION_PROMPT = """You are a dependency management expert. Review this project's dependency health report.

Project: {project_name}
Health Score: {health_score}/100
Dependencies: {total_deps} runtime, {total_dev_deps} development
Outdated: {major_updates} major, {minor_updates} minor, {patch_updates} patch

Outdated packages:
{outdated_list}

Known vulnerabilities ({total_vulns}):
{vulnerability_list}

Classify each item as one of: Update Now (security fixes), Consider Updating
(useful features), Safe to Skip (cosmetic), Research Required (major versions).
Then give a 3-5 sentence prioritized action plan. Do not restate the health
score. Do NOT include markdown formatting."""
