"""LLM integration module for DepHealth."""

from dephealth.llm.ollama_bridge import OllamaBridge

__all__ = ["OllamaBridge"]
