# codegrader/llm/__init__.py
"""
LLM package.

Keep all model-provider specifics in this package so the rest of the codebase
stays provider-agnostic.
"""

from .llm_client import LLMClient, LLMResponse, translate_error, validate_api_key

__all__ = ["LLMClient", "LLMResponse", "translate_error", "validate_api_key"]
