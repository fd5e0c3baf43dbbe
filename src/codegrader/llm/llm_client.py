"""
codegrader.llm.llm_client

Thin wrapper around the OpenAI Responses API.

Design goals:
- Keep all OpenAI SDK usage in one place.
- Return the model's raw text (expected to be JSON) plus lightweight metadata.
- Translate SDK failures into codegrader.exceptions.LLMError subclasses
  (authentication, rate limit, server, malformed response).

Env vars supported:
- OPENAI_API_KEY (required unless you pass api_key)
- OPENAI_MODEL (default: gpt-4o-mini)
- OPENAI_BASE_URL (optional, for OpenAI-compatible endpoints)
- OPENAI_TIMEOUT_SECONDS (default: 60)
- OPENAI_MAX_RETRIES (default: 2)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai
from openai import OpenAI

from codegrader.exceptions import (
    LLMAuthenticationError,
    LLMError,
    LLMRateLimitError,
    LLMServerError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMResponse:
    """What the rest of the system needs from the model call."""
    text: str
    response_id: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


def validate_api_key(api_key: Optional[str]) -> Optional[str]:
    """
    Cheap shape check before any network call.

    Returns an error message, or None when the key looks usable.
    """
    if not api_key:
        return "API key is not set"
    if not api_key.startswith("sk-"):
        return 'API key appears to be invalid (should start with "sk-")'
    return None


def translate_error(e: Exception) -> LLMError:
    """Map an OpenAI SDK exception onto the codegrader taxonomy."""
    status = getattr(e, "status_code", None)
    if isinstance(e, openai.AuthenticationError) or status == 401:
        return LLMAuthenticationError("Invalid OpenAI API key. Please check your configuration.", status)
    if isinstance(e, openai.RateLimitError) or status == 429:
        return LLMRateLimitError("OpenAI API rate limit exceeded. Please try again later.", status)
    if isinstance(e, openai.InternalServerError) or (isinstance(status, int) and status >= 500):
        return LLMServerError("OpenAI API server error. Please try again later.", status)
    return LLMError(f"LLM integration failed: {e}", status)


class LLMClient:
    """
    Client for calling an OpenAI model to produce JSON code commentary.

    Usage:
        llm = LLMClient()
        resp = llm.generate(user_prompt=...)
        raw_json = resp.text
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        temperature: Optional[float] = 0.3,
        max_output_tokens: Optional[int] = 2000,
    ) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise LLMAuthenticationError("OpenAI API key not configured. Please provide an API key.")

        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL") or None
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

        self.timeout_seconds = float(timeout_seconds or os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))
        self.max_retries = int(max_retries or os.getenv("OPENAI_MAX_RETRIES", "2"))

        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            max_retries=self.max_retries,
        )

    def generate(
        self,
        *,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """
        Call the model and return its *text output*.

        We request "json_object" formatting; the prompts also demand JSON-only
        output. The API requires the word "JSON" to appear in the input, which
        every codegrader prompt does.
        """
        if not user_prompt or not user_prompt.strip():
            raise LLMError("user_prompt is empty.")

        messages = []
        if system_prompt and system_prompt.strip():
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "input": messages,
            "text": {"format": {"type": "json_object"}},
        }

        temp = temperature if temperature is not None else self.temperature
        if temp is not None:
            payload["temperature"] = float(temp)
        if self.max_output_tokens:
            payload["max_output_tokens"] = int(self.max_output_tokens)

        if extra:
            payload.update(extra)

        try:
            resp = self._client.responses.create(**payload)
        except openai.OpenAIError as e:
            logger.warning("OpenAI API call failed: %s", e)
            raise translate_error(e) from e

        text = getattr(resp, "output_text", None)
        if not text or not str(text).strip():
            raise MalformedResponseError("No response content from LLM")

        usage = None
        usage_obj = getattr(resp, "usage", None)
        if usage_obj is not None and hasattr(usage_obj, "model_dump"):
            usage = usage_obj.model_dump()

        return LLMResponse(
            text=str(text).strip(),
            response_id=getattr(resp, "id", None),
            model=getattr(resp, "model", None) or self.model,
            usage=usage,
        )
