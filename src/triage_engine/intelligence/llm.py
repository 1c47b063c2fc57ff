"""LLM client abstractions used by the semantic classifier."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urljoin

import anthropic
import httpx

from triage_engine.core.config import LlmSettings


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def generate(self, prompt: str) -> str:
        """Return the raw text completion for ``prompt``."""
        raise NotImplementedError


@dataclass(slots=True)
class OllamaClient:
    """Thin synchronous client for the Ollama HTTP API.

    A single request is made per call; callers degrade instead of retrying.
    """

    settings: LlmSettings

    def generate(self, prompt: str) -> str:
        """Send a completion request to the Ollama server."""
        endpoint = _resolve_endpoint(self.settings.base_url)
        options: dict[str, object] = {"temperature": self.settings.temperature}
        if self.settings.max_output_tokens is not None:
            options["num_predict"] = self.settings.max_output_tokens
        payload: dict[str, object] = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        try:
            response = httpx.post(
                endpoint,
                json=payload,
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:  # pragma: no cover - network dependent
            raise LLMError(f"LLM request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise LLMError("LLM returned invalid JSON") from exc

        result = data.get("response") if isinstance(data, dict) else None
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self.settings.model}"


@dataclass(slots=True)
class AnthropicClient:
    """Synchronous Claude Messages API client with retries disabled."""

    settings: LlmSettings
    _client: anthropic.Anthropic | None = field(default=None, repr=False)

    def generate(self, prompt: str) -> str:
        """Send ``prompt`` as a single user message and return the text reply."""
        if self._client is None:
            self._client = anthropic.Anthropic(
                api_key=self.settings.api_key,
                timeout=self.settings.timeout_seconds,
                max_retries=0,
            )
        try:
            response = self._client.messages.create(
                model=self.settings.model,
                max_tokens=self.settings.max_output_tokens or 256,
                temperature=self.settings.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:  # pragma: no cover - network dependent
            raise LLMError(f"LLM request failed: {exc}") from exc

        for block in response.content:
            if block.type == "text":
                return block.text
        raise LLMError("LLM response contained no text block")

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"anthropic:{self.settings.model}"


def build_llm_client(settings: LlmSettings) -> LLMClient | None:
    """Return the client selected by ``settings.provider``, if any."""
    if settings.provider == "anthropic":
        return AnthropicClient(settings)
    if settings.provider == "ollama":
        return OllamaClient(settings)
    return None


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "api/generate")


__all__ = [
    "AnthropicClient",
    "LLMClient",
    "LLMError",
    "OllamaClient",
    "build_llm_client",
]
