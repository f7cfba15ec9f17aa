"""LLM client abstractions used by the oracle classifier."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urljoin

import httpx

from ..core.config import OracleSettings
from ..core.interfaces import ClassificationError


class LLMError(ClassificationError):
    """Raised when the LLM provider fails to respond as expected."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw JSON text produced for the two prompts."""
        raise NotImplementedError


@dataclass(slots=True)
class OpenAIChatClient:
    """Thin synchronous client for an OpenAI-compatible chat completions API."""

    settings: OracleSettings
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """Send one stateless chat request asking for a JSON object."""
        if not self.settings.api_key:
            raise LLMError("Oracle API key is not configured")

        endpoint = _resolve_endpoint(self.settings.base_url)
        payload: dict[str, object] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_output_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.settings.api_key}"}

        attempts = self.settings.max_retries + 1
        data: dict[str, object] | None = None
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = httpx.post(
                    endpoint,
                    json=payload,
                    headers=headers,
                    timeout=self.settings.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
                break
            except httpx.HTTPError as exc:
                last_error = exc
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc

            if attempt < attempts:
                self.sleep(min(2**attempt, 8))

        if data is None:
            raise LLMError("LLM request failed after retries") from last_error

        return _first_message_content(data)

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"openai:{self.settings.model}"


def _first_message_content(data: dict[str, object]) -> str:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise LLMError("LLM response missing 'choices'")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise LLMError("LLM response missing message content")
    return content


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "chat/completions")


__all__ = ["LLMClient", "LLMError", "OpenAIChatClient"]
