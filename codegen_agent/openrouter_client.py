"""Chat-completions client for the code generation and QA sessions."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

import requests

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
APP_TITLE = "codegen-agent"


@dataclass(frozen=True)
class LLMMessage:
    role: str
    content: str


class LLMClient(Protocol):
    def chat(self, messages: list[LLMMessage], temperature: float = 0.2) -> str: ...


class OpenRouterReplyError(ValueError):
    """The provider answered, but not with a usable completion."""


class OpenRouterClient:
    """Blocking client; callers on the event loop wrap chat() in asyncio.to_thread."""

    def __init__(self, api_key: str | None, model: str | None, *, timeout_seconds: int = 120):
        if not api_key:
            raise ValueError("Missing open_router_api_key")
        if not model:
            raise ValueError("Missing open_router_model_name")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds

    def chat(self, messages: list[LLMMessage], temperature: float = 0.2) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
        }
        resp = requests.post(
            OPENROUTER_URL,
            headers=self._headers(),
            data=json.dumps(payload),
            timeout=self.timeout_seconds,
        )
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as e:
            raise OpenRouterReplyError(f"{self.model} returned a non-JSON body") from e
        return _completion_text(data, self.model)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": APP_TITLE,
        }


def _completion_text(data: Any, model: str) -> str:
    # OpenRouter reports some upstream failures as a 200 with an "error" object
    if isinstance(data, dict) and data.get("error"):
        error = data["error"]
        detail = error.get("message") if isinstance(error, dict) else error
        raise OpenRouterReplyError(f"{model} returned an error: {detail}")

    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise OpenRouterReplyError(f"{model} returned no choices")

    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        reason = choices[0].get("finish_reason")
        raise OpenRouterReplyError(f"{model} returned no message content (finish_reason={reason})")
    return content
