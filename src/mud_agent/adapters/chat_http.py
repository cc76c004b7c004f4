"""Chat-completion HTTP client for the agent port.

Two wire shapes are supported:

    "ollama"  POST {base_url}/api/chat
              {"model", "messages", "options": {"temperature"}, "stream": false}
              Response: {"message": {"content": "..."}}
    "openai"  POST {base_url}/chat/completions
              {"model", "messages", "temperature", "stream": false}
              Response: {"choices": [{"message": {"content": "..."}}]}

Ollama accepts session text under the ``tool`` role; OpenAI-compatible
servers do not, so it is sent as ``user`` there.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Sequence

import httpx

from ..core.errors import AgentCallError
from ..core.types import Message, Role

ProviderFormat = Literal["ollama", "openai"]

_ROLE_NAMES: dict[ProviderFormat, dict[Role, str]] = {
    "ollama": {Role.INSTRUCTION: "system", Role.AGENT_TEXT: "assistant", Role.SESSION_TEXT: "tool"},
    "openai": {Role.INSTRUCTION: "system", Role.AGENT_TEXT: "assistant", Role.SESSION_TEXT: "user"},
}


class ChatCompletionClient:
    def __init__(
        self,
        base_url: str,
        model: str,
        provider_format: ProviderFormat = "ollama",
        temperature: float = 0.7,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if provider_format not in _ROLE_NAMES:
            raise ValueError(f"unsupported provider format: {provider_format!r}")
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._format = provider_format
        self._temperature = temperature
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._logger = logger or logging.getLogger(__name__)

    @property
    def provider_format(self) -> ProviderFormat:
        return self._format

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._format == "openai" and self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def wire_messages(self, messages: Sequence[Message]) -> list[dict[str, str]]:
        roles = _ROLE_NAMES[self._format]
        return [{"role": roles[m.role], "content": m.content} for m in messages]

    def _build_request(self, messages: Sequence[Message]) -> tuple[str, dict[str, Any]]:
        wire = self.wire_messages(messages)
        if self._format == "openai":
            return f"{self._base_url}/chat/completions", {
                "model": self._model,
                "messages": wire,
                "temperature": self._temperature,
                "stream": False,
            }
        return f"{self._base_url}/api/chat", {
            "model": self._model,
            "messages": wire,
            "options": {"temperature": self._temperature},
            "stream": False,
        }

    def _parse_response(self, data: Any) -> str:
        try:
            if self._format == "openai":
                content = data["choices"][0]["message"]["content"]
            else:
                content = data["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AgentCallError(f"Unexpected response format from {self._format} backend") from e
        if not isinstance(content, str):
            raise AgentCallError(f"Unexpected response format from {self._format} backend")
        return content

    async def complete(self, messages: Sequence[Message]) -> str:
        url, body = self._build_request(messages)
        self._logger.debug("agent call url=%s messages=%d", url, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            raise AgentCallError(f"Agent backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise AgentCallError(f"Agent backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise AgentCallError(f"Cannot reach agent backend at {self._base_url}: {e}") from e
        except ValueError as e:
            raise AgentCallError("Agent backend returned invalid JSON") from e

        text = self._parse_response(data)
        self._logger.debug("agent response len=%d", len(text))
        return text
