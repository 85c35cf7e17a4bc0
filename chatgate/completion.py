"""Chat-completion client with a placeholder fallback.

The client never raises for upstream problems: a missing credential, a
non-2xx status, an empty ``choices`` list, a transport error or a malformed
body all end in one of the mock replies below, after being logged.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import asdict, dataclass
from typing import Any, Callable, Literal, Sequence

import aiohttp

log = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]

MOCK_TEMPLATES: tuple[str, ...] = (
    'I understand you said: "{message}". This is a mock response since no API key is configured.',
    'Thank you for your message: "{message}". Please configure your ChatGPT API key for real responses.',
    'Mock AI Response: I received your message "{message}" but I\'m running in demo mode.',
    'Hello! You asked: "{message}". This is a placeholder response - please add your OpenAI API key.',
)


class UpstreamError(Exception):
    """The upstream API answered, but not with a usable completion."""


@dataclass(frozen=True)
class CompletionConfig:
    api_key: str = ""
    model: str = "gpt-3.5-turbo"
    max_tokens: int = 1000
    temperature: float = 0.7
    base_url: str = "https://api.openai.com/v1"

    def __post_init__(self) -> None:
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be a positive integer, got {self.max_tokens!r}")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be within 0..2, got {self.temperature!r}")


@dataclass(frozen=True)
class ChatTurn:
    role: Role
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    turns: tuple[ChatTurn, ...]
    max_tokens: int
    temperature: float

    def to_payload(self) -> dict[str, Any]:
        """Upstream JSON body (OpenAI chat completions format)."""
        return {
            "model": self.model,
            "messages": [asdict(turn) for turn in self.turns],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }


def build_turns(message: str, system_prompt: str | None = None) -> tuple[ChatTurn, ...]:
    turns: list[ChatTurn] = []
    if system_prompt:
        turns.append(ChatTurn(role="system", content=system_prompt))
    turns.append(ChatTurn(role="user", content=message))
    return tuple(turns)


def extract_content(body: str) -> str:
    """Return the first choice's message content from a completion body.

    Raises UpstreamError when the body is not JSON, has no choices, or the
    first choice carries no string content.
    """
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, ValueError) as exc:
        raise UpstreamError(f"Malformed response body: {exc}") from exc
    if not isinstance(parsed, dict):
        raise UpstreamError("Response body is not a JSON object")
    choices = parsed.get("choices")
    if not choices:
        raise UpstreamError("No response from upstream API")
    try:
        content = choices[0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamError(f"Unexpected choice shape: {exc!r}") from exc
    if not isinstance(content, str):
        raise UpstreamError("First choice has no text content")
    return content


class CompletionClient:
    """Best-effort chat completion against an OpenAI-compatible API."""

    def __init__(
        self,
        config: CompletionConfig,
        choose: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self.config = config
        self.choose = choose
        self._api_key = config.api_key or ""

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    def update_credential(self, api_key: str) -> None:
        """Replace the credential used by subsequent calls. Not validated."""
        self._api_key = api_key

    def mock_response(self, message: str) -> str:
        return self.choose(MOCK_TEMPLATES).format(message=message)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def send_message(
        self,
        message: str,
        conversation_id: str | None = None,
        model: str | None = None,
        system_prompt: str | None = None,
    ) -> str:
        if not self.has_credential:
            log.warning("Upstream API key not configured, returning mock response")
            return self.mock_response(message)

        if conversation_id:
            log.debug("conversation_id=%s is not forwarded upstream", conversation_id)

        request = CompletionRequest(
            model=model or self.config.model,
            turns=build_turns(message, system_prompt),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url, json=request.to_payload(), headers=self._headers()
                ) as resp:
                    body = await resp.text()
                    if not 200 <= resp.status < 300:
                        raise UpstreamError(f"Upstream API error: {resp.status} - {body}")
            return extract_content(body)
        except (UpstreamError, UnicodeDecodeError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.error("Chat completion failed, falling back to mock response: %s", exc)
            return self.mock_response(message)

    async def validate_credential(self) -> bool:
        """Probe the upstream models listing with the held credential."""
        if not self.has_credential:
            return False
        url = f"{self.config.base_url.rstrip('/')}/models"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, headers=self._headers()) as resp:
                    return 200 <= resp.status < 300
        except (aiohttp.ClientError, asyncio.TimeoutError):
            log.debug("Credential probe failed", exc_info=True)
            return False
