"""
OpenRouter chat-completions client.

Used for every prose-producing call (story, scene split, HOOK, CTA, viral
caption, refinement). Requests are plain OpenAI-style chat payloads.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Literal

import httpx

from app.core.exceptions import GatewayError
from app.core.metrics import track_llm_call
from app.services.completion import CompletionResult, TokenUsage

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


class Models:
    CLAUDE_SONNET_4_5 = "anthropic/claude-sonnet-4.5"
    GPT_4O = "openai/gpt-4o"
    GPT_4O_MINI = "openai/gpt-4o-mini"
    GROK_4_FAST = "x-ai/grok-4-fast"


@dataclass(frozen=True)
class ChatParams:
    model: str
    max_tokens: int
    temperature: float


DEFAULT_PARAMS: dict[str, ChatParams] = {
    "story_generation": ChatParams(Models.CLAUDE_SONNET_4_5, 8192, 1.0),
    "hook_generation": ChatParams(Models.CLAUDE_SONNET_4_5, 2048, 0.8),
    "cta_generation": ChatParams(Models.CLAUDE_SONNET_4_5, 2048, 0.8),
    "story_refinement": ChatParams(Models.GPT_4O, 4096, 0.7),
    "viral_content": ChatParams(Models.GPT_4O, 1024, 0.7),
    "scene_splitting": ChatParams(Models.GROK_4_FAST, 8192, 0.3),
    "story_continuation": ChatParams(Models.CLAUDE_SONNET_4_5, 8192, 1.0),
    "character_extraction": ChatParams(Models.GPT_4O_MINI, 2048, 0.7),
    "location_tagging": ChatParams(Models.GPT_4O_MINI, 2000, 0.7),
}


@dataclass
class ChatMessage:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def build_messages(
    system_prompt: str,
    user_message: str,
    history: list[ChatMessage] | None = None,
) -> list[ChatMessage]:
    """System prompt, replayed history, then the current user turn."""
    messages = [ChatMessage("system", system_prompt)]
    messages.extend(history or [])
    messages.append(ChatMessage("user", user_message))
    return messages


class OpenRouterClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise RuntimeError("OPENROUTER_API_KEY must be configured")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def chat(
        self,
        messages: list[ChatMessage],
        params: ChatParams,
        *,
        operation: str = "chat",
        json_mode: bool = False,
    ) -> CompletionResult:
        """Run one chat completion.

        Raises:
            GatewayError: transport failure, non-2xx status, API error body or
                empty content.
        """
        body: dict = {
            "model": params.model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        started = time.perf_counter()
        try:
            with track_llm_call("openrouter", operation):
                with httpx.Client(timeout=self._timeout_seconds, transport=self._transport) as client:
                    resp = client.post(f"{self._base_url}/chat/completions", json=body, headers=headers)
                data = self._decode(resp)
        except httpx.HTTPError as exc:
            logger.error("openrouter.%s transport error model=%s error=%r", operation, params.model, exc)
            raise GatewayError(f"OpenRouter request failed: {exc}", error_type="transport") from exc

        choices = data.get("choices") or []
        message = (choices[0].get("message") or {}) if choices else {}
        content = message.get("content")
        if not content:
            raise GatewayError(
                "Empty response from OpenRouter API",
                status_code=resp.status_code,
                error_type="empty_response",
            )

        usage = data.get("usage") or {}
        result = CompletionResult(
            text=content,
            model=data.get("model") or params.model,
            usage=TokenUsage(
                input_tokens=int(usage.get("prompt_tokens") or 0),
                output_tokens=int(usage.get("completion_tokens") or 0),
            ),
            latency_ms=(time.perf_counter() - started) * 1000,
            finish_reason=choices[0].get("finish_reason"),
            request_id=data.get("id"),
        )
        logger.info(
            "openrouter.%s complete model=%s latency_ms=%.0f tokens=%d",
            operation,
            result.model,
            result.latency_ms,
            result.usage.total_tokens,
        )
        return result

    def _decode(self, resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        error = data.get("error")
        if resp.status_code >= 400 or error:
            error = error if isinstance(error, dict) else {}
            raise GatewayError(
                error.get("message") or f"OpenRouter API error: {resp.status_code}",
                status_code=resp.status_code,
                error_type=error.get("type") or "api_error",
            )
        return data
