"""Provider-neutral result types shared by the text and vision gateways."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "input": self.input_tokens,
            "output": self.output_tokens,
            "total": self.total_tokens,
        }


@dataclass
class CompletionResult:
    """Raw text returned by a model plus the metadata callers log."""

    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    finish_reason: str | None = None
    request_id: str | None = None

    def usage_payload(self) -> dict:
        payload = {
            "model": self.model,
            "tokens": self.usage.to_dict(),
            "latencyMs": round(self.latency_ms, 1),
        }
        if self.finish_reason:
            payload["finishReason"] = self.finish_reason
        return payload
