"""Multi-turn HOOK / BODY / CTA refinement chat."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from app.prompts.loader import render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, ChatMessage, build_messages
from app.services.story_generation import ChatGateway

logger = logging.getLogger(__name__)

_PLACEHOLDER_MARKERS = ("Not yet written", "아직 작성되지 않음")
_RESPONSE_PATTERN = re.compile(r"response:\s*(.*?)\Z", re.IGNORECASE | re.DOTALL)


def _section_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"== {name} ==\s*\n(.*?)(?=\n== |\nresponse:|\Z)", re.IGNORECASE | re.DOTALL)


_SECTION_PATTERNS = {name: _section_pattern(name.upper()) for name in ("hook", "body", "cta")}


@dataclass
class StoryParts:
    hook: str = ""
    body: str = ""
    cta: str = ""


@dataclass
class Refinement:
    response: str
    hook: str | None = None
    body: str | None = None
    cta: str | None = None
    completion: CompletionResult | None = None

    def parsed(self) -> dict[str, str]:
        payload = {"response": self.response}
        for name in ("hook", "body", "cta"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload


def parse_refine_response(raw: str) -> Refinement:
    """Pull revised sections and the reply line out of a refinement answer.

    Sections that still hold the "not yet written" placeholder are ignored.
    A reply with no markers at all is treated as plain conversation.
    """
    result = Refinement(response="")
    found_section = False

    for name, pattern in _SECTION_PATTERNS.items():
        match = pattern.search(raw)
        if not match:
            continue
        found_section = True
        content = match.group(1).strip()
        if content and not any(marker in content for marker in _PLACEHOLDER_MARKERS):
            setattr(result, name, content)

    response = _RESPONSE_PATTERN.search(raw)
    if response:
        result.response = response.group(1).strip()
    elif not found_section:
        result.response = raw.strip()
    return result


def refine_story(
    message: str,
    parts: StoryParts,
    gateway: ChatGateway,
    history: Sequence[ChatMessage] = (),
) -> Refinement:
    """Raises ValueError when the user message is blank."""
    if not message or not message.strip():
        raise ValueError("message is required")

    system_prompt = render_prompt("prompt_refine_system", hook=parts.hook, body=parts.body, cta=parts.cta)
    messages = build_messages(system_prompt, message.strip(), history=list(history))
    completion = gateway.chat(messages, DEFAULT_PARAMS["story_refinement"], operation="story_refinement")

    refinement = parse_refine_response(completion.text)
    refinement.completion = completion
    logger.info(
        "refinement turn history=%d changed=%s",
        len(history),
        [name for name in ("hook", "body", "cta") if getattr(refinement, name) is not None],
    )
    return refinement
