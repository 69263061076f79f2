"""Sequels: continue a finished story under a numbered title."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.core.exceptions import GatewayError
from app.prompts.loader import render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, build_messages
from app.services.story_generation import DEFAULT_LEVEL, ChatGateway, level_rules

logger = logging.getLogger(__name__)

_NUMBERED_TITLE = re.compile(r"^(.+?)\((\d+)\)$")


@dataclass
class ContinuedStory:
    title: str
    story: str
    completion: CompletionResult

    @property
    def content(self) -> str:
        return f"{self.title}\n{self.story}"


def next_title(previous_title: str) -> str:
    """`Title(3)` becomes `Title(4)`; an unnumbered title gets `(2)`."""
    match = _NUMBERED_TITLE.match(previous_title)
    if match:
        return f"{match.group(1)}({int(match.group(2)) + 1})"
    return f"{previous_title}(2)"


def continue_story(
    previous_story: str,
    previous_title: str,
    gateway: ChatGateway,
    *,
    level: int = DEFAULT_LEVEL,
) -> ContinuedStory:
    """Write the next part of a story in the same voice and cast.

    Raises:
        ValueError: the previous story is blank.
        GatewayError: the call failed or returned only whitespace.
    """
    if not previous_story or not previous_story.strip():
        raise ValueError("previous story is required")

    messages = build_messages(
        render_prompt("prompt_story_continuation_system", level_rules=level_rules(level)),
        previous_story.strip(),
    )
    completion = gateway.chat(messages, DEFAULT_PARAMS["story_continuation"], operation="story_continuation")
    story = completion.text.strip()
    if not story:
        raise GatewayError("Empty response from story model", error_type="empty_response")

    title = next_title(previous_title.strip())
    logger.info("story continued title=%s level=%s length=%d", title, level, len(story))
    return ContinuedStory(title=title, story=story, completion=completion)
