"""Tag each scene with the place it happens in."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.prompts.loader import get_prompt, render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, build_messages
from app.services.story_generation import ChatGateway

logger = logging.getLogger(__name__)

_LOCATION_PREFIX = re.compile(r"^\(([^)]+)\)\s*(.+)$")


@dataclass(frozen=True)
class LocatedScene:
    location: str | None
    scene: str
    full_text: str


@dataclass
class LocationTagging:
    original_scenes: list[str]
    scenes: list[LocatedScene]
    raw_output: str
    completion: CompletionResult


def parse_location_lines(raw: str) -> list[LocatedScene]:
    """One entry per non-blank line; lines without a `(place)` prefix have no location."""
    located: list[LocatedScene] = []
    for line in raw.splitlines():
        line = line.strip()
        if not line:
            continue
        match = _LOCATION_PREFIX.match(line)
        if match:
            located.append(LocatedScene(location=match.group(1).strip(), scene=match.group(2).strip(), full_text=line))
        else:
            located.append(LocatedScene(location=None, scene=line, full_text=line))
    return located


def tag_scene_locations(scenes: list[str], gateway: ChatGateway) -> LocationTagging:
    """Raises ValueError when no scene has any text."""
    cleaned = [scene.strip() for scene in scenes if scene and scene.strip()]
    if not cleaned:
        raise ValueError("at least one scene is required")

    messages = build_messages(
        get_prompt("prompt_location_system"),
        render_prompt("prompt_location_user", scenes=cleaned),
    )
    completion = gateway.chat(messages, DEFAULT_PARAMS["location_tagging"], operation="location_tagging")
    located = parse_location_lines(completion.text)
    if len(located) != len(cleaned):
        logger.warning("location tagging returned %d lines for %d scenes", len(located), len(cleaned))
    return LocationTagging(original_scenes=cleaned, scenes=located, raw_output=completion.text, completion=completion)
