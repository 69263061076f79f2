"""Cast analysis: who speaks in a story, and how each character comes across."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.prompts.loader import render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, build_messages
from app.services.story_generation import ChatGateway

logger = logging.getLogger(__name__)

_SPEAKER_TAG = re.compile(r'\(([^)]+)\)\s*"')
_ANALYSIS_LINE = re.compile(r"\((.*?)\)\s*:\s*\((.*?)\)")


@dataclass(frozen=True)
class CharacterDetail:
    name: str
    traits: str
    mood1: str | None = None
    mood2: str | None = None
    age: str | None = None
    sex: str | None = None


@dataclass
class CharacterAnalysis:
    characters: dict[str, str]
    details: list[CharacterDetail]
    extracted_names: list[str]
    raw_analysis: str
    completion: CompletionResult


def extract_character_names(story: str) -> list[str]:
    """Speaker tags of `(Name)"line"` dialogue, first appearance first."""
    return list(dict.fromkeys(match.strip() for match in _SPEAKER_TAG.findall(story)))


def parse_character_analysis(raw: str) -> tuple[dict[str, str], list[CharacterDetail]]:
    """Read `(Name) : (mood1, mood2, age, sex)` lines.

    Lines with fewer than four traits keep only the raw trait text.
    """
    characters: dict[str, str] = {}
    details: list[CharacterDetail] = []
    for name, traits in _ANALYSIS_LINE.findall(raw):
        name, traits = name.strip(), traits.strip()
        if not name:
            continue
        characters[name] = traits
        parts = [part.strip() for part in traits.split(",")]
        if len(parts) >= 4:
            details.append(
                CharacterDetail(name=name, traits=traits, mood1=parts[0], mood2=parts[1], age=parts[2], sex=parts[3])
            )
        else:
            details.append(CharacterDetail(name=name, traits=traits))
    return characters, details


def extract_characters(story: str, gateway: ChatGateway) -> CharacterAnalysis:
    """Raises ValueError when the story is blank."""
    if not story or not story.strip():
        raise ValueError("story is required")

    names = extract_character_names(story)
    messages = build_messages(render_prompt("prompt_character_analysis_system", names=names), story.strip())
    completion = gateway.chat(messages, DEFAULT_PARAMS["character_extraction"], operation="character_extraction")
    characters, details = parse_character_analysis(completion.text)
    logger.info("character analysis tagged=%d analyzed=%d", len(names), len(characters))
    return CharacterAnalysis(
        characters=characters,
        details=details,
        extracted_names=names,
        raw_analysis=completion.text,
        completion=completion,
    )
