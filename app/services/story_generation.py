"""Keyword-driven story generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from app.core.exceptions import GatewayError
from app.prompts.loader import render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, ChatMessage, ChatParams, build_messages

logger = logging.getLogger(__name__)


class ChatGateway(Protocol):
    def chat(
        self,
        messages: list[ChatMessage],
        params: ChatParams,
        *,
        operation: str = "chat",
        json_mode: bool = False,
    ) -> CompletionResult: ...


TONE_INSTRUCTIONS: dict[str, str] = {
    "casual": "Tell it in casual speech (banmal), like talking to a close friend.",
    "polite": "Tell it in polite speech (jondaetmal), warm but not stiff.",
    "humorous": "Keep the narration playful and self-deprecating; land small jokes between beats.",
    "calm": "Narrate calmly and plainly, letting the events speak for themselves.",
}

LENGTH_INSTRUCTIONS: dict[str, str] = {
    "short": "Keep the story to roughly 500 Korean characters (about 30 seconds narrated).",
    "medium": "Keep the story to roughly 1000 Korean characters (about 60 seconds narrated).",
    "long": "Keep the story to roughly 1500 Korean characters (about 90 seconds narrated).",
}

DEFAULT_LENGTH = "medium"
HORROR_MOOD = "scary"

LEVEL_CONSTRAINTS: dict[int, tuple[str, ...]] = {
    1: (
        "Use easy words an elementary-school student would understand.",
        "No graphic violence or cruelty.",
        "No sexual descriptions.",
        "No swearing or slang insults.",
    ),
    2: (
        "Play up the humor and the dramatic beats.",
        "No strong profanity (시발, 병신, ㅅㅂ, ㅂㅅ, ㄴㄱ).",
        "Nothing rated 19+.",
    ),
    3: (
        "This is for an adults-only board; provocative situations are fine.",
        "Rough language and suggestive expressions are allowed.",
    ),
}
DEFAULT_LEVEL = 2
DEFAULT_NARRATOR_AGE = "20s"
DEFAULT_NARRATOR_GENDER = "male"


def level_rules(level: int | None) -> tuple[str, ...]:
    """Content rules for a level; unknown levels get the default one."""
    return LEVEL_CONSTRAINTS.get(level or DEFAULT_LEVEL, LEVEL_CONSTRAINTS[DEFAULT_LEVEL])


@dataclass(frozen=True)
class StoryKeywords:
    topic: str
    genre: str
    mood: str
    tone: str | None = None
    length: str | None = None
    level: int = DEFAULT_LEVEL
    narrator_age: str | None = None
    narrator_gender: str | None = None
    ending_style: str | None = None
    limit_characters: bool = True
    additional_request: str | None = None

    @property
    def is_horror(self) -> bool:
        return self.mood == HORROR_MOOD

    def story_settings(self) -> list[str]:
        """Optional narrator and ending lines; empty when neither is chosen."""
        settings_lines: list[str] = []
        if self.narrator_age or self.narrator_gender:
            age = self.narrator_age or DEFAULT_NARRATOR_AGE
            gender = self.narrator_gender or DEFAULT_NARRATOR_GENDER
            settings_lines.append(f"Narrator: a {gender} in their {age}")
        if self.ending_style:
            settings_lines.append(f"End the story with a {self.ending_style} ending.")
        return settings_lines


@dataclass
class GeneratedStory:
    story: str
    completion: CompletionResult


def build_story_messages(keywords: StoryKeywords) -> list[ChatMessage]:
    system_prompt = render_prompt(
        "prompt_story_system",
        topic=keywords.topic,
        genre=keywords.genre,
        mood=keywords.mood,
        tone_instruction=TONE_INSTRUCTIONS.get(keywords.tone or "", ""),
        length_instruction=LENGTH_INSTRUCTIONS.get(keywords.length or "", LENGTH_INSTRUCTIONS[DEFAULT_LENGTH]),
        is_horror=keywords.is_horror,
        story_settings=keywords.story_settings(),
        level_rules=level_rules(keywords.level),
        limit_characters=keywords.limit_characters,
        additional_request=(keywords.additional_request or "").strip(),
    )
    user_prompt = render_prompt("prompt_story_user", is_horror=keywords.is_horror)
    return build_messages(system_prompt, user_prompt)


def generate_story(keywords: StoryKeywords, gateway: ChatGateway) -> GeneratedStory:
    """Write one story from keywords.

    Raises:
        GatewayError: the call failed or returned only whitespace.
    """
    logger.info(
        "generating story topic=%s genre=%s mood=%s horror=%s level=%s",
        keywords.topic,
        keywords.genre,
        keywords.mood,
        keywords.is_horror,
        keywords.level,
    )
    completion = gateway.chat(
        build_story_messages(keywords),
        DEFAULT_PARAMS["story_generation"],
        operation="story_generation",
    )
    story = completion.text.strip()
    if not story:
        raise GatewayError("Empty response from story model", error_type="empty_response")
    return GeneratedStory(story=story, completion=completion)
