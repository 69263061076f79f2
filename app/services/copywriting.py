"""HOOK, CTA and viral caption generation for a finished story body."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from app.prompts.loader import get_prompt, render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, build_messages
from app.services.story_generation import ChatGateway

logger = logging.getLogger(__name__)

_SECTION_PATTERN = re.compile(r"== ([^\n]*?) ==\s*\n(.*?)(?=\n\n==|\Z)", re.DOTALL)
_KOREAN_VIRAL_PATTERN = re.compile(r"\[설명\](.*?)\[해시태그\](.*)", re.DOTALL)
_ENGLISH_VIRAL_PATTERN = re.compile(r"\[Description\](.*?)\[Hashtags?\](.*)", re.DOTALL | re.IGNORECASE)


class HookType(str, Enum):
    AUTO = "auto"
    QUESTION = "question"
    SHOCKING_FACT = "shocking_fact"
    CONTRAST = "contrast"
    STORY_TEASER = "story_teaser"
    STATISTICS = "statistics"
    ACTION_INDUCING = "action_inducing"


class CtaType(str, Enum):
    AUTO = "auto"
    ENGAGEMENT = "engagement"
    SUBSCRIBE = "subscribe"
    EXTEND = "extend"
    CONVERT = "convert"
    URGENT = "urgent"


HOOK_TYPE_LABELS: dict[HookType, str] = {
    HookType.AUTO: "automatic",
    HookType.QUESTION: "question-style",
    HookType.SHOCKING_FACT: "shocking-fact-style",
    HookType.CONTRAST: "contrast-style",
    HookType.STORY_TEASER: "story-teaser-style",
    HookType.STATISTICS: "statistics-style",
    HookType.ACTION_INDUCING: "action-inducing",
}

CTA_TYPE_LABELS: dict[CtaType, str] = {
    CtaType.AUTO: "automatic",
    CtaType.ENGAGEMENT: "engagement-style",
    CtaType.SUBSCRIBE: "subscribe/follow-style",
    CtaType.EXTEND: "extended-viewing-style",
    CtaType.CONVERT: "action-conversion-style",
    CtaType.URGENT: "urgent-action-style",
}


@dataclass
class GeneratedCopy:
    """Parsed variants keyed by section name, plus the call that produced them."""

    variants: dict[str, str]
    completion: CompletionResult


@dataclass
class ViralContent:
    description: str
    hashtags: str
    completion: CompletionResult | None = None


def parse_sections(raw: str) -> dict[str, str]:
    """Split `== NAME ==` sections; text without markers comes back under `auto`."""
    sections = {match.group(1).strip(): match.group(2).strip() for match in _SECTION_PATTERN.finditer(raw)}
    if not sections:
        sections["auto"] = raw.strip()
    return sections


def parse_viral_response(raw: str) -> ViralContent:
    """Separate caption text from hashtags.

    Tagged sections are preferred; otherwise the first line starting with `#`
    begins the hashtag block. With nothing recognizable the whole text is the
    description.
    """
    for pattern in (_KOREAN_VIRAL_PATTERN, _ENGLISH_VIRAL_PATTERN):
        match = pattern.search(raw)
        if match:
            return ViralContent(description=match.group(1).strip(), hashtags=match.group(2).strip())

    description_lines: list[str] = []
    hashtag_lines: list[str] = []
    in_hashtags = False
    for line in raw.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("["):
            continue
        if stripped.startswith("#") or in_hashtags:
            in_hashtags = True
            hashtag_lines.append(stripped)
        else:
            description_lines.append(stripped)

    description = "\n".join(description_lines)
    hashtags = " ".join(hashtag_lines)
    if not description and not hashtags:
        description = raw.strip()
    return ViralContent(description=description, hashtags=hashtags)


def generate_hooks(body: str, gateway: ChatGateway, hook_type: HookType = HookType.AUTO) -> GeneratedCopy:
    label = "" if hook_type is HookType.AUTO else HOOK_TYPE_LABELS[hook_type]
    messages = build_messages(
        render_prompt("prompt_hook_system", body=body),
        render_prompt("prompt_hook_user", label=label),
    )
    completion = gateway.chat(messages, DEFAULT_PARAMS["hook_generation"], operation="hook_generation")
    variants = parse_sections(completion.text)
    logger.info("generated hooks type=%s variants=%d", hook_type.value, len(variants))
    return GeneratedCopy(variants=variants, completion=completion)


def generate_ctas(body: str, gateway: ChatGateway, cta_type: CtaType = CtaType.AUTO) -> GeneratedCopy:
    label = "" if cta_type is CtaType.AUTO else CTA_TYPE_LABELS[cta_type]
    messages = build_messages(
        render_prompt("prompt_cta_system", body=body),
        render_prompt("prompt_cta_user", label=label),
    )
    completion = gateway.chat(messages, DEFAULT_PARAMS["cta_generation"], operation="cta_generation")
    variants = parse_sections(completion.text)
    logger.info("generated ctas type=%s variants=%d", cta_type.value, len(variants))
    return GeneratedCopy(variants=variants, completion=completion)


def generate_viral_content(story: str, gateway: ChatGateway) -> ViralContent:
    """Raises ValueError when the story is blank."""
    if not story or not story.strip():
        raise ValueError("story is required")
    messages = build_messages(get_prompt("prompt_viral_system"), story.strip())
    completion = gateway.chat(messages, DEFAULT_PARAMS["viral_content"], operation="viral_content")
    content = parse_viral_response(completion.text)
    content.completion = completion
    return content
