"""Split a finished story into `scene N` blocks and then into scenes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.placement.models import Scene
from app.placement.scene_model import build_scene_model, split_scene_blocks
from app.prompts.loader import get_prompt, render_prompt
from app.services.completion import CompletionResult
from app.services.openrouter import DEFAULT_PARAMS, build_messages
from app.services.story_generation import ChatGateway

logger = logging.getLogger(__name__)


@dataclass
class SceneSplit:
    scenes: list[Scene]
    raw_content: str
    completion: CompletionResult


def split_story_into_scenes(story: str, gateway: ChatGateway) -> SceneSplit:
    """Ask the model to insert scene breaks, then parse its output into scenes.

    Raises:
        ValueError: the story is blank.
        GatewayError: the split call failed.
    """
    if not story or not story.strip():
        raise ValueError("story is required")

    messages = build_messages(
        get_prompt("prompt_scene_split_system"),
        render_prompt("prompt_scene_split_user", story=story.strip()),
    )
    completion = gateway.chat(messages, DEFAULT_PARAMS["scene_splitting"], operation="scene_splitting")

    blocks = split_scene_blocks(completion.text)
    scenes = build_scene_model(blocks)
    if not scenes:
        logger.warning("scene split returned no scene markers, length=%d", len(completion.text))
    else:
        logger.info("story split into %d scenes", len(scenes))
    return SceneSplit(scenes=scenes, raw_content=completion.text, completion=completion)
