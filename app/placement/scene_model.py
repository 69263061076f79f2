"""
Scene model builder.

Turns scene blocks into Scene/Statement structures whose (scene, line)
positions form the coordinate space image placement works over.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from app.placement.models import Scene, Statement

_SCENE_PATTERN = re.compile(r"scene\s+(\d+)\s*\n(.*?)(?=scene\s+\d+|\Z)", re.IGNORECASE | re.DOTALL)
_DIALOGUE_START = re.compile(r'^\(([^)]+)\)"(.*)$')


def _lines_of(block: str | Sequence[str]) -> list[str]:
    if isinstance(block, str):
        raw_lines: Iterable[str] = block.splitlines()
    else:
        raw_lines = block
    return [line.strip() for line in raw_lines if line and line.strip()]


def build_scene_model(blocks: Sequence[str | Sequence[str]]) -> list[Scene]:
    """Build scenes from text blocks or pre-split line lists.

    Blank lines are dropped, and so are blocks left with no lines, so every
    scene has at least one statement and indices stay contiguous.
    """
    scenes: list[Scene] = []
    for block in blocks:
        lines = _lines_of(block)
        if not lines:
            continue
        scene_index = len(scenes)
        scene_id = f"scene-{scene_index}"
        statements = tuple(
            Statement(id=f"{scene_id}-stmt-{i}", display_text=line) for i, line in enumerate(lines)
        )
        scenes.append(Scene(id=scene_id, index=scene_index, statements=statements))
    return scenes


def format_dialogue_lines(content: str) -> str:
    """Re-tag multi-line dialogue so every line carries its (Speaker) prefix.

    `(Lady)"Hello. I am` followed by `the person next door."` becomes two
    closed, tagged lines.
    """
    result: list[str] = []
    speaker: str | None = None
    in_dialogue = False

    for line in content.split("\n"):
        stripped = line.strip()
        start = _DIALOGUE_START.match(stripped)
        if start:
            speaker, spoken = start.group(1), start.group(2)
            if spoken.endswith('"'):
                result.append(stripped)
                speaker, in_dialogue = None, False
            else:
                in_dialogue = True
                result.append(f'({speaker})"{spoken}"')
        elif in_dialogue and speaker and stripped:
            if stripped.endswith('"'):
                result.append(f'({speaker})"{stripped[:-1]}"')
                speaker, in_dialogue = None, False
            else:
                result.append(f'({speaker})"{stripped}"')
        else:
            if not stripped and in_dialogue:
                speaker, in_dialogue = None, False
            result.append(line)

    return "\n".join(result)


def split_scene_blocks(raw: str) -> list[str]:
    """Extract the text under each `scene N` marker, in order of appearance."""
    formatted = format_dialogue_lines(raw)
    return [match.group(2).strip() for match in _SCENE_PATTERN.finditer(formatted) if match.group(2).strip()]


def build_scene_model_from_text(raw: str) -> list[Scene]:
    """Parse scene-split model output straight into scenes."""
    return build_scene_model(split_scene_blocks(raw))
