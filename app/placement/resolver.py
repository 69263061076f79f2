"""
Placement validation and conflict resolution.

Raw placement candidates come straight from a model and are untrusted: any
field may be missing, mistyped or out of range, and the same image or scene
may be claimed several times. Resolution runs in three stages:

    A. sanitize    drop unusable candidates, clamp and default the rest
    B. scenes      at most one phrase-type placement per scene
    C. lines       at most one placement per (scene, line)

Every stage is a pure function of its inputs. Ties on confidence always go
to the placement encountered first in the input list, so results never
depend on dict or set iteration order.

Stage C runs once, strictly after Stage B. A statement placement that loses
all of its lines becomes a phrase placement on its own scene and may collide
with that scene's existing phrase placement; the stages are not iterated to
a fixed point.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

from app.core.metrics import record_placement_demotion
from app.placement.models import ImagePlacement, PlacementType, Scene

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
DEFAULT_REASON = "Placed by AI analysis"

PHRASE_REASSIGN_PENALTY = 0.9
STATEMENT_TO_PHRASE_PENALTY = 0.8
PHRASE_TO_STATEMENT_PENALTY = 0.7

REASSIGNED_NOTE = "(reassigned: scene conflict)"
PHRASE_TO_STATEMENT_NOTE = "(converted to statement: scene conflict)"
STATEMENT_TO_PHRASE_NOTE = "(converted to scene: statement conflict)"


def _as_number(value: Any) -> float | None:
    """Return value as a float if it is a real, non-NaN number; bools are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return float(value)


def _as_int(value: Any) -> int | None:
    number = _as_number(value)
    if number is None or math.isinf(number) or not number.is_integer():
        return None
    return int(number)


def _clamp_index(value: float, upper: int) -> int:
    if upper <= 0:
        return 0
    return int(math.floor(min(max(value, 0.0), float(upper))))


def _normalize_statement_indices(raw: Any, max_index: int) -> tuple[int, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    indices: set[int] = set()
    for item in raw:
        number = _as_number(item)
        if number is None or number < 0:
            continue
        indices.add(_clamp_index(number, max_index))
    return tuple(sorted(indices))


def sanitize_candidates(
    raw_candidates: Sequence[Any],
    scenes: Sequence[Scene],
    image_count: int,
) -> list[ImagePlacement]:
    """Stage A: turn untrusted candidate dicts into typed, in-range placements.

    Candidates are examined in input order, and for a repeated image index the
    first acceptable candidate wins. This is the only place where the
    model's output order affects the result.
    """
    scene_count = len(scenes)
    accepted: list[ImagePlacement] = []
    seen_images: set[int] = set()

    for position, raw in enumerate(raw_candidates):
        if not isinstance(raw, dict):
            logger.debug("placement candidate %d dropped: not an object", position)
            continue

        image_index = _as_int(raw.get("imageIndex"))
        if image_index is None or not 0 <= image_index < image_count:
            logger.debug("placement candidate %d dropped: invalid imageIndex %r", position, raw.get("imageIndex"))
            continue
        if image_index in seen_images:
            logger.debug("placement candidate %d dropped: duplicate imageIndex %d", position, image_index)
            continue

        phrase_number = _as_number(raw.get("phraseIndex"))
        phrase_index = 0 if phrase_number is None else _clamp_index(phrase_number, scene_count - 1)

        placement_type = PlacementType.STATEMENT if raw.get("type") == "statement" else PlacementType.PHRASE

        confidence = _as_number(raw.get("confidence"))
        confidence = DEFAULT_CONFIDENCE if confidence is None else min(max(confidence, 0.0), 1.0)

        reason = raw.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            reason = DEFAULT_REASON

        statement_indices = None
        if placement_type is PlacementType.STATEMENT:
            max_statement = scenes[phrase_index].max_statement_index if phrase_index < scene_count else 0
            statement_indices = _normalize_statement_indices(raw.get("statementIndices"), max_statement)
            if not statement_indices:
                logger.debug(
                    "image %d: statement placement without usable lines, defaulting to line 0",
                    image_index,
                )
                statement_indices = (0,)

        accepted.append(
            ImagePlacement(
                image_index=image_index,
                type=placement_type,
                phrase_index=phrase_index,
                confidence=confidence,
                reason=reason,
                statement_indices=statement_indices,
            )
        )
        seen_images.add(image_index)

    return accepted


def resolve_phrase_conflicts(placements: Sequence[ImagePlacement], scene_count: int) -> list[ImagePlacement]:
    """Stage B: keep one phrase placement per scene and re-home the rest.

    A loser moves to the lowest-indexed scene with no phrase placement
    (confidence x0.9). When every scene is taken it becomes a statement
    placement on line 0 of its original scene (confidence x0.7).
    """
    owners: dict[int, int] = {}
    for position, placement in enumerate(placements):
        if placement.type is not PlacementType.PHRASE:
            continue
        current = owners.get(placement.phrase_index)
        if current is None or placement.confidence > placements[current].confidence:
            owners[placement.phrase_index] = position

    free_scenes = [index for index in range(scene_count) if index not in owners]
    resolved: list[ImagePlacement] = []

    for position, placement in enumerate(placements):
        if placement.type is not PlacementType.PHRASE or owners[placement.phrase_index] == position:
            resolved.append(placement)
            continue

        if free_scenes:
            target = free_scenes.pop(0)
            logger.info(
                "image %d lost scene %d conflict, reassigned to scene %d",
                placement.image_index,
                placement.phrase_index,
                target,
            )
            record_placement_demotion("phrase_reassigned")
            resolved.append(
                placement.evolve(
                    phrase_index=target,
                    confidence=placement.confidence * PHRASE_REASSIGN_PENALTY,
                    reason=f"{placement.reason} {REASSIGNED_NOTE}",
                )
            )
        else:
            logger.warning(
                "image %d lost scene %d conflict with no free scene, converting to statement placement",
                placement.image_index,
                placement.phrase_index,
            )
            record_placement_demotion("phrase_to_statement")
            resolved.append(
                placement.evolve(
                    type=PlacementType.STATEMENT,
                    statement_indices=(0,),
                    confidence=placement.confidence * PHRASE_TO_STATEMENT_PENALTY,
                    reason=f"{placement.reason} {PHRASE_TO_STATEMENT_NOTE}",
                )
            )

    return resolved


def resolve_statement_conflicts(placements: Sequence[ImagePlacement]) -> list[ImagePlacement]:
    """Stage C: give every (scene, line) to its highest-confidence claimant.

    Placements keep only the lines they won. One that wins nothing turns into
    a phrase placement on its own scene (confidence x0.8).
    """
    owners: dict[tuple[int, int], int] = {}
    for position, placement in enumerate(placements):
        for key in placement.claimed_lines():
            current = owners.get(key)
            if current is None or placement.confidence > placements[current].confidence:
                owners[key] = position

    resolved: list[ImagePlacement] = []
    for position, placement in enumerate(placements):
        claimed = placement.claimed_lines()
        if not claimed:
            resolved.append(placement)
            continue

        won = tuple(line for (scene, line) in claimed if owners[(scene, line)] == position)

        if not won:
            logger.warning(
                "image %d lost every claimed line in scene %d, converting to scene placement",
                placement.image_index,
                placement.phrase_index,
            )
            record_placement_demotion("statement_to_phrase")
            resolved.append(
                placement.evolve(
                    type=PlacementType.PHRASE,
                    statement_indices=None,
                    confidence=placement.confidence * STATEMENT_TO_PHRASE_PENALTY,
                    reason=f"{placement.reason} {STATEMENT_TO_PHRASE_NOTE}",
                )
            )
        elif len(won) < len(claimed):
            logger.info(
                "image %d reduced from lines %s to %s in scene %d",
                placement.image_index,
                list(placement.statement_indices or ()),
                list(won),
                placement.phrase_index,
            )
            record_placement_demotion("statement_reduced")
            resolved.append(placement.evolve(statement_indices=won))
        else:
            resolved.append(placement)

    return resolved


def resolve_conflicts(placements: Sequence[ImagePlacement], scene_count: int) -> list[ImagePlacement]:
    """Stages B then C on already-sanitized placements."""
    return resolve_statement_conflicts(resolve_phrase_conflicts(placements, scene_count))


def resolve_placements(
    raw_candidates: Sequence[Any],
    scenes: Sequence[Scene],
    image_count: int,
) -> list[ImagePlacement]:
    """Stages A, B and C. The result may cover fewer than `image_count` images."""
    sanitized = sanitize_candidates(raw_candidates, scenes, image_count)
    return resolve_conflicts(sanitized, len(scenes))
