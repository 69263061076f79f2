"""Deterministic placement when model suggestions are missing or unusable."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from app.placement.models import ImagePlacement, PlacementType, Scene

logger = logging.getLogger(__name__)

FALLBACK_PREFIX = "Fallback:"
FULL_FALLBACK_CONFIDENCE = 0.3
FILL_FALLBACK_CONFIDENCE = 0.5


def is_fallback(placement: ImagePlacement) -> bool:
    return placement.reason.startswith(FALLBACK_PREFIX)


def _even_slot(image_index: int, image_count: int, scene_count: int) -> int:
    slot = math.floor(image_index / image_count * scene_count)
    return min(slot, scene_count - 1)


def create_fallback_placements(image_count: int, scenes: Sequence[Scene]) -> list[ImagePlacement]:
    """Spread every image evenly across the scenes, in image order.

    With no scenes at all every image lands on scene 0.
    """
    logger.info("creating fallback placements for %d images across %d scenes", image_count, len(scenes))
    scene_count = len(scenes)

    if scene_count == 0:
        return [
            ImagePlacement(
                image_index=index,
                type=PlacementType.PHRASE,
                phrase_index=0,
                confidence=FULL_FALLBACK_CONFIDENCE,
                reason=f"{FALLBACK_PREFIX} no scenes available",
            )
            for index in range(image_count)
        ]

    return [
        ImagePlacement(
            image_index=index,
            type=PlacementType.PHRASE,
            phrase_index=_even_slot(index, image_count, scene_count),
            confidence=FULL_FALLBACK_CONFIDENCE,
            reason=f"{FALLBACK_PREFIX} even distribution",
        )
        for index in range(image_count)
    ]


def fill_missing_placements(
    existing: Sequence[ImagePlacement],
    image_count: int,
    scenes: Sequence[Scene],
) -> list[ImagePlacement]:
    """Place the images `existing` does not cover; existing placements are kept as-is.

    A missing image goes to the lowest scene no placement uses yet, counting
    placements added by this function. Once every scene is in use the
    remaining images are spread evenly. Result is sorted by image index.
    """
    scene_count = len(scenes)
    placed = {placement.image_index for placement in existing}
    used_scenes = {placement.phrase_index for placement in existing}
    result = list(existing)

    for index in range(image_count):
        if index in placed:
            continue

        free = next((scene for scene in range(scene_count) if scene not in used_scenes), None)
        if free is not None:
            target = free
        elif scene_count:
            target = _even_slot(index, image_count, scene_count)
        else:
            target = 0

        logger.debug("image %d unplaced, filling into scene %d", index, target)
        result.append(
            ImagePlacement(
                image_index=index,
                type=PlacementType.PHRASE,
                phrase_index=target,
                confidence=FILL_FALLBACK_CONFIDENCE,
                reason=f"{FALLBACK_PREFIX} auto-placed to complete coverage",
            )
        )
        used_scenes.add(target)

    result.sort(key=lambda placement: placement.image_index)
    return result
