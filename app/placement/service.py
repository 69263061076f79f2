"""
Image placement orchestration.

proposal -> sanitize + conflict resolution -> completeness. Model failures
never escape: any typed proposal failure degrades to the fallback
distributor, and images the model skipped are filled in individually.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.core.exceptions import (
    PlacementProposalError,
    ProposalParseError,
    ProposalShapeError,
    ProposalTransportError,
)
from app.core.metrics import record_placement_outcome
from app.core.request_context import log_context
from app.placement.fallback import create_fallback_placements, fill_missing_placements
from app.placement.models import ImageDescription, PlacementResult, Scene
from app.placement.proposal import TextGateway, request_placement_proposal
from app.placement.resolver import resolve_placements

logger = logging.getLogger(__name__)

_FAILURE_KINDS: dict[type[PlacementProposalError], str] = {
    ProposalTransportError: "transport",
    ProposalParseError: "parse",
    ProposalShapeError: "shape",
}


def _full_fallback(image_count: int, scenes: Sequence[Scene], failure: str) -> PlacementResult:
    placements = create_fallback_placements(image_count, scenes)
    record_placement_outcome("fallback")
    return PlacementResult(
        placements=placements,
        outcome="fallback",
        failure=failure,
        fallback_image_indices=list(range(image_count)),
    )


def place_images(
    scenes: Sequence[Scene],
    images: Sequence[ImageDescription],
    gateway: TextGateway,
) -> PlacementResult:
    """Return exactly one placement per image, sorted by image index."""
    image_count = len(images)
    if image_count == 0:
        return PlacementResult(placements=[], outcome="empty")

    with log_context(stage="placement"):
        if not scenes:
            logger.warning("no scenes to place %d images into, using fallback", image_count)
            return _full_fallback(image_count, scenes, "no_scenes")

        try:
            proposal = request_placement_proposal(scenes, images, gateway)
        except PlacementProposalError as exc:
            failure = _FAILURE_KINDS.get(type(exc), "proposal")
            if isinstance(exc, ProposalParseError):
                logger.warning("placement proposal unparseable, response_length=%d", exc.response_length)
            else:
                logger.warning("placement proposal failed (%s): %s", failure, exc)
            return _full_fallback(image_count, scenes, failure)

        usage = proposal.completion.usage_payload()
        raw_count = len(proposal.candidates)
        resolved = resolve_placements(proposal.candidates, scenes, image_count)

        if not resolved:
            logger.warning("no usable placements among %d candidates, using fallback", raw_count)
            result = _full_fallback(image_count, scenes, "no_valid_candidates")
            result.usage = usage
            result.raw_candidate_count = raw_count
            return result

        if len(resolved) < image_count:
            covered = {placement.image_index for placement in resolved}
            missing = [index for index in range(image_count) if index not in covered]
            logger.info("model placed %d of %d images, filling %s", len(resolved), image_count, missing)
            record_placement_outcome("partial")
            return PlacementResult(
                placements=fill_missing_placements(resolved, image_count, scenes),
                outcome="partial",
                usage=usage,
                raw_candidate_count=raw_count,
                fallback_image_indices=missing,
            )

        logger.info("model placed all %d images", image_count)
        record_placement_outcome("ai")
        return PlacementResult(
            placements=sorted(resolved, key=lambda placement: placement.image_index),
            outcome="ai",
            usage=usage,
            raw_candidate_count=raw_count,
        )
