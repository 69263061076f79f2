"""
Placement proposal: one JSON-mode model call that suggests where images go.

The proposal is only a suggestion. Whatever comes back is handed to the
resolver as raw candidates; nothing here validates individual entries.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from app.core.exceptions import GatewayError, ProposalParseError, ProposalShapeError, ProposalTransportError
from app.core.settings import settings
from app.placement.models import ImageDescription, Scene
from app.prompts.loader import get_prompt, render_prompt
from app.services.completion import CompletionResult
from app.services.json_parser import parse_json_response
from app.services.vertex_gemini import GeminiError

logger = logging.getLogger(__name__)

PROPOSAL_TEMPERATURE = 0.3


class TextGateway(Protocol):
    def generate_text(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        json_mode: bool = False,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> CompletionResult: ...


@dataclass
class PlacementProposal:
    candidates: list[Any]
    completion: CompletionResult


def build_placement_prompt(scenes: Sequence[Scene], images: Sequence[ImageDescription]) -> str:
    scene_context = [
        {
            "index": scene.index,
            "statements": [
                {"index": idx, "display_text": statement.display_text}
                for idx, statement in enumerate(scene.statements)
            ],
        }
        for scene in scenes
    ]
    return render_prompt("prompt_image_placement", scenes=scene_context, images=list(images))


def request_placement_proposal(
    scenes: Sequence[Scene],
    images: Sequence[ImageDescription],
    gateway: TextGateway,
) -> PlacementProposal:
    """Ask the model for placements and return its raw candidate list.

    Raises:
        ProposalTransportError: the gateway call failed.
        ProposalParseError: no JSON could be recovered from the response.
        ProposalShapeError: the JSON has no list-valued `placements` field.
    """
    prompt = build_placement_prompt(scenes, images)
    logger.info("requesting placement proposal scenes=%d images=%d", len(scenes), len(images))

    try:
        completion = gateway.generate_text(
            prompt,
            system_instruction=get_prompt("prompt_image_placement_system"),
            json_mode=True,
            temperature=PROPOSAL_TEMPERATURE,
            max_output_tokens=settings.placement_max_output_tokens,
        )
    except (GeminiError, GatewayError) as exc:
        raise ProposalTransportError(f"Placement proposal call failed: {exc}") from exc

    logger.info(
        "placement proposal received model=%s latency_ms=%.0f input_tokens=%d output_tokens=%d finish_reason=%s",
        completion.model,
        completion.latency_ms,
        completion.usage.input_tokens,
        completion.usage.output_tokens,
        completion.finish_reason,
    )
    if completion.finish_reason == "MAX_TOKENS":
        logger.warning(
            "placement proposal truncated at max output tokens, response_length=%d",
            len(completion.text),
        )

    parsed = parse_json_response(completion.text)
    if parsed is None:
        raise ProposalParseError(
            "Placement proposal response is not valid JSON",
            response_length=len(completion.text),
        )

    candidates = parsed.get("placements") if isinstance(parsed, dict) else None
    if not isinstance(candidates, list):
        raise ProposalShapeError("Placement proposal response has no placements list")

    logger.info("placement proposal parsed candidates=%d", len(candidates))
    return PlacementProposal(candidates=candidates, completion=completion)
