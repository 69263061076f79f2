from __future__ import annotations

import asyncio
import logging
from typing import Any, TypedDict

from langgraph.graph import END, START, StateGraph

from app.placement.models import ImageDescription, PlacementResult, Scene
from app.placement.scene_model import build_scene_model, build_scene_model_from_text
from app.placement.service import place_images
from app.services.image_analysis import ImageAnalysisResult, ImageInput, analyze_images
from app.services.vertex_gemini import GeminiClient

logger = logging.getLogger(__name__)


class IllustrationState(TypedDict, total=False):
    gemini: GeminiClient
    scene_text: str | None
    scene_blocks: list[str] | None
    images: list[ImageInput]
    concurrency: int | None

    scenes: list[Scene]
    descriptions: list[ImageDescription]
    analysis: ImageAnalysisResult
    placement: PlacementResult


async def _node_build_scenes(state: IllustrationState) -> dict[str, Any]:
    blocks = state.get("scene_blocks")
    if blocks:
        scenes = build_scene_model(blocks)
    else:
        scenes = build_scene_model_from_text(state.get("scene_text") or "")
    logger.info("illustration: built %d scenes", len(scenes))
    return {"scenes": scenes}


async def _node_describe_images(state: IllustrationState) -> dict[str, Any]:
    analysis = await analyze_images(
        state.get("images") or [],
        state["gemini"],
        concurrency=state.get("concurrency"),
    )
    return {"analysis": analysis, "descriptions": analysis.descriptions}


async def _node_place_images(state: IllustrationState) -> dict[str, Any]:
    result = await asyncio.to_thread(
        place_images,
        state.get("scenes") or [],
        state.get("descriptions") or [],
        state["gemini"],
    )
    logger.info("illustration: placement outcome=%s placements=%d", result.outcome, len(result.placements))
    return {"placement": result}


def build_illustration_graph():
    """Scene building and image description run as parallel branches joined at placement."""
    graph = StateGraph(IllustrationState)

    graph.add_node("build_scenes", _node_build_scenes)
    graph.add_node("describe_images", _node_describe_images)
    graph.add_node("place_images", _node_place_images)

    graph.add_edge(START, "build_scenes")
    graph.add_edge(START, "describe_images")
    graph.add_edge(["build_scenes", "describe_images"], "place_images")
    graph.add_edge("place_images", END)

    return graph.compile()


async def run_illustration(
    gemini: GeminiClient,
    images: list[ImageInput],
    *,
    scene_text: str | None = None,
    scene_blocks: list[str] | None = None,
    concurrency: int | None = None,
) -> IllustrationState:
    """Raises ValueError when neither scene text nor scene blocks are given."""
    if not scene_blocks and not (scene_text and scene_text.strip()):
        raise ValueError("scene_text or scene_blocks is required")

    app = build_illustration_graph()
    state: IllustrationState = {
        "gemini": gemini,
        "scene_text": scene_text,
        "scene_blocks": scene_blocks,
        "images": images,
        "concurrency": concurrency,
    }
    return await app.ainvoke(state)
