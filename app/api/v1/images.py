import asyncio
import logging

from fastapi import APIRouter, File, UploadFile

from app.api.deps import GeminiDep, MediaStoreDep
from app.api.v1.schemas import (
    AnalyzeImagesRequest,
    AnalyzeImagesResponse,
    IllustrateRequest,
    IllustrateResponse,
    ImageDescriptionPayload,
    ImagePayload,
    PhrasePayload,
    PlaceImagesRequest,
    PlaceImagesResponse,
    PlacementPayload,
    UploadResponse,
)
from app.graphs.illustration import run_illustration
from app.placement.models import ImageDescription, Scene, Statement
from app.placement.service import place_images
from app.services.image_analysis import ImageInput, analyze_images, decode_base64_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])


def _decode_images(images: list[ImagePayload]) -> list[ImageInput]:
    decoded: list[ImageInput] = []
    for position, image in enumerate(images):
        try:
            data = decode_base64_image(image.data)
        except ValueError as exc:
            raise ValueError(f"images[{position}]: {exc}") from exc
        decoded.append(ImageInput(data=data, mime_type=image.mime_type))
    return decoded


def _in_index_order(items: list, label: str) -> list:
    ordered = sorted(
        enumerate(items),
        key=lambda item: item[1].index if item[1].index is not None else item[0],
    )
    positions = [item.index if item.index is not None else position for position, item in ordered]
    if positions != list(range(len(items))):
        raise ValueError(f"{label} indices must be unique and cover 0..n-1")
    return [item for _, item in ordered]


def _scenes_from_phrases(phrases: list[PhrasePayload]) -> list[Scene]:
    """Build scenes in the caller's coordinates.

    Nothing is dropped or renumbered: placements come back as indices into
    the phrases and statements exactly as sent.
    """
    scenes: list[Scene] = []
    for scene_index, phrase in enumerate(_in_index_order(phrases, "phrase")):
        scene_id = phrase.id or f"scene-{scene_index}"
        statements: list[Statement] = []
        for statement_index, statement in enumerate(
            _in_index_order(phrase.statements, f"phrases[{scene_index}] statement")
        ):
            text = statement.display_text.strip()
            if not text:
                raise ValueError(f"phrases[{scene_index}].statements[{statement_index}]: displayText is blank")
            statements.append(Statement(id=statement.id or f"{scene_id}-stmt-{statement_index}", display_text=text))
        scenes.append(Scene(id=scene_id, index=scene_index, statements=tuple(statements)))
    return scenes


def _descriptions_from_payload(payload: list[ImageDescriptionPayload]) -> list[ImageDescription]:
    descriptions = sorted((item.to_description() for item in payload), key=lambda d: d.index)
    if [d.index for d in descriptions] != list(range(len(descriptions))):
        raise ValueError("description indices must be unique and cover 0..n-1")
    return descriptions


@router.post("/images/upload", response_model=UploadResponse)
async def upload_image(file: UploadFile = File(...), store=MediaStoreDep):
    data = await file.read()
    mime_type = file.content_type or ""
    _, url = store.save_image_bytes(data, mime_type)
    logger.info("image uploaded mime_type=%s size=%d", mime_type, len(data))
    return UploadResponse(url=url, mime_type=mime_type, size=len(data))


@router.post("/images/analyze", response_model=AnalyzeImagesResponse)
async def analyze_images_endpoint(payload: AnalyzeImagesRequest, gemini=GeminiDep):
    images = _decode_images(payload.images)
    result = await analyze_images(images, gemini)
    return AnalyzeImagesResponse(
        descriptions=[ImageDescriptionPayload.from_description(d) for d in result.descriptions],
        usage=result.usage_payload(),
    )


@router.post("/images/place", response_model=PlaceImagesResponse, response_model_exclude_none=True)
async def place_images_endpoint(payload: PlaceImagesRequest, gemini=GeminiDep):
    if not payload.descriptions:
        return PlaceImagesResponse(placements=[])

    scenes = _scenes_from_phrases(payload.phrases)
    descriptions = _descriptions_from_payload(payload.descriptions)
    result = await asyncio.to_thread(place_images, scenes, descriptions, gemini)
    return PlaceImagesResponse(
        placements=[PlacementPayload.from_placement(p) for p in result.placements],
        outcome=result.outcome,
        usage=result.usage,
    )


@router.post("/illustrate", response_model=IllustrateResponse, response_model_exclude_none=True)
async def illustrate_endpoint(payload: IllustrateRequest, gemini=GeminiDep):
    images = _decode_images(payload.images)
    state = await run_illustration(
        gemini,
        images,
        scene_text=payload.scene_text,
        scene_blocks=payload.scene_blocks,
    )
    analysis = state["analysis"]
    placement = state["placement"]
    return IllustrateResponse(
        phrases=[PhrasePayload.from_scene(scene) for scene in state["scenes"]],
        descriptions=[ImageDescriptionPayload.from_description(d) for d in state["descriptions"]],
        placements=[PlacementPayload.from_placement(p) for p in placement.placements],
        outcome=placement.outcome,
        usage={"analysis": analysis.usage_payload(), "placement": placement.usage},
    )
