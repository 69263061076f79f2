import logging

from fastapi import APIRouter

from app.api.deps import OpenRouterDep
from app.api.v1.schemas import (
    CharacterDetailPayload,
    CharactersRequest,
    CharactersResponse,
    LocatedScenePayload,
    LocationsRequest,
    LocationsResponse,
    PhrasePayload,
    RefineRequest,
    RefineResponse,
    SceneSplitRequest,
    SceneSplitResponse,
    StoryContinueRequest,
    StoryContinueResponse,
    StoryGenerateRequest,
    StoryGenerateResponse,
)
from app.core.request_context import log_context
from app.services.characters import extract_characters
from app.services.locations import tag_scene_locations
from app.services.openrouter import ChatMessage
from app.services.refinement import StoryParts, refine_story
from app.services.scene_split import split_story_into_scenes
from app.services.story_continuation import continue_story
from app.services.story_generation import StoryKeywords, generate_story

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stories"])


@router.post("/stories/generate", response_model=StoryGenerateResponse)
def generate_story_endpoint(payload: StoryGenerateRequest, openrouter=OpenRouterDep):
    keywords = StoryKeywords(
        topic=payload.topic,
        genre=payload.genre,
        mood=payload.mood,
        tone=payload.tone,
        length=payload.length,
        level=payload.level,
        narrator_age=payload.narrator_age,
        narrator_gender=payload.narrator_gender,
        ending_style=payload.ending_style,
        limit_characters=payload.limit_characters,
        additional_request=payload.additional_request,
    )
    with log_context(stage="story_generation"):
        generated = generate_story(keywords, openrouter)
    return StoryGenerateResponse(story=generated.story, usage=generated.completion.usage_payload())


@router.post("/stories/continue", response_model=StoryContinueResponse, response_model_exclude_none=True)
def continue_story_endpoint(payload: StoryContinueRequest, openrouter=OpenRouterDep):
    with log_context(stage="story_continuation"):
        continued = continue_story(payload.previous_story, payload.previous_title, openrouter, level=payload.level)
    usage = {"continuation": continued.completion.usage_payload()}
    characters = details = None
    if payload.analyze_characters:
        with log_context(stage="character_extraction"):
            analysis = extract_characters(continued.story, openrouter)
        characters = analysis.characters
        details = [CharacterDetailPayload.from_detail(d) for d in analysis.details]
        usage["characters"] = analysis.completion.usage_payload()
    return StoryContinueResponse(
        title=continued.title,
        story=continued.story,
        content=continued.content,
        level=payload.level,
        characters=characters,
        character_details=details,
        usage=usage,
    )


@router.post("/stories/characters", response_model=CharactersResponse)
def characters_endpoint(payload: CharactersRequest, openrouter=OpenRouterDep):
    with log_context(stage="character_extraction"):
        analysis = extract_characters(payload.story, openrouter)
    return CharactersResponse(
        characters=analysis.characters,
        character_details=[CharacterDetailPayload.from_detail(d) for d in analysis.details],
        extracted_names=analysis.extracted_names,
        raw_analysis=analysis.raw_analysis,
        usage=analysis.completion.usage_payload(),
    )


@router.post("/stories/locations", response_model=LocationsResponse)
def locations_endpoint(payload: LocationsRequest, openrouter=OpenRouterDep):
    with log_context(stage="location_tagging"):
        tagging = tag_scene_locations(payload.scenes, openrouter)
    return LocationsResponse(
        original_scenes=tagging.original_scenes,
        processed_scenes=[
            LocatedScenePayload(location=s.location, scene=s.scene, full_text=s.full_text) for s in tagging.scenes
        ],
        raw_output=tagging.raw_output,
        usage=tagging.completion.usage_payload(),
    )


@router.post("/stories/split-scenes", response_model=SceneSplitResponse)
def split_scenes_endpoint(payload: SceneSplitRequest, openrouter=OpenRouterDep):
    with log_context(stage="scene_split"):
        split = split_story_into_scenes(payload.story, openrouter)
    return SceneSplitResponse(
        phrases=[PhrasePayload.from_scene(scene) for scene in split.scenes],
        usage=split.completion.usage_payload(),
    )


@router.post("/stories/refine", response_model=RefineResponse)
def refine_story_endpoint(payload: RefineRequest, openrouter=OpenRouterDep):
    history = [ChatMessage(turn.role, turn.content) for turn in payload.history]
    with log_context(stage="refinement"):
        refinement = refine_story(
            payload.message,
            StoryParts(hook=payload.hook, body=payload.body, cta=payload.cta),
            openrouter,
            history=history,
        )
    completion = refinement.completion
    return RefineResponse(
        response=refinement.response,
        parsed=refinement.parsed(),
        model=completion.model if completion else "",
        usage=completion.usage_payload() if completion else {},
    )
