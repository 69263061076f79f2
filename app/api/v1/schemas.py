from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.placement.models import ImageDescription, ImagePlacement, Scene
from app.services.characters import CharacterDetail
from app.services.copywriting import CtaType, HookType
from app.services.image_analysis import MAX_IMAGES


class CamelModel(BaseModel):
    """JSON uses camelCase field names; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


StoryLevel = Literal[1, 2, 3]


class StoryGenerateRequest(CamelModel):
    topic: str = Field(min_length=1, max_length=200)
    genre: str = Field(min_length=1, max_length=64)
    mood: str = Field(min_length=1, max_length=64)
    tone: str | None = Field(default=None, max_length=64)
    length: Literal["short", "medium", "long"] | None = None
    level: StoryLevel = 2
    narrator_age: str | None = Field(default=None, max_length=32)
    narrator_gender: str | None = Field(default=None, max_length=32)
    ending_style: str | None = Field(default=None, max_length=64)
    limit_characters: bool = True
    additional_request: str | None = Field(default=None, max_length=1000)


class StoryGenerateResponse(CamelModel):
    story: str
    usage: dict


class StoryContinueRequest(CamelModel):
    previous_story: str = Field(min_length=1)
    previous_title: str = Field(default="", max_length=200)
    level: StoryLevel = 2
    analyze_characters: bool = True


class CharacterDetailPayload(CamelModel):
    name: str
    traits: str
    mood1: str | None = None
    mood2: str | None = None
    age: str | None = None
    sex: str | None = None

    @classmethod
    def from_detail(cls, detail: CharacterDetail) -> "CharacterDetailPayload":
        return cls(
            name=detail.name,
            traits=detail.traits,
            mood1=detail.mood1,
            mood2=detail.mood2,
            age=detail.age,
            sex=detail.sex,
        )


class StoryContinueResponse(CamelModel):
    title: str
    story: str
    content: str
    level: int
    characters: dict[str, str] | None = None
    character_details: list[CharacterDetailPayload] | None = None
    usage: dict


class CharactersRequest(CamelModel):
    story: str = Field(min_length=1)


class CharactersResponse(CamelModel):
    characters: dict[str, str]
    character_details: list[CharacterDetailPayload]
    extracted_names: list[str]
    raw_analysis: str
    usage: dict


class LocationsRequest(CamelModel):
    scenes: list[str] = Field(min_length=1)


class LocatedScenePayload(CamelModel):
    location: str | None
    scene: str
    full_text: str


class LocationsResponse(CamelModel):
    original_scenes: list[str]
    processed_scenes: list[LocatedScenePayload]
    raw_output: str
    usage: dict


class SceneSplitRequest(CamelModel):
    story: str = Field(min_length=1)


class StatementPayload(CamelModel):
    index: int | None = Field(default=None, ge=0)
    id: str | None = None
    display_text: str = Field(min_length=1)


class PhrasePayload(CamelModel):
    index: int | None = Field(default=None, ge=0)
    id: str | None = None
    statements: list[StatementPayload] = Field(min_length=1)

    @classmethod
    def from_scene(cls, scene: Scene) -> "PhrasePayload":
        return cls(
            index=scene.index,
            id=scene.id,
            statements=[
                StatementPayload(index=i, id=statement.id, display_text=statement.display_text)
                for i, statement in enumerate(scene.statements)
            ],
        )


class SceneSplitResponse(CamelModel):
    phrases: list[PhrasePayload]
    usage: dict


class ChatTurn(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class RefineRequest(CamelModel):
    message: str = Field(min_length=1)
    hook: str = ""
    body: str = ""
    cta: str = ""
    history: list[ChatTurn] = Field(default_factory=list)


class RefineResponse(CamelModel):
    response: str
    parsed: dict
    model: str
    usage: dict


class HookRequest(CamelModel):
    body: str = Field(min_length=1)
    hook_type: HookType = HookType.AUTO


class HookResponse(CamelModel):
    hooks: dict[str, str]
    model: str
    usage: dict


class CtaRequest(CamelModel):
    body: str = Field(min_length=1)
    cta_type: CtaType = CtaType.AUTO


class CtaResponse(CamelModel):
    ctas: dict[str, str]
    model: str
    usage: dict


class ViralRequest(CamelModel):
    story: str = Field(min_length=1)


class ViralResponse(CamelModel):
    description: str
    hashtags: str
    model: str
    usage: dict


class UploadResponse(CamelModel):
    url: str
    mime_type: str
    size: int


class ImagePayload(CamelModel):
    data: str = Field(min_length=1, description="Base64 image bytes, optionally as a data URL")
    mime_type: Literal["image/jpeg", "image/png", "image/webp", "image/gif"]


class AnalyzeImagesRequest(CamelModel):
    images: list[ImagePayload] = Field(min_length=1, max_length=MAX_IMAGES)


class ImageDescriptionPayload(CamelModel):
    index: int = Field(ge=0)
    description: str
    mood: str | None = None
    subjects: list[str] = Field(default_factory=list)
    dominant_colors: list[str] = Field(default_factory=list)

    @classmethod
    def from_description(cls, description: ImageDescription) -> "ImageDescriptionPayload":
        return cls(
            index=description.index,
            description=description.description,
            mood=description.mood,
            subjects=list(description.subjects),
            dominant_colors=list(description.dominant_colors),
        )

    def to_description(self) -> ImageDescription:
        return ImageDescription(
            index=self.index,
            description=self.description,
            mood=self.mood,
            subjects=tuple(self.subjects),
            dominant_colors=tuple(self.dominant_colors),
        )


class AnalyzeImagesResponse(CamelModel):
    descriptions: list[ImageDescriptionPayload]
    usage: dict


class PlaceImagesRequest(CamelModel):
    phrases: list[PhrasePayload] = Field(default_factory=list)
    descriptions: list[ImageDescriptionPayload] = Field(default_factory=list, max_length=MAX_IMAGES)


class PlacementPayload(CamelModel):
    image_index: int
    type: Literal["phrase", "statement"]
    phrase_index: int
    statement_indices: list[int] | None = None
    confidence: float
    reason: str

    @classmethod
    def from_placement(cls, placement: ImagePlacement) -> "PlacementPayload":
        return cls(
            image_index=placement.image_index,
            type=placement.type.value,
            phrase_index=placement.phrase_index,
            statement_indices=list(placement.statement_indices) if placement.statement_indices else None,
            confidence=placement.confidence,
            reason=placement.reason,
        )


class PlaceImagesResponse(CamelModel):
    placements: list[PlacementPayload]
    outcome: str | None = None
    usage: dict | None = None


class IllustrateRequest(CamelModel):
    scene_text: str | None = None
    scene_blocks: list[str] | None = None
    images: list[ImagePayload] = Field(min_length=1, max_length=MAX_IMAGES)


class IllustrateResponse(CamelModel):
    phrases: list[PhrasePayload]
    descriptions: list[ImageDescriptionPayload]
    placements: list[PlacementPayload]
    outcome: str
    usage: dict
