"""
Vision descriptions for uploaded images.

Images are described by a fixed pool of asyncio workers pulling
`(index, image)` items off a queue. The gateway call is blocking, so each
one runs in a thread. Workers write only the result slot of the item they
took, and a failure for one image degrades that image to a placeholder
description without touching the others.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from app.core.metrics import record_image_analysis_failure
from app.core.request_context import log_context
from app.core.settings import settings
from app.placement.models import ImageDescription
from app.prompts.loader import get_prompt
from app.services.completion import CompletionResult, TokenUsage
from app.services.json_parser import parse_json_response

logger = logging.getLogger(__name__)

MAX_IMAGES = 50
SUPPORTED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


class VisionGateway(Protocol):
    def analyze_image(self, image_bytes: bytes, mime_type: str, prompt: str) -> CompletionResult: ...


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str


@dataclass
class ItemLog:
    index: int
    usage: TokenUsage
    latency_ms: float
    success: bool
    error: str | None = None

    def to_dict(self) -> dict:
        payload = {
            "index": self.index,
            "tokens": self.usage.to_dict(),
            "latencyMs": round(self.latency_ms, 1),
            "success": self.success,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ImageAnalysisResult:
    descriptions: list[ImageDescription]
    model: str
    usage: TokenUsage
    latency_ms: float
    item_logs: list[ItemLog] = field(default_factory=list)

    def usage_payload(self) -> dict:
        return {
            "model": self.model,
            "tokens": self.usage.to_dict(),
            "latencyMs": round(self.latency_ms, 1),
            "itemLogs": [item.to_dict() for item in self.item_logs],
        }


def placeholder_description(index: int) -> ImageDescription:
    return ImageDescription(index=index, description=f"Image {index + 1}")


def decode_base64_image(data: str) -> bytes:
    """Decode base64 image data, accepting an optional `data:...;base64,` prefix.

    Raises:
        ValueError: the payload is not valid base64 or is empty.
    """
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image data is not valid base64") from exc
    if not decoded:
        raise ValueError("Image data is empty")
    return decoded


def _string_list(value) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip())


def parse_image_description(index: int, text: str) -> ImageDescription | None:
    """Build a description from the model's JSON answer, or None when there is none."""
    parsed = parse_json_response(text)
    if not isinstance(parsed, dict):
        return None
    description = parsed.get("description")
    if not isinstance(description, str) or not description.strip():
        description = "No description available"
    mood = parsed.get("mood")
    return ImageDescription(
        index=index,
        description=description.strip(),
        mood=mood.strip() if isinstance(mood, str) and mood.strip() else None,
        subjects=_string_list(parsed.get("subjects")),
        dominant_colors=_string_list(parsed.get("dominantColors")),
    )


async def _describe_one(
    index: int,
    image: ImageInput,
    gateway: VisionGateway,
    prompt: str,
) -> tuple[ImageDescription, ItemLog, str | None]:
    started = time.perf_counter()
    try:
        completion = await asyncio.to_thread(gateway.analyze_image, image.data, image.mime_type, prompt)
    except Exception as exc:  # noqa: BLE001
        latency_ms = (time.perf_counter() - started) * 1000
        logger.warning("image analysis failed, using placeholder: %s", exc)
        record_image_analysis_failure()
        log = ItemLog(index=index, usage=TokenUsage(), latency_ms=latency_ms, success=False, error=str(exc))
        return placeholder_description(index), log, None

    description = parse_image_description(index, completion.text)
    if description is None:
        logger.warning("image analysis returned no JSON object, using placeholder")
        record_image_analysis_failure()
        log = ItemLog(
            index=index,
            usage=completion.usage,
            latency_ms=completion.latency_ms,
            success=True,
            error="Failed to parse JSON response",
        )
        return placeholder_description(index), log, completion.model

    logger.debug("image described in %.0f ms", completion.latency_ms)
    log = ItemLog(index=index, usage=completion.usage, latency_ms=completion.latency_ms, success=True)
    return description, log, completion.model


async def analyze_images(
    images: list[ImageInput],
    gateway: VisionGateway,
    *,
    concurrency: int | None = None,
) -> ImageAnalysisResult:
    """Describe every image; the result has one description per input, in input order."""
    started = time.perf_counter()
    limit = max(1, concurrency or settings.image_analysis_concurrency)
    prompt = get_prompt("prompt_image_analysis")

    slots: list[tuple[ImageDescription, ItemLog, str | None] | None] = [None] * len(images)
    queue: asyncio.Queue[tuple[int, ImageInput]] = asyncio.Queue()
    for item in enumerate(images):
        queue.put_nowait(item)

    async def worker() -> None:
        while True:
            try:
                index, image = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            with log_context(stage="image_analysis", image_index=index):
                slots[index] = await _describe_one(index, image, gateway, prompt)
            queue.task_done()

    await asyncio.gather(*(worker() for _ in range(min(limit, len(images)))))

    descriptions: list[ImageDescription] = []
    item_logs: list[ItemLog] = []
    usage = TokenUsage()
    model = settings.gemini_vision_model
    for index, slot in enumerate(slots):
        if slot is None:
            raise RuntimeError(f"image {index} was not analyzed")
        description, log, slot_model = slot
        descriptions.append(description)
        item_logs.append(log)
        usage = usage + log.usage
        model = slot_model or model

    latency_ms = (time.perf_counter() - started) * 1000
    failures = sum(1 for log in item_logs if log.error)
    logger.info(
        "image analysis complete images=%d failures=%d tokens=%d latency_ms=%.0f",
        len(images),
        failures,
        usage.total_tokens,
        latency_ms,
    )
    return ImageAnalysisResult(
        descriptions=descriptions,
        model=model,
        usage=usage,
        latency_ms=latency_ms,
        item_logs=item_logs,
    )
