from fastapi import Depends

from app.core.gemini_factory import build_gemini_client, build_openrouter_client
from app.core.settings import settings
from app.services.openrouter import OpenRouterClient
from app.services.storage import LocalMediaStore
from app.services.vertex_gemini import GeminiClient


def gemini_client() -> GeminiClient:
    return build_gemini_client()


def openrouter_client() -> OpenRouterClient:
    return build_openrouter_client()


def media_store() -> LocalMediaStore:
    return LocalMediaStore(
        root_dir=settings.media_root,
        url_prefix=settings.media_url_prefix,
        max_bytes=settings.upload_max_bytes,
    )


GeminiDep = Depends(gemini_client)
OpenRouterDep = Depends(openrouter_client)
MediaStoreDep = Depends(media_store)
