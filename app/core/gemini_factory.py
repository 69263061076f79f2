"""
Centralized gateway client factories.

Every route and graph node builds its Gemini and OpenRouter clients here so
configuration checks live in one place.
"""

from __future__ import annotations

from app.core.exceptions import ConfigurationError
from app.core.settings import settings
from app.services.openrouter import OpenRouterClient
from app.services.vertex_gemini import GeminiClient


class GeminiNotConfiguredError(ConfigurationError):
    """Raised when Gemini API credentials are missing."""

    def __init__(self) -> None:
        super().__init__(
            "Gemini is not configured. Set GEMINI_API_KEY or GOOGLE_CLOUD_PROJECT."
        )


class OpenRouterNotConfiguredError(ConfigurationError):
    """Raised when the OpenRouter API key is missing."""

    def __init__(self) -> None:
        super().__init__("OpenRouter is not configured. Set OPENROUTER_API_KEY.")


def build_gemini_client() -> GeminiClient:
    """Build a GeminiClient from application settings.

    Raises:
        GeminiNotConfiguredError: If neither API key nor GCP project is set.
    """
    if not settings.google_cloud_project and not settings.gemini_api_key:
        raise GeminiNotConfiguredError()

    return GeminiClient(
        project=settings.google_cloud_project,
        location=settings.google_cloud_location,
        api_key=settings.gemini_api_key,
        text_model=settings.gemini_text_model,
        vision_model=settings.gemini_vision_model,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_retries=settings.gemini_max_retries,
        initial_backoff_seconds=settings.gemini_initial_backoff_seconds,
        fallback_text_model=settings.gemini_fallback_text_model,
        circuit_breaker_threshold=settings.gemini_circuit_breaker_threshold,
        circuit_breaker_timeout=settings.gemini_circuit_breaker_timeout,
    )


def build_openrouter_client() -> OpenRouterClient:
    """Build an OpenRouterClient from application settings.

    Raises:
        OpenRouterNotConfiguredError: If OPENROUTER_API_KEY is unset.
    """
    if not settings.openrouter_api_key:
        raise OpenRouterNotConfiguredError()

    return OpenRouterClient(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        timeout_seconds=settings.openrouter_timeout_seconds,
    )
