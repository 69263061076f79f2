from fastapi import APIRouter

from app.api.deps import OpenRouterDep
from app.api.v1.schemas import CtaRequest, CtaResponse, HookRequest, HookResponse, ViralRequest, ViralResponse
from app.core.request_context import log_context
from app.services.copywriting import generate_ctas, generate_hooks, generate_viral_content

router = APIRouter(tags=["copy"])


@router.post("/copy/hook", response_model=HookResponse)
def generate_hook_endpoint(payload: HookRequest, openrouter=OpenRouterDep):
    with log_context(stage="hook_generation"):
        generated = generate_hooks(payload.body, openrouter, payload.hook_type)
    return HookResponse(
        hooks=generated.variants,
        model=generated.completion.model,
        usage=generated.completion.usage_payload(),
    )


@router.post("/copy/cta", response_model=CtaResponse)
def generate_cta_endpoint(payload: CtaRequest, openrouter=OpenRouterDep):
    with log_context(stage="cta_generation"):
        generated = generate_ctas(payload.body, openrouter, payload.cta_type)
    return CtaResponse(
        ctas=generated.variants,
        model=generated.completion.model,
        usage=generated.completion.usage_payload(),
    )


@router.post("/copy/viral", response_model=ViralResponse)
def generate_viral_endpoint(payload: ViralRequest, openrouter=OpenRouterDep):
    with log_context(stage="viral_content"):
        content = generate_viral_content(payload.story, openrouter)
    completion = content.completion
    return ViralResponse(
        description=content.description,
        hashtags=content.hashtags,
        model=completion.model if completion else "",
        usage=completion.usage_payload() if completion else {},
    )
