from __future__ import annotations

from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

LLM_CALL_DURATION = Histogram(
    "sseol_llm_call_duration_seconds",
    "Latency for text/vision completion calls per provider and operation.",
    ["provider", "operation"],
    registry=registry,
)

LLM_CALLS_TOTAL = Counter(
    "sseol_llm_calls_total",
    "Total completion calls partitioned by provider, operation and status.",
    ["provider", "operation", "status"],
    registry=registry,
)

JSON_PARSE_FAILURES = Counter(
    "sseol_json_parse_failures_total",
    "Number of times parsing JSON from a model response failed, labeled by the extraction tier.",
    ["tier"],
    registry=registry,
)

PLACEMENT_OUTCOMES = Counter(
    "sseol_placement_outcomes_total",
    "Placement runs by how the final set was produced (ai, partial, fallback).",
    ["outcome"],
    registry=registry,
)

PLACEMENT_DEMOTIONS = Counter(
    "sseol_placement_demotions_total",
    "Conflict-driven placement rewrites by kind.",
    ["kind"],
    registry=registry,
)

IMAGE_ANALYSIS_FAILURES = Counter(
    "sseol_image_analysis_failures_total",
    "Images that fell back to a placeholder description.",
    registry=registry,
)


@contextmanager
def track_llm_call(provider: str, operation: str):
    timer = LLM_CALL_DURATION.labels(provider=provider, operation=operation).time()
    timer.__enter__()
    try:
        yield
        LLM_CALLS_TOTAL.labels(provider=provider, operation=operation, status="success").inc()
    except Exception:
        LLM_CALLS_TOTAL.labels(provider=provider, operation=operation, status="error").inc()
        raise
    finally:
        timer.__exit__(None, None, None)


def increment_json_parse_failure(tier: str) -> None:
    JSON_PARSE_FAILURES.labels(tier=tier).inc()


def record_placement_outcome(outcome: str) -> None:
    PLACEMENT_OUTCOMES.labels(outcome=outcome).inc()


def record_placement_demotion(kind: str) -> None:
    PLACEMENT_DEMOTIONS.labels(kind=kind).inc()


def record_image_analysis_failure() -> None:
    IMAGE_ANALYSIS_FAILURES.inc()


def get_metrics_payload() -> bytes:
    return generate_latest(registry)
