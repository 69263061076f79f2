import contextvars
from contextlib import contextmanager

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
stage_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("stage", default=None)
image_index_var: contextvars.ContextVar[int | None] = contextvars.ContextVar("image_index", default=None)


def set_request_id(request_id: str) -> contextvars.Token:
    """Store the current request ID in a context variable."""
    return request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Reset the request ID context variable to a previous state."""
    request_id_var.reset(token)


def get_request_id() -> str | None:
    """Retrieve the current request ID from the context."""
    return request_id_var.get()


def get_stage() -> str | None:
    """Retrieve the current pipeline stage for logging."""
    return stage_var.get()


def get_image_index() -> int | None:
    return image_index_var.get()


@contextmanager
def log_context(stage: str | None = None, image_index: int | None = None):
    """Temporarily scope stage/image context for structured logs."""
    tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []
    if stage is not None:
        tokens.append((stage_var, stage_var.set(stage)))
    if image_index is not None:
        tokens.append((image_index_var, image_index_var.set(image_index)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
