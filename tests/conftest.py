import pytest
import httpx

from app.core import settings as settings_module
from app.main import app
from app.prompts.loader import clear_cache
from app.placement.scene_model import build_scene_model
from app.services.completion import CompletionResult, TokenUsage


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_module.settings, "media_root", str(tmp_path / "media"))
    monkeypatch.setattr(settings_module.settings, "image_analysis_concurrency", 4)
    clear_cache()
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture()
def two_scenes():
    return build_scene_model(
        [
            ["I moved into a new flat last spring.", "The neighbor never said hello."],
            ["One night the doorbell rang.", "Nobody was there.", "Only a cake on the mat."],
        ]
    )


@pytest.fixture()
def three_line_scene():
    return build_scene_model([["First line.", "Second line.", "Third line."]])


class FakeChat:
    """Chat gateway double that replays canned replies and records calls."""

    def __init__(self, *replies: str):
        self.replies = list(replies)
        self.calls: list[dict] = []

    def chat(self, messages, params, *, operation="chat", json_mode=False):
        self.calls.append(
            {"messages": messages, "params": params, "operation": operation, "json_mode": json_mode}
        )
        return CompletionResult(
            text=self.replies.pop(0),
            model="fake/chat-model",
            usage=TokenUsage(input_tokens=5, output_tokens=9),
        )


@pytest.fixture()
def fake_chat():
    return FakeChat
