"""Shared fixtures: a fake google-genai client and small real images."""

from __future__ import annotations

import io
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from PIL import Image

from flyer_studio.config_loader import Settings
from flyer_studio.gemini_client import GeminiClient
from flyer_studio.logger import RunLogger
from flyer_studio.orchestrator import GenerationOrchestrator
from flyer_studio.wizard import WizardController


def _encode(color: tuple[int, int, int], fmt: str, size: tuple[int, int] = (4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def text_response(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(text=text, candidates=[])


def image_response(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(text=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def empty_response() -> SimpleNamespace:
    part = SimpleNamespace(text="No puedo generar esa imagen.", inline_data=None)
    return SimpleNamespace(text=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class _FakeModels:
    """Stands in for `genai.Client().aio.models`.

    `branding` answers JSON-mode calls, `image` answers everything else. Each can
    be a response object, an exception to raise, or an async callable taking the
    recorded call.
    """

    def __init__(self, png: bytes) -> None:
        self.calls: list[SimpleNamespace] = []
        self.branding: Any = text_response('{"hex": "#FF5733", "vibe": "audaz"}')
        self.image: Any = image_response(png)

    @property
    def branding_calls(self) -> list[SimpleNamespace]:
        return [c for c in self.calls if _is_json_call(c)]

    @property
    def image_calls(self) -> list[SimpleNamespace]:
        return [c for c in self.calls if not _is_json_call(c)]

    async def generate_content(self, *, model: str, contents: Any, config: Any = None) -> Any:
        call = SimpleNamespace(model=model, contents=contents, config=config)
        self.calls.append(call)
        outcome = self.branding if _is_json_call(call) else self.image
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(call)
        return outcome


def _is_json_call(call: SimpleNamespace) -> bool:
    return getattr(call.config, "response_mime_type", None) == "application/json"


class _FakeGenaiClient:
    def __init__(self, models: _FakeModels) -> None:
        self.aio = SimpleNamespace(models=models)


@pytest.fixture
def png_bytes() -> bytes:
    return _encode((200, 30, 30), "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode((30, 30, 200), "JPEG")


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    def _make(color: tuple[int, int, int] = (0, 128, 0), size: tuple[int, int] = (4, 4)) -> bytes:
        return _encode(color, "PNG", size)

    return _make


@pytest.fixture
def responses() -> SimpleNamespace:
    return SimpleNamespace(text=text_response, image=image_response, empty=empty_response)


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key")


@pytest.fixture
def fake_models(png_bytes: bytes) -> _FakeModels:
    return _FakeModels(png_bytes)


@pytest.fixture
def gemini_client(settings: Settings, fake_models: _FakeModels) -> GeminiClient:
    return GeminiClient(settings=settings, client=_FakeGenaiClient(fake_models))


@pytest.fixture
def client_factory(fake_models: _FakeModels) -> Callable[[Settings], GeminiClient]:
    def _factory(settings: Settings) -> GeminiClient:
        return GeminiClient(settings=settings, client=_FakeGenaiClient(fake_models))

    return _factory


@pytest.fixture
def wizard() -> WizardController:
    return WizardController(template_catalog=["https://templates.test/burger.jpg"])


@pytest.fixture
def run_logger() -> RunLogger:
    return RunLogger(echo=False)


@pytest.fixture
def orchestrator(
    wizard: WizardController,
    gemini_client: GeminiClient,
    run_logger: RunLogger,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(wizard, gemini_client, logger=run_logger)
