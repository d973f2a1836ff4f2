from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

import pytest

from gemini_explorer.console.dispatcher import CommandDispatcher
from gemini_explorer.errors import GeolocationError
from gemini_explorer.operations.geolocation import Coordinates
from gemini_explorer.operations.results import (
    ImageResult,
    Source,
    SourcedResult,
    TextResult,
    VideoResult,
)
from gemini_explorer.runtime_config import RuntimeConfig


class FakeChat:
    """Stand-in for a server-side chat session."""

    def __init__(self, number: int) -> None:
        self.number = number
        self.messages: list[str] = []


class FakeService:
    """GenerativeService that records calls instead of hitting the network."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.chunks: list[str] = ["Hel", "lo"]
        self.stream_error: Optional[Exception] = None
        self.error: Optional[Exception] = None
        self.chats: list[FakeChat] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error

    async def generate_text(self, prompt: str) -> TextResult:
        self._record("generate_text", prompt)
        return TextResult(f"text:{prompt}")

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        self._record("stream_text", prompt)
        for chunk in self.chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    def start_chat(self) -> FakeChat:
        self._record("start_chat")
        chat = FakeChat(len(self.chats) + 1)
        self.chats.append(chat)
        return chat

    async def continue_chat(self, chat: FakeChat, message: str) -> TextResult:
        self._record("continue_chat", chat, message)
        chat.messages.append(message)
        return TextResult(f"reply {chat.number}:{message}")

    async def json_recipes(self) -> TextResult:
        self._record("json_recipes")
        return TextResult('[\n  {\n    "recipeName": "Sugar"\n  }\n]', format="json")

    async def function_call(self, prompt: str) -> TextResult:
        self._record("function_call", prompt)
        return TextResult('Model requested to call function "controlLight"')

    async def search(self, query: str) -> SourcedResult:
        self._record("search", query)
        return SourcedResult(
            text=f"answer:{query}",
            sources=[Source("Example", "https://example.com")],
        )

    async def search_maps(self, query: str, location: Coordinates) -> SourcedResult:
        self._record("search_maps", query, location)
        return SourcedResult(text=f"places:{query}", heading="Places Mentioned:")

    async def describe_image(
        self, prompt: str, image_base64: str, mime_type: str
    ) -> TextResult:
        self._record("describe_image", prompt, image_base64, mime_type)
        return TextResult(f"described:{prompt}")

    async def generate_image(self, prompt: str) -> ImageResult:
        self._record("generate_image", prompt)
        return ImageResult(data_base64="aW1n")

    async def generate_video(self, prompt: str) -> VideoResult:
        self._record("generate_video", prompt)
        return VideoResult(uri="https://host/vid?x=1&key=K")


class FakeGeolocator:
    def __init__(self, coordinates: Optional[Coordinates] = None, error: Optional[str] = None):
        self.coordinates = coordinates or Coordinates(51.5074123, -0.1278456)
        self.error = error
        self.calls = 0

    async def locate(self) -> Coordinates:
        self.calls += 1
        if self.error:
            raise GeolocationError(self.error)
        return self.coordinates


class FakeFilePicker:
    def __init__(self, paths: List[Optional[Path]]) -> None:
        self._paths = list(paths)

    async def pick_file(self) -> Optional[Path]:
        return self._paths.pop(0)


class MockConsole:
    """Mock console for testing."""

    def __init__(self, config: RuntimeConfig, service: Any) -> None:
        self.config = config
        self.service = service
        self.run_called = False

    async def run(self) -> None:
        self.run_called = True


@pytest.fixture
def fake_service() -> FakeService:
    return FakeService()


@pytest.fixture
def geolocator() -> FakeGeolocator:
    return FakeGeolocator()


@pytest.fixture
def dispatcher(fake_service: FakeService, geolocator: FakeGeolocator) -> CommandDispatcher:
    return CommandDispatcher(fake_service, geolocator, poll_interval=10)
