"""
Gemini service: every call the console makes into the generative API.

The API key is read from the environment on each call, so a key selected or
exported after start-up is picked up by the next command.
"""

import base64
import json
import logging
from typing import Any, AsyncIterator, Callable, List, Optional, Protocol

from google import genai
from google.genai import types

from gemini_explorer.errors import GenerationFailedError
from gemini_explorer.operations.geolocation import Coordinates
from gemini_explorer.operations.results import (
    ImageResult,
    Source,
    SourcedResult,
    TextResult,
    VideoResult,
)
from gemini_explorer.operations.video import KeySelector, VideoGenerator
from gemini_explorer.runtime_config import RuntimeConfig, get_api_key

logger = logging.getLogger(__name__)

RECIPES_PROMPT = "List three popular cookie recipes, including ingredients and steps."

RECIPES_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    description="A list of cookie recipes.",
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "recipeName": types.Schema(
                type=types.Type.STRING, description="Name of the cookie."
            ),
            "ingredients": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description="List of ingredients.",
            ),
            "steps": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description="Cooking instructions.",
            ),
        },
        required=["recipeName", "ingredients", "steps"],
    ),
)

CONTROL_LIGHT_FUNCTION = types.FunctionDeclaration(
    name="controlLight",
    description="Set brightness and color of a light.",
    parameters=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "brightness": types.Schema(
                type=types.Type.NUMBER, description="Light level from 0 to 100."
            ),
            "color": types.Schema(
                type=types.Type.STRING, description='e.g., "warm white" or "blue".'
            ),
        },
        required=["brightness", "color"],
    ),
)


class GenerativeService(Protocol):
    """The request/response contract the dispatcher relies on."""

    async def generate_text(self, prompt: str) -> TextResult: ...

    def stream_text(self, prompt: str) -> AsyncIterator[str]: ...

    def start_chat(self) -> Any: ...

    async def continue_chat(self, chat: Any, message: str) -> TextResult: ...

    async def json_recipes(self) -> TextResult: ...

    async def function_call(self, prompt: str) -> TextResult: ...

    async def search(self, query: str) -> SourcedResult: ...

    async def search_maps(self, query: str, location: Coordinates) -> SourcedResult: ...

    async def describe_image(
        self, prompt: str, image_base64: str, mime_type: str
    ) -> TextResult: ...

    async def generate_image(self, prompt: str) -> ImageResult: ...

    async def generate_video(self, prompt: str) -> VideoResult: ...


def default_client_factory(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


def extract_sources(response: Any, kind: str) -> List[Source]:
    """Collect (title, uri) pairs from the first candidate's grounding chunks.

    ``kind`` is the chunk attribute to read: ``web`` or ``maps``. Duplicate URIs
    are dropped; otherwise the API order is kept.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    sources: List[Source] = []
    seen: set[str] = set()
    for chunk in chunks:
        ref = getattr(chunk, kind, None)
        uri = getattr(ref, "uri", None)
        if not uri or uri in seen:
            continue
        seen.add(uri)
        sources.append(Source(title=getattr(ref, "title", None) or uri, uri=uri))
    return sources


class GeminiService(GenerativeService):
    """GenerativeService backed by the google-genai async client."""

    def __init__(
        self,
        config: RuntimeConfig,
        client_factory: Callable[[str], genai.Client] = default_client_factory,
        key_selector: Optional[KeySelector] = None,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self.video = VideoGenerator(
            client_factory,
            model=config.video_model.value,
            poll_interval=config.poll_interval,
            max_polls=config.max_polls,
            key_selector=key_selector,
        )

    @property
    def model(self) -> str:
        return self.config.model.value

    def _client(self) -> genai.Client:
        return self._client_factory(get_api_key())

    # --- Text ---

    async def generate_text(self, prompt: str) -> TextResult:
        response = await self._client().aio.models.generate_content(
            model=self.model, contents=prompt
        )
        return TextResult(response.text or "")

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        stream = await self._client().aio.models.generate_content_stream(
            model=self.model, contents=prompt
        )
        async for chunk in stream:
            if chunk.text:
                yield chunk.text

    # --- Chat ---

    def start_chat(self) -> Any:
        return self._client().aio.chats.create(model=self.model)

    async def continue_chat(self, chat: Any, message: str) -> TextResult:
        response = await chat.send_message(message)
        return TextResult(response.text or "")

    # --- Structured output and tools ---

    async def json_recipes(self) -> TextResult:
        response = await self._client().aio.models.generate_content(
            model=self.model,
            contents=RECIPES_PROMPT,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=RECIPES_SCHEMA,
            ),
        )
        if not response.text:
            raise GenerationFailedError("JSON generation returned no content.")
        return TextResult(json.dumps(json.loads(response.text), indent=2), format="json")

    async def function_call(self, prompt: str) -> TextResult:
        response = await self._client().aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                tools=[types.Tool(function_declarations=[CONTROL_LIGHT_FUNCTION])],
            ),
        )
        calls = response.function_calls
        if calls:
            call = calls[0]
            # The call is only reported; nothing is executed
            args = json.dumps(call.args or {}, separators=(",", ":"))
            return TextResult(
                f'Model requested to call function "{call.name}" with arguments: {args}.'
            )
        return TextResult(
            f"Model did not request a function call. It responded: {response.text}"
        )

    # --- Grounding ---

    async def search(self, query: str) -> SourcedResult:
        response = await self._client().aio.models.generate_content(
            model=self.model,
            contents=query,
            config=types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
        )
        return SourcedResult(
            text=response.text or "",
            sources=extract_sources(response, "web"),
            heading="Sources:",
        )

    async def search_maps(self, query: str, location: Coordinates) -> SourcedResult:
        response = await self._client().aio.models.generate_content(
            model=self.model,
            contents=query,
            config=types.GenerateContentConfig(
                tools=[types.Tool(google_maps=types.GoogleMaps())],
                tool_config=types.ToolConfig(
                    retrieval_config=types.RetrievalConfig(
                        lat_lng=types.LatLng(
                            latitude=location.latitude,
                            longitude=location.longitude,
                        )
                    )
                ),
            ),
        )
        return SourcedResult(
            text=response.text or "",
            sources=extract_sources(response, "maps"),
            heading="Places Mentioned:",
        )

    # --- Multimodal ---

    async def describe_image(
        self, prompt: str, image_base64: str, mime_type: str
    ) -> TextResult:
        image_part = types.Part.from_bytes(
            data=base64.b64decode(image_base64), mime_type=mime_type
        )
        response = await self._client().aio.models.generate_content(
            model=self.model,
            contents=[image_part, prompt],
        )
        return TextResult(response.text or "")

    async def generate_image(self, prompt: str) -> ImageResult:
        response = await self._client().aio.models.generate_images(
            model=self.config.image_model.value,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio="1:1",
            ),
        )
        images = response.generated_images or []
        image_bytes = images[0].image.image_bytes if images and images[0].image else None
        if not image_bytes:
            raise GenerationFailedError("Image generation failed.")
        return ImageResult(
            data_base64=base64.b64encode(image_bytes).decode("ascii"),
            mime_type="image/jpeg",
        )

    async def generate_video(self, prompt: str) -> VideoResult:
        return await self.video.generate(prompt)
